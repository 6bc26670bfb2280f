"""AI enrichment client for saved posts

Calls the managed summarization service and classifies the result into an
AiOutcome. The service returns a 160-char summary, up to 5 tags, an intent and
a suggested next action; this module trusts none of it and normalizes every
field before it reaches a record.

Enrichment is strictly optional for a save: summarize() never raises. Quota
refusals, timeouts, HTTP errors and malformed bodies all come back as an
outcome with a non-success status.

Usage:
    client = EnrichmentClient(kv_store)
    outcome = await client.summarize(capture, caller=CallerContext(ip, ua))
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from pydantic import ValidationError

from keepli.config import (
    AI_ENDPOINT,
    AI_INTENTS,
    AI_POST_CONTENT_MAX,
    AI_SUMMARY_MAX,
    AI_TAG_MAX_LENGTH,
    AI_TAGS_MAX,
    AI_TIMEOUT_SECONDS,
    ENV,
    daily_limit_for,
)
from keepli.infrastructure.errors import EnrichmentError
from keepli.infrastructure.identity import CallerContext, resolve_identity
from keepli.infrastructure.kv_store import KeyValueStore
from keepli.infrastructure.quota import QuotaLedger
from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter, log_event, time_block
from keepli.storage.models import AiOutcome, AiResult, AiStatus, CaptureRequest, QuotaSnapshot
from keepli.utils.redaction import truncate

logger = get_logger(__name__)

SUMMARIZE_PATH = "/v1/summarize"
ERROR_BODY_MAX = 500


def normalize_summary(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    cleaned = " ".join(value.split())
    return cleaned[:AI_SUMMARY_MAX].rstrip()


def normalize_tags(value: Any) -> list[str]:
    """Lower-cased, trimmed, de-duplicated string tags; over-long ones are dropped."""
    if not isinstance(value, list):
        return []
    seen: set[str] = set()
    tags: list[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        tag = item.strip().lower()
        if not tag or len(tag) > AI_TAG_MAX_LENGTH or tag in seen:
            continue
        seen.add(tag)
        tags.append(tag)
        if len(tags) >= AI_TAGS_MAX:
            break
    return tags


def normalize_intent(value: Any) -> str:
    if isinstance(value, str):
        candidate = value.strip().lower()
        if candidate in AI_INTENTS:
            return candidate
    return AI_INTENTS[0]


def _token_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return int(value)


def normalize_result(data: dict[str, Any]) -> AiResult:
    """
    Normalize a raw summarization payload.

    Example:
        {"summary_160": "  a  b ", "tags": ["Growth", "growth", " ai "],
         "intent": "bogus", "next_action": "  do X "}
        -> AiResult(summary="a b", tags=["growth", "ai"], intent="learn", next_action="do X")
    """
    next_action = data.get("next_action")
    return AiResult(
        summary=normalize_summary(data.get("summary_160", data.get("summary"))),
        tags=normalize_tags(data.get("tags")),
        intent=normalize_intent(data.get("intent")),
        next_action=next_action.strip() if isinstance(next_action, str) else "",
        tokens_in=_token_count(data.get("tokens_in")),
        tokens_out=_token_count(data.get("tokens_out")),
    )


def _parse_quota(body: Any) -> QuotaSnapshot | None:
    if not isinstance(body, dict) or not isinstance(body.get("quota"), dict):
        return None
    try:
        return QuotaSnapshot.model_validate(body["quota"])
    except ValidationError:
        logger.debug("Ignoring malformed quota block in AI response")
        return None


class EnrichmentClient:
    """
    Client for the managed summarization service

    Each call is charged against the caller's daily quota before any network
    request is made.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ledger: QuotaLedger | None = None,
        endpoint: str = AI_ENDPOINT,
        timeout: float = AI_TIMEOUT_SECONDS,
        environment: str = ENV,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.store = store
        self.ledger = ledger or QuotaLedger(store)
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.environment = environment
        self._transport = transport

    async def summarize(self, capture: CaptureRequest, caller: CallerContext | None = None) -> AiOutcome:
        """
        Enrich one capture.

        Side Effects:
            - Increments the caller's quota counter in the KV store
            - POSTs to <endpoint>/v1/summarize when quota allows
            - Increments ai.outcome.<status> and records ai.summarize latency
        """
        with time_block("ai.summarize"):
            try:
                outcome = await self._summarize(capture, caller)
            except EnrichmentError as e:
                outcome = AiOutcome(status=AiStatus(e.code), quota=e.quota, error=str(e))
            except (httpx.TimeoutException, TimeoutError) as e:
                logger.warning("AI summary timed out after %.1fs", self.timeout)
                outcome = AiOutcome(status=AiStatus.TIMEOUT, error=str(e) or "timeout")
            except httpx.HTTPError as e:
                logger.warning("AI summary request failed: %s", e)
                outcome = AiOutcome(status=AiStatus.ERROR, error=str(e) or type(e).__name__)
            except Exception as e:
                logger.exception("Unexpected error during AI summary")
                outcome = AiOutcome(status=AiStatus.ERROR, error=type(e).__name__)

        counter(f"ai.outcome.{outcome.status}")
        log_event("ai.summarize", status=outcome.status, error=outcome.error)
        return outcome

    async def _summarize(self, capture: CaptureRequest, caller: CallerContext | None) -> AiOutcome:
        identity = await resolve_identity(self.store, caller)
        limit = daily_limit_for(self.environment, identity.licensed)
        check = await self.ledger.increment(identity.scope, identity.identity, limit)
        if not check.allowed:
            logger.info("AI quota refused for %s", identity)
            return AiOutcome(
                status=AiStatus.QUOTA,
                quota=QuotaSnapshot(**check.snapshot()),
                error="quota_exceeded",
            )

        payload: dict[str, Any] = {
            "url": capture.url,
            "post_content": capture.post_content[:AI_POST_CONTENT_MAX],
            "highlight": capture.highlight,
        }
        if identity.license_key:
            payload["licenseKey"] = identity.license_key

        # httpx timeouts are per phase; the deadline bounds the whole exchange
        async with asyncio.timeout(self.timeout):
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(f"{self.endpoint}{SUMMARIZE_PATH}", json=payload)

        if response.status_code == 429:
            raise EnrichmentError("quota", "quota_exceeded", quota=self._quota_dump(response))

        if not response.is_success:
            raise EnrichmentError(
                "error",
                f"HTTP {response.status_code}: {truncate(response.text, ERROR_BODY_MAX)}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise EnrichmentError("error", "invalid_response") from e

        if not isinstance(data, dict) or not isinstance(data.get("summary_160"), str):
            raise EnrichmentError("error", "invalid_response", quota=self._quota_dump_from(data))

        return AiOutcome(
            status=AiStatus.SUCCESS,
            result=normalize_result(data),
            quota=_parse_quota(data),
        )

    @staticmethod
    def _quota_dump_from(body: Any) -> dict | None:
        quota = _parse_quota(body)
        return quota.model_dump() if quota else None

    def _quota_dump(self, response: httpx.Response) -> dict | None:
        try:
            return self._quota_dump_from(response.json())
        except ValueError:
            return None
