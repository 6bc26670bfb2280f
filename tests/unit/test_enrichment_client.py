"""
Tests for the AI enrichment client

Covers:
- Field normalization of raw service payloads
- Quota charged before the network call; refusals make no request
- Every failure mode returned as an outcome, never raised
"""

from __future__ import annotations

import asyncio
import json
import time

import httpx

from keepli.config import AI_TIMEOUT_SECONDS, daily_limit_for
from keepli.infrastructure.identity import CallerContext
from keepli.infrastructure.kv_store import MemoryKeyValueStore
from keepli.llm.enrichment import EnrichmentClient, normalize_result, normalize_summary, normalize_tags
from keepli.observability.telemetry import get_counters
from keepli.storage.models import AiStatus, CaptureRequest

CAPTURE = CaptureRequest(url="https://example.com/p/1", post_content="A post about growth", highlight="growth")
CALLER = CallerContext(ip="203.0.113.7", user_agent="pytest")

GOOD_BODY = {
    "summary_160": "  A short   summary ",
    "tags": ["Growth", "growth", " AI "],
    "intent": "research",
    "next_action": " Share it ",
    "tokens_in": 120,
    "tokens_out": 30,
    "quota": {"limit": 5, "remaining": 4},
}


def _client(handler, store=None, environment="development", timeout=AI_TIMEOUT_SECONDS) -> EnrichmentClient:
    return EnrichmentClient(
        store or MemoryKeyValueStore(),
        endpoint="https://ai.test/",
        timeout=timeout,
        environment=environment,
        transport=httpx.MockTransport(handler),
    )


class TestNormalization:
    def test_worked_example(self):
        result = normalize_result(
            {"summary_160": "  a  b ", "tags": ["Growth", "growth", " ai "], "intent": "bogus", "next_action": "  do X "}
        )

        assert result.summary == "a b"
        assert result.tags == ["growth", "ai"]
        assert result.intent == "learn"
        assert result.next_action == "do X"

    def test_summary_capped_at_160_without_trailing_space(self):
        summary = normalize_summary("word " * 100)
        assert len(summary) <= 160
        assert not summary.endswith(" ")

    def test_non_string_summary_is_empty(self):
        assert normalize_summary(None) == ""
        assert normalize_summary(42) == ""

    def test_tags_drop_overlong_and_non_strings(self):
        tags = normalize_tags(["ok", "x" * 25, 7, "", "  ", "y" * 24])
        assert tags == ["ok", "y" * 24]

    def test_tags_capped_at_five(self):
        assert normalize_tags(["a", "b", "c", "d", "e", "f"]) == ["a", "b", "c", "d", "e"]

    def test_tags_must_be_a_list(self):
        assert normalize_tags("growth, ai") == []

    def test_token_counts_ignore_garbage(self):
        result = normalize_result({"summary_160": "s", "tokens_in": "12", "tokens_out": True})
        assert result.tokens_in == 0
        assert result.tokens_out == 0


class TestSummarize:
    def test_success(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=GOOD_BODY)

        outcome = asyncio.run(_client(handler).summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.SUCCESS
        assert outcome.result.summary == "A short summary"
        assert outcome.result.tags == ["growth", "ai"]
        assert outcome.result.intent == "research"
        assert outcome.result.next_action == "Share it"
        assert outcome.quota.remaining == 4

        assert len(requests) == 1
        assert str(requests[0].url) == "https://ai.test/v1/summarize"
        payload = json.loads(requests[0].content)
        assert payload == {"url": CAPTURE.url, "post_content": CAPTURE.post_content, "highlight": "growth"}
        assert get_counters("ai.outcome.") == {"ai.outcome.success": 1}

    def test_post_content_truncated_to_2000(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json=GOOD_BODY)

        capture = CaptureRequest(url="https://example.com/p/2", post_content="z" * 5000)
        asyncio.run(_client(handler).summarize(capture, caller=CALLER))

        assert len(seen["post_content"]) == 2000

    def test_license_key_is_forwarded_and_scopes_quota(self):
        store = MemoryKeyValueStore()
        asyncio.run(store.put("licenseKey", " lic_abcdef123456 "))
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json=GOOD_BODY)

        asyncio.run(_client(handler, store=store).summarize(CAPTURE, caller=CALLER))

        assert seen["licenseKey"] == "lic_abcdef123456"
        assert any(key.startswith("quota:license:lic_abcdef123456:") for key in store.keys())

    def test_quota_exhaustion_makes_no_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=GOOD_BODY)

        client = _client(handler)
        limit = daily_limit_for("development", licensed=False)

        async def scenario():
            return [await client.summarize(CAPTURE, caller=CALLER) for _ in range(limit + 1)]

        outcomes = asyncio.run(scenario())

        assert [o.status for o in outcomes[:limit]] == [AiStatus.SUCCESS] * limit
        refused = outcomes[-1]
        assert refused.status == AiStatus.QUOTA
        assert refused.error == "quota_exceeded"
        assert refused.quota.limit == limit
        assert refused.quota.remaining == 0
        assert len(calls) == limit

    def test_upstream_429_is_a_quota_outcome(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "quota_exceeded", "quota": {"limit": 20, "remaining": 0}})

        outcome = asyncio.run(_client(handler).summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.QUOTA
        assert outcome.quota.limit == 20

    def test_http_error_is_an_error_outcome(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="upstream down")

        outcome = asyncio.run(_client(handler).summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.ERROR
        assert outcome.error == "HTTP 500: upstream down"
        assert outcome.result is None

    def test_non_json_body_is_invalid_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>oops</html>")

        outcome = asyncio.run(_client(handler).summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.ERROR
        assert outcome.error == "invalid_response"

    def test_missing_summary_is_invalid_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"tags": ["a"]})

        outcome = asyncio.run(_client(handler).summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.ERROR
        assert outcome.error == "invalid_response"

    def test_timeout_is_a_timeout_outcome(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        outcome = asyncio.run(_client(handler).summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.TIMEOUT
        assert get_counters("ai.outcome.") == {"ai.outcome.timeout": 1}

    def test_connection_failure_is_an_error_outcome(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        outcome = asyncio.run(_client(handler).summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.ERROR
        assert outcome.error == "refused"

    def test_undecodable_body_is_invalid_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"\xff\xfe\xfa")

        outcome = asyncio.run(_client(handler).summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.ERROR
        assert outcome.error == "invalid_response"

    def test_undecodable_429_body_is_still_quota(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, content=b"\xff\xfe\xfa")

        outcome = asyncio.run(_client(handler).summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.QUOTA
        assert outcome.quota is None

    def test_slow_body_is_cut_off_at_the_deadline(self):
        async def trickle():
            for chunk in (b'{"summary_160": ', b'"late", ', b'"tags": []}'):
                await asyncio.sleep(0.2)
                yield chunk

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=trickle())

        started = time.monotonic()
        outcome = asyncio.run(_client(handler, timeout=0.1).summarize(CAPTURE, caller=CALLER))
        elapsed = time.monotonic() - started

        assert outcome.status == AiStatus.TIMEOUT
        assert outcome.error == "timeout"
        assert elapsed < 0.5

    def test_unexpected_failure_is_an_error_outcome(self):
        class BrokenLedger:
            async def increment(self, scope, identity, limit):
                raise OSError("database is locked")

        client = EnrichmentClient(
            MemoryKeyValueStore(),
            ledger=BrokenLedger(),
            endpoint="https://ai.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=GOOD_BODY)),
        )

        outcome = asyncio.run(client.summarize(CAPTURE, caller=CALLER))

        assert outcome.status == AiStatus.ERROR
        assert outcome.error == "OSError"
        assert get_counters("ai.outcome.") == {"ai.outcome.error": 1}
