"""Save orchestrator

Turns one capture into a persisted, deduplicated, optionally AI-enriched
record:

    validating -> checking_duplicate -> enriching -> persisting_remote
               -> persisting_local -> notifying -> done

Failure semantics:
- validating / checking_duplicate fail fast with no side effects
- enriching never fails the save; non-success AI outcomes become warnings
- persisting_remote is the only fatal I/O step
- persisting_local and notifying are best-effort (the remote store is the
  system of record); the notification runs as a session background task and
  never delays the response

Saves of the same content id are serialized through the session's
single-flight lock from the duplicate check through local persistence, so a
concurrent second save observes the first one's record.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from keepli.capture.url import canonicalize, content_hash, derive_embed_url, derive_source, derive_title
from keepli.config import CAPTURE_HIGHLIGHT_MAX
from keepli.infrastructure.errors import HostedStoreError, KeepliError, describe_error
from keepli.infrastructure.identity import CallerContext
from keepli.llm.enrichment import EnrichmentClient, normalize_result
from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter, log_event, time_block
from keepli.pipeline.notices import build_notices
from keepli.pipeline.notifier import LogNotifier, Notifier
from keepli.pipeline.session import SaveSession, SaveStage
from keepli.storage.models import AiOutcome, AiStatus, CaptureRequest, SavedRecord, SaveResult
from keepli.storage.record_store import RecordStore
from keepli.storage.remote import PersistReceipt, RemoteStore
from keepli.storage.settings_store import SettingsStore

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def failure(code: str, duplicate: SavedRecord | None = None) -> SaveResult:
    entry = describe_error(code)
    return SaveResult(ok=False, error=code, category=entry.category, action=entry.action, duplicate=duplicate)


class SaveOrchestrator:
    def __init__(
        self,
        records: RecordStore,
        settings: SettingsStore,
        remote: RemoteStore,
        enrichment: EnrichmentClient,
        notifier: Notifier | None = None,
        session: SaveSession | None = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self.records = records
        self.settings = settings
        self.remote = remote
        self.enrichment = enrichment
        self.notifier = notifier or LogNotifier()
        self.session = session or SaveSession()
        self._clock = clock

    async def save(self, capture: CaptureRequest, caller: CallerContext | None = None) -> SaveResult:
        """
        Run the save pipeline for one capture

        Returns:
            SaveResult - ok with record/row/ai/notices, or a failure code

        Side Effects:
            - May consume AI quota and call the summarization service
            - Writes to the remote store (spreadsheet or hosted items)
            - Rewrites the local record index
            - Schedules a save notification in the background
            - Increments save.* counters and records save.total latency
        """
        with time_block("save.total"):
            result = await self._save(capture, caller)

        if result.ok:
            counter("save.success")
        else:
            counter(f"save.failed.{result.error}")
        log_event(
            "save.finished",
            ok=result.ok,
            error=result.error,
            ai=result.ai.status if result.ai else None,
            content_id=result.record.url_hash if result.record else None,
        )
        return result

    async def _save(self, capture: CaptureRequest, caller: CallerContext | None) -> SaveResult:
        # validating
        if not capture.url.strip() or not capture.post_content.strip():
            return failure("missing_fields")

        canonical_url = canonicalize(capture.url.strip())
        url_hash = content_hash(canonical_url)
        self._advance(url_hash, SaveStage.VALIDATING)

        settings = await self.settings.load()
        if self.remote.requires_sheet_id and not settings.sheet_id:
            return failure("missing_sheet_id")

        async with self.session.single_flight(url_hash):
            return await self._save_locked(
                capture, caller, canonical_url, url_hash, settings.sheet_id, settings.ai_enabled
            )

    def _advance(self, url_hash: str, stage: SaveStage) -> None:
        self.session.record_stage(url_hash, stage)
        logger.debug("save %s -> %s", url_hash, stage.value)

    async def _save_locked(
        self,
        capture: CaptureRequest,
        caller: CallerContext | None,
        canonical_url: str,
        url_hash: str,
        sheet_id: str | None,
        ai_allowed: bool,
    ) -> SaveResult:
        self._advance(url_hash, SaveStage.CHECKING_DUPLICATE)
        existing = await self.records.find_by_hash(url_hash)
        if existing is not None and not capture.force:
            logger.info("Duplicate capture %s, not saving", url_hash)
            return failure("duplicate", duplicate=existing)

        highlight = capture.highlight[:CAPTURE_HIGHLIGHT_MAX] if capture.highlight else None

        self._advance(url_hash, SaveStage.ENRICHING)
        outcome = await self._enrich(capture, caller, canonical_url, highlight, ai_allowed)
        record = self._build_record(capture, canonical_url, url_hash, highlight, outcome)

        self._advance(url_hash, SaveStage.PERSISTING_REMOTE)
        try:
            receipt = await self.remote.persist(sheet_id, record, overwrite=capture.force)
        except HostedStoreError as e:
            if e.code == "duplicate" and isinstance(e.existing, SavedRecord):
                stored = await self._persist_local(e.existing)
                return failure("duplicate", duplicate=stored)
            logger.error("Remote persist failed for %s: %s", url_hash, e.code)
            return failure(e.code)
        except KeepliError as e:
            logger.error("Remote persist failed for %s: %s", url_hash, e.code)
            return failure(e.code)
        except Exception:
            logger.exception("Unexpected error persisting %s remotely", url_hash)
            return failure("save_failed")

        self._advance(url_hash, SaveStage.PERSISTING_LOCAL)
        stored = await self._persist_local(record)

        self._advance(url_hash, SaveStage.NOTIFYING)
        self.session.spawn(self._notify(stored, sheet_id))

        self._advance(url_hash, SaveStage.DONE)
        return self._success(stored, receipt, outcome, duplicate=existing is not None or receipt.updated)

    async def _enrich(
        self,
        capture: CaptureRequest,
        caller: CallerContext | None,
        canonical_url: str,
        highlight: str | None,
        ai_allowed: bool,
    ) -> AiOutcome:
        if capture.ai_result is not None:
            return AiOutcome(status=AiStatus.SUCCESS, result=normalize_result(capture.ai_result.model_dump()))
        if not (capture.ai_enabled and ai_allowed):
            return AiOutcome(status=AiStatus.DISABLED)
        request = capture.model_copy(update={"url": canonical_url, "highlight": highlight})
        try:
            return await self.enrichment.summarize(request, caller=caller)
        except Exception as e:
            logger.exception("AI enrichment raised for %s", canonical_url)
            return AiOutcome(status=AiStatus.ERROR, error=type(e).__name__)

    def _build_record(
        self,
        capture: CaptureRequest,
        canonical_url: str,
        url_hash: str,
        highlight: str | None,
        outcome: AiOutcome,
    ) -> SavedRecord:
        result = outcome.result if outcome.status == AiStatus.SUCCESS else None
        return SavedRecord(
            url=canonical_url,
            url_hash=url_hash,
            title=derive_title(capture.title, capture.post_content, canonical_url),
            post_content=capture.post_content,
            highlight=highlight,
            summary=(result.summary or None) if result else None,
            tags=result.tags if result else [],
            intent=result.intent if result else None,
            next_action=(result.next_action or None) if result else None,
            notes=capture.notes,
            status=capture.status,
            source=capture.source or derive_source(canonical_url),
            embed_url=derive_embed_url(canonical_url),
            author_name=capture.author_name,
            author_headline=capture.author_headline,
            author_company=capture.author_company,
            author_url=capture.author_url,
            saved_at=self._clock(),
        )

    async def _persist_local(self, record: SavedRecord) -> SavedRecord:
        try:
            return await self.records.upsert(record)
        except Exception:
            logger.exception("Local record index update failed for %s", record.url_hash)
            counter("save.local_persist_failed")
            return record

    async def _notify(self, record: SavedRecord, sheet_id: str | None) -> None:
        try:
            await self.notifier.notify_saved(record, sheet_id)
        except Exception as e:
            logger.warning("Save notification failed for %s: %s", record.url_hash, e)
            counter("notify.failed")

    @staticmethod
    def _success(record: SavedRecord, receipt: PersistReceipt, outcome: AiOutcome, duplicate: bool) -> SaveResult:
        return SaveResult(
            ok=True,
            record=record,
            row=receipt.row,
            duplicate=duplicate,
            ai=outcome,
            notices=build_notices(outcome),
        )
