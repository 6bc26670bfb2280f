"""User-facing notices derived from the AI outcome of a successful save."""

from __future__ import annotations

from keepli.storage.models import AiOutcome, AiStatus, NoticeLevel, SaveNotice

QUOTA_MESSAGE = "AI quota reached. Saved without a summary."
QUOTA_MESSAGE_WITH_LIMIT = "AI quota reached (limit {limit}). Saved without a summary."
TIMEOUT_MESSAGE = "AI summary timed out. Saved without a summary."
ERROR_MESSAGE = "AI summary failed. Saved without a summary."


def build_notices(outcome: AiOutcome) -> list[SaveNotice]:
    """One warning for quota/timeout/error outcomes, nothing otherwise."""
    if outcome.status == AiStatus.QUOTA:
        if outcome.quota is not None:
            message = QUOTA_MESSAGE_WITH_LIMIT.format(limit=outcome.quota.limit)
        else:
            message = QUOTA_MESSAGE
        return [SaveNotice(level=NoticeLevel.WARNING, message=message)]
    if outcome.status == AiStatus.TIMEOUT:
        return [SaveNotice(level=NoticeLevel.WARNING, message=TIMEOUT_MESSAGE)]
    if outcome.status == AiStatus.ERROR:
        return [SaveNotice(level=NoticeLevel.WARNING, message=ERROR_MESSAGE)]
    return []
