"""Today's AI quota for the calling identity (read-only, consumes nothing)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from keepli.api.dependencies import get_caller, get_kv_store, get_quota_ledger
from keepli.api.models import UsageResponse
from keepli.config import ENV, daily_limit_for
from keepli.infrastructure.identity import CallerContext, resolve_identity
from keepli.infrastructure.kv_store import KeyValueStore
from keepli.infrastructure.quota import QuotaLedger

router = APIRouter(prefix="/v1", tags=["usage"])


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    store: KeyValueStore = Depends(get_kv_store),
    ledger: QuotaLedger = Depends(get_quota_ledger),
    caller: CallerContext = Depends(get_caller),
) -> UsageResponse:
    identity = await resolve_identity(store, caller)
    check = await ledger.peek(identity.scope, identity.identity, daily_limit_for(ENV, identity.licensed))
    return UsageResponse(
        scope=identity.scope,
        licensed=identity.licensed,
        limit=check.limit,
        count=check.count,
        remaining=check.remaining,
    )
