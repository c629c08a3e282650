"""Rule administration and overage audit endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from quota_api.adapters.quota.limiter import QuotaLimiter
from quota_api.core.auth import verify_admin_api_key
from quota_api.core.quota import enforce_quota, get_quota_limiter
from quota_api.schemas.rules import LimiterRule, OverageResponse, RuleUpdateResponse

router = APIRouter(
    tags=["Rules"],
    dependencies=[Depends(verify_admin_api_key), Depends(enforce_quota)],
)


@router.put("/rules", response_model=RuleUpdateResponse)
def put_rule(
    rule: LimiterRule,
    limiter: Annotated[QuotaLimiter, Depends(get_quota_limiter)],
) -> RuleUpdateResponse:
    """Replace every granularity of a key in one atomic step.

    An empty ``granularities`` list clears the rule, after which the key is
    no longer limited.

    Raises:
        QuotaStoreError: 503 when the store fails; nothing is applied.
    """
    updated = limiter.store.batch_set_rule(rule)
    return RuleUpdateResponse(key=rule.key, updated=updated)


@router.get("/rules", response_model=list[LimiterRule])
def list_rules(
    limiter: Annotated[QuotaLimiter, Depends(get_quota_limiter)],
    pattern: Annotated[str, Query(min_length=1, description="Glob over rule keys.")] = "*",
) -> list[LimiterRule]:
    """List rules matching ``pattern`` with their current usage.

    Granularities are sorted ascending by ``max_amount``. A malformed store
    reply fails the whole request rather than returning partial results.
    """
    return limiter.store.query_rules(pattern)


@router.get("/overages", response_model=OverageResponse)
def get_overages(
    limiter: Annotated[QuotaLimiter, Depends(get_quota_limiter)],
    key: Annotated[str, Query(min_length=1, description="Composite quota key.")],
) -> OverageResponse:
    """Return rejected-attempt counts per granularity window for one key."""
    return OverageResponse(key=key, overages=limiter.store.query_overages(key))
