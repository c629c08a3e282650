from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from quota_api.adapters.quota.base import Outcome
from quota_api.adapters.quota.limiter import QuotaLimiter
from quota_api.core.auth import verify_api_key
from quota_api.core.quota import enforce_quota, get_quota_limiter
from quota_api.schemas.rules import IncrementRequest, IncrementResponse

router = APIRouter(
    tags=["Quota"],
    dependencies=[Depends(verify_api_key), Depends(enforce_quota)],
)

_STATUS_BY_OUTCOME = {
    Outcome.ACCEPTED: 200,
    Outcome.NO_RULE: 200,
    Outcome.REJECTED: 429,
    Outcome.ERROR: 503,
}


@router.post(
    "/quota/increment",
    response_model=IncrementResponse,
    responses={429: {"model": IncrementResponse}, 503: {"model": IncrementResponse}},
)
def increment_quota(
    body: IncrementRequest,
    limiter: Annotated[QuotaLimiter, Depends(get_quota_limiter)],
) -> JSONResponse:
    """Count one use of a quota key on behalf of a remote process.

    Lets processes that cannot embed the Python facade share the same quotas.

    Returns:
        JSONResponse: 200 when accepted (with or without a rule), 429 when the
            quota is exhausted, 503 when the store fails.
    """
    result = limiter.try_increment(body.keys, body.expire_seconds)
    payload = IncrementResponse(
        key=result.key,
        outcome=result.outcome.value,
        allowed=result.allowed,
        category=result.category,
        used=result.used,
        max_amount=result.max_amount,
    )
    return JSONResponse(
        status_code=_STATUS_BY_OUTCOME[result.outcome],
        content=payload.model_dump(mode="json"),
    )
