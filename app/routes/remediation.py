"""
Remediation endpoints - mark cleaned / mark resolved, single or location-wide.

Every response body is the operation outcome, so "busy" and "failed" are
never reported as "done":
- success → 200
- busy → 409 (retry later; nothing was written)
- validation_failure → 422 (nothing was written)
- mutation_failure → 502 (store rejected a write; no rollback)
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.models.outcome import ErrorKind, OutcomeStatus, RemediationOutcome
from app.models.report import CleanupRequest, StatusUpdateRequest
from app.models.user import Principal
from app.services.pulse_runtime import get_runtime
from app.utils.security import get_current_principal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Remediation"])


def outcome_response(outcome: RemediationOutcome, success_code: int = status.HTTP_200_OK) -> JSONResponse:
    if outcome.status == OutcomeStatus.SUCCESS:
        code = success_code
    elif outcome.status == OutcomeStatus.BUSY:
        code = status.HTTP_409_CONFLICT
    elif outcome.error_kind == ErrorKind.VALIDATION_FAILURE:
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        code = status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=code, content=outcome.model_dump(mode="json"))


@router.patch("/reports/{report_id}/status")
async def change_status(
    report_id: str,
    request: StatusUpdateRequest,
    principal: Principal = Depends(get_current_principal),
):
    """
    Change one report's status (new → cleaned, new → resolved).

    Re-sending the current status succeeds without error.
    """
    logger.info(f"{principal.uid} requested {report_id} → {request.status}")
    outcome = await get_runtime().coordinator.mark_status(report_id, request.status)
    return outcome_response(outcome)


@router.post("/locations/cleanup")
async def cleanup_location(
    request: CleanupRequest,
    principal: Principal = Depends(get_current_principal),
):
    """
    Mark every report at a location as cleaned, one report at a time.

    A partial failure leaves already-cleaned reports cleaned; the outcome
    lists succeeded_ids and failed_ids.
    """
    logger.info(f"{principal.uid} requested cleanup of '{request.location}'")
    outcome = await get_runtime().coordinator.cleanup_location(request.location)
    return outcome_response(outcome)
