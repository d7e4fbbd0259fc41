from __future__ import annotations

from fastapi import APIRouter, Request

from chatrelay.backend.response import success_response
from chatrelay.backend.schemas import ApiEnvelope, BackendStatusData
from chatrelay.backend.services import relay_service


router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("/summary", response_model=ApiEnvelope)
def get_summary(request: Request, probe: bool = False):
	status = BackendStatusData.model_validate(relay_service.backend_status(probe=probe))
	return success_response(
		request=request,
		data=status.model_dump(),
	)
