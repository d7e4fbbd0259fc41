from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from chatrelay.backend.schemas import ApiEnvelope, ApiError


def now_iso() -> str:
	return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _envelope(request: Optional[Request], **fields: Any) -> Dict[str, Any]:
	request_id = getattr(request.state, "request_id", None) if request is not None else None
	envelope = ApiEnvelope(generated_at=now_iso(), request_id=request_id, **fields)
	payload = envelope.model_dump()
	return {key: value for key, value in payload.items() if value is not None}


def success_response(*, request: Optional[Request] = None, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
	return _envelope(request, ok=True, data=data)


def error_response(
	*,
	code: str,
	message: str,
	request: Optional[Request] = None,
	evidence: Iterable[str] = (),
) -> Dict[str, Any]:
	error = ApiError(code=code, message=message, evidence=[str(item) for item in evidence])
	return _envelope(request, ok=False, error=error)


def error_json(status_code: int, **kwargs: Any) -> JSONResponse:
	return JSONResponse(status_code=status_code, content=error_response(**kwargs))
