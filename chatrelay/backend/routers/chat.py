from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse, StreamingResponse

from chatrelay.backend import constants
from chatrelay.backend.errors import ConfigurationError, MessagesValidationError
from chatrelay.backend.response import success_response
from chatrelay.backend.schemas import ApiEnvelope
from chatrelay.backend.services import relay_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("")
def chat(payload: Any = Body(default=None)):
	try:
		messages = relay_service.parse_messages(payload)
	except MessagesValidationError as exc:
		return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

	try:
		stream = relay_service.stream_chat(messages)
	except ConfigurationError as exc:
		logger.error("Chat backend misconfigured: %s", "; ".join(exc.problems))
		return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

	logger.info(
		"Relaying %d messages (~%d tokens)",
		len(messages),
		relay_service.estimate_tokens(messages),
	)
	return StreamingResponse(
		stream,
		media_type="text/event-stream",
		headers=constants.SSE_HEADERS,
	)


@router.get("/models", response_model=ApiEnvelope)
def models(request: Request):
	return success_response(request=request, data=relay_service.list_models())
