from __future__ import annotations

import logging
import math
import os
from threading import Lock
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from chatrelay.backend import config, constants
from chatrelay.backend.adapters.base import Transport
from chatrelay.backend.adapters.n8n_adapter import N8nTransport
from chatrelay.backend.adapters.openai_adapter import OpenAITransport
from chatrelay.backend.codec.relay_encoder import encode_relay_stream
from chatrelay.backend.errors import ConfigurationError, MessagesValidationError
from chatrelay.backend.schemas import ChatMessage

logger = logging.getLogger(__name__)

_TRANSPORT: Optional[Transport] = None
_LOCK = Lock()


def build_transport(kind: Optional[str] = None) -> Transport:
	kind = kind or config.backend_kind()
	if kind == constants.BACKEND_OPENAI:
		settings, problems = config.load_vendor_settings()
		return OpenAITransport(settings, parse_problems=problems)
	return N8nTransport(config.load_webhook_settings())


def get_transport() -> Transport:
	"""Return the process-wide transport, building and validating it on first use."""
	global _TRANSPORT
	with _LOCK:
		if _TRANSPORT is None:
			_TRANSPORT = build_transport()
			logger.info("Chat backend ready: %s", _TRANSPORT.name)
		return _TRANSPORT


def set_transport(transport: Optional[Transport]) -> None:
	global _TRANSPORT
	with _LOCK:
		previous = _TRANSPORT
		_TRANSPORT = transport
	if previous is not None and previous is not transport:
		previous.close()


def reset_transport_cache() -> None:
	set_transport(None)


def parse_messages(payload: Any) -> List[ChatMessage]:
	if not isinstance(payload, dict):
		raise MessagesValidationError()
	raw_messages = payload.get("messages")
	if not isinstance(raw_messages, list):
		raise MessagesValidationError()
	messages: List[ChatMessage] = []
	for index, item in enumerate(raw_messages):
		try:
			messages.append(ChatMessage.model_validate(item))
		except ValidationError as exc:
			raise MessagesValidationError(f"Invalid message at index {index}") from exc
	return messages


def stream_chat(messages: List[ChatMessage]) -> Iterator[str]:
	"""Resolve the transport eagerly, then return the lazily encoded relay stream.

	Configuration problems raise here, before any byte is written. Transport
	failures happen inside the stream and come out as a single error record.
	"""
	transport = get_transport()
	return encode_relay_stream(transport.send(messages))


def list_models() -> Dict[str, object]:
	transport = get_transport()
	models = transport.list_models()
	default_model = None
	if isinstance(transport, OpenAITransport):
		default_model = transport.settings.model
	return {
		"backend": transport.name,
		"models": models,
		"default_model": default_model,
	}


def backend_status(*, probe: bool = False) -> Dict[str, object]:
	"""Describe the configured backend without exposing any credential material."""
	try:
		kind = config.backend_kind()
	except ConfigurationError as exc:
		return {
			"backend": constants.DEFAULT_BACKEND,
			"ready": False,
			"model": None,
			"has_api_key": False,
			"warnings": exc.problems,
		}
	has_api_key = bool(os.getenv("OPENAI_API_KEY", "").strip())
	model: Optional[str] = None
	problems: List[str] = []
	notes: List[str] = []
	if kind == constants.BACKEND_OPENAI:
		settings, parse_problems = config.load_vendor_settings()
		model = settings.model
		problems.extend(parse_problems)
		problems.extend(config.vendor_settings_problems(settings))
		if settings.model and not config.is_supported_model(settings.model):
			notes.append(f"Model {settings.model} may not be supported.")
	else:
		try:
			config.load_webhook_settings()
		except ConfigurationError as exc:
			problems.extend(exc.problems)
	if not problems and probe:
		try:
			transport = get_transport()
		except ConfigurationError as exc:
			problems.extend(exc.problems)
		else:
			if isinstance(transport, OpenAITransport) and not transport.test_connection():
				problems.append("OpenAI connection test failed.")
	return {
		"backend": kind,
		"ready": not problems,
		"model": model,
		"has_api_key": has_api_key,
		"warnings": problems + notes,
	}


def estimate_tokens(messages: List[ChatMessage]) -> int:
	# roughly four characters per token for English text
	text = " ".join(message.content for message in messages)
	return math.ceil(len(text) / 4)
