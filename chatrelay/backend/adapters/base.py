from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional, Protocol, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from chatrelay.backend.errors import TransportError
from chatrelay.backend.schemas import ChatMessage, OutboundMessage

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class Transport(Protocol):
	name: str

	def send(self, messages: Iterable[ChatMessage]) -> Iterator[str]:
		"""Yield response fragments. Raises TransportError when the backend call fails."""
		...

	def list_models(self) -> List[str]:
		...

	def close(self) -> None:
		...


def filter_outbound_messages(messages: Iterable[ChatMessage]) -> List[OutboundMessage]:
	"""Keep user/assistant turns that have content and are not still being streamed."""
	outbound: List[OutboundMessage] = []
	for message in messages:
		if message.role not in {"user", "assistant"}:
			continue
		if not message.content.strip():
			continue
		if message.is_streaming:
			continue
		outbound.append(OutboundMessage(role=message.role, content=message.content))
	return outbound


def status_line(response: httpx.Response) -> str:
	return f"HTTP {response.status_code}: {response.reason_phrase}"


def read_error_body(response: httpx.Response, model: Type[_ModelT]) -> Optional[_ModelT]:
	"""Parse an error body into ``model``; None when the body is missing or malformed."""
	try:
		response.read()
		return model.model_validate_json(response.content)
	except (httpx.HTTPError, ValidationError, ValueError) as exc:
		logger.debug("Unparseable error body (%s): %s", status_line(response), exc)
		return None


def iter_response_bytes(response: httpx.Response, *, label: str) -> Iterator[bytes]:
	"""Yield body bytes, turning mid-stream network failures into TransportError."""
	try:
		for chunk in response.iter_bytes():
			if chunk:
				yield chunk
	except httpx.HTTPError as exc:
		raise TransportError(f"{label} streaming error: {exc}") from exc
	finally:
		response.close()


def build_client(client: Optional[httpx.Client], timeout_s: float) -> httpx.Client:
	if client is not None:
		return client
	return httpx.Client(timeout=httpx.Timeout(timeout_s, connect=min(timeout_s, 10.0)))


def describe_request_error(exc: httpx.HTTPError) -> str:
	text = str(exc).strip()
	return text or exc.__class__.__name__


def close_client(client: httpx.Client, owned: bool) -> None:
	if owned:
		client.close()
