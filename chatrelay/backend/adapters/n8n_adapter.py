from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional

import httpx

from chatrelay.backend import constants
from chatrelay.backend.adapters.base import (
	build_client,
	close_client,
	describe_request_error,
	filter_outbound_messages,
	iter_response_bytes,
	read_error_body,
	status_line,
)
from chatrelay.backend.codec.wire_decoder import iter_raw_fragments
from chatrelay.backend.config import WebhookSettings
from chatrelay.backend.errors import ConfigurationError, TransportError
from chatrelay.backend.schemas import ChatMessage, WebhookErrorBody, WebhookRequest

logger = logging.getLogger(__name__)

_LABEL = "n8n webhook"


class N8nTransport:
	"""Posts the conversation to an n8n webhook and relays its body verbatim."""

	name = constants.BACKEND_N8N

	def __init__(self, settings: WebhookSettings, *, client: Optional[httpx.Client] = None):
		if not settings.webhook_url:
			raise ConfigurationError(["N8N_WEBHOOK_URL is required"], prefix="n8n configuration errors")
		self.settings = settings
		self._owns_client = client is None
		self._client = build_client(client, settings.timeout_s)

	def build_request(self, messages: Iterable[ChatMessage]) -> WebhookRequest:
		return WebhookRequest(messages=filter_outbound_messages(messages))

	def _raise_for_status(self, response: httpx.Response) -> None:
		if response.is_success:
			return
		body = read_error_body(response, WebhookErrorBody)
		detail = body.error if body is not None and body.error else status_line(response)
		logger.warning("n8n webhook failed: %s", detail)
		raise TransportError(
			f"{_LABEL} error: {detail}",
			upstream_status=response.status_code,
			category="webhook_status",
		)

	def send(self, messages: Iterable[ChatMessage]) -> Iterator[str]:
		body = self.build_request(messages)
		logger.debug("Sending %d messages to n8n webhook", len(body.messages))
		try:
			with self._client.stream(
				"POST",
				self.settings.webhook_url,
				headers={"Content-Type": "application/json"},
				json=body.model_dump(),
			) as response:
				self._raise_for_status(response)
				yield from iter_raw_fragments(iter_response_bytes(response, label=_LABEL))
		except httpx.HTTPError as exc:
			raise TransportError(
				f"{_LABEL} streaming error: {describe_request_error(exc)}"
			) from exc

	def list_models(self) -> List[str]:
		return []

	def close(self) -> None:
		close_client(self._client, self._owns_client)
