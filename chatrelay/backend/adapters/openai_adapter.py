from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import httpx
from pydantic import ValidationError

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
from chatrelay.backend.codec.wire_decoder import iter_event_fragments
from chatrelay.backend.config import VendorSettings, is_supported_model, vendor_settings_problems
from chatrelay.backend.errors import ConfigurationError, TransportError
from chatrelay.backend.schemas import (
	ChatCompletionRequest,
	ChatMessage,
	OutboundMessage,
	VendorErrorBody,
	VendorModelList,
)

logger = logging.getLogger(__name__)

_LABEL = "OpenAI API"

_STATUS_ERRORS: Dict[int, Tuple[str, str]] = {
	400: ("bad_request", "Bad Request - Invalid request format or parameters"),
	401: ("authentication", "Authentication Error - Invalid API key provided"),
	403: ("permission_denied", "Permission Denied - Country, region, or terms of service"),
	404: ("not_found", "Not Found - Requested resource (e.g., model) doesn't exist"),
	422: ("unprocessable", "Unprocessable Entity - Unable to process the request"),
	429: ("rate_limited", "Rate Limit Exceeded - Too many requests, please slow down"),
	500: ("upstream", "Internal Server Error - OpenAI server error"),
	502: ("upstream", "Bad Gateway - Invalid response from OpenAI's servers"),
	503: ("upstream", "Service Unavailable - OpenAI servers are temporarily overloaded"),
	504: ("upstream", "Gateway Timeout - Request timeout from OpenAI's servers"),
}


def status_error(status_code: int, detail: str) -> TransportError:
	"""Build the TransportError for a non-success vendor status."""
	known = _STATUS_ERRORS.get(status_code)
	if known is not None:
		category, label = known
		message = f"{label}: {detail}"
	elif 500 <= status_code < 600:
		category = "upstream"
		message = f"OpenAI Server Error ({status_code}): {detail}"
	else:
		category = "unexpected_status"
		message = f"OpenAI API Error ({status_code}): {detail}"
	return TransportError(message, upstream_status=status_code, category=category)


class OpenAITransport:
	"""Streams chat completions from an OpenAI-compatible ``/chat/completions`` endpoint."""

	name = constants.BACKEND_OPENAI

	def __init__(
		self,
		settings: VendorSettings,
		*,
		parse_problems: Optional[List[str]] = None,
		client: Optional[httpx.Client] = None,
	):
		problems = list(parse_problems or []) + vendor_settings_problems(settings)
		if problems:
			raise ConfigurationError(problems, prefix="OpenAI configuration errors")
		if not is_supported_model(settings.model):
			logger.warning(
				"Model %s may not be supported. Supported models: %s",
				settings.model,
				", ".join(constants.SUPPORTED_MODELS),
			)
		self.settings = settings
		self._owns_client = client is None
		self._client = build_client(client, settings.timeout_s)

	def _headers(self) -> Dict[str, str]:
		return {
			"Content-Type": "application/json",
			"Authorization": f"Bearer {self.settings.api_key}",
			"User-Agent": constants.USER_AGENT,
		}

	def format_messages(self, messages: Iterable[ChatMessage]) -> List[OutboundMessage]:
		outbound: List[OutboundMessage] = []
		if self.settings.system_prompt:
			outbound.append(OutboundMessage(role="system", content=self.settings.system_prompt))
		outbound.extend(filter_outbound_messages(messages))
		return outbound

	def build_request(self, messages: Iterable[ChatMessage], *, stream: bool = True) -> ChatCompletionRequest:
		return ChatCompletionRequest(
			model=self.settings.model,
			messages=self.format_messages(messages),
			stream=stream,
			max_tokens=self.settings.max_tokens,
			temperature=self.settings.temperature,
			top_p=self.settings.top_p,
			frequency_penalty=self.settings.frequency_penalty,
			presence_penalty=self.settings.presence_penalty,
		)

	def _raise_for_status(self, response: httpx.Response) -> None:
		if response.is_success:
			return
		body = read_error_body(response, VendorErrorBody)
		detail = body.error.message if body is not None and body.error.message else status_line(response)
		error = status_error(response.status_code, detail)
		logger.warning("OpenAI request failed: %s", error.message)
		raise error

	def send(self, messages: Iterable[ChatMessage]) -> Iterator[str]:
		body = self.build_request(messages, stream=True)
		logger.debug("OpenAI request with %d messages", len(body.messages))
		try:
			with self._client.stream(
				"POST",
				f"{self.settings.base_url}/chat/completions",
				headers=self._headers(),
				json=body.model_dump(),
			) as response:
				self._raise_for_status(response)
				yield from iter_event_fragments(iter_response_bytes(response, label=_LABEL))
		except httpx.HTTPError as exc:
			raise TransportError(
				f"{_LABEL} streaming error: {describe_request_error(exc)}"
			) from exc

	def list_models(self) -> List[str]:
		try:
			response = self._client.get(
				f"{self.settings.base_url}/models",
				headers=self._headers(),
			)
			response.raise_for_status()
			catalog = VendorModelList.model_validate_json(response.content)
		except (httpx.HTTPError, ValidationError) as exc:
			logger.error("Failed to fetch available models: %s", exc)
			return []
		return sorted(item.id for item in catalog.data if "gpt" in item.id)

	def test_connection(self) -> bool:
		probe = [ChatMessage(role="user", content="Hello", id="test")]
		try:
			response = self._client.post(
				f"{self.settings.base_url}/chat/completions",
				headers=self._headers(),
				json=self.build_request(probe, stream=False).model_dump(),
			)
		except httpx.HTTPError as exc:
			logger.error("OpenAI connection test failed: %s", exc)
			return False
		return response.is_success

	def close(self) -> None:
		close_client(self._client, self._owns_client)
