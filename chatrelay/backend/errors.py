from __future__ import annotations

from typing import List, Optional


class RelayError(Exception):
	def __init__(self, message: str, *, status_code: int = 500, code: str = "relay_error"):
		super().__init__(message)
		self.status_code = status_code
		self.code = code
		self.message = message


class ConfigurationError(RelayError):
	"""Backend configuration is missing or out of range. Raised at adapter construction."""

	def __init__(self, problems: List[str], *, prefix: str = "Configuration errors"):
		self.problems = list(problems)
		message = f"{prefix}:\n" + "\n".join(self.problems)
		super().__init__(message, status_code=500, code="configuration_error")


class TransportError(RelayError):
	"""A backend call failed. ``upstream_status`` is None for network failures."""

	def __init__(
		self,
		message: str,
		*,
		upstream_status: Optional[int] = None,
		category: str = "transport",
	):
		super().__init__(message, status_code=502, code="transport_error")
		self.upstream_status = upstream_status
		self.category = category


class DecodeError(RelayError):
	def __init__(self, message: str, *, segment: str = ""):
		super().__init__(message, status_code=502, code="decode_error")
		self.segment = segment


class MessagesValidationError(RelayError):
	def __init__(self, message: str = "Messages array is required"):
		super().__init__(message, status_code=400, code="validation_error")
