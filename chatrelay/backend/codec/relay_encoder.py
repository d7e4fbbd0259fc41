from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Iterator

from chatrelay.backend import constants
from chatrelay.backend.errors import RelayError

logger = logging.getLogger(__name__)


def encode_record(data: Dict[str, Any]) -> str:
	payload = json.dumps(data, ensure_ascii=False)
	return f"{constants.SSE_DATA_PREFIX}{payload}\n\n"


def content_record(text: str) -> str:
	return encode_record({"content": text, "done": False})


def done_record() -> str:
	return encode_record({"content": "", "done": True})


def error_record(message: str) -> str:
	return encode_record({"error": message, "done": True})


def error_message(exc: BaseException) -> str:
	if isinstance(exc, RelayError):
		return exc.message
	return str(exc) or "Unknown error"


def encode_relay_stream(fragments: Iterable[str]) -> Iterator[str]:
	"""Frame fragments as relay events, ending with exactly one done or error record."""
	try:
		for fragment in fragments:
			if not fragment:
				continue
			yield content_record(fragment)
	except Exception as exc:
		logger.warning("Relay stream failed: %s", error_message(exc))
		yield error_record(error_message(exc))
		return
	finally:
		close = getattr(fragments, "close", None)
		if callable(close):
			close()
	yield done_record()
