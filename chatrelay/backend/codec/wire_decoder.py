"""Decoders that turn a backend's streamed body into text fragments.

Two framings are supported:

- delimited events (``data: {...}`` lines ending with ``data: [DONE]``), as sent
  by the OpenAI chat completions API when ``stream`` is set;
- raw passthrough, where every chunk read from the body is already text.

Both are plain generators over an iterable of byte chunks. Closing the
generator closes the chunk source, which releases the HTTP response.
"""

from __future__ import annotations

import codecs
import logging
from typing import Iterable, Iterator, Optional

from pydantic import ValidationError

from chatrelay.backend import constants
from chatrelay.backend.errors import DecodeError
from chatrelay.backend.schemas import ChatCompletionChunk

logger = logging.getLogger(__name__)


class _EndOfStream:
	pass


_END = _EndOfStream()


def _utf8_decoder():
	return codecs.getincrementaldecoder("utf-8")(errors="replace")


def _close_source(source: Iterable[bytes]) -> None:
	close = getattr(source, "close", None)
	if callable(close):
		close()


def parse_event_line(line: str) -> Optional[str] | _EndOfStream:
	"""Return the text delta carried by one event line.

	``None`` means the line carries nothing (blank, not a data line, or an
	empty delta). Raises DecodeError when the payload is not a valid chunk.
	"""
	trimmed = line.strip()
	if not trimmed or not trimmed.startswith(constants.SSE_DATA_PREFIX):
		return None
	payload = trimmed[len(constants.SSE_DATA_PREFIX) :].strip()
	if payload == constants.SSE_DONE_TOKEN:
		return _END
	try:
		chunk = ChatCompletionChunk.model_validate_json(payload)
	except ValidationError as exc:
		raise DecodeError("Failed to parse SSE chunk", segment=payload) from exc
	return chunk.delta_text() or None


def iter_event_fragments(chunks: Iterable[bytes]) -> Iterator[str]:
	decoder = _utf8_decoder()
	buffer = ""
	try:
		for chunk in chunks:
			buffer += decoder.decode(chunk)
			lines = buffer.split("\n")
			# the last piece may be an incomplete line
			buffer = lines.pop()
			for line in lines:
				try:
					result = parse_event_line(line)
				except DecodeError as exc:
					logger.debug("%s: %r", exc.message, exc.segment)
					continue
				if result is _END:
					return
				if result:
					yield result
		buffer += decoder.decode(b"", final=True)
		if buffer.strip():
			try:
				result = parse_event_line(buffer)
			except DecodeError as exc:
				logger.debug("%s: %r", exc.message, exc.segment)
				return
			if isinstance(result, str) and result:
				yield result
	finally:
		_close_source(chunks)


def iter_raw_fragments(chunks: Iterable[bytes]) -> Iterator[str]:
	decoder = _utf8_decoder()
	try:
		for chunk in chunks:
			text = decoder.decode(chunk)
			if text:
				yield text
		tail = decoder.decode(b"", final=True)
		if tail:
			yield tail
	finally:
		_close_source(chunks)
