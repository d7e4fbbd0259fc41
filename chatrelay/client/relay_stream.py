from __future__ import annotations

import codecs
import logging
from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

_DATA_PREFIX = "data: "


class RelayRecord(BaseModel):
	"""One event of the relay stream."""

	model_config = ConfigDict(extra="ignore")

	content: Optional[str] = None
	error: Optional[str] = None
	done: bool = False


def parse_relay_line(line: str) -> Optional[RelayRecord]:
	trimmed = line.strip()
	if not trimmed.startswith(_DATA_PREFIX):
		return None
	payload = trimmed[len(_DATA_PREFIX) :]
	try:
		return RelayRecord.model_validate_json(payload)
	except ValidationError:
		logger.warning("Failed to parse relay record: %r", payload)
		return None


def iter_relay_records(chunks: Iterable[bytes]) -> Iterator[RelayRecord]:
	"""Parse relay records out of a byte stream that may split records anywhere."""
	decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
	buffer = ""
	for chunk in chunks:
		buffer += decoder.decode(chunk)
		lines = buffer.split("\n")
		buffer = lines.pop()
		for line in lines:
			record = parse_relay_line(line)
			if record is not None:
				yield record
	buffer += decoder.decode(b"", final=True)
	record = parse_relay_line(buffer)
	if record is not None:
		yield record
