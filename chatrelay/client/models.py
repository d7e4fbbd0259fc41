from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Literal, Optional

Role = Literal["system", "user", "assistant"]

DEFAULT_TITLE = "New Chat"
TITLE_MAX_CHARS = 50
_ROLES = {"system", "user", "assistant"}


def now_ms() -> int:
	return int(time.time() * 1000)


def new_id() -> str:
	return uuid.uuid4().hex


def title_from_text(text: str) -> str:
	cleaned = text.strip()
	if len(cleaned) > TITLE_MAX_CHARS:
		return cleaned[:TITLE_MAX_CHARS] + "..."
	return cleaned


@dataclass(frozen=True)
class Message:
	role: Role
	content: str
	id: str = field(default_factory=new_id)
	created_at: int = field(default_factory=now_ms)
	streaming: bool = False

	def with_content(self, content: str, *, streaming: bool) -> "Message":
		return replace(self, content=content, streaming=streaming)

	def to_dict(self) -> Dict[str, Any]:
		payload: Dict[str, Any] = {
			"id": self.id,
			"role": self.role,
			"content": self.content,
			"timestamp": self.created_at,
		}
		if self.streaming:
			payload["isStreaming"] = True
		return payload

	def to_wire(self) -> Dict[str, Any]:
		return {"role": self.role, "content": self.content}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> Optional["Message"]:
		"""Rebuild a persisted message; None when the record cannot be a message."""
		role = data.get("role")
		if role not in _ROLES:
			return None
		content = data.get("content")
		created_at = data.get("timestamp", data.get("createdAt"))
		return cls(
			role=role,
			content=content if isinstance(content, str) else "",
			id=str(data.get("id") or new_id()),
			created_at=created_at if isinstance(created_at, int) else now_ms(),
			streaming=bool(data.get("isStreaming", False)),
		)


@dataclass
class Conversation:
	id: str = field(default_factory=new_id)
	title: str = DEFAULT_TITLE
	messages: List[Message] = field(default_factory=list)
	created_at: int = field(default_factory=now_ms)
	updated_at: int = field(default_factory=now_ms)

	def streaming_message(self) -> Optional[Message]:
		for message in self.messages:
			if message.streaming:
				return message
		return None

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"title": self.title,
			"messages": [message.to_dict() for message in self.messages],
			"createdAt": self.created_at,
			"updatedAt": self.updated_at,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> Optional["Conversation"]:
		conversation_id = data.get("id")
		if not isinstance(conversation_id, str) or not conversation_id:
			return None
		raw_messages = data.get("messages")
		messages: List[Message] = []
		if isinstance(raw_messages, list):
			for item in raw_messages:
				if not isinstance(item, dict):
					continue
				message = Message.from_dict(item)
				if message is not None:
					messages.append(message)
		created_at = data.get("createdAt")
		created_at = created_at if isinstance(created_at, int) else now_ms()
		updated_at = data.get("updatedAt")
		title = data.get("title")
		return cls(
			id=conversation_id,
			title=title if isinstance(title, str) and title else DEFAULT_TITLE,
			messages=messages,
			created_at=created_at,
			updated_at=updated_at if isinstance(updated_at, int) else created_at,
		)
