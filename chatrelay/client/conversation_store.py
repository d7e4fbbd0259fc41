from __future__ import annotations

import json
import logging
import sqlite3
from threading import Lock
from typing import List, Optional

from chatrelay.client.models import Conversation
from chatrelay.client.storage import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "ai-chatbot-conversations"


class ConversationStore:
	"""All conversations, newest first, serialized under a single storage key.

	Every mutation reads the collection, applies the change and writes the
	whole collection back. One writer per process is assumed; the lock only
	serializes threads of that process.
	"""

	def __init__(self, storage: KeyValueStorage, *, key: str = STORAGE_KEY):
		self.storage = storage
		self.key = key
		self._lock = Lock()

	def _read_locked(self) -> List[Conversation]:
		try:
			raw = self.storage.get(self.key)
		except (OSError, sqlite3.Error) as exc:
			logger.error("Error reading conversations from storage: %s", exc)
			return []
		if not raw:
			return []
		try:
			data = json.loads(raw)
		except json.JSONDecodeError as exc:
			logger.error("Stored conversations are not valid JSON, starting empty: %s", exc)
			return []
		if not isinstance(data, list):
			logger.error("Stored conversations are not a list, starting empty")
			return []
		conversations: List[Conversation] = []
		for item in data:
			conversation = Conversation.from_dict(item) if isinstance(item, dict) else None
			if conversation is None:
				logger.warning("Dropping unreadable conversation record")
				continue
			conversations.append(conversation)
		return conversations

	def _write_locked(self, conversations: List[Conversation]) -> None:
		payload = json.dumps([conversation.to_dict() for conversation in conversations], ensure_ascii=False)
		try:
			self.storage.set(self.key, payload)
		except (OSError, sqlite3.Error) as exc:
			logger.error("Error saving conversations to storage: %s", exc)

	def list_all(self) -> List[Conversation]:
		with self._lock:
			return self._read_locked()

	def get(self, conversation_id: str) -> Optional[Conversation]:
		with self._lock:
			for conversation in self._read_locked():
				if conversation.id == conversation_id:
					return conversation
		return None

	def insert(self, conversation: Conversation) -> None:
		with self._lock:
			conversations = self._read_locked()
			conversations.insert(0, conversation)
			self._write_locked(conversations)

	def replace(self, conversation: Conversation) -> bool:
		"""Overwrite the stored copy with the same id. Unknown ids are ignored."""
		with self._lock:
			conversations = self._read_locked()
			for index, existing in enumerate(conversations):
				if existing.id == conversation.id:
					conversations[index] = conversation
					self._write_locked(conversations)
					return True
		return False

	def delete(self, conversation_id: str) -> None:
		with self._lock:
			conversations = self._read_locked()
			remaining = [item for item in conversations if item.id != conversation_id]
			if len(remaining) != len(conversations):
				self._write_locked(remaining)

	def clear(self) -> None:
		with self._lock:
			try:
				self.storage.delete(self.key)
			except (OSError, sqlite3.Error) as exc:
				logger.error("Error clearing conversations: %s", exc)
