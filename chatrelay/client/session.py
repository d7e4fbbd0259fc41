"""Client-side chat session: owns the in-memory conversations and drives one turn at a time.

A turn moves ``idle -> assistant-streaming -> idle`` (or ``-> error``). While a
turn is streaming, the assistant placeholder message is rewritten after every
relay record and the conversation is written back to the store each time.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

import httpx

from chatrelay.client.conversation_store import ConversationStore
from chatrelay.client.models import Conversation, Message, now_ms, title_from_text
from chatrelay.client.relay_stream import iter_relay_records

logger = logging.getLogger(__name__)

MAX_INPUT_CHARS = 2000
DEFAULT_ENDPOINT = "/api/chat"

UpdateCallback = Callable[[Conversation, Message], None]


class TurnPhase(str, Enum):
	IDLE = "idle"
	STREAMING = "assistant-streaming"
	ERROR = "error"


class _TurnFailed(Exception):
	def __init__(self, message: str):
		super().__init__(message)
		self.message = message


class ChatSessionController:
	def __init__(
		self,
		store: ConversationStore,
		http_client: httpx.Client,
		*,
		endpoint: str = DEFAULT_ENDPOINT,
		on_update: Optional[UpdateCallback] = None,
	):
		self.store = store
		self.http_client = http_client
		self.endpoint = endpoint
		self.on_update = on_update
		self.conversations: List[Conversation] = []
		self.current_conversation_id: Optional[str] = None
		self.phase = TurnPhase.IDLE
		self.error: Optional[str] = None

	@property
	def is_streaming(self) -> bool:
		return self.phase is TurnPhase.STREAMING

	@property
	def current_conversation(self) -> Optional[Conversation]:
		if self.current_conversation_id is None:
			return None
		return self._find(self.current_conversation_id)

	def load(self) -> None:
		"""Read conversations from the store and select the newest one.

		Messages left marked as streaming by an interrupted process are closed
		with whatever content they had.
		"""
		self.conversations = self.store.list_all()
		for conversation in self.conversations:
			stale = [message for message in conversation.messages if message.streaming]
			if not stale:
				continue
			conversation.messages = [
				message.with_content(message.content, streaming=False) if message.streaming else message
				for message in conversation.messages
			]
			self.store.replace(conversation)
		self.current_conversation_id = self.conversations[0].id if self.conversations else None
		self.phase = TurnPhase.IDLE
		self.error = None

	def create_conversation(self, title: Optional[str] = None) -> str:
		return self._start_conversation(title).id

	def select_conversation(self, conversation_id: str) -> bool:
		if self._find(conversation_id) is None:
			return False
		self.current_conversation_id = conversation_id
		return True

	def remove_conversation(self, conversation_id: str) -> None:
		remaining = [item for item in self.conversations if item.id != conversation_id]
		if conversation_id == self.current_conversation_id:
			self.current_conversation_id = remaining[0].id if remaining else None
		self.conversations = remaining
		self.store.delete(conversation_id)

	def send_message(self, content: str) -> Optional[Message]:
		"""Run one full turn. Returns the final assistant message, or None if rejected."""
		text = content.strip()
		if not text:
			logger.info("Ignoring empty message")
			return None
		if len(text) > MAX_INPUT_CHARS:
			logger.info("Ignoring message over %d characters", MAX_INPUT_CHARS)
			return None
		if self.is_streaming:
			logger.info("Ignoring message while a response is streaming")
			return None

		conversation = self.current_conversation or self._start_conversation()

		history = [message for message in conversation.messages if not message.streaming]
		user_message = Message(role="user", content=text)
		self._append(conversation, user_message)
		if not history:
			conversation.title = title_from_text(text)
			self._persist(conversation)

		placeholder = Message(role="assistant", content="", streaming=True)
		self.phase = TurnPhase.STREAMING
		self.error = None

		outbound = [message.to_wire() for message in history + [user_message]]
		try:
			self._append(conversation, placeholder)
			final_text = self._consume(conversation, placeholder.id, outbound)
		except _TurnFailed as exc:
			return self._fail(conversation, placeholder.id, exc.message)
		except Exception as exc:
			logger.exception("Chat turn aborted")
			return self._fail(conversation, placeholder.id, str(exc) or exc.__class__.__name__)
		except BaseException:
			# interrupted: keep the partial reply, end streaming
			self.phase = TurnPhase.IDLE
			self._finalize(conversation, placeholder.id)
			raise

		self.phase = TurnPhase.IDLE
		return self._update(conversation, placeholder.id, final_text, streaming=False)

	def _consume(self, conversation: Conversation, message_id: str, outbound: List[Dict[str, str]]) -> str:
		accumulated = ""
		try:
			with self.http_client.stream("POST", self.endpoint, json={"messages": outbound}) as response:
				if not response.is_success:
					raise _TurnFailed(f"HTTP {response.status_code}: {response.reason_phrase}")
				for record in iter_relay_records(response.iter_bytes()):
					if record.error is not None:
						raise _TurnFailed(record.error)
					if record.done:
						break
					if record.content:
						accumulated += record.content
						self._update(conversation, message_id, accumulated, streaming=True)
		except (httpx.HTTPError, httpx.StreamError) as exc:
			raise _TurnFailed(str(exc) or "An error occurred") from exc
		return accumulated

	def _start_conversation(self, title: Optional[str] = None) -> Conversation:
		conversation = Conversation()
		if title:
			conversation.title = title
		self.conversations.insert(0, conversation)
		self.current_conversation_id = conversation.id
		self.store.insert(conversation)
		return conversation

	def _fail(self, conversation: Conversation, message_id: str, reason: str) -> Message:
		logger.warning("Chat turn failed: %s", reason)
		self.error = reason
		self.phase = TurnPhase.ERROR
		return self._update(conversation, message_id, f"Error: {reason}", streaming=False)

	def _finalize(self, conversation: Conversation, message_id: str) -> None:
		conversation.messages = [
			message.with_content(message.content, streaming=False) if message.id == message_id else message
			for message in conversation.messages
		]
		self._persist(conversation)

	def _find(self, conversation_id: str) -> Optional[Conversation]:
		for conversation in self.conversations:
			if conversation.id == conversation_id:
				return conversation
		return None

	def _persist(self, conversation: Conversation) -> None:
		conversation.updated_at = now_ms()
		self.store.replace(conversation)

	def _append(self, conversation: Conversation, message: Message) -> None:
		conversation.messages.append(message)
		self._persist(conversation)
		if self.on_update is not None:
			self.on_update(conversation, message)

	def _update(self, conversation: Conversation, message_id: str, content: str, *, streaming: bool) -> Message:
		for index, message in enumerate(conversation.messages):
			if message.id == message_id:
				updated = message.with_content(content, streaming=streaming)
				conversation.messages[index] = updated
				self._persist(conversation)
				if self.on_update is not None:
					self.on_update(conversation, updated)
				return updated
		raise KeyError(message_id)
