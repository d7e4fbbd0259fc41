import json
from unittest import TestCase

import httpx
from fastapi.testclient import TestClient

from chatrelay.backend.adapters.openai_adapter import OpenAITransport
from chatrelay.backend.config import VendorSettings
from chatrelay.backend.main import app
from chatrelay.backend.services import relay_service
from chatrelay.client.conversation_store import ConversationStore
from chatrelay.client.models import Conversation, Message
from chatrelay.client.relay_stream import iter_relay_records
from chatrelay.client.session import ChatSessionController, TurnPhase
from chatrelay.client.storage import MemoryStorage


def _sse(*contents: str) -> bytes:
	lines = [
		"data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n\n"
		for content in contents
	]
	return ("".join(lines) + "data: [DONE]\n\n").encode("utf-8")


class _ScriptedVendor:
	"""Answers queued responses in order and records every request body."""

	def __init__(self):
		self.responses = []
		self.bodies = []

	def __call__(self, request: httpx.Request) -> httpx.Response:
		self.bodies.append(json.loads(request.content))
		return self.responses.pop(0)


class _Interrupted(BaseException):
	pass


class ChatSessionTests(TestCase):
	def setUp(self) -> None:
		self.vendor = _ScriptedVendor()
		relay_service.set_transport(
			OpenAITransport(
				VendorSettings(api_key="sk-test"),
				client=httpx.Client(transport=httpx.MockTransport(self.vendor)),
			)
		)
		self.addCleanup(relay_service.reset_transport_cache)
		self.updates = []
		self.hook = None
		self.store = ConversationStore(MemoryStorage())
		self.controller = ChatSessionController(
			self.store,
			TestClient(app),
			on_update=self._record_update,
		)
		self.controller.load()

	def _record_update(self, conversation, message) -> None:
		self.updates.append(message)
		if self.hook is not None:
			self.hook(message)

	def test_first_message_creates_titled_conversation_and_streams_reply(self) -> None:
		self.vendor.responses.append(httpx.Response(200, content=_sse("Hi", "! How can I help?")))

		final = self.controller.send_message("Hello")

		self.assertEqual(final.content, "Hi! How can I help?")
		self.assertFalse(final.streaming)
		self.assertIs(self.controller.phase, TurnPhase.IDLE)
		conversations = self.store.list_all()
		self.assertEqual(len(conversations), 1)
		conversation = conversations[0]
		self.assertEqual(conversation.title, "Hello")
		self.assertEqual(
			[(m.role, m.content, m.streaming) for m in conversation.messages],
			[("user", "Hello", False), ("assistant", "Hi! How can I help?", False)],
		)

		assistant_states = [(m.content, m.streaming) for m in self.updates if m.role == "assistant"]
		self.assertEqual(assistant_states[0], ("", True))
		self.assertIn(("Hi", True), assistant_states)
		self.assertEqual(assistant_states[-1], ("Hi! How can I help?", False))

	def test_history_is_sent_without_placeholder(self) -> None:
		self.vendor.responses.append(httpx.Response(200, content=_sse("Hi")))
		self.vendor.responses.append(httpx.Response(200, content=_sse("Sure")))

		self.controller.send_message("Hello")
		self.controller.send_message("Tell me a joke")

		sent = [(item["role"], item["content"]) for item in self.vendor.bodies[1]["messages"]]
		self.assertEqual(
			sent[1:],
			[("user", "Hello"), ("assistant", "Hi"), ("user", "Tell me a joke")],
		)
		self.assertEqual(self.controller.current_conversation.title, "Hello")

	def test_blank_and_oversized_input_is_rejected(self) -> None:
		self.assertIsNone(self.controller.send_message("   "))
		self.assertIsNone(self.controller.send_message("x" * 2001))
		self.assertEqual(self.store.list_all(), [])
		self.assertEqual(self.vendor.bodies, [])

	def test_input_at_limit_is_accepted(self) -> None:
		self.vendor.responses.append(httpx.Response(200, content=_sse("ok")))
		final = self.controller.send_message("y" * 2000)
		self.assertEqual(final.content, "ok")
		self.assertEqual(self.controller.current_conversation.title, "y" * 50 + "...")

	def test_rate_limit_is_shown_in_place_of_reply_and_next_turn_works(self) -> None:
		self.vendor.responses.append(
			httpx.Response(429, json={"error": {"message": "Slow down", "type": "requests"}})
		)
		failed = self.controller.send_message("Hello")

		self.assertIs(self.controller.phase, TurnPhase.ERROR)
		self.assertTrue(failed.content.startswith("Error: "))
		self.assertIn("Rate Limit Exceeded", failed.content)
		self.assertIn("Rate Limit Exceeded", self.controller.error)
		self.assertFalse(failed.streaming)

		self.vendor.responses.append(httpx.Response(200, content=_sse("Back")))
		recovered = self.controller.send_message("Again")
		self.assertEqual(recovered.content, "Back")
		self.assertIs(self.controller.phase, TurnPhase.IDLE)
		self.assertIsNone(self.controller.error)

	def test_submit_while_streaming_is_rejected(self) -> None:
		self.vendor.responses.append(httpx.Response(200, content=_sse("Hi", " there")))
		nested = []

		def submit_again(message: Message) -> None:
			if message.role == "assistant" and message.streaming and message.content and not nested:
				self.assertIs(self.controller.phase, TurnPhase.STREAMING)
				nested.append(self.controller.send_message("Are you there?"))

		self.hook = submit_again
		final = self.controller.send_message("Hello")

		self.assertEqual(nested, [None])
		self.assertEqual(final.content, "Hi there")
		self.assertEqual(len(self.vendor.bodies), 1)
		messages = self.store.list_all()[0].messages
		self.assertEqual([(m.role, m.content) for m in messages], [("user", "Hello"), ("assistant", "Hi there")])

	def test_failing_update_callback_ends_turn_in_error(self) -> None:
		self.vendor.responses.append(httpx.Response(200, content=_sse("Hi", " there")))
		raised = []

		def explode_once(message: Message) -> None:
			if message.role == "assistant" and message.content and not raised:
				raised.append(True)
				raise RuntimeError("display failed")

		self.hook = explode_once
		failed = self.controller.send_message("Hello")

		self.assertIs(self.controller.phase, TurnPhase.ERROR)
		self.assertEqual(failed.content, "Error: display failed")
		self.assertEqual([m.streaming for m in self.store.list_all()[0].messages], [False, False])

		self.vendor.responses.append(httpx.Response(200, content=_sse("Back")))
		recovered = self.controller.send_message("again")
		self.assertIsNotNone(recovered)
		self.assertEqual(recovered.content, "Back")
		self.assertIs(self.controller.phase, TurnPhase.IDLE)

	def test_interrupted_turn_keeps_partial_reply_and_session_usable(self) -> None:
		self.vendor.responses.append(httpx.Response(200, content=_sse("Hi", " there")))

		def interrupt(message: Message) -> None:
			if message.role == "assistant" and message.content == "Hi" and message.streaming:
				raise _Interrupted()

		self.hook = interrupt
		with self.assertRaises(_Interrupted):
			self.controller.send_message("Hello")

		self.assertIs(self.controller.phase, TurnPhase.IDLE)
		stored = self.store.list_all()[0].messages
		self.assertEqual([(m.role, m.content, m.streaming) for m in stored], [("user", "Hello", False), ("assistant", "Hi", False)])

		self.hook = None
		self.vendor.responses.append(httpx.Response(200, content=_sse("Again")))
		self.assertEqual(self.controller.send_message("Still there?").content, "Again")

	def test_remove_conversation_twice_is_harmless(self) -> None:
		first = self.controller.create_conversation()
		second = self.controller.create_conversation()
		self.controller.remove_conversation(second)
		self.controller.remove_conversation(second)
		self.assertEqual(self.controller.current_conversation_id, first)
		self.assertEqual([item.id for item in self.store.list_all()], [first])

	def test_select_unknown_conversation(self) -> None:
		self.assertFalse(self.controller.select_conversation("missing"))


class ChatSessionLoadTests(TestCase):
	def test_stale_streaming_message_is_finalized_on_load(self) -> None:
		store = ConversationStore(MemoryStorage())
		older = Conversation(title="older")
		stale = Conversation(
			title="stale",
			messages=[
				Message(role="user", content="Hello"),
				Message(role="assistant", content="Hal", streaming=True),
			],
		)
		store.insert(older)
		store.insert(stale)

		controller = ChatSessionController(store, httpx.Client())
		controller.load()

		self.assertEqual(controller.current_conversation_id, stale.id)
		reloaded = store.get(stale.id)
		self.assertIsNone(reloaded.streaming_message())
		self.assertEqual(reloaded.messages[-1].content, "Hal")


class RelayStreamTests(TestCase):
	def test_records_split_across_chunks(self) -> None:
		raw = b'data: {"content": "caf\xc3\xa9", "done": false}\n\ndata: {"content": "", "done": true}\n\n'
		chunks = [raw[i : i + 3] for i in range(0, len(raw), 3)]
		records = list(iter_relay_records(chunks))
		self.assertEqual([(r.content, r.done) for r in records], [("café", False), ("", True)])

	def test_malformed_record_is_skipped(self) -> None:
		raw = b'data: {oops\n\ndata: {"error": "boom", "done": true}\n\n'
		with self.assertLogs("chatrelay.client.relay_stream", level="WARNING"):
			records = list(iter_relay_records([raw]))
		self.assertEqual([(r.error, r.done) for r in records], [("boom", True)])
