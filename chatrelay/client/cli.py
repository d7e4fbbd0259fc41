from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import httpx

from chatrelay.client.conversation_store import ConversationStore
from chatrelay.client.models import Conversation, Message
from chatrelay.client.session import ChatSessionController, TurnPhase
from chatrelay.client.storage import JsonFileStorage, SqliteStorage

_HELP = "Commands: /new, /list, /switch <n>, /delete, /clear, /quit"


class _StreamPrinter:
	"""Writes only the part of the assistant message not yet shown."""

	def __init__(self, out=sys.stdout):
		self.out = out
		self._shown: Dict[str, int] = {}

	def __call__(self, conversation: Conversation, message: Message) -> None:
		if message.role != "assistant":
			return
		shown = self._shown.get(message.id, 0)
		if len(message.content) > shown:
			self.out.write(message.content[shown:])
			self.out.flush()
			self._shown[message.id] = len(message.content)
		if not message.streaming:
			self.out.write("\n")
			self._shown.pop(message.id, None)


def _build_store(args: argparse.Namespace) -> ConversationStore:
	if args.db:
		return ConversationStore(SqliteStorage(args.db))
	return ConversationStore(JsonFileStorage(args.store_dir))


def _list(controller: ChatSessionController) -> None:
	for index, conversation in enumerate(controller.conversations, start=1):
		marker = "*" if conversation.id == controller.current_conversation_id else " "
		print(f"{marker} {index}. {conversation.title} ({len(conversation.messages)} messages)")


def _handle_command(controller: ChatSessionController, line: str) -> bool:
	"""Apply a slash command. Returns False when the session should end."""
	parts = line.split()
	command = parts[0].lower()
	if command == "/quit":
		return False
	if command == "/new":
		controller.create_conversation()
	elif command == "/list":
		_list(controller)
	elif command == "/switch" and len(parts) == 2 and parts[1].isdigit():
		index = int(parts[1]) - 1
		if 0 <= index < len(controller.conversations):
			controller.select_conversation(controller.conversations[index].id)
		else:
			print("No such conversation.")
	elif command == "/delete":
		if controller.current_conversation_id:
			controller.remove_conversation(controller.current_conversation_id)
	elif command == "/clear":
		controller.store.clear()
		controller.load()
	else:
		print(_HELP)
	return True


def main(argv: Optional[List[str]] = None) -> int:
	parser = argparse.ArgumentParser(description="Chat with a relay server from the terminal.")
	parser.add_argument("--base-url", default="http://127.0.0.1:8000")
	parser.add_argument("--store-dir", type=Path, default=Path.home() / ".chatrelay")
	parser.add_argument("--db", type=Path, default=None, help="Use a SQLite file instead of JSON files.")
	parser.add_argument("--timeout", type=float, default=120.0)
	parser.add_argument("--verbose", action="store_true")
	args = parser.parse_args(argv)

	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.WARNING,
		format="%(asctime)s [%(levelname)s] %(message)s",
		datefmt="%Y-%m-%d %H:%M:%S",
	)

	with httpx.Client(base_url=args.base_url, timeout=args.timeout) as client:
		controller = ChatSessionController(_build_store(args), client, on_update=_StreamPrinter())
		controller.load()
		print(_HELP)
		while True:
			try:
				line = input("> ").strip()
			except (EOFError, KeyboardInterrupt):
				print()
				break
			if not line:
				continue
			if line.startswith("/"):
				if not _handle_command(controller, line):
					break
				continue
			controller.send_message(line)
			if controller.phase is TurnPhase.ERROR:
				print(f"(turn failed: {controller.error})", file=sys.stderr)
	return 0


if __name__ == "__main__":
	sys.exit(main())
