"""Key-value storage backends for the conversation store.

Each backend maps a string key to a string value, the same contract as the
browser's localStorage.
"""

from __future__ import annotations

import os
import sqlite3
import tempfile
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Protocol

SQLITE_BUSY_TIMEOUT_MS = 5000


class KeyValueStorage(Protocol):
	def get(self, key: str) -> Optional[str]:
		...

	def set(self, key: str, value: str) -> None:
		...

	def delete(self, key: str) -> None:
		...


class MemoryStorage:
	def __init__(self, initial: Optional[Dict[str, str]] = None):
		self._data: Dict[str, str] = dict(initial or {})

	def get(self, key: str) -> Optional[str]:
		return self._data.get(key)

	def set(self, key: str, value: str) -> None:
		self._data[key] = value

	def delete(self, key: str) -> None:
		self._data.pop(key, None)


class JsonFileStorage:
	"""One file per key inside ``directory``; writes replace the file atomically."""

	def __init__(self, directory: str | Path):
		self.directory = Path(directory)
		self._lock = Lock()

	def _path(self, key: str) -> Path:
		safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in key)
		return self.directory / f"{safe}.json"

	def get(self, key: str) -> Optional[str]:
		path = self._path(key)
		if not path.exists():
			return None
		with open(path, "r", encoding="utf-8") as handle:
			return handle.read()

	def set(self, key: str, value: str) -> None:
		path = self._path(key)
		with self._lock:
			path.parent.mkdir(parents=True, exist_ok=True)
			fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp-", suffix=".json")
			try:
				with os.fdopen(fd, "w", encoding="utf-8") as handle:
					handle.write(value)
				os.replace(tmp_path, path)
			except BaseException:
				Path(tmp_path).unlink(missing_ok=True)
				raise

	def delete(self, key: str) -> None:
		with self._lock:
			self._path(key).unlink(missing_ok=True)


class SqliteStorage:
	def __init__(self, db_path: str | Path):
		self.db_path = str(db_path)
		Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
		self._init_db()

	def _connect(self) -> sqlite3.Connection:
		conn = sqlite3.connect(self.db_path, timeout=SQLITE_BUSY_TIMEOUT_MS / 1000)
		conn.execute("PRAGMA journal_mode=WAL")
		conn.execute("PRAGMA synchronous=NORMAL")
		conn.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
		return conn

	def _init_db(self) -> None:
		conn = self._connect()
		try:
			conn.execute(
				"""
				CREATE TABLE IF NOT EXISTS kv_store (
					key TEXT PRIMARY KEY,
					value TEXT NOT NULL
				)
				"""
			)
			conn.commit()
		finally:
			conn.close()

	def get(self, key: str) -> Optional[str]:
		conn = self._connect()
		try:
			row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
		finally:
			conn.close()
		return row[0] if row else None

	def set(self, key: str, value: str) -> None:
		conn = self._connect()
		try:
			conn.execute(
				"""
				INSERT INTO kv_store (key, value) VALUES (?, ?)
				ON CONFLICT(key) DO UPDATE SET value = excluded.value
				""",
				(key, value),
			)
			conn.commit()
		finally:
			conn.close()

	def delete(self, key: str) -> None:
		conn = self._connect()
		try:
			conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
			conn.commit()
		finally:
			conn.close()
