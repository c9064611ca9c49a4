"""Persistent storage for the session token and identity credential."""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .const import DEFAULT_TOKEN_PATH, IDENTITY_STORAGE_KEY, STORAGE_VERSION, TOKEN_STORAGE_KEY
from .exceptions import AttendanceStorageError

_LOGGER = logging.getLogger(__name__)


class TokenStore:
	"""Single-slot token storage in a small JSON file.

	- Holds the bearer token under a well-known key and the identity
	  credential beside it.
	- Caches data in memory after the first load.
	- File IO runs in a worker thread so it never blocks the event loop.
	- Writes go to a temporary file first and are moved into place.
	"""

	def __init__(self, path: Union[str, Path, None] = None) -> None:
		self._path = Path(path) if path else DEFAULT_TOKEN_PATH
		self._lock: asyncio.Lock = asyncio.Lock()
		self._cache: Optional[Dict[str, Any]] = None

	@property
	def path(self) -> Path:
		return self._path

	async def async_load(self) -> Dict[str, Any]:
		"""Load data once and cache it; returns a shallow copy."""
		async with self._lock:
			if self._cache is None:
				self._cache = await asyncio.to_thread(self._read)
			return dict(self._cache)

	async def get_token(self) -> Optional[str]:
		data = await self.async_load()
		return data.get(TOKEN_STORAGE_KEY) or None

	async def set_token(self, token: str) -> None:
		await self._update({TOKEN_STORAGE_KEY: token})

	async def clear_token(self) -> None:
		await self._update({TOKEN_STORAGE_KEY: None})

	async def get_identity(self) -> Optional[Dict[str, Any]]:
		data = await self.async_load()
		identity = data.get(IDENTITY_STORAGE_KEY)
		return dict(identity) if isinstance(identity, dict) else None

	async def set_identity(self, identity: Dict[str, Any]) -> None:
		await self._update({IDENTITY_STORAGE_KEY: dict(identity)})

	async def clear_identity(self) -> None:
		await self._update({IDENTITY_STORAGE_KEY: None})

	async def clear(self) -> None:
		"""Forget everything that was persisted."""
		await self._update({TOKEN_STORAGE_KEY: None, IDENTITY_STORAGE_KEY: None})

	async def _update(self, changes: Dict[str, Any]) -> None:
		async with self._lock:
			if self._cache is None:
				self._cache = await asyncio.to_thread(self._read)
			data = dict(self._cache)
			for key, value in changes.items():
				if value is None:
					data.pop(key, None)
				else:
					data[key] = value
			if data == self._cache:
				return
			try:
				await asyncio.to_thread(self._write, data)
			except OSError as err:
				_LOGGER.error(f"Could not write token store {self._path}: {err}")
				raise AttendanceStorageError(f"Could not save session to {self._path}: {err}") from err
			self._cache = data

	def _read(self) -> Dict[str, Any]:
		try:
			with open(self._path, "r", encoding="utf-8") as f:
				stored = json.load(f)
		except FileNotFoundError:
			return {}
		except (OSError, ValueError) as err:
			_LOGGER.warning(f"Ignoring unreadable token store {self._path}: {err}")
			return {}

		if not isinstance(stored, dict) or not isinstance(stored.get("data"), dict):
			_LOGGER.warning(f"Ignoring malformed token store {self._path}")
			return {}
		return stored["data"]

	def _write(self, data: Dict[str, Any]) -> None:
		self._path.parent.mkdir(parents=True, exist_ok=True)
		tmp_path = self._path.with_name(self._path.name + ".tmp")
		with open(tmp_path, "w", encoding="utf-8") as f:
			json.dump({"version": STORAGE_VERSION, "data": data}, f)
		# The file holds a bearer token
		os.chmod(tmp_path, 0o600)
		os.replace(tmp_path, self._path)
		_LOGGER.debug(f"Saved session data to {self._path}")
