"""Session context shared between the session manager and the API client."""

import logging
from typing import Optional

from .models import Session

_LOGGER = logging.getLogger(__name__)


class SessionContext:
	"""Holder for the current session.

	The session manager is the only writer. Everything else reads through
	``token`` and ``teacher_id``, which report nothing unless the bound
	session is valid.
	"""

	def __init__(self, session: Optional[Session] = None) -> None:
		self._session = session

	@property
	def session(self) -> Optional[Session]:
		return self._session

	@property
	def is_authenticated(self) -> bool:
		return self._session is not None and self._session.is_valid

	@property
	def token(self) -> Optional[str]:
		return self._session.token if self.is_authenticated else None

	@property
	def teacher_id(self) -> Optional[str]:
		return self._session.teacher_id if self.is_authenticated else None

	def bind(self, session: Session) -> None:
		self._session = session
		_LOGGER.debug(f"Bound session {session!r}")

	def clear(self) -> None:
		if self._session is not None:
			# Stale references held elsewhere must not look usable
			self._session.is_valid = False
			_LOGGER.debug("Cleared session")
		self._session = None
