"""Authentication lifecycle for the attendance client."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Optional

from .client import AttendanceApiClient
from .exceptions import AttendanceAuthError, AttendanceBusyError, AttendanceError, AttendanceStorageError
from .identity import IdentityCredential, IdentityProvider
from .models import Session
from .schemas import validate_credentials
from .session import SessionContext
from .storage import TokenStore

_LOGGER = logging.getLogger(__name__)


class SessionState(Enum):
	"""Where the session manager is in the login lifecycle."""
	UNAUTHENTICATED = "unauthenticated"
	REVALIDATING = "revalidating"
	LOGIN_IN_PROGRESS = "login_in_progress"
	AUTHENTICATED = "authenticated"


class SessionManager:
	"""Owns the one authenticated session of an application run.

	``login``, ``revalidate_on_startup`` and ``logout`` are the only ways the
	session changes. Identity tokens are always force-refreshed before they
	are shown to the backend, since a token that has not expired locally may
	already be rejected server-side.
	"""

	def __init__(self, client: AttendanceApiClient, identity: IdentityProvider,
	             store: TokenStore, context: SessionContext) -> None:
		self._client = client
		self._identity = identity
		self._store = store
		self._context = context
		self._state = SessionState.UNAUTHENTICATED
		self._lock = asyncio.Lock()
		self.last_error: Optional[str] = None
		client.add_auth_failure_listener(self._handle_rejected_token)

	@property
	def state(self) -> SessionState:
		return self._state

	@property
	def is_authenticated(self) -> bool:
		return self._state is SessionState.AUTHENTICATED and self._context.is_authenticated

	@property
	def teacher_id(self) -> Optional[str]:
		return self._context.teacher_id

	@property
	def session(self) -> Optional[Session]:
		return self._context.session

	async def revalidate_on_startup(self) -> Optional[str]:
		"""Restore the previous session if the backend still accepts it.

		Failures are not raised: the manager falls back to the unauthenticated
		state and keeps the reason in ``last_error``.

		Returns:
			The teacher id, or None when the user has to log in.
		"""
		async with self._exclusive(SessionState.REVALIDATING):
			self.last_error = None
			token = await self._store.get_token()
			stored_identity = await self._store.get_identity()
			credential = self._restore_credential(stored_identity)

			if not token or credential is None:
				_LOGGER.info("No stored session to revalidate")
				await self._forget_stored(identity=False)
				self._set_unauthenticated()
				return None

			try:
				fresh_token = await self._identity.get_fresh_id_token(credential, force_refresh=True)
				teacher_id = await self._client.validate_login(credential.email, fresh_token)
				await self._establish(credential, fresh_token, teacher_id)
			except AttendanceError as err:
				_LOGGER.warning(f"Stored session could not be revalidated: {err}")
				self.last_error = str(err)
				await self._forget_stored(identity=False)
				self._set_unauthenticated()
				return None

			return teacher_id

	async def login(self, email: str, password: str) -> str:
		"""Log in with email and password.

		Returns:
			The backend's teacher id.

		Raises:
			AttendanceValidationError: email or password missing.
			AttendanceAuthError: the identity provider or the backend refused.
		"""
		email, password = validate_credentials(email, password)

		async with self._exclusive(SessionState.LOGIN_IN_PROGRESS):
			self.last_error = None
			try:
				credential = await self._identity.sign_in(email, password)
				fresh_token = await self._identity.get_fresh_id_token(credential, force_refresh=True)
				teacher_id = await self._client.validate_login(email, fresh_token)
				await self._establish(credential, fresh_token, teacher_id)
			except AttendanceError as err:
				_LOGGER.warning(f"Login failed for {email}: {err}")
				self.last_error = str(err)
				await self._forget_stored(identity=True)
				self._set_unauthenticated()
				raise AttendanceAuthError(f"Login failed: {err}", status=err.status) from err

			return teacher_id

	async def logout(self) -> None:
		"""End the session and forget the persisted token."""
		await self._store.clear()
		self._set_unauthenticated()
		_LOGGER.info("Logged out")

	async def _handle_rejected_token(self) -> None:
		if self._state is SessionState.AUTHENTICATED:
			_LOGGER.info("Backend rejected the session token, logging out")
			await self.logout()

	@asynccontextmanager
	async def _exclusive(self, state: SessionState) -> AsyncIterator[None]:
		# Two logins racing would fight over the persisted token slot
		if self._lock.locked():
			raise AttendanceBusyError("Authentication already in progress")
		async with self._lock:
			self._state = state
			try:
				yield
			finally:
				if self._state is state:
					self._set_unauthenticated()

	async def _establish(self, credential: IdentityCredential, token: str, teacher_id: str) -> None:
		await self._store.set_token(token)
		await self._store.set_identity(credential.to_dict())
		self._context.bind(Session(
			token=token,
			token_issued_at=datetime.now(),
			user_id=credential.user_id,
			email=credential.email,
			teacher_id=teacher_id,
		))
		self._state = SessionState.AUTHENTICATED
		_LOGGER.info(f"Authenticated as teacher {teacher_id}")

	async def _forget_stored(self, identity: bool) -> None:
		# Runs on failure paths; a store that cannot be written must not mask the original error
		try:
			if identity:
				await self._store.clear()
			else:
				await self._store.clear_token()
		except AttendanceStorageError as err:
			_LOGGER.warning(f"Could not clear stored session: {err}")

	def _set_unauthenticated(self) -> None:
		self._context.clear()
		self._state = SessionState.UNAUTHENTICATED

	@staticmethod
	def _restore_credential(data: Optional[dict]) -> Optional[IdentityCredential]:
		if not data:
			return None
		try:
			return IdentityCredential.from_dict(data)
		except (KeyError, TypeError) as err:
			_LOGGER.warning(f"Ignoring malformed stored identity: {err}")
			return None
