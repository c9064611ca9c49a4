"""Application facade wiring the attendance client together."""

import logging
from pathlib import Path
from typing import List, Mapping, Optional, Union

import aiohttp

from .analytics import fetch_class_report
from .auth import SessionManager, SessionState
from .client import AttendanceApiClient
from .config import AttendanceConfig
from .exceptions import AttendanceError, AttendanceUnauthenticatedError
from .identity import FirebaseIdentityProvider, IdentityProvider, UnconfiguredIdentityProvider
from .models import ClassRecord, DerivedReport
from .report import CsvReportRenderer, ReportRenderer
from .roster import RosterState, ViewScope
from .schemas import validate_class_input
from .session import SessionContext
from .storage import TokenStore

_LOGGER = logging.getLogger(__name__)


class AttendanceApp:
	"""One application run: a session, an API client and the screens' operations."""

	def __init__(self, config: Optional[AttendanceConfig] = None, *,
	             session: Optional[aiohttp.ClientSession] = None,
	             identity: Optional[IdentityProvider] = None,
	             store: Optional[TokenStore] = None) -> None:
		"""Initialise the application.

		Args:
			config: Settings; read from the environment when None.
			session: Optional aiohttp session. If None, a new one will be created.
			identity: Identity provider override, mainly for tests.
			store: Token store override.
		"""
		self.config = config or AttendanceConfig.from_env()
		self._session = session
		self._own_session = session is None
		self._identity = identity
		self.store = store or TokenStore(self.config.token_path)
		self.context = SessionContext()
		self.client: Optional[AttendanceApiClient] = None
		self.auth: Optional[SessionManager] = None

	async def __aenter__(self):
		if self._own_session:
			self._session = aiohttp.ClientSession()
		if self._identity is None:
			if self.config.firebase_api_key:
				self._identity = FirebaseIdentityProvider(self._session, self.config.firebase_api_key)
			else:
				_LOGGER.warning("No identity provider API key configured; login is unavailable")
				self._identity = UnconfiguredIdentityProvider()
		self.client = AttendanceApiClient(
			self.context,
			self._session,
			base_url=self.config.backend_url,
			timeout=self.config.request_timeout,
		)
		self.auth = SessionManager(self.client, self._identity, self.store, self.context)
		return self

	async def __aexit__(self, exc_type, exc_val, exc_tb):
		if self._own_session and self._session:
			await self._session.close()

	@property
	def state(self) -> SessionState:
		self._ensure_started()
		return self.auth.state

	@property
	def is_authenticated(self) -> bool:
		return self.auth is not None and self.auth.is_authenticated

	@property
	def teacher_id(self) -> Optional[str]:
		return self.context.teacher_id

	async def start(self) -> Optional[str]:
		"""Restore the previous session, if any. Returns the teacher id or None."""
		self._ensure_started()
		return await self.auth.revalidate_on_startup()

	async def login(self, email: str, password: str) -> str:
		self._ensure_started()
		return await self.auth.login(email, password)

	async def logout(self) -> None:
		self._ensure_started()
		await self.auth.logout()

	async def list_classes(self) -> List[ClassRecord]:
		self._ensure_started()
		return await self.client.get_classes()

	async def create_class(self, name: str, description: str,
	                       timings: Optional[Mapping[str, Optional[str]]] = None) -> ClassRecord:
		"""Create a class for the logged-in teacher after checking the form."""
		self._ensure_started()
		validated = validate_class_input(name, description, timings)
		teacher_id = self.context.teacher_id
		if not teacher_id:
			raise AttendanceUnauthenticatedError("Not logged in. Call login() first.")
		created = await self.client.create_class(
			validated["name"], validated["description"], teacher_id, validated["timings"]
		)
		_LOGGER.info(f"Created class {created.name} ({created.id})")
		return created

	async def delete_class(self, class_id: str) -> None:
		self._ensure_started()
		await self.client.delete_class(class_id)
		_LOGGER.info(f"Deleted class {class_id}")

	def open_roster(self, class_id: str, scope: Optional[ViewScope] = None) -> RosterState:
		"""Roster state for one class; call ``load()`` on it before marking."""
		self._ensure_started()
		return RosterState(self.client, class_id, scope)

	async def class_report(self, class_id: str) -> DerivedReport:
		self._ensure_started()
		return await fetch_class_report(self.client, class_id)

	async def export_report(self, class_id: str, path: Union[str, Path, None] = None,
	                        renderer: Optional[ReportRenderer] = None) -> Path:
		"""Derive a class report and write it to ``path``."""
		renderer = renderer or CsvReportRenderer()
		report = await self.class_report(class_id)
		title = f"class_{class_id}_analytics"
		target = Path(path) if path else Path(f"{title}{renderer.file_extension}")
		return await renderer.save(report, title, target)

	async def export_class_details(self, roster: RosterState, path: Union[str, Path, None] = None,
	                               renderer: Optional[ReportRenderer] = None) -> Path:
		"""Write a loaded roster and its current marks to ``path``."""
		self._ensure_started()
		renderer = renderer or CsvReportRenderer()
		title = f"class_{roster.class_id}_details"
		target = Path(path) if path else Path(f"{title}{renderer.file_extension}")
		return await renderer.save_roster(roster.class_id, roster.students, roster.marks, title, target)

	def _ensure_started(self) -> None:
		if self.client is None or self.auth is None:
			raise AttendanceError("Application not started; use 'async with AttendanceApp()'")
