"""Client for the attendance backend REST API."""

import asyncio
import json
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import quote

import aiohttp

from .const import (
	DEFAULT_BACKEND_URL,
	DEFAULT_HEADERS,
	DEFAULT_REQUEST_TIMEOUT,
	ENDPOINT_ANALYTICS,
	ENDPOINT_ATTENDANCE,
	ENDPOINT_CLASS,
	ENDPOINT_CLASSES,
	ENDPOINT_LOGIN,
	ENDPOINT_STUDENTS,
)
from .exceptions import (
	AttendanceAuthError,
	AttendanceConnectionError,
	AttendanceDataError,
	AttendanceError,
	AttendanceServerError,
	AttendanceUnauthenticatedError,
	AttendanceValidationError,
)
from .models import AnalyticsSeries, ClassRecord, Student
from .schemas import (
	extract_error_message,
	parse_analytics,
	parse_class,
	parse_classes,
	parse_login_response,
	parse_student,
	parse_students,
)
from .session import SessionContext

_LOGGER = logging.getLogger(__name__)

AuthFailureListener = Callable[[], Awaitable[None]]


def _path(template: str, class_id: Any) -> str:
	return template.format(class_id=quote(str(class_id), safe=""))


class AttendanceApiClient:
	"""Client for interacting with the attendance backend.

	Every call except ``validate_login`` takes its bearer token from the
	session context. Callers never deal with headers.
	"""

	def __init__(self, context: SessionContext, session: Optional[aiohttp.ClientSession] = None,
	             base_url: str = DEFAULT_BACKEND_URL, timeout: float = DEFAULT_REQUEST_TIMEOUT):
		"""Initialise the API client.

		Args:
			context: Session context supplying the bearer token.
			session: Optional aiohttp session. If None, one is created on entry.
			base_url: Backend root URL.
			timeout: Total timeout per request in seconds.
		"""
		self._context = context
		self._session = session
		self._own_session = session is None
		self._base_url = base_url.rstrip("/")
		self._timeout = aiohttp.ClientTimeout(total=timeout)
		self._auth_failure_listeners: List[AuthFailureListener] = []

	async def __aenter__(self):
		if self._own_session:
			self._session = aiohttp.ClientSession()
		return self

	async def __aexit__(self, exc_type, exc_val, exc_tb):
		if self._own_session and self._session:
			await self._session.close()

	@property
	def base_url(self) -> str:
		return self._base_url

	def add_auth_failure_listener(self, listener: AuthFailureListener) -> None:
		"""Register a coroutine to await when the backend rejects the session token."""
		self._auth_failure_listeners.append(listener)

	async def validate_login(self, email: str, token: str) -> str:
		"""Validate a freshly issued identity token with the backend.

		Called before a session exists, so the token is passed explicitly.

		Returns:
			The backend's teacher id.
		"""
		data = await self._request("POST", ENDPOINT_LOGIN, payload={"email": email}, token=token)
		return parse_login_response(data)

	async def get_classes(self) -> List[ClassRecord]:
		data = await self._request("GET", ENDPOINT_CLASSES)
		return parse_classes(data)

	async def create_class(self, name: str, description: str, teacher_id: str,
	                       timings: Mapping[str, Optional[str]]) -> ClassRecord:
		payload = {
			"name": name,
			"description": description,
			"teacher_id": teacher_id,
			"timings": {day: value or "" for day, value in timings.items()},
		}
		data = await self._request("POST", ENDPOINT_CLASSES, payload=payload)
		return parse_class(data)

	async def delete_class(self, class_id: str) -> None:
		await self._request("DELETE", _path(ENDPOINT_CLASS, class_id), expect_body=False)

	async def get_students(self, class_id: str) -> List[Student]:
		data = await self._request("GET", _path(ENDPOINT_STUDENTS, class_id))
		return parse_students(data, class_id)

	async def add_student(self, class_id: str, roll_no: int, name: str) -> Optional[Student]:
		"""Add a student to a class.

		Returns:
			The created student, or None when the server does not echo it back.
		"""
		data = await self._request(
			"POST", _path(ENDPOINT_STUDENTS, class_id), payload={"rollNo": roll_no, "name": name}
		)
		if data is None:
			_LOGGER.debug(f"Server returned no body for new student {roll_no} in class {class_id}")
			return None
		return parse_student(data, class_id)

	async def save_attendance(self, class_id: str, day: date, present_ids: Iterable[str]) -> None:
		"""Save the ids of students present on a given day."""
		payload = {"date": day.isoformat(), "attendance": list(present_ids)}
		await self._request("POST", _path(ENDPOINT_ATTENDANCE, class_id), payload=payload, expect_body=False)

	async def get_analytics(self, class_id: str) -> AnalyticsSeries:
		data = await self._request("GET", _path(ENDPOINT_ANALYTICS, class_id))
		return parse_analytics(data)

	async def _request(self, method: str, path: str, *, payload: Optional[Dict[str, Any]] = None,
	                   token: Optional[str] = None, expect_body: bool = True) -> Any:
		"""Send one request and return the decoded body.

		With ``expect_body=False`` a successful response body is not decoded
		and None is returned; error bodies are still read for their message.
		"""
		if not self._session:
			raise AttendanceError("Client not properly initialised")

		authenticated = token is None
		if authenticated:
			token = self._context.token
			if not token:
				raise AttendanceUnauthenticatedError("Not logged in. Call login() first.")

		headers = DEFAULT_HEADERS.copy()
		headers["Authorization"] = f"Bearer {token}"
		url = f"{self._base_url}{path}"
		_LOGGER.debug(f"{method} {path}")

		try:
			async with self._session.request(
				method, url, json=payload, headers=headers, timeout=self._timeout
			) as resp:
				status = resp.status
				reason = resp.reason
				content_type = resp.headers.get("content-type", "").lower()
				text = await resp.text()
		except aiohttp.ClientError as err:
			raise AttendanceConnectionError(f"Connection error: {err}") from err
		except asyncio.TimeoutError as err:
			raise AttendanceConnectionError(f"Request timed out: {method} {path}") from err

		if status >= 400:
			body = self._decode_body(text, content_type, status, path)
			await self._raise_for_status(status, reason, body, authenticated)
		if not expect_body:
			return None
		return self._decode_body(text, content_type, status, path)

	def _decode_body(self, text: str, content_type: str, status: int, path: str) -> Any:
		if not text.strip():
			return None
		try:
			return json.loads(text)
		except json.JSONDecodeError as err:
			if status >= 400:
				# Error pages are not worth surfacing; the status line is used instead
				return None if "text/html" in content_type else text
			_LOGGER.error(f"Response from {path} is not JSON: {text[:200]}...")
			raise AttendanceDataError(f"Invalid JSON response from {path}", status=status) from err

	async def _raise_for_status(self, status: int, reason: Optional[str], body: Any, authenticated: bool) -> None:
		message = extract_error_message(body) or f"HTTP {status}: {reason or 'request failed'}"

		if status in (401, 403):
			_LOGGER.warning(f"Backend rejected credentials (HTTP {status}): {message}")
			if authenticated:
				# The token is never retried; listeners end the session
				for listener in list(self._auth_failure_listeners):
					await listener()
			raise AttendanceAuthError(message, status=status)
		if 400 <= status < 500:
			raise AttendanceValidationError(message, status=status)
		_LOGGER.error(f"Backend error (HTTP {status}): {message}")
		raise AttendanceServerError(message, status=status)
