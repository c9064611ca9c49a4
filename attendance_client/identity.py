"""Identity provider integration.

The backend trusts ID tokens issued by Firebase Authentication. This module
exchanges an email and password for an identity credential and mints fresh
ID tokens from that credential's refresh token.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import aiohttp

from .const import FIREBASE_REFRESH_URL, FIREBASE_SIGN_IN_URL
from .exceptions import (
	AttendanceAuthError,
	AttendanceConnectionError,
	AttendanceDataError,
	AttendanceServerError,
)
from .schemas import extract_error_message
from .utils import mask_token

_LOGGER = logging.getLogger(__name__)

# Firebase error codes mapped to something a teacher can act on
FIREBASE_ERROR_MESSAGES = {
	"EMAIL_NOT_FOUND": "No account exists for this email",
	"INVALID_PASSWORD": "Incorrect password",
	"INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
	"INVALID_EMAIL": "The email address is badly formatted",
	"USER_DISABLED": "This account has been disabled",
	"USER_NOT_FOUND": "This account no longer exists",
	"TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts, try again later",
	"TOKEN_EXPIRED": "Your sign-in has expired, please log in again",
	"INVALID_REFRESH_TOKEN": "Your sign-in is no longer valid, please log in again",
	"MISSING_REFRESH_TOKEN": "Your sign-in is no longer valid, please log in again",
}

# Refresh a little before the provider's stated expiry
EXPIRY_MARGIN = timedelta(minutes=5)


@dataclass
class IdentityCredential:
	"""A signed-in identity-provider user."""
	user_id: str
	email: str
	refresh_token: str
	id_token: Optional[str] = None
	expires_at: Optional[datetime] = None

	@property
	def is_expired(self) -> bool:
		if not self.id_token or not self.expires_at:
			return True
		return datetime.now() >= self.expires_at - EXPIRY_MARGIN

	def to_dict(self) -> Dict[str, Any]:
		"""Serialise for persistence; the ID token itself is not kept."""
		return {
			"user_id": self.user_id,
			"email": self.email,
			"refresh_token": self.refresh_token,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "IdentityCredential":
		return cls(
			user_id=data["user_id"],
			email=data["email"],
			refresh_token=data["refresh_token"],
		)

	def __repr__(self) -> str:
		return f"IdentityCredential(user_id={self.user_id!r}, email={self.email!r})"


class IdentityProvider:
	"""Interface the session manager uses to obtain identity tokens."""

	async def sign_in(self, email: str, password: str) -> IdentityCredential:
		"""Exchange email and password for a credential."""
		raise NotImplementedError

	async def get_fresh_id_token(self, credential: IdentityCredential, force_refresh: bool = True) -> str:
		"""Return an ID token for the credential, minting a new one when forced."""
		raise NotImplementedError


class UnconfiguredIdentityProvider(IdentityProvider):
	"""Stand-in used when no identity provider API key is configured."""

	MESSAGE = "Identity provider is not configured; set ATTENDANCE_FIREBASE_API_KEY"

	async def sign_in(self, email: str, password: str) -> IdentityCredential:
		raise AttendanceAuthError(self.MESSAGE)

	async def get_fresh_id_token(self, credential: IdentityCredential, force_refresh: bool = True) -> str:
		raise AttendanceAuthError(self.MESSAGE)


def _friendly_message(raw: Optional[str], fallback: str) -> str:
	if not raw:
		return fallback
	# Firebase appends detail after " : ", e.g. "TOO_MANY_ATTEMPTS_TRY_LATER : ..."
	code = raw.split(" : ", 1)[0].strip()
	return FIREBASE_ERROR_MESSAGES.get(code, raw)


def _expiry(expires_in: Any) -> Optional[datetime]:
	try:
		return datetime.now() + timedelta(seconds=int(expires_in))
	except (TypeError, ValueError):
		return None


class FirebaseIdentityProvider(IdentityProvider):
	"""Identity provider backed by the Firebase Authentication REST API."""

	def __init__(self, session: aiohttp.ClientSession, api_key: str,
	             sign_in_url: str = FIREBASE_SIGN_IN_URL, refresh_url: str = FIREBASE_REFRESH_URL) -> None:
		self._session = session
		self._api_key = api_key
		self._sign_in_url = sign_in_url
		self._refresh_url = refresh_url

	async def sign_in(self, email: str, password: str) -> IdentityCredential:
		payload = {"email": email, "password": password, "returnSecureToken": True}
		data = await self._post(self._sign_in_url, json=payload, failure="Sign-in failed")
		try:
			credential = IdentityCredential(
				user_id=data["localId"],
				email=data.get("email") or email,
				refresh_token=data["refreshToken"],
				id_token=data["idToken"],
				expires_at=_expiry(data.get("expiresIn")),
			)
		except (KeyError, TypeError) as err:
			raise AttendanceDataError(f"Unexpected sign-in response: missing {err}") from err
		_LOGGER.info(f"Signed in to identity provider as {credential.email}")
		return credential

	async def get_fresh_id_token(self, credential: IdentityCredential, force_refresh: bool = True) -> str:
		if not force_refresh and not credential.is_expired:
			return credential.id_token

		form = {"grant_type": "refresh_token", "refresh_token": credential.refresh_token}
		data = await self._post(self._refresh_url, data=form, failure="Token refresh failed")
		try:
			credential.id_token = data["id_token"]
			credential.refresh_token = data.get("refresh_token") or credential.refresh_token
			credential.expires_at = _expiry(data.get("expires_in"))
		except (KeyError, TypeError) as err:
			raise AttendanceDataError(f"Unexpected token refresh response: missing {err}") from err
		_LOGGER.debug(f"Refreshed ID token for {credential.email}: {mask_token(credential.id_token)}")
		return credential.id_token

	async def _post(self, url: str, *, failure: str, json: Optional[Dict[str, Any]] = None,
	                data: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
		params = {"key": self._api_key}
		try:
			async with self._session.post(url, params=params, json=json, data=data) as resp:
				try:
					body = await resp.json(content_type=None)
				except ValueError:
					body = None

				if resp.status != 200:
					message = _friendly_message(extract_error_message(body), f"{failure}: HTTP {resp.status}")
					_LOGGER.warning(f"{failure}: {message}")
					if resp.status >= 500:
						raise AttendanceServerError(message, status=resp.status)
					raise AttendanceAuthError(message, status=resp.status)

				if not isinstance(body, dict):
					raise AttendanceDataError(f"{failure}: response was not a JSON object", status=resp.status)
				return body
		except aiohttp.ClientError as err:
			raise AttendanceConnectionError(f"Connection error: {err}") from err
		except asyncio.TimeoutError as err:
			raise AttendanceConnectionError("Identity provider timed out") from err
