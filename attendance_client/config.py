"""Configuration for the attendance client."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

import voluptuous as vol
from dotenv import find_dotenv, load_dotenv

from .const import (
	CONF_BACKEND_URL,
	CONF_FIREBASE_API_KEY,
	CONF_REQUEST_TIMEOUT,
	CONF_TOKEN_PATH,
	DEFAULT_BACKEND_URL,
	DEFAULT_REQUEST_TIMEOUT,
	DEFAULT_TOKEN_PATH,
)
from .exceptions import AttendanceValidationError

_LOGGER = logging.getLogger(__name__)


def _url(value: str) -> str:
	value = value.strip().rstrip("/")
	if not value.startswith(("http://", "https://")):
		raise vol.Invalid("must start with http:// or https://")
	return value


CONFIG_SCHEMA = vol.Schema(
	{
		vol.Optional(CONF_BACKEND_URL, default=DEFAULT_BACKEND_URL): vol.All(str, _url),
		vol.Optional(CONF_FIREBASE_API_KEY, default=None): vol.Any(None, vol.All(str, vol.Strip)),
		vol.Optional(CONF_TOKEN_PATH, default=str(DEFAULT_TOKEN_PATH)): vol.All(str, vol.Length(min=1)),
		vol.Optional(CONF_REQUEST_TIMEOUT, default=DEFAULT_REQUEST_TIMEOUT): vol.All(
			vol.Coerce(float), vol.Range(min=1)
		),
	},
	extra=vol.REMOVE_EXTRA,
)


@dataclass
class AttendanceConfig:
	"""Settings needed to reach the backend and the identity provider."""
	backend_url: str = DEFAULT_BACKEND_URL
	firebase_api_key: Optional[str] = None
	token_path: Path = DEFAULT_TOKEN_PATH
	request_timeout: float = DEFAULT_REQUEST_TIMEOUT

	@classmethod
	def from_mapping(cls, values: Mapping[str, str]) -> "AttendanceConfig":
		"""Build a config from environment-style keys."""
		present = {key: value for key, value in values.items() if value not in (None, "")}
		try:
			validated = CONFIG_SCHEMA(present)
		except vol.Invalid as err:
			raise AttendanceValidationError(f"Invalid configuration: {err}") from err
		return cls(
			backend_url=validated[CONF_BACKEND_URL],
			firebase_api_key=validated[CONF_FIREBASE_API_KEY] or None,
			token_path=Path(validated[CONF_TOKEN_PATH]).expanduser(),
			request_timeout=validated[CONF_REQUEST_TIMEOUT],
		)

	@classmethod
	def from_env(cls, env_file: Union[str, Path, None] = None) -> "AttendanceConfig":
		"""Load settings from the environment, reading a .env file first if present."""
		if load_dotenv(env_file or find_dotenv(usecwd=True)):
			_LOGGER.debug(f"Loaded environment from {env_file or '.env'}")
		keys = (CONF_BACKEND_URL, CONF_FIREBASE_API_KEY, CONF_TOKEN_PATH, CONF_REQUEST_TIMEOUT)
		return cls.from_mapping({key: os.environ.get(key) for key in keys})
