"""Tests for configuration loading."""

from pathlib import Path

import pytest

from attendance_client.config import AttendanceConfig
from attendance_client.const import DEFAULT_BACKEND_URL, DEFAULT_REQUEST_TIMEOUT, DEFAULT_TOKEN_PATH
from attendance_client.exceptions import AttendanceValidationError

ENV_KEYS = (
	"ATTENDANCE_BACKEND_URL",
	"ATTENDANCE_FIREBASE_API_KEY",
	"ATTENDANCE_TOKEN_PATH",
	"ATTENDANCE_REQUEST_TIMEOUT",
)


def test_defaults():
	config = AttendanceConfig.from_mapping({})
	assert config.backend_url == DEFAULT_BACKEND_URL
	assert config.firebase_api_key is None
	assert config.token_path == DEFAULT_TOKEN_PATH
	assert config.request_timeout == DEFAULT_REQUEST_TIMEOUT


def test_values_are_normalised():
	config = AttendanceConfig.from_mapping({
		"ATTENDANCE_BACKEND_URL": "https://attendance.example.com/",
		"ATTENDANCE_FIREBASE_API_KEY": " key ",
		"ATTENDANCE_TOKEN_PATH": "/tmp/session.json",
		"ATTENDANCE_REQUEST_TIMEOUT": "12.5",
		"UNRELATED": "ignored",
	})
	assert config.backend_url == "https://attendance.example.com"
	assert config.firebase_api_key == "key"
	assert config.token_path == Path("/tmp/session.json")
	assert config.request_timeout == 12.5


def test_empty_values_fall_back_to_defaults():
	config = AttendanceConfig.from_mapping({"ATTENDANCE_BACKEND_URL": "", "ATTENDANCE_FIREBASE_API_KEY": None})
	assert config.backend_url == DEFAULT_BACKEND_URL
	assert config.firebase_api_key is None


@pytest.mark.parametrize("values", [
	{"ATTENDANCE_BACKEND_URL": "ftp://example.com"},
	{"ATTENDANCE_REQUEST_TIMEOUT": "soon"},
	{"ATTENDANCE_REQUEST_TIMEOUT": "0"},
])
def test_invalid_values_are_rejected(values):
	with pytest.raises(AttendanceValidationError):
		AttendanceConfig.from_mapping(values)


def test_from_env_reads_env_file(tmp_path, monkeypatch):
	# load_dotenv writes os.environ directly; setenv first so monkeypatch restores it
	for key in ENV_KEYS:
		monkeypatch.setenv(key, "")
		monkeypatch.delenv(key)
	env_file = tmp_path / ".env"
	env_file.write_text(
		"ATTENDANCE_BACKEND_URL=http://backend.test:8080\n"
		"ATTENDANCE_FIREBASE_API_KEY=abc123\n"
	)

	config = AttendanceConfig.from_env(env_file)

	assert config.backend_url == "http://backend.test:8080"
	assert config.firebase_api_key == "abc123"


def test_environment_wins_over_env_file(tmp_path, monkeypatch):
	env_file = tmp_path / ".env"
	env_file.write_text("ATTENDANCE_BACKEND_URL=http://from-file.test\n")
	monkeypatch.setenv("ATTENDANCE_BACKEND_URL", "http://from-env.test")

	assert AttendanceConfig.from_env(env_file).backend_url == "http://from-env.test"
