"""Tests for the command line front end."""

import argparse
import asyncio
from datetime import date

import pytest

from attendance_client.cli import _parse_timing, build_parser, main, run
from attendance_client.config import AttendanceConfig

from fakes import serve


def test_parse_timing():
	assert _parse_timing("monday=09:00") == ("Monday", "09:00")
	with pytest.raises(argparse.ArgumentTypeError):
		_parse_timing("Sunday=09:00")
	with pytest.raises(argparse.ArgumentTypeError):
		_parse_timing("Monday")


def test_create_class_arguments():
	args = build_parser().parse_args([
		"create-class", "Maths", "Year 7", "--timing", "Monday=09:00", "--timing", "friday=11:00",
	])
	assert args.command == "create-class"
	assert dict(args.timing) == {"Monday": "09:00", "Friday": "11:00"}


def test_mark_arguments():
	args = build_parser().parse_args(["mark", "c1", "--present", "s1", "s3", "--date", "2026-10-16"])
	assert args.present == ["s1", "s3"]
	assert args.date == date(2026, 10, 16)


def test_command_is_required():
	with pytest.raises(SystemExit):
		build_parser().parse_args([])


def test_status_without_session(backend, token_path, capsys):
	async def scenario():
		async with serve(backend.build_app()) as (_, base_url):
			config = AttendanceConfig(backend_url=base_url, token_path=token_path)
			return await run(build_parser().parse_args(["status"]), config)

	assert asyncio.run(scenario()) == 1
	assert "Not logged in" in capsys.readouterr().out
	assert backend.requests == []


def test_errors_are_printed_not_raised(tmp_path, capsys, monkeypatch):
	monkeypatch.setenv("ATTENDANCE_BACKEND_URL", "")
	monkeypatch.delenv("ATTENDANCE_BACKEND_URL")
	env_file = tmp_path / ".env"
	env_file.write_text("ATTENDANCE_BACKEND_URL=ftp://nowhere\n")

	assert main(["--env-file", str(env_file), "classes"]) == 1
	assert "Invalid configuration" in capsys.readouterr().err
