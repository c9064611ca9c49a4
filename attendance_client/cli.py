"""Command line front end for the attendance client.

Credentials can come from a .env file:
    ATTENDANCE_EMAIL=teacher@example.com
    ATTENDANCE_PASSWORD=your_password_here
Anything missing is prompted for.
"""

import argparse
import asyncio
import getpass
import logging
import os
import sys
from datetime import date
from typing import Optional, Sequence

from .app import AttendanceApp
from .config import AttendanceConfig
from .const import WEEKDAYS
from .exceptions import AttendanceError, AttendanceUnauthenticatedError
from .roster import ViewScope

_LOGGER = logging.getLogger(__name__)


def _parse_timing(value: str):
	day, sep, time_str = value.partition("=")
	day = day.strip().capitalize()
	if not sep or day not in WEEKDAYS:
		raise argparse.ArgumentTypeError(f"expected DAY=TIME with DAY one of {', '.join(WEEKDAYS)}")
	return day, time_str.strip()


def _parse_date(value: str) -> date:
	try:
		return date.fromisoformat(value)
	except ValueError as err:
		raise argparse.ArgumentTypeError("expected YYYY-MM-DD") from err


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(prog="attendance-client", description="Teacher attendance client")
	parser.add_argument("--debug", action="store_true", help="Verbose logging")
	parser.add_argument("--env-file", help="Read settings from this .env file")
	sub = parser.add_subparsers(dest="command", required=True)

	login = sub.add_parser("login", help="Log in and remember the session")
	login.add_argument("--email")
	sub.add_parser("logout", help="Forget the stored session")
	sub.add_parser("status", help="Show whether the stored session is still valid")
	sub.add_parser("classes", help="List your classes")

	create = sub.add_parser("create-class", help="Create a class")
	create.add_argument("name")
	create.add_argument("description")
	create.add_argument("--timing", action="append", type=_parse_timing, default=[],
	                    metavar="DAY=TIME", help="Weekly slot, e.g. Monday=09:00")

	delete = sub.add_parser("delete-class", help="Delete a class")
	delete.add_argument("class_id")

	students = sub.add_parser("students", help="List students in a class")
	students.add_argument("class_id")

	add = sub.add_parser("add-student", help="Add a student to a class")
	add.add_argument("class_id")
	add.add_argument("roll_no")
	add.add_argument("name")

	mark = sub.add_parser("mark", help="Save attendance for a class")
	mark.add_argument("class_id")
	mark.add_argument("--present", nargs="*", default=[], metavar="STUDENT_ID")
	mark.add_argument("--date", type=_parse_date, help="Day to record (default today)")

	analytics = sub.add_parser("analytics", help="Show attendance analytics for a class")
	analytics.add_argument("class_id")

	export = sub.add_parser("export", help="Export a class report as CSV")
	export.add_argument("class_id")
	export.add_argument("--output", help="File to write")

	details = sub.add_parser("export-details", help="Export a class roster as CSV")
	details.add_argument("class_id")
	details.add_argument("--output", help="File to write")
	return parser


async def _require_session(app: AttendanceApp) -> None:
	if await app.start() is None:
		reason = f" ({app.auth.last_error})" if app.auth.last_error else ""
		raise AttendanceUnauthenticatedError(f"Not logged in{reason}. Run 'attendance-client login' first.")


async def run(args: argparse.Namespace, config: AttendanceConfig) -> int:
	_LOGGER.debug(f"Running command {args.command}")
	async with AttendanceApp(config) as app:
		if args.command == "login":
			email = args.email or os.environ.get("ATTENDANCE_EMAIL") or input("Email: ")
			password = os.environ.get("ATTENDANCE_PASSWORD") or getpass.getpass("Password: ")
			teacher_id = await app.login(email, password)
			print(f"✅ Logged in as teacher {teacher_id}")
			return 0

		if args.command == "logout":
			await app.logout()
			print("Logged out")
			return 0

		if args.command == "status":
			teacher_id = await app.start()
			if teacher_id:
				print(f"✅ Session valid for teacher {teacher_id}")
				return 0
			print(f"❌ Not logged in{': ' + app.auth.last_error if app.auth.last_error else ''}")
			return 1

		await _require_session(app)

		if args.command == "classes":
			classes = await app.list_classes()
			if not classes:
				print("No classes found. Create a class to get started.")
			for cls in classes:
				schedule = ", ".join(f"{day} {cls.timing_for(day)}" for day in cls.scheduled_days) or "No schedule"
				print(f"{cls.id}\t{cls.name}\t{schedule}")

		elif args.command == "create-class":
			created = await app.create_class(args.name, args.description, dict(args.timing))
			print(f"✅ Created class {created.name} ({created.id})")

		elif args.command == "delete-class":
			await app.delete_class(args.class_id)
			print(f"Deleted class {args.class_id}")

		elif args.command == "students":
			roster = app.open_roster(args.class_id)
			for student in await roster.load():
				print(f"{student.id}\t{student}")
			print(f"{roster.total_students} students")

		elif args.command == "add-student":
			roster = app.open_roster(args.class_id)
			await roster.load()
			student = await roster.add_student(args.roll_no, args.name)
			print(f"✅ Added {student} ({student.id})")

		elif args.command == "mark":
			with ViewScope("mark") as scope:
				roster = app.open_roster(args.class_id, scope)
				await roster.load()
				for student_id in args.present:
					roster.set_mark(student_id, True)
				await roster.commit_attendance(args.date)
				print(
					f"✅ Saved: {roster.present_count} present, {roster.absent_count} absent "
					f"({roster.attendance_rate_percent:.1f}%)"
				)

		elif args.command == "analytics":
			report = await app.class_report(args.class_id)
			if report.is_empty:
				print("No attendance history yet.")
			print(f"Average {report.average_rate:.1f}%  High {report.max_rate:.1f}%  Low {report.min_rate:.1f}%")
			for day in report.per_day:
				print(f"{day.date}\t{day.rate:.1f}%\t{day.present_count} present\t{day.absent_count} absent")

		elif args.command == "export":
			path = await app.export_report(args.class_id, args.output)
			print(f"✅ Report written to {path}")

		elif args.command == "export-details":
			roster = app.open_roster(args.class_id)
			await roster.load()
			path = await app.export_class_details(roster, args.output)
			print(f"✅ Class details written to {path}")

	return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
	parser = build_parser()
	args = parser.parse_args(argv)

	logging.basicConfig(
		level=logging.DEBUG if args.debug else logging.WARNING,
		format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
	)

	try:
		config = AttendanceConfig.from_env(args.env_file)
		return asyncio.run(run(args, config))
	except AttendanceError as err:
		print(f"❌ {err}", file=sys.stderr)
		return 1
	except KeyboardInterrupt:
		return 130


if __name__ == "__main__":
	sys.exit(main())
