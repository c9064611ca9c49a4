"""Boundary schemas for backend responses and user input."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import voluptuous as vol

from .const import (
	MSG_FILL_ALL_FIELDS,
	MSG_ROLL_NO_INVALID,
	WEEKDAYS,
)
from .exceptions import AttendanceDataError, AttendanceValidationError
from .models import AnalyticsSeries, ClassRecord, Student

_LOGGER = logging.getLogger(__name__)


def _identifier(value: Any) -> str:
	"""Accept string or integer ids and normalise them to strings."""
	if isinstance(value, bool) or not isinstance(value, (str, int)):
		raise vol.Invalid("expected a string or integer id")
	text = str(value).strip()
	if not text:
		raise vol.Invalid("id must not be empty")
	return text


def _rate(value: Any) -> float:
	"""Accept a numeric attendance rate between 0 and 100."""
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		raise vol.Invalid("expected a numeric rate")
	rate = float(value)
	if not 0 <= rate <= 100:
		raise vol.Invalid(f"rate {rate} is outside 0-100")
	return rate


def _optional_time(value: Any) -> Optional[str]:
	"""Normalise an empty schedule slot to None."""
	if value is None:
		return None
	if not isinstance(value, str):
		raise vol.Invalid("expected a time string")
	return value.strip() or None


def _roll_no(value: Any) -> Any:
	if isinstance(value, bool) or not isinstance(value, (str, int)):
		raise vol.Invalid("expected a roll number")
	return value


TIMINGS_SCHEMA = vol.Schema({str: _optional_time})

LOGIN_RESPONSE_SCHEMA = vol.Schema(
	{
		vol.Required("teacher"): vol.Schema(
			{vol.Required("id"): _identifier},
			extra=vol.ALLOW_EXTRA,
		),
	},
	extra=vol.ALLOW_EXTRA,
)

CLASS_SCHEMA = vol.Schema(
	{
		vol.Required("id"): _identifier,
		vol.Required("name"): str,
		vol.Optional("description", default=""): vol.Any(None, str),
		vol.Optional("timings", default={}): vol.Any(None, TIMINGS_SCHEMA),
		vol.Optional("teacher_id", default=None): vol.Any(None, _identifier),
	},
	extra=vol.ALLOW_EXTRA,
)

STUDENT_SCHEMA = vol.Schema(
	{
		vol.Required("id"): _identifier,
		vol.Required("rollNo"): _roll_no,
		vol.Required("name"): str,
		vol.Optional("classId", default=None): vol.Any(None, _identifier),
	},
	extra=vol.ALLOW_EXTRA,
)

ANALYTICS_SCHEMA = vol.Schema(
	{
		vol.Required("dates"): [vol.All(vol.Any(str, int), vol.Coerce(str))],
		vol.Required("rates"): [_rate],
	},
	extra=vol.ALLOW_EXTRA,
)

ERROR_BODY_SCHEMA = vol.Schema(
	{
		vol.Optional("error"): vol.Any(str, dict),
		vol.Optional("message"): str,
	},
	extra=vol.ALLOW_EXTRA,
)

CREDENTIALS_SCHEMA = vol.Schema(
	{
		vol.Required("email"): vol.All(str, vol.Strip, vol.Length(min=1)),
		vol.Required("password"): vol.All(str, vol.Length(min=1)),
	}
)

CLASS_INPUT_SCHEMA = vol.Schema(
	{
		vol.Required("name"): vol.All(str, vol.Strip, vol.Length(min=1)),
		vol.Required("description"): vol.All(str, vol.Strip, vol.Length(min=1)),
		vol.Optional("timings", default={}): vol.Schema({vol.In(WEEKDAYS): _optional_time}),
	}
)

STUDENT_INPUT_SCHEMA = vol.Schema(
	{
		vol.Required("rollNo"): vol.All(vol.Any(int, str), vol.Coerce(str), vol.Strip, vol.Length(min=1)),
		vol.Required("name"): vol.All(str, vol.Strip, vol.Length(min=1)),
	}
)

# Alternate key spellings seen across backend versions
_STUDENT_ALIASES = {"roll_no": "rollNo", "class_id": "classId"}
_CLASS_ALIASES = {"weekly_timings": "timings", "teacherId": "teacher_id"}


def _apply_aliases(data: Any, aliases: Mapping[str, str]) -> Any:
	if not isinstance(data, dict):
		return data
	normalised = dict(data)
	for alias, canonical in aliases.items():
		if alias in normalised and canonical not in normalised:
			normalised[canonical] = normalised.pop(alias)
	return normalised


def _validate_response(schema: vol.Schema, data: Any, what: str) -> Dict[str, Any]:
	try:
		return schema(data)
	except vol.Invalid as err:
		_LOGGER.error(f"Unexpected {what} response shape: {err}")
		raise AttendanceDataError(f"Unexpected {what} response from server: {err}") from err


def _require_list(data: Any, what: str) -> List[Any]:
	if not isinstance(data, list):
		raise AttendanceDataError(f"Unexpected {what} response from server: expected a list")
	return data


def parse_login_response(data: Any) -> str:
	"""Extract the backend-issued teacher id from a login validation response."""
	validated = _validate_response(LOGIN_RESPONSE_SCHEMA, data, "login")
	return validated["teacher"]["id"]


def parse_class(data: Any) -> ClassRecord:
	validated = _validate_response(CLASS_SCHEMA, _apply_aliases(data, _CLASS_ALIASES), "class")
	return ClassRecord(
		id=validated["id"],
		name=validated["name"],
		description=validated["description"] or "",
		weekly_timings=dict(validated["timings"] or {}),
		teacher_id=validated["teacher_id"],
	)


def parse_classes(data: Any) -> List[ClassRecord]:
	return [parse_class(item) for item in _require_list(data, "classes")]


def parse_student(data: Any, class_id: Optional[str] = None) -> Student:
	validated = _validate_response(STUDENT_SCHEMA, _apply_aliases(data, _STUDENT_ALIASES), "student")
	return Student(
		id=validated["id"],
		roll_no=validated["rollNo"],
		name=validated["name"],
		class_id=validated["classId"] or class_id,
	)


def parse_students(data: Any, class_id: Optional[str] = None) -> List[Student]:
	return [parse_student(item, class_id) for item in _require_list(data, "students")]


def parse_analytics(data: Any) -> AnalyticsSeries:
	validated = _validate_response(ANALYTICS_SCHEMA, data, "analytics")
	if len(validated["dates"]) != len(validated["rates"]):
		raise AttendanceDataError(
			f"Unexpected analytics response from server: {len(validated['dates'])} dates "
			f"but {len(validated['rates'])} rates"
		)
	return AnalyticsSeries(dates=tuple(validated["dates"]), rates=tuple(validated["rates"]))


def extract_error_message(data: Any) -> Optional[str]:
	"""Pull a human-readable message out of an error body, if it has one."""
	if isinstance(data, str):
		return data.strip() or None
	try:
		body = ERROR_BODY_SCHEMA(data)
	except vol.Invalid:
		return None
	error = body.get("error")
	# Some services nest the message: {"error": {"message": "..."}}
	if isinstance(error, dict):
		error = error.get("message")
	return error or body.get("message") or None


def validate_credentials(email: Any, password: Any) -> Tuple[str, str]:
	try:
		validated = CREDENTIALS_SCHEMA({"email": email, "password": password})
	except vol.Invalid as err:
		raise AttendanceValidationError("Please enter your email and password") from err
	return validated["email"], validated["password"]


def validate_class_input(name: Any, description: Any, timings: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
	"""Validate the class creation form; every weekday is present in the result."""
	try:
		validated = CLASS_INPUT_SCHEMA({
			"name": name,
			"description": description,
			"timings": dict(timings or {}),
		})
	except vol.Invalid as err:
		path = err.path[0] if getattr(err, "path", None) else None
		if path == "timings":
			raise AttendanceValidationError(f"Invalid class schedule: {err}") from err
		raise AttendanceValidationError(MSG_FILL_ALL_FIELDS) from err
	validated["timings"] = {day: validated["timings"].get(day) for day in WEEKDAYS}
	return validated


def validate_student_input(roll_no: Any, name: Any) -> Tuple[int, str]:
	"""Validate the add-student form and return the numeric roll number."""
	try:
		validated = STUDENT_INPUT_SCHEMA({"rollNo": roll_no, "name": name})
	except vol.Invalid as err:
		raise AttendanceValidationError(MSG_FILL_ALL_FIELDS) from err
	try:
		number = int(validated["rollNo"])
	except ValueError as err:
		raise AttendanceValidationError(MSG_ROLL_NO_INVALID) from err
	if number <= 0:
		raise AttendanceValidationError(MSG_ROLL_NO_INVALID)
	return number, validated["name"]
