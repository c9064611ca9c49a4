"""Working roster and attendance marks for one class."""

import asyncio
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from .client import AttendanceApiClient
from .const import (
	DEFAULT_ATTENDANCE_MARK,
	MSG_ROLL_NO_EXISTS,
	MSG_ROLL_NO_NOT_SEQUENTIAL,
	NEW_STUDENT_ATTENDANCE_MARK,
)
from .exceptions import AttendanceBusyError, AttendanceDataError, AttendanceValidationError
from .models import Student
from .schemas import validate_student_input
from .utils import round_half_up

_LOGGER = logging.getLogger(__name__)


def _roll_sort_key(student: Student) -> Tuple[int, float, str]:
	number = student.roll_number
	if number is None:
		return (1, 0, str(student.roll_no))
	return (0, number, "")


class ViewScope:
	"""Lifetime of the screen a request was started from.

	Results that arrive after the scope is closed are dropped instead of
	being applied to state nobody is looking at any more.
	"""

	def __init__(self, name: str = "view") -> None:
		self.name = name
		self._active = True

	@property
	def active(self) -> bool:
		return self._active

	def close(self) -> None:
		self._active = False

	def __enter__(self) -> "ViewScope":
		return self

	def __exit__(self, exc_type, exc_val, exc_tb) -> None:
		self.close()


class RosterState:
	"""Students of one class and the attendance being marked for them."""

	def __init__(self, client: AttendanceApiClient, class_id: str, scope: Optional[ViewScope] = None) -> None:
		self._client = client
		self.class_id = class_id
		self._scope = scope or ViewScope(f"roster {class_id}")
		self._students: List[Student] = []
		self._marks: Dict[str, bool] = {}
		self._lock = asyncio.Lock()
		self._pending_loads = 0
		self.last_saved: Optional[Dict[str, bool]] = None
		self.last_saved_on: Optional[date] = None

	@property
	def students(self) -> Tuple[Student, ...]:
		return tuple(self._students)

	@property
	def marks(self) -> Dict[str, bool]:
		return dict(self._marks)

	@property
	def total_students(self) -> int:
		return len(self._students)

	@property
	def present_count(self) -> int:
		return sum(1 for present in self._marks.values() if present)

	@property
	def absent_count(self) -> int:
		return self.total_students - self.present_count

	@property
	def attendance_rate_percent(self) -> float:
		if not self._students:
			return 0.0
		return round_half_up(self.present_count / self.total_students * 100, 1)

	@property
	def present_ids(self) -> List[str]:
		"""Ids marked present, in roster order."""
		return [student.id for student in self._students if self._marks.get(student.id)]

	def is_present(self, student_id: str) -> bool:
		return self._marks.get(student_id, False)

	async def load(self) -> Optional[List[Student]]:
		"""Fetch the roster and reset every mark to the default.

		Returns:
			The sorted roster, or None if the view closed before it arrived.
		"""
		# Counted from before the lock so a load queued behind an add still blocks commits
		self._pending_loads += 1
		try:
			async with self._lock:
				students = await self._client.get_students(self.class_id)

				if not self._scope.active:
					_LOGGER.debug(f"Discarding roster for class {self.class_id}: {self._scope.name} closed")
					return None

				self._students = sorted(students, key=_roll_sort_key)
				self._marks = {student.id: DEFAULT_ATTENDANCE_MARK for student in self._students}
				_LOGGER.debug(f"Loaded {len(self._students)} students for class {self.class_id}")
				return list(self._students)
		finally:
			self._pending_loads -= 1

	def toggle(self, student_id: str) -> bool:
		"""Flip one student's mark and return the new value."""
		self._require_student(student_id)
		self._marks[student_id] = not self._marks[student_id]
		return self._marks[student_id]

	def set_mark(self, student_id: str, present: bool) -> None:
		self._require_student(student_id)
		self._marks[student_id] = bool(present)

	async def add_student(self, roll_no, name) -> Optional[Student]:
		"""Add a student after checking the roll number locally.

		Roll numbers are numeric, unique and strictly sequential. The new
		student is marked present.

		Returns:
			The new student, or None if the view closed before it arrived.
		"""
		number, name = validate_student_input(roll_no, name)
		self._check_roll_number(number)

		async with self._lock:
			# The roster may have changed while waiting for the lock
			self._check_roll_number(number)
			created = await self._client.add_student(self.class_id, number, name)
			if created is None:
				created = await self._find_created_student(number)

			if not self._scope.active:
				_LOGGER.debug(f"Discarding new student {number}: {self._scope.name} closed")
				return None

			self._students.append(created)
			self._students.sort(key=_roll_sort_key)
			self._marks[created.id] = NEW_STUDENT_ATTENDANCE_MARK
			_LOGGER.info(f"Added student {created} to class {self.class_id}")
			return created

	async def commit_attendance(self, day: Optional[date] = None) -> None:
		"""Send today's (or the given day's) present list to the backend.

		Marks stay as they are whether or not the save succeeds.
		"""
		if self._pending_loads:
			raise AttendanceBusyError("Roster is still loading, try again when it has finished")

		async with self._lock:
			day = day or date.today()
			snapshot = dict(self._marks)
			await self._client.save_attendance(self.class_id, day, self.present_ids)

			if not self._scope.active:
				_LOGGER.debug(f"Attendance saved after {self._scope.name} closed")
				return
			self.last_saved = snapshot
			self.last_saved_on = day
			_LOGGER.info(
				f"Saved attendance for class {self.class_id} on {day.isoformat()}: "
				f"{self.present_count}/{self.total_students} present"
			)

	def _require_student(self, student_id: str) -> None:
		if student_id not in self._marks:
			raise AttendanceValidationError(f"Student {student_id} is not on this roster")

	def _check_roll_number(self, number: int) -> None:
		existing = [s.roll_number for s in self._students if s.roll_number is not None]
		if number in existing:
			raise AttendanceValidationError(MSG_ROLL_NO_EXISTS)
		if existing and number != max(existing) + 1:
			raise AttendanceValidationError(MSG_ROLL_NO_NOT_SEQUENTIAL)

	async def _find_created_student(self, number: int) -> Student:
		# Server did not echo the student back; look it up without touching marks
		students = await self._client.get_students(self.class_id)
		for student in students:
			if student.roll_number == number:
				return student
		raise AttendanceDataError(f"Student {number} was added but is missing from the class roster")
