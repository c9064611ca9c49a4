"""Data models for attendance client entities."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple, Union

from .const import WEEKDAYS


@dataclass
class Session:
	"""The authenticated identity attached to outbound calls."""
	token: str
	token_issued_at: datetime
	user_id: str
	email: str
	teacher_id: str
	is_valid: bool = True

	def __repr__(self) -> str:
		# Keep tokens out of logs and tracebacks
		return (
			f"Session(user_id={self.user_id!r}, teacher_id={self.teacher_id!r}, "
			f"issued={self.token_issued_at.isoformat()}, valid={self.is_valid})"
		)


@dataclass
class ClassRecord:
	"""A class taught by the teacher."""
	id: str
	name: str
	description: str = ""
	weekly_timings: Dict[str, Optional[str]] = field(default_factory=dict)
	teacher_id: Optional[str] = None

	def timing_for(self, weekday: str) -> Optional[str]:
		"""Get the scheduled time for a weekday, if any."""
		return self.weekly_timings.get(weekday) or None

	@property
	def scheduled_days(self) -> Tuple[str, ...]:
		"""Weekdays that have a time set, in calendar order."""
		return tuple(day for day in WEEKDAYS if self.timing_for(day))

	def __str__(self) -> str:
		return self.name


@dataclass
class Student:
	"""A student on a class roster."""
	id: str
	roll_no: Union[int, str]
	name: str
	class_id: Optional[str] = None

	@property
	def roll_number(self) -> Optional[int]:
		"""Roll number as an integer, or None when it is not numeric."""
		if isinstance(self.roll_no, bool):
			return None
		if isinstance(self.roll_no, int):
			return self.roll_no
		try:
			return int(str(self.roll_no).strip())
		except ValueError:
			return None

	def __str__(self) -> str:
		return f"{self.roll_no}. {self.name}"


@dataclass(frozen=True)
class AnalyticsSeries:
	"""Historical attendance rates for a class, aligned by index with dates."""
	dates: Tuple[str, ...]
	rates: Tuple[float, ...]

	def __len__(self) -> int:
		return len(self.rates)


@dataclass(frozen=True)
class DayBreakdown:
	"""Attendance reconstructed for a single day."""
	date: str
	present_count: int
	absent_count: int
	rate: float


@dataclass(frozen=True)
class DerivedReport:
	"""Summary statistics derived from an analytics series."""
	average_rate: float
	max_rate: float
	min_rate: float
	per_day: Tuple[DayBreakdown, ...]
	total_students: int

	@property
	def is_empty(self) -> bool:
		"""True when there was no history to summarise."""
		return not self.per_day

	@property
	def total_present(self) -> int:
		return sum(day.present_count for day in self.per_day)

	@property
	def total_absent(self) -> int:
		return sum(day.absent_count for day in self.per_day)
