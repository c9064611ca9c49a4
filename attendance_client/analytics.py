"""Derived attendance statistics."""

import logging
from typing import Sequence

from .client import AttendanceApiClient
from .models import AnalyticsSeries, DayBreakdown, DerivedReport
from .utils import round_half_up

_LOGGER = logging.getLogger(__name__)


def derive_report(dates: Sequence[str], rates: Sequence[float], total_students: int) -> DerivedReport:
	"""Summarise a series of daily attendance rates.

	Per-day present counts are reconstructed from the rate and the current
	roster size, so they are exact only up to rounding.

	Args:
		dates: Day labels, index-aligned with ``rates``.
		rates: Attendance percentages between 0 and 100.
		total_students: Students currently on the roster.

	Returns:
		A fresh report; nothing is cached or patched between calls.
	"""
	if len(dates) != len(rates):
		raise ValueError(f"{len(dates)} dates do not line up with {len(rates)} rates")
	if total_students < 0:
		raise ValueError("total_students must not be negative")

	if not rates:
		return DerivedReport(
			average_rate=0.0,
			max_rate=0.0,
			min_rate=0.0,
			per_day=(),
			total_students=total_students,
		)

	per_day = []
	for day, rate in zip(dates, rates):
		present = int(round_half_up(total_students * rate / 100))
		per_day.append(DayBreakdown(
			date=day,
			present_count=present,
			absent_count=total_students - present,
			rate=float(rate),
		))

	return DerivedReport(
		average_rate=round_half_up(sum(rates) / len(rates), 1),
		max_rate=round_half_up(max(rates), 1),
		min_rate=round_half_up(min(rates), 1),
		per_day=tuple(per_day),
		total_students=total_students,
	)


def derive_series_report(series: AnalyticsSeries, total_students: int) -> DerivedReport:
	return derive_report(series.dates, series.rates, total_students)


async def fetch_class_report(client: AttendanceApiClient, class_id: str) -> DerivedReport:
	"""Fetch a class's history and roster size and derive its report."""
	series = await client.get_analytics(class_id)
	students = await client.get_students(class_id)
	_LOGGER.debug(f"Deriving report for class {class_id}: {len(series)} days, {len(students)} students")
	return derive_series_report(series, len(students))
