"""Report rendering for derived attendance reports and class rosters."""

import asyncio
import csv
import io
import logging
from datetime import date
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from .models import DerivedReport, Student

_LOGGER = logging.getLogger(__name__)


class ReportRenderer:
	"""Turns a derived report or a class roster into a downloadable document."""

	file_extension = ""

	def render(self, report: DerivedReport, title: str, generated_on: Optional[date] = None) -> bytes:
		raise NotImplementedError

	def render_roster(self, class_id: str, students: Sequence[Student], marks: Mapping[str, bool],
	                  title: str, generated_on: Optional[date] = None) -> bytes:
		raise NotImplementedError

	async def save(self, report: DerivedReport, title: str, path: Union[str, Path]) -> Path:
		"""Render and write the report off the event loop."""
		return await self._write(self.render(report, title), title, path)

	async def save_roster(self, class_id: str, students: Sequence[Student], marks: Mapping[str, bool],
	                      title: str, path: Union[str, Path]) -> Path:
		"""Render and write the class roster with its current marks."""
		return await self._write(self.render_roster(class_id, students, marks, title), title, path)

	async def _write(self, content: bytes, title: str, path: Union[str, Path]) -> Path:
		target = Path(path)

		def _write_file():
			target.parent.mkdir(parents=True, exist_ok=True)
			target.write_bytes(content)

		await asyncio.to_thread(_write_file)
		_LOGGER.info(f"Wrote report '{title}' to {target}")
		return target


class CsvReportRenderer(ReportRenderer):
	"""Summary rows followed by one row per day (or per student)."""

	file_extension = ".csv"

	def render(self, report: DerivedReport, title: str, generated_on: Optional[date] = None) -> bytes:
		generated_on = generated_on or date.today()
		buffer = io.StringIO()
		writer = csv.writer(buffer)

		writer.writerow(["Report", title])
		writer.writerow(["Generated", generated_on.isoformat()])
		writer.writerow(["Total students", report.total_students])
		writer.writerow(["Average rate (%)", f"{report.average_rate:.1f}"])
		writer.writerow(["Highest rate (%)", f"{report.max_rate:.1f}"])
		writer.writerow(["Lowest rate (%)", f"{report.min_rate:.1f}"])
		writer.writerow([])
		writer.writerow(["Date", "Present", "Absent", "Rate (%)"])
		for day in report.per_day:
			writer.writerow([day.date, day.present_count, day.absent_count, f"{day.rate:.1f}"])

		return buffer.getvalue().encode("utf-8")

	def render_roster(self, class_id: str, students: Sequence[Student], marks: Mapping[str, bool],
	                  title: str, generated_on: Optional[date] = None) -> bytes:
		generated_on = generated_on or date.today()
		buffer = io.StringIO()
		writer = csv.writer(buffer)

		writer.writerow(["Report", title])
		writer.writerow(["Class", class_id])
		writer.writerow(["Last updated", generated_on.isoformat()])
		writer.writerow(["Total students", len(students)])
		writer.writerow([])
		writer.writerow(["Roll No", "Name", "Present"])
		for student in students:
			writer.writerow([student.roll_no, student.name, "yes" if marks.get(student.id) else "no"])

		return buffer.getvalue().encode("utf-8")
