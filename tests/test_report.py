"""Tests for CSV report rendering."""

import asyncio
import csv
import io
from datetime import date

from attendance_client.analytics import derive_report
from attendance_client.models import Student
from attendance_client.report import CsvReportRenderer


def _rows(content: bytes):
	return list(csv.reader(io.StringIO(content.decode("utf-8"))))


def test_csv_has_summary_then_one_row_per_day():
	report = derive_report(["2026-10-12", "2026-10-13"], [100, 50], 4)
	rows = _rows(CsvReportRenderer().render(report, "class_c1_analytics", date(2026, 10, 18)))

	assert rows[0] == ["Report", "class_c1_analytics"]
	assert rows[1] == ["Generated", "2026-10-18"]
	assert rows[2] == ["Total students", "4"]
	assert rows[3] == ["Average rate (%)", "75.0"]
	assert rows[4] == ["Highest rate (%)", "100.0"]
	assert rows[5] == ["Lowest rate (%)", "50.0"]
	assert rows[7] == ["Date", "Present", "Absent", "Rate (%)"]
	assert rows[8:] == [
		["2026-10-12", "4", "0", "100.0"],
		["2026-10-13", "2", "2", "50.0"],
	]


def test_empty_report_has_no_day_rows():
	rows = _rows(CsvReportRenderer().render(derive_report([], [], 0), "empty"))
	assert rows[-1] == ["Date", "Present", "Absent", "Rate (%)"]


def test_save_writes_the_file(tmp_path):
	report = derive_report(["2026-10-12"], [50], 2)
	target = tmp_path / "out" / "report.csv"

	written = asyncio.run(CsvReportRenderer().save(report, "class_c1_analytics", target))

	assert written == target
	assert _rows(target.read_bytes())[8] == ["2026-10-12", "1", "1", "50.0"]


def test_roster_csv_lists_students_with_marks():
	students = [
		Student(id="s1", roll_no=1, name="Ada", class_id="c1"),
		Student(id="s2", roll_no=2, name="Bea", class_id="c1"),
	]
	content = CsvReportRenderer().render_roster(
		"c1", students, {"s1": True, "s2": False}, "class_c1_details", date(2026, 10, 18)
	)
	rows = _rows(content)

	assert rows[0] == ["Report", "class_c1_details"]
	assert rows[1] == ["Class", "c1"]
	assert rows[2] == ["Last updated", "2026-10-18"]
	assert rows[3] == ["Total students", "2"]
	assert rows[5:] == [["Roll No", "Name", "Present"], ["1", "Ada", "yes"], ["2", "Bea", "no"]]
