import re
import logging
from datetime import datetime

from markme.constants import ALL, BATCH_PATTERN, BATCH_CENTURY, PRESENT_MARK, ABSENT_MARK
from markme.models import (
    AttendanceCell,
    AttendanceDetail,
    FilterOptions,
    FilteredStats,
)

logger = logging.getLogger(__name__)

_BATCH_RE = re.compile(BATCH_PATTERN, re.IGNORECASE)

# ==================================================
# Filters
# ==================================================

def extract_batch(roll_number):
    match = _BATCH_RE.search(roll_number or "")
    if not match:
        return None
    return f"{BATCH_CENTURY}{match.group(1)}"


def build_filter_options(student_stats):
    batches = set()
    branches = set()
    sections = set()

    for stat in student_stats:
        batch = extract_batch(stat.student.roll_number)
        if batch:
            batches.add(batch)
        branches.add(stat.student.branch)
        sections.add(stat.student.section)

    return FilterOptions(
        batches=sorted(batches),
        branches=sorted(branches),
        sections=sorted(sections),
    )


def filter_students(student_stats, filters):
    result = []
    for stat in student_stats:
        student = stat.student
        if filters.batch != ALL and extract_batch(student.roll_number) != filters.batch:
            continue
        if filters.branch != ALL and student.branch != filters.branch:
            continue
        if filters.section != ALL and student.section != filters.section:
            continue
        result.append(stat)
    return result


def group_by_branch(filtered_students):
    groups = {}
    for stat in filtered_students:
        groups.setdefault(stat.student.branch, []).append(stat)
    return groups

# ==================================================
# Matrix
# ==================================================

def sorted_dates(attendance_by_date):
    return sorted(set(attendance_by_date))


def build_matrix(attendance_by_date, filtered_students, dates,
                 only_marked_by_me=False, current_faculty_id=None):
    """Pivot per-date attendance into ``matrix[student_id][date]``.

    Every filtered student gets a cell for every date; ``None`` means the
    student has no record that day. Students outside ``filtered_students``
    get no row even when they have records.

    With ``only_marked_by_me`` set, cells recorded by a faculty other than
    ``current_faculty_id`` are reported as ``None``. Without a faculty id the
    flag has no effect.
    """
    matrix = {}
    for stat in filtered_students:
        matrix[stat.student.id] = {date: None for date in dates}

    for date, daily in attendance_by_date.items():
        for entry in daily.students:
            row = matrix.get(entry.student.id)
            if row is None or date not in row:
                continue
            row[date] = AttendanceCell(
                is_present=entry.is_present,
                faculty=entry.faculty,
                session=entry.session or daily.session,
                student=entry.student,
            )

    if only_marked_by_me:
        if current_faculty_id is None:
            logger.warning("'Only marked by me' is on but the current faculty is unknown, ignoring it")
        else:
            for row in matrix.values():
                for date, cell in row.items():
                    if cell is None:
                        continue
                    if cell.faculty is None or cell.faculty.id != current_faculty_id:
                        row[date] = None

    return matrix


def cell_detail(matrix, student_id, date):
    cell = matrix.get(student_id, {}).get(date)
    if cell is None:
        return None
    return AttendanceDetail(
        student=cell.student,
        date=date,
        is_present=cell.is_present,
        faculty=cell.faculty,
        session=cell.session,
    )

# ==================================================
# Statistics
# ==================================================

def compute_overall_filtered_stats(filtered_students, overall_stats):
    # sessions and present counts describe the whole course, not the filter
    return FilteredStats(
        total_sessions=overall_stats.total_sessions,
        total_students=len(filtered_students),
        total_present=overall_stats.total_present,
        overall_percentage=overall_stats.overall_attendance_percentage,
    )


def recompute_percentage(stat):
    if stat.total_classes == 0:
        return 0.0
    return stat.present_count / stat.total_classes * 100


def percentage_mismatches(student_stats, tolerance=0.05):
    mismatches = []
    for stat in student_stats:
        try:
            reported = float(stat.attendance_percentage)
        except ValueError:
            mismatches.append(stat)
            continue
        if abs(reported - recompute_percentage(stat)) > tolerance:
            mismatches.append(stat)
    return mismatches

# ==================================================
# Formatting
# ==================================================

def format_date_header(iso_date):
    return datetime.strptime(iso_date[:10], "%Y-%m-%d").strftime("%d/%m")


def format_date_long(iso_date):
    return datetime.strptime(iso_date[:10], "%Y-%m-%d").strftime("%d/%m/%Y")


def cell_mark(cell, empty=""):
    if cell is None:
        return empty
    return PRESENT_MARK if cell.is_present else ABSENT_MARK
