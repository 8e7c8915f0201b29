"""Course attendance report: fetch state plus the derived matrix view.

``AttendanceReport`` is what the window talks to. It fetches the payload,
keeps the selected filters and rebuilds the whole view from scratch whenever
any input changes. Fetches may run on worker threads; only the newest
attendance request is allowed to update the report.
"""
import logging
import threading
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from markme import export
from markme.client import ApiError
from markme.constants import HTTP_UNAUTHORIZED
from markme.logic import (
    build_filter_options,
    filter_students,
    sorted_dates,
    build_matrix,
    compute_overall_filtered_stats,
    group_by_branch,
    cell_detail,
    percentage_mismatches,
)
from markme.models import (
    AttendancePayload,
    Course,
    Filters,
    FilterOptions,
    FilteredStats,
    StudentStat,
)
from markme.payload import PayloadError, unwrap, parse_attendance_payload, parse_courses

logger = logging.getLogger(__name__)

IDLE = "idle"
LOADING = "loading"
ERROR = "error"
EMPTY = "empty"
READY = "ready"


def fetch_current_faculty_id(client):
    try:
        data = unwrap(client.get_profile()) or {}
    except (ApiError, PayloadError) as e:
        logger.error("Failed to fetch faculty profile: %s", e)
        return None

    # /faculty/me answers {"faculty": {...}}
    faculty = data.get("faculty", data) if isinstance(data, dict) else {}
    faculty_id = faculty.get("id") if isinstance(faculty, dict) else None
    try:
        return int(faculty_id) if faculty_id is not None else None
    except (TypeError, ValueError):
        logger.error("Faculty profile has an invalid id: %r", faculty_id)
        return None


@dataclass
class ReportView:
    filter_options: FilterOptions
    filtered_students: List[StudentStat]
    dates: List[str]
    matrix: Dict[int, Dict[str, object]]
    stats: FilteredStats
    groups: Dict[str, List[StudentStat]]


class AttendanceReport:
    def __init__(self, client, course_id, current_faculty_id=None, faculty_id=None):
        self.client = client
        self.course_id = course_id
        self.current_faculty_id = current_faculty_id
        # set when an admin looks at another faculty's records
        self.faculty_id = faculty_id

        self.status = IDLE
        self.error: Optional[str] = None
        self.error_status: Optional[int] = None
        self.payload: Optional[AttendancePayload] = None
        self.course: Optional[Course] = None
        self.course_error: Optional[str] = None
        self.filters = Filters()
        self.only_marked_by_me = False

        self._lock = threading.Lock()
        self._latest_request = 0
        self._last_range = (None, None)

    # ==================================================
    # Fetching
    # ==================================================

    def begin_request(self):
        with self._lock:
            self._latest_request += 1
            self.status = LOADING
            self.error = None
            self.error_status = None
            return self._latest_request

    def fetch_attendance(self, from_date=None, to_date=None, request_id=None):
        """Fetch and install the attendance payload.

        Returns True when the response was applied, False when it failed or
        a newer request superseded it.
        """
        if request_id is None:
            request_id = self.begin_request()
        self._last_range = (from_date, to_date)

        try:
            if self.faculty_id is None:
                response = self.client.get_attendance(self.course_id, from_date, to_date)
            else:
                response = self.client.get_faculty_attendance(
                    self.faculty_id, self.course_id, from_date, to_date
                )
            payload = parse_attendance_payload(unwrap(response))
        except (ApiError, PayloadError) as e:
            logger.error("Failed to fetch attendance for course %s: %s", self.course_id, e)
            return self._finish(
                request_id,
                error=str(e) or "Failed to fetch attendance data",
                error_status=getattr(e, "status", None),
            )

        return self._finish(request_id, payload=payload)

    def _finish(self, request_id, payload=None, error=None, error_status=None):
        with self._lock:
            if request_id != self._latest_request:
                logger.debug("Discarding stale response %s (latest is %s)", request_id, self._latest_request)
                return False

            if error is not None:
                self.status = ERROR
                self.error = error
                self.error_status = error_status
                return False

            self.payload = payload
            self.error = None
            self.error_status = None
            self.status = EMPTY if payload.is_empty else READY

        mismatches = percentage_mismatches(payload.student_stats)
        if mismatches:
            logger.warning(
                "%d student percentages differ from present/total: %s",
                len(mismatches),
                ", ".join(s.student.roll_number for s in mismatches),
            )
        logger.info(
            "Loaded %d dates and %d students for course %s",
            len(payload.attendance_by_date), len(payload.student_stats), self.course_id,
        )
        return True

    @property
    def needs_login(self):
        return self.error_status == HTTP_UNAUTHORIZED

    def retry(self):
        from_date, to_date = self._last_range
        return self.fetch_attendance(from_date, to_date)

    def fetch_course(self):
        try:
            courses = parse_courses(unwrap(self.client.get_courses()))
        except (ApiError, PayloadError) as e:
            logger.error("Failed to fetch course info: %s", e)
            self.course_error = str(e) or "Failed to fetch course info"
            return None

        self.course_error = None
        self.course = next((c for c in courses if c.id == self.course_id), None)
        if self.course is None:
            logger.warning("Course %s is not among the faculty's courses", self.course_id)
        return self.course

    def fetch_current_faculty(self):
        faculty_id = fetch_current_faculty_id(self.client)
        if faculty_id is not None:
            self.current_faculty_id = faculty_id
        return self.current_faculty_id

    # ==================================================
    # Derived view
    # ==================================================

    def set_filters(self, **changes):
        self.filters = replace(self.filters, **changes)

    def reset_filters(self):
        self.filters = Filters()
        self.only_marked_by_me = False

    def set_only_marked_by_me(self, enabled):
        self.only_marked_by_me = bool(enabled)

    @property
    def view(self):
        payload = self.payload or AttendancePayload()
        filtered = filter_students(payload.student_stats, self.filters)
        dates = sorted_dates(payload.attendance_by_date)
        matrix = build_matrix(
            payload.attendance_by_date,
            filtered,
            dates,
            only_marked_by_me=self.only_marked_by_me,
            current_faculty_id=self.current_faculty_id,
        )
        return ReportView(
            filter_options=build_filter_options(payload.student_stats),
            filtered_students=filtered,
            dates=dates,
            matrix=matrix,
            stats=compute_overall_filtered_stats(filtered, payload.overall_stats),
            groups=group_by_branch(filtered),
        )

    def detail(self, student_id, date):
        return cell_detail(self.view.matrix, student_id, date)

    @property
    def course_name(self):
        return self.course.course_name if self.course else None

    def export_csv(self, folder, notify=export.log_notice, today=None):
        view = self.view
        return export.export_csv(
            view.filtered_students, view.dates, view.matrix,
            self.course_name, folder, notify=notify, today=today,
        )

    def export_excel(self, folder, notify=export.log_notice, today=None):
        view = self.view
        return export.export_excel(
            view.filtered_students, view.dates, view.matrix,
            self.course_name, folder, notify=notify, today=today,
        )
