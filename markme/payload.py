"""Conversion of MarkMe API JSON into the report models.

Everything the API returns passes through here once, so the rest of the
package only ever sees typed models with a fixed shape.
"""
import json
from datetime import datetime

from markme.constants import ML_STATUSES
from markme.models import (
    Student,
    Faculty,
    ClassRef,
    Session,
    StudentAttendance,
    DailyAttendance,
    StudentStat,
    OverallStats,
    Course,
    AttendancePayload,
)


class PayloadError(ValueError):
    """Raised when the API returns data the report cannot use."""


def unwrap(response):
    # {success, message, data}
    if not isinstance(response, dict):
        raise PayloadError("response is not a JSON object")
    if response.get("success") is False:
        raise PayloadError(response.get("message") or "request was not successful")
    return response.get("data")


def iso_date(value):
    if not isinstance(value, str) or len(value) < 10:
        raise PayloadError(f"invalid date: {value!r}")
    day = value[:10]
    try:
        datetime.strptime(day, "%Y-%m-%d")
    except ValueError:
        raise PayloadError(f"invalid date: {value!r}")
    return day


def _require(data, key, what):
    if not isinstance(data, dict):
        raise PayloadError(f"{what} is not an object")
    if key not in data:
        raise PayloadError(f"{what} is missing '{key}'")
    return data[key]


def _to_int(value, what):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise PayloadError(f"{what} is not an integer: {value!r}")


def _text(value):
    return "" if value is None else str(value)


def parse_student(data):
    return Student(
        id=_to_int(_require(data, "id", "student"), "student id"),
        first_name=_text(data.get("firstName")),
        last_name=_text(data.get("lastName")),
        roll_number=_text(data.get("rollNumber")),
        branch=_text(data.get("branch")),
        section=_text(data.get("section")),
        subsection=_text(data.get("subsection")),
    )


def parse_faculty(data):
    # records without a marking faculty come back as null or {}
    if not data:
        return None
    if not isinstance(data, dict):
        raise PayloadError("faculty is not an object")
    user = data.get("user") or {}
    faculty_id = data.get("id")
    return Faculty(
        id=_to_int(faculty_id, "faculty id") if faculty_id is not None else None,
        first_name=_text(data.get("firstName")),
        last_name=_text(data.get("lastName")),
        department=_text(data.get("department")),
        email=_text(user.get("email") or data.get("email")),
    )


def _parse_class_label(label):
    label = label.strip()
    if "-" in label:
        branch, section = label.split("-", 1)
        return ClassRef(branch.strip(), section.strip())
    return ClassRef(label, "")


def normalize_classes(value):
    """Normalize every shape the API uses for a session's class list.

    Accepted shapes: ``None``, ``"CSE-A, ECE-B"``, a JSON string of any of
    these shapes, ``["CSE - A"]``, ``[{"branch": "CSE", "section": "A"}]``
    and ``{"classes": <any of the above>}``. The result is always a tuple of
    :class:`ClassRef`.
    """
    if value is None or value == "":
        return ()
    if isinstance(value, dict):
        return normalize_classes(value.get("classes"))
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith(("[", "{")):
            try:
                return normalize_classes(json.loads(stripped))
            except json.JSONDecodeError:
                raise PayloadError(f"invalid classes: {value!r}")
        return tuple(_parse_class_label(part) for part in stripped.split(",") if part.strip())
    if isinstance(value, (list, tuple)):
        refs = []
        for item in value:
            if isinstance(item, dict):
                refs.append(ClassRef(_text(item.get("branch")), _text(item.get("section"))))
            elif isinstance(item, str):
                if item.strip():
                    refs.append(_parse_class_label(item))
            else:
                raise PayloadError(f"invalid class entry: {item!r}")
        return tuple(refs)
    raise PayloadError(f"invalid classes: {value!r}")


def parse_session(data):
    if not data:
        return Session(id=None)
    if not isinstance(data, dict):
        raise PayloadError("session is not an object")
    session_id = data.get("id")
    status = data.get("mlStatus") or "pending"
    if status not in ML_STATUSES:
        raise PayloadError(f"unknown session status: {status!r}")
    session_date = data.get("sessionDate")
    return Session(
        id=_to_int(session_id, "session id") if session_id is not None else None,
        room=data.get("room") or None,
        classes=normalize_classes(data.get("classes")),
        ml_status=status,
        session_date=session_date or None,
    )


def parse_daily_attendance(key, data):
    if not isinstance(data, dict):
        raise PayloadError(f"attendance for {key!r} is not an object")
    day = iso_date(data.get("date") or key)
    session = parse_session(data.get("session"))
    day_faculty = parse_faculty(data.get("faculty"))
    students = []
    for entry in data.get("students") or []:
        students.append(StudentAttendance(
            student=parse_student(_require(entry, "student", "attendance entry")),
            is_present=bool(_require(entry, "isPresent", "attendance entry")),
            faculty=parse_faculty(entry.get("faculty")) or day_faculty,
            session=session,
        ))
    return DailyAttendance(
        date=day,
        session=session,
        students=students,
        faculty=day_faculty,
    )


def _percentage_text(value):
    if value is None:
        return "0"
    # JSON numbers print the way the backend sent them, so 90.0 stays "90"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_student_stat(data):
    return StudentStat(
        student=parse_student(_require(data, "student", "student stat")),
        total_classes=_to_int(data.get("totalClasses", 0), "totalClasses"),
        present_count=_to_int(data.get("presentCount", 0), "presentCount"),
        attendance_percentage=_percentage_text(data.get("attendancePercentage")),
    )


def parse_overall_stats(data):
    if not data:
        return OverallStats()
    if not isinstance(data, dict):
        raise PayloadError("overallStats is not an object")
    try:
        percentage = float(data.get("overallAttendancePercentage") or 0)
    except (TypeError, ValueError):
        raise PayloadError("overallAttendancePercentage is not a number")
    return OverallStats(
        total_sessions=_to_int(data.get("totalSessions") or 0, "totalSessions"),
        total_attendance_records=_to_int(data.get("totalAttendanceRecords") or 0, "totalAttendanceRecords"),
        total_present=_to_int(data.get("totalPresent") or 0, "totalPresent"),
        overall_attendance_percentage=percentage,
    )


def parse_attendance_payload(data):
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PayloadError("attendance data is not an object")

    by_date = {}
    raw_by_date = data.get("attendanceByDate")
    if raw_by_date is None:
        raw_by_date = {}
    if not isinstance(raw_by_date, dict):
        raise PayloadError("attendanceByDate is not an object")
    for key, value in raw_by_date.items():
        daily = parse_daily_attendance(key, value)
        if daily.date in by_date:
            # two keys for the same calendar day (e.g. timestamps)
            by_date[daily.date].students.extend(daily.students)
        else:
            by_date[daily.date] = daily

    raw_stats = data.get("studentStats")
    if raw_stats is None:
        raw_stats = []
    if not isinstance(raw_stats, list):
        raise PayloadError("studentStats is not a list")

    return AttendancePayload(
        attendance_by_date=by_date,
        student_stats=[parse_student_stat(s) for s in raw_stats],
        overall_stats=parse_overall_stats(data.get("overallStats")),
    )


def parse_course(data):
    # /faculty/me/course returns assignments wrapping the course
    if isinstance(data, dict) and isinstance(data.get("course"), dict):
        data = data["course"]
    credits = data.get("credits") if isinstance(data, dict) else None
    return Course(
        id=_to_int(_require(data, "id", "course"), "course id"),
        course_name=_text(data.get("courseName")),
        credits=_to_int(credits, "credits") if credits is not None else None,
        description=_text(data.get("description")),
        course_code=_text(data.get("courseCode")),
    )


def parse_courses(data):
    if data is None:
        return []
    if not isinstance(data, list):
        raise PayloadError("course list is not a list")
    return [parse_course(item) for item in data]
