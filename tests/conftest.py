import pytest

from markme.payload import parse_attendance_payload


def student_json(student_id, roll, branch="CSE", section="A", first="Student", last=None):
    return {
        "id": student_id,
        "firstName": first,
        "lastName": last or str(student_id),
        "rollNumber": roll,
        "branch": branch,
        "section": section,
        "subsection": f"{section}1",
    }


FACULTY_ME = {"id": 7, "firstName": "Asha", "lastName": "Rao", "department": "CSE",
              "user": {"email": "asha@example.edu"}}
FACULTY_OTHER = {"id": 8, "firstName": "Vikram", "lastName": "Sen", "department": "ECE"}


@pytest.fixture
def raw_attendance():
    s1 = student_json(1, "2023BT23CSE001", "CSE", "A", "Anil", "Kumar")
    s2 = student_json(2, "2022bt22ECE014", "ECE", "B", "Bina", "Das")
    s3 = student_json(3, "LATERAL-7", "CSE", "B", "Chetan", "Iyer")
    return {
        "attendanceByDate": {
            "2024-03-05": {
                "date": "2024-03-05",
                "session": {"id": 11, "room": "LT-1", "classes": {"classes": [
                    {"branch": "CSE", "section": "A"}, {"branch": "ECE", "section": "B"}]},
                    "mlStatus": "processed", "sessionDate": "2024-03-05T09:00:00.000Z"},
                "faculty": FACULTY_ME,
                "students": [
                    {"student": s1, "isPresent": True},
                    {"student": s2, "isPresent": False, "faculty": FACULTY_OTHER},
                ],
            },
            "2024-03-01": {
                "date": "2024-03-01",
                "session": {"id": 10, "room": None, "classes": "CSE-A, CSE-B", "mlStatus": "processed"},
                "faculty": FACULTY_ME,
                "students": [
                    {"student": s1, "isPresent": False},
                    {"student": s3, "isPresent": True},
                ],
            },
        },
        "studentStats": [
            {"student": s1, "totalClasses": 2, "presentCount": 1, "attendancePercentage": "50.00"},
            {"student": s2, "totalClasses": 1, "presentCount": 0, "attendancePercentage": "0.00"},
            {"student": s3, "totalClasses": 1, "presentCount": 1, "attendancePercentage": "100.00"},
        ],
        "overallStats": {
            "totalSessions": 2,
            "totalAttendanceRecords": 4,
            "totalPresent": 2,
            "overallAttendancePercentage": 50,
        },
    }


@pytest.fixture
def payload(raw_attendance):
    return parse_attendance_payload(raw_attendance)


class FakeClient:
    """Stands in for ApiClient; each attribute is a list of queued results."""

    def __init__(self, attendance=None, courses=None, profile=None):
        self.attendance = list(attendance or [])
        self.courses = list(courses or [])
        self.profile = list(profile or [])
        self.calls = []

    def _next(self, queue):
        result = queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def get_attendance(self, course_id, from_date=None, to_date=None):
        self.calls.append(("get_attendance", course_id, from_date, to_date))
        return self._next(self.attendance)

    def get_faculty_attendance(self, faculty_id, course_id, from_date=None, to_date=None):
        self.calls.append(("get_faculty_attendance", faculty_id, course_id, from_date, to_date))
        return self._next(self.attendance)

    def get_courses(self):
        self.calls.append(("get_courses",))
        return self._next(self.courses)

    def get_profile(self):
        self.calls.append(("get_profile",))
        return self._next(self.profile)
