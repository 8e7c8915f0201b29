from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple

from markme.constants import ALL


@dataclass(frozen=True)
class Student:
    id: int
    first_name: str
    last_name: str
    roll_number: str
    branch: str
    section: str
    subsection: str = ""

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Faculty:
    id: Optional[int]
    first_name: str = ""
    last_name: str = ""
    department: str = ""
    email: str = ""

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class ClassRef:
    branch: str
    section: str

    def __str__(self):
        if not self.section:
            return self.branch
        return f"{self.branch} - {self.section}"


@dataclass(frozen=True)
class Session:
    id: Optional[int]
    room: Optional[str] = None
    classes: Tuple[ClassRef, ...] = ()
    ml_status: str = "pending"
    session_date: Optional[str] = None


@dataclass
class StudentAttendance:
    student: Student
    is_present: bool
    # already falls back to the date-level faculty of the key it came from
    faculty: Optional[Faculty] = None
    session: Optional[Session] = None


@dataclass
class DailyAttendance:
    date: str
    session: Session
    students: List[StudentAttendance]
    faculty: Optional[Faculty] = None


@dataclass
class StudentStat:
    student: Student
    total_classes: int
    present_count: int
    attendance_percentage: str


@dataclass
class OverallStats:
    total_sessions: int = 0
    total_attendance_records: int = 0
    total_present: int = 0
    overall_attendance_percentage: float = 0.0


@dataclass
class Course:
    id: int
    course_name: str
    credits: Optional[int] = None
    description: str = ""
    course_code: str = ""


@dataclass
class AttendancePayload:
    attendance_by_date: Dict[str, DailyAttendance] = field(default_factory=dict)
    student_stats: List[StudentStat] = field(default_factory=list)
    overall_stats: OverallStats = field(default_factory=OverallStats)

    @property
    def is_empty(self):
        return not self.attendance_by_date and not self.student_stats


@dataclass(frozen=True)
class AttendanceCell:
    is_present: bool
    faculty: Optional[Faculty]
    session: Session
    student: Student


@dataclass(frozen=True)
class AttendanceDetail:
    student: Student
    date: str
    is_present: bool
    faculty: Optional[Faculty]
    session: Session


@dataclass(frozen=True)
class Filters:
    batch: str = ALL
    branch: str = ALL
    section: str = ALL


@dataclass
class FilterOptions:
    batches: List[str]
    branches: List[str]
    sections: List[str]


@dataclass
class FilteredStats:
    total_sessions: int
    total_students: int
    total_present: int
    overall_percentage: float
