APP_NAME = "MarkMe - Course Attendance"
APP_VERSION = "1.0"

API_BASE_URL = "http://localhost:3000/api"
API_BASE_URL_ENV = "MARKME_API_BASE_URL"
API_SOURCE = "web"
REQUEST_TIMEOUT = 15
HTTP_UNAUTHORIZED = 401

ALL = "all"
BATCH_PATTERN = r"BT(\d{2})"
BATCH_CENTURY = "20"
ML_STATUSES = ("pending", "running", "processed", "failed")

PRESENT_MARK = "P"
ABSENT_MARK = "A"
NO_RECORD_MARK = "-"

CSV_LEADING_HEADERS = ["Roll Number", "Student Name", "Branch", "Section"]
CSV_TRAILING_HEADERS = ["Total Present", "Total Classes", "Attendance %"]

PROGRAM_STORAGE = "data"
SETTINGS_FILE = f"{PROGRAM_STORAGE}/settings.json"
EXPORTS_FOLDER = "exports"

DEFAULT_SETTINGS = {
    "api_base_url": API_BASE_URL,
    "email": "",
    "request_timeout": REQUEST_TIMEOUT,
    "exports_folder": EXPORTS_FOLDER,
}

WINDOW_WIDTH = 1100
WINDOW_HEIGHT = 650
TITLE_FONT = ("Arial", 18, "bold")
STATS_FONT = ("Arial", 14, "bold")
