import logging

import requests

from markme.constants import API_BASE_URL, API_SOURCE, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class ApiClient:
    """Thin wrapper over the MarkMe REST API.

    The server keeps the login in a cookie, so one ``requests.Session`` is
    reused for every call. Each call returns the decoded JSON body, which is
    usually ``{"success": ..., "message": ..., "data": ...}``.
    """

    def __init__(self, base_url=API_BASE_URL, timeout=REQUEST_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def _request(self, method, endpoint, params=None, payload=None):
        url = f"{self.base_url}{endpoint}"
        query = {"source": API_SOURCE}
        if params:
            query.update({k: v for k, v in params.items() if v is not None})

        try:
            r = self.session.request(method, url, params=query, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error("%s %s timed out after %ss", method, endpoint, self.timeout)
            raise ApiError(f"Request timed out after {self.timeout} seconds")
        except requests.exceptions.RequestException as e:
            logger.error("%s %s failed: %s", method, endpoint, e)
            raise ApiError(f"Network error: {e}")

        if not r.ok:
            try:
                message = r.json().get("message")
            except (ValueError, AttributeError):
                message = None
            raise ApiError(message or f"HTTP {r.status_code}: {r.reason}", status=r.status_code)

        try:
            return r.json()
        except ValueError:
            raise ApiError("Server returned a response that is not JSON", status=r.status_code)

    # auth

    def login(self, email, password):
        body = self._request("POST", "/auth/login", payload={"email": email, "password": password})
        logger.info("Logged in as %s", email)
        return body

    def logout(self):
        body = self._request("POST", "/auth/logout")
        self.session.cookies.clear()
        return body

    # faculty

    def get_profile(self):
        return self._request("GET", "/faculty/me")

    def get_courses(self):
        return self._request("GET", "/faculty/me/course")

    def get_attendance(self, course_id, from_date=None, to_date=None):
        return self._request(
            "GET",
            "/faculty/me/attendance",
            params={"courseId": course_id, "from": from_date, "to": to_date},
        )

    # admin

    def get_faculty_attendance(self, faculty_id, course_id, from_date=None, to_date=None):
        return self._request(
            "GET",
            "/faculty/attendance",
            params={
                "facultyId": faculty_id,
                "courseId": course_id,
                "from": from_date,
                "to": to_date,
            },
        )
