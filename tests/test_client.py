import json

import pytest
import requests

from markme.client import ApiClient, ApiError


def make_response(status, body=None, reason="OK", raw=None):
    r = requests.Response()
    r.status_code = status
    r.reason = reason
    r.url = "http://api.test/x"
    if raw is not None:
        r._content = raw
    else:
        r._content = json.dumps(body if body is not None else {}).encode("utf-8")
    return r


class FakeSession(requests.Session):
    def __init__(self, result):
        super().__init__()
        self.result = result
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def client_for(result):
    session = FakeSession(result)
    return ApiClient("http://api.test/api/", timeout=5, session=session), session


def test_get_attendance_builds_query():
    client, session = client_for(make_response(200, {"success": True, "data": {}}))

    body = client.get_attendance(12, from_date="2024-03-01")

    assert body == {"success": True, "data": {}}
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "http://api.test/api/faculty/me/attendance"
    assert kwargs["params"] == {"source": "web", "courseId": 12, "from": "2024-03-01"}
    assert kwargs["timeout"] == 5


def test_faculty_attendance_query():
    client, session = client_for(make_response(200, {"success": True, "data": {}}))

    client.get_faculty_attendance(8, 12)

    _, url, kwargs = session.calls[0]
    assert url == "http://api.test/api/faculty/attendance"
    assert kwargs["params"] == {"source": "web", "facultyId": 8, "courseId": 12}


def test_login_posts_credentials():
    client, session = client_for(make_response(200, {"success": True, "data": {}}))

    client.login("asha@example.edu", "secret")

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "http://api.test/api/auth/login"
    assert kwargs["json"] == {"email": "asha@example.edu", "password": "secret"}


def test_error_message_from_body():
    client, _ = client_for(make_response(403, {"success": False, "message": "Forbidden course"}, "Forbidden"))

    with pytest.raises(ApiError) as excinfo:
        client.get_courses()

    assert str(excinfo.value) == "Forbidden course"
    assert excinfo.value.status == 403


def test_error_message_falls_back_to_status():
    client, _ = client_for(make_response(502, raw=b"<html>bad gateway</html>", reason="Bad Gateway"))

    with pytest.raises(ApiError, match="HTTP 502: Bad Gateway"):
        client.get_profile()


def test_timeout_is_an_api_error():
    client, _ = client_for(requests.exceptions.ReadTimeout("slow"))

    with pytest.raises(ApiError, match="timed out after 5 seconds"):
        client.get_courses()


def test_connection_error_is_an_api_error():
    client, _ = client_for(requests.exceptions.ConnectionError("refused"))

    with pytest.raises(ApiError, match="Network error"):
        client.get_courses()


def test_non_json_success_body():
    client, _ = client_for(make_response(200, raw=b"not json"))

    with pytest.raises(ApiError, match="not JSON"):
        client.get_courses()


def test_logout_clears_cookies():
    client, session = client_for(make_response(200, {"success": True, "data": {"success": True}}))
    session.cookies.set("markme_session", "abc")

    client.logout()

    assert len(session.cookies) == 0
