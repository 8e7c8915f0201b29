import json

from markme.constants import DEFAULT_SETTINGS, API_BASE_URL_ENV
from markme.storage import load_data, save_data, load_settings, save_settings, export_path


def test_load_data_creates_missing_file(tmp_path):
    path = tmp_path / "nested" / "data.json"

    assert load_data(str(path), {"a": 1}) == {"a": 1}
    assert json.loads(path.read_text(encoding="utf-8")) == {"a": 1}


def test_load_data_falls_back_on_corrupt_file(tmp_path):
    path = tmp_path / "data.json"
    path.write_text("{broken", encoding="utf-8")

    assert load_data(str(path), []) == []


def test_save_data_failure_returns_false(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file")

    assert save_data(str(blocker / "data.json"), {}) is False


def test_load_settings_merges_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(API_BASE_URL_ENV, raising=False)
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"email": "asha@example.edu", "unknown": 1}), encoding="utf-8")

    settings = load_settings(str(path))

    assert settings["email"] == "asha@example.edu"
    assert settings["api_base_url"] == DEFAULT_SETTINGS["api_base_url"]
    assert "unknown" not in settings


def test_environment_overrides_base_url(tmp_path, monkeypatch):
    monkeypatch.setenv(API_BASE_URL_ENV, "https://markme.example.edu/api")

    settings = load_settings(str(tmp_path / "settings.json"))

    assert settings["api_base_url"] == "https://markme.example.edu/api"


def test_save_settings_round_trip(tmp_path, monkeypatch):
    monkeypatch.delenv(API_BASE_URL_ENV, raising=False)
    path = str(tmp_path / "settings.json")
    settings = dict(DEFAULT_SETTINGS, email="asha@example.edu", request_timeout=30)

    assert save_settings(settings, path)
    assert load_settings(path)["request_timeout"] == 30


def test_export_path_creates_folder(tmp_path):
    path = export_path(str(tmp_path / "exports"), "a.csv")

    assert (tmp_path / "exports").is_dir()
    assert path.endswith("a.csv")
