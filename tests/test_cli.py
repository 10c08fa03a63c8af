"""
Tests for the command line entry point (app.cli).
"""
import json

import httpx
import pytest

from app import cli
from formharvest.store import SessionStore

URL = "https://example.com/signup"


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "sessions.db")


@pytest.fixture
def page(tmp_path, signup_html):
    path = tmp_path / "signup.html"
    path.write_text(signup_html, encoding="utf-8")
    return str(path)


def listed(capsys):
    out = capsys.readouterr().out
    return json.loads(out[out.index("["):])


def test_capture_then_list(store_path, page, capsys):
    assert cli.main(["--store", store_path, "capture", page, "--url", URL]) == 0
    assert "Found 6 form fields with valid data" in capsys.readouterr().out

    assert cli.main(["--store", store_path, "list", "--unsynced"]) == 0
    sessions = listed(capsys)
    assert len(sessions) == 1
    assert sessions[0]["url"] == URL
    assert sessions[0]["formData"][0]["name"] == "name"


def test_capture_missing_file(store_path, tmp_path, capsys):
    missing = str(tmp_path / "missing.html")
    assert cli.main(["--store", store_path, "capture", missing, "--url", URL]) == 1
    assert "input not found" in capsys.readouterr().out


def test_capture_page_without_fields(store_path, tmp_path, capsys):
    path = tmp_path / "empty.html"
    path.write_text("<p>nothing</p>", encoding="utf-8")
    assert cli.main(["--store", store_path, "capture", str(path), "--url", URL]) == 1
    assert "No form data found on this page" in capsys.readouterr().out


def test_clear_requires_confirmation(store_path, page, capsys):
    cli.main(["--store", store_path, "capture", page, "--url", URL])
    assert cli.main(["--store", store_path, "clear"]) == 1
    assert cli.main(["--store", store_path, "clear", "--yes"]) == 0
    assert "All stored data cleared (1 sessions)" in capsys.readouterr().out
    with SessionStore(store_path) as s:
        assert s.count() == 0


def test_sync_reports_failure(store_path, page, monkeypatch, capsys):
    cli.main(["--store", store_path, "capture", page, "--url", URL])

    real_client = cli.CollectorClient

    def offline_client(**kwargs):
        refuse = httpx.MockTransport(lambda request: httpx.Response(503))
        return real_client(transport=refuse, **kwargs)

    monkeypatch.setattr(cli, "CollectorClient", offline_client)
    assert cli.main(["--store", store_path, "sync", "--endpoint", "http://collector.test/api/form-data"]) == 1
    assert "Error syncing data to API" in capsys.readouterr().out

    with SessionStore(store_path) as s:
        assert len(s.pending_sessions()) == 1


def test_sync_nothing_pending(store_path, capsys):
    assert cli.main(["--store", store_path, "sync"]) == 0
    assert "No data to sync" in capsys.readouterr().out
