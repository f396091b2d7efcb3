import json

import pytest
import requests

from gym_timetable import api, auth


class FakeResponse:
    def __init__(self, status_code, data=None):
        self.status_code = status_code
        self._data = data

    def json(self):
        return self._data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def make_client(tmp_path, responses, **kwargs):
    client = api.APIClient("old-token", base_url="http://store.test/v1", json_dir=tmp_path / "json", **kwargs)
    calls = []

    def fake_request(method, url, headers=None, timeout=None, **extra):
        calls.append((method, url, headers, extra))
        return responses.pop(0)

    client.session.request = fake_request
    return client, calls


def test_expired_token_is_refreshed(tmp_path, monkeypatch):
    monkeypatch.setenv(auth.TOKEN_ENV, "new-token")
    client, calls = make_client(tmp_path, [FakeResponse(401), FakeResponse(200, {"centers": []})])
    assert client.get("settings/centers") == {"centers": []}
    assert calls[0][1] == "http://store.test/v1/settings/centers"
    assert calls[1][2] == {"Authorization": "Bearer new-token"}


def test_server_errors_are_retried(tmp_path, monkeypatch):
    monkeypatch.setattr(api.time, "sleep", lambda seconds: None)
    client, calls = make_client(tmp_path, [FakeResponse(503), FakeResponse(200, [])])
    assert client.get("users") == []
    assert len(calls) == 2

    client, _ = make_client(tmp_path, [FakeResponse(404)])
    with pytest.raises(requests.HTTPError):
        client.get("users")


def test_commit_sends_merge_writes(tmp_path):
    client, calls = make_client(tmp_path, [FakeResponse(200, {})])
    client.commit([("users/u1", {"rankingCache": {"updatedAt": "2024-03-31"}})])
    method, url, _, extra = calls[0]
    assert (method, url) == ("POST", "http://store.test/v1/:commit")
    assert extra["json"] == {"writes": [{"path": "users/u1", "merge": {"rankingCache": {"updatedAt": "2024-03-31"}}}]}


def test_dump_json_and_offline_reads(tmp_path):
    client, _ = make_client(tmp_path, [FakeResponse(200, {"schedules": []})], dump_json=True)
    client.get("settings/schedules")
    assert json.loads((tmp_path / "json" / "settings_schedules.json").read_text()) == {"schedules": []}

    offline = api.APIClient(offline=True, json_dir=tmp_path / "json")
    assert offline.get("settings/schedules") == {"schedules": []}
    assert offline.get("settings/global", default={}) == {}


def test_acquire_token(tmp_path, monkeypatch):
    monkeypatch.setenv(auth.TOKEN_ENV, "env-token")
    assert auth.acquire_token() == "env-token"

    monkeypatch.delenv(auth.TOKEN_ENV)
    token_path = tmp_path / "token"
    monkeypatch.setattr(auth, "TOKEN_PATH", token_path)
    with pytest.raises(RuntimeError):
        auth.acquire_token()

    token_path.write_text("file-token\n", encoding="utf-8")
    assert auth.acquire_token() == "file-token"


def test_offline_commit_merges_into_collection_fixtures(tmp_path):
    client = api.APIClient(offline=True, json_dir=tmp_path / "json")
    client.commit(
        [
            ("customSessions/2024-03-05", {"sessions": []}),
            ("sessionChanges/2024-03-05", {"changes": [{"action": "deleted"}]}),
            ("users/u1", {"rankingCache": {}}),
        ]
    )
    assert client.get("customSessions") == {"2024-03-05": {"sessions": []}}
    assert client.get("sessionChanges")["2024-03-05"]["changes"][0]["action"] == "deleted"
    assert client.get("users") == [{"id": "u1", "rankingCache": {}}]
