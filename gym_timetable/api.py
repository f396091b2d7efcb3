"""Document store client for the dashboard backend."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Sequence, Tuple

import requests

BASE_URL = os.getenv("GYM_TIMETABLE_BASE_URL", "http://localhost:8080/v1/documents")
DOCUMENTS = [
    "settings/centers",
    "settings/schedules",
    "settings/global",
    "customSessions",
    "sessionChanges",
    "users",
]


class APIClient:
    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = BASE_URL,
        dump_json: bool = False,
        offline: bool = False,
        json_dir: Path = Path("out/json"),
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.dump_json = dump_json
        self.offline = offline
        self.session = requests.Session()
        self.json_dir = json_dir
        self.json_dir.mkdir(parents=True, exist_ok=True)

    def _json_path(self, path: str) -> Path:
        name = path.strip("/").replace("/", "_") + ".json"
        return self.json_dir / name

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{path.strip('/')}"
        for attempt in range(4):
            try:
                resp = self.session.request(method, url, headers=self._headers(), timeout=30, **kwargs)
                if resp.status_code == 401 and attempt == 0:
                    logging.info("Token expired, refreshing")
                    from . import auth  # local import to avoid hard dependency

                    self.token = auth.acquire_token()
                    continue
                if resp.status_code >= 500:
                    time.sleep(2**attempt)
                    continue
                resp.raise_for_status()
                return resp
            except requests.HTTPError:
                raise
            except requests.RequestException as exc:
                logging.warning("Request error: %s", exc)
                time.sleep(2**attempt)
        raise RuntimeError(f"Failed to {method} {path}")

    def get(self, path: str, default: Any = None) -> Any:
        if self.offline:
            json_path = self._json_path(path)
            if not json_path.exists():
                logging.warning("No offline fixture for %s", path)
                return default
            with json_path.open("r", encoding="utf-8") as f:
                return json.load(f)
        data = self._request("GET", path).json()
        if self.dump_json:
            with self._json_path(path).open("w", encoding="utf-8") as f:
                json.dump(data, f)
        return data

    def commit(self, writes: Sequence[Tuple[str, dict]]) -> None:
        """Apply a batch of merge writes.

        Online this is one request; offline the writes are merged into the
        fixture files. Paths below a collection land in the collection's
        fixture: ``users/<id>`` in the ``users`` list, ``customSessions/<date>``
        under its date key.
        """
        if not self.offline:
            body = {"writes": [{"path": path, "merge": data} for path, data in writes]}
            self._request("POST", ":commit", json=body)
            return
        for path, data in writes:
            collection, _, doc_id = path.partition("/")
            if path in DOCUMENTS or not doc_id:
                current = self.get(path, default={}) or {}
                current.update(data)
                self._write_fixture(path, current)
            elif collection == "users":
                users = self.get("users", default=[]) or []
                for user in users:
                    if str(user.get("id")) == doc_id:
                        user.update(data)
                        break
                else:
                    users.append({"id": doc_id, **data})
                self._write_fixture("users", users)
            else:
                docs = self.get(collection, default={}) or {}
                docs.setdefault(doc_id, {}).update(data)
                self._write_fixture(collection, docs)

    def _write_fixture(self, path: str, data: Any) -> None:
        with self._json_path(path).open("w", encoding="utf-8") as f:
            json.dump(data, f)
