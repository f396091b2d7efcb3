"""Access token lookup for the document store."""

from __future__ import annotations

import logging
import os
from pathlib import Path

TOKEN_ENV = "GYM_TIMETABLE_ACCESS_TOKEN"
TOKEN_PATH = Path(os.path.expanduser("~/.cache/gym_timetable/token"))


def acquire_token() -> str:
    # 0) Prefer env var if present (quick manual token)
    token = os.getenv(TOKEN_ENV)
    if token:
        return token

    # 1) Token saved by the dashboard login helper
    if TOKEN_PATH.exists():
        try:
            token = TOKEN_PATH.read_text(encoding="utf-8").strip()
        except OSError as exc:  # pragma: no cover - unreadable cache is rare
            logging.warning("Failed to read token cache: %s", exc)
        if token:
            return token

    raise RuntimeError(f"Could not obtain access token (set {TOKEN_ENV})")
