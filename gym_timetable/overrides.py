"""Per-date manual session lists and their audit trail."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from . import dates
from .models import ChangeAction, Session, SessionChangeRecord, SessionKind, SessionTemplate


class OverrideStore:
    """Manual per-date session lists superseding the generated timetable.

    Edits never mutate a stored list in place: each operation stores a new
    list for the date and appends exactly one change record to that date's
    log. Change records are never removed.
    """

    def __init__(
        self,
        overrides: Optional[Mapping[date, List[Session]]] = None,
        changes: Optional[Mapping[date, List[SessionChangeRecord]]] = None,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._overrides: Dict[date, Tuple[Session, ...]] = {
            d: tuple(sessions) for d, sessions in (overrides or {}).items()
        }
        self._changes: Dict[date, Tuple[SessionChangeRecord, ...]] = {
            d: tuple(records) for d, records in (changes or {}).items()
        }
        self._clock = clock

    def __contains__(self, d: date) -> bool:
        return d in self._overrides

    def override_dates(self) -> List[date]:
        return sorted(self._overrides)

    def get(self, d: date) -> Optional[List[Session]]:
        sessions = self._overrides.get(d)
        return list(sessions) if sessions is not None else None

    def change_log(self, d: date) -> List[SessionChangeRecord]:
        return list(self._changes.get(d, ()))

    def set(self, d: date, sessions: Iterable[Session]) -> None:
        self._overrides[d] = tuple(sessions)

    def clear(self, d: date) -> None:
        """Drop the override for a date; its change log is kept."""
        self._overrides.pop(d, None)

    def _record(self, d: date, record: SessionChangeRecord) -> None:
        self._changes[d] = self._changes.get(d, ()) + (record,)
        logging.info(
            "%s session %d on %s: %s",
            record.action.value,
            record.session_index,
            dates.date_key(d),
            record.reason,
        )

    @staticmethod
    def _check_reason(reason: str) -> str:
        reason = (reason or "").strip()
        if not reason:
            raise ValueError("A reason is required for manual session changes")
        return reason

    def delete_session(self, d: date, current: List[Session], index: int, reason: str) -> List[Session]:
        """Soft-delete ``current[index]``; the entry stays in the list for audit."""
        reason = self._check_reason(reason)
        if not 0 <= index < len(current):
            raise IndexError(f"No session {index} on {dates.date_key(d)}")
        target = current[index]
        updated = list(current)
        updated[index] = target.with_kind(SessionKind.DELETED, reason, original=target.original)
        self.set(d, updated)
        self._record(
            d,
            SessionChangeRecord(
                session_index=index,
                action=ChangeAction.DELETED,
                reason=reason,
                timestamp=self._clock(),
                original_session=target.as_template(),
            ),
        )
        return updated

    def modify_session(
        self,
        d: date,
        current: List[Session],
        index: int,
        new: SessionTemplate,
        reason: str,
    ) -> List[Session]:
        reason = self._check_reason(reason)
        if not 0 <= index < len(current):
            raise IndexError(f"No session {index} on {dates.date_key(d)}")
        target = current[index]
        if target.is_deleted:
            raise ValueError("Deleted sessions cannot be modified")
        original = target.original or target
        updated = list(current)
        updated[index] = Session(
            new.time,
            new.program,
            new.center,
            kind=SessionKind.ADDED if target.kind is SessionKind.ADDED else SessionKind.MODIFIED,
            reason=reason,
            original=None if target.kind is SessionKind.ADDED else original,
        )
        self.set(d, updated)
        self._record(
            d,
            SessionChangeRecord(
                session_index=index,
                action=ChangeAction.MODIFIED,
                reason=reason,
                timestamp=self._clock(),
                original_session=target.as_template(),
                new_session=new,
            ),
        )
        return updated

    def add_session(self, d: date, current: List[Session], new: SessionTemplate, reason: str) -> List[Session]:
        reason = self._check_reason(reason)
        updated = list(current)
        updated.append(Session(new.time, new.program, new.center, SessionKind.ADDED, reason))
        self.set(d, updated)
        self._record(
            d,
            SessionChangeRecord(
                session_index=len(updated) - 1,
                action=ChangeAction.ADDED,
                reason=reason,
                timestamp=self._clock(),
                new_session=new,
            ),
        )
        return updated
