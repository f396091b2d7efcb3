"""Batch computation of per-member ranking caches."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from . import documents, programs
from .models import AttendanceRecord, Member, RankingCache, RankingEntry
from .util import round_half_up

BATCH_SIZE = 500
UNKNOWN_CENTER = "unknown"

Write = Tuple[str, dict]


class BatchWriter(Protocol):
    def commit(self, writes: Sequence[Write]) -> None: ...


@dataclass(frozen=True)
class RankingRun:
    members: int
    batches_committed: int
    writes_committed: int
    failed: bool = False
    error: Optional[str] = None


def percentile(rank: int, total: int) -> int:
    if total <= 0 or rank <= 0:
        return 0
    return round_half_up((total - rank + 1) / total * 100)


def rank_counts(counts: Iterable[Tuple[str, int]]) -> Dict[str, RankingEntry]:
    """Rank ids by count, highest first.

    Ties keep their input order and receive consecutive ranks; ranks are
    never shared.
    """
    ordered = sorted(counts, key=lambda item: item[1], reverse=True)
    total = len(ordered)
    return {
        member_id: RankingEntry(rank, total, percentile(rank, total))
        for rank, (member_id, _) in enumerate(ordered, start=1)
    }


def default_classifier(record: AttendanceRecord) -> str:
    return programs.normalize(record.activity) or programs.UNKNOWN


class RankingComputer:
    def __init__(
        self,
        classify: Callable[[AttendanceRecord], str] = default_classifier,
        *,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        self.classify = classify
        self.batch_size = batch_size

    def compute(self, members: Iterable[Member], today: Optional[date] = None) -> Dict[str, RankingCache]:
        members = list(members)
        updated_at = (today or date.today()).isoformat()

        overall = rank_counts((m.id, len(m.sessions)) for m in members if m.sessions)
        overall_total = len(overall)

        per_program: Dict[str, Dict[str, Dict[str, int]]] = defaultdict(lambda: defaultdict(dict))
        for m in members:
            center = m.center or UNKNOWN_CENTER
            for record in m.sessions:
                program = self.classify(record)
                if program == programs.UNKNOWN:
                    continue
                group = per_program[program][center]
                group[m.id] = group.get(m.id, 0) + 1

        program_ranks: Dict[str, Dict[str, RankingEntry]] = {}
        for program, centers in per_program.items():
            ranks: Dict[str, RankingEntry] = {}
            for group in centers.values():
                ranks.update(rank_counts(group.items()))
            program_ranks[program] = ranks

        caches = {}
        for m in members:
            caches[m.id] = RankingCache(
                total_sessions=overall.get(m.id, RankingEntry(0, overall_total, 0)),
                programs={
                    program: ranks[m.id]
                    for program, ranks in sorted(program_ranks.items())
                    if m.id in ranks
                },
                updated_at=updated_at,
            )
        logging.info(
            "Computed rankings for %d members (%d ranked, %d programs)",
            len(members),
            overall_total,
            len(program_ranks),
        )
        return caches

    def persist(
        self,
        caches: Dict[str, RankingCache],
        writer: BatchWriter,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> RankingRun:
        """Write caches in sequential batches.

        Each batch is committed before the next one is built. A failing
        batch stops the run; batches already committed stay in place until
        the next successful run overwrites them.
        """
        writes: List[Write] = [
            (f"users/{member_id}", {"rankingCache": documents.ranking_cache_to_doc(cache)})
            for member_id, cache in caches.items()
        ]
        committed = 0
        batches = 0
        for start in range(0, len(writes), self.batch_size):
            batch = writes[start : start + self.batch_size]
            try:
                writer.commit(batch)
            except Exception as exc:
                logging.error(
                    "Ranking batch %d failed after %d committed writes: %s",
                    batches + 1,
                    committed,
                    exc,
                )
                return RankingRun(len(caches), batches, committed, True, str(exc))
            batches += 1
            committed += len(batch)
            if on_progress:
                on_progress(committed, len(writes))
        logging.info("Ranking cache stored for %d members in %d batches", committed, batches)
        return RankingRun(len(caches), batches, committed)

    def run(
        self,
        members: Iterable[Member],
        writer: BatchWriter,
        on_progress: Optional[Callable[[int, int], None]] = None,
        today: Optional[date] = None,
    ) -> RankingRun:
        return self.persist(self.compute(members, today), writer, on_progress)
