"""In-memory answer state for one submission.

Last write wins per question. Each entry carries a version and a dirty
flag; the flag is cleared only when the write that produced the current
version is acknowledged by the data store, so a slow reply for an older
selection can never mark a newer one as synced.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from assessment_service.models.submission import AnswerSelection, SubmittedAnswer


@dataclass(slots=True)
class _Entry:
    selection: AnswerSelection
    version: int
    dirty: bool


class AnswerStateStore:
    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._next_version = 1

    @classmethod
    def from_submitted(cls, answers: Iterable[SubmittedAnswer]) -> AnswerStateStore:
        """Rebuild state from persisted answers; restored entries are clean.

        Rows with neither an option nor any text do not count as answered.
        """
        store = cls()
        for answer in answers:
            if answer.selection.is_empty:
                continue
            store._entries[answer.question_id] = _Entry(
                selection=answer.selection, version=store._bump(), dirty=False
            )
        return store

    def _bump(self) -> int:
        version = self._next_version
        self._next_version += 1
        return version

    def set(self, question_id: str, selection: AnswerSelection) -> int:
        version = self._bump()
        self._entries[question_id] = _Entry(
            selection=selection, version=version, dirty=True
        )
        return version

    def get(self, question_id: str) -> AnswerSelection | None:
        entry = self._entries.get(question_id)
        return entry.selection if entry is not None else None

    def version(self, question_id: str) -> int | None:
        entry = self._entries.get(question_id)
        return entry.version if entry is not None else None

    def mark_synced(self, question_id: str, version: int) -> bool:
        entry = self._entries.get(question_id)
        if entry is None or entry.version != version:
            return False
        entry.dirty = False
        return True

    def is_dirty(self, question_id: str) -> bool:
        entry = self._entries.get(question_id)
        return entry is not None and entry.dirty

    def dirty_ids(self) -> list[str]:
        return [qid for qid, e in self._entries.items() if e.dirty]

    def as_dict(self) -> dict[str, AnswerSelection]:
        return {qid: e.selection for qid, e in self._entries.items()}

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
