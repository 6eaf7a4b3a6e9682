"""In-memory evidence store owned by a single forecasting session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from evidence_forecast.exceptions import DuplicateIdError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .schemas import Evidence

logger = structlog.get_logger()


@dataclass(frozen=True)
class EvidencePartition:
    """Evidence split by polarity sign."""

    pro: list[Evidence]
    con: list[Evidence]


class EvidenceStore:
    """Holds the evidence items for one session, in insertion order."""

    def __init__(self, evidence: Iterable[Evidence] = ()) -> None:
        self._items: dict[str, Evidence] = {}
        self._removed: set[str] = set()
        for item in evidence:
            self.add(item)

    def add(self, evidence: Evidence) -> None:
        """Add an evidence item.

        Raises:
            DuplicateIdError: If an item with the same id is already present.
        """
        if evidence.id in self._items:
            raise DuplicateIdError(evidence.id)
        self._items[evidence.id] = evidence

    def all(self) -> EvidencePartition:
        """Return current evidence partitioned into pro (polarity > 0) and con (< 0) views."""
        items = list(self._items.values())
        return EvidencePartition(
            pro=[e for e in items if e.is_pro],
            con=[e for e in items if e.is_con],
        )

    def remove(self, ids: Iterable[str]) -> list[str]:
        """Remove evidence by id, returning the ids actually removed.

        Unknown ids and ids removed earlier are ignored, so repeated flags are no-ops.
        """
        removed: list[str] = []
        for evidence_id in ids:
            if evidence_id not in self._items:
                continue
            del self._items[evidence_id]
            self._removed.add(evidence_id)
            removed.append(evidence_id)
        if removed:
            logger.debug("evidence_removed", ids=removed, remaining=len(self._items))
        return removed

    def get(self, evidence_id: str) -> Evidence | None:
        return self._items.get(evidence_id)

    def was_removed(self, evidence_id: str) -> bool:
        return evidence_id in self._removed

    def items(self) -> list[Evidence]:
        return list(self._items.values())

    def __contains__(self, evidence_id: object) -> bool:
        return evidence_id in self._items

    def __iter__(self) -> Iterator[Evidence]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)
