"""Counters reported by batch jobs."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class BatchResult:
    """processed: items examined; affected: items changed; removed: rows deleted."""

    processed: int = 0
    affected: int = 0
    removed: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)
