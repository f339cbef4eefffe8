# blueprints/clashes/priority.py
from __future__ import annotations
from typing import Mapping

# меньше число, выше приоритет
DEFAULT_DEPARTMENT_PRIORITY: dict[str, int] = {
    "Disaster Management Authority": 1,
    "Dept. Of Waterworks": 2,
    "Gas Pipeline Department": 3,
    "Dept. of Road Works": 4,
    "Dept. of Electricity": 5,
    "Sanitation and Waste Management Department": 6,
    "Telecommunication Department": 7,
    "Urban Development Authority": 8,
    "Municipal Corporation": 9,
    "Public Works Department": 10,
}

UNRANKED = 10**6


def _norm(name: str | None) -> str:
    return (name or "").strip().lower()


class PriorityTable:
    """Static department name -> rank lookup, trimmed and case-insensitive."""

    def __init__(self, ranks: Mapping[str, int] | None = None):
        source = DEFAULT_DEPARTMENT_PRIORITY if ranks is None else ranks
        self._ranks = {_norm(k): int(v) for k, v in source.items()}

    @classmethod
    def from_config(cls, config: Mapping) -> "PriorityTable":
        return cls(config.get("CLASH_DEPARTMENT_PRIORITY"))

    def rank(self, department: str | None) -> int:
        return self._ranks.get(_norm(department), UNRANKED)

    def is_ranked(self, department: str | None) -> bool:
        return _norm(department) in self._ranks

    def __contains__(self, department: str) -> bool:
        return self.is_ranked(department)

    def __len__(self) -> int:
        return len(self._ranks)
