from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple


@dataclass(frozen=True)
class RepairResult:
    """Outcome of a single repair attempt."""

    resolved: bool
    changes: Tuple[str, ...] = ()

    @classmethod
    def unresolved(cls, changes: Iterable[str] = ()) -> "RepairResult":
        return cls(resolved=False, changes=tuple(changes))

    @classmethod
    def success(cls, changes: Iterable[str] = ()) -> "RepairResult":
        return cls(resolved=True, changes=tuple(changes))

    def to_dict(self) -> Dict[str, Any]:
        return {"resolved": self.resolved, "changes": list(self.changes)}
