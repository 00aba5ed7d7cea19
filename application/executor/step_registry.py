# application/executor/step_registry.py
from __future__ import annotations

from threading import Lock
from typing import Dict, Iterable, List, Optional

from domain.steps.base import Step


class StepRegistry:
    """
    name -> Step mapping. Registration overwrites silently so setup code can
    re-register a step; after setup the registry may be shared by any number
    of workers.
    """

    def __init__(self, steps: Optional[Iterable[Step]] = None):
        self._steps: Dict[str, Step] = {}
        self._lock = Lock()
        if steps:
            self.insert_many(steps)

    def insert(self, step: Step) -> None:
        name = step.name
        if not name:
            raise ValueError(f"Step has no name: {type(step).__name__}")
        with self._lock:
            self._steps[name] = step

    def insert_many(self, steps: Iterable[Step]) -> None:
        for step in steps:
            self.insert(step)

    def get(self, name: str) -> Optional[Step]:
        with self._lock:
            return self._steps.get(name)

    def contains(self, name: str) -> bool:
        with self._lock:
            return name in self._steps

    def count(self) -> int:
        with self._lock:
            return len(self._steps)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._steps)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)
