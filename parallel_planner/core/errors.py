from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PlanError(Exception):
    """Base error envelope. Prefer returning/printing these rather than raising raw exceptions."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<plan>"
        return f"{loc}: {self.code}: {self.message}"


class PlanLoadError(PlanError):
    pass


class PlanValidationError(PlanError):
    pass


# Configuration errors raised fail-fast while building the dependency graph.


@dataclass(frozen=True)
class DuplicateTaskIdError(PlanValidationError):
    task_id: str = ""


@dataclass(frozen=True)
class UnknownDependencyReferenceError(PlanValidationError):
    task_id: str = ""
    reference: str = ""


@dataclass(frozen=True)
class CyclicDependencyError(PlanValidationError):
    cycle: tuple[str, ...] = ()


class IllegalTransitionError(PlanError):
    pass
