"""Error kinds raised (or recorded) while compiling unit tests."""

from __future__ import annotations

from dataclasses import dataclass, field


class GeneratorError(Exception):
    """Base class for every fatal compilation error."""


class LoadError(GeneratorError):
    """A state-definition unit could not be obtained by any strategy."""

    def __init__(self, message: str, attempted: list[str] | None = None) -> None:
        self.attempted = list(attempted or [])
        if self.attempted:
            message = f"{message} (attempted: {', '.join(self.attempted)})"
        super().__init__(message)


class ValidationError(GeneratorError):
    """A required field is missing or a named sub-state does not exist."""


class TemplateError(GeneratorError):
    """The named template cannot be located."""


@dataclass(frozen=True)
class ResolutionDegraded:
    """A lookup fell back to a heuristic or a guess.

    Never raised. Degradations are recorded on the compilation context,
    logged at warning level, and returned with the generation result.
    """

    component: str  # "path", "transition", "loader", "variable", ...
    subject: str  # what was being resolved
    fallback: str  # what was used instead
    alternatives: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        text = f"[{self.component}] {self.subject} -> {self.fallback}"
        if self.alternatives:
            text += f" (alternatives: {', '.join(self.alternatives)})"
        return text
