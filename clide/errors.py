"""Error kinds raised by the project and solution models."""

from __future__ import annotations


class ClideError(Exception):
    """Base class for every user-facing clide failure."""


class ProjectNotFound(ClideError):
    def __init__(self, path: str | None) -> None:
        self.path = path
        super().__init__("No project found" if not path else f"No project found: {path}")


class SolutionNotFound(ClideError):
    def __init__(self, path: str | None) -> None:
        self.path = path
        super().__init__("No solution found" if not path else f"No solution found: {path}")


class ProjectParseError(ClideError):
    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Could not parse project {path}: {reason}")


class SolutionParseError(ClideError):
    """A Project( or GlobalSection( line that does not fit the grammar."""

    def __init__(self, path: str | None, line_number: int, line: str, reason: str) -> None:
        self.path = path
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"{path or '<solution>'}:{line_number}: {reason}: {line.strip()}")


class InvalidIdentifier(ClideError, ValueError):
    def __init__(self, text: object) -> None:
        self.text = text
        super().__init__(f"Not a valid identifier: {text!r}")


class UnboundPathError(ClideError):
    """Raised when saving a project or solution that has no path."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Cannot save {kind}: no path set")
