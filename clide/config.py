"""Core data types and configuration for clide."""

from __future__ import annotations

import glob
import os
from dataclasses import dataclass
from enum import Enum

from clide.paths import to_native


DEFAULT_PROBE_TIMEOUT = 30.0


class ReferenceKind(str, Enum):
    GAC = "gac"
    DLL = "dll"
    PROJECT = "project"


@dataclass
class AssemblyIdentity:
    """Identity read from a managed binary's assembly manifest."""
    name: str
    full_name: str


@dataclass
class ReferenceOutcome:
    """Result of adding or removing one reference token."""
    token: str
    kind: ReferenceKind | None = None
    name: str = ""
    warning: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.kind is not None


@dataclass
class ClideConfig:
    """Explicit working state passed to every command.

    ``working_dir`` is the base directory user-supplied paths are resolved
    against; ``project_path`` and ``solution_path`` select the active files
    (relative to ``working_dir`` unless absolute).
    """
    working_dir: str = "."
    project_path: str | None = None
    solution_path: str | None = None
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    verbose: bool = False

    def resolve(self, path: str) -> str:
        """Resolve a user-supplied path against the working directory."""
        return os.path.normpath(os.path.join(self.working_dir, to_native(path)))

    def active_project(self) -> str | None:
        """Path of the project to operate on, if one can be determined.

        An explicit ``project_path`` wins; otherwise the single ``.csproj``
        in the working directory is used.
        """
        if self.project_path:
            path = self.project_path
            if not path.lower().endswith("proj") and not os.path.exists(self.resolve(path)):
                path += ".csproj"
            return self.resolve(path)
        candidates = sorted(glob.glob(os.path.join(self.working_dir, "*.csproj")))
        if len(candidates) == 1:
            return candidates[0]
        return None
