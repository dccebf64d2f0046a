"""Classify reference tokens and add or remove them from a project.

A token is whatever the user typed: a bare assembly name (``System.Xml``), a
path to a binary (``lib/Foo.dll``) or a path to another project
(``../Other/Other.csproj``). Classification only looks at the filesystem:

1. nothing exists at the token's path -> GAC reference named by the token;
2. the path ends in ``proj`` -> project reference;
3. anything else -> DLL reference, identity read by the probe.

A token such as ``Missing.dll`` with no file behind it is therefore added as
a GAC reference named ``Missing.dll``; it is not reported as an error.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Iterable

from clide.config import DEFAULT_PROBE_TIMEOUT, AssemblyIdentity, ReferenceKind, ReferenceOutcome
from clide.dotnet.assembly import identity_of
from clide.dotnet.project import Project
from clide.paths import normalize, relative_from, to_native

logger = logging.getLogger(__name__)

IdentityProbe = Callable[[str], AssemblyIdentity | None]


class ReferenceResolver:
    """Resolves tokens against ``base_dir`` and records them on a project."""

    def __init__(
        self,
        base_dir: str,
        probe: IdentityProbe | None = None,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
    ) -> None:
        self.base_dir = base_dir
        self.timeout = timeout
        self._probe = probe

    def probe(self, path: str) -> AssemblyIdentity | None:
        if self._probe is not None:
            return self._probe(path)
        return identity_of(path, timeout=self.timeout)

    def locate(self, token: str) -> str:
        return os.path.join(self.base_dir, to_native(token))

    def classify(self, token: str) -> ReferenceKind:
        if not os.path.isfile(self.locate(token)):
            return ReferenceKind.GAC
        if token.lower().endswith("proj"):
            return ReferenceKind.PROJECT
        return ReferenceKind.DLL

    def add(self, project: Project, token: str) -> ReferenceOutcome:
        """Add one token to ``project`` (in memory only)."""
        kind = self.classify(token)
        path = self.locate(token)

        if kind is ReferenceKind.GAC:
            project.references.add_gac_reference(token)
            logger.debug(f"Added GAC reference {token}")
            return ReferenceOutcome(token, kind, name=token)

        if kind is ReferenceKind.PROJECT:
            target = Project(path)
            if project.path:
                project_dir = os.path.dirname(os.path.abspath(project.path))
            else:
                project_dir = self.base_dir
            relative = relative_from(project_dir, path)
            project.project_references.add(target.name, relative, target.id)
            logger.debug(f"Added project reference {target.name} -> {relative}")
            return ReferenceOutcome(token, kind, name=target.name)

        identity = self.probe(os.path.abspath(path))
        if identity is None:
            name = os.path.basename(to_native(token))
            project.references.add_dll(name, token)
            return ReferenceOutcome(
                token, kind, name=name,
                warning=f"Couldn't load assembly: {token}.  Adding anyway.",
            )
        project.references.add_dll(identity.full_name, token)
        logger.debug(f"Added DLL reference {identity.full_name} ({normalize(token)})")
        return ReferenceOutcome(token, kind, name=identity.name)

    def add_all(self, project: Project, tokens: Iterable[str]) -> list[ReferenceOutcome]:
        """Add every token; a failure on one token never stops the rest."""
        outcomes = []
        for token in tokens:
            try:
                outcomes.append(self.add(project, token))
            except Exception as e:
                logger.warning(f"Failed to add reference {token}: {e}")
                outcomes.append(ReferenceOutcome(token, error=str(e)))
        return outcomes

    def remove(self, project: Project, token: str) -> ReferenceOutcome:
        """Remove the first project or assembly reference matching ``token``."""
        project_ref = project.project_references.find(token)
        if project_ref is None and project.path and token.lower().endswith("proj"):
            project_dir = os.path.dirname(os.path.abspath(project.path))
            project_ref = project.project_references.find(relative_from(project_dir, self.locate(token)))
        if project_ref is not None:
            name = project_ref.name
            project_ref.remove()
            return ReferenceOutcome(token, ReferenceKind.PROJECT, name=name)

        ref = project.references.find(token)
        if ref is None:
            return ReferenceOutcome(token)
        kind = ReferenceKind.GAC if ref.hint_path is None else ReferenceKind.DLL
        ref.remove()
        return ReferenceOutcome(token, kind, name=ref.name)

    def remove_all(self, project: Project, tokens: Iterable[str]) -> list[ReferenceOutcome]:
        return [self.remove(project, token) for token in tokens]
