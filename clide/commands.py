"""Operations behind the CLI subcommands.

Each operation takes an explicit :class:`ClideConfig` and returns the lines
to print, one per processed argument. Missing project or solution files are
raised as :class:`ProjectNotFound` / :class:`SolutionNotFound`.
"""

from __future__ import annotations

import glob
import logging
import os

from clide.config import ClideConfig
from clide.dotnet.project import Project
from clide.dotnet.solution import Solution, SolutionProject
from clide.errors import ProjectNotFound, SolutionNotFound
from clide.paths import relative_from
from clide.references import IdentityProbe, ReferenceResolver

logger = logging.getLogger(__name__)


def load_project(config: ClideConfig) -> Project:
    path = config.active_project()
    if path is None or not os.path.isfile(path):
        raise ProjectNotFound(path)
    logger.debug(f"Using project {path}")
    return Project(path)


def new_project(config: ClideConfig, name: str) -> list[str]:
    """Create a blank project; ``name`` may include directories."""
    filename = name if name.lower().endswith("proj") else f"{name}.csproj"
    path = config.resolve(filename)
    if os.path.exists(path):
        return [f"Project already exists: {name}"]
    project = Project.create(path)
    project.save()
    return [f"Created new project: {project.name}"]


# --- references ---


def list_references(config: ClideConfig) -> list[str]:
    project = load_project(config)
    lines = []
    for ref in project.references:
        if ref.hint_path is None:
            lines.append(f"gac      {ref.full_name}")
        else:
            lines.append(f"dll      {ref.full_name} ({ref.hint_path})")
    for ref in project.project_references:
        lines.append(f"project  {ref.name} ({ref.project_file})")
    return lines or ["This project has no references"]


def add_references(
    config: ClideConfig, tokens: list[str], probe: IdentityProbe | None = None
) -> list[str]:
    project = load_project(config)
    if not tokens:
        return ["No references passed to add?"]

    resolver = ReferenceResolver(config.working_dir, probe=probe, timeout=config.probe_timeout)
    lines = []
    for outcome in resolver.add_all(project, tokens):
        if outcome.error is not None:
            lines.append(f"Failed to add reference {outcome.token}: {outcome.error}")
        elif outcome.warning is not None:
            lines.append(f"{outcome.warning} Added reference {outcome.name} to {project.name}")
        else:
            lines.append(f"Added reference {outcome.name} to {project.name}")

    project.save()
    return lines


def remove_references(config: ClideConfig, tokens: list[str]) -> list[str]:
    project = load_project(config)
    if not tokens:
        return ["No references passed to remove?"]

    resolver = ReferenceResolver(config.working_dir, timeout=config.probe_timeout)
    lines = []
    for outcome in resolver.remove_all(project, tokens):
        if outcome.ok:
            lines.append(f"Removed reference {outcome.name} from {project.name}")
        else:
            lines.append(f"Reference not found: {outcome.token}")

    project.save()
    return lines


# --- source ---


def list_sources(config: ClideConfig) -> list[str]:
    project = load_project(config)
    return [item.include for item in project.compile_paths] or ["This project has no source files"]


def add_sources(config: ClideConfig, paths: list[str]) -> list[str]:
    project = load_project(config)
    if not paths:
        return ["No source passed to add?"]

    lines = []
    for path in paths:
        if project.compile_paths.find(path) is None:
            project.compile_paths.add(path)
            lines.append(f"Added {path} to {project.name}")
        else:
            lines.append(f"{path} already added to {project.name}")

    project.save()
    return lines


def remove_sources(config: ClideConfig, paths: list[str]) -> list[str]:
    project = load_project(config)
    if not paths:
        return ["No source passed to remove?"]

    lines = []
    for path in paths:
        if project.compile_paths.remove(path):
            lines.append(f"Removed {path} from {project.name}")
        else:
            lines.append(f"{path} is not in {project.name}")

    project.save()
    return lines


# --- solution ---


def _solution_path(config: ClideConfig, name: str | None = None) -> str | None:
    """Path of the solution named by ``name``, the config, or the directory."""
    if name:
        return config.resolve(name if name.lower().endswith(".sln") else f"{name}.sln")
    if config.solution_path:
        return config.resolve(config.solution_path)
    candidates = sorted(glob.glob(os.path.join(config.working_dir, "*.sln")))
    if len(candidates) == 1:
        return candidates[0]
    return None


def load_solution(config: ClideConfig) -> Solution:
    path = _solution_path(config)
    if path is None or not os.path.isfile(path):
        raise SolutionNotFound(path)
    logger.debug(f"Using solution {path}")
    return Solution.from_path(path)


def _project_entry(solution: Solution, project_path: str) -> SolutionProject:
    project = Project(project_path)
    relative = relative_from(os.path.dirname(os.path.abspath(solution.path)), project_path)
    return SolutionProject(
        name=project.name,
        path=relative,
        id=project.id,
        project_type_id=project.project_type_id,
    )


def show_or_create_solution(config: ClideConfig, name: str | None = None) -> list[str]:
    """Print an existing solution, or create one holding the directory's projects."""
    path = _solution_path(config, name)
    if path is None:
        directory = os.path.basename(os.path.abspath(config.working_dir))
        path = config.resolve(f"{directory}.sln")

    if os.path.isfile(path):
        solution = Solution(path)
        lines = [f"Solution: {solution.name}"]
        if not solution.projects:
            lines.append("No projects")
        for entry in solution.projects:
            lines.append(f"  {entry.name} ({entry.path})")
        return lines

    solution = Solution()
    solution.path = path
    for project_path in sorted(glob.glob(os.path.join(config.working_dir, "*.csproj"))):
        solution.add(_project_entry(solution, project_path))
    solution.save()
    return [f"Created new solution: {solution.name}"]


def _locate_project(config: ClideConfig, token: str) -> str | None:
    path = config.resolve(token)
    if os.path.isfile(path):
        return path
    if not token.lower().endswith("proj") and os.path.isfile(f"{path}.csproj"):
        return f"{path}.csproj"
    return None


def add_to_solution(config: ClideConfig, tokens: list[str]) -> list[str]:
    solution = load_solution(config)
    if not tokens:
        return ["No projects passed to add?"]

    lines = []
    for token in tokens:
        project_path = _locate_project(config, token)
        if project_path is None:
            lines.append(f"Project not found: {token}")
            continue
        entry = _project_entry(solution, project_path)
        if solution.find(entry.path) is not None:
            lines.append(f"{entry.name} is already in Solution")
            continue
        solution.add(entry)
        lines.append(f"Added {entry.name} to Solution")

    solution.save()
    return lines


def remove_from_solution(config: ClideConfig, tokens: list[str]) -> list[str]:
    solution = load_solution(config)
    if not tokens:
        return ["No projects passed to remove?"]

    solution_dir = os.path.dirname(os.path.abspath(solution.path))
    lines = []
    for token in tokens:
        entry = solution.remove(token)
        if entry is None:
            entry = solution.remove(relative_from(solution_dir, config.resolve(token)))
        if entry is None:
            lines.append(f"Project not in Solution: {token}")
        else:
            lines.append(f"Removed {entry.name} from Solution")

    solution.save()
    return lines
