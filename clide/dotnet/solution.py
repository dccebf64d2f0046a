"""Parse and generate .sln files (custom text format, not XML)."""

from __future__ import annotations

import logging
import os
import re
import tempfile
import uuid
from dataclasses import dataclass, field

from clide.errors import InvalidIdentifier, SolutionParseError, UnboundPathError
from clide.identifier import STANDARD_PROJECT_TYPE, braced, new_id, parse_id
from clide.paths import normalize

logger = logging.getLogger(__name__)

DEFAULT_FORMAT_VERSION = "11.00"
DEFAULT_VISUAL_STUDIO_VERSION = "2010"

_FORMAT_VERSION_RE = re.compile(r"Microsoft Visual Studio Solution File, Format Version ([\d.]+)")
# "# Visual Studio 2010" up to VS2017; "# Visual Studio Version 16" from VS2019
_VISUAL_STUDIO_RE = re.compile(r"# Visual Studio (Version )?(\d+)")
# VisualStudioVersion = 16.0.28701.123, MinimumVisualStudioVersion = 10.0.40219.1
_HEADER_PROPERTY_RE = re.compile(r"^((?:Minimum)?VisualStudioVersion)\s*=\s*(.*?)\s*$")
_SECTION_NAME_RE = re.compile(r"GlobalSection\(([^)]+)\)")
_PRE_SOLUTION_RE = re.compile(r"=\s*preSolution")
_QUOTED_RE = re.compile(r'"([^"]*)"')


@dataclass
class SolutionProject:
    """A project entry from a .sln file."""
    name: str
    path: str
    id: uuid.UUID = field(default_factory=new_id)
    project_type_id: uuid.UUID = STANDARD_PROJECT_TYPE

    def __post_init__(self) -> None:
        self.path = normalize(self.path)


@dataclass
class Section:
    """A GlobalSection block; ``text`` is kept verbatim, one line per row."""
    name: str
    pre_solution: bool = False
    text: str = ""


class Solution:
    """A .sln solution file.

    Built with a path, the file is read immediately when it exists. The
    text written back is generated from the model by :meth:`to_text`;
    section bodies round-trip verbatim, everything else is re-derived.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = path
        self.format_version = DEFAULT_FORMAT_VERSION
        self.visual_studio_version = DEFAULT_VISUAL_STUDIO_VERSION
        self.versioned_comment = False
        self.header_properties: list[tuple[str, str]] = []
        self._projects: list[SolutionProject] | None = None
        self._sections: list[Section] | None = None
        if path is not None:
            self.parse()

    @classmethod
    def from_path(cls, path: str) -> Solution:
        return cls(path)

    def exists(self) -> bool:
        return bool(self.path) and os.path.isfile(self.path)

    @property
    def name(self) -> str:
        if not self.path:
            return ""
        return os.path.splitext(os.path.basename(self.path))[0]

    @property
    def projects(self) -> list[SolutionProject]:
        if self._projects is None:
            self.parse()
        return self._projects

    @property
    def sections(self) -> list[Section]:
        if self._sections is None:
            self.parse()
        return self._sections

    # --- editing ---

    def add(self, project: SolutionProject) -> Solution:
        self.projects.append(project)
        return self

    def add_section(self, section: Section) -> Solution:
        self.sections.append(section)
        return self

    def find(self, key: str) -> SolutionProject | None:
        """First project whose name or relative path matches ``key``."""
        wanted = key.lower()
        path = normalize(key).lower()
        for project in self.projects:
            if project.name.lower() == wanted or project.path.lower() == path:
                return project
        return None

    def remove(self, key: str) -> SolutionProject | None:
        project = self.find(key)
        if project is not None:
            self.projects.remove(project)
        return project

    # --- reading ---

    def parse(self) -> Solution:
        """Read the file at ``path``; resets projects and sections."""
        self._projects = []
        self._sections = []
        if not self.exists():
            return self

        with open(self.path, "r", encoding="utf-8-sig") as f:
            lines = f.readlines()
        self.parse_lines(lines)
        logger.debug(f"Parsed solution {self.path}: {len(self._projects)} projects")
        return self

    def parse_lines(self, lines: list[str]) -> None:
        self._projects = []
        self._sections = []
        self.header_properties = []
        section: Section | None = None

        for number, raw in enumerate(lines, start=1):
            line = raw.rstrip("\r\n")
            stripped = line.strip()

            if section is not None:
                if stripped.startswith("EndGlobalSection"):
                    section = None
                elif stripped and not stripped.startswith("EndGlobal"):
                    clean = line.lstrip("\t")
                    section.text = clean if not section.text else f"{section.text}\n{clean}"
                continue

            if line.startswith("Microsoft Visual Studio Solution File"):
                match = _FORMAT_VERSION_RE.search(line)
                if match:
                    self.format_version = match.group(1)
            elif line.startswith("# Visual Studio"):
                match = _VISUAL_STUDIO_RE.search(line)
                if match:
                    self.versioned_comment = match.group(1) is not None
                    self.visual_studio_version = match.group(2)
            elif line.startswith(("VisualStudioVersion", "MinimumVisualStudioVersion")):
                match = _HEADER_PROPERTY_RE.match(line)
                if match:
                    self.header_properties.append((match.group(1), match.group(2)))
            elif line.startswith("Project("):
                self._projects.append(self._project_from_line(number, line))
            elif stripped.startswith("GlobalSection("):
                section = self._section_from_line(number, line)
                self._sections.append(section)

    # Project("{TYPE-GUID}") = "Name", "Path\To\Project.csproj", "{PROJECT-GUID}"
    def _project_from_line(self, number: int, line: str) -> SolutionProject:
        quoted = _QUOTED_RE.findall(line)
        if len(quoted) < 4:
            raise SolutionParseError(self.path, number, line, "expected 4 quoted fields")
        try:
            type_id = parse_id(quoted[0])
            project_id = parse_id(quoted[3])
        except InvalidIdentifier as e:
            raise SolutionParseError(self.path, number, line, str(e)) from e
        return SolutionProject(name=quoted[1], path=quoted[2], id=project_id, project_type_id=type_id)

    # GlobalSection(ProjectConfigurationPlatforms) = postSolution
    def _section_from_line(self, number: int, line: str) -> Section:
        match = _SECTION_NAME_RE.search(line)
        if match is None:
            raise SolutionParseError(self.path, number, line, "missing section name")
        return Section(name=match.group(1), pre_solution=bool(_PRE_SOLUTION_RE.search(line)))

    # --- writing ---

    def to_text(self) -> str:
        """Generate the solution text from the model; never reads the file."""
        lines = [
            "",
            f"Microsoft Visual Studio Solution File, Format Version {self.format_version}",
            f"# Visual Studio {'Version ' if self.versioned_comment else ''}{self.visual_studio_version}",
        ]
        lines.extend(f"{name} = {value}" for name, value in self.header_properties)
        for project in self._projects or []:
            lines.append(
                f'Project("{braced(project.project_type_id)}") = '
                f'"{project.name}", "{project.path}", "{braced(project.id)}"'
            )
            lines.append("EndProject")
        lines.append("Global")
        for section in self._sections or []:
            when = "preSolution" if section.pre_solution else "postSolution"
            lines.append(f"\tGlobalSection({section.name}) = {when}")
            if section.text:
                lines.extend(f"\t\t{row}" for row in section.text.split("\n"))
            lines.append("\tEndGlobalSection")
        lines.append("EndGlobal")
        return "\n".join(lines) + "\n"

    def save(self) -> None:
        """Write :meth:`to_text` to ``path`` with CRLF line endings."""
        if not self.path:
            raise UnboundPathError("solution")
        text = self.to_text()
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".clide-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8-sig", newline="\r\n") as f:
                f.write(text)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Saved solution {self.path}")

    def __repr__(self) -> str:
        return f"Solution({self.path!r})"
