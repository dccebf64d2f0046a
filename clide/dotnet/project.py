"""Read and edit .csproj files (XML with MSBuild schema).

A :class:`Project` keeps the parsed ElementTree as its only state. Every
accessor reads from, and every mutation writes to, that in-memory tree;
nothing reaches the disk until :meth:`Project.save` is called. Comments and
whitespace of untouched regions are kept as read.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Generic, Iterator, TypeVar
from xml.sax.saxutils import escape

from clide.dotnet.condition import ConditionKey, parse_condition, parse_config_name
from clide.errors import InvalidIdentifier, ProjectParseError, UnboundPathError
from clide.identifier import STANDARD_PROJECT_TYPE, braced, new_id, parse_id
from clide.paths import normalize

logger = logging.getLogger(__name__)

MSBUILD_NS = "http://schemas.microsoft.com/developer/msbuild/2003"
GLOBAL = "Global"

_INDENT = "  "

# Written as Visual Studio does; ElementTree would single-quote it
_DECLARATION = b'<?xml version="1.0" encoding="utf-8"?>\n'

# Keep the MSBuild namespace as the default namespace when writing
ET.register_namespace("", MSBUILD_NS)

_TEMPLATE = """\
<Project ToolsVersion="4.0" DefaultTargets="Build" xmlns="http://schemas.microsoft.com/developer/msbuild/2003">
  <PropertyGroup>
    <Configuration Condition=" '$(Configuration)' == '' ">Debug</Configuration>
    <Platform Condition=" '$(Platform)' == '' ">AnyCPU</Platform>
    <ProjectGuid>{project_guid}</ProjectGuid>
    <OutputType>Library</OutputType>
    <RootNamespace>{name}</RootNamespace>
    <AssemblyName>{name}</AssemblyName>
    <TargetFrameworkVersion>v4.0</TargetFrameworkVersion>
  </PropertyGroup>
  <PropertyGroup Condition=" '$(Configuration)|$(Platform)' == 'Debug|AnyCPU' ">
    <DebugSymbols>true</DebugSymbols>
    <DebugType>full</DebugType>
    <Optimize>false</Optimize>
    <OutputPath>bin\\Debug\\</OutputPath>
    <DefineConstants>DEBUG;TRACE</DefineConstants>
    <ErrorReport>prompt</ErrorReport>
    <WarningLevel>4</WarningLevel>
  </PropertyGroup>
  <PropertyGroup Condition=" '$(Configuration)|$(Platform)' == 'Release|AnyCPU' ">
    <DebugType>pdbonly</DebugType>
    <Optimize>true</Optimize>
    <OutputPath>bin\\Release\\</OutputPath>
    <DefineConstants>TRACE</DefineConstants>
    <ErrorReport>prompt</ErrorReport>
    <WarningLevel>4</WarningLevel>
  </PropertyGroup>
  <ItemGroup>
  </ItemGroup>
  <Import Project="$(MSBuildToolsPath)\\Microsoft.CSharp.targets" />
</Project>
"""


def _local(tag: object) -> str:
    """Tag name without its namespace; comments have no name."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _indent(depth: int) -> str:
    return "\n" + _INDENT * depth


def _insert(parent: ET.Element, index: int, child: ET.Element, depth: int) -> None:
    """Insert ``child`` at ``index``, laying out whitespace like its siblings."""
    children = list(parent)
    if not children:
        parent.text = _indent(depth)
        child.tail = _indent(depth - 1)
        parent.append(child)
    elif index >= len(children):
        last = children[-1]
        child.tail = last.tail
        last.tail = _indent(depth)
        parent.append(child)
    else:
        child.tail = _indent(depth)
        parent.insert(index, child)


def _detach(parent: ET.Element, child: ET.Element) -> bool:
    """Remove ``child`` and hand its trailing whitespace to the node before it.

    Returns False when ``child`` is no longer under ``parent``.
    """
    children = list(parent)
    index = next((i for i, c in enumerate(children) if c is child), None)
    if index is None:
        return False
    if index == len(children) - 1:
        if index > 0:
            children[index - 1].tail = child.tail
        else:
            parent.text = child.tail
    parent.remove(child)
    return True


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for c in element:
        if _local(c.tag) == name:
            return c
    return None


def _child_text(element: ET.Element, name: str) -> str | None:
    c = _child(element, name)
    if c is None or c.text is None:
        return None
    return c.text.strip()


def _parse_xml(source: str, from_file: bool) -> ET.ElementTree:
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    if from_file:
        return ET.parse(source, parser)
    parser.feed(source)
    return ET.ElementTree(parser.close())


# --- Properties -------------------------------------------------------------


class Property:
    """A single property element, e.g. ``<OutputPath>bin\\Debug</OutputPath>``."""

    def __init__(self, group: PropertyGroup, element: ET.Element) -> None:
        self._group = group
        self.element = element

    @property
    def name(self) -> str:
        return _local(self.element.tag)

    @property
    def text(self) -> str:
        return self.element.text or ""

    @text.setter
    def text(self, value: str) -> None:
        self.element.text = value

    @property
    def condition(self) -> str | None:
        return self.element.get("Condition")

    def remove(self) -> bool:
        return _detach(self._group.element, self.element)

    def __repr__(self) -> str:
        return f"Property({self.name!r}, {self.text!r})"


class PropertyGroup:
    """A ``<PropertyGroup>``; indexable by property name."""

    def __init__(self, project: Project, element: ET.Element) -> None:
        self._project = project
        self.element = element

    @property
    def condition(self) -> str | None:
        return self.element.get("Condition")

    @property
    def key(self) -> ConditionKey | None:
        return parse_condition(self.condition)

    @property
    def properties(self) -> list[Property]:
        return [Property(self, e) for e in self.element if _local(e.tag)]

    def get_property(self, name: str) -> Property | None:
        wanted = name.lower()
        for prop in self.properties:
            if prop.name.lower() == wanted:
                return prop
        return None

    def __getitem__(self, name: str) -> str | None:
        prop = self.get_property(name)
        return None if prop is None else prop.text

    def __setitem__(self, name: str, value: str) -> None:
        prop = self.get_property(name)
        if prop is not None:
            prop.text = value
            return
        element = ET.Element(self._project._tag(name))
        element.text = value
        _insert(self.element, len(self.element), element, depth=2)

    def __delitem__(self, name: str) -> None:
        if not self.remove(name):
            raise KeyError(name)

    def __contains__(self, name: str) -> bool:
        return self.get_property(name) is not None

    def remove(self, name: str) -> bool:
        prop = self.get_property(name)
        if prop is None:
            return False
        return prop.remove()


class _UnwrittenGlobalGroup(PropertyGroup):
    """Global group of a descriptor that has none yet.

    Reads see no properties; the first assignment inserts the group.
    """

    def __init__(self, project: Project) -> None:
        super().__init__(project, None)

    @property
    def condition(self) -> str | None:
        return None

    @property
    def properties(self) -> list[Property]:
        if self.element is None:
            group = self._project._global_group()
            if group is None:
                return []
            self.element = group.element
        return super().properties

    def __setitem__(self, name: str, value: str) -> None:
        if self.element is None:
            self.element = self._project._global_group(create=True).element
        super().__setitem__(name, value)


@dataclass
class Configuration:
    """A build variant: the synthetic ``Global`` group or ``Name|Platform``."""
    name: str
    platform: str | None = None
    group: PropertyGroup | None = field(default=None, repr=False, compare=False)

    def __str__(self) -> str:
        if self.platform:
            return f"{self.name}|{self.platform}"
        return self.name


class ConfigLookup:
    """``project.config["Debug"]["OutputPath"]`` access to property groups."""

    def __init__(self, project: Project) -> None:
        self._project = project

    def __getitem__(self, name: str) -> PropertyGroup:
        if name == GLOBAL:
            return self._project._global_group() or _UnwrittenGlobalGroup(self._project)
        configuration, platform = parse_config_name(name)
        for group in self._project._property_groups():
            key = group.key
            if key is not None and key.matches(configuration, platform):
                return group
        raise KeyError(name)

    def __contains__(self, name: str) -> bool:
        try:
            self[name]
        except KeyError:
            return False
        return True


# --- Items ------------------------------------------------------------------


class _Item:
    def __init__(self, parent: ET.Element, element: ET.Element) -> None:
        self._parent = parent
        self.element = element

    @property
    def include(self) -> str:
        return self.element.get("Include", "")

    def remove(self) -> bool:
        return _detach(self._parent, self.element)


class Reference(_Item):
    """``<Reference Include="...">``: a GAC or DLL reference."""

    @property
    def full_name(self) -> str:
        return self.include

    @property
    def name(self) -> str:
        return self.include.split(",")[0].strip()

    @property
    def hint_path(self) -> str | None:
        return _child_text(self.element, "HintPath")

    @property
    def specific_version(self) -> bool:
        return (_child_text(self.element, "SpecificVersion") or "").lower() == "true"

    def __repr__(self) -> str:
        return f"Reference({self.full_name!r}, hint_path={self.hint_path!r})"


class ProjectReference(_Item):
    """``<ProjectReference Include="..\\Other\\Other.csproj">``."""

    @property
    def project_file(self) -> str:
        return self.include

    @property
    def name(self) -> str:
        name = _child_text(self.element, "Name")
        if name:
            return name
        return os.path.splitext(self.include.replace("\\", "/").rsplit("/", 1)[-1])[0]

    @property
    def project_id(self) -> uuid.UUID | None:
        text = _child_text(self.element, "Project")
        if not text:
            return None
        try:
            return parse_id(text)
        except InvalidIdentifier:
            logger.warning(f"Ignoring malformed project id {text!r} for {self.include}")
            return None

    def __repr__(self) -> str:
        return f"ProjectReference({self.name!r}, {self.project_file!r})"


class CompileItem(_Item):
    """``<Compile Include="src\\Foo.cs" />``."""

    def __repr__(self) -> str:
        return f"CompileItem({self.include!r})"


T = TypeVar("T", bound=_Item)


class _ItemList(Generic[T]):
    """Live, ordered view over one item type across every ItemGroup."""

    item_type = ""
    wrapper: type = _Item

    def __init__(self, project: Project) -> None:
        self._project = project

    def _items(self) -> list[T]:
        return [
            self.wrapper(group, element)
            for group in self._project._item_groups()
            for element in group
            if _local(element.tag) == self.item_type
        ]

    def _append(self, include: str, metadata: list[tuple[str, str]] = ()) -> T:
        element = ET.Element(self._project._tag(self.item_type), {"Include": include})
        for name, value in metadata:
            child = ET.Element(self._project._tag(name))
            child.text = value
            _insert(element, len(element), child, depth=3)
        group = self._project._item_group_for(self.item_type)
        _insert(group, len(group), element, depth=2)
        return self.wrapper(group, element)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items())

    def __len__(self) -> int:
        return len(self._items())

    def __getitem__(self, index: int) -> T:
        return self._items()[index]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._items()!r})"


class References(_ItemList[Reference]):
    item_type = "Reference"
    wrapper = Reference

    def add_gac_reference(self, name: str) -> Reference:
        """Add a reference resolved by name only (no HintPath)."""
        return self._append(name)

    def add_dll(self, full_name: str, hint_path: str, specific_version: bool = False) -> Reference:
        """Add a reference to a binary on disk."""
        return self._append(full_name, [
            ("SpecificVersion", "True" if specific_version else "False"),
            ("HintPath", normalize(hint_path)),
        ])

    def find(self, key: str) -> Reference | None:
        """First reference whose name, full name or hint path equals ``key``."""
        wanted = key.lower()
        hint = normalize(key).lower()
        for ref in self._items():
            if ref.name.lower() == wanted or ref.full_name.lower() == wanted:
                return ref
            if ref.hint_path is not None and ref.hint_path.lower() == hint:
                return ref
        return None

    def remove(self, key: str) -> bool:
        ref = self.find(key)
        if ref is None:
            return False
        return ref.remove()


class ProjectReferences(_ItemList[ProjectReference]):
    item_type = "ProjectReference"
    wrapper = ProjectReference

    def add(self, name: str, project_file: str, project_id: uuid.UUID) -> ProjectReference:
        return self._append(normalize(project_file), [
            ("Project", braced(project_id)),
            ("Name", name),
        ])

    def find(self, key: str) -> ProjectReference | None:
        wanted = key.lower()
        path = normalize(key).lower()
        for ref in self._items():
            if ref.name.lower() == wanted or ref.project_file.lower() == path:
                return ref
        return None

    def remove(self, key: str) -> bool:
        ref = self.find(key)
        if ref is None:
            return False
        return ref.remove()


class CompilePaths(_ItemList[CompileItem]):
    item_type = "Compile"
    wrapper = CompileItem

    def add(self, include: str) -> CompileItem:
        return self._append(normalize(include))

    def find(self, include: str) -> CompileItem | None:
        wanted = normalize(include)
        for item in self._items():
            if item.include == wanted:
                return item
        return None

    def remove(self, item: CompileItem | str) -> bool:
        if isinstance(item, str):
            item = self.find(item)
            if item is None:
                return False
        return item.remove()


# --- Project ----------------------------------------------------------------


class Project:
    """A .csproj project descriptor.

    Constructed with a path, the file is parsed straight away (a missing
    file reads as an empty project). Constructed without one, the project
    starts empty and must be given a ``path`` before :meth:`save`.
    """

    def __init__(self, path: str | None = None, name: str | None = None) -> None:
        self.path = path
        self._name = name
        self._relative_path: str | None = None
        self._project_type_id: uuid.UUID | None = None
        self._id: uuid.UUID | None = None
        self._tree: ET.ElementTree | None = None
        self._ns = ""
        self._parsed = False

        self.config = ConfigLookup(self)
        self.references = References(self)
        self.project_references = ProjectReferences(self)
        self.compile_paths = CompilePaths(self)

        if path is not None:
            self.parse()

    @classmethod
    def create(cls, path: str, name: str | None = None) -> Project:
        """Return an unsaved project at ``path`` built from the blank template."""
        project = cls(name=name)
        project.path = path
        project._id = new_id()
        text = _TEMPLATE.format(project_guid=braced(project._id), name=escape(project.name))
        project._load(_parse_xml(text, from_file=False))
        return project

    # --- lifecycle ---

    def exists(self) -> bool:
        return bool(self.path) and os.path.isfile(self.path)

    def parse(self) -> Project:
        """Read the bound file into memory, replacing any staged changes."""
        if self.exists():
            try:
                tree = _parse_xml(self.path, from_file=True)
            except ET.ParseError as e:
                raise ProjectParseError(self.path, str(e)) from e
            logger.debug(f"Parsed project {self.path}")
        else:
            root = ET.Element(f"{{{MSBUILD_NS}}}Project", {"ToolsVersion": "4.0", "DefaultTargets": "Build"})
            tree = ET.ElementTree(root)
        self._load(tree)
        return self

    def reload(self) -> Project:
        """Discard in-memory state and parse again from disk."""
        self._parsed = False
        self._tree = None
        self._id = None
        return self.parse()

    def _load(self, tree: ET.ElementTree) -> None:
        self._tree = tree
        tag = tree.getroot().tag
        self._ns = tag.split("}")[0] + "}" if tag.startswith("{") else ""
        self._parsed = True

    def save(self) -> None:
        """Write the in-memory tree to ``path``, replacing the file."""
        if not self.path:
            raise UnboundPathError("project")
        root = self._root
        if self._ns == f"{{{MSBUILD_NS}}}":
            group = self._global_group(create=True)
            if group["ProjectGuid"] is None:
                group["ProjectGuid"] = braced(self.id)

        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".clide-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(_DECLARATION)
                ET.ElementTree(root).write(f, encoding="utf-8", xml_declaration=False)
                f.write(b"\n")
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Saved project {self.path}")

    # --- tree helpers ---

    @property
    def _root(self) -> ET.Element:
        if not self._parsed:
            self.parse()
        return self._tree.getroot()

    def _tag(self, name: str) -> str:
        return f"{self._ns}{name}"

    def _property_groups(self) -> list[PropertyGroup]:
        return [PropertyGroup(self, e) for e in self._root if _local(e.tag) == "PropertyGroup"]

    def _global_group(self, create: bool = False) -> PropertyGroup | None:
        for group in self._property_groups():
            if group.condition is None:
                return group
        if not create:
            return None
        root = self._root
        element = ET.Element(self._tag("PropertyGroup"))
        _insert(root, 0, element, depth=1)
        return PropertyGroup(self, element)

    def _item_groups(self) -> list[ET.Element]:
        return [e for e in self._root if _local(e.tag) == "ItemGroup"]

    def _item_group_for(self, item_type: str) -> ET.Element:
        """ItemGroup new items of ``item_type`` are appended to.

        The first group already holding that item type, else the first empty
        group, else a new group after the last existing one.
        """
        groups = self._item_groups()
        for group in groups:
            if any(_local(e.tag) == item_type for e in group):
                return group
        for group in groups:
            if not any(_local(e.tag) for e in group):
                return group

        root = self._root
        children = list(root)
        if groups:
            index = children.index(groups[-1]) + 1
        else:
            imports = [i for i, e in enumerate(children) if _local(e.tag) == "Import"]
            index = imports[0] if imports else len(children)
        element = ET.Element(self._tag("ItemGroup"))
        _insert(root, index, element, depth=1)
        return element

    # --- model ---

    @property
    def name(self) -> str:
        if self._name:
            return self._name
        if self.path:
            return os.path.splitext(os.path.basename(self.path))[0]
        return ""

    @property
    def id(self) -> uuid.UUID:
        group = self._global_group()
        text = group["ProjectGuid"] if group is not None else None
        if text:
            try:
                return parse_id(text)
            except InvalidIdentifier:
                logger.warning(f"Ignoring malformed ProjectGuid {text!r} in {self.path}")
        if self._id is None:
            self._id = new_id()
        return self._id

    @id.setter
    def id(self, value: uuid.UUID) -> None:
        self._id = value
        self._global_group(create=True)["ProjectGuid"] = braced(value)

    @property
    def project_type_id(self) -> uuid.UUID:
        if self._project_type_id is not None:
            return self._project_type_id
        group = self._global_group()
        text = group["ProjectTypeGuids"] if group is not None else None
        if text:
            # Flavour guids come first; the base project type is last
            try:
                return parse_id(text.split(";")[-1])
            except InvalidIdentifier:
                logger.warning(f"Ignoring malformed ProjectTypeGuids {text!r} in {self.path}")
        return STANDARD_PROJECT_TYPE

    @project_type_id.setter
    def project_type_id(self, value: uuid.UUID) -> None:
        self._project_type_id = value

    @property
    def relative_path(self) -> str | None:
        return self._relative_path

    @relative_path.setter
    def relative_path(self, value: str | None) -> None:
        self._relative_path = None if value is None else normalize(value)

    @property
    def global_properties(self) -> list[Property]:
        group = self._global_group()
        return [] if group is None else group.properties

    @property
    def configurations(self) -> list[Configuration]:
        configurations = [Configuration(GLOBAL, None, self._global_group())]
        for group in self._property_groups():
            key = group.key
            if key is not None:
                configurations.append(Configuration(key.configuration, key.platform, group))
        return configurations

    def __repr__(self) -> str:
        return f"Project({self.path!r})"
