"""Tests for reading and editing .csproj project descriptors."""

from __future__ import annotations

import os
import shutil
import uuid

import pytest

from clide.dotnet.project import GLOBAL, Project
from clide.errors import ProjectParseError, UnboundPathError
from clide.identifier import STANDARD_PROJECT_TYPE

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture
def specs_csproj(tmp_path) -> str:
    """A scratch copy of FluentXml.Specs.csproj."""
    path = tmp_path / "FluentXml.Specs.csproj"
    shutil.copy(os.path.join(FIXTURES_DIR, "FluentXml.Specs.csproj"), path)
    return str(path)


def _names(items) -> list[str]:
    return [item.name for item in items]


class TestNewProject:
    def test_creates_own_id_if_not_set(self):
        assert len(str(Project().id)) == 36
        assert Project().id != Project().id

    def test_id_is_stable_for_one_instance(self):
        project = Project()
        assert project.id == project.id

    def test_uses_standard_project_type_if_not_set(self):
        assert Project().project_type_id == STANDARD_PROJECT_TYPE

    @pytest.mark.parametrize("given, expected", [
        ("foo", "foo"),
        ("foo/bar", "foo\\bar"),
        ("Hello World", "Hello World"),
        ("/hello", "\\hello"),
        ("hi / there", "hi \\ there"),
        ("src\\foo/bar", "src\\foo\\bar"),
    ])
    def test_relative_path_is_normalized(self, given, expected):
        project = Project()
        project.relative_path = given
        assert project.relative_path == expected

    def test_missing_file_reads_as_empty(self, tmp_path):
        project = Project(str(tmp_path / "Nothing.csproj"))
        assert not project.exists()
        assert len(project.references) == 0
        assert len(project.compile_paths) == 0
        assert project.global_properties == []
        assert [str(c) for c in project.configurations] == [GLOBAL]

    def test_save_without_path_is_an_error(self):
        with pytest.raises(UnboundPathError):
            Project().save()

    def test_malformed_xml_is_a_parse_error(self, tmp_path):
        path = tmp_path / "Broken.csproj"
        path.write_text("<Project><PropertyGroup></Project>")
        with pytest.raises(ProjectParseError):
            Project(str(path))

    def test_create_from_template(self, tmp_path):
        path = str(tmp_path / "CoolProject.csproj")
        project = Project.create(path)
        project.save()

        loaded = Project(path)
        assert loaded.name == "CoolProject"
        assert loaded.id == project.id
        assert loaded.config[GLOBAL]["AssemblyName"] == "CoolProject"
        assert [str(c) for c in loaded.configurations] == ["Global", "Debug|AnyCPU", "Release|AnyCPU"]
        assert len(loaded.references) == 0

    def test_saving_a_new_project_records_its_id(self, tmp_path):
        path = str(tmp_path / "Fresh.csproj")
        project = Project(path)
        generated = project.id
        project.save()
        assert Project(path).id == generated


class TestReferences:
    def test_can_read_references(self, specs_csproj):
        references = Project(specs_csproj).references

        assert len(references) == 4
        assert references[0].name == "System"
        assert references[0].hint_path is None
        assert references[1].name == "System.Core"

        assert references[2].name == "nunit.framework"
        assert references[2].full_name == (
            "nunit.framework, Version=2.5.8.10295, Culture=neutral, PublicKeyToken=96d09a1eb7f44a77"
        )
        assert references[2].specific_version is False
        assert references[2].hint_path == "..\\lib\\nunit.framework.dll"

        assert references[3].name == "NUnit.Should"
        assert references[3].full_name == "NUnit.Should, Version=1.0.1.0, Culture=neutral, PublicKeyToken=null"
        assert references[3].hint_path == "..\\lib\\NUnit.Should.dll"

    def test_can_add_references_without_hint_path(self, specs_csproj):
        project = Project(specs_csproj)
        project.references.add_gac_reference("System.Xml")

        assert _names(project.references) == [
            "System", "System.Core", "nunit.framework", "NUnit.Should", "System.Xml",
        ]
        assert project.references[-1].hint_path is None

        # a fresh view does not see unsaved changes
        assert len(Project(specs_csproj).references) == 4

        project.save()
        assert _names(Project(specs_csproj).references) == [
            "System", "System.Core", "nunit.framework", "NUnit.Should", "System.Xml",
        ]

    def test_can_add_references_with_hint_path(self, specs_csproj):
        project = Project(specs_csproj)
        ref = project.references.add_dll("Something", "../lib/foo/Something.dll")
        assert ref.specific_version is False
        assert len(Project(specs_csproj).references) == 4

        project.save()
        read_again = Project(specs_csproj)
        assert len(read_again.references) == 5
        assert read_again.references[-1].name == "Something"
        assert read_again.references[-1].hint_path == "..\\lib\\foo\\Something.dll"

    def test_new_references_join_the_existing_item_group(self, specs_csproj):
        project = Project(specs_csproj)
        project.references.add_gac_reference("System.Xml")
        project.save()

        with open(specs_csproj, encoding="utf-8") as f:
            text = f.read()
        assert '    <Reference Include="System.Xml" />\n  </ItemGroup>' in text
        assert text.index('Include="System.Xml"') < text.index('<Compile Include="Spec.cs"')

    def test_can_remove_references(self, specs_csproj):
        project = Project(specs_csproj)
        assert project.references.remove("System.Core") is True
        project.save()

        project = Project(specs_csproj)
        assert _names(project.references) == ["System", "nunit.framework", "NUnit.Should"]

        project.references.remove("nunit.framework")
        project.save()

        assert _names(Project(specs_csproj).references) == ["System", "NUnit.Should"]

    def test_removing_a_reference_twice(self, specs_csproj):
        project = Project(specs_csproj)
        ref = project.references[1]
        assert ref.remove() is True
        assert ref.remove() is False
        assert _names(project.references) == ["System", "nunit.framework", "NUnit.Should"]

    def test_removing_unknown_reference_is_a_no_op(self, specs_csproj):
        project = Project(specs_csproj)
        assert project.references.remove("Does.Not.Exist") is False
        assert len(project.references) == 4

    def test_find_by_full_name_or_hint_path(self, specs_csproj):
        references = Project(specs_csproj).references
        assert references.find("NUnit.Should, Version=1.0.1.0, Culture=neutral, PublicKeyToken=null").name == "NUnit.Should"
        assert references.find("../lib/nunit.framework.dll").name == "nunit.framework"

    def test_can_read_project_references(self, specs_csproj):
        refs = Project(specs_csproj).project_references
        assert len(refs) == 1
        assert refs[0].name == "FluentXml"
        assert refs[0].project_file == "..\\src\\FluentXml.csproj"
        assert refs[0].project_id == uuid.UUID("f2d4e6a8-1b3c-4d5e-8f90-a1b2c3d4e5f6")

    def test_can_add_and_remove_project_references(self, specs_csproj):
        other_id = uuid.uuid4()
        project = Project(specs_csproj)
        project.project_references.add("Other", "../other/Other.csproj", other_id)
        project.save()

        project = Project(specs_csproj)
        assert _names(project.project_references) == ["FluentXml", "Other"]
        assert project.project_references[-1].project_file == "..\\other\\Other.csproj"
        assert project.project_references[-1].project_id == other_id

        assert project.project_references.remove("FluentXml") is True
        project.save()
        assert _names(Project(specs_csproj).project_references) == ["Other"]


class TestCompilePaths:
    def test_can_read_compile_paths(self, specs_csproj):
        assert [c.include for c in Project(specs_csproj).compile_paths] == [
            "Spec.cs", "NodeSpec.cs", "DocumentSpec.cs",
        ]

    def test_add_normalizes_and_remove_by_item(self, specs_csproj):
        project = Project(specs_csproj)
        project.compile_paths.add("Nested/Dir/ThingSpec.cs")
        assert project.compile_paths.find("Nested\\Dir\\ThingSpec.cs") is not None

        item = project.compile_paths.find("NodeSpec.cs")
        assert project.compile_paths.remove(item) is True
        project.save()

        assert [c.include for c in Project(specs_csproj).compile_paths] == [
            "Spec.cs", "DocumentSpec.cs", "Nested\\Dir\\ThingSpec.cs",
        ]

    def test_removing_an_item_twice(self, specs_csproj):
        project = Project(specs_csproj)
        item = project.compile_paths[0]
        assert project.compile_paths.remove(item) is True
        assert project.compile_paths.remove(item) is False
        assert item.remove() is False
        assert [c.include for c in project.compile_paths] == ["NodeSpec.cs", "DocumentSpec.cs"]

    def test_remove_by_path(self, specs_csproj):
        project = Project(specs_csproj)
        assert project.compile_paths.remove("DocumentSpec.cs") is True
        assert project.compile_paths.remove("DocumentSpec.cs") is False
        assert len(project.compile_paths) == 2


class TestConfigurations:
    def test_can_read_configurations(self):
        project = Project(os.path.join(FIXTURES_DIR, "ConsoleApplication1.csproj"))
        configurations = project.configurations

        assert len(configurations) == 3
        assert str(configurations[0]) == "Global"
        assert str(configurations[1]) == "Debug|x86"
        assert configurations[1].name == "Debug"
        assert configurations[1].platform == "x86"
        assert str(configurations[2]) == "Release|x86"
        assert configurations[2].name == "Release"
        assert configurations[2].platform == "x86"

    def test_can_read_properties_for_configurations(self, specs_csproj):
        project = Project(specs_csproj)

        assert project.config["Debug"]["OutputPath"] == "..\\bin\\Debug"
        assert project.config["Debug"]["DefineConstants"] == "DEBUG"
        assert [p.name for p in project.config["Debug"].properties] == [
            "DebugSymbols", "DebugType", "Optimize", "OutputPath",
            "DefineConstants", "ErrorReport", "WarningLevel", "ConsolePause",
        ]

        assert project.config["Release"]["OutputPath"] == "..\\bin\\Release"
        assert project.config["Release"]["DefineConstants"] is None
        assert [p.name for p in project.config["Release"].properties] == [
            "DebugType", "Optimize", "OutputPath", "ErrorReport", "WarningLevel", "ConsolePause",
        ]

    def test_platform_can_be_requested(self, specs_csproj):
        project = Project(specs_csproj)
        assert project.config["Debug|AnyCPU"]["OutputPath"] == "..\\bin\\Debug"
        assert "Debug|x86" not in project.config

    def test_unknown_configuration(self, specs_csproj):
        with pytest.raises(KeyError):
            Project(specs_csproj).config["Staging"]

    def test_can_modify_existing_property(self, specs_csproj):
        project = Project(specs_csproj)
        already_open = Project(specs_csproj)
        project.config["Debug"]["OutputPath"] = "Different Path!"

        assert Project(specs_csproj).config["Debug"]["OutputPath"] == "..\\bin\\Debug"

        project.save()
        project.reload()
        assert project.config["Debug"]["OutputPath"] == "Different Path!"
        assert Project(specs_csproj).config["Debug"]["OutputPath"] == "Different Path!"
        assert already_open.config["Debug"]["OutputPath"] == "..\\bin\\Debug"

        already_open.reload()
        assert already_open.config["Debug"]["OutputPath"] == "Different Path!"

    def test_can_create_new_property(self, specs_csproj):
        assert Project(specs_csproj).config["Debug"]["FooBar"] is None

        project = Project(specs_csproj)
        project.config["Debug"]["FooBar"] = "Value of Foo Bar"
        assert Project(specs_csproj).config["Debug"]["FooBar"] is None

        project.save()
        assert Project(specs_csproj).config["Debug"]["FooBar"] == "Value of Foo Bar"

    def test_can_remove_existing_property(self, specs_csproj):
        project = Project(specs_csproj)
        project.config["Debug"].get_property("OutputPath").remove()
        assert Project(specs_csproj).config["Debug"]["OutputPath"] == "..\\bin\\Debug"

        project.save()
        assert Project(specs_csproj).config["Debug"]["OutputPath"] is None

    def test_removing_a_property_twice(self, specs_csproj):
        project = Project(specs_csproj)
        prop = project.config["Debug"].get_property("OutputPath")
        assert prop.remove() is True
        assert prop.remove() is False
        assert project.config["Debug"]["OutputPath"] is None

    def test_del_property(self, specs_csproj):
        project = Project(specs_csproj)
        del project.config["Release"]["ConsolePause"]
        assert "ConsolePause" not in project.config["Release"]
        with pytest.raises(KeyError):
            del project.config["Release"]["ConsolePause"]

    def test_reading_a_missing_global_group_changes_nothing(self, tmp_path):
        path = tmp_path / "Bare.csproj"
        original = (
            b'<?xml version="1.0" encoding="utf-8"?>\n'
            b"<Project>\n"
            b"  <ItemGroup>\n"
            b'    <Compile Include="Program.cs" />\n'
            b"  </ItemGroup>\n"
            b"</Project>\n"
        )
        path.write_bytes(original)

        project = Project(str(path))
        assert project.config[GLOBAL]["AssemblyName"] is None
        assert "AssemblyName" not in project.config[GLOBAL]
        assert project.config[GLOBAL].properties == []
        assert project.global_properties == []
        project.save()

        assert path.read_bytes() == original

    def test_first_global_assignment_creates_the_group(self, tmp_path):
        path = tmp_path / "Bare.csproj"
        path.write_text("<Project>\n  <ItemGroup>\n  </ItemGroup>\n</Project>\n")

        project = Project(str(path))
        project.config[GLOBAL]["AssemblyName"] = "Bare"
        project.save()

        reread = Project(str(path))
        assert [p.name for p in reread.global_properties] == ["AssemblyName"]
        assert reread.config[GLOBAL]["AssemblyName"] == "Bare"

class TestGlobalProperties:
    def test_can_read_and_change_global_properties(self, specs_csproj):
        project = Project(specs_csproj)
        assert [p.name for p in project.global_properties] == [
            "Configuration", "Platform", "ProductVersion", "SchemaVersion", "ProjectGuid",
            "OutputType", "RootNamespace", "AssemblyName", "TargetFrameworkVersion",
        ]
        assert project.global_properties[-1].text == "v4.0"

        project.global_properties[-1].text = "CHANGED"
        assert Project(specs_csproj).global_properties[-1].text == "v4.0"

        project.save()
        assert Project(specs_csproj).global_properties[-1].text == "CHANGED"

    def test_id_comes_from_project_guid(self, specs_csproj):
        project = Project(specs_csproj)
        assert str(project.id) == "73123bfc-2a8a-4160-80fc-597a2b460c66"
        assert project.name == "FluentXml.Specs"

    def test_global_config_is_the_unconditioned_group(self, specs_csproj):
        assert Project(specs_csproj).config[GLOBAL]["RootNamespace"] == "FluentXml.Specs"


class TestRoundTrip:
    def test_save_then_parse_restores_every_collection(self, specs_csproj, tmp_path):
        original = Project(specs_csproj)
        copy_path = str(tmp_path / "Copy.csproj")
        original.path = copy_path
        original.save()

        reread = Project(copy_path)
        original = Project(specs_csproj)
        assert [r.full_name for r in reread.references] == [r.full_name for r in original.references]
        assert [r.hint_path for r in reread.references] == [r.hint_path for r in original.references]
        assert [c.include for c in reread.compile_paths] == [c.include for c in original.compile_paths]
        assert [(p.name, p.text) for p in reread.global_properties] == [
            (p.name, p.text) for p in original.global_properties
        ]
        assert [str(c) for c in reread.configurations] == [str(c) for c in original.configurations]

    def test_saving_without_changes_keeps_the_file(self, specs_csproj):
        with open(specs_csproj, "rb") as f:
            before = f.read()

        Project(specs_csproj).save()

        with open(specs_csproj, "rb") as f:
            after = f.read()
        assert after.startswith(b'<?xml version="1.0" encoding="utf-8"?>\n<Project ')
        assert after.endswith(b"</Project>\n")
        before_lines = before.splitlines()
        after_lines = after.splitlines()
        assert len(after_lines) == len(before_lines)
        # ElementTree writes the xmlns declaration ahead of the other attributes
        assert [n for n, (a, b) in enumerate(zip(before_lines, after_lines)) if a != b] == [1]
        assert b'ToolsVersion="4.0"' in after_lines[1]
        assert b'DefaultTargets="Build"' in after_lines[1]
        assert b'xmlns="http://schemas.microsoft.com/developer/msbuild/2003"' in after_lines[1]

    def test_saving_twice_is_stable(self, tmp_path):
        path = str(tmp_path / "CoolProject.csproj")
        Project.create(path).save()
        with open(path, "rb") as f:
            first = f.read()

        Project(path).save()

        with open(path, "rb") as f:
            assert f.read() == first

    def test_untouched_content_is_preserved(self, specs_csproj):
        project = Project(specs_csproj)
        project.compile_paths.add("Extra.cs")
        project.save()

        with open(specs_csproj, encoding="utf-8") as f:
            text = f.read()
        assert "<!-- Assemblies this spec project depends on -->" in text
        assert 'xmlns="http://schemas.microsoft.com/developer/msbuild/2003"' in text
        assert "ns0:" not in text
        assert (
            "  <PropertyGroup Condition=\" '$(Configuration)|$(Platform)' == 'Release|AnyCPU' \">\n"
            "    <DebugType>none</DebugType>\n"
        ) in text
