"""
Tests for zip artifact construction.
"""

import shutil
from pathlib import Path

import pytest

from conftest import FakeShell, collect_events
from vaf.builder import (
    FALLBACK_BUILD_COMMAND,
    INSTALL_COMMANDS,
    ArtifactBuilder,
    ArtifactKind,
    ArtifactPackage,
    cleanup_artifacts,
    layer_filename,
    package_filename,
)
from vaf.errors import DependenciesMissing
from vaf.events import EventTypes
from vaf.packaging import archive_entries
from vaf.project import DeployOverrides, ProjectFile, resolve_config


def _config(use_layers=True, build=None):
    project = ProjectFile.model_validate({"id": 1, "environments": {"dev": {"build": build}}})
    return resolve_config(project, "dev", overrides=DeployOverrides(use_layers=use_layers))


class TestArtifactBuilder:
    def test_layer_and_thin_package(self, node_project):
        builder = ArtifactBuilder(FakeShell())
        layer, package = builder.build(node_project, _config(), stamp="100")

        assert layer.kind is ArtifactKind.LAYER
        assert Path(layer.location).name == layer_filename("100")
        assert sorted(archive_entries(layer.location)) == [
            "nodejs/node_modules/left-pad/index.js",
            "nodejs/node_modules/left-pad/package.json",
        ]

        assert package.kind is ArtifactKind.PACKAGE
        assert Path(package.location).name == package_filename("100")
        entries = archive_entries(package.location)
        assert "index.js" in entries
        assert not any(e.startswith("node_modules/") for e in entries)
        assert not any(e.startswith(".vaf-") for e in entries)
        assert package.size_bytes > 0
        assert package.source_hash

    def test_full_package_keeps_dependencies(self, node_project):
        builder = ArtifactBuilder(FakeShell())
        (package,) = builder.build(node_project, _config(use_layers=False), stamp="200")

        entries = archive_entries(package.location)
        assert "node_modules/left-pad/index.js" in entries
        assert "debug.log" not in entries
        assert ".env" not in entries

    def test_custom_ignore_file(self, node_project):
        (node_project / ".vafignore").write_text("package.json\n")
        (package,) = ArtifactBuilder(FakeShell()).build(node_project, _config(use_layers=False), stamp="1")

        entries = archive_entries(package.location)
        assert "package.json" not in entries
        assert "node_modules/left-pad/package.json" not in entries
        assert "node_modules/left-pad/index.js" in entries
        # Custom ignore files replace the defaults
        assert "debug.log" in entries

    def test_failed_build_command_is_not_fatal(self, node_project):
        shell = FakeShell(failing=["npm run lint"])
        callback, events = collect_events()
        builder = ArtifactBuilder(shell, callback)
        builder.build(node_project, _config(build=["npm run lint", "npm run bundle"]), stamp="1")

        assert shell.command_lines[:2] == ["npm run lint", "npm run bundle"]
        failed = [d["command"] for t, d in events if t == EventTypes.BUILD_COMMAND_FAILED]
        assert failed == ["npm run lint"]

    def test_fallback_build_command(self, node_project):
        shell = FakeShell(failing=[FALLBACK_BUILD_COMMAND])
        ArtifactBuilder(shell).build(node_project, _config(), stamp="1")
        assert shell.command_lines[0] == FALLBACK_BUILD_COMMAND

    def test_skip_build_still_installs(self, node_project):
        shell = FakeShell()
        callback, events = collect_events()
        ArtifactBuilder(shell, callback).build(node_project, _config(build=["make"]), skip_build=True, stamp="1")

        assert "make" not in shell.command_lines
        assert shell.command_lines == [INSTALL_COMMANDS[0]]
        assert events[0][0] == EventTypes.BUILD_SKIPPED

    def test_install_fallback_and_failure(self, node_project):
        shell = FakeShell(failing=["npm ci"])
        builder = ArtifactBuilder(shell)
        assert builder.install_dependencies(node_project) is True
        assert shell.command_lines == INSTALL_COMMANDS

        callback, events = collect_events()
        builder = ArtifactBuilder(FakeShell(failing=["npm"]), callback)
        assert builder.install_dependencies(node_project) is False
        assert events[-1][0] == EventTypes.DEPS_INSTALL_FAILED

    def test_layer_without_dependencies(self, node_project):
        shutil.rmtree(node_project / "node_modules")
        with pytest.raises(DependenciesMissing):
            ArtifactBuilder(FakeShell()).build(node_project, _config(), stamp="1")
        assert not list(node_project.glob(".vaf-*"))

    def test_container_config_rejected(self, node_project):
        project = ProjectFile.model_validate({"id": 1, "environments": {"web": {"runtime": "docker"}}})
        with pytest.raises(ValueError):
            ArtifactBuilder(FakeShell()).build(node_project, resolve_config(project, "web"))

    def test_stamps_keep_attempts_apart(self, node_project):
        builder = ArtifactBuilder(FakeShell())
        first = builder.build(node_project, _config(), stamp="1")
        second = builder.build(node_project, _config(), stamp="2")

        assert {a.location for a in first}.isdisjoint({a.location for a in second})
        assert not any(".vaf-" in e for e in archive_entries(second[1].location))


class TestCleanup:
    def test_removes_local_archives_only(self, tmp_path):
        archive = tmp_path / ".vaf-deploy-temp-1.zip"
        archive.write_bytes(b"zip")
        artifacts = [
            ArtifactPackage(ArtifactKind.PACKAGE, str(archive)),
            ArtifactPackage(ArtifactKind.LAYER, str(tmp_path / "gone.zip")),
            ArtifactPackage(ArtifactKind.IMAGE, "registry/app:latest"),
        ]

        assert cleanup_artifacts(artifacts) == [str(archive)]
        assert not archive.exists()
