"""
Tests for ignore patterns and archive creation.
"""

from vaf.packaging import (
    DEFAULT_IGNORE_PATTERNS,
    archive_entries,
    format_bytes,
    hash_file,
    is_excluded,
    pack,
    read_ignore_file,
    without_directory,
)


class TestIgnoreFile:
    def test_defaults_without_file(self, tmp_path):
        assert read_ignore_file(tmp_path) == DEFAULT_IGNORE_PATTERNS

    def test_comments_and_blank_lines_dropped(self, tmp_path):
        (tmp_path / ".vafignore").write_text("# build output\n\ndist/**\n  *.tmp  \n#another\n")
        assert read_ignore_file(tmp_path) == ["dist/**", "*.tmp"]

    def test_without_directory(self):
        assert without_directory(DEFAULT_IGNORE_PATTERNS, "node_modules") == [
            ".git/**", "*.log", ".env", ".DS_Store",
        ]


class TestIsExcluded:
    def test_basename_patterns_match_anywhere(self):
        assert is_excluded("debug.log", ["*.log"])
        assert is_excluded("logs/app/server.log", ["*.log"])
        assert is_excluded("sub/.DS_Store", [".DS_Store"])
        assert not is_excluded("index.js", ["*.log"])

    def test_directory_patterns(self):
        assert is_excluded("node_modules", ["node_modules/**"])
        assert is_excluded("node_modules/a/index.js", ["node_modules/**"])
        assert is_excluded(".git/HEAD", [".git/**"])
        assert not is_excluded("src/node_modules_helper.js", ["node_modules/**"])

    def test_patterns_with_slash_are_anchored(self):
        assert is_excluded("src/generated/x.js", ["src/generated/**"])
        assert not is_excluded("lib/src/generated/x.js", ["src/generated/**"])
        assert is_excluded("dist/main.js", ["./dist/"])
        assert not is_excluded("src/dist.js", ["dist/**"])

    def test_transient_files(self):
        assert is_excluded(".vaf-deploy-temp-1700000000000.zip", [".vaf-*"])


class TestPack:
    def test_excludes_and_prunes(self, node_project):
        output = node_project.parent / "out.zip"
        pack(node_project, DEFAULT_IGNORE_PATTERNS, output)
        entries = archive_entries(output)

        assert "index.js" in entries
        assert "package.json" in entries
        assert "debug.log" not in entries
        assert ".env" not in entries
        assert not any(e.startswith("node_modules/") for e in entries)

    def test_prefix(self, node_project):
        output = node_project.parent / "layer.zip"
        pack(node_project / "node_modules", [], output, prefix="nodejs/node_modules/")

        assert sorted(archive_entries(output)) == [
            "nodejs/node_modules/left-pad/index.js",
            "nodejs/node_modules/left-pad/package.json",
        ]

    def test_output_inside_directory_is_skipped(self, node_project):
        output = node_project / "self.zip"
        pack(node_project, ["node_modules/**"], output)
        assert "self.zip" not in archive_entries(output)

    def test_hash_is_stable(self, node_project):
        output = node_project.parent / "a.zip"
        pack(node_project, ["node_modules/**"], output)
        assert hash_file(output) == hash_file(output)
        assert len(hash_file(output)) == 12


class TestFormatBytes:
    def test_units(self):
        assert format_bytes(0) == "0 Bytes"
        assert format_bytes(512) == "512 Bytes"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(5 * 1024 * 1024) == "5 MB"
