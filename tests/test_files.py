"""
Tests — File Sources & Sinks
=============================
Validates:
- Glob base extraction and glob matching
- src() expands globs in order, honours exclusions, reads contents
- dest() writes files under the target, keeping relative paths
"""

from __future__ import annotations

from pathlib import Path

import pytest

from guzzle.streams.files import (
    SourceFile,
    dest,
    expand,
    glob_base,
    matches,
    split_patterns,
    src,
)
from guzzle.streams.stream import Stream


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small source tree under tmp_path."""
    (tmp_path / "src" / "css" / "vendor").mkdir(parents=True)
    (tmp_path / "src" / "css" / "a.css").write_text("a {}")
    (tmp_path / "src" / "css" / "b.css").write_text("b {}")
    (tmp_path / "src" / "css" / "vendor" / "reset.css").write_text("* {}")
    (tmp_path / "src" / "app.js").write_text("run()")
    return tmp_path


# ── Glob helpers ────────────────────────────────────────────────────────


class TestGlobHelpers:
    @pytest.mark.parametrize(
        "pattern,base",
        [
            ("src/css/**/*.css", "src/css"),
            ("src/*.js", "src"),
            ("*.py", "."),
            ("src/app.js", "src"),
            ("/abs/dir/*.txt", "/abs/dir"),
        ],
    )
    def test_glob_base(self, pattern, base):
        assert glob_base(pattern) == base

    @pytest.mark.parametrize(
        "pattern,path,expected",
        [
            ("src/*.css", "src/a.css", True),
            ("src/*.css", "src/css/a.css", False),
            ("src/**/*.css", "src/a.css", True),
            ("src/**/*.css", "src/css/vendor/a.css", True),
            ("src/?.css", "src/ab.css", False),
            ("src/a.css", "src/a.css", True),
            ("src/[ab].css", "src/a.css", True),
            ("src/[ab].css", "src/c.css", False),
            ("src/vendor/**", "src/vendor/x/y.css", True),
        ],
    )
    def test_matches(self, pattern, path, expected):
        assert matches(pattern, path) is expected

    def test_split_patterns(self):
        include, exclude = split_patterns(["src/**/*.css", "!src/vendor/**", ""])
        assert include == ["src/**/*.css"]
        assert exclude == ["src/vendor/**"]

    def test_split_single_string(self):
        assert split_patterns("a/*.js") == (["a/*.js"], [])


# ── Expansion ───────────────────────────────────────────────────────────


class TestExpand:
    def test_sorted_within_pattern(self, project):
        paths = [p.name for p, _ in expand("src/css/*.css", cwd=project)]
        assert paths == ["a.css", "b.css"]

    def test_recursive_with_exclusion(self, project):
        found = expand(["src/**/*.css", "!src/css/vendor/**"], cwd=project)
        assert [p.name for p, _ in found] == ["a.css", "b.css"]

    def test_duplicates_dropped(self, project):
        found = expand(["src/css/a.css", "src/css/*.css"], cwd=project)
        assert [p.name for p, _ in found] == ["a.css", "b.css"]

    def test_base_is_static_prefix(self, project):
        (_, base), *_ = expand("src/**/*.css", cwd=project)
        assert base == (project / "src").resolve()

    def test_missing_literal_path_skipped(self, project):
        assert expand("src/missing.css", cwd=project) == []

    def test_character_class_include(self, project):
        (project / "src" / "css" / "c.css").write_text("c {}")
        found = expand("src/css/[ab].css", cwd=project)
        assert [p.name for p, _ in found] == ["a.css", "b.css"]

    def test_character_class_exclude(self, project):
        (project / "src" / "css" / "c.css").write_text("c {}")
        found = expand(["src/css/*.css", "!src/css/[ab].css"], cwd=project)
        assert [p.name for p, _ in found] == ["c.css"]


# ── Source / sink ───────────────────────────────────────────────────────


class TestSourceAndSink:
    @pytest.mark.asyncio
    async def test_src_reads_contents(self, project):
        files = await src("src/css/*.css", cwd=project).collect()
        assert [f.text for f in files] == ["a {}", "b {}"]
        assert [str(f.relative) for f in files] == ["a.css", "b.css"]

    @pytest.mark.asyncio
    async def test_src_without_read(self, project):
        files = await src("src/*.js", cwd=project, read=False).collect()
        assert files[0].contents == b""

    @pytest.mark.asyncio
    async def test_dest_keeps_relative_paths(self, project):
        stream = src("src/**/*.css", cwd=project).pipe(dest("dist", cwd=project))
        written = await stream.collect()

        assert (project / "dist" / "css" / "a.css").read_text() == "a {}"
        assert (project / "dist" / "css" / "vendor" / "reset.css").read_text() == "* {}"
        assert all(f.base == (project / "dist").resolve() for f in written)

    @pytest.mark.asyncio
    async def test_dest_passes_other_items_through(self, tmp_path):
        items = await Stream(["not a file"]).pipe(dest("out", cwd=tmp_path)).collect()
        assert items == ["not a file"]
        assert not (tmp_path / "out").exists()


class TestSourceFile:
    def test_with_contents_encodes_text(self, tmp_path):
        f = SourceFile(path=tmp_path / "a.txt", base=tmp_path)
        assert f.with_contents("héllo").contents == "héllo".encode("utf-8")

    def test_with_relative(self, tmp_path):
        f = SourceFile(path=tmp_path / "a.txt", base=tmp_path)
        assert f.with_relative("sub/b.txt").path == tmp_path / "sub" / "b.txt"
