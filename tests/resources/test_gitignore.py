"""
Tests for .gitignore filtering.
"""

import pytest

from composition.core.resources.gitignore import GitignoreFilter, find_project_root


@pytest.fixture
def project(tmp_path, write):
    (tmp_path / ".git").mkdir()
    write(".gitignore", "*.log\nbuild/\n!keep.log\n")
    return tmp_path


@pytest.mark.unit
class TestGitignoreFilter:
    """Test ignore decisions."""

    def test_find_project_root(self, project, write):
        path = write("docs/deep/a.md", "x")
        assert find_project_root(path) == project

    def test_outside_project(self, tmp_path, write):
        assert find_project_root(write("a.md", "x")) is None
        assert not GitignoreFilter().is_ignored(tmp_path / "a.md")

    def test_patterns(self, project, write):
        gitignore = GitignoreFilter()
        assert gitignore.is_ignored(write("debug.log", "x"))
        assert gitignore.is_ignored(write("build/out.md", "x"))
        assert not gitignore.is_ignored(write("keep.log", "x"))
        assert not gitignore.is_ignored(write("docs/a.md", "x"))

    def test_no_gitignore_file(self, tmp_path, write):
        (tmp_path / ".git").mkdir()
        assert not GitignoreFilter().is_ignored(write("debug.log", "x"))

    def test_invalidate_reloads_rules(self, project, write):
        gitignore = GitignoreFilter()
        path = write("notes.md", "x")
        assert not gitignore.is_ignored(path)

        write(".gitignore", "notes.md\n")
        assert not gitignore.is_ignored(path)

        gitignore.invalidate(project)
        assert gitignore.is_ignored(path)
