import os
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gitgg.errors import ConfigurationError, SelectionError  # noqa: E402
from gitgg.selection import (  # noqa: E402
    NO_SELECTION_MESSAGE,
    ActiveDocument,
    ContainerReference,
    ExplicitPaths,
    active_document_of,
    discover_repository_root,
    extract_paths,
    resolve_file_set,
)
from tests.helpers import GIT_AVAILABLE, init_repo  # noqa: E402


class TestSelectionSources(unittest.TestCase):
    def test_extracts_paths_from_every_source_shape(self):
        sources = [
            ExplicitPaths(("a.txt", "  ", "dir")),
            ContainerReference("scm/b.txt"),
            ActiveDocument("editor.py"),
        ]
        self.assertEqual(extract_paths(sources), ["a.txt", "dir", "scm/b.txt"])
        self.assertEqual(active_document_of(sources), "editor.py")
        self.assertIsNone(active_document_of([ExplicitPaths(())]))


class TestResolveFileSet(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.repo = Path(self._tmp.name).resolve()
        (self.repo / "src" / "pkg").mkdir(parents=True)
        (self.repo / ".git").mkdir()
        (self.repo / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
        (self.repo / "src" / "a.py").write_text("a\n", encoding="utf-8")
        (self.repo / "src" / "pkg" / "b.py").write_text("b\n", encoding="utf-8")
        (self.repo / "top.txt").write_text("t\n", encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def test_expands_folders_and_deduplicates(self):
        paths = [self.repo / "src", self.repo / "src" / "a.py", self.repo / "top.txt"]
        self.assertEqual(resolve_file_set(paths, self.repo), ["src/a.py", "src/pkg/b.py", "top.txt"])

    def test_repository_root_skips_git_directory(self):
        resolved = resolve_file_set([self.repo], self.repo)
        self.assertEqual(resolved, ["top.txt", "src/a.py", "src/pkg/b.py"])

    def test_missing_path_is_kept_for_deletion(self):
        self.assertEqual(resolve_file_set([self.repo / "deleted.txt"], self.repo), ["deleted.txt"])

    def test_active_document_fallback(self):
        resolved = resolve_file_set([], self.repo, active_document=self.repo / "top.txt")
        self.assertEqual(resolved, ["top.txt"])

    def test_empty_selection_is_an_error(self):
        with self.assertRaises(SelectionError) as ctx:
            resolve_file_set([], self.repo)
        self.assertEqual(str(ctx.exception), NO_SELECTION_MESSAGE)

    def test_empty_folder_is_an_error(self):
        (self.repo / "empty").mkdir()
        with self.assertRaises(SelectionError):
            resolve_file_set([self.repo / "empty"], self.repo)

    def test_path_outside_repository_is_rejected(self):
        with tempfile.TemporaryDirectory() as outside:
            with self.assertRaises(SelectionError):
                resolve_file_set([Path(outside) / "x.txt"], self.repo)

    def test_relative_paths_resolve_against_cwd(self):
        previous = os.getcwd()
        os.chdir(self.repo / "src")
        try:
            self.assertEqual(resolve_file_set(["a.py"], self.repo), ["src/a.py"])
        finally:
            os.chdir(previous)


@unittest.skipUnless(GIT_AVAILABLE, "git is not installed")
class TestDiscoverRepositoryRoot(unittest.TestCase):
    def test_discovers_from_nested_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            repo = Path(tmp).resolve()
            init_repo(repo, {"src/a.py": "a\n"})
            self.assertEqual(discover_repository_root(None, [str(repo / "src" / "a.py")]), repo)
            self.assertEqual(discover_repository_root(repo / "src", []), repo)

    def test_outside_repository_is_configuration_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ConfigurationError):
                discover_repository_root(tmp, [])


if __name__ == "__main__":
    unittest.main()
