import asyncio
import os
import shutil
import time
import unittest
from pathlib import Path
from uuid import uuid4

from termai.tools.glob_tool import GlobTool
from termai.tools.grep_tool import GrepTool, _expand_braces
from termai.tools.ls_tool import LsTool
from termai.tools.view_tool import ViewTool

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class FsToolTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._root = PROJECT_ROOT / ".test-artifacts" / f"{self.__class__.__name__.lower()}-{uuid4().hex}"
        (self._root / "src" / "pkg").mkdir(parents=True)
        (self._root / ".git").mkdir()
        (self._root / "node_modules").mkdir()
        self._write("src/pkg/a.py", "import os\n\ndef alpha():\n    return 1\n")
        self._write("src/pkg/b.py", "def beta():\n    return alpha()\n")
        self._write("README.md", "# demo\nalpha docs\n")
        self._write(".git/config", "alpha")
        self._write("node_modules/x.js", "alpha")
        # b.py is the most recently modified file
        now = time.time()
        os.utime(self._root / "src/pkg/a.py", (now - 100, now - 100))
        os.utime(self._root / "src/pkg/b.py", (now, now))

    def tearDown(self) -> None:
        shutil.rmtree(self._root, ignore_errors=True)

    def _write(self, relative: str, text: str) -> None:
        path = self._root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


class GlobToolTests(FsToolTestCase):
    def test_matches_newest_first(self) -> None:
        result = asyncio.run(GlobTool(str(self._root)).execute({"pattern": "**/*.py"}))

        self.assertFalse(result.is_error)
        lines = result.content.splitlines()
        self.assertEqual(2, len(lines))
        self.assertTrue(lines[0].endswith("b.py"))
        self.assertTrue(lines[1].endswith("a.py"))

    def test_no_match(self) -> None:
        result = asyncio.run(GlobTool(str(self._root)).execute({"pattern": "*.rs"}))
        self.assertEqual("No files found", result.content)

    def test_skips_ignored_directories(self) -> None:
        result = asyncio.run(GlobTool(str(self._root)).execute({"pattern": "**/*"}))
        self.assertNotIn("node_modules", result.content)
        self.assertNotIn(".git", result.content)

    def test_missing_pattern_is_error(self) -> None:
        result = asyncio.run(GlobTool(str(self._root)).execute({}))
        self.assertTrue(result.is_error)


class GrepToolTests(FsToolTestCase):
    def test_finds_matches_with_line_numbers(self) -> None:
        result = asyncio.run(GrepTool(str(self._root)).execute({"pattern": r"alpha\("}))

        self.assertFalse(result.is_error)
        self.assertIn("Found 2 matches", result.content)
        self.assertIn("Line 3: def alpha():", result.content)
        self.assertIn("Line 2:     return alpha()", result.content)
        self.assertNotIn("node_modules", result.content)

    def test_include_filter(self) -> None:
        result = asyncio.run(GrepTool(str(self._root)).execute({"pattern": "alpha", "include": "*.md"}))

        self.assertIn("README.md", result.content)
        self.assertNotIn("a.py", result.content)

    def test_invalid_regex_is_error(self) -> None:
        result = asyncio.run(GrepTool(str(self._root)).execute({"pattern": "("}))
        self.assertTrue(result.is_error)

    def test_match_cap_stops_at_file_boundary(self) -> None:
        self._write("hits/full.txt", "needle\n" * 100)
        self._write("hits/more.txt", "needle\n" * 5)

        result = asyncio.run(GrepTool(str(self._root / "hits")).execute({"pattern": "needle"}))

        lines = result.content.splitlines()
        self.assertEqual("Found 100 matches", lines[0])
        self.assertEqual(100, sum(1 for line in lines if line.startswith("  Line ")))
        self.assertIn("Results are truncated", result.content)
        # every file header is followed by at least one match
        for i, line in enumerate(lines):
            if line.endswith(".txt:"):
                self.assertTrue(lines[i + 1].startswith("  Line "))

    def test_brace_expansion(self) -> None:
        self.assertEqual(["*.ts", "*.tsx"], _expand_braces("*.{ts,tsx}"))
        self.assertEqual([], _expand_braces(""))


class LsToolTests(FsToolTestCase):
    def test_tree_listing(self) -> None:
        result = asyncio.run(LsTool(str(self._root)).execute({}))

        self.assertFalse(result.is_error)
        self.assertIn(f"  - src{os.sep}", result.content)
        self.assertIn(f"    - pkg{os.sep}", result.content)
        self.assertIn("      - a.py", result.content)
        self.assertIn("  - README.md", result.content)
        self.assertNotIn(".git", result.content)
        self.assertNotIn("node_modules", result.content)

    def test_ignore_patterns(self) -> None:
        result = asyncio.run(LsTool(str(self._root)).execute({"ignore": ["*.md"]}))
        self.assertNotIn("README.md", result.content)

    def test_missing_path_is_error(self) -> None:
        result = asyncio.run(LsTool(str(self._root)).execute({"path": "nope"}))
        self.assertTrue(result.is_error)


class ViewToolTests(FsToolTestCase):
    def test_numbered_lines(self) -> None:
        result = asyncio.run(ViewTool(str(self._root)).execute({"file_path": "src/pkg/a.py"}))

        self.assertFalse(result.is_error)
        self.assertIn("     1|import os", result.content)
        self.assertIn("     4|    return 1", result.content)

    def test_offset_and_limit(self) -> None:
        result = asyncio.run(ViewTool(str(self._root)).execute({"file_path": "src/pkg/a.py", "offset": 2, "limit": 1}))

        self.assertIn("     3|def alpha():", result.content)
        self.assertNotIn("import os", result.content)
        self.assertIn("1 more lines", result.content)

    def test_missing_file_is_error(self) -> None:
        result = asyncio.run(ViewTool(str(self._root)).execute({"file_path": "missing.py"}))
        self.assertTrue(result.is_error)

    def test_directory_is_error(self) -> None:
        result = asyncio.run(ViewTool(str(self._root)).execute({"file_path": "src"}))
        self.assertTrue(result.is_error)

    def test_docx_text_is_extracted(self) -> None:
        from docx import Document

        doc = Document()
        doc.add_paragraph("first paragraph")
        doc.add_paragraph("second paragraph")
        doc.save(str(self._root / "notes.docx"))

        result = asyncio.run(ViewTool(str(self._root)).execute({"file_path": "notes.docx"}))

        self.assertIn("first paragraph", result.content)
        self.assertIn("second paragraph", result.content)


if __name__ == "__main__":
    unittest.main()
