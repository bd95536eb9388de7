import pytest

from minion.sandbox.journal import seed_journal
from minion.tools import ToolContext, ToolError, ToolRegistry, coding_tools
from minion.tools.base import safe_path, truncate
from minion.tools.file_ops import EditTool, ListFilesTool, ReadTool, WriteTool


@pytest.fixture
def ctx(tmp_path):
    return ToolContext(workdir=tmp_path)


def test_safe_path_blocks_traversal(tmp_path):
    """Test that paths escaping the workspace are refused."""
    with pytest.raises(ToolError, match="Path traversal blocked"):
        safe_path(tmp_path, "../etc/passwd")
    with pytest.raises(ToolError):
        safe_path(tmp_path, "/etc/passwd")

    assert safe_path(tmp_path, "src/a.py") == tmp_path.resolve() / "src" / "a.py"


def test_truncate():
    """Test that long output is cut with a marker."""
    assert truncate("abc", limit=5) == "abc"
    assert truncate("abcdefgh", limit=3).startswith("abc\n... (truncated 5 characters)")


def test_write_then_read(ctx, tmp_path):
    """Test that write creates directories and read returns content."""
    assert WriteTool().execute({"path": "src/a.py", "content": "x = 1\n"}, ctx).success

    result = ReadTool().execute({"path": "src/a.py"}, ctx)

    assert result.output == "x = 1\n"


def test_read_outside_workspace(ctx):
    """Test that read refuses traversal."""
    result = ReadTool().execute({"path": "../../etc/passwd"}, ctx)

    assert result.success is False
    assert "Path traversal blocked" in result.error


def test_read_missing_parameter(ctx):
    """Test that a missing path is reported."""
    assert ReadTool().execute({}, ctx).error == "Missing parameter: path"


def test_edit_replaces_unique_match(ctx, tmp_path):
    """Test that a unique old_string is replaced."""
    (tmp_path / "a.py").write_text("def f():\n    return 1\n")

    result = EditTool().execute(
        {"path": "a.py", "old_string": "return 1", "new_string": "return 2"}, ctx
    )

    assert result.success is True
    assert (tmp_path / "a.py").read_text() == "def f():\n    return 2\n"


def test_edit_rejects_ambiguous_match(ctx, tmp_path):
    """Test that multiple matches leave the file untouched."""
    (tmp_path / "a.py").write_text("x = 1\nx = 1\n")

    result = EditTool().execute({"path": "a.py", "old_string": "x = 1", "new_string": "x = 2"}, ctx)

    assert result.success is False
    assert "found 2 times" in result.error
    assert (tmp_path / "a.py").read_text() == "x = 1\nx = 1\n"


def test_edit_missing_match(ctx, tmp_path):
    """Test that an absent old_string is reported."""
    (tmp_path / "a.py").write_text("x = 1\n")

    result = EditTool().execute({"path": "a.py", "old_string": "y", "new_string": "z"}, ctx)

    assert result.error == "old_string not found in file"


def test_list_files(ctx, tmp_path):
    """Test directory listing markers."""
    (tmp_path / "src").mkdir()
    (tmp_path / "README.md").write_text("")

    result = ListFilesTool().execute({"path": "."}, ctx)

    assert result.output == "f README.md\nd src"


def test_journal_is_editable_outside_workspace(tmp_path):
    """Test that the journal file is reachable while its siblings are not."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    run_dir = tmp_path / "minion-run"
    run_dir.mkdir()
    journal = run_dir / "journal.md"
    seed_journal(journal)
    (run_dir / ".env").write_text("LLM_API_KEY=secret\n")
    registry = ToolRegistry(coding_tools())
    ctx = ToolContext(workdir=workspace, extra_files=(journal,))

    read = registry.get("read").execute({"path": str(journal)}, ctx)
    edited = registry.get("edit").execute(
        {"path": str(journal), "old_string": "## Plan\n", "new_string": "## Plan\n\nFix the bug\n"},
        ctx,
    )
    secret = registry.get("read").execute({"path": str(run_dir / ".env")}, ctx)

    assert read.success
    assert edited.success, edited.error
    assert "Fix the bug" in journal.read_text()
    assert secret.success is False
    assert "Path traversal blocked" in secret.error
