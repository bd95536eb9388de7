"""Read-only project analysis."""

import logging
from pathlib import Path

from minion.llm.base import LLMAdapter, collect_text, parse_json_reply
from minion.models import Message, ProjectAnalysis

logger = logging.getLogger(__name__)

KEY_FILES = ("package.json", "Cargo.toml", "go.mod", "pyproject.toml", "Makefile", "pom.xml")
KEY_FILE_LIMIT = 2000


def list_entries(repo_path: Path) -> str:
    """Top-level entries as ``d name`` / ``f name`` lines."""
    return "\n".join(
        f"{'d' if entry.is_dir() else 'f'} {entry.name}"
        for entry in sorted(repo_path.iterdir(), key=lambda p: p.name)
    )


def read_key_files(repo_path: Path) -> list[str]:
    contents = []
    for name in KEY_FILES:
        path = repo_path / name
        if path.is_file():
            text = path.read_text(errors="replace")[:KEY_FILE_LIMIT]
            contents.append(f"--- {name} ---\n{text}")
    return contents


def build_analysis_prompt(repo_path: Path) -> str:
    key_files = "\n\n".join(read_key_files(repo_path))
    return f"""Analyze this project and return JSON with: language, framework, package_manager, build_tool, test_framework, lint_command, test_command, monorepo (boolean), notes.

Directory listing:
{list_entries(repo_path)}

{key_files}

Return ONLY valid JSON, no markdown fences."""


def analyze_project(llm: LLMAdapter, repo_path: str | Path) -> ProjectAnalysis:
    """Classify language and build tooling of a repository.

    Never fails the task: any error degrades to ``language="unknown"``.
    """
    try:
        prompt = build_analysis_prompt(Path(repo_path))
        text = collect_text(llm, [Message(role="user", content=prompt)])
        analysis = ProjectAnalysis.model_validate(parse_json_reply(text))
    except Exception as e:
        logger.warning(f"Project analysis failed for {repo_path}: {e}")
        return ProjectAnalysis(language="unknown")

    logger.info(f"Project analysis: language={analysis.language} framework={analysis.framework}")
    return analysis
