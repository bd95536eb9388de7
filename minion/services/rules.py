"""Coding rules loader."""

from pathlib import Path

GLOBAL_RULES = Path(".minion") / "rules" / "global.md"
RULES_FILENAME = ".minion-rules.md"
RULES_SEPARATOR = "\n\n---\n\n"


def collect_rules(workdir: str | Path, file_path: str = "") -> list[str]:
    """Rule texts in order: global rules, then every ``.minion-rules.md``
    from the repository root down to ``file_path``.
    """
    workdir = Path(workdir)
    rules: list[str] = []

    global_rules = workdir / GLOBAL_RULES
    if global_rules.is_file():
        rules.append(global_rules.read_text())

    current = workdir
    candidates = [current / RULES_FILENAME]
    for part in Path(file_path).parts:
        if part in ("/", ""):
            continue
        current = current / part
        candidates.append(current / RULES_FILENAME)

    rules.extend(c.read_text() for c in candidates if c.is_file())
    return [r.strip() for r in rules if r.strip()]


def load_rules_for_path(workdir: str | Path, file_path: str = "") -> str:
    """Rules applicable to ``file_path`` joined into one document."""
    return RULES_SEPARATOR.join(collect_rules(workdir, file_path))
