from minion.agent.prompts import build_sandbox_system_prompt, format_rules
from minion.models import ProjectAnalysis, TaskContext


def make_context(**overrides):
    fields = {
        "task_id": "abc123",
        "description": "Fix login",
        "repo_type": "local",
        "branch": "minion/abc123",
        "base_branch": "main",
        "project_analysis": ProjectAnalysis(language="python", test_command="pytest"),
        "rules": ["Use type hints", "No print statements"],
        "max_iterations": 25,
        "timeout": 15,
    }
    fields.update(overrides)
    return TaskContext(**fields)


def test_format_rules():
    """Test numbered rules and the empty case."""
    assert format_rules(["a", "b"]) == "1. a\n2. b"
    assert format_rules([]) == "None specified."


def test_system_prompt_contents():
    """Test that the prompt carries budgets, paths, analysis and rules."""
    prompt = build_sandbox_system_prompt(make_context())

    assert "Branch: minion/abc123 (base: main)" in prompt
    assert "Max iterations: 25" in prompt
    assert "Timeout: 15 minutes" in prompt
    assert "/minion-run/journal.md" in prompt
    assert "deliver_patch" in prompt
    assert '"test_command": "pytest"' in prompt
    assert '"framework"' not in prompt
    assert "2. No print statements" in prompt


def test_system_prompt_custom_paths():
    """Test that workspace and run directory can be relocated."""
    prompt = build_sandbox_system_prompt(make_context(rules=[]), workspace="/tmp/ws", run_dir="/tmp/run")

    assert "Source code: /tmp/ws" in prompt
    assert "/tmp/run/patches/" in prompt
    assert "None specified." in prompt
