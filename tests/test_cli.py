import json

from typer.testing import CliRunner

from patchwright import __version__
from patchwright.cli.config import CLIConfig
from patchwright.main import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"patchwright v{__version__}" in result.stdout


def test_validate_path_json(react_project):
    result = runner.invoke(app, ["validate-path", str(react_project), "../../etc/passwd", "--json"])
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["allowed"] is False
    assert payload["validation"]["error_kind"] == "traversal"
    assert payload["suspicion"]["is_suspicious"] is True


def test_validate_path_machine_output(react_project):
    result = runner.invoke(app, ["validate-path", str(react_project), "components/Header.tsx"])
    assert result.exit_code == 0
    assert "allowed src/components/Header.tsx" in result.stdout
    assert "[green]" not in result.stdout


def test_validate_path_unknown_level(react_project):
    result = runner.invoke(app, ["validate-path", str(react_project), "App.tsx", "--security", "paranoid"])
    assert result.exit_code == 2


def test_index_json(react_project):
    result = runner.invoke(app, ["index", str(react_project / "src" / "components" / "Header.tsx"), "--json"])
    assert result.exit_code == 0
    nodes = json.loads(result.stdout)
    assert [n["tag_name"] for n in nodes] == ["header", "h1", "button"]
    assert nodes[2]["has_signin_text"] is True
    assert "full_context" not in nodes[0]


def test_index_machine_output(react_project):
    result = runner.invoke(app, ["index", str(react_project / "src" / "components" / "Header.tsx")])
    assert result.exit_code == 0
    assert "node_3 <button>" in result.stdout
    assert result.stdout.count("node_3") == 1


def test_index_human_output_lists_each_node_once(react_project, monkeypatch):
    """Human mode shows the table only, without the plain per-node lines."""
    monkeypatch.setattr(CLIConfig, "_machine_mode", None)
    result = runner.invoke(app, ["--human", "index", str(react_project / "src" / "components" / "Header.tsx")])

    assert result.exit_code == 0
    assert result.stdout.count("node_3") == 1
    assert "<button>" not in result.stdout


def test_modify_without_oracle(react_project):
    """With backend 'none' nothing is changed and the command exits non-zero."""
    before = (react_project / "src" / "components" / "Header.tsx").read_text()
    result = runner.invoke(app, [
        "modify", str(react_project), "change button text to Log In",
        "--session", "cli-1", "--backend", "none", "--json",
    ])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["success"] is False
    assert payload["session_id"] == "cli-1"
    assert payload["strategy_used"] == "TARGETED_NODES"
    assert (react_project / "src" / "components" / "Header.tsx").read_text() == before
    assert (react_project / ".patchwright" / "patchwright.db").exists()


def test_changes_and_session_clear(react_project):
    runner.invoke(app, ["modify", str(react_project), "tweak it", "--session", "cli-2", "--backend", "none"])

    result = runner.invoke(app, ["changes", str(react_project), "--session", "cli-2", "--json"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["session_id"] == "cli-2"
    assert payload["changes"] == []

    cleared = runner.invoke(app, ["session-clear", str(react_project), "--session", "cli-2"])
    assert cleared.exit_code == 0
    assert "Cleared session cli-2" in cleared.stdout
