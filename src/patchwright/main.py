import uuid
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from patchwright import __version__
from patchwright.logging_config import logger, setup_logging
from patchwright.cache import InMemoryCacheBackend, SessionCache
from patchwright.cli.config import CLIConfig
from patchwright.cli.output import echo_json, get_console
from patchwright.exceptions import ConfigError
from patchwright.oracle import create_oracle
from patchwright.orchestrator import ModificationOrchestrator, SessionLifecycle, get_most_modified_files
from patchwright.parser import ASTIndexer
from patchwright.paths import PatchwrightPaths
from patchwright.sandbox import PathSandbox
from patchwright.storage import DurableStore
from patchwright.user_config import UserConfig

app = typer.Typer()
console = get_console()


@app.callback()
def global_options(
    human: bool = typer.Option(
        False,
        "--human",
        "-H",
        help="Human mode: tables and colours (also via PATCHWRIGHT_HUMAN_MODE)",
    ),
):
    """
    patchwright: apply natural-language change requests to a React project.

    Machine mode (plain output) is the default. Use --human/-H for tables.
    """
    if human:
        CLIConfig.set_machine_mode(False)
    else:
        setup_logging(suppress_console=True, force=True)


def _session_cache(config: UserConfig, paths: PatchwrightPaths) -> SessionCache:
    paths.ensure_dirs()
    return SessionCache(InMemoryCacheBackend(), DurableStore(paths.store_db), ttls=config.get("cache.ttl"))


@app.command()
def version():
    """Prints the current version."""
    typer.echo(f"patchwright v{__version__}")


@app.command()
def modify(
    project: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root"),
    request: str = typer.Argument(..., help="Natural-language change request"),
    session: Optional[str] = typer.Option(None, "--session", "-s", help="Session id (new one if omitted)"),
    security: Optional[str] = typer.Option(None, "--security", help="strict or relaxed"),
    backend: Optional[str] = typer.Option(None, "--backend", help="Oracle backend: ollama, anthropic or none"),
    json_output: bool = typer.Option(False, "--json", help="Output result as JSON"),
):
    """
    Apply one change request to PROJECT.
    """
    overrides = {}
    if security:
        overrides["sandbox"] = {"security_level": security}
    if backend:
        overrides["oracle"] = {"backend": backend}
    config = UserConfig(project, overrides=overrides)
    paths = PatchwrightPaths(project)

    try:
        oracle = create_oracle(config.section("oracle"))
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    cache = _session_cache(config, paths)
    lifecycle = SessionLifecycle(
        cache,
        config.get("modification.builds_dir") or paths.builds_dir,
        timeout_seconds=config.get("modification.session_timeout_seconds", 300),
    )
    orchestrator = ModificationOrchestrator(
        oracle,
        cache,
        config=config.section("modification"),
        security_level=config.get("sandbox.security_level", "strict"),
        lifecycle=lifecycle,
    )

    session_id = session or uuid.uuid4().hex[:12]
    try:
        result = orchestrator.process(request, session_id, working_directory=str(project.resolve()))
    finally:
        lifecycle.shutdown()

    if json_output:
        echo_json(result.model_dump(mode="json"))
    else:
        status = "[green]success[/green]" if result.success else "[red]failed[/red]"
        console.print(f"{status} session={result.session_id} strategy={result.strategy_used.value if result.strategy_used else '-'}")
        console.print(result.reasoning)
        table = Table(title="Files")
        table.add_column("Path")
        table.add_column("Status")
        table.add_column("Detail")
        machine = CLIConfig.is_machine_mode()
        for outcome in result.file_outcomes:
            table.add_row(outcome.path, outcome.status, outcome.detail)
            if machine:
                console.print(f"{outcome.status}: {outcome.path} {outcome.detail}")
        console.print(table)

    if not result.success:
        raise typer.Exit(code=1)


@app.command("validate-path")
def validate_path(
    project: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root"),
    path: str = typer.Argument(..., help="Path to check"),
    security: str = typer.Option("strict", "--security", help="strict or relaxed"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Check a path against the sandbox without touching the filesystem.
    """
    try:
        sandbox = PathSandbox(project, security)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=2)

    validation = sandbox.validate(path)
    suspicion = sandbox.detect_suspicious(path)
    allowed = validation.is_valid and not suspicion.is_suspicious

    if json_output:
        echo_json({
            "allowed": allowed,
            "validation": validation.model_dump(),
            "suspicion": suspicion.model_dump(),
        })
    elif allowed:
        console.print(f"[green]allowed[/green] {validation.normalized_path}")
    else:
        reasons = [validation.error] if validation.error else []
        reasons += suspicion.reasons
        console.print(f"[red]rejected[/red] {path}: {'; '.join(reasons)}")

    if not allowed:
        raise typer.Exit(code=1)


@app.command()
def index(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Component file"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List the markup nodes of one file.
    """
    indexed = ASTIndexer().parse_content(file.name, file.read_text(encoding="utf-8"))
    logger.debug(f"Indexed {file}: {len(indexed.nodes)} nodes")

    if json_output:
        echo_json([node.model_dump(exclude={"full_context"}) for node in indexed.nodes])
        return

    table = Table(title=f"{file.name}: {len(indexed.nodes)} nodes")
    for column in ("Id", "Tag", "Lines", "Text", "Flags"):
        table.add_column(column)
    machine = CLIConfig.is_machine_mode()
    for node in indexed.nodes:
        flags = " ".join(f for f, on in (("button", node.is_button), ("signin", node.has_signin_text)) if on)
        table.add_row(node.id, node.tag_name, f"{node.start_line}-{node.end_line}", node.text_content[:40], flags)
        if machine:
            console.print(f"{node.id} <{node.tag_name}> {node.start_line}-{node.end_line} {node.text_content[:40]} {flags}".rstrip())
    console.print(table)


@app.command()
def changes(
    project: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root"),
    session: str = typer.Option(..., "--session", "-s", help="Session id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show the recorded change history of a session.
    """
    cache = _session_cache(UserConfig(project), PatchwrightPaths(project))
    history = cache.get_changes(session)

    if json_output:
        echo_json({
            "session_id": session,
            "changes": [c.model_dump(mode="json") for c in history],
            "most_modified": get_most_modified_files(history),
        })
        return

    if not history:
        console.print(f"No changes recorded for session {session}")
        return
    for change in history:
        mark = "ok" if change.success else "failed"
        console.print(f"{mark}: {change.kind} {change.file}: {change.description}")


@app.command("session-clear")
def session_clear(
    project: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root"),
    session: str = typer.Option(..., "--session", "-s", help="Session id"),
):
    """
    Drop a session's cached snapshot, context and state (history is kept).
    """
    cache = _session_cache(UserConfig(project), PatchwrightPaths(project))
    removed = cache.clear_session(session)
    console.print(f"Cleared session {session} ({removed} cache keys)")


if __name__ == "__main__":
    app()
