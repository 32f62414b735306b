"""taskbridge CLI — all commands."""

import json
import logging
import re
from pathlib import Path
from typing import Annotated

import tomlkit
import typer
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from taskbridge.adapters.beads import BeadsAdapter
from taskbridge.adapters.taskmaster import TaskMasterAdapter
from taskbridge.engine import SyncEngine
from taskbridge.errors import AlreadyLinkedError, TaskbridgeError
from taskbridge.identifiers import parse_a_id
from taskbridge.link_store import save_links
from taskbridge.logging_setup import setup_logging
from taskbridge.models import LinkStore, SyncDirection, SyncOptions, SyncResult, TaskLink
from taskbridge.settings import CONFIG_DIR, TaskbridgeSettings, _load_toml, config_path, get_settings

app = typer.Typer(help="taskbridge: keep Task Master and Beads in sync", no_args_is_help=True)

ProjectOpt = Annotated[
    Path | None,
    typer.Option("--project", "-C", help="Project directory (default: current directory)"),
]
DryRunOpt = Annotated[bool, typer.Option("--dry-run", "-n", help="Show what would be done without making changes")]

CLAUDE_START = "<!-- taskbridge:start -->"
CLAUDE_END = "<!-- taskbridge:end -->"

_CLAUDE_SECTION = f"""\
{CLAUDE_START}
## Task tracking (taskbridge)

Plans live in Task Master (`.taskmaster/tasks/tasks.json`), execution in Beads (`bd`).
`taskbridge` keeps the two in step:

- Run `taskbridge sync` before picking up work and after changing a task's status.
- Beads issues for Task Master tasks are titled `A-<id>: <title>`; keep that prefix.
- `taskbridge links` shows which issue belongs to which task.
- Conflicts (both sides changed at the same time) are listed by `sync` and left
  alone; fix the status on one side and sync again.
{CLAUDE_END}
"""

_DOCS = """\
# taskbridge

This project keeps Task Master tasks and Beads issues linked one-to-one.

## Commands

| Command | What it does |
| --- | --- |
| `taskbridge status` | Which stores are present, how many links exist |
| `taskbridge sync` | Link, create and update in both directions |
| `taskbridge sync --dry-run` | Show the plan without changing anything |
| `taskbridge sync --a-to-b` / `--b-to-a` | Only push status one way |
| `taskbridge import` | Create Beads issues for every unlinked Task Master task |
| `taskbridge link 7 proj-abc` | Link task 7 to issue proj-abc by hand |
| `taskbridge unlink 7` / `unlink proj-abc` | Remove a link |
| `taskbridge links --json` | Dump the link store |

## How sync decides

1. A Beads issue whose title starts with `A-7:` or `[A-7]`, starts with `a:7`,
   or contains `(A-7)` is linked to task 7 automatically.
2. A Task Master task without a link gets a new Beads issue titled `A-<id>: <title>`.
3. When a linked pair disagrees on status, the side updated most recently wins.
   Equal timestamps are reported as conflicts and not touched.

Beads has no `blocked` or `cancelled` state: they are stored as `open` and `closed`.

Links are kept in `.taskbridge/links.json`; settings in `.taskbridge/config.toml`
(override any of them with `TASKBRIDGE_<NAME>` environment variables).
"""


# ---------------------------------------------------------------------------
# Engine factory
# ---------------------------------------------------------------------------


def build_engine(settings: TaskbridgeSettings) -> SyncEngine:
    source_a = TaskMasterAdapter(settings.planning_path)
    source_b = BeadsAdapter(
        settings.beads_path,
        command=settings.bd_command,
        cwd=settings.project_root,
        timeout=settings.bd_timeout,
        issue_type=settings.issue_type,
        close_reason=settings.close_reason,
    )
    return SyncEngine(source_a, source_b, settings.link_store_path)


def get_engine(project: Path | None = None, verbose: bool = False) -> SyncEngine:
    settings = get_settings(project)
    setup_logging(logging.DEBUG if verbose else settings.log_level)
    return build_engine(settings)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

_DIRECTION_LABEL = {
    SyncDirection.A_TO_B: "Task Master → Beads",
    SyncDirection.B_TO_A: "Beads → Task Master",
}


def _icon(ok: bool, missing: str = "[red]✗[/red]") -> str:
    return "[green]✓[/green]" if ok else missing


def render_sync_result(result: SyncResult, verbose: bool = False) -> None:
    prefix = "[yellow][DRY RUN][/yellow] " if result.dry_run else ""
    stats = result.stats

    table = Table(title=f"{prefix}Sync Results")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Task Master tasks", str(stats.a_tasks))
    table.add_row("Beads issues", str(stats.b_tasks))
    table.add_row("Linked", str(stats.linked))
    table.add_row("Unlinked", str(stats.unlinked))
    rprint(table)

    if result.auto_linked:
        rprint(f"\n[cyan]⇄ Auto-linked ({len(result.auto_linked)}):[/cyan]")
        for link in result.auto_linked:
            rprint(f"  A-{link.a_id} ↔ {escape(link.b_id)}")

    if result.created:
        rprint(f"\n[green]✓ Created ({len(result.created)}):[/green]")
        for action in result.created:
            rprint(f"  {_DIRECTION_LABEL[action.direction]}: {escape(action.task.title)}")
            rprint(f"    [dim]→ {escape(action.reason)}[/dim]")

    if result.updated:
        rprint(f"\n[blue]↻ Updated ({len(result.updated)}):[/blue]")
        for action in result.updated:
            rprint(f"  {escape(action.task.title)}")
            rprint(f"    [dim]→ {escape(action.reason)} ({_DIRECTION_LABEL[action.direction]})[/dim]")

    if result.conflicts:
        rprint(f"\n[red]⚠ Conflicts ({len(result.conflicts)}):[/red]")
        for conflict in result.conflicts:
            rprint(f"  {escape(conflict.task.title)}")
            rprint(
                f'    [dim]{conflict.field}: Task Master="{conflict.a_value}" vs Beads="{conflict.b_value}"[/dim]'
            )

    if result.skipped:
        rprint(f"\n[bright_black]⊘ Skipped ({len(result.skipped)})[/bright_black]")
        if verbose:
            for action in result.skipped:
                rprint(f"  {escape(action.task.title)} [dim]({escape(action.reason)})[/dim]")

    if not (result.auto_linked or result.created or result.updated or result.conflicts or result.skipped):
        rprint("\n[dim]Nothing to do.[/dim]")


def render_links(links: list[TaskLink]) -> None:
    if not links:
        rprint("[dim]No links found.[/dim]")
        return

    table = Table(title=f"Links ({len(links)})")
    table.add_column("Task Master", style="cyan")
    table.add_column("Beads")
    table.add_column("Linked")
    table.add_column("How", style="dim")
    for link in links:
        table.add_row(
            f"A-{link.a_id}",
            escape(link.b_id),
            link.linked_at.strftime("%Y-%m-%d %H:%M"),
            "auto" if link.auto_linked else "manual",
        )
    rprint(table)


# ---------------------------------------------------------------------------
# init helpers
# ---------------------------------------------------------------------------


def _default_config() -> tomlkit.TOMLDocument:
    doc = tomlkit.document()
    doc.add(tomlkit.comment("taskbridge project settings. TASKBRIDGE_<NAME> env vars override these."))
    doc.add(tomlkit.nl())
    for name in ("planning_file", "beads_file", "link_store", "bd_command", "issue_type", "close_reason", "log_level"):
        default = TaskbridgeSettings.model_fields[name].default
        doc.add(name, str(default))
    doc.add("bd_timeout", TaskbridgeSettings.model_fields["bd_timeout"].default)
    return doc


def _write_if_allowed(target: Path, content: str, force: bool) -> bool:
    """Write content unless target exists and force is off. Returns True if written."""
    if target.exists() and not force:
        rprint(f"[yellow]Exists, not overwritten:[/yellow] {target} (use --force)")
        return False
    existed = target.exists()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    rprint(f"[green]✓[/green] {'Updated' if existed else 'Wrote'} {target}")
    return True


def _merge_claude_section(existing: str, force: bool) -> str | None:
    """Return new CLAUDE.md content, or None if the section is present and force is off."""
    block = re.compile(re.escape(CLAUDE_START) + r".*?" + re.escape(CLAUDE_END) + r"\n?", re.DOTALL)
    if block.search(existing):
        if not force:
            return None
        return block.sub(lambda _: _CLAUDE_SECTION, existing, count=1)
    separator = "" if not existing or existing.endswith("\n\n") else ("\n" if existing.endswith("\n") else "\n\n")
    return existing + separator + _CLAUDE_SECTION


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("status")
def status_cmd(project: ProjectOpt = None) -> None:
    """Show which stores are present and how many links exist."""
    settings = get_settings(project)
    engine = get_engine(project)
    status = engine.status()

    table = Table(title="taskbridge status")
    table.add_column("", width=2)
    table.add_column("Store", style="bold")
    table.add_column("Location", style="dim")
    table.add_row(_icon(status.source_a), "Task Master", str(settings.planning_file))
    table.add_row(_icon(status.source_b), "Beads", str(settings.beads_file))
    table.add_row(_icon(status.b_cli, "[yellow]✗[/yellow]"), "bd CLI", settings.bd_command)
    table.add_row(_icon(status.link_store, "[dim]○[/dim]"), "Link store", str(settings.link_store))
    rprint(table)

    links = engine.list_links()
    if links:
        auto = sum(1 for link in links if link.auto_linked)
        rprint(f"\n  [cyan]{len(links)}[/cyan] active links ({auto} auto, {len(links) - auto} manual)")

    if not status.source_a and not status.source_b:
        rprint("\n[yellow]Neither Task Master nor Beads found. Run in a project that uses one of them.[/yellow]")
        raise typer.Exit(1)


@app.command("sync")
def sync_cmd(
    project: ProjectOpt = None,
    dry_run: DryRunOpt = False,
    a_to_b: Annotated[bool, typer.Option("--a-to-b", help="Only sync from Task Master to Beads")] = False,
    b_to_a: Annotated[bool, typer.Option("--b-to-a", help="Only sync from Beads to Task Master")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show detailed output")] = False,
) -> None:
    """Bidirectional sync between Task Master and Beads."""
    if a_to_b and b_to_a:
        rprint("[red]--a-to-b and --b-to-a are mutually exclusive.[/red]")
        raise typer.Exit(1)

    engine = get_engine(project, verbose=verbose)
    status = engine.status()
    if not status.source_a and not status.source_b:
        rprint("[red]Error: Neither Task Master nor Beads found.[/red]")
        raise typer.Exit(1)

    direction = SyncDirection.BIDIRECTIONAL
    if a_to_b:
        direction = SyncDirection.A_TO_B
    elif b_to_a:
        direction = SyncDirection.B_TO_A

    try:
        result = engine.sync(SyncOptions(dry_run=dry_run, direction=direction, verbose=verbose))
    except TaskbridgeError as exc:
        rprint(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc

    render_sync_result(result, verbose=verbose)


@app.command("import")
def import_cmd(project: ProjectOpt = None, dry_run: DryRunOpt = False) -> None:
    """Create Beads issues for every unlinked Task Master task."""
    engine = get_engine(project)
    if not engine.status().source_a:
        rprint("[red]Error: Task Master not found.[/red]")
        raise typer.Exit(1)

    rprint("[cyan]Importing Task Master tasks to Beads...[/cyan]")
    try:
        result = engine.import_tasks(SyncOptions(dry_run=dry_run))
    except TaskbridgeError as exc:
        rprint(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc

    render_sync_result(result)


@app.command("link")
def link_cmd(
    a_id: Annotated[str, typer.Argument(help="Task Master id (7, a-7 or a:7)")],
    b_id: Annotated[str, typer.Argument(help="Beads issue id")],
    project: ProjectOpt = None,
) -> None:
    """Link a Task Master task to a Beads issue by hand."""
    task_number = parse_a_id(a_id)
    if task_number is None:
        rprint(f"[red]Invalid Task Master id: {escape(a_id)}[/red]")
        raise typer.Exit(1)

    engine = get_engine(project)
    try:
        engine.link(task_number, b_id)
    except AlreadyLinkedError as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc

    rprint(f"[green]✓[/green] Linked A-{task_number} ↔ {escape(b_id)}")


@app.command("unlink")
def unlink_cmd(
    identifier: Annotated[str, typer.Argument(help="Task Master id (7, a-7, a:7) or Beads issue id")],
    project: ProjectOpt = None,
) -> None:
    """Remove a link, by Task Master id or Beads id."""
    engine = get_engine(project)
    removed = engine.unlink(identifier)
    if removed is None:
        rprint(f"[red]No link found for: {escape(identifier)}[/red]")
        raise typer.Exit(1)

    rprint(f"[green]✓[/green] Unlinked A-{removed.a_id} ↔ {escape(removed.b_id)}")


@app.command("links")
def links_cmd(
    project: ProjectOpt = None,
    as_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List all current links."""
    links = get_engine(project).list_links()
    if as_json:
        # Plain echo: rich would re-highlight and wrap the JSON.
        typer.echo(json.dumps([link.model_dump(mode="json", by_alias=True) for link in links], indent=2))
    else:
        render_links(links)


app.command("list", hidden=True)(links_cmd)


@app.command("init")
def init_cmd(
    project: ProjectOpt = None,
    docs: Annotated[bool, typer.Option("--docs", help=f"Write {CONFIG_DIR}/README.md describing the workflow")] = False,
    claude: Annotated[bool, typer.Option("--claude", help="Add a taskbridge section to CLAUDE.md")] = False,
    force: Annotated[bool, typer.Option("--force", help="Overwrite existing config, docs or CLAUDE.md section")] = False,
) -> None:
    """Set up taskbridge in a project.

    Writes .taskbridge/config.toml and an empty link store. Existing links are
    never touched, even with --force.
    """
    settings = get_settings(project)
    root = settings.project_root

    cfg = config_path(root)
    if _write_if_allowed(cfg, tomlkit.dumps(_default_config()), force):
        _load_toml.cache_clear()

    if not settings.link_store_path.exists():
        save_links(settings.link_store_path, LinkStore())
        rprint(f"[green]✓[/green] Created {settings.link_store_path}")

    if docs:
        _write_if_allowed(root / CONFIG_DIR / "README.md", _DOCS, force)

    if claude:
        claude_md = root / "CLAUDE.md"
        existing = claude_md.read_text() if claude_md.exists() else ""
        merged = _merge_claude_section(existing, force)
        if merged is None:
            rprint(f"[yellow]Section already present, not changed:[/yellow] {claude_md} (use --force)")
        else:
            claude_md.write_text(merged)
            rprint(f"[green]✓[/green] {'Updated' if existing else 'Wrote'} {claude_md}")

    status = build_engine(settings).status()
    if not status.source_a and not status.source_b:
        rprint("[yellow]Warning:[/yellow] neither Task Master nor Beads found in this project yet.")
