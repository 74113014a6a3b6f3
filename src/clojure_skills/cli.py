"""clojure-skills CLI — index, search and plan with Agent Skills from the terminal.

Commands:
    init             Create the config file and database
    sync             Index skills, prompts and prompt fragments
    search           Full-text search across skills and/or prompts
    list-skills      Show indexed skills
    list-prompts     Show indexed prompts
    list-categories  Show skill categories with counts
    show-skill       Print one skill as JSON
    show-prompt      Print one prompt (with its fragments) as JSON
    render-prompt    Print a prompt with its embedded skills as markdown
    stats            Database statistics
    reset-db         Drop and recreate every table
    validate         Check skill files against the authoring conventions
    plan             Implementation plans (plus `plan skill`, `plan result`)
    task-list        Task lists within a plan
    task             Tasks within a task list
"""

from __future__ import annotations

import functools
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, NoReturn, Optional

import click
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import APP_NAME, __version__
from .config import AppConfig, get_config_file, get_db_path, load_config, save_default_config
from .db.core import Database
from .db.plan_results import PlanResultStore
from .db.plan_skills import PlanSkillStore
from .db.plans import PlanStore
from .db.prompt_render import PromptRenderer
from .db.skills import SkillStore
from .db.tasks import TaskStore
from .errors import ClojureSkillsError
from .log import setup_logging
from .models import Outcome, Plan, PlanStatus, SearchType, SkillRecord
from .sync import Syncer
from .validate import Severity, check_paths

console = Console()
logger = logging.getLogger("clojure_skills.cli")

EXCLUDE_FROM_LISTING = {"content", "snippet", "rank"}


def _fail(message: str) -> NoReturn:
    console.print(message)
    sys.exit(1)


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn expected errors into a red message and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (ClojureSkillsError, ValueError, LookupError) as exc:
            logger.debug("Command failed", exc_info=True)
            _fail(f"[red]Error:[/red] {escape(str(exc))}")

    return wrapper


def _echo_json(data: Any) -> None:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [d.model_dump(mode="json") if isinstance(d, BaseModel) else d for d in data]
    click.echo(json.dumps(data, indent=2, default=str))


def _listing(items: list[BaseModel]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json", exclude=EXCLUDE_FROM_LISTING) for item in items]


def _truncate(text: Optional[str], width: int = 60) -> str:
    if not text:
        return "-"
    text = " ".join(text.split())
    return text[:width] + ("..." if len(text) > width else "")


def _config() -> AppConfig:
    ctx = click.get_current_context()
    root = ctx.find_root()
    if not isinstance(root.obj, AppConfig):
        root.obj = load_config()
    return root.obj


def load_config_and_db() -> tuple[AppConfig, Database]:
    """Load config, open the database and apply pending migrations."""
    config = _config()
    db = Database.from_config(config)
    db.migrate()
    click.get_current_context().call_on_close(db.close)
    return config, db


def _wants_json(as_json: bool, config: AppConfig) -> bool:
    return as_json or config.output.format == "json"


@click.group()
@click.version_option(__version__, prog_name=APP_NAME)
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """clojure-skills — searchable Agent Skills for Clojure development.

    Sync skill and prompt markdown into SQLite, search it with FTS5,
    and track implementation plans that use those skills.
    """
    try:
        config = load_config()
    except ClojureSkillsError as exc:
        _fail(f"[red]Config error:[/red] {escape(str(exc))}")
    ctx.obj = config
    setup_logging("INFO" if verbose else config.logging.level, config.logging.file)
    logger.info("Starting clojure-skills CLI")
    ctx.call_on_close(lambda: logger.info("Stopping clojure-skills CLI"))


# ── Database & catalogue ──────────────────────────────────────────────


@main.command()
@handle_errors
def init() -> None:
    """Create the config file and an empty, migrated database."""
    config_path = save_default_config()
    config, db = load_config_and_db()
    console.print(f"\n[green]Initialized:[/green] {escape(str(db.path))}")
    console.print(f"  Config:         {escape(str(config_path))}")
    console.print(f"  Schema version: {db.schema_version()}")
    console.print(f"\nNext: [cyan]{APP_NAME} sync[/cyan] from your skills project root")


@main.command()
@handle_errors
def sync() -> None:
    """Index skills, prompts and prompt fragments (unchanged files are skipped)."""
    config, db = load_config_and_db()
    console.print(f"Syncing from {escape(str(config.project_root()))}...")
    report = Syncer(db, config).sync_all()

    for item in report.synced:
        console.print(f"  [green]Synced:[/green] {escape(item)}")
    for warning in report.warnings:
        console.print(f"  [yellow]WARNING:[/yellow] {escape(warning)}")
    for error in report.errors:
        console.print(f"  [red]ERROR:[/red] {escape(error)}")

    console.print(
        f"\n[green]Sync complete:[/green] {len(report.synced)} synced, "
        f"{len(report.skipped)} unchanged, {len(report.errors)} errors"
    )


@main.command()
@click.argument("query")
@click.option("--category", "-c", default=None, help="Limit skills to a category (and sub-categories).")
@click.option(
    "--type", "-t", "search_type",
    type=click.Choice([t.value for t in SearchType]),
    default=None,
    help="What to search (default from config: all).",
)
@click.option("--max-results", "-n", type=int, default=None, help="Maximum results per type.")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@handle_errors
def search(
    query: str,
    category: Optional[str],
    search_type: Optional[str],
    max_results: Optional[int],
    as_json: bool,
) -> None:
    """Full-text search skills and prompts (FTS5 query syntax)."""
    config, db = load_config_and_db()
    store = SkillStore(db)
    kind = SearchType(search_type or config.search.default_type)
    limit = config.search.max_results if max_results is None else max_results

    skills = store.search_skills(query, category, limit) if kind != SearchType.PROMPTS else []
    prompts = store.search_prompts(query, limit) if kind != SearchType.SKILLS else []

    if _wants_json(as_json, config):
        payload: dict[str, Any] = {}
        if kind != SearchType.PROMPTS:
            payload["skills"] = [s.model_dump(mode="json", exclude={"content"}) for s in skills]
        if kind != SearchType.SKILLS:
            payload["prompts"] = [p.model_dump(mode="json", exclude={"content"}) for p in prompts]
        _echo_json(payload)
        return

    if not skills and not prompts:
        console.print(f"[dim]No results found for '{escape(query)}'.[/dim]")
        return

    if skills:
        table = Table(title=f"Skills: '{escape(query)}'")
        table.add_column("Name", style="cyan")
        table.add_column("Category", style="green")
        table.add_column("Match")
        for s in skills:
            table.add_row(s.name, s.category, escape(_truncate(s.snippet, 120)))
        console.print(table)

    if prompts:
        table = Table(title=f"Prompts: '{escape(query)}'")
        table.add_column("Name", style="cyan")
        table.add_column("Title")
        table.add_column("Match")
        for p in prompts:
            table.add_row(p.name, escape(p.title or "-"), escape(_truncate(p.snippet, 120)))
        console.print(table)


@main.command("list-skills")
@click.option("--category", "-c", default=None, help="Filter by category (and sub-categories).")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON.")
@handle_errors
def list_skills(category: Optional[str], as_json: bool) -> None:
    """Show indexed skills."""
    config, db = load_config_and_db()
    skills = SkillStore(db).list_skills(category)

    if _wants_json(as_json, config):
        _echo_json(_listing(skills))
        return

    if not skills:
        console.print("[dim]No skills indexed. Run `clojure-skills sync`.[/dim]")
        return

    table = Table(title="Skills")
    table.add_column("Name", style="cyan")
    table.add_column("Category", style="green")
    table.add_column("Description")
    table.add_column("Tokens", justify="right", style="yellow")
    for s in skills:
        table.add_row(s.name, s.category, escape(_truncate(s.description)), str(s.token_count or 0))
    console.print(table)


@main.command("list-prompts")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON.")
@handle_errors
def list_prompts(as_json: bool) -> None:
    """Show indexed prompts."""
    config, db = load_config_and_db()
    prompts = SkillStore(db).list_prompts()

    if _wants_json(as_json, config):
        _echo_json(_listing(prompts))
        return

    if not prompts:
        console.print("[dim]No prompts indexed.[/dim]")
        return

    table = Table(title="Prompts")
    table.add_column("Name", style="cyan")
    table.add_column("Title")
    table.add_column("Author", style="green")
    table.add_column("Tokens", justify="right", style="yellow")
    for p in prompts:
        table.add_row(p.name, escape(p.title or "-"), escape(p.author or "-"), str(p.token_count or 0))
    console.print(table)


@main.command("list-categories")
@handle_errors
def list_categories() -> None:
    """Show skill categories with skill counts."""
    _, db = load_config_and_db()
    categories = SkillStore(db).list_categories()
    if not categories:
        console.print("[dim]No skills indexed.[/dim]")
        return
    table = Table(title="Categories")
    table.add_column("Category", style="green")
    table.add_column("Skills", justify="right")
    for c in categories:
        table.add_row(c.category, str(c.count))
    console.print(table)


@main.command("show-skill")
@click.argument("name")
@click.option("--category", "-c", default=None, help="Disambiguate by category.")
@handle_errors
def show_skill(name: str, category: Optional[str]) -> None:
    """Print a skill, including its content, as JSON."""
    _, db = load_config_and_db()
    skill = SkillStore(db).get_skill(name, category)
    if skill is None:
        _fail(f"[red]Skill not found:[/red] {escape(name)}")
    _echo_json(skill.model_dump(mode="json", exclude={"snippet", "rank"}))


@main.command("show-prompt")
@click.argument("name")
@handle_errors
def show_prompt(name: str) -> None:
    """Print a prompt, its fragments and embedded skill names as JSON."""
    _, db = load_config_and_db()
    renderer = PromptRenderer(db)
    found = renderer.get_prompt_with_fragments(name)
    if found is None:
        _fail(f"[red]Prompt not found:[/red] {escape(name)}")
    prompt, references = found
    data = prompt.model_dump(mode="json", exclude={"snippet", "rank"})
    data["fragments"] = [r.model_dump(mode="json") for r in references]
    data["skills"] = [s.name for s in renderer.get_prompt_fragment_skills(prompt.id)]
    _echo_json(data)


@main.command("render-prompt")
@click.argument("name")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Write to a file.")
@handle_errors
def render_prompt(name: str, output: Optional[str]) -> None:
    """Print a prompt followed by its embedded skills as plain markdown."""
    _, db = load_config_and_db()
    renderer = PromptRenderer(db)
    prompt = SkillStore(db).get_prompt_by_name(name)
    if prompt is None:
        _fail(f"[red]Prompt not found:[/red] {escape(name)}")
    markdown = renderer.render_plain_markdown(prompt)
    if output:
        Path(output).write_text(markdown, encoding="utf-8")
        console.print(f"[green]Rendered:[/green] {escape(output)}")
    else:
        click.echo(markdown)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print as JSON.")
@handle_errors
def stats(as_json: bool) -> None:
    """Show database statistics."""
    config, db = load_config_and_db()
    s = SkillStore(db).stats()
    if _wants_json(as_json, config):
        _echo_json(s)
        return

    table = Table(title="clojure-skills database")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Database", escape(s.database_path))
    table.add_row("Size (bytes)", str(s.database_size_bytes))
    table.add_row("Schema version", str(s.schema_version))
    table.add_row("Skills", str(s.skills))
    table.add_row("Prompts", str(s.prompts))
    table.add_row("Categories", str(s.categories))
    table.add_row("Content bytes", str(s.total_size_bytes))
    table.add_row("Estimated tokens", str(s.total_tokens))
    table.add_row("Plans", str(s.plans))
    table.add_row("Tasks", str(s.tasks))
    console.print(table)


@main.command("reset-db")
@click.option("--force", is_flag=True, help="Confirm dropping all data.")
@handle_errors
def reset_db(force: bool) -> None:
    """Drop every table and recreate an empty schema."""
    config = _config()
    path = get_db_path(config)
    if not force:
        console.print(f"[yellow]This will DELETE all data in {escape(path)}[/yellow]")
        _fail("Use --force to confirm.")
    _, db = load_config_and_db()
    db.reset()
    console.print(f"[green]Database reset:[/green] {escape(path)}")


@main.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True))
@click.option("--strict", is_flag=True, help="Treat warnings as failures.")
@handle_errors
def validate(paths: tuple[str, ...], strict: bool) -> None:
    """Check skill files (default: the project skills directory)."""
    targets: list[Path | str] = list(paths) or [_config().skills_path()]
    issues = check_paths(targets)
    errors = [i for i in issues if i.severity == Severity.ERROR]
    warnings = [i for i in issues if i.severity == Severity.WARNING]

    for issue in issues:
        colour = "red" if issue.severity == Severity.ERROR else "yellow"
        console.print(f"[{colour}]{issue.severity.value}[/{colour}] {escape(issue.path)}: {escape(issue.message)}")

    console.print(f"\n{len(errors)} errors, {len(warnings)} warnings")
    if errors or (strict and warnings):
        sys.exit(1)


# ── Plans ─────────────────────────────────────────────────────────────


def _resolve_plan(plans: PlanStore, ref: str) -> Plan:
    plan = plans.resolve(ref)
    if plan is None:
        _fail(f"[red]Plan not found:[/red] {escape(ref)}")
    return plan


def _print_plan(plan: Plan) -> None:
    console.print(f"\n[cyan bold]{escape(plan.name)}[/cyan bold] (id {plan.id})")
    if plan.title:
        console.print(f"  {escape(plan.title)}")
    console.print(f"  Status: {plan.status.value}")
    if plan.assigned_to:
        console.print(f"  Assigned to: {escape(plan.assigned_to)}")
    if plan.completed_at:
        console.print(f"  Completed: {plan.completed_at}")


@main.group()
def plan() -> None:
    """Implementation plans, their skills and results."""


@plan.command("create")
@click.argument("name")
@click.option("--title", default=None)
@click.option("--description", default=None)
@click.option("--content", default=None, help="Plan body (markdown).")
@click.option("--content-file", type=click.Path(exists=True, dir_okay=False), default=None)
@click.option("--status", type=click.Choice([s.value for s in PlanStatus]), default="draft")
@click.option("--created-by", default=None)
@click.option("--assigned-to", default=None)
@handle_errors
def plan_create(
    name: str,
    title: Optional[str],
    description: Optional[str],
    content: Optional[str],
    content_file: Optional[str],
    status: str,
    created_by: Optional[str],
    assigned_to: Optional[str],
) -> None:
    """Create a plan."""
    _, db = load_config_and_db()
    if content_file:
        content = Path(content_file).read_text(encoding="utf-8")
    created = PlanStore(db).create_plan(
        {
            "name": name,
            "title": title,
            "description": description,
            "content": content or "",
            "status": status,
            "created_by": created_by,
            "assigned_to": assigned_to,
        }
    )
    console.print(f"[green]Created plan {created.id}:[/green] {escape(created.name)}")


@plan.command("list")
@click.option("--status", type=click.Choice([s.value for s in PlanStatus]), default=None)
@click.option("--assigned-to", default=None)
@click.option("--limit", type=int, default=100)
@click.option("--offset", type=int, default=0)
@click.option("--json", "as_json", is_flag=True)
@handle_errors
def plan_list(
    status: Optional[str],
    assigned_to: Optional[str],
    limit: int,
    offset: int,
    as_json: bool,
) -> None:
    """List plans, newest first."""
    config, db = load_config_and_db()
    plans = PlanStore(db).list_plans(status=status, assigned_to=assigned_to, limit=limit, offset=offset)

    if _wants_json(as_json, config):
        _echo_json(_listing(plans))
        return
    if not plans:
        console.print("[dim]No plans.[/dim]")
        return

    table = Table(title="Plans")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Title")
    table.add_column("Assigned", style="yellow")
    for p in plans:
        table.add_row(str(p.id), escape(p.name), p.status.value, escape(p.title or "-"), escape(p.assigned_to or "-"))
    console.print(table)


@plan.command("show")
@click.argument("plan_ref", metavar="PLAN")
@click.option("--json", "as_json", is_flag=True)
@handle_errors
def plan_show(plan_ref: str, as_json: bool) -> None:
    """Show a plan with its task lists, skills and result."""
    config, db = load_config_and_db()
    p = _resolve_plan(PlanStore(db), plan_ref)
    tasks = TaskStore(db)
    lists = [(tl, tasks.list_tasks(tl.id)) for tl in tasks.list_task_lists(p.id)]
    skills = PlanSkillStore(db).list_plan_skills(p.id)
    result = PlanResultStore(db).get_result_by_plan_id(p.id)

    if _wants_json(as_json, config):
        data = p.model_dump(mode="json", exclude={"snippet", "rank"})
        data["task_lists"] = [
            {**tl.model_dump(mode="json"), "tasks": [t.model_dump(mode="json") for t in ts]}
            for tl, ts in lists
        ]
        data["skills"] = [s.model_dump(mode="json") for s in skills]
        data["result"] = result.model_dump(mode="json", exclude={"snippet", "rank"}) if result else None
        _echo_json(data)
        return

    _print_plan(p)
    if p.description:
        console.print(f"\n  {escape(p.description)}")
    if lists:
        console.print("\n  [bold]Task Lists:[/bold]")
        for tl, ts in lists:
            console.print(f"    [{tl.id}] {escape(tl.name)}")
            for t in ts:
                mark = "x" if t.completed else " "
                console.print(f"      {escape(f'[{mark}]')} {t.id}: {escape(t.name)}")
    if skills:
        console.print("\n  [bold]Skills:[/bold]")
        for s in skills:
            console.print(f"    {s.position}. {escape(s.category)}/{escape(s.name)}")
    if result:
        console.print(f"\n  [bold]Result:[/bold] {result.outcome.value} — {escape(result.summary)}")
    if p.content:
        console.print("")
        click.echo(p.content)


@plan.command("update")
@click.argument("plan_ref", metavar="PLAN")
@click.option("--name", default=None)
@click.option("--title", default=None)
@click.option("--description", default=None)
@click.option("--content", default=None)
@click.option("--status", type=click.Choice([s.value for s in PlanStatus]), default=None)
@click.option("--assigned-to", default=None)
@handle_errors
def plan_update(plan_ref: str, **fields: Optional[str]) -> None:
    """Update plan fields."""
    _, db = load_config_and_db()
    plans = PlanStore(db)
    p = _resolve_plan(plans, plan_ref)
    updated = plans.update_plan(p.id, {k: v for k, v in fields.items() if v is not None})
    console.print(f"[green]Updated plan {updated.id}:[/green] {escape(updated.name)}")


@plan.command("complete")
@click.argument("plan_ref", metavar="PLAN")
@handle_errors
def plan_complete(plan_ref: str) -> None:
    """Mark a plan completed."""
    _, db = load_config_and_db()
    plans = PlanStore(db)
    done = plans.complete_plan(_resolve_plan(plans, plan_ref).id)
    console.print(f"[green]Completed plan {done.id}:[/green] {escape(done.name)}")


@plan.command("archive")
@click.argument("plan_ref", metavar="PLAN")
@handle_errors
def plan_archive(plan_ref: str) -> None:
    """Archive a plan."""
    _, db = load_config_and_db()
    plans = PlanStore(db)
    archived = plans.archive_plan(_resolve_plan(plans, plan_ref).id)
    console.print(f"[yellow]Archived plan {archived.id}:[/yellow] {escape(archived.name)}")


@plan.command("delete")
@click.argument("plan_ref", metavar="PLAN")
@click.option("--force", is_flag=True, help="Confirm deletion.")
@handle_errors
def plan_delete(plan_ref: str, force: bool) -> None:
    """Delete a plan with its task lists, tasks, skill links and result."""
    _, db = load_config_and_db()
    plans = PlanStore(db)
    p = _resolve_plan(plans, plan_ref)

    if not force:
        summary = TaskStore(db).plan_summary(p.id)
        console.print(f"[yellow]This will DELETE plan:[/yellow] {escape(p.name)} (id {p.id})")
        console.print(f"  Task Lists: {summary.task_lists}")
        console.print(f"  Total Tasks: {summary.tasks}")
        _fail("Use --force to confirm deletion.")

    deleted = plans.delete_plan(p.id)
    console.print(f"[green]Deleted plan:[/green] {escape(deleted.name)} (id {deleted.id})")


@plan.command("search")
@click.argument("query")
@click.option("--max-results", "-n", type=int, default=50)
@handle_errors
def plan_search(query: str, max_results: int) -> None:
    """Full-text search plans."""
    _, db = load_config_and_db()
    results = PlanStore(db).search_plans(query, max_results)
    if not results:
        console.print(f"[dim]No plans found matching '{escape(query)}'.[/dim]")
        return
    table = Table(title=f"Plans: '{escape(query)}'")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Match")
    for p in results:
        table.add_row(str(p.id), escape(p.name), p.status.value, escape(_truncate(p.snippet, 120)))
    console.print(table)


# ── Plan skills ───────────────────────────────────────────────────────


def _resolve_skill(db: Database, name: str, category: Optional[str]) -> SkillRecord:
    skill = SkillStore(db).get_skill(name, category)
    if skill is None:
        _fail(f"[red]Skill not found:[/red] {escape(name)}")
    return skill


@plan.group("skill")
def plan_skill() -> None:
    """Skills attached to a plan."""


@plan_skill.command("add")
@click.argument("plan_ref", metavar="PLAN")
@click.argument("skill_name", metavar="SKILL")
@click.option("--category", "-c", default=None)
@click.option("--position", type=int, default=None)
@handle_errors
def plan_skill_add(plan_ref: str, skill_name: str, category: Optional[str], position: Optional[int]) -> None:
    """Attach a skill to a plan."""
    _, db = load_config_and_db()
    p = _resolve_plan(PlanStore(db), plan_ref)
    skill = _resolve_skill(db, skill_name, category)
    PlanSkillStore(db).associate_skill({"plan_id": p.id, "skill_id": skill.id, "position": position})
    console.print(f"[green]Added skill:[/green] {escape(skill.name)} -> {escape(p.name)}")


@plan_skill.command("remove")
@click.argument("plan_ref", metavar="PLAN")
@click.argument("skill_name", metavar="SKILL")
@click.option("--category", "-c", default=None)
@handle_errors
def plan_skill_remove(plan_ref: str, skill_name: str, category: Optional[str]) -> None:
    """Detach a skill from a plan."""
    _, db = load_config_and_db()
    p = _resolve_plan(PlanStore(db), plan_ref)
    skill = _resolve_skill(db, skill_name, category)
    if PlanSkillStore(db).dissociate_skill(p.id, skill.id):
        console.print(f"[green]Removed skill:[/green] {escape(skill.name)} from {escape(p.name)}")
    else:
        _fail(f"[red]Not associated:[/red] {escape(skill.name)} / {escape(p.name)}")


@plan_skill.command("list")
@click.argument("plan_ref", metavar="PLAN")
@handle_errors
def plan_skill_list(plan_ref: str) -> None:
    """List the skills attached to a plan."""
    _, db = load_config_and_db()
    p = _resolve_plan(PlanStore(db), plan_ref)
    skills = PlanSkillStore(db).list_plan_skills(p.id)
    if not skills:
        console.print(f"[dim]No skills attached to {escape(p.name)}.[/dim]")
        return
    table = Table(title=f"Skills for {escape(p.name)}")
    table.add_column("Pos", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Category", style="green")
    for s in skills:
        table.add_row(str(s.position), s.name, s.category)
    console.print(table)


# ── Plan results ──────────────────────────────────────────────────────


@plan.group("result")
def plan_result() -> None:
    """The recorded outcome of a plan."""


@plan_result.command("create")
@click.argument("plan_ref", metavar="PLAN")
@click.option("--outcome", type=click.Choice([o.value for o in Outcome]), required=True)
@click.option("--summary", required=True)
@click.option("--challenges", default=None)
@click.option("--solutions", default=None)
@click.option("--lessons-learned", default=None)
@click.option("--metrics", default=None, help="JSON object with quantitative data.")
@handle_errors
def plan_result_create(plan_ref: str, metrics: Optional[str], **fields: Optional[str]) -> None:
    """Record a plan's outcome."""
    _, db = load_config_and_db()
    p = _resolve_plan(PlanStore(db), plan_ref)
    if metrics is not None:
        _check_metrics(metrics)
    result = PlanResultStore(db).create_result({"plan_id": p.id, "metrics": metrics, **fields})
    console.print(f"[green]Recorded result for {escape(p.name)}:[/green] {result.outcome.value}")


@plan_result.command("show")
@click.argument("plan_ref", metavar="PLAN")
@handle_errors
def plan_result_show(plan_ref: str) -> None:
    """Print a plan's result as JSON."""
    _, db = load_config_and_db()
    p = _resolve_plan(PlanStore(db), plan_ref)
    result = PlanResultStore(db).get_result_by_plan_id(p.id)
    if result is None:
        _fail(f"[red]Plan result not found:[/red] {escape(p.name)}")
    _echo_json(result.model_dump(mode="json", exclude={"snippet", "rank"}))


@plan_result.command("update")
@click.argument("plan_ref", metavar="PLAN")
@click.option("--outcome", type=click.Choice([o.value for o in Outcome]), default=None)
@click.option("--summary", default=None)
@click.option("--challenges", default=None)
@click.option("--solutions", default=None)
@click.option("--lessons-learned", default=None)
@click.option("--metrics", default=None)
@handle_errors
def plan_result_update(plan_ref: str, **fields: Optional[str]) -> None:
    """Update a plan's result."""
    _, db = load_config_and_db()
    p = _resolve_plan(PlanStore(db), plan_ref)
    if fields.get("metrics") is not None:
        _check_metrics(fields["metrics"])
    result = PlanResultStore(db).update_result(p.id, {k: v for k, v in fields.items() if v is not None})
    console.print(f"[green]Updated result for {escape(p.name)}:[/green] {result.outcome.value}")


@plan_result.command("delete")
@click.argument("plan_ref", metavar="PLAN")
@click.option("--force", is_flag=True, help="Confirm deletion.")
@handle_errors
def plan_result_delete(plan_ref: str, force: bool) -> None:
    """Delete a plan's result."""
    _, db = load_config_and_db()
    p = _resolve_plan(PlanStore(db), plan_ref)
    if not force:
        console.print(f"[yellow]This will DELETE the result of plan:[/yellow] {escape(p.name)}")
        _fail("Use --force to confirm deletion.")
    PlanResultStore(db).delete_result(p.id)
    console.print(f"[green]Deleted result:[/green] {escape(p.name)}")


@plan_result.command("search")
@click.argument("query")
@click.option("--max-results", "-n", type=int, default=50)
@handle_errors
def plan_result_search(query: str, max_results: int) -> None:
    """Full-text search plan results."""
    _, db = load_config_and_db()
    results = PlanResultStore(db).search_results(query, max_results)
    if not results:
        console.print(f"[dim]No results found matching '{escape(query)}'.[/dim]")
        return
    table = Table(title=f"Results: '{escape(query)}'")
    table.add_column("Plan", justify="right")
    table.add_column("Outcome", style="green")
    table.add_column("Match")
    for r in results:
        table.add_row(str(r.plan_id), r.outcome.value, escape(_truncate(r.snippet, 120)))
    console.print(table)


def _check_metrics(metrics: str) -> None:
    try:
        json.loads(metrics)
    except json.JSONDecodeError as exc:
        raise ValueError(f"--metrics must be valid JSON: {exc}") from exc


# ── Task lists & tasks ────────────────────────────────────────────────


@main.group("task-list")
def task_list() -> None:
    """Task lists within a plan."""


@task_list.command("create")
@click.argument("plan_ref", metavar="PLAN")
@click.argument("name")
@click.option("--description", default=None)
@click.option("--position", type=int, default=0)
@handle_errors
def task_list_create(plan_ref: str, name: str, description: Optional[str], position: int) -> None:
    """Create a task list in a plan."""
    _, db = load_config_and_db()
    p = _resolve_plan(PlanStore(db), plan_ref)
    created = TaskStore(db).create_task_list(
        {"plan_id": p.id, "name": name, "description": description, "position": position}
    )
    console.print(f"[green]Created task list {created.id}:[/green] {escape(created.name)}")


@task_list.command("show")
@click.argument("list_id", type=int)
@click.option("--json", "as_json", is_flag=True)
@handle_errors
def task_list_show(list_id: int, as_json: bool) -> None:
    """Show a task list and its tasks."""
    config, db = load_config_and_db()
    tasks = TaskStore(db)
    tl = tasks.get_task_list_by_id(list_id)
    if tl is None:
        _fail(f"[red]Task list not found:[/red] {list_id}")
    items = tasks.list_tasks(tl.id)

    if _wants_json(as_json, config):
        data = tl.model_dump(mode="json")
        data["tasks"] = [t.model_dump(mode="json") for t in items]
        _echo_json(data)
        return

    console.print(f"\n[cyan bold]{escape(tl.name)}[/cyan bold] (id {tl.id}, plan {tl.plan_id})")
    for t in items:
        mark = "x" if t.completed else " "
        console.print(f"  {escape(f'[{mark}]')} {t.id}: {escape(t.name)}")


@task_list.command("delete")
@click.argument("list_id", type=int)
@click.option("--force", is_flag=True, help="Confirm deletion.")
@handle_errors
def task_list_delete(list_id: int, force: bool) -> None:
    """Delete a task list and its tasks."""
    _, db = load_config_and_db()
    tasks = TaskStore(db)
    tl = tasks.get_task_list_by_id(list_id)
    if tl is None:
        _fail(f"[red]Task list not found:[/red] {list_id}")

    if not force:
        summary = tasks.list_summary(tl.id)
        console.print(f"[yellow]This will DELETE task list:[/yellow] {escape(tl.name)} (id {tl.id})")
        console.print(f"  Total Tasks: {summary.tasks}")
        _fail("Use --force to confirm deletion.")

    deleted = tasks.delete_task_list(tl.id)
    console.print(f"[green]Deleted task list:[/green] {escape(deleted.name)} (id {deleted.id})")


@main.group()
def task() -> None:
    """Tasks within a task list."""


@task.command("create")
@click.argument("list_id", type=int)
@click.argument("name")
@click.option("--description", default=None)
@click.option("--position", type=int, default=0)
@click.option("--assigned-to", default=None)
@handle_errors
def task_create(
    list_id: int,
    name: str,
    description: Optional[str],
    position: int,
    assigned_to: Optional[str],
) -> None:
    """Create a task in a task list."""
    _, db = load_config_and_db()
    created = TaskStore(db).create_task(
        {
            "list_id": list_id,
            "name": name,
            "description": description,
            "position": position,
            "assigned_to": assigned_to,
        }
    )
    console.print(f"[green]Created task {created.id}:[/green] {escape(created.name)}")


@task.command("complete")
@click.argument("task_id", type=int)
@handle_errors
def task_complete(task_id: int) -> None:
    """Mark a task done."""
    _, db = load_config_and_db()
    done = TaskStore(db).complete_task(task_id)
    console.print(f"[green]Completed task {done.id}:[/green] {escape(done.name)}")


@task.command("uncomplete")
@click.argument("task_id", type=int)
@handle_errors
def task_uncomplete(task_id: int) -> None:
    """Mark a task not done."""
    _, db = load_config_and_db()
    reopened = TaskStore(db).uncomplete_task(task_id)
    console.print(f"[yellow]Reopened task {reopened.id}:[/yellow] {escape(reopened.name)}")


@task.command("delete")
@click.argument("task_id", type=int)
@click.option("--force", is_flag=True, help="Confirm deletion.")
@handle_errors
def task_delete(task_id: int, force: bool) -> None:
    """Delete a task."""
    _, db = load_config_and_db()
    tasks = TaskStore(db)
    t = tasks.get_task_by_id(task_id)
    if t is None:
        _fail(f"[red]Task not found:[/red] {task_id}")

    if not force:
        console.print(f"[yellow]This will DELETE task:[/yellow] {escape(t.name)} (id {t.id})")
        _fail("Use --force to confirm deletion.")

    deleted = tasks.delete_task(t.id)
    console.print(f"[green]Deleted task:[/green] {escape(deleted.name)} (id {deleted.id})")


@main.command("config-path", hidden=True)
def config_path() -> None:
    """Print the config file location."""
    click.echo(get_config_file())


if __name__ == "__main__":
    main()
