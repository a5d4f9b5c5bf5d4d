#!/usr/bin/env python3
"""
mch: CLI for the personal context hub

Usage:
    mch add --content "..." --project Alpha   # Store a context
    mch search "query"                         # Keyword search
    mch similar <id>                           # Related contexts
    mch tree                                   # Projects and sprints
    mch migrate --from-tags --dry-run          # File legacy contexts
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn
from uuid import UUID

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as MCH_VERSION
from .errors import ErrorCode, MchError, NotFoundError, format_error_json
from .models import CONTEXT_TYPES, AddContextInput, Context, ListOptions

if TYPE_CHECKING:
    from .core import Services
    from .models import MigrationResult, SearchResponse


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def format_table(rows: list[dict], columns: list[str], max_widths: dict | None = None) -> str:
    """Format rows as a simple table."""
    if not rows:
        return ""

    max_widths = max_widths or {}

    def _cell(row: dict, col: str) -> str:
        val = str(row.get(col, ""))
        limit = max_widths.get(col, 50)
        if len(val) > limit:
            val = val[: limit - 3] + "..."
        return val

    widths = {col: len(col) for col in columns}
    for row in rows:
        for col in columns:
            widths[col] = max(widths[col], len(_cell(row, col)))

    header = "  ".join(col.upper().ljust(widths[col]) for col in columns)
    separator = "  ".join("-" * widths[col] for col in columns)
    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(_cell(row, col).ljust(widths[col]) for col in columns).rstrip())

    return "\n".join(lines)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


def _handle_error(
    ctx: click.Context,
    error: Exception,
    fallback_message: str | None = None,
    exit_code: int = 1,
) -> NoReturn:
    """Handle an error with optional JSON output.

    If --json-errors is enabled, outputs structured JSON error.
    Otherwise, outputs human-readable error message.
    """
    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, MchError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
            suggestion = error.details.get("suggestion") if error.details else None
            if suggestion:
                click.echo(f"Hint: {suggestion}", err=True)
    else:
        message = fallback_message or str(error)
        if json_errors:
            click.echo(format_error_json(_infer_error_code(error), message), err=True)
        else:
            click.echo(f"Error: {message}", err=True)

    sys.exit(exit_code)


def _infer_error_code(error: Exception) -> ErrorCode | str:
    """Map non-MchError exceptions to an error code."""
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCode.VALIDATION_ERROR
    if isinstance(error, OSError):
        return ErrorCode.STORAGE_ERROR
    return "INTERNAL_ERROR"


def get_error_code_for_exception(exc: Exception) -> str:
    """Map Click exceptions to error codes."""
    if isinstance(exc, click.BadParameter):
        return "INVALID_ARGUMENT"
    elif isinstance(exc, click.MissingParameter):
        return "MISSING_ARGUMENT"
    elif isinstance(exc, click.NoSuchOption):
        return "UNKNOWN_OPTION"
    elif isinstance(exc, UsageError):
        return "USAGE_ERROR"
    return "CLI_ERROR"


# ─────────────────────────────────────────────────────────────────────────────
# JSON Error Handling
# ─────────────────────────────────────────────────────────────────────────────


class JsonErrorGroup(click.Group):
    """Click group that formats errors as JSON when --json-errors is set.

    Covers Click validation errors (bad option values, missing args) raised
    before a command callback runs, and suggests commands for typos.
    """

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(cmd_name, self.list_commands(ctx), n=1, cutoff=0.6)
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except ClickException as e:
            if ctx.params.get("json_errors"):
                code = get_error_code_for_exception(e)
                click.echo(format_error_json(code, e.format_message()), err=True)
                raise SystemExit(1)
            raise

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        # Accept --json-errors anywhere on the command line, not only before the subcommand
        argv = list(args) if args is not None else list(sys.argv[1:])
        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        argv = [a for a in argv if a != "--json-errors"]
        argv.insert(0, "--json-errors")
        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            click.echo(format_error_json(get_error_code_for_exception(e), e.format_message()), err=True)
            raise SystemExit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def _services(ctx: click.Context) -> Services:
    from .core import get_services

    try:
        return get_services()
    except MchError as e:
        _handle_error(ctx, e)


def _split_tags(tags: str | None) -> list[str]:
    return [t.strip() for t in tags.split(",") if t.strip()] if tags else []


def _preview(text: str, width: int = 60) -> str:
    line = " ".join(text.split())
    return line if len(line) <= width else line[: width - 3] + "..."


def _context_json(context: Context) -> dict:
    return context.model_dump(mode="json", exclude={"embedding"})


async def _project_id_by_name(services: Services, name: str | None) -> UUID | None:
    if name is None:
        return None
    project = await services.hierarchy.get_project_by_name(name)
    if project is None:
        raise NotFoundError("project", name)
    return project.id


async def _sprint_id_by_name(services: Services, project_id: UUID | None, name: str | None) -> UUID | None:
    if name is None:
        return None
    if project_id is None:
        raise UsageError("--sprint requires --project")
    sprint = await services.hierarchy.find_sprint(project_id, name)
    if sprint is None:
        raise NotFoundError("sprint", name)
    return sprint.id


def _print_results(response: SearchResponse, as_json: bool) -> None:
    if as_json:
        output(
            {
                "results": [
                    {"score": r.score, **_context_json(r.context)} for r in response.results
                ],
                "total": response.total,
                "warnings": response.warnings,
            },
            as_json=True,
        )
        return

    for warning in response.warnings:
        click.echo(f"Warning: {warning}", err=True)
    if not response.results:
        click.echo("No results found.")
        return

    rows = [
        {
            "id": str(r.context.id),
            "score": "" if r.score is None else f"{r.score:.2f}",
            "type": r.context.type,
            "content": _preview(r.context.summary or r.context.content),
        }
        for r in response.results
    ]
    columns = ["id", "type", "content"]
    if any(r.score is not None for r in response.results):
        columns.insert(1, "score")
    click.echo(format_table(rows, columns, {"id": 36}))


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=MCH_VERSION, prog_name="mch")
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="MCH_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, json_errors: bool, quiet: bool):
    """mch: personal context hub.

    Store notes, meetings and documents, link each one to its most similar
    predecessors, and file them under projects and sprints.

    \b
    Quick start:
      mch add --content "..." --project Alpha --sprint S1
      mch search "deployment"
      mch similar <id>
      mch tree

    \b
    For programmatic error handling:
      mch --json-errors add ...   # Errors output as JSON with error codes
    """
    from ._logging import set_quiet_mode

    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet

    if quiet:
        set_quiet_mode(True)


# ─────────────────────────────────────────────────────────────────────────────
# Contexts
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--content", "-c", help="Context content")
@click.option(
    "--file",
    "-f",
    "file_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read content from a file (recorded as the source)",
)
@click.option("--type", "context_type", type=click.Choice(CONTEXT_TYPES), default="text", show_default=True)
@click.option("--summary", help="Short summary")
@click.option("--tags", help="Comma-separated tags")
@click.option("--project", "-p", help="Project name (created if missing)")
@click.option("--sprint", "-s", help="Sprint name within the project (created if missing)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def add(
    ctx: click.Context,
    content: str | None,
    file_path: Path | None,
    context_type: str,
    summary: str | None,
    tags: str | None,
    project: str | None,
    sprint: str | None,
    as_json: bool,
):
    """Add a context and link it to similar ones.

    \b
    Examples:
      mch add --content "Decided to use Postgres" --tags=db,decision
      mch add -f notes/standup.md --type=meeting -p Alpha -s "Sprint 3"
    """
    if (content is None) == (file_path is None):
        raise UsageError("Provide exactly one of --content or --file.")

    source = None
    if file_path is not None:
        content = file_path.read_text(encoding="utf-8")
        source = str(file_path)

    services = _services(ctx)
    try:
        data = AddContextInput(
            type=context_type,
            content=content,
            summary=summary,
            tags=_split_tags(tags),
            source=source,
            project=project,
            sprint=sprint,
        )
        context = run_async(services.add.execute(data))
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output(_context_json(context), as_json=True)
        return

    click.echo(f"Added: {context.id}")
    if project:
        click.echo(f"Filed under: {project}" + (f" / {sprint}" if sprint else ""))
    if context.embedding is None:
        click.echo("No embedding available; related links skipped.", err=True)
    for link in context.related_links:
        click.echo(f"  related: {link.target_id} ({link.score:.2f})")


@cli.command()
@click.argument("context_id", type=click.UUID)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def get(ctx: click.Context, context_id: UUID, as_json: bool):
    """Show a context by id."""
    services = _services(ctx)
    try:
        context = run_async(services.storage.get_context(context_id))
        if context is None:
            raise NotFoundError("context", context_id)
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output(_context_json(context), as_json=True)
        return

    click.echo(f"ID:       {context.id}")
    click.echo(f"Type:     {context.type}")
    if context.summary:
        click.echo(f"Summary:  {context.summary}")
    if context.tags:
        click.echo(f"Tags:     {', '.join(context.tags)}")
    click.echo(f"Project:  {context.project_id or '-'}")
    click.echo(f"Sprint:   {context.sprint_id or '-'}")
    click.echo(f"Created:  {context.created_at.isoformat()}")
    if context.related_links:
        click.echo("Related:")
        for link in context.related_links:
            click.echo(f"  {link.target_id} ({link.score:.2f})")
    click.echo()
    click.echo(context.content)


@cli.command("list")
@click.option("--project", "-p", help="Filter by project name")
@click.option("--sprint", "-s", help="Filter by sprint name (requires --project)")
@click.option("--type", "context_type", type=click.Choice(CONTEXT_TYPES), help="Filter by type")
@click.option("--tags", help="Filter by tags (comma-separated, match any)")
@click.option("--unassigned", is_flag=True, help="Only contexts without a project")
@click.option("--limit", "-n", default=20, type=click.IntRange(min=1), help="Max results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_contexts(
    ctx: click.Context,
    project: str | None,
    sprint: str | None,
    context_type: str | None,
    tags: str | None,
    unassigned: bool,
    limit: int,
    as_json: bool,
):
    """List contexts, oldest first."""
    services = _services(ctx)

    async def _run() -> list[Context]:
        project_id = await _project_id_by_name(services, project)
        sprint_id = await _sprint_id_by_name(services, project_id, sprint)
        options = ListOptions(
            project_id=project_id,
            sprint_id=sprint_id,
            type=context_type,
            tags=_split_tags(tags),
            unassigned_only=unassigned,
            limit=limit,
        )
        return await services.storage.list_contexts(options)

    try:
        contexts = run_async(_run())
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output([_context_json(c) for c in contexts], as_json=True)
        return
    if not contexts:
        click.echo("No contexts found.")
        return

    rows = [
        {
            "id": str(c.id),
            "type": c.type,
            "created": c.created_at.strftime("%Y-%m-%d"),
            "content": _preview(c.summary or c.content, 50),
        }
        for c in contexts
    ]
    click.echo(format_table(rows, ["id", "type", "created", "content"], {"id": 36}))


@cli.command()
@click.argument("query")
@click.option(
    "--mode",
    type=click.Choice(["keyword", "semantic"]),
    default="keyword",
    show_default=True,
    help="Substring match or embedding similarity",
)
@click.option("--tags", help="Filter by tags (comma-separated)")
@click.option("--project", "-p", help="Limit to a project")
@click.option("--limit", "-n", default=10, type=click.IntRange(min=1), help="Max results")
@click.option("--min-score", type=click.FloatRange(-1.0, 1.0), help="Minimum similarity (semantic mode)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    mode: str,
    tags: str | None,
    project: str | None,
    limit: int,
    min_score: float | None,
    as_json: bool,
):
    """Search contexts.

    \b
    Examples:
      mch search "postgres"
      mch search "database choice" --mode=semantic --min-score=0.5
      mch search "retro" --project Alpha --tags=meeting
    """
    if not query.strip():
        raise UsageError("Query cannot be empty.")

    services = _services(ctx)

    async def _run() -> SearchResponse:
        project_id = await _project_id_by_name(services, project)
        if mode == "semantic":
            return await services.search.search_by_text(query, limit=limit, project_id=project_id, min_score=min_score)
        options = ListOptions(project_id=project_id, tags=_split_tags(tags), limit=limit)
        return await services.search.search_by_keyword(query, options)

    try:
        response = run_async(_run())
    except MchError as e:
        _handle_error(ctx, e)

    _print_results(response, as_json)


@cli.command()
@click.argument("context_id", type=click.UUID)
@click.option("--project", "-p", help="Limit to a project")
@click.option("--limit", "-n", default=10, type=click.IntRange(min=1), help="Max results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def similar(ctx: click.Context, context_id: UUID, project: str | None, limit: int, as_json: bool):
    """Show contexts most similar to an existing one."""
    services = _services(ctx)

    async def _run() -> SearchResponse:
        project_id = await _project_id_by_name(services, project)
        return await services.search.search_similar(context_id, limit=limit, project_id=project_id)

    try:
        response = run_async(_run())
    except MchError as e:
        _handle_error(ctx, e)

    _print_results(response, as_json)


@cli.command()
@click.argument("context_id", type=click.UUID)
@click.option("--project", "-p", required=True, help="Existing project name")
@click.option("--sprint", "-s", help="Existing sprint name within the project")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def assign(ctx: click.Context, context_id: UUID, project: str, sprint: str | None, as_json: bool):
    """File a context under a project and optional sprint.

    Both are replaced together; omitting --sprint clears the sprint.
    """
    services = _services(ctx)

    async def _run() -> Context:
        project_id = await _project_id_by_name(services, project)
        sprint_id = await _sprint_id_by_name(services, project_id, sprint)
        return await services.hierarchy.assign_context(context_id, project_id, sprint_id)

    try:
        context = run_async(_run())
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output(_context_json(context), as_json=True)
    else:
        click.echo(f"Assigned {context.id} to {project}" + (f" / {sprint}" if sprint else ""))


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tree(ctx: click.Context, as_json: bool):
    """Show projects and their sprints with context counts."""
    services = _services(ctx)

    async def _run() -> list[dict]:
        nodes = []
        for node in await services.hierarchy.list_hierarchy():
            sprints = []
            for sprint in node.sprints:
                contexts = await services.storage.list_contexts(ListOptions(sprint_id=sprint.id))
                sprints.append({**sprint.model_dump(mode="json"), "contexts": len(contexts)})
            nodes.append(
                {
                    **node.project.model_dump(mode="json"),
                    "contexts": await services.storage.get_context_count(node.project.id),
                    "sprints": sprints,
                }
            )
        return nodes

    try:
        nodes = run_async(_run())
        unfiled = len(run_async(services.storage.list_contexts(ListOptions(unassigned_only=True))))
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output({"projects": nodes, "unassigned": unfiled}, as_json=True)
        return

    if not nodes:
        click.echo("No projects yet.")
    for node in nodes:
        click.echo(f"{node['name']} ({node['contexts']})")
        for sprint in node["sprints"]:
            click.echo(f"  {sprint['name']} ({sprint['contexts']})")
    if unfiled:
        click.echo(f"(unassigned: {unfiled})")


# ─────────────────────────────────────────────────────────────────────────────
# Migration
# ─────────────────────────────────────────────────────────────────────────────


def _print_migration(result: MigrationResult) -> None:
    if result.dry_run:
        click.echo("Dry run: no changes written.")
    click.echo(f"Migrated: {result.migrated}")
    click.echo(f"Skipped:  {result.skipped}")
    click.echo(f"Failed:   {len(result.failed)}")
    for failure in result.failed:
        click.echo(f"  {failure.label}: {failure.reason}")

    verb = "Would create" if result.dry_run else "Created"
    if result.created_projects:
        click.echo(f"{verb} projects: {', '.join(result.created_projects)}")
    if result.created_sprints:
        click.echo(f"{verb} sprints: {', '.join(result.created_sprints)}")


@cli.command()
@click.option("--to-uncategorized", is_flag=True, help="File everything under Uncategorized / General")
@click.option("--from-tags", is_flag=True, help="Use project:<name> and sprint:<name> tags")
@click.option(
    "--mapping",
    "mapping_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML/JSON file mapping context ids to {project, sprint}",
)
@click.option("--dry-run", is_flag=True, help="Report what would change without writing")
@click.option("--preview", is_flag=True, help="Only list the contexts that would be considered")
@click.option("--limit", type=click.IntRange(min=1), help="Process at most N unassigned contexts")
@click.option("--relink", is_flag=True, help="Recompute related links within each new project")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def migrate(
    ctx: click.Context,
    to_uncategorized: bool,
    from_tags: bool,
    mapping_path: Path | None,
    dry_run: bool,
    preview: bool,
    limit: int | None,
    relink: bool,
    as_json: bool,
):
    """File unassigned contexts into projects and sprints.

    Already-assigned contexts are skipped, so the command can be re-run
    safely; failed contexts are reported and left unassigned.

    \b
    Examples:
      mch migrate --preview
      mch migrate --from-tags --dry-run
      mch migrate --mapping placements.yaml --limit 100
      mch migrate --to-uncategorized
    """
    from .migration import MappingClassifier, TagClassifier, UncategorizedClassifier

    services = _services(ctx)

    if preview:
        try:
            contexts = run_async(services.migration(UncategorizedClassifier()).preview())
        except MchError as e:
            _handle_error(ctx, e)
        if as_json:
            output([_context_json(c) for c in contexts], as_json=True)
        elif not contexts:
            click.echo("Nothing to migrate.")
        else:
            click.echo(f"{len(contexts)} context(s) to migrate:")
            for c in contexts:
                click.echo(f"  {c.id}  {_preview(c.summary or c.content)}")
        return

    chosen = [flag for flag in (to_uncategorized, from_tags, mapping_path is not None) if flag]
    if len(chosen) != 1:
        raise UsageError("Choose exactly one of --to-uncategorized, --from-tags or --mapping.")

    try:
        if mapping_path is not None:
            classifier = MappingClassifier.from_file(mapping_path)
        elif from_tags:
            classifier = TagClassifier()
        else:
            classifier = UncategorizedClassifier()
        result = run_async(services.migration(classifier).execute(dry_run=dry_run, limit=limit, relink=relink))
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output(result.model_dump(mode="json"), as_json=True)
    else:
        _print_migration(result)


# ─────────────────────────────────────────────────────────────────────────────
# Projects and sprints
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def project():
    """Manage projects."""


@project.command("create")
@click.argument("name")
@click.option("--description", "-d", help="Project description")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def project_create(ctx: click.Context, name: str, description: str | None, as_json: bool):
    """Create a project."""
    services = _services(ctx)
    try:
        created = run_async(services.hierarchy.create_project(name, description))
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output(created.model_dump(mode="json"), as_json=True)
    else:
        click.echo(f"Created project: {created.name} ({created.id})")


@project.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def project_list(ctx: click.Context, as_json: bool):
    """List projects by name."""
    services = _services(ctx)
    try:
        nodes = run_async(services.hierarchy.list_hierarchy())
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output([n.project.model_dump(mode="json") for n in nodes], as_json=True)
        return
    if not nodes:
        click.echo("No projects yet.")
        return
    rows = [
        {"name": n.project.name, "sprints": len(n.sprints), "description": n.project.description or ""}
        for n in nodes
    ]
    click.echo(format_table(rows, ["name", "sprints", "description"]))


@cli.group()
def sprint():
    """Manage sprints."""


@sprint.command("create")
@click.argument("project_name")
@click.argument("name")
@click.option("--order", type=click.IntRange(min=0), help="Position (default: after the last sprint)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def sprint_create(ctx: click.Context, project_name: str, name: str, order: int | None, as_json: bool):
    """Create a sprint in an existing project."""
    services = _services(ctx)

    async def _run():
        project_id = await _project_id_by_name(services, project_name)
        return await services.hierarchy.create_sprint(project_id, name, order)

    try:
        created = run_async(_run())
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output(created.model_dump(mode="json"), as_json=True)
    else:
        click.echo(f"Created sprint: {project_name} / {created.name} (order {created.order})")


@sprint.command("list")
@click.argument("project_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def sprint_list(ctx: click.Context, project_name: str, as_json: bool):
    """List the sprints of a project in order."""
    services = _services(ctx)

    async def _run():
        project_id = await _project_id_by_name(services, project_name)
        for node in await services.hierarchy.list_hierarchy():
            if node.project.id == project_id:
                return node.sprints
        return []

    try:
        sprints = run_async(_run())
    except MchError as e:
        _handle_error(ctx, e)

    if as_json:
        output([s.model_dump(mode="json") for s in sprints], as_json=True)
        return
    if not sprints:
        click.echo(f"No sprints in {project_name}.")
        return
    click.echo(format_table([{"order": s.order, "name": s.name} for s in sprints], ["order", "name"]))


# ─────────────────────────────────────────────────────────────────────────────
# Config
# ─────────────────────────────────────────────────────────────────────────────


@cli.command("config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def config_cmd(ctx: click.Context, as_json: bool):
    """Show the resolved configuration."""
    services = _services(ctx)
    config = services.config
    data = {
        **config.model_dump(mode="json"),
        "store_root": str(config.resolved_store_root()),
        "embeddings": services.embedder is not None,
    }

    if as_json:
        output(data, as_json=True)
        return
    for key, value in data.items():
        click.echo(f"{key}: {value}")


def main():
    """Entry point for mch CLI."""
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()
