from __future__ import annotations

from datetime import datetime
from pathlib import Path

import typer

from audience import __version__
from audience.config import (
    WorkspaceConfig,
    WorkspaceError,
    ensure_workspaces_dir,
    load_workspace,
    set_current_workspace,
    workspace_config_path,
    write_workspace_config,
)
from audience.domain import rules
from audience.domain.models import FilterRule
from audience.domain.rules import ValidationError
from audience.logging_config import configure_logging, resolve_log_level
from audience.services import contacts, exports, segments
from audience.services.segments import SegmentError
from audience.store.migrations import SchemaError
from audience.store.sqlite import SqliteStore

app = typer.Typer(help="Audience segmentation CLI")
workspace_app = typer.Typer(help="Workspace management")
schema_app = typer.Typer(help="Schema operations")
contact_app = typer.Typer(help="Contact operations")
segment_app = typer.Typer(help="Segment operations")

app.add_typer(workspace_app, name="workspace")
app.add_typer(schema_app, name="schema")
app.add_typer(contact_app, name="contact")
app.add_typer(segment_app, name="segment")


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING..."),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    _setup_logging(log_level)


@app.command("init")
def init() -> None:
    """Initialize directories for workspaces and outputs."""
    ensure_workspaces_dir()
    Path("exports").mkdir(exist_ok=True)
    typer.echo("Initialized audience directories.")


@workspace_app.command("add")
def workspace_add(
    name: str = typer.Argument(...),
    default_country: str | None = typer.Option(
        None, "--default-country", help="ISO country used for national phone numbers."
    ),
    use: bool = typer.Option(True, "--use/--no-use", help="Set as current workspace."),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing workspace config if it exists."
    ),
) -> None:
    config_path = workspace_config_path(name)
    if config_path.exists() and not force:
        raise typer.BadParameter(
            f"Workspace already exists: {config_path}. Use --force to overwrite."
        )
    config_path = write_workspace_config(name, default_country)
    if use:
        set_current_workspace(name)
    typer.echo(f"Workspace created: {config_path}")


@workspace_app.command("use")
def workspace_use(name: str = typer.Argument(...)) -> None:
    if not workspace_config_path(name).exists():
        raise typer.BadParameter(f"Workspace config not found: {workspace_config_path(name)}")
    set_current_workspace(name)
    typer.echo(f"Active workspace: {name}")


@schema_app.command("apply")
def schema_apply() -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        schema = store.apply_schema()
    except SchemaError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Applied schema v{schema.version} to {ws.store.sqlite_path}.")


@contact_app.command("add")
def contact_add(
    name: str | None = typer.Option(None, "--name"),
    first_name: str | None = typer.Option(None, "--first-name"),
    last_name: str | None = typer.Option(None, "--last-name"),
    phone: str | None = typer.Option(None, "--phone"),
    email: str | None = typer.Option(None, "--email"),
    country: str | None = typer.Option(None, "--country"),
    tag: list[str] | None = typer.Option(None, "--tag", help="Repeat for several tags."),
    channel: str | None = typer.Option(None, "--channel"),
    status: str | None = typer.Option(None, "--status"),
    assignee: str | None = typer.Option(None, "--assignee"),
    language: str | None = typer.Option(None, "--language"),
    bot_status: str | None = typer.Option(None, "--bot-status"),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        contact = contacts.add_contact(
            store,
            name=name,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            email_address=email,
            country_iso=country,
            tags=tag,
            channel=channel,
            conversation_status=status,
            assignee=assignee,
            language=language,
            bot_status=bot_status,
            default_country=ws.contacts.default_country,
        )
    except ValidationError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created contact: {contact.contact_id}")


@contact_app.command("list")
def contact_list() -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    for contact in contacts.fetch_contacts(store):
        typer.echo(
            f"{contact.contact_id} | {contact.name} | {contact.phone or ''} | "
            f"{contact.country_iso or ''} | {', '.join(contact.tags)}"
        )


@contact_app.command("import")
def contact_import(path: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    summary = contacts.import_contacts_csv(store, path, ws.contacts.default_country)
    for error in summary.errors:
        typer.echo(error, err=True)
    typer.echo(f"Imported {summary.created} contacts, skipped {summary.skipped}.")


@contact_app.command("delete")
def contact_delete(contact_id: str = typer.Argument(...)) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    if not contacts.delete_contact(store, contact_id):
        _exit_with_error(f"Contact not found: {contact_id}")
    typer.echo(f"Deleted contact: {contact_id}")


@segment_app.command("create")
def segment_create(
    name: str = typer.Argument(...),
    rules_path: Path = typer.Option(..., "--rules", exists=True, dir_okay=False),
    description: str | None = typer.Option(None, "--description"),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    filters = _load_rules(rules_path)
    try:
        segment = segments.create_segment(store, name, filters, description=description)
    except ValidationError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created segment: {segment.segment_id} ({len(segment.contact_ids)} contacts)")


@segment_app.command("list")
def segment_list() -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    for segment in segments.fetch_segments(store):
        typer.echo(
            f"{segment.segment_id} | {segment.name} | {len(segment.filters)} filters | "
            f"{len(segment.contact_ids)} contacts"
        )


@segment_app.command("show")
def segment_show(segment_id: str = typer.Argument(...)) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    segment = _get_segment(store, segment_id)
    typer.echo(f"{segment.name} ({segment.segment_id})")
    if segment.description:
        typer.echo(segment.description)
    for rule in segment.filters:
        payload = rule.as_dict()
        typer.echo(f"  {payload['field']} {payload['operator']} {payload.get('value', '')}".rstrip())
    typer.echo(f"contacts: {len(segment.contact_ids)}")
    for contact_id in segment.contact_ids:
        typer.echo(f"  {contact_id}")


@segment_app.command("update")
def segment_update(
    segment_id: str = typer.Argument(...),
    name: str | None = typer.Option(None, "--name"),
    description: str | None = typer.Option(None, "--description"),
    rules_path: Path | None = typer.Option(None, "--rules", exists=True, dir_okay=False),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    filters = _load_rules(rules_path) if rules_path else None
    try:
        segment = segments.update_segment(
            store, segment_id, name=name, description=description, filters=filters
        )
    except (SegmentError, ValidationError) as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Updated segment: {segment.segment_id} ({len(segment.contact_ids)} contacts)")


@segment_app.command("refresh")
def segment_refresh(
    segment_id: str | None = typer.Argument(None, help="Refresh every segment when omitted."),
    as_of: str | None = typer.Option(None, "--as-of", help="Evaluate relative dates at this ISO time."),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    now = _parse_as_of(as_of)
    try:
        if segment_id:
            refreshed = [segments.refresh_segment_contacts(store, segment_id, now=now)]
        else:
            refreshed = segments.refresh_all_segments(store, now=now)
    except SegmentError as exc:
        _exit_with_error(str(exc))
    for segment in refreshed:
        typer.echo(f"{segment.segment_id} | {segment.name} | {len(segment.contact_ids)} contacts")


@segment_app.command("delete")
def segment_delete(segment_id: str = typer.Argument(...)) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        segments.delete_segment(store, segment_id)
    except SegmentError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted segment: {segment_id}")


@segment_app.command("check")
def segment_check(rules_path: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """Report rules that can never match any contact."""
    filters = _load_rules(rules_path)
    problems = [
        f"rule {index}: {problem}"
        for index, rule in enumerate(filters, start=1)
        for problem in rules.rule_problems(rule)
    ]
    if not filters:
        problems.append("no rules: the segment will match no contacts")
    for problem in problems:
        typer.echo(problem)
    if problems:
        raise typer.Exit(code=1)
    typer.echo(f"{len(filters)} rules OK.")


@segment_app.command("preview")
def segment_preview(
    rules_path: Path = typer.Argument(..., exists=True, dir_okay=False),
    as_of: str | None = typer.Option(None, "--as-of"),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    filters = _load_rules(rules_path)
    preview = segments.preview_segment(
        contacts.fetch_contacts(store), filters, now=_parse_as_of(as_of)
    )
    for problem in preview.problems:
        typer.echo(f"warning: {problem}", err=True)
    typer.echo(f"{len(preview.contact_ids)} of {preview.total_contacts} contacts match")
    for contact_id in preview.contact_ids:
        typer.echo(f"  {contact_id}")


@segment_app.command("export")
def segment_export(
    segment_id: str = typer.Argument(...),
    out: str = typer.Option(..., "--out", help="Target .csv or .xlsx file."),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    segment = _get_segment(store, segment_id)
    members = segments.segment_contacts(store, segment)
    out_path = Path(out)
    if out_path.suffix.lower() == ".xlsx":
        count = exports.export_segment_excel(segment, members, out_path)
    elif out_path.suffix.lower() == ".csv":
        count = exports.export_segment_csv(members, out_path)
    else:
        raise typer.BadParameter("--out must end in .csv or .xlsx")
    typer.echo(f"Exported {count} contacts to {out_path}")


def _setup_logging(log_level: str | None) -> None:
    log_file = None
    if log_level is None:
        try:
            ws = load_workspace()
        except WorkspaceError:
            ws = None
        if ws is not None:
            log_level = ws.logging.level
            log_file = ws.logging.file
    configure_logging(resolve_log_level(log_level), log_file=log_file)


def _load_workspace() -> WorkspaceConfig:
    try:
        return load_workspace()
    except WorkspaceError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc


def _load_rules(path: Path) -> list[FilterRule]:
    try:
        return rules.load_rules(path)
    except ValidationError as exc:
        _exit_with_error(f"{path}: {exc}")


def _get_segment(store: SqliteStore, segment_id: str):
    try:
        return segments.get_segment(store, segment_id)
    except SegmentError as exc:
        _exit_with_error(str(exc))


def _parse_as_of(value: str | None) -> datetime | None:
    try:
        return rules.parse_datetime(value, "--as-of")
    except ValidationError as exc:
        _exit_with_error(str(exc))


def _exit_with_error(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
