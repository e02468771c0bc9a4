"""forumguard CLI — analyze text and work the community report queue."""

import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from forumguard import __version__
from forumguard.errors import EscalationError, ModerationError

console = Console()

_ACTION_STYLE = {"APPROVE": "green", "FLAG": "yellow", "REJECT": "red"}


def _fail(exc: ModerationError) -> None:
    console.print(f"[red]Error ({exc.kind.value}):[/] {escape(exc.message)}")
    sys.exit(1)


def _reports_table(title: str, reports) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Content", style="cyan")
    table.add_column("Reporter")
    table.add_column("Reason")
    table.add_column("Reported at")
    table.add_column("Resolution")
    for r in reports:
        resolution = r.resolution_action.value if r.resolved else "[yellow]open[/]"
        table.add_row(
            r.id,
            f"{r.content_type.value} {r.content_id}",
            r.reporter_id,
            r.reason.value,
            r.reported_at[:19],
            resolution,
        )
    return table


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, help="Path to a YAML settings file")
@click.option("--home", default=None, help="Data directory (overrides settings)")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, home: str | None):
    """forumguard — forum content analysis and community report escalation."""
    from forumguard.config import configure_logging, load_settings

    try:
        settings = load_settings(config_path)
    except ModerationError as exc:
        _fail(exc)
    if home:
        settings.base_dir = home
    configure_logging(settings.log_level)
    ctx.obj = settings


def _service(ctx: click.Context):
    from forumguard.service import ModerationService

    return ModerationService.from_settings(ctx.obj)


# ── Analyze ──────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
@click.pass_context
def analyze(ctx: click.Context, text: str):
    """Score TEXT and print an advisory moderation recommendation."""
    from forumguard.analysis.analyzer import recommendation_for

    service = _service(ctx)
    analysis = service.analyze_content(text)
    rec = recommendation_for(analysis)

    verdict = "[green]appropriate[/]" if analysis.is_appropriate else "[red]inappropriate[/]"
    style = _ACTION_STYLE[rec.action.value]
    lines = [
        f"Verdict:        {verdict}",
        f"Confidence:     {analysis.confidence_score:.2f}",
        f"Recommendation: [{style}]{rec.action.value}[/]",
        f"Reason:         {escape(rec.reason)}",
    ]
    console.print(Panel("\n".join(lines), title="Content Analysis"))
    for flag in analysis.flags:
        console.print(f"  [yellow]![/] {escape(flag)}")


# ── Reports ──────────────────────────────────────────────────────────


@main.group()
def report():
    """File, list and resolve community reports."""


@report.command(name="file")
@click.argument("content_type", type=click.Choice(["POST", "TOPIC"], case_sensitive=False))
@click.argument("content_id")
@click.option("--reporter", "-r", required=True, help="Reporting user id")
@click.option("--reason", default="OTHER", help="SPAM, INAPPROPRIATE, OFF_TOPIC, HARASSMENT, MISLEADING or OTHER")
@click.option("--description", "-d", default="", help="Optional details")
@click.pass_context
def file_report(ctx: click.Context, content_type: str, content_id: str, reporter: str, reason: str, description: str):
    """File a report against CONTENT_TYPE CONTENT_ID."""
    service = _service(ctx)
    try:
        filed, outcome = service.file_and_escalate(content_type, content_id, reporter, reason, description)
    except EscalationError as exc:
        console.print(f"[yellow]Report {exc.report.id} filed, but escalation failed.[/]")
        _fail(exc)
    except ModerationError as exc:
        _fail(exc)
    finally:
        service.close()

    console.print(f"  [green]v[/] Report filed: {filed.id}")
    if outcome.acted:
        console.print(
            f"  [bold]Escalation:[/] {outcome.action.value} "
            f"({len(outcome.resolved_report_ids)} reports resolved)"
        )


@report.command(name="list")
@click.option("--content-type", default=None, help="POST or TOPIC")
@click.option("--content-id", default=None, help="Only reports for this content (needs --content-type)")
@click.option("--status", type=click.Choice(["all", "resolved", "unresolved"]), default="all")
@click.option("--reason", default=None)
@click.pass_context
def list_reports(ctx: click.Context, content_type: str | None, content_id: str | None, status: str, reason: str | None):
    """List reports, newest first."""
    service = _service(ctx)
    try:
        if content_id:
            if not content_type:
                raise click.UsageError("--content-id requires --content-type")
            reports = service.list_for_content(content_type, content_id)
        else:
            reports = service.list_reports(status=status, content_type=content_type, reason=reason)
    except ModerationError as exc:
        _fail(exc)

    if not reports:
        console.print("[yellow]No reports found.[/]")
        return
    console.print(_reports_table(f"Reports ({len(reports)})", reports))


@report.command()
@click.pass_context
def unresolved(ctx: click.Context):
    """Show the unresolved report queue."""
    reports = _service(ctx).list_unresolved()
    if not reports:
        console.print("[green]No unresolved reports.[/]")
        return
    console.print(_reports_table(f"Unresolved reports ({len(reports)})", reports))


@report.command()
@click.argument("report_ids", nargs=-1, required=True)
@click.option("--moderator", "-m", required=True, help="Moderator user id")
@click.option("--action", type=click.Choice(["RESOLVE", "IGNORE", "DELETE"], case_sensitive=False), default="RESOLVE")
@click.option("--notes", "-n", default="")
@click.pass_context
def resolve(ctx: click.Context, report_ids: tuple, moderator: str, action: str, notes: str):
    """Resolve one or more reports by id."""
    service = _service(ctx)
    try:
        result = service.bulk_resolve(list(report_ids), action, notes, moderator)
    except ModerationError as exc:
        _fail(exc)

    console.print(f"  Processed {result.processed}: [green]{result.succeeded} ok[/], [red]{result.failed} failed[/]")
    for report_id, message in result.failures.items():
        console.print(f"    [red]x[/] {report_id}: {message}")
    if not result.success:
        sys.exit(1)


@report.command()
@click.pass_context
def stats(ctx: click.Context):
    """Print report statistics."""
    s = _service(ctx).statistics()
    lines = [
        f"Total:      {s.total}",
        f"Unresolved: {s.unresolved}",
        f"Resolved:   {s.resolved}",
        f"Last 7 days:{s.recent:>4}",
    ]
    console.print(Panel("\n".join(lines), title="Report Statistics"))
    if s.unresolved_by_reason:
        table = Table(title="Unresolved by reason")
        table.add_column("Reason")
        table.add_column("Count", justify="right")
        for reason, count in sorted(s.unresolved_by_reason.items(), key=lambda kv: -kv[1]):
            table.add_row(reason, str(count))
        console.print(table)


@report.command()
@click.option("--threshold", "-t", type=int, default=None, help="Minimum unresolved reports")
@click.pass_context
def priority(ctx: click.Context, threshold: int | None):
    """List content with many unresolved reports."""
    items = _service(ctx).high_priority(threshold)
    if not items:
        console.print("[green]No high-priority content.[/]")
        return
    table = Table(title="High-priority content")
    table.add_column("Type")
    table.add_column("ID", style="cyan")
    table.add_column("Unresolved", justify="right", style="red")
    for ctype, cid, count in items:
        table.add_row(ctype.value, cid, str(count))
    console.print(table)


# ── Content ──────────────────────────────────────────────────────────


@main.group()
def content():
    """Manage the local post and topic store."""


@content.command(name="add-topic")
@click.argument("topic_id")
@click.argument("title")
@click.option("--author", "-a", required=True)
@click.pass_context
def add_topic(ctx: click.Context, topic_id: str, title: str, author: str):
    """Create topic TOPIC_ID."""
    from forumguard.content import JsonContentStore

    JsonContentStore(ctx.obj.base_dir).add_topic(topic_id, title, author)
    console.print(f"  [green]v[/] Topic {topic_id} created")


@content.command(name="add-post")
@click.argument("post_id")
@click.argument("topic_id")
@click.argument("text")
@click.option("--author", "-a", required=True)
@click.option("--check/--no-check", default=True, help="Analyze the text before storing it")
@click.pass_context
def add_post(ctx: click.Context, post_id: str, topic_id: str, text: str, author: str, check: bool):
    """Create post POST_ID in TOPIC_ID."""
    from forumguard.content import JsonContentStore

    store = JsonContentStore(ctx.obj.base_dir)
    if store.get_topic(topic_id) is None:
        console.print(f"[red]Topic {topic_id} not found.[/]")
        sys.exit(1)
    if check:
        rec = _service(ctx).get_moderation_recommendation(text)
        style = _ACTION_STYLE[rec.action.value]
        console.print(f"  Advisory: [{style}]{rec.action.value}[/] ({rec.confidence_score:.2f}) {rec.reason}")
    store.add_post(post_id, topic_id, text, author)
    console.print(f"  [green]v[/] Post {post_id} created")


# ── History / inbox ──────────────────────────────────────────────────


@main.command()
@click.option("--automated/--all", default=False, help="Only automated actions")
@click.option("--limit", default=50)
@click.pass_context
def history(ctx: click.Context, automated: bool, limit: int):
    """Show the moderation history, newest first."""
    entries = _service(ctx).history(automated=True if automated else None, limit=limit)
    if not entries:
        console.print("[yellow]No moderation history.[/]")
        return
    table = Table(title=f"Moderation history ({len(entries)})")
    table.add_column("When", style="dim")
    table.add_column("By")
    table.add_column("Content", style="cyan")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("Affected", justify="right")
    for e in entries:
        status = f"{e.previous_status or '-'} -> {e.new_status or '-'}"
        table.add_row(
            e.timestamp[:19], e.moderator_id, f"{e.content_type} {e.content_id}",
            e.action_type, status, str(e.affected_count or ""),
        )
    console.print(table)


@main.command()
@click.argument("recipient")
@click.option("--unread", is_flag=True, help="Only unread notifications")
@click.pass_context
def inbox(ctx: click.Context, recipient: str, unread: bool):
    """Show notifications for RECIPIENT."""
    from forumguard.notifications import NotificationInbox

    items = NotificationInbox(ctx.obj.base_dir).list_for(recipient, unread_only=unread)
    if not items:
        console.print("[yellow]No notifications.[/]")
        return
    for n in items:
        marker = " " if n.read else "[bold blue]*[/]"
        console.print(f"{marker} [dim]{n.created_at[:19]}[/] {escape(f'[{n.category}]')} {escape(n.message)}")
        if n.link:
            console.print(f"    {n.link}")


if __name__ == "__main__":
    main()
