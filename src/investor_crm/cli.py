"""CLI entry point for the investor CRM.

Commands:
    investor-crm import        — Load investors from a JSON or CSV file
    investor-crm list          — Filter and list the pipeline
    investor-crm show          — Show one investor with score, urgency and activity log
    investor-crm add           — Add an investor by hand
    investor-crm log           — Log an activity (email, call, meeting, ...)
    investor-crm stage         — Move one or more investors to a pipeline stage
    investor-crm delete        — Remove an investor
    investor-crm prioritize    — Top targets ranked by the prioritization score
    investor-crm recommend     — Recommended action buckets
    investor-crm summary       — Dashboard totals
    investor-crm classify      — Guess the investor type of a raw record
    investor-crm research      — Draft outreach research with Claude
    investor-crm find-contact  — Find the best contact at a firm via Apollo
    investor-crm sync-gmail    — Record sent emails as activities
    investor-crm serve         — Start the web API
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from investor_crm.config import Settings
from investor_crm.engine import (
    annotate,
    calculate_engagement_score,
    classify_investor_type,
    generate_recommendations,
    get_ai_prioritized_investors,
    get_outreach_urgency,
    suggest_pitch_angle,
    summarize_pipeline,
)
from investor_crm.models import (
    PIPELINE_STAGES,
    PITCH_ANGLES,
    Investor,
    InvestorType,
    PipelineStage,
    Priority,
    stage_info,
    type_info,
)
from investor_crm.pipeline import InvestorNotFoundError, InvestorPipeline

console = Console()

_TYPE_CHOICES = [t.value for t in InvestorType]
_STAGE_CHOICES = [s.value for s in PipelineStage]
_PRIORITY_CHOICES = [p.value for p in Priority]


def _get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        console.print("See .env.example for all INVESTOR_CRM_* options.")
        sys.exit(1)


def _pipeline() -> InvestorPipeline:
    return InvestorPipeline.from_settings(_get_settings())


def _get_or_exit(pipeline: InvestorPipeline, investor_id: int) -> Investor:
    try:
        return pipeline.get(investor_id)
    except InvestorNotFoundError:
        console.print(f"[red]No investor with id {investor_id}[/red]")
        sys.exit(1)


def _money(amount: int) -> str:
    return f"${amount:,.0f}" if amount else "—"


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Fundraising pipeline: scoring, recommendations and outreach helpers."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )


# ---------------------------------------------------------------------------
# import
# ---------------------------------------------------------------------------


@main.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--append", is_flag=True, help="Add to the current pipeline instead of replacing it")
def import_cmd(path: str, append: bool) -> None:
    """Import investors from a JSON array or CSV file.

    Rows without a type are classified from their notes, company and focus.
    """
    from investor_crm.importer import InvestorImporter, InvestorImportError

    importer = InvestorImporter(_pipeline())
    try:
        stats = importer.import_file(path, replace=not append)
    except InvestorImportError as exc:
        console.print(f"[bold red]Import failed:[/bold red] {exc}")
        sys.exit(1)

    console.print("\n[bold green]Import complete[/bold green]")
    console.print(f"  Created: {stats.created}")
    console.print(f"  Skipped: {stats.skipped}")
    if stats.errors:
        console.print(f"\n[yellow]Warnings ({len(stats.errors)}):[/yellow]")
        for err in stats.errors:
            console.print(f"  - {err}")


# ---------------------------------------------------------------------------
# list / show
# ---------------------------------------------------------------------------


@main.command("list")
@click.option("--search", "-s", default="", help="Match name, company, email or notes")
@click.option("--type", "investor_type", type=click.Choice(["all", *_TYPE_CHOICES]), default="all")
@click.option("--stage", type=click.Choice(["all", *_STAGE_CHOICES]), default="all")
@click.option("--priority", type=click.Choice(["all", *_PRIORITY_CHOICES]), default="all")
@click.option("--source", default="all", help="Filter by record source (manual, import, ...)")
@click.option(
    "--sort",
    type=click.Choice(["name", "engagement", "commitment", "stage"]),
    default="name",
)
def list_cmd(
    search: str, investor_type: str, stage: str, priority: str, source: str, sort: str
) -> None:
    """List investors in the pipeline."""
    investors = _pipeline().list_investors(
        search=search, type=investor_type, stage=stage, priority=priority, source=source, sort=sort
    )
    if not investors:
        console.print("[dim]No investors match.[/dim]")
        return

    table = Table(title=f"Investors ({len(investors)})")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Company")
    table.add_column("Type")
    table.add_column("Stage")
    table.add_column("Priority")
    table.add_column("Score", justify="right")
    table.add_column("Urgency")
    for inv in investors:
        view = annotate(inv)
        table.add_row(
            str(inv.id),
            inv.name,
            inv.company,
            type_info(inv.type).label,
            stage_info(inv.stage).label,
            inv.priority,
            str(view.engagement_score),
            view.urgency.label if view.urgency else "",
        )
    console.print(table)


@main.command("show")
@click.argument("investor_id", type=int)
def show_cmd(investor_id: int) -> None:
    """Show one investor in detail."""
    inv = _get_or_exit(_pipeline(), investor_id)
    urgency = get_outreach_urgency(inv)
    angle = PITCH_ANGLES.get(inv.pitch_angle)

    console.print(f"\n[bold]{inv.name}[/bold]  [dim]#{inv.id}[/dim]")
    console.print(f"  Company:     {inv.company or '—'}")
    console.print(f"  Email:       {inv.email or '—'}")
    console.print(f"  Type:        {type_info(inv.type).icon} {type_info(inv.type).label}")
    console.print(f"  Stage:       {stage_info(inv.stage).label}")
    console.print(f"  Priority:    {inv.priority}")
    console.print(f"  Commitment:  {_money(inv.commitment)}")
    console.print(f"  Pitch angle: {angle.label if angle else inv.pitch_angle}")
    console.print(f"  Engagement:  {calculate_engagement_score(inv)}")
    if urgency:
        console.print(f"  Urgency:     {urgency.label}")
    if inv.next_action:
        console.print(f"  Next action: {inv.next_action}")
    if inv.notes:
        console.print(f"\n  {inv.notes}")
    if inv.activities:
        console.print("\n[bold]Activity[/bold]")
        for act in sorted(inv.activities, key=lambda a: a.date, reverse=True):
            console.print(f"  [{act.date:%Y-%m-%d %H:%M}] {act.type}: {act.note}")


# ---------------------------------------------------------------------------
# add / log / stage / delete
# ---------------------------------------------------------------------------


@main.command("add")
@click.argument("name")
@click.option("--company", default="")
@click.option("--email", default=None)
@click.option("--type", "investor_type", type=click.Choice(_TYPE_CHOICES), default="other")
@click.option("--stage", type=click.Choice(_STAGE_CHOICES), default="identified")
@click.option("--priority", type=click.Choice(_PRIORITY_CHOICES), default="medium")
@click.option("--pitch-angle", type=click.Choice(list(PITCH_ANGLES)), default=None)
@click.option("--notes", default="")
def add_cmd(
    name: str,
    company: str,
    email: str | None,
    investor_type: str,
    stage: str,
    priority: str,
    pitch_angle: str | None,
    notes: str,
) -> None:
    """Add an investor to the pipeline."""
    inv = _pipeline().add(
        name=name,
        company=company,
        email=email,
        type=investor_type,
        stage=stage,
        priority=priority,
        pitch_angle=pitch_angle or suggest_pitch_angle(investor_type),
        notes=notes,
    )
    console.print(f"Added [bold]{inv.name}[/bold] as #{inv.id}.")


@main.command("log")
@click.argument("investor_id", type=int)
@click.argument("activity_type")
@click.argument("note", required=False, default="")
def log_cmd(investor_id: int, activity_type: str, note: str) -> None:
    """Log an activity against an investor and mark it as the latest contact.

    \b
    Examples:
        investor-crm log 12 email "Sent intro with deck"
        investor-crm log 12 meeting
    """
    pipeline = _pipeline()
    _get_or_exit(pipeline, investor_id)
    inv = pipeline.log_activity(investor_id, activity_type, note)
    console.print(f"Logged {activity_type} for {inv.name}.")


@main.command("stage")
@click.argument("stage", type=click.Choice(_STAGE_CHOICES))
@click.argument("investor_ids", nargs=-1, type=int, required=True)
def stage_cmd(stage: str, investor_ids: tuple[int, ...]) -> None:
    """Move one or more investors to STAGE."""
    pipeline = _pipeline()
    for investor_id in investor_ids:
        _get_or_exit(pipeline, investor_id)
    moved = pipeline.reassign_stage(investor_ids, stage)
    console.print(f"Moved {len(moved)} investor(s) to {PIPELINE_STAGES[stage].label}.")


@main.command("delete")
@click.argument("investor_id", type=int)
@click.confirmation_option(prompt="Delete this investor?")
def delete_cmd(investor_id: int) -> None:
    """Delete an investor."""
    pipeline = _pipeline()
    inv = _get_or_exit(pipeline, investor_id)
    pipeline.delete(investor_id)
    console.print(f"Deleted {inv.name}.")


# ---------------------------------------------------------------------------
# prioritize / recommend / summary / classify
# ---------------------------------------------------------------------------


@main.command("prioritize")
def prioritize_cmd() -> None:
    """Show the top targets to work on next."""
    ranked = get_ai_prioritized_investors(_pipeline().investors)
    if not ranked:
        console.print("[dim]No open investors to prioritize.[/dim]")
        return

    table = Table(title="Top Targets")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Company")
    table.add_column("Score", justify="right")
    table.add_column("Why")
    table.add_column("Next step")
    for rank, p in enumerate(ranked, start=1):
        table.add_row(
            str(rank), p.name, p.company, str(p.ai_score), "\n".join(p.ai_reasons), p.ai_action
        )
    console.print(table)


@main.command("recommend")
def recommend_cmd() -> None:
    """Show recommended actions grouped by situation."""
    buckets = generate_recommendations(_pipeline().investors)
    if not buckets:
        console.print("[dim]Nothing to recommend right now.[/dim]")
        return
    for bucket in buckets:
        console.print(f"\n[bold]{bucket.category}[/bold]  [dim]{bucket.action}[/dim]")
        for inv in bucket.investors:
            console.print(f"  #{inv.id} {inv.name} ({inv.company or '—'})")


@main.command("summary")
def summary_cmd() -> None:
    """Show dashboard totals for the pipeline."""
    s = summarize_pipeline(_pipeline().investors)

    console.print("\n[bold]Pipeline Summary[/bold]")
    console.print(f"  Investors:      {s.total}")
    console.print(f"  Committed:      {_money(s.committed_total)}")
    console.print(f"  Active:         {s.active}")
    console.print(f"  Needs action:   {s.needs_action}")

    if s.by_stage:
        table = Table(title="By Stage")
        table.add_column("Stage")
        table.add_column("Count", justify="right")
        for stage in sorted(s.by_stage, key=lambda k: stage_info(k).order):
            table.add_row(stage_info(stage).label, str(s.by_stage[stage]))
        console.print(table)


@main.command("classify")
@click.argument("record")
def classify_cmd(record: str) -> None:
    """Classify a raw investor record given as a JSON object.

    \b
    Example:
        investor-crm classify '{"description": "Web3 seed fund", "name": "Acme"}'
    """
    try:
        raw = json.loads(record)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid JSON:[/red] {exc}")
        sys.exit(1)
    if not isinstance(raw, dict):
        console.print("[red]Expected a JSON object[/red]")
        sys.exit(1)
    investor_type = classify_investor_type(raw)
    angle = PITCH_ANGLES[suggest_pitch_angle(investor_type)]
    console.print(f"Type:        {type_info(investor_type).label} ({investor_type})")
    console.print(f"Pitch angle: {angle.label} ({angle.key})")


# ---------------------------------------------------------------------------
# research / find-contact
# ---------------------------------------------------------------------------


@main.command("research")
@click.argument("investor_id", type=int)
def research_cmd(investor_id: int) -> None:
    """Draft personalized outreach research for an investor with Claude."""
    from investor_crm.research import InvestorResearcher

    settings = _get_settings()
    inv = _get_or_exit(InvestorPipeline.from_settings(settings), investor_id)
    result = InvestorResearcher(settings).research(inv)

    if not result.success:
        console.print(f"[yellow]AI research unavailable:[/yellow] {result.error}")
        console.print("[dim]Showing the canned brief for this investor type.[/dim]")
    brief = result.research or result.fallback
    if brief is None:
        return
    for heading, value in (
        ("Who they are", brief.who_they_are),
        ("Opening line", brief.opening_line),
        ("Key hook", brief.key_hook),
        ("What to avoid", brief.what_to_avoid),
        ("Subject line", brief.subject_line),
    ):
        console.print(f"\n[bold]{heading}[/bold]\n  {value or '—'}")


@main.command("find-contact")
@click.argument("company")
@click.option("--type", "investor_type", type=click.Choice(_TYPE_CHOICES), default=None)
def find_contact_cmd(company: str, investor_type: str | None) -> None:
    """Find the best person to contact at COMPANY via Apollo."""
    from investor_crm.client import ApolloAPIError, ApolloClient

    settings = _get_settings()

    async def _run() -> None:
        async with ApolloClient(settings) as apollo:
            try:
                lookup = await apollo.find_contact(company, investor_type or "")
            except ApolloAPIError as exc:
                console.print(f"[bold red]Apollo lookup failed:[/bold red] {exc.detail}")
                return

        if not lookup.success or lookup.contact is None:
            console.print(f"[yellow]{lookup.error}[/yellow]")
            if lookup.suggestion:
                console.print(f"  {lookup.suggestion}")
            return

        best = lookup.contact
        console.print(f"[bold green]{best.name}[/bold green], {best.title} at {best.company}")
        console.print(f"  Email:    {best.email or '—'}")
        console.print(f"  LinkedIn: {best.linkedin or '—'}")
        if lookup.note:
            console.print(f"  [dim]{lookup.note}[/dim]")
        if len(lookup.alternatives) > 1:
            table = Table(title="Alternatives")
            table.add_column("Name")
            table.add_column("Title")
            table.add_column("Score", justify="right")
            for alt in lookup.alternatives[1:]:
                table.add_row(alt.name, alt.title, str(alt.score))
            console.print(table)

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# sync-gmail
# ---------------------------------------------------------------------------


@main.command("sync-gmail")
@click.option("--listen", is_flag=True, help="Keep syncing on the configured interval")
def sync_gmail_cmd(listen: bool) -> None:
    """Match recently sent Gmail messages to investors and log them."""
    from investor_crm.gmail import GmailAPIError
    from investor_crm.listener import GmailSyncListener

    settings = _get_settings()
    listener = GmailSyncListener(settings, InvestorPipeline.from_settings(settings))

    def _on_match(match: object) -> None:
        console.print(f"[bold cyan]EMAIL:[/bold cyan] {match}")

    listener.on_match(_on_match)

    if not listen:
        try:
            result = asyncio.run(listener.sync_once())
        except GmailAPIError as exc:
            console.print(f"[bold red]Gmail sync failed:[/bold red] {exc.detail}")
            sys.exit(1)
        console.print(f"[bold green]{result.message}[/bold green]")
        return

    console.print("[bold]Starting Gmail sync listener...[/bold]")
    console.print(f"Interval: {settings.gmail_sync_interval_seconds}s")
    console.print("Press Ctrl+C to stop.\n")
    try:
        asyncio.run(listener.run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Listener stopped.[/yellow]")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@main.command("serve")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", "-p", default=8080, type=int, help="Port number")
def serve_cmd(host: str, port: int) -> None:
    """Start the web API."""
    import uvicorn

    from investor_crm.web import create_app

    settings = _get_settings()  # validate config early
    console.print(f"[bold]Starting investor CRM at http://{host}:{port}[/bold]")

    app = create_app(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
