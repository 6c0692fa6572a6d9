"""Command-line interface for the Backlink Engine."""

import functools
import sys
from contextlib import contextmanager

import click
from loguru import logger
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import BAND_PRESETS, PROJECT_ROOT, get_settings
from .database import get_db_session, init_db, reset_db
from .engine import BacklinkEngine
from .exceptions import BacklinkEngineError
from .models.opportunity import OpportunityStatus, OpportunityType
from .models.outreach import MessageType
from .services.opportunity_store import DIFFICULTY_BUCKETS

# Rich console for pretty output
console = Console()

TYPE_CHOICES = [t.value for t in OpportunityType]
STATUS_CHOICES = [s.value for s in OpportunityStatus]


def configure_logging(debug: bool = False):
    """Send loguru output to stderr and a rotating log file."""
    settings = get_settings()
    level = "DEBUG" if debug else settings.log_level
    logger.remove()
    logger.add(sys.stderr, level=level)
    if settings.log_file:
        log_path = PROJECT_ROOT / settings.log_file
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(str(log_path), rotation="10 MB", level=level, retention="30 days")


@contextmanager
def engine_scope():
    """Yield a BacklinkEngine bound to a committed-on-success session."""
    with get_db_session() as session:
        engine = BacklinkEngine.from_settings(session)
        try:
            yield engine
        finally:
            engine.close()


def handle_errors(func):
    """Turn engine errors into a clean CLI failure."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BacklinkEngineError as exc:
            console.print(f"[red]Error: {exc}")
            raise click.exceptions.Exit(1)

    return wrapper


def _fmt(value, suffix=""):
    return "-" if value is None else f"{value}{suffix}"


@click.group()
@click.option('--debug/--no-debug', default=False, help='Enable debug logging')
def cli(debug):
    """Backlink Engine.

    Discover achievable backlink opportunities and monitor the backlinks
    a website already has.
    """
    configure_logging(debug)


@cli.command()
def init():
    """Initialize the database."""
    with console.status("[bold green]Initializing database..."):
        init_db()
    console.print("[green]Database initialized successfully!")


@cli.command()
@click.confirmation_option(prompt='This will delete all data. Are you sure?')
def reset():
    """Reset the database (deletes all data)."""
    reset_db()
    console.print("[yellow]Database has been reset.")


# ----------------------------------------------------------------------
# Websites
# ----------------------------------------------------------------------

@cli.group()
def website():
    """Manage tracked websites."""


@website.command("add")
@click.argument("domain")
@click.option("--name", default=None, help="Display name")
@click.option("--keywords", "-k", default="", help="Comma-separated target keywords")
@handle_errors
def website_add(domain, name, keywords):
    """Track a new website."""
    with engine_scope() as engine:
        site = engine.add_website(domain, name=name, keywords=keywords.split(","))
        console.print(f"[green]Added {site.domain} (id={site.id})")


@website.command("list")
@handle_errors
def website_list():
    """List tracked websites."""
    with engine_scope() as engine:
        sites = engine.list_websites()
        if not sites:
            console.print("[yellow]No websites yet. Add one with 'backlink-engine website add'.")
            return

        table = Table(title="Websites", box=box.ROUNDED)
        table.add_column("ID", style="dim", justify="right")
        table.add_column("Domain", style="cyan")
        table.add_column("Name")
        table.add_column("Keywords")
        table.add_column("Authority", justify="center")
        table.add_column("Difficulty", justify="center")
        for site in sites:
            table.add_row(
                str(site.id),
                site.domain,
                site.name or "",
                site.target_keywords or "",
                f"{site.min_authority}-{site.max_authority}",
                f"{site.min_difficulty}-{site.max_difficulty}",
            )
        console.print(table)


@website.command("settings")
@click.argument("website_id", type=int)
@click.option("--preset", type=click.Choice(sorted(BAND_PRESETS)), default=None, help="Named band preset")
@click.option("--min-authority", type=int, default=None)
@click.option("--max-authority", type=int, default=None)
@click.option("--min-difficulty", type=int, default=None)
@click.option("--max-difficulty", type=int, default=None)
@click.option("--exclude-edu-gov/--include-edu-gov", default=None, help="Skip .edu/.gov domains")
@click.option("--exclude-news/--include-news", default=None, help="Skip known news sites")
@click.option("--keywords", "-k", default=None, help="Replace target keywords (comma-separated)")
@handle_errors
def website_settings(website_id, preset, min_authority, max_authority, min_difficulty,
                     max_difficulty, exclude_edu_gov, exclude_news, keywords):
    """Update achievability band and exclusions."""
    with engine_scope() as engine:
        site = engine.update_website_settings(
            website_id,
            preset=preset,
            min_authority=min_authority,
            max_authority=max_authority,
            min_difficulty=min_difficulty,
            max_difficulty=max_difficulty,
            exclude_edu_gov=exclude_edu_gov,
            exclude_news_sites=exclude_news,
            keywords=keywords.split(",") if keywords is not None else None,
        )
        console.print(Panel.fit(
            f"[bold]{site.domain}[/bold]\n"
            f"Authority: {site.min_authority}-{site.max_authority}\n"
            f"Difficulty: {site.min_difficulty}-{site.max_difficulty}\n"
            f"Exclude .edu/.gov: {bool(site.exclude_edu_gov)}\n"
            f"Exclude news: {bool(site.exclude_news_sites)}",
            title="Settings saved",
            border_style="green",
        ))


# ----------------------------------------------------------------------
# Discovery and opportunities
# ----------------------------------------------------------------------

def _opportunity_table(title, opportunities):
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Domain", style="cyan")
    table.add_column("Type")
    table.add_column("DA", justify="right")
    table.add_column("Difficulty", justify="right")
    table.add_column("Spam", justify="right")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Status")
    table.add_column("Source", style="dim")
    for opp in opportunities:
        table.add_row(
            str(opp.id),
            opp.source_domain,
            opp.opportunity_type.value if opp.opportunity_type else "-",
            _fmt(opp.domain_authority),
            _fmt(opp.difficulty_score),
            _fmt(opp.spam_score),
            _fmt(opp.opportunity_score),
            opp.status.value if opp.status else "-",
            opp.data_source.value if opp.data_source else "-",
        )
    return table


@cli.command()
@click.argument("website_id", type=int)
@click.option("--keyword", "-k", "keywords", multiple=True, help="Keyword (repeatable); defaults to the website's")
@click.option("--type", "opportunity_type", type=click.Choice(TYPE_CHOICES), default=None)
@click.option("--min-authority", type=int, default=None)
@click.option("--max-authority", type=int, default=None)
@click.option("--min-difficulty", type=int, default=None)
@click.option("--max-difficulty", type=int, default=None)
@handle_errors
def discover(website_id, keywords, opportunity_type, min_authority, max_authority,
             min_difficulty, max_difficulty):
    """Discover backlink opportunities for a website."""
    with engine_scope() as engine:
        with console.status("[bold green]Discovering opportunities..."):
            rows = engine.discover_opportunities(
                website_id,
                keywords=list(keywords) or None,
                opportunity_type=opportunity_type,
                authority_band=(min_authority, max_authority),
                difficulty_band=(min_difficulty, max_difficulty),
            )
        if not rows:
            console.print("[yellow]No opportunities found.")
            return
        console.print(_opportunity_table(f"Opportunities ({len(rows)})", rows))


@cli.group()
def opportunities():
    """Browse opportunities and move them through the pipeline."""


@opportunities.command("list")
@click.argument("website_id", type=int)
@click.option("--status", type=click.Choice(STATUS_CHOICES), default=None)
@click.option("--type", "opportunity_type", type=click.Choice(TYPE_CHOICES), default=None)
@click.option("--difficulty", type=click.Choice(list(DIFFICULTY_BUCKETS)), default=None)
@click.option("--order", type=click.Choice(["authority", "score"]), default="authority")
@handle_errors
def opportunities_list(website_id, status, opportunity_type, difficulty, order):
    """List stored opportunities."""
    with engine_scope() as engine:
        rows = engine.list_opportunities(
            website_id,
            status=status,
            opportunity_type=opportunity_type,
            difficulty=difficulty,
            order=order,
        )
        if not rows:
            console.print("[yellow]No opportunities match.")
            return
        console.print(_opportunity_table("Opportunities", rows))


@opportunities.command("status")
@click.argument("opportunity_id", type=int)
@click.argument("status", type=click.Choice(STATUS_CHOICES))
@click.option("--notes", default=None)
@handle_errors
def opportunities_status(opportunity_id, status, notes):
    """Move an opportunity to a new status."""
    with engine_scope() as engine:
        opp = engine.update_opportunity_status(opportunity_id, status, notes)
        console.print(f"[green]{opp.source_domain} is now {opp.status.value}")


@opportunities.command("stats")
@click.argument("website_id", type=int)
@handle_errors
def opportunities_stats(website_id):
    """Show opportunity counts per status."""
    with engine_scope() as engine:
        stats = engine.get_campaign_stats(website_id)

    table = Table(title="Opportunity Pipeline", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Total", str(stats["total"]))
    for status in STATUS_CHOICES:
        table.add_row(f"  {status.title()}", str(stats[status]))
    table.add_row("Avg Authority", _fmt(stats["avg_domain_authority"]))
    table.add_row("Avg Relevance", _fmt(stats["avg_relevance"]))
    console.print(table)


# ----------------------------------------------------------------------
# Campaigns and outreach
# ----------------------------------------------------------------------

@cli.group()
def campaign():
    """Group opportunities into campaigns."""


@campaign.command("create")
@click.argument("website_id", type=int)
@click.argument("name")
@click.option("--type", "target_type", type=click.Choice(TYPE_CHOICES), default=None)
@click.option("--target-count", type=int, default=10)
@handle_errors
def campaign_create(website_id, name, target_type, target_count):
    """Create a campaign."""
    with engine_scope() as engine:
        created = engine.create_campaign(website_id, name, target_type, target_count)
        console.print(f"[green]Created campaign '{created.name}' (id={created.id})")


@campaign.command("list")
@click.argument("website_id", type=int)
@handle_errors
def campaign_list(website_id):
    """List campaigns for a website."""
    with engine_scope() as engine:
        campaigns = engine.list_campaigns(website_id)
        table = Table(title="Campaigns", box=box.ROUNDED)
        table.add_column("ID", style="dim", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Target Type")
        table.add_column("Target", justify="right")
        table.add_column("Opportunities", justify="right")
        for item in campaigns:
            table.add_row(
                str(item.id),
                item.name,
                item.target_type.value if item.target_type else "any",
                str(item.target_count),
                str(len(item.opportunities)),
            )
        console.print(table)


@campaign.command("assign")
@click.argument("opportunity_id", type=int)
@click.argument("campaign_id", type=int)
@handle_errors
def campaign_assign(opportunity_id, campaign_id):
    """Attach an opportunity to a campaign."""
    with engine_scope() as engine:
        opp = engine.assign_to_campaign(opportunity_id, campaign_id)
        console.print(f"[green]{opp.source_domain} assigned to campaign {campaign_id}")


@cli.group()
def outreach():
    """Record outreach sent outside this tool."""


@outreach.command("record")
@click.argument("opportunity_id", type=int)
@click.option("--subject", required=True)
@click.option("--body", required=True)
@click.option("--type", "message_type", type=click.Choice([t.value for t in MessageType]), default="initial")
@click.option("--failed", is_flag=True, help="The send failed")
@handle_errors
def outreach_record(opportunity_id, subject, body, message_type, failed):
    """Record an outreach email for an opportunity."""
    with engine_scope() as engine:
        message = engine.record_outreach(
            opportunity_id, subject, body, message_type=message_type, sent=not failed
        )
        console.print(f"[green]Recorded outreach message {message.id} ({message.status.value})")


# ----------------------------------------------------------------------
# Monitoring
# ----------------------------------------------------------------------

@cli.command()
@click.argument("website_id", type=int)
@handle_errors
def check(website_id):
    """Run a backlink check for a website."""
    with engine_scope() as engine:
        with console.status("[bold green]Checking backlinks..."):
            result = engine.run_backlink_check(website_id)

    console.print(Panel.fit(
        f"New: [green]{result.new_backlinks}[/green]\n"
        f"Updated: {result.updated_backlinks}\n"
        f"Lost: [red]{result.lost_backlinks}[/red]\n"
        f"Active: {result.total_active}\n"
        f"Referring domains: {result.referring_domains}",
        title=f"Backlink check {result.check_id}",
        border_style="blue",
    ))


@cli.command()
@click.argument("website_id", type=int)
@handle_errors
def metrics(website_id):
    """Show backlink metrics for a website."""
    with engine_scope() as engine:
        summary = engine.get_metrics(website_id)

    table = Table(title="Backlink Metrics", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Total Backlinks", str(summary["total_backlinks"]))
    table.add_row("New This Month", str(summary["new_this_month"]))
    table.add_row("Lost", str(summary["lost_backlinks"]))
    table.add_row("Referring Domains", str(summary["total_referring_domains"]))
    table.add_row("Dofollow", f"{summary['dofollow_count']} ({summary['dofollow_percentage']}%)")
    table.add_row("Nofollow", str(summary["nofollow_count"]))
    table.add_row("Avg Authority", _fmt(summary["average_domain_authority"]))
    console.print(table)

    if summary["top_referring_domains"]:
        top = Table(title="Top Referring Domains", box=box.SIMPLE)
        top.add_column("Domain", style="cyan")
        top.add_column("Links", justify="right")
        for item in summary["top_referring_domains"]:
            top.add_row(item["domain"], str(item["count"]))
        console.print(top)


@cli.command()
@click.argument("website_id", type=int)
@click.option("--days", type=int, default=30, help="Window in days")
@handle_errors
def history(website_id, days):
    """Show completed check history."""
    with engine_scope() as engine:
        entries = engine.get_history(website_id, days)

    if not entries:
        console.print("[yellow]No completed checks in this window.")
        return
    table = Table(title=f"Backlink History ({days} days)", box=box.ROUNDED)
    table.add_column("Date", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Domains", justify="right")
    table.add_column("New", justify="right", style="green")
    table.add_column("Lost", justify="right", style="red")
    table.add_column("Avg DA", justify="right")
    for entry in entries:
        table.add_row(
            entry["date"][:16] if entry["date"] else "-",
            _fmt(entry["total_backlinks"]),
            _fmt(entry["referring_domains"]),
            _fmt(entry["new_backlinks"]),
            _fmt(entry["lost_backlinks"]),
            _fmt(entry["avg_domain_authority"]),
        )
    console.print(table)


# ----------------------------------------------------------------------
# Acquired backlinks
# ----------------------------------------------------------------------

@cli.group()
def acquired():
    """Track and verify backlinks you have earned."""


@acquired.command("add")
@click.argument("website_id", type=int)
@click.argument("backlink_url")
@click.option("--anchor", "anchor_text", default=None)
@click.option("--opportunity-id", type=int, default=None, help="Opportunity this link secures")
@click.option("--authority", "domain_authority", type=int, default=None)
@click.option("--notes", default=None)
@handle_errors
def acquired_add(website_id, backlink_url, anchor_text, opportunity_id, domain_authority, notes):
    """Record an acquired backlink and verify it."""
    with engine_scope() as engine:
        backlink, result = engine.add_acquired_backlink(
            website_id,
            backlink_url,
            anchor_text=anchor_text,
            opportunity_id=opportunity_id,
            domain_authority=domain_authority,
            notes=notes,
        )
        state = "[green]live" if result.is_live else f"[red]not found ({result.error or 'link missing'})"
        console.print(f"Acquired backlink {backlink.id} from {backlink.referring_domain}: {state}")


@acquired.command("verify")
@click.argument("acquired_id", type=int)
@handle_errors
def acquired_verify(acquired_id):
    """Re-verify one acquired backlink."""
    with engine_scope() as engine:
        result = engine.verify_acquired_backlink(acquired_id)
    if result.is_live:
        console.print(f"[green]Backlink {acquired_id} is live")
    else:
        console.print(f"[red]Backlink {acquired_id} is not live: {result.error or 'link missing'}")


@acquired.command("verify-all")
@click.argument("website_id", type=int)
@handle_errors
def acquired_verify_all(website_id):
    """Re-verify every acquired backlink of a website."""
    with engine_scope() as engine:
        with console.status("[bold green]Verifying backlinks..."):
            results = engine.verify_all_acquired(website_id)

    table = Table(title="Verification", box=box.ROUNDED)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("URL", style="cyan")
    table.add_column("Live")
    table.add_column("HTTP", justify="right")
    for item in results:
        table.add_row(
            str(item["id"]),
            item["url"],
            "[green]yes" if item["is_live"] else "[red]no",
            _fmt(item["status_code"]),
        )
    console.print(table)


@acquired.command("health")
@click.argument("website_id", type=int)
@handle_errors
def acquired_health(website_id):
    """Show health of acquired backlinks."""
    with engine_scope() as engine:
        summary = engine.get_health(website_id)

    console.print(Panel.fit(
        f"Status: [bold]{summary['health_status']}[/bold]\n"
        f"Average health: {summary['average_health']}\n"
        f"Active: {summary['active_backlinks']}/{summary['total_backlinks']} "
        f"({summary['active_percentage']}%)\n"
        f"Broken: {summary['broken_backlinks']}\n"
        f"Avg authority: {summary['average_domain_authority']}",
        title="Backlink Health",
        border_style="blue",
    ))


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
