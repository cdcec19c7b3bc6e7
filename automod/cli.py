"""automod CLI — validate and try out auto-moderation rules from the shell."""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from automod import __version__
from automod.config import configure_logging, get_settings

console = Console()


def _store_dir(data_dir: Optional[str], area: str) -> Path:
    if data_dir:
        return Path(data_dir) / area
    return get_settings().store_dir(area)


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Override AUTOMOD_LOG_LEVEL")
def main(log_level: Optional[str]):
    """automod — rule-based content moderation.

    Validate rule files, dry-run them against sample content, manage the
    persisted rule set and inspect moderation statistics.
    """
    configure_logging(log_level.upper() if log_level else None)


# ── Validate ─────────────────────────────────────────────────────────


@main.command()
@click.argument("rules_file", type=click.Path(exists=True, dir_okay=False))
def validate(rules_file: str):
    """Check every rule in RULES_FILE and list all problems found."""
    from automod.rules.loader import read_rule_drafts
    from automod.rules.validator import validate_rule

    console.print(f"\n[bold blue]automod[/] — Validating: {rules_file}\n")

    drafts = read_rule_drafts(rules_file)
    failed = 0
    for index, draft in enumerate(drafts, start=1):
        label = draft.get("name") or f"rule {index}"
        result = validate_rule(draft)
        if result.is_valid:
            console.print(f"  [green]v[/] {label}")
            continue
        failed += 1
        console.print(f"  [red]x[/] {label}")
        for error in result.errors:
            console.print(f"      [red]{error}[/]")

    if failed:
        console.print(f"\n[red]{failed} of {len(drafts)} rules invalid[/]")
        sys.exit(1)
    console.print(f"\n[green]All {len(drafts)} rules valid![/]")


# ── Simulate ─────────────────────────────────────────────────────────


@main.command()
@click.argument("rules_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--text", "-t", required=True, help="Content text to moderate")
@click.option("--title", default="", help="Content title")
@click.option(
    "--target-type",
    default="POST",
    type=click.Choice(["POST", "COMMENT", "USER", "FORUM_POST", "FEATURE_REQUEST"]),
)
@click.option("--author", default="anonymous", help="Author user id")
@click.option("--karma", default=0, type=int, help="Author karma")
@click.option("--account-age", default=0, type=int, help="Author account age in days")
@click.option("--link", "links", multiple=True, help="Attached link (repeatable)")
def simulate(
    rules_file: str,
    text: str,
    title: str,
    target_type: str,
    author: str,
    karma: int,
    account_age: int,
    links: tuple,
):
    """Dry-run RULES_FILE against a piece of content. Nothing is executed."""
    from automod.exceptions import ValidationError
    from automod.rules.evaluator import RuleEvaluator
    from automod.rules.loader import load_rules
    from automod.rules.models import ContentAuthor, ContentItem, TargetType, evaluation_order
    from automod.rules.pipeline import recommend

    try:
        rules = load_rules(rules_file)
    except ValidationError as e:
        console.print("[red]Rule file is invalid:[/]")
        for error in e.errors:
            console.print(f"  [red]x[/] {error}")
        sys.exit(1)

    item = ContentItem(
        id="simulated",
        target_type=TargetType(target_type),
        author=ContentAuthor(id=author, karma=karma, account_age_days=account_age),
        text=text,
        title=title,
        links=list(links),
    )
    evaluator = RuleEvaluator()
    matches = evaluator.evaluate(item, rules, skip_cooldown=True)

    table = Table(title=f"Rules ({len(matches)} of {len(rules)} matched)")
    table.add_column("Priority", justify="right", style="dim")
    table.add_column("Rule", style="cyan")
    table.add_column("Matched", justify="center")
    table.add_column("Actions")

    matched_ids = {m.rule_id for m in matches}
    for rule in evaluation_order(rules):
        hit = rule.id in matched_ids
        table.add_row(
            str(rule.priority),
            rule.name,
            "[green]Y[/]" if hit else "[dim]N[/]",
            ", ".join(a.type.value for a in rule.actions) if hit else "",
        )
    console.print(table)

    for match in matches:
        reasons = "\n".join(f"{c.type.value}: {c.reason}" for c in match.conditions)
        console.print(Panel(reasons, title=match.rule.name))

    verdict = recommend(matches, get_settings().reject_priority_threshold)
    console.print(f"\nRecommendation: [bold]{verdict.value}[/]")


# ── Rules ────────────────────────────────────────────────────────────


@main.group()
def rules():
    """Manage the persisted rule set."""


@rules.command(name="import")
@click.argument("rules_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--data-dir", "-d", default=None, help="Data directory (defaults to AUTOMOD_DATA_DIR)")
@click.option("--created-by", default="cli", help="User id recorded as the rules' author")
def import_rules(rules_file: str, data_dir: Optional[str], created_by: str):
    """Validate RULES_FILE and add its rules to the rule store."""
    from automod.exceptions import ValidationError
    from automod.rules.loader import load_rules
    from automod.rules.rule_store import RuleStore

    try:
        loaded = load_rules(rules_file)
    except ValidationError as e:
        console.print("[red]Rule file is invalid:[/]")
        for error in e.errors:
            console.print(f"  [red]x[/] {error}")
        sys.exit(1)

    store = RuleStore(_store_dir(data_dir, "rules"))
    for rule in loaded:
        created = store.create_rule(rule.to_dict(), created_by=created_by)
        console.print(f"  Imported: {created.name} [dim]({created.id})[/]")
    console.print(f"\n[green]{len(loaded)} rules imported.[/]")


@rules.command(name="list")
@click.option("--data-dir", "-d", default=None, help="Data directory (defaults to AUTOMOD_DATA_DIR)")
@click.option("--active-only", is_flag=True, help="Only show active rules")
def list_rules(data_dir: Optional[str], active_only: bool):
    """List stored rules in evaluation order."""
    from automod.rules.rule_store import RuleStore

    store = RuleStore(_store_dir(data_dir, "rules"))
    stored = store.list_rules(is_active=True if active_only else None)

    if not stored:
        console.print("[yellow]No rules stored.[/]")
        return

    table = Table(title=f"Rules ({len(stored)})")
    table.add_column("Priority", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Trigger")
    table.add_column("Active", justify="center")
    table.add_column("ID", style="dim")

    for rule in stored:
        active = "[green]Y[/]" if rule.is_active else "[red]N[/]"
        table.add_row(str(rule.priority), rule.name, rule.trigger_type.value, active, rule.id[:8])

    console.print(table)


# ── Stats ────────────────────────────────────────────────────────────


@main.command()
@click.option("--rule-id", default=None, help="Restrict to one rule")
@click.option("--days", default=7, type=int, help="Window size in days")
@click.option("--data-dir", "-d", default=None, help="Data directory (defaults to AUTOMOD_DATA_DIR)")
def stats(rule_id: Optional[str], days: int, data_dir: Optional[str]):
    """Show trigger counts and success rate from the action log."""
    from automod.audit.recorder import AuditRecorder

    recorder = AuditRecorder(_store_dir(data_dir, "audit"))
    summary = recorder.statistics(rule_id=rule_id, window=timedelta(days=days))

    scope = f"rule {rule_id}" if rule_id else "all rules"
    console.print(f"\n[bold blue]automod[/] — Statistics for {scope}, last {days} days\n")
    console.print(f"  Triggers:     {summary.total}")
    console.print(f"  Successful:   [green]{summary.successful}[/]")
    console.print(f"  Failed:       [red]{summary.failed}[/]")
    console.print(f"  Success rate: {summary.success_rate:.0%}")
    if summary.last_triggered:
        console.print(f"  Last trigger: {summary.last_triggered}")

    if summary.total:
        table = Table(title="Triggers per day")
        table.add_column("Day")
        table.add_column("Count", justify="right")
        for day, count in summary.histogram.items():
            table.add_row(day, str(count))
        console.print(table)


if __name__ == "__main__":
    main()
