"""Membership category CLI commands: validate and rules."""

from datetime import date, datetime
from pathlib import Path

import click
import yaml

from memberforge.membership import MEMBERSHIP_CATEGORY, MEMBERSHIP_CATEGORY_RULES
from memberforge.membership.enums import ParentalLeaveExpected
from memberforge.membership.rules import USED_PARENTAL_LEAVE_OPTIONS
from memberforge.validation import EntityLifecycle, Operation, ValidationIssue


def _load_candidate(path: Path) -> dict:
    """Load a YAML or JSON candidate (JSON is valid YAML)."""
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise click.ClickException(f"Cannot parse {path}: {e}") from None
    if not isinstance(data, dict):
        raise click.ClickException(f"{path} must contain a mapping of field values")
    return data


def _describe(issue: ValidationIssue) -> str:
    where = f"[{issue.field}] " if issue.field else ""
    rule = f" ({issue.rule})" if issue.rule else ""
    return f"{where}{issue.message}{rule}"


@click.command()
@click.argument("candidate_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--operation",
    type=click.Choice(["create", "update"]),
    default="create",
    show_default=True,
    help="Validate as a full create or as a partial update payload.",
)
@click.option(
    "--today",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Evaluate date rules as of this day (default: the current date).",
)
@click.option(
    "--used-leave",
    type=click.Choice([o.name for o in ParentalLeaveExpected]),
    multiple=True,
    help="Parental leave option the account has already used (repeatable).",
)
def validate(
    candidate_file: Path,
    operation: str,
    today: datetime | None,
    used_leave: tuple[str, ...],
):
    """Validate a membership category candidate file without storing it."""
    candidate = _load_candidate(candidate_file)
    definition = MEMBERSHIP_CATEGORY
    lookups = {
        USED_PARENTAL_LEAVE_OPTIONS: frozenset(ParentalLeaveExpected[name] for name in used_leave)
    }

    result = EntityLifecycle().prepare(
        candidate,
        Operation.CREATE if operation == "create" else Operation.UPDATE,
        definition.name,
        definition.fields,
        definition.rules,
        definition.defaults,
        today=today.date() if today else date.today(),
        lookups=lookups,
    )
    validation = result.validation

    for issue in validation.errors:
        click.echo(click.style(f"  ✗ {_describe(issue)}", fg="red"))
    for issue in validation.warnings:
        click.echo(click.style(f"  ! {_describe(issue)}", fg="yellow"))

    if not validation.ok:
        click.echo(
            click.style(
                f"\n{len(validation.errors)} error(s) found"
                + (f", {len(validation.warnings)} warning(s)" if validation.warnings else ""),
                fg="red",
                bold=True,
            )
        )
        raise SystemExit(1)

    if validation.warnings:
        click.echo(click.style(f"{len(validation.warnings)} warning(s) found.", fg="yellow"))

    click.echo(click.style(f"\n{candidate_file.name} is valid.", fg="green", bold=True))
    if result.record.get("category"):
        click.echo(f"  category: {result.record['category']}")


@click.command()
def rules():
    """List the membership category business rules."""
    click.echo(f"{len(MEMBERSHIP_CATEGORY_RULES)} rule(s):\n")
    for rule in MEMBERSHIP_CATEGORY_RULES:
        info = rule.describe()
        ops = ", ".join(info["on"])
        click.echo(f"  {info['name']} [{ops}]")
        click.echo(f"      {info['description']}")
        if info["requires"]:
            click.echo(f"      requires: {', '.join(info['requires'])}")
