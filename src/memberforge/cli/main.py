"""memberforge CLI entry point."""

import click


@click.group()
def cli():
    """memberforge: membership category validation and service CLI."""
    pass


# Register subcommands
from memberforge.cli.category_cmd import rules, validate  # noqa: E402
from memberforge.cli.serve_cmd import serve  # noqa: E402

cli.add_command(validate)
cli.add_command(rules)
cli.add_command(serve)
