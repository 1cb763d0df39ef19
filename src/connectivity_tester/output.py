"""Colored console helpers shared by the report printers."""

import click

RULE_WIDTH = 80

CHECK = "✓"
CROSS = "✗"


def rule() -> None:
    click.secho("=" * RULE_WIDTH, fg="bright_blue")


def banner(title: str) -> None:
    """Title framed by two horizontal rules."""
    rule()
    click.secho(title, fg="bright_blue", bold=True)
    rule()
    click.echo()


def heading(text: str, fg: str = "bright_yellow", bold: bool = False) -> None:
    click.secho(text, fg=fg, bold=bold)


def success(text: str, bold: bool = False) -> None:
    click.echo(f"  {click.style(CHECK, fg='green', bold=bold)} {click.style(text, bold=bold)}")


def failure(text: str, bold: bool = False) -> None:
    click.echo(f"  {click.style(CROSS, fg='red', bold=bold)} {click.style(text, bold=bold)}")


def error_text(text: str, indent: str = "  ", label: str = "Error: ") -> None:
    click.echo(f"{indent}{label}{click.style(text, fg='red')}")


def dimmed(text: str) -> str:
    return click.style(text, dim=True)
