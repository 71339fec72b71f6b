"""Operator-facing output for commands."""

import click


class UI:
    """Writes plain lines to stdout (say) and stderr (error)."""

    def say(self, message: str) -> None:
        click.echo(message)

    def error(self, message: str) -> None:
        click.echo(message, err=True)
