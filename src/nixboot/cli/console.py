"""Labeled, colored operator console."""

from __future__ import annotations

import click

_LABELS = {
    "info": ("[INFO]", "blue"),
    "prompt": ("[PROMPT]", "green"),
    "warn": ("[WARN]", "yellow"),
    "success": ("[SUCCESS]", "green"),
    "fail": ("[FAIL]", "red"),
}


def _label(kind: str) -> str:
    text, color = _LABELS[kind]
    return click.style(text, fg=color, bold=True)


class Console:
    """Operator I/O for the bootstrap run.

    All prompts block without a timeout. ``acknowledge`` ignores whatever
    the operator types.
    """

    def info(self, message: str) -> None:
        click.echo(f"{_label('info')} {message}")

    def warn(self, message: str) -> None:
        click.echo(f"{_label('warn')} {message}")

    def success(self, message: str) -> None:
        click.echo(f"{_label('success')} {message}")

    def fail(self, message: str) -> None:
        click.echo(f"{_label('fail')} {message}", err=True)

    def blank(self) -> None:
        click.echo("")

    def link(self, url: str) -> None:
        click.echo(click.style(url, fg="green", underline=True))

    def block(self, lines: list[str]) -> None:
        for line in lines:
            click.echo(click.style(line, fg="yellow"))

    def ask(self, question: str) -> str:
        return click.prompt(
            f"{_label('prompt')} {question}",
            default="",
            show_default=False,
            prompt_suffix="",
        )

    def acknowledge(self, message: str) -> None:
        click.prompt(
            f"{_label('prompt')} {message}",
            default="",
            show_default=False,
            prompt_suffix="",
        )
