"""notewave CLI entry point."""

import sys
from pathlib import Path
from typing import NoReturn

import click

from notewave import __version__
from notewave.compiler import Program, compile_script
from notewave.lexer import tokenize
from notewave.parser import parse
from notewave.script_models import Script
from notewave.wav_renderer import SUPPORTED_SAMPLE_WIDTHS, WavRenderer

MAX_SAMPLE_RATE = 384000

SOURCE_ARGUMENT = click.argument(
    "source", type=click.Path(exists=True, dir_okay=False, readable=True)
)


def _read_source(source: str) -> str:
    return Path(source).read_text(encoding="utf-8")


def _fail(message: str) -> NoReturn:
    click.echo(f"  ERROR: {message}", err=True)
    sys.exit(1)


def _parse_or_exit(text: str) -> Script:
    try:
        return parse(text)
    except ValueError as exc:
        _fail(f"Could not parse script — {exc}")


def _compile_or_exit(script: Script) -> Program:
    try:
        return compile_script(script)
    except ValueError as exc:
        _fail(f"Could not compile script — {exc}")


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="notewave")
def main() -> None:
    """notewave — text music notation to WAV compiler."""


# ── inspection subcommands ─────────────────────────────────────────────────────

@main.command()
@SOURCE_ARGUMENT
def tokens(source: str) -> None:
    """Print the lexical tokens of SOURCE, one per line."""
    for token in tokenize(_read_source(source)):
        click.echo(str(token))


@main.command()
@SOURCE_ARGUMENT
def script(source: str) -> None:
    """Print the parsed statements of SOURCE."""
    click.echo(str(_parse_or_exit(_read_source(source))))


@main.command()
@SOURCE_ARGUMENT
def program(source: str) -> None:
    """Print the compiled instruction list of SOURCE."""
    click.echo(str(_compile_or_exit(_parse_or_exit(_read_source(source)))))


# ── render subcommand ──────────────────────────────────────────────────────────

@main.command()
@SOURCE_ARGUMENT
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination WAV file path. Defaults to SOURCE with a .wav suffix.",
)
@click.option(
    "--sample-rate",
    type=click.IntRange(1, MAX_SAMPLE_RATE),
    default=WavRenderer.DEFAULT_SAMPLE_RATE,
    show_default=True,
    help="Samples per second.",
)
@click.option(
    "--sample-width",
    type=click.Choice([str(width) for width in SUPPORTED_SAMPLE_WIDTHS]),
    default=str(WavRenderer.DEFAULT_SAMPLE_WIDTH),
    show_default=True,
    help="Bits per sample: 8 (unsigned) or 16 (signed).",
)
def render(source: str, output: str | None, sample_rate: int, sample_width: str) -> None:
    """
    Compile SOURCE and write the resulting audio as a WAV file.

    \b
    Examples:
      notewave render song.nw
      notewave render song.nw -o out.wav --sample-rate 22050 --sample-width 8
    """
    resolved_output = output if output is not None else str(Path(source).with_suffix(".wav"))

    click.echo(f"notewave v{__version__}")
    click.echo(f"  Source : {source}")
    click.echo(f"  Format : {sample_rate} Hz, {sample_width}-bit mono")
    click.echo(f"  Output : {resolved_output}")
    click.echo()

    click.echo("[1/4] Reading source...")
    text = _read_source(source)

    click.echo("[2/4] Parsing script...")
    parsed = _parse_or_exit(text)
    click.echo(f"      {len(parsed)} statement(s)")

    click.echo("[3/4] Compiling program...")
    compiled = _compile_or_exit(parsed)
    click.echo(f"      {len(compiled)} instruction(s)")

    click.echo(f"[4/4] Writing WAV file → '{resolved_output}'...")
    renderer = WavRenderer(sample_rate=sample_rate, sample_width=int(sample_width))
    try:
        Path(resolved_output).write_bytes(renderer.render(compiled))
    except OSError as exc:
        _fail(f"Could not write WAV file — {exc}")

    click.echo()
    click.echo(f"Done!  Open '{resolved_output}' in any audio player.")
