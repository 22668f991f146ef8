"""notewave: compile a small text music notation into WAV audio."""

__version__ = "0.1.0"

from notewave.compiler import compile_script  # noqa: E402
from notewave.lexer import tokenize  # noqa: E402
from notewave.parser import parse  # noqa: E402
from notewave.wav_renderer import render  # noqa: E402

__all__ = ["__version__", "compile_script", "parse", "render", "tokenize"]
