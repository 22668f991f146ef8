"""Compiler: Resolves a parsed Script into a flat Program of instructions."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Final, Union

from notewave.pitch import (
    DEFAULT_OCTAVE,
    MAX_OCTAVE,
    NOTE_OFFSETS,
    frequency_for_offset,
    is_note_name,
)
from notewave.script_models import (
    Command,
    Fraction,
    Label,
    Property,
    Script,
    ScriptToken,
    Text,
    Value,
    Whole,
    value_kind,
)

MAIN_LABEL: Final[str] = "main"
SECONDS_PER_MINUTE = 60.0


# ── Errors ──────────────────────────────────────────────────────────────────

def _at(pos: int | None) -> str:
    return "" if pos is None else f" (statement {pos + 1})"


class CompilingError(ValueError):
    """
    Base class for every semantic failure raised while compiling.

    ``pos`` is the 0-based index of the offending statement in the script,
    or None when the failure is not tied to one statement.
    """

    pos: int | None = None


class MissingGlobalPropertyError(CompilingError):
    def __init__(self, missing: str) -> None:
        self.missing = missing
        super().__init__(f"Missing mandatory global property '{missing}'.")


class ValueTypeError(CompilingError):
    def __init__(self, expected: str, got: str, pos: int | None = None) -> None:
        self.expected = expected
        self.got = got
        self.pos = pos
        super().__init__(f"Expected a {expected} value, got a {got}{_at(pos)}.")


class ValueOutOfRangeError(CompilingError):
    def __init__(
        self,
        got: int,
        minimum: int | None = None,
        maximum: int | None = None,
        pos: int | None = None,
    ) -> None:
        self.got = got
        self.minimum = minimum
        self.maximum = maximum
        self.pos = pos
        low = "" if minimum is None else str(minimum)
        high = "" if maximum is None else str(maximum)
        super().__init__(f"Value {got} is outside the allowed range [{low}..{high}]{_at(pos)}.")


class UnknownCommandError(CompilingError):
    def __init__(self, name: str, pos: int) -> None:
        self.name = name
        self.pos = pos
        super().__init__(f"Unknown command '{name}'{_at(pos)}.")


class WrongArgumentCountError(CompilingError):
    def __init__(self, expected: int, got: int, pos: int) -> None:
        self.expected = expected
        self.got = got
        self.pos = pos
        super().__init__(f"Expected {expected} argument(s), got {got}{_at(pos)}.")


class CommandInGlobalScopeError(CompilingError):
    def __init__(self, name: str, pos: int) -> None:
        self.name = name
        self.pos = pos
        super().__init__(
            f"Command '{name}' used before any label{_at(pos)}; "
            "only properties are allowed in the global scope."
        )


class NoMainError(CompilingError):
    def __init__(self) -> None:
        super().__init__(f"No '@{MAIN_LABEL}' label found.")


class LabelNotFoundError(CompilingError):
    def __init__(self, name: str, pos: int) -> None:
        self.name = name
        self.pos = pos
        super().__init__(f"Label '{name}' not found{_at(pos)}.")


class SelfRecursionError(CompilingError):
    def __init__(self, pos: int) -> None:
        self.pos = pos
        super().__init__(f"Label jumps into itself{_at(pos)}.")


class UnknownNoteError(CompilingError):
    def __init__(self, got: str, pos: int) -> None:
        self.got = got
        self.pos = pos
        super().__init__(f"Unknown note '{got}'{_at(pos)}.")


class EmptyProgramError(CompilingError):
    def __init__(self) -> None:
        super().__init__(f"Label '@{MAIN_LABEL}' produces no instructions.")


# ── Instructions ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Play:
    """Start a note of *frequency* Hz that sounds for *duration* seconds."""

    frequency: float
    duration: float
    pos: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return f"{self.pos + 1}: play {self.frequency:.2f}Hz {self.duration:.5f}s"


@dataclass(frozen=True)
class Advance:
    """Let *duration* seconds of audio elapse."""

    duration: float
    pos: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return f"{self.pos + 1}: advance {self.duration:.5f}s"


Instruction = Union[Play, Advance]


class Program(Sequence):
    """An immutable, non-empty sequence of instructions."""

    def __init__(self, instructions: Sequence[Instruction]) -> None:
        if not instructions:
            raise EmptyProgramError()
        self._instructions: tuple[Instruction, ...] = tuple(instructions)

    def __getitem__(self, index):
        return self._instructions[index]

    def __len__(self) -> int:
        return len(self._instructions)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self._instructions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Program):
            return NotImplemented
        return self._instructions == other._instructions

    def __repr__(self) -> str:
        return f"Program({list(self._instructions)!r})"

    def __str__(self) -> str:
        return "\n".join(str(instruction) for instruction in self._instructions)


# ── Scopes ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Scope:
    """
    A section of the script: the global prelude or one label's body.

    Attributes:
        name:       Label name, or None for the global scope.
        start:      Index of the first statement (the label itself).
        end:        Index one past the last statement.
        properties: Property values set in the section, last write wins.
    """

    name: str | None
    start: int
    end: int
    properties: Mapping[str, Value] = field(default_factory=dict)


def build_scopes(tokens: Sequence[ScriptToken]) -> list[Scope]:
    """
    Split *tokens* into consecutive scopes at every label.

    The first scope is always the unnamed global one, even when empty.

    Raises:
        CommandInGlobalScopeError: If a command precedes the first label.
    """
    scopes: list[Scope] = []
    name: str | None = None
    properties: dict[str, Value] = {}
    start = 0

    for pos, token in enumerate(tokens):
        if isinstance(token, Label):
            scopes.append(Scope(name=name, start=start, end=pos, properties=properties))
            name, properties, start = token.name, {}, pos
        elif isinstance(token, Property):
            properties[token.name] = token.value
        elif name is None:
            raise CommandInGlobalScopeError(token.name, pos)

    scopes.append(Scope(name=name, start=start, end=len(tokens), properties=properties))
    return scopes


# ── Property and argument readers ───────────────────────────────────────────

def read_bpm(value: Value | None, pos: int | None = None) -> float:
    """
    Tempo in beats per minute from a whole number (>= 1) or a fraction (> 0).

    Raises:
        MissingGlobalPropertyError: If *value* is None.
        ValueOutOfRangeError:       If the number is zero.
        ValueTypeError:             If *value* is a string.
    """
    if value is None:
        raise MissingGlobalPropertyError("bpm")
    if isinstance(value, Whole):
        if value.value < 1:
            raise ValueOutOfRangeError(value.value, minimum=1, pos=pos)
        return float(value.value)
    if isinstance(value, Fraction):
        if value.numerator == 0:
            raise ValueOutOfRangeError(value.numerator, minimum=1, pos=pos)
        return float(value)
    raise ValueTypeError("number-like", value_kind(value), pos)


def read_octave(value: Value | None, pos: int | None = None) -> int:
    """Octave number (0..10) from a whole value; defaults to 4 when unset."""
    if value is None:
        return DEFAULT_OCTAVE
    if isinstance(value, Whole):
        if value.value > MAX_OCTAVE:
            raise ValueOutOfRangeError(value.value, minimum=0, maximum=MAX_OCTAVE, pos=pos)
        return value.value
    raise ValueTypeError("whole", value_kind(value), pos)


def read_beats(value: Value, pos: int | None = None) -> float:
    """Note length in beats from a whole or fraction value."""
    if isinstance(value, Whole):
        return float(value.value)
    if isinstance(value, Fraction):
        return float(value)
    raise ValueTypeError("number-like", value_kind(value), pos)


def _read_label(value: Value, pos: int) -> str:
    if isinstance(value, Text):
        return value.value
    raise ValueTypeError("string", value_kind(value), pos)


def _check_argument_count(command: Command, expected: int, pos: int) -> None:
    if len(command.arguments) != expected:
        raise WrongArgumentCountError(expected, len(command.arguments), pos)


# ── Compiler ────────────────────────────────────────────────────────────────

class Compiler:
    """
    Turns a Script into a Program.

    Resolution starts at ``@main`` and walks the commands of each scope in
    order. Note commands emit ``Play`` instructions (one per chord note)
    followed by a single ``Advance``. Control flow is expanded inline:

    - ``goto <label>`` splices in the target's instructions and ends the
      current scope. Jumping from a scope that is already being expanded
      on the current path is a ``SelfRecursionError``.
    - ``repeat <label> <count>`` splices in the target *count* times and
      then carries on. Inside a scope that is already being expanded the
      repeat is skipped and the scope ends there, so self-repeats unroll
      exactly one level.

    Scope-local ``bpm`` and ``octave`` properties override the global ones.
    Note length in seconds is ``bpm / 60 * beats``.
    """

    def __init__(self, script: Script) -> None:
        self.tokens = script.tokens
        self.scopes = build_scopes(self.tokens)

        global_properties = self.scopes[0].properties
        self.global_octave = read_octave(global_properties.get("octave"))
        self.global_bpm = read_bpm(global_properties.get("bpm"))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _find_scope(self, name: str, pos: int | None) -> Scope:
        for scope in self.scopes:
            if scope.name == name:
                return scope
        if pos is None:
            raise NoMainError()
        raise LabelNotFoundError(name, pos)

    def _compile_note(
        self, command: Command, octave: int, bpm: float, pos: int
    ) -> list[Instruction]:
        arguments = command.arguments
        if not arguments:
            raise WrongArgumentCountError(1, 0, pos)

        frequencies = [self._frequency(command.name, octave, pos)]
        for argument in arguments[:-1]:
            if not isinstance(argument, Text):
                raise ValueTypeError("string", value_kind(argument), pos)
            frequencies.append(self._frequency(argument.value, octave, pos))

        duration = bpm / SECONDS_PER_MINUTE * read_beats(arguments[-1], pos)

        instructions: list[Instruction] = [
            Play(frequency=frequency, duration=duration, pos=pos) for frequency in frequencies
        ]
        instructions.append(Advance(duration=duration, pos=pos))
        return instructions

    def _frequency(self, name: str, octave: int, pos: int) -> float:
        if not is_note_name(name):
            raise UnknownNoteError(name, pos)
        return frequency_for_offset(NOTE_OFFSETS[name], octave)

    def _scope_settings(self, scope: Scope) -> tuple[float, int]:
        bpm = scope.properties.get("bpm")
        octave = scope.properties.get("octave")
        return (
            self.global_bpm if bpm is None else read_bpm(bpm, scope.start),
            self.global_octave if octave is None else read_octave(octave, scope.start),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(
        self,
        name: str = MAIN_LABEL,
        pos: int | None = None,
        stack: tuple[str, ...] = (),
    ) -> list[Instruction]:
        """
        Expand the scope called *name* into instructions.

        Args:
            name:  Label to expand.
            pos:   Statement that referenced the label; None for the entry
                   point, in which case a missing label is a NoMainError.
            stack: Names of the scopes being expanded on the current path.
        """
        scope = self._find_scope(name, pos)
        bpm, octave = self._scope_settings(scope)
        # Only named scopes are ever looked up
        scope_name = scope.name or ""
        inner_stack = (*stack, scope_name)

        instructions: list[Instruction] = []
        for index in range(scope.start, scope.end):
            command = self.tokens[index]
            if not isinstance(command, Command):
                continue

            if is_note_name(command.name):
                instructions.extend(self._compile_note(command, octave, bpm, index))

            elif command.name == "goto":
                _check_argument_count(command, 1, index)
                label = _read_label(command.arguments[0], index)
                if scope_name in stack:
                    raise SelfRecursionError(index)
                instructions.extend(self.resolve(label, index, inner_stack))
                break

            elif command.name == "repeat":
                _check_argument_count(command, 2, index)
                label = _read_label(command.arguments[0], index)
                count = command.arguments[1]
                if not isinstance(count, Whole):
                    raise ValueTypeError("whole", value_kind(count), index)
                if scope_name in stack:
                    break
                for _ in range(count.value):
                    instructions.extend(self.resolve(label, index, inner_stack))

            else:
                raise UnknownCommandError(command.name, index)

        return instructions

    def compile(self) -> Program:
        """
        Resolve ``@main`` into a Program.

        Raises:
            CompilingError: On any semantic error, including an empty result.
        """
        return Program(self.resolve())


def compile_script(script: Script) -> Program:
    """Compile a parsed Script into a Program."""
    return Compiler(script).compile()
