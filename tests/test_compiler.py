"""Unit tests for the Compiler: scopes, properties, notes and control flow."""

import pytest

from notewave.compiler import (
    Advance,
    CommandInGlobalScopeError,
    Compiler,
    CompilingError,
    EmptyProgramError,
    LabelNotFoundError,
    MissingGlobalPropertyError,
    NoMainError,
    Play,
    Program,
    SelfRecursionError,
    UnknownCommandError,
    UnknownNoteError,
    ValueOutOfRangeError,
    ValueTypeError,
    WrongArgumentCountError,
    build_scopes,
    compile_script,
)
from notewave.parser import parse
from notewave.pitch import note_frequency


def _compile(source: str) -> Program:
    return compile_script(parse(source))


def _plays(program: Program) -> list[Play]:
    return [instruction for instruction in program if isinstance(instruction, Play)]


# ── End to end ──────────────────────────────────────────────────────────────

def test_single_note_program() -> None:
    program = _compile("bpm: 120\n@main\nA 1\n")
    assert list(program) == [Play(frequency=440.0, duration=2.0), Advance(duration=2.0)]
    assert program[0].pos == 2


def test_program_display() -> None:
    program = _compile("bpm: 120\n@main\nA 1\n")
    assert str(program) == "3: play 440.00Hz 2.00000s\n3: advance 2.00000s"


def test_chord_emits_one_play_per_note_and_one_advance() -> None:
    program = _compile("bpm: 60\n@main\nC E G 1\n")
    assert len(program) == 4
    assert [play.frequency for play in _plays(program)] == [
        pytest.approx(note_frequency("C")),
        pytest.approx(note_frequency("E")),
        pytest.approx(note_frequency("G")),
    ]
    assert program[3] == Advance(duration=1.0)


def test_fraction_duration() -> None:
    program = _compile("bpm: 60\n@main\nA 1 / 4\n")
    assert program[-1] == Advance(duration=0.25)


# ── Properties ──────────────────────────────────────────────────────────────

@pytest.mark.parametrize("bpm", [1, 60, 120, 333])
def test_whole_bpm_resolves_to_float(bpm: int) -> None:
    compiler = Compiler(parse(f"bpm: {bpm}\n@main\nA 1"))
    assert compiler.global_bpm == float(bpm)
    assert isinstance(compiler.global_bpm, float)


def test_fraction_bpm() -> None:
    assert Compiler(parse("bpm: 1 / 2\n@main\nA 1")).global_bpm == 0.5


def test_zero_bpm_is_out_of_range() -> None:
    with pytest.raises(ValueOutOfRangeError) as excinfo:
        _compile("bpm: 0\n@main\nA 1")
    assert excinfo.value.got == 0
    assert excinfo.value.minimum == 1


def test_zero_fraction_bpm_is_out_of_range() -> None:
    with pytest.raises(ValueOutOfRangeError):
        _compile("bpm: 0 / 3\n@main\nA 1")


def test_string_bpm_is_type_error() -> None:
    with pytest.raises(ValueTypeError) as excinfo:
        _compile("bpm: fast\n@main\nA 1")
    assert excinfo.value.got == "string"


def test_missing_bpm() -> None:
    with pytest.raises(MissingGlobalPropertyError) as excinfo:
        _compile("@main\nA 1")
    assert excinfo.value.missing == "bpm"


def test_global_octave() -> None:
    program = _compile("bpm: 60\noctave: 5\n@main\nA 1")
    assert program[0].frequency == pytest.approx(880.0)


def test_octave_must_be_whole() -> None:
    with pytest.raises(ValueTypeError) as excinfo:
        _compile("bpm: 60\noctave: 1 / 2\n@main\nA 1")
    assert excinfo.value.expected == "whole"
    assert excinfo.value.got == "fraction"


def test_scope_properties_override_globals() -> None:
    program = _compile("bpm: 60\n@main\noctave: 3\nbpm: 120\nA 1")
    assert program[0] == Play(frequency=pytest.approx(220.0), duration=2.0)


def test_scope_properties_do_not_leak() -> None:
    source = "bpm: 60\n@main\nrepeat high 1\nA 1\n@high\noctave: 5\nA 1"
    frequencies = [play.frequency for play in _plays(_compile(source))]
    assert frequencies == [pytest.approx(880.0), 440.0]


def test_last_property_write_wins() -> None:
    program = _compile("bpm: 60\nbpm: 30\n@main\nA 1")
    assert program[0].duration == 0.5


# ── Scopes ──────────────────────────────────────────────────────────────────

def test_scopes_partition_the_script() -> None:
    scopes = build_scopes(parse("bpm: 1\n@a\nA 1\n@b\nB 1").tokens)
    assert [(scope.name, scope.start, scope.end) for scope in scopes] == [
        (None, 0, 1),
        ("a", 1, 3),
        ("b", 3, 5),
    ]


def test_global_scope_always_exists() -> None:
    scopes = build_scopes(parse("@main\nA 1").tokens)
    assert scopes[0].name is None
    assert (scopes[0].start, scopes[0].end) == (0, 0)


def test_command_in_global_scope() -> None:
    with pytest.raises(CommandInGlobalScopeError) as excinfo:
        _compile("bpm: 60\nA 1\n@main\nA 1")
    assert excinfo.value.pos == 1
    assert excinfo.value.name == "A"


def test_no_main_label() -> None:
    with pytest.raises(NoMainError) as excinfo:
        _compile("bpm: 60\n@intro\nA 1")
    assert not isinstance(excinfo.value, LabelNotFoundError)


def test_empty_main_is_an_error() -> None:
    with pytest.raises(EmptyProgramError):
        _compile("bpm: 60\n@main\n")


def test_program_cannot_be_empty() -> None:
    with pytest.raises(EmptyProgramError):
        Program([])


# ── Note commands ───────────────────────────────────────────────────────────

def test_note_without_duration() -> None:
    with pytest.raises(WrongArgumentCountError) as excinfo:
        _compile("bpm: 60\n@main\nA")
    assert (excinfo.value.expected, excinfo.value.got) == (1, 0)
    assert excinfo.value.pos == 2


def test_chord_note_must_be_string() -> None:
    with pytest.raises(ValueTypeError) as excinfo:
        _compile("bpm: 60\n@main\nA 1 2")
    assert excinfo.value.expected == "string"


def test_duration_must_be_number() -> None:
    with pytest.raises(ValueTypeError):
        _compile("bpm: 60\n@main\nA E")


def test_unknown_chord_note() -> None:
    with pytest.raises(UnknownNoteError) as excinfo:
        _compile("bpm: 60\n@main\nC X 1")
    assert excinfo.value.got == "X"


def test_unknown_command() -> None:
    with pytest.raises(UnknownCommandError) as excinfo:
        _compile("bpm: 60\n@main\nplay A 1")
    assert excinfo.value.name == "play"


# ── goto ────────────────────────────────────────────────────────────────────

def test_goto_is_a_tail_jump() -> None:
    program = _compile("bpm: 60\n@main\nA 1\ngoto end\nB 1\n@end\nC 1")
    assert [play.frequency for play in _plays(program)] == [
        440.0,
        pytest.approx(note_frequency("C")),
    ]


def test_goto_unknown_label() -> None:
    with pytest.raises(LabelNotFoundError) as excinfo:
        _compile("bpm: 60\n@main\ngoto nowhere")
    assert excinfo.value.name == "nowhere"
    assert excinfo.value.pos == 2


def test_goto_argument_count() -> None:
    with pytest.raises(WrongArgumentCountError):
        _compile("bpm: 60\n@main\ngoto a b\n@a\nA 1")


def test_goto_label_must_be_string() -> None:
    with pytest.raises(ValueTypeError):
        _compile("bpm: 60\n@main\ngoto 3")


def test_goto_self_loop_fails() -> None:
    with pytest.raises(SelfRecursionError) as excinfo:
        _compile("bpm: 60\n@main\ngoto loop\n@loop\nA 1\ngoto loop")
    assert excinfo.value.pos == 5


def test_goto_indirect_cycle_fails() -> None:
    with pytest.raises(SelfRecursionError):
        _compile("bpm: 60\n@main\ngoto a\n@a\ngoto b\n@b\ngoto a")


# ── repeat ──────────────────────────────────────────────────────────────────

def test_repeat_expands_and_continues() -> None:
    program = _compile("bpm: 60\n@main\nrepeat x 3\nB 1\n@x\nA 1")
    frequencies = [play.frequency for play in _plays(program)]
    assert frequencies[:3] == [440.0, 440.0, 440.0]
    assert frequencies[3] == pytest.approx(note_frequency("B"))
    assert len(program) == 8


def test_repeat_self_terminates() -> None:
    program = _compile("bpm: 60\n@main\nrepeat x 3\n@x\nA 1\nrepeat x 3")
    assert len(_plays(program)) == 12
    assert len(program) == 24


def test_repeat_count_must_be_whole() -> None:
    with pytest.raises(ValueTypeError) as excinfo:
        _compile("bpm: 60\n@main\nrepeat x 1 / 2\n@x\nA 1")
    assert excinfo.value.expected == "whole"


def test_repeat_argument_count() -> None:
    with pytest.raises(WrongArgumentCountError) as excinfo:
        _compile("bpm: 60\n@main\nrepeat x\n@x\nA 1")
    assert (excinfo.value.expected, excinfo.value.got) == (2, 1)


def test_repeat_zero_times() -> None:
    program = _compile("bpm: 60\n@main\nrepeat x 0\nB 1\n@x\nA 1")
    assert len(program) == 2


def test_compiling_errors_are_value_errors() -> None:
    assert issubclass(CompilingError, ValueError)
    assert issubclass(NoMainError, CompilingError)


def test_octave_above_maximum_is_out_of_range() -> None:
    with pytest.raises(ValueOutOfRangeError) as excinfo:
        _compile("bpm: 60\noctave: 100000\n@main\nA 1\n")
    assert excinfo.value.got == 100000
    assert excinfo.value.maximum == 10


def test_scope_octave_above_maximum_carries_position() -> None:
    with pytest.raises(ValueOutOfRangeError) as excinfo:
        _compile("bpm: 60\n@main\noctave: 11\nA 1\n")
    assert excinfo.value.pos == 1


def test_highest_octave_is_accepted() -> None:
    program = _compile("bpm: 60\noctave: 10\n@main\nA 1\n")
    assert program[0].frequency == pytest.approx(28160.0)
