"""Pitch: Note-name table and equal-temperament frequency math."""

from typing import Final

# ── Tuning constants ────────────────────────────────────────────────────────
SEMITONES_PER_OCTAVE = 12
A4_FREQUENCY = 440.0
A4_ABSOLUTE_NOTE = 57  # A (offset 9) in octave 4: 4 * 12 + 9
DEFAULT_OCTAVE = 4
MAX_OCTAVE = 10  # A10 is 28160 Hz, already past hearing

#: Semitone offset of every accepted note name within its octave.
#: Sharps append ``as``, flats append ``es``; ``Ces`` and ``Bas`` cross
#: into the neighbouring octaves.
NOTE_OFFSETS: Final[dict[str, int]] = {
    "Ces": -1,
    "C": 0,
    "Cas": 1, "Des": 1,
    "D": 2,
    "Das": 3, "Ees": 3, "Es": 3,
    "E": 4, "Fes": 4,
    "F": 5, "Eas": 5,
    "Fas": 6, "Ges": 6,
    "G": 7,
    "Gas": 8, "Aes": 8,
    "A": 9,
    "Aas": 10, "As": 10, "Bes": 10,
    "B": 11,
    "Bas": 12,
}


def is_note_name(name: str) -> bool:
    """Return True if *name* is one of the accepted note names."""
    return name in NOTE_OFFSETS


def absolute_note(offset: int, octave: int) -> int:
    """
    Convert an in-octave semitone offset to an absolute pitch index.

    Octave 0 starts at index 0, so C4 = 48 and A4 = 57.
    """
    return octave * SEMITONES_PER_OCTAVE + offset


def frequency_for_offset(offset: int, octave: int) -> float:
    """
    Equal-temperament frequency in Hz for *offset* semitones into *octave*.

    A4 is returned as exactly 440.0; every other pitch is
    ``440 * 2 ** ((absolute - 57) / 12)``.
    """
    absolute = absolute_note(offset, octave)
    if absolute == A4_ABSOLUTE_NOTE:
        return A4_FREQUENCY
    return A4_FREQUENCY * 2.0 ** ((absolute - A4_ABSOLUTE_NOTE) / SEMITONES_PER_OCTAVE)


def note_frequency(name: str, octave: int = DEFAULT_OCTAVE) -> float:
    """
    Frequency in Hz of the note called *name* in *octave*.

    Raises:
        KeyError: If *name* is not a known note name.
    """
    return frequency_for_offset(NOTE_OFFSETS[name], octave)
