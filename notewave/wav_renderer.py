"""WavRenderer: Mixes a compiled Program into mono PCM samples in a WAV container."""

from __future__ import annotations

import io
import math
import wave
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from notewave.compiler import Advance, Instruction, Play

SUPPORTED_SAMPLE_WIDTHS = (8, 16)


def round_half_away(values: np.ndarray) -> np.ndarray:
    """Round to the nearest integer, halves away from zero (unlike ``np.round``)."""
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


@dataclass
class Sound:
    """
    A note that is currently audible.

    Attributes:
        frequency:  Pitch in Hz.
        started_at: Onset time in seconds.
        ends_at:    Time in seconds after which the note is dropped.
        volume:     Linear amplitude multiplier.
    """

    frequency: float
    started_at: float
    ends_at: float
    volume: float = 1.0

    def sine_values_at(self, seconds: np.ndarray) -> np.ndarray:
        """Sine amplitude at each time in *seconds* (not phase-aligned to onset)."""
        return np.sin(2.0 * np.pi * self.frequency * seconds) * self.volume


class WavRenderer:
    """
    Renders a Program to a single-channel uncompressed WAV byte string.

    Mixing
    ------
    ``Play`` adds a Sound to the pool at the current time without advancing
    it. ``Advance`` steps time forward one sample at a time; every step drops
    the sounds whose ``ends_at`` lies before the new time and averages the
    sine values of the rest. A step with no audible sound is silence.

    Quantization
    ------------
    Values round half away from zero.

    8-bit:  ``round(v * 127) + 127`` as an unsigned byte.
    16-bit: ``round(v * 32767)`` as a little-endian signed integer.
    """

    DEFAULT_SAMPLE_RATE = 48000   # Hz
    DEFAULT_SAMPLE_WIDTH = 16     # bits per sample

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        sample_width: int = DEFAULT_SAMPLE_WIDTH,
    ) -> None:
        """
        Args:
            sample_rate:  Samples per second.
            sample_width: Bits per sample, 8 or 16.

        Raises:
            ValueError: If either parameter is unsupported.
        """
        if sample_rate < 1:
            raise ValueError(f"Sample rate must be at least 1 Hz, got {sample_rate}.")
        if sample_width not in SUPPORTED_SAMPLE_WIDTHS:
            supported = ", ".join(str(width) for width in SUPPORTED_SAMPLE_WIDTHS)
            raise ValueError(f"Unsupported sample width {sample_width}. Use one of: {supported}.")
        self.sample_rate = sample_rate
        self.sample_width = sample_width

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _mix(self, sounds: list[Sound], seconds: np.ndarray) -> np.ndarray:
        """Average the sounds audible at each time in *seconds*; silence is 0."""
        total = np.zeros_like(seconds)
        audible = np.zeros(seconds.shape, dtype=np.int64)

        for sound in sounds:
            active = seconds <= sound.ends_at
            total += np.where(active, sound.sine_values_at(seconds), 0.0)
            audible += active

        return np.divide(total, audible, out=np.zeros_like(total), where=audible > 0)

    def _quantize(self, values: np.ndarray) -> bytes:
        if self.sample_width == 8:
            return (round_half_away(values * 127) + 127).astype(np.uint8).tobytes()
        # wave expects native byte order and swaps to little-endian itself
        return round_half_away(values * 32767).astype(np.int16).tobytes()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def render_samples(self, instructions: Iterable[Instruction]) -> bytes:
        """Return the raw PCM sample bytes for *instructions*, without header."""
        chunks: list[bytes] = []
        sounds: list[Sound] = []
        samples_stepped = 0

        for instruction in instructions:
            if isinstance(instruction, Play):
                now = samples_stepped / self.sample_rate
                sounds.append(
                    Sound(
                        frequency=instruction.frequency,
                        started_at=now,
                        ends_at=now + instruction.duration,
                    )
                )
            elif isinstance(instruction, Advance):
                # Half-way sample counts round up
                count = math.floor(instruction.duration * self.sample_rate + 0.5)
                if count <= 0:
                    continue

                steps = np.arange(samples_stepped + 1, samples_stepped + count + 1)
                seconds = steps / self.sample_rate
                chunks.append(self._quantize(self._mix(sounds, seconds)))

                samples_stepped += count
                now = samples_stepped / self.sample_rate
                sounds = [sound for sound in sounds if sound.ends_at >= now]

        return b"".join(chunks)

    def render(self, instructions: Iterable[Instruction]) -> bytes:
        """
        Render *instructions* to a complete WAV file (44-byte header + samples).
        """
        samples = self.render_samples(instructions)

        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav:
            wav.setnchannels(1)
            wav.setsampwidth(self.sample_width // 8)
            wav.setframerate(self.sample_rate)
            wav.writeframes(samples)
        return buffer.getvalue()


def render(
    instructions: Iterable[Instruction],
    sample_rate: int = WavRenderer.DEFAULT_SAMPLE_RATE,
    sample_width: int = WavRenderer.DEFAULT_SAMPLE_WIDTH,
) -> bytes:
    """Render a Program to WAV file bytes."""
    return WavRenderer(sample_rate=sample_rate, sample_width=sample_width).render(instructions)
