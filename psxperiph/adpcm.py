"""XA-ADPCM decoding, 44100Hz resampling and BCD helpers for the CD-ROM drive."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

BLOCK_SIZE = 128
SAMPLES_PER_BLOCK = 28

_FILTER_POS = (0, 60, 115, 98)
_FILTER_NEG = (0, 0, -52, -55)

_SAMPLE_MIN = -0x8000
_SAMPLE_MAX = 0x7FFF

ZIGZAG_TABLE: tuple[tuple[int, ...], ...] = (
    (
        0, 0, 0, 0, 0, -0x0002, 0x000A, -0x0022, 0x0041, -0x0054, 0x0034, 0x0009, -0x010A, 0x0400,
        -0x0A78, 0x234C, 0x6794, -0x1780, 0x0BCD, -0x0623, 0x0350, -0x016D, 0x006B, 0x000A,
        -0x0010, 0x0011, -0x0008, 0x0003, -0x0001,
    ),
    (
        0, 0, 0, -0x0002, 0, 0x0003, -0x0013, 0x003C, -0x004B, 0x00A2, -0x00E3, 0x0132, -0x0043,
        -0x0267, 0x0C9D, 0x74BB, -0x11B4, 0x09B8, -0x05BF, 0x0372, -0x01A8, 0x00A6, -0x001B,
        0x0005, 0x0006, -0x0008, 0x0003, -0x0001, 0,
    ),
    (
        0, 0, -0x0001, 0x0003, -0x0002, -0x0005, 0x001F, -0x004A, 0x00B3, -0x0192, 0x02B1, -0x039E,
        0x04F8, -0x05A6, 0x7939, -0x05A6, 0x04F8, -0x039E, 0x02B1, -0x0192, 0x00B3, -0x004A,
        0x001F, -0x0005, -0x0002, 0x0003, -0x0001, 0, 0,
    ),
    (
        0, -0x0001, 0x0003, -0x0008, 0x0006, 0x0005, -0x001B, 0x00A6, -0x01A8, 0x0372, -0x05BF,
        0x09B8, -0x11B4, 0x74BB, 0x0C9D, -0x0267, -0x0043, 0x0132, -0x00E3, 0x00A2, -0x004B,
        0x003C, -0x0013, 0x0003, 0, -0x0002, 0, 0, 0,
    ),
    (
        -0x0001, 0x0003, -0x0008, 0x0011, -0x0010, 0x000A, 0x006B, -0x016D, 0x0350, -0x0623,
        0x0BCD, -0x1780, 0x6794, 0x234C, -0x0A78, 0x0400, -0x010A, 0x0009, 0x0034, -0x0054, 0x0041,
        -0x0022, 0x000A, -0x0001, 0, 0x0001, 0, 0, 0,
    ),
    (
        0x0002, -0x0008, 0x0010, -0x0023, 0x002B, 0x001A, -0x00EB, 0x027B, -0x0548, 0x0AFA,
        -0x16FA, 0x53E0, 0x3C07, -0x1249, 0x080E, -0x0347, 0x015B, -0x0044, -0x0017, 0x0046,
        -0x0023, 0x0011, -0x0005, 0, 0, 0, 0, 0, 0,
    ),
    (
        -0x0005, 0x0011, -0x0023, 0x0046, -0x0017, -0x0044, 0x015B, -0x0347, 0x080E, -0x1249,
        0x3C07, 0x53E0, -0x16FA, 0x0AFA, -0x0548, 0x027B, -0x00EB, 0x001A, 0x002B, -0x0023, 0x0010,
        -0x0008, 0x0002, 0, 0, 0, 0, 0, 0,
    ),
)


def _div_trunc(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def _clamp16(value: int) -> int:
    return max(_SAMPLE_MIN, min(_SAMPLE_MAX, value))


def from_bcd(value: int) -> int:
    """Convert a binary-coded-decimal byte to its integer value."""
    return ((value & 0xF0) >> 4) * 10 + (value & 0x0F)


def to_bcd(value: int) -> int:
    """Convert an integer in 0..99 to a binary-coded-decimal byte."""
    return (((value // 10) << 4) | (value % 10)) & 0xFF


@dataclass
class AdpcmDecoder:
    """Decoder for one XA-ADPCM channel, keeping the two previous samples."""

    old: int = 0
    older: int = 0

    def decode_block(self, block: bytes | Sequence[int], block_n: int, sample_8bit: bool) -> list[int]:
        """Decode the 28 samples of unit ``block_n`` from a 128-byte sound group."""
        if len(block) != BLOCK_SIZE:
            raise ValueError(f"sound group must be {BLOCK_SIZE} bytes long, got {len(block)}")
        if sample_8bit and block_n >= 4:
            raise ValueError(f"invalid block_n {block_n} for 8bit mode")
        if not 0 <= block_n < 8:
            raise ValueError(f"invalid block_n {block_n}")

        shift_filter = block[4 + block_n]
        shift = shift_filter & 0xF
        if shift > 12:
            shift = 9
        shift_factor = (8 if sample_8bit else 12) - shift

        filter_index = (shift_filter >> 4) % 4
        f0 = _FILTER_POS[filter_index]
        f1 = _FILTER_NEG[filter_index]

        out = []
        for i in range(SAMPLES_PER_BLOCK):
            if sample_8bit:
                raw = block[16 + i * 4 + block_n]
                sample = raw - 0x100 if raw & 0x80 else raw
            else:
                raw = block[16 + i * 4 + block_n // 2]
                nibble = (raw >> ((block_n & 1) * 4)) & 0xF
                sample = nibble - 0x10 if nibble & 0x8 else nibble

            sample = sample << shift_factor if shift_factor >= 0 else sample >> -shift_factor
            sample += _div_trunc(self.old * f0 + self.older * f1 + 32, 64)
            sample = _clamp16(sample)

            self.older = self.old
            self.old = sample
            out.append(sample)
        return out


@dataclass
class AdpcmInterpolator:
    """Zigzag interpolator converting 18900Hz or 37800Hz samples to 44100Hz."""

    ring: list[int] = field(default_factory=lambda: [0] * 0x20)
    position: int = 0
    sixstep_counter: int = 6

    def output_samples(self, samples: Iterable[int], sample_rate_18900: bool) -> list[int]:
        """Feed samples in and return the 44100Hz samples produced."""
        step = 2 if sample_rate_18900 else 1
        out: list[int] = []
        for sample in samples:
            if self.sixstep_counter < step:
                raise ValueError("sample stream is not aligned to the six-sample step")
            for _ in range(step):
                self.ring[self.position & 0x1F] = sample
                self.position += 1
            self.sixstep_counter -= step

            if self.sixstep_counter == 0:
                self.sixstep_counter = 6
                out.extend(self._interpolate(table) for table in ZIGZAG_TABLE)
        return out

    def _interpolate(self, table: Sequence[int]) -> int:
        total = sum(
            _div_trunc(self.ring[(self.position - back) & 0x1F] * coefficient, 0x8000)
            for back, coefficient in enumerate(table, start=1)
        )
        return _clamp16(total)