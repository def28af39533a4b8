"""Status, mode and FIFO registers of the CD-ROM controller."""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass, field

PARAMETER_FIFO_CAPACITY = 16


class ActionStatus(enum.Enum):
    """What the drive is doing; each value is the status bit it reports."""

    NONE = 0x00
    READ = 0x20
    SEEK = 0x40
    PLAY = 0x80


class CdromMode(enum.IntFlag):
    """Flags set by the Setmode command."""

    CDDA = 0b00000001
    AUTO_PAUSE = 0b00000010
    REPORT_INTERRUPT_ENABLE = 0b00000100
    XA_FILTER = 0b00001000
    IGNORE_BIT = 0b00010000
    USE_WHOLE_SECTOR = 0b00100000
    XA_ADPCM = 0b01000000
    DOUBLE_SPEED = 0b10000000


class CodingInfo(enum.IntFlag):
    """Coding info byte of an XA-ADPCM sector subheader."""

    STEREO = 0b00000001
    SAMPLE_RATE = 0b00000100  # set: 18900Hz, clear: 37800Hz
    BITS_PER_SAMPLE = 0b00010000  # set: 8 bits, clear: 4 bits
    EMPHASIS = 0b01000000


class _StatusBits(enum.IntFlag):
    ERROR = 0b00000001
    MOTOR_ON = 0b00000010
    SEEK_ERROR = 0b00000100
    GETID_ERROR = 0b00001000
    SHELL_OPEN = 0b00010000


_ERROR_ONLY_MASK = 0b00011101


@dataclass
class CdromStatus:
    """The drive status byte together with the state behind it."""

    bit_status: int = 0
    action_status: ActionStatus = ActionStatus.NONE
    error: bool = False
    shell_open: bool = False
    second_delivery_attempt: bool = False

    def bits(self) -> int:
        """Return the status byte as reported in responses."""
        if self.error:
            return self.bit_status & _ERROR_ONLY_MASK
        return (self.bit_status | self.action_status.value) & 0xFF

    def reset_error_bits(self) -> None:
        """Clear the error bits, unless the shell is still open."""
        if not self.shell_open:
            self.error = False
            self.bit_status &= ~int(_StatusBits.SHELL_OPEN | _StatusBits.ERROR)

    def start_motor(self) -> None:
        self.bit_status |= _StatusBits.MOTOR_ON

    def stop_motor(self) -> None:
        self.bit_status &= ~int(_StatusBits.MOTOR_ON)

    def reset_action_status(self) -> None:
        self.action_status = ActionStatus.NONE
        self.second_delivery_attempt = False

    def set_shell_open_state(self, open_: bool) -> None:
        """Record the shell state; closing is only reported after the next GetStat."""
        self.shell_open = open_
        if open_:
            self.bit_status |= _StatusBits.SHELL_OPEN
        self.set_error(open_)

    def set_error(self, error: bool) -> None:
        """Raise the error flag; clearing waits for the next GetStat."""
        if error:
            self.error = True
            self.bit_status |= _StatusBits.ERROR


class FifoStatus(enum.IntFlag):
    """FIFO state bits reported in the index/status register."""

    ADPBUSY = 0b00000100
    PARAMETER_FIFO_EMPTY = 0b00001000
    PARAMETER_FIFO_NOT_FULL = 0b00010000
    RESPONSE_FIFO_NOT_EMPTY = 0b00100000
    DATA_FIFO_NOT_EMPTY = 0b01000000
    BUSY = 0b10000000


def _default_fifo_status() -> FifoStatus:
    return FifoStatus.PARAMETER_FIFO_EMPTY | FifoStatus.PARAMETER_FIFO_NOT_FULL


@dataclass
class CdromFifos:
    """Parameter, response and data FIFOs with their status bits."""

    status: FifoStatus = field(default_factory=_default_fifo_status)
    parameters: deque[int] = field(default_factory=deque)
    responses: deque[int] = field(default_factory=deque)
    data: bytearray = field(default_factory=bytearray)
    data_index: int = 0

    def _set(self, flag: FifoStatus) -> None:
        self.status = FifoStatus(int(self.status) | int(flag))

    def _clear(self, flag: FifoStatus) -> None:
        self.status = FifoStatus(int(self.status) & ~int(flag))

    def write_parameter(self, data: int) -> None:
        """Push one parameter byte."""
        if not self.parameters:
            self._clear(FifoStatus.PARAMETER_FIFO_EMPTY)
        elif len(self.parameters) == PARAMETER_FIFO_CAPACITY - 1:
            self._clear(FifoStatus.PARAMETER_FIFO_NOT_FULL)
        self.parameters.append(data & 0xFF)

    def read_parameter(self) -> int | None:
        """Pop the oldest parameter byte, or None when there is none."""
        value = self.parameters.popleft() if self.parameters else None
        if not self.parameters:
            self._set(FifoStatus.PARAMETER_FIFO_EMPTY)
        elif len(self.parameters) == PARAMETER_FIFO_CAPACITY - 1:
            self._set(FifoStatus.PARAMETER_FIFO_NOT_FULL)
        return value

    def reset_parameters(self) -> None:
        self._set(FifoStatus.PARAMETER_FIFO_EMPTY | FifoStatus.PARAMETER_FIFO_NOT_FULL)
        self.parameters.clear()

    def set_response(self, *args: int) -> None:
        """Replace the response FIFO contents with the given bytes."""
        self.responses.clear()
        self.responses.extend(value & 0xFF for value in args)
        self._set(FifoStatus.RESPONSE_FIFO_NOT_EMPTY)

    def read_response(self) -> int:
        """Pop the next response byte; an empty FIFO reads as zero."""
        value = self.responses.popleft() if self.responses else 0
        if not self.responses:
            self._clear(FifoStatus.RESPONSE_FIFO_NOT_EMPTY)
        return value

    def clear_response(self) -> None:
        self.responses.clear()
        self._clear(FifoStatus.RESPONSE_FIFO_NOT_EMPTY)

    def load_data(self, data: bytes | bytearray) -> None:
        """Append sector data to the data FIFO."""
        if data:
            self.data.extend(data)
            self._set(FifoStatus.DATA_FIFO_NOT_EMPTY)

    def clear_data(self) -> None:
        self.data_index = 0
        self.data.clear()
        self._clear(FifoStatus.DATA_FIFO_NOT_EMPTY)

    def read_data(self) -> int:
        """Read the next byte of the data FIFO."""
        if not self.data:
            raise IndexError("data fifo is empty")
        value = self.data[self.data_index]
        self.data_index += 1
        if self.data_index == len(self.data):
            self.clear_data()
        return value