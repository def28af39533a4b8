"""Memory card serial protocol with a file-backed 128KiB store."""

from __future__ import annotations

import enum
import logging
from pathlib import Path

log = logging.getLogger(__name__)

FRAME_SIZE = 128
FRAME_COUNT = 0x400
CARD_SIZE = FRAME_SIZE * FRAME_COUNT

INITIAL_FLAG = 0x08
ABORT = 0xFF
STATUS_GOOD = 0x47
STATUS_BAD_CHECKSUM = 0x4E
STATUS_BAD_SECTOR = 0xFF


class CardStage(enum.Enum):
    """Position within a memory card exchange."""

    COMMAND = enum.auto()
    MEMORY_CARD_ID_1 = enum.auto()
    MEMORY_CARD_ID_2 = enum.auto()
    SEND_ADDRESS_MSB = enum.auto()
    SEND_ADDRESS_LSB = enum.auto()
    CONFIRM_ADDRESS_MSB = enum.auto()
    CONFIRM_ADDRESS_LSB = enum.auto()
    DATA = enum.auto()
    CHECKSUM = enum.auto()
    COMMAND_ACK_1 = enum.auto()
    COMMAND_ACK_2 = enum.auto()
    END = enum.auto()
    CMD_ID_END_1 = enum.auto()
    CMD_ID_END_2 = enum.auto()
    CMD_ID_END_3 = enum.auto()
    CMD_ID_END_4 = enum.auto()


class CardCommand(enum.Enum):
    """The command selected by the first byte of an exchange."""

    READ = "R"
    WRITE = "W"
    ID = "S"
    INVALID = "?"


_COMMANDS = {ord(cmd.value): cmd for cmd in (CardCommand.READ, CardCommand.WRITE, CardCommand.ID)}


def _expect_zero(inp: int, stage: CardStage) -> None:
    if inp != 0:
        raise ValueError(f"memory card expected 0 at stage {stage.name}, got {inp:02X}")


def _blank_card() -> bytearray:
    data = bytearray(CARD_SIZE)
    data[0] = ord("M")
    data[1] = ord("C")
    data[0x7F] = 0x0E
    return data


class MemoryCard:
    """A memory card answering the console one byte at a time."""

    def __init__(self, card_id: int, path: str | Path | None = None) -> None:
        self.card_id = card_id
        self.path = Path(path) if path is not None else Path(f"memcard{card_id}.mcd")
        self.data = _blank_card()
        try:
            stored = self.path.read_bytes()
        except OSError:
            stored = b""
        if len(stored) == CARD_SIZE:
            log.info("Loaded memory card %d", card_id)
            self.data[:] = stored

        self.stage = CardStage.COMMAND
        self.command = CardCommand.READ
        self.flag = INITIAL_FLAG
        self.address = 0
        self.read_pointer = 0
        self.checksum = 0
        self.status = 0
        self.previous = 0

    def start_access(self) -> int:
        """Begin an exchange with the card."""
        log.debug("Memory card %d started access", self.card_id)
        self.stage = CardStage.COMMAND
        self.read_pointer = 0
        self.address = 0
        self.checksum = 0
        self.status = 0
        self.previous = 0
        return 0

    def exchange_bytes(self, inp: int) -> tuple[int, bool]:
        """Send one byte and return the answer and whether the exchange is over."""
        stage = self.stage
        match stage:
            case CardStage.COMMAND:
                self.command = _COMMANDS.get(inp, CardCommand.INVALID)
                self.stage = CardStage.MEMORY_CARD_ID_1
                result = (self.flag, False)
            case CardStage.MEMORY_CARD_ID_1:
                _expect_zero(inp, stage)
                if self.command is CardCommand.INVALID:
                    self.stage = CardStage.COMMAND
                    result = (ABORT, True)
                else:
                    self.stage = CardStage.MEMORY_CARD_ID_2
                    result = (0x5A, False)
            case CardStage.MEMORY_CARD_ID_2:
                _expect_zero(inp, stage)
                if self.command is CardCommand.ID:
                    self.stage = CardStage.COMMAND_ACK_1
                else:
                    self.stage = CardStage.SEND_ADDRESS_MSB
                result = (0x5D, False)
            case CardStage.SEND_ADDRESS_MSB:
                self.checksum = inp
                self.previous = inp
                self.address = inp << 8
                self.stage = CardStage.SEND_ADDRESS_LSB
                result = (self.previous, False)
            case CardStage.SEND_ADDRESS_LSB:
                result = self._send_address_lsb(inp)
            case CardStage.CONFIRM_ADDRESS_MSB:
                _expect_zero(inp, stage)
                self.stage = CardStage.CONFIRM_ADDRESS_LSB
                if self.status == STATUS_BAD_SECTOR:
                    result = (ABORT, False)
                else:
                    result = ((self.address >> 8) & 0xFF, False)
            case CardStage.CONFIRM_ADDRESS_LSB:
                _expect_zero(inp, stage)
                if self.status == STATUS_BAD_SECTOR:
                    self.stage = CardStage.COMMAND
                    result = (ABORT, True)
                else:
                    self.stage = CardStage.DATA
                    result = (self.address & 0xFF, False)
            case CardStage.DATA:
                result = (self._transfer_data(inp), False)
            case CardStage.CHECKSUM:
                result = self._checksum(inp)
            case CardStage.COMMAND_ACK_1:
                _expect_zero(inp, stage)
                self.stage = CardStage.COMMAND_ACK_2
                result = (0x5C, False)
            case CardStage.COMMAND_ACK_2:
                _expect_zero(inp, stage)
                self.stage = {
                    CardCommand.READ: CardStage.CONFIRM_ADDRESS_MSB,
                    CardCommand.WRITE: CardStage.END,
                    CardCommand.ID: CardStage.CMD_ID_END_1,
                }[self.command]
                result = (0x5D, False)
            case CardStage.END:
                _expect_zero(inp, stage)
                if self.command is CardCommand.WRITE:
                    self.flush()
                self.stage = CardStage.COMMAND
                result = ((0x4 | self.status) & 0xFF, True)
            case CardStage.CMD_ID_END_1:
                _expect_zero(inp, stage)
                self.stage = CardStage.CMD_ID_END_2
                result = (0x04, False)
            case CardStage.CMD_ID_END_2:
                _expect_zero(inp, stage)
                self.stage = CardStage.CMD_ID_END_3
                result = (0x00, False)
            case CardStage.CMD_ID_END_3:
                _expect_zero(inp, stage)
                self.stage = CardStage.CMD_ID_END_4
                result = (0x00, False)
            case CardStage.CMD_ID_END_4:
                _expect_zero(inp, stage)
                self.stage = CardStage.COMMAND
                result = (0x80, True)
            case _:
                raise RuntimeError(f"invalid memory card stage {stage}")

        log.debug("M%d: Stage %s: %02X -> (%02X, %s)", self.card_id, self.stage.name, inp, *result)
        return result

    def _send_address_lsb(self, inp: int) -> tuple[int, bool]:
        if self.command is CardCommand.READ:
            self.stage = CardStage.COMMAND_ACK_1
        elif self.command is CardCommand.WRITE:
            self.stage = CardStage.DATA
        else:
            raise RuntimeError("Id command cannot send an address")
        self.checksum ^= inp
        self.address |= inp
        if self.address & ~0x3FF:
            self.status = STATUS_BAD_SECTOR
        return self.previous, False

    def _offset(self) -> int:
        return self.address * FRAME_SIZE + self.read_pointer

    def _transfer_data(self, inp: int) -> int:
        if self.command is CardCommand.READ:
            _expect_zero(inp, CardStage.DATA)
            value = self.data[self._offset()]
            self.checksum ^= value
        elif self.command is CardCommand.WRITE:
            if self.read_pointer == 0:
                self.flag = 0x00
            if self.status != STATUS_BAD_SECTOR:
                self.checksum ^= inp
                self.data[self._offset()] = inp
            value, self.previous = self.previous, inp
        else:
            raise RuntimeError("Id command cannot transfer data")

        self.read_pointer += 1
        if self.read_pointer == FRAME_SIZE:
            if self.status != STATUS_BAD_SECTOR:
                start = self.address * FRAME_SIZE
                log.debug(
                    "[%s]: address: 0x%04X\n %s",
                    self.command.value,
                    self.address,
                    self.data[start:start + FRAME_SIZE].hex(" ").upper(),
                )
            self.stage = CardStage.CHECKSUM
        return value

    def _checksum(self, inp: int) -> tuple[int, bool]:
        if self.command is CardCommand.READ:
            _expect_zero(inp, CardStage.CHECKSUM)
            self.stage = CardStage.END
            self.status = STATUS_GOOD
            return self.checksum, False
        if self.command is CardCommand.WRITE:
            if self.status == 0:
                self.status = STATUS_GOOD if self.checksum == inp else STATUS_BAD_CHECKSUM
            else:
                self.status = STATUS_BAD_SECTOR
            self.stage = CardStage.COMMAND_ACK_1
            return self.previous, False
        raise RuntimeError("Id command cannot exchange a checksum")

    def flush(self) -> None:
        """Save the card contents to its file."""
        self.path.write_bytes(bytes(self.data))