"""Serial port shared by the pads and memory cards, with its baud-rate clock."""

from __future__ import annotations

import enum
import logging
from collections import deque
from pathlib import Path
from typing import Protocol, Sequence

from psxperiph.controller import NOT_CONNECTED, Controller, DigitalControllerKey
from psxperiph.memcard import MemoryCard

log = logging.getLogger(__name__)

CONTROLLER_ACCESS = 0x01
MEMORY_CARD_ACCESS = 0x81

DEFAULT_BAUDRATE_RELOAD = 0x0088
DEFAULT_MODE = 0x000D
TX_FIFO_CAPACITY = 2

_CTRL_ACKNOWLEDGE = 0x0010
_CTRL_RESET = 0x0040


class _JoyControl(enum.IntFlag):
    TX_ENABLE = 0x0001
    JOY_SELECT = 0x0002
    RX_FORCE_ENABLE = 0x0004
    RX_INTERRUPT_MODE = 0x0300
    TX_INTERRUPT_ENABLE = 0x0400
    RX_INTERRUPT_ENABLE = 0x0800
    ACK_INTERRUPT_ENABLE = 0x1000
    JOY_SLOT = 0x2000


class _JoyMode(enum.IntFlag):
    BAUDRATE_RELOAD_FACTOR = 0x0003
    CHARACTER_LENGTH = 0x000C
    PARITY_ENABLE = 0x0010
    PARITY_TYPE = 0x0020
    CLK_OUTPUT_POLARITY = 0x0100


class _JoyStat(enum.IntFlag):
    TX_READY_1 = 0x0001
    RX_FIFO_NOT_EMPTY = 0x0002
    TX_READY_2 = 0x0004
    RX_PARITY_ERROR = 0x0008
    ACK_INPUT_LEVEL_LOW = 0x0080
    INTERRUPT_REQUEST = 0x0200


class InterruptRequester(Protocol):
    def request_controller_mem_card(self) -> None: ...


class _Handler(enum.IntEnum):
    IDLE = 0
    CONTROLLER = 1
    MEMORY_CARD = 2


class CommunicationHandler:
    """Routes the bytes of one slot to its pad or its memory card."""

    def __init__(
        self,
        card_id: int,
        controller_connected: bool,
        memcard_path: str | Path | None = None,
    ) -> None:
        self.state = _Handler.IDLE
        self.controller = Controller(connected=controller_connected)
        self.memory_card = MemoryCard(card_id, memcard_path)

    def exchange_bytes(self, inp: int) -> int:
        """Pass one byte to the device being talked to and return its answer."""
        if self.state is _Handler.IDLE:
            if inp == CONTROLLER_ACCESS:
                out = self.controller.start_access()
                if out != NOT_CONNECTED:
                    self.state = _Handler.CONTROLLER
                return out
            if inp == MEMORY_CARD_ACCESS:
                out = self.memory_card.start_access()
                if out != NOT_CONNECTED:
                    self.state = _Handler.MEMORY_CARD
                return out
            log.warning("Invalid first received: 0x%02X", inp)
            return 0

        device = self.controller if self.state is _Handler.CONTROLLER else self.memory_card
        result, done = device.exchange_bytes(inp)
        if done:
            self.state = _Handler.IDLE
        return result

    def change_controller_key_state(self, key: DigitalControllerKey, pressed: bool) -> None:
        self.controller.change_key_state(key, pressed)

    def has_more(self) -> bool:
        """Whether an exchange is still in progress."""
        return self.state is not _Handler.IDLE

    def reset(self) -> None:
        self.state = _Handler.IDLE


class ControllerAndMemoryCard:
    """The JOY serial port with two slots, each holding a pad and a memory card."""

    def __init__(self, memory_card_paths: Sequence[str | Path | None] | None = None) -> None:
        paths = list(memory_card_paths) if memory_card_paths is not None else [None, None]
        if len(paths) != 2:
            raise ValueError("exactly two memory card paths are needed")
        self._ctrl = 0
        self._mode = DEFAULT_MODE
        self._stat = int(_JoyStat.TX_READY_1 | _JoyStat.TX_READY_2)
        self._baudrate_timer_reload = DEFAULT_BAUDRATE_RELOAD
        self._baudrate_timer = DEFAULT_BAUDRATE_RELOAD // 2
        self._clk_position_high = False
        self._transferred_bits = 0
        self._tx_fifo: deque[int] = deque()
        self._rx_fifo: deque[int] = deque()
        self.communication_handlers = (
            CommunicationHandler(0, True, paths[0]),
            CommunicationHandler(1, False, paths[1]),
        )

    # mode and control helpers

    def _reload_factor_shift(self) -> int:
        bits = self._mode & _JoyMode.BAUDRATE_RELOAD_FACTOR
        return 0 if bits == 1 else bits * 2

    def _character_length(self) -> int:
        return 5 + ((self._mode & _JoyMode.CHARACTER_LENGTH) >> 2)

    def _clk_idle_on_high(self) -> bool:
        return not self._mode & _JoyMode.CLK_OUTPUT_POLARITY

    def _ctrl_has(self, flag: _JoyControl) -> bool:
        return bool(self._ctrl & flag)

    # clocking

    def clock(self, interrupt_requester: InterruptRequester, cycles: int) -> None:
        """Advance the serial clock by ``cycles`` CPU cycles."""
        while cycles > 0:
            if cycles < self._baudrate_timer:
                self._baudrate_timer -= cycles
                return
            cycles -= self._baudrate_timer
            self._baudrate_timer = 0

            self._trigger_baudrate_reload()
            self._clk_position_high = not self._clk_position_high

            if (
                self._tx_fifo
                and self._ctrl_has(_JoyControl.TX_ENABLE)
                and self._clk_position_high != self._clk_idle_on_high()
            ):
                self._transferred_bits += 1
                if self._transferred_bits == self._character_length():
                    self._transferred_bits = 0
                    self._transfer_byte(interrupt_requester)

    def _transfer_byte(self, interrupt_requester: InterruptRequester) -> None:
        byte_to_send = self._tx_fifo.popleft()
        byte_mask = 0xFF >> (8 - self._character_length())
        if byte_to_send & ~byte_mask:
            raise ValueError(f"byte {byte_to_send:02X} does not fit the character length")
        log.info("sending byte %02X", byte_to_send)

        slot = 1 if self._ctrl_has(_JoyControl.JOY_SLOT) else 0
        handler = self.communication_handlers[slot]
        received = handler.exchange_bytes(byte_to_send)
        if received & ~byte_mask:
            raise ValueError(f"received byte {received:02X} does not fit the character length")
        log.info("got byte %02X", received)

        if self._ctrl_has(_JoyControl.JOY_SELECT) or self._ctrl_has(_JoyControl.RX_FORCE_ENABLE):
            self._rx_fifo.append(received)
            self._stat |= _JoyStat.RX_FIFO_NOT_EMPTY

        if handler.has_more():
            if self._ctrl_has(_JoyControl.ACK_INTERRUPT_ENABLE):
                self._stat |= _JoyStat.INTERRUPT_REQUEST
            interrupt_requester.request_controller_mem_card()

    def change_controller_key_state(self, key: DigitalControllerKey, pressed: bool) -> None:
        """Press or release a button on the first pad."""
        self.communication_handlers[0].change_controller_key_state(key, pressed)

    # internals

    def _get_stat(self) -> int:
        return self._stat | ((self._baudrate_timer & 0x1FFFFF) << 11)

    def _trigger_baudrate_reload(self) -> None:
        self._baudrate_timer = (self._baudrate_timer_reload << self._reload_factor_shift()) // 2

    def _pop_rx(self) -> int:
        value = self._rx_fifo.popleft() if self._rx_fifo else 0
        if not self._rx_fifo:
            self._stat &= ~_JoyStat.RX_FIFO_NOT_EMPTY
        return value

    def _reset_transfer(self) -> None:
        self._trigger_baudrate_reload()
        self._transferred_bits = 0
        self._tx_fifo.clear()
        self._rx_fifo.clear()
        self._clk_position_high = False
        for handler in self.communication_handlers:
            handler.reset()

    # bus access

    def read_u32(self, addr: int) -> int:
        if addr == 0x4:
            return self._get_stat()
        raise ValueError(f"invalid u32 read at {addr:#x}")

    def read_u16(self, addr: int) -> int:
        if addr == 0x4:
            return self._get_stat() & 0xFFFF
        if addr == 0x8:
            return self._mode
        if addr == 0xA:
            return self._ctrl
        if addr == 0xE:
            return self._baudrate_timer_reload & 0xFFFF
        raise ValueError(f"invalid u16 read at {addr:#x}")

    def write_u16(self, addr: int, data: int) -> None:
        data &= 0xFFFF
        if addr == 0x8:
            self._mode = data
            log.info("joy mode write %04X", data)
        elif addr == 0xA:
            self._ctrl = data
            log.info("joy ctrl write %04X", data)
            if data & _CTRL_ACKNOWLEDGE:
                self._stat &= ~(_JoyStat.INTERRUPT_REQUEST | _JoyStat.RX_PARITY_ERROR)
            if data & _CTRL_RESET or data == 0:
                self._reset_transfer()
        elif addr == 0xE:
            log.info("baudrate reload value %04X", data)
            self._baudrate_timer_reload = data
            self._trigger_baudrate_reload()
        else:
            raise ValueError(f"invalid u16 write at {addr:#x}")

    def read_u8(self, addr: int) -> int:
        """Pop a received byte from the RX FIFO; an empty FIFO reads as zero."""
        if addr != 0:
            raise ValueError(f"invalid u8 read at {addr:#x}")
        return self._pop_rx()

    def write_u8(self, addr: int, data: int) -> None:
        """Queue a byte for transmission."""
        if addr != 0:
            raise ValueError(f"invalid u8 write at {addr:#x}")
        if len(self._tx_fifo) >= TX_FIFO_CAPACITY:
            raise OverflowError("tx fifo is full")
        self._tx_fifo.append(data & 0xFF)
        log.info("Add to TX fifo %02X", data & 0xFF)