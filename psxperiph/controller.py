"""Digital pad controller serial protocol, including its configuration mode."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

DIGITAL_PAD_ID = 0x5A41
ALL_RELEASED = 0xFFFF
NOT_CONNECTED = 0xFF
CONFIG_MODE_ID = 0xF3
ID_SECOND_BYTE = 0x5A


class DigitalControllerKey(enum.IntEnum):
    """Pad buttons; the value is the bit the button occupies in the switch word."""

    SELECT = 0
    L3 = 1
    R3 = 2
    START = 3
    UP = 4
    RIGHT = 5
    DOWN = 6
    LEFT = 7
    L2 = 8
    R2 = 9
    L1 = 10
    R1 = 11
    TRIANGLE = 12
    CIRCLE = 13
    X = 14
    SQUARE = 15

    @property
    def mask(self) -> int:
        return 1 << self.value


class ControllerMode(enum.Enum):
    """The command selected by the first byte of an exchange."""

    READ_BUTTONS = enum.auto()
    CONFIG = enum.auto()
    SET_LED = enum.auto()
    GET_LED = enum.auto()
    SET_RUMBLE = enum.auto()
    GET_WHATEVER_VALUES = enum.auto()
    GET_VARIABLE_RESPONSE_A = enum.auto()
    GET_VARIABLE_RESPONSE_B = enum.auto()
    # always answers with six zeros
    UNKNOWN_60 = enum.auto()
    # answers with four zeros, a one, then a zero
    UNKNOWN_4010 = enum.auto()


_NORMAL_MODES = {
    0x42: ControllerMode.READ_BUTTONS,
    0x43: ControllerMode.CONFIG,
}

_CONFIG_MODES = {
    **{code: ControllerMode.UNKNOWN_60 for code in (0x40, 0x41, 0x49, 0x4A, 0x4B, 0x4E, 0x4F)},
    0x42: ControllerMode.READ_BUTTONS,
    0x43: ControllerMode.CONFIG,
    0x44: ControllerMode.SET_LED,
    0x45: ControllerMode.GET_LED,
    0x46: ControllerMode.GET_VARIABLE_RESPONSE_A,
    0x47: ControllerMode.GET_WHATEVER_VALUES,
    0x48: ControllerMode.UNKNOWN_4010,
    0x4C: ControllerMode.GET_VARIABLE_RESPONSE_B,
    0x4D: ControllerMode.SET_RUMBLE,
}

_ZERO_ONLY_AT_3 = (
    ControllerMode.GET_WHATEVER_VALUES,
    ControllerMode.UNKNOWN_60,
    ControllerMode.UNKNOWN_4010,
)

_ZERO_ONLY_AT_4 = (
    ControllerMode.GET_VARIABLE_RESPONSE_A,
    ControllerMode.GET_VARIABLE_RESPONSE_B,
    ControllerMode.GET_WHATEVER_VALUES,
    ControllerMode.UNKNOWN_60,
    ControllerMode.UNKNOWN_4010,
)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


@dataclass
class Controller:
    """A digital pad answering the console one byte at a time."""

    connected: bool = True
    state: int = 0
    device_id: int = DIGITAL_PAD_ID
    digital_switches: int = ALL_RELEASED
    current_mode: ControllerMode = ControllerMode.READ_BUTTONS
    in_config: bool = False
    led: bool = False
    rumble_config: list[int] = field(default_factory=lambda: [0xFF] * 6)
    _cache_value: int = 0

    def change_key_state(self, key: DigitalControllerKey, pressed: bool) -> None:
        """Press or release a button; pressed buttons read as cleared bits."""
        if pressed:
            self.digital_switches &= ~key.mask & 0xFFFF
        else:
            self.digital_switches |= key.mask

    def start_access(self) -> int:
        """Begin an exchange; a missing pad answers 0xFF."""
        if not self.connected:
            return NOT_CONNECTED
        self.state = 1
        return 0

    def exchange_bytes(self, inp: int) -> tuple[int, bool]:
        """Send one byte and return the answer and whether the exchange is over."""
        state = self.state
        if state == 0:
            raise RuntimeError("no exchange in progress, call start_access first")
        if self.in_config:
            result = self._exchange_config(inp)
            log.debug("C Config: State %d: %02X -> (%02X, %s)", state, inp, *result)
        else:
            result = self._exchange_normal(inp)
            log.debug("C Normal: State %d: %02X -> (%02X, %s)", state, inp, *result)
        return result

    def _select_mode(self, inp: int, modes: dict[int, ControllerMode]) -> None:
        mode = modes.get(inp)
        if mode is None:
            raise ValueError(f"unsupported controller command {inp:02X}")
        self.current_mode = mode

    def _exchange_normal(self, inp: int) -> tuple[int, bool]:
        mode = self.current_mode
        match self.state:
            case 1:
                self._select_mode(inp, _NORMAL_MODES)
                self.state = 2
                return self.device_id & 0xFF, False
            case 2:
                # a multitap request still gets the plain device id
                _require(inp in (0, 1), f"unexpected multitap byte {inp:02X}")
                self.state = 3
                return (self.device_id >> 8) & 0xFF, False
            case 3:
                if mode is ControllerMode.CONFIG:
                    _require(inp in (0, 1), f"unexpected config byte {inp:02X}")
                    self._cache_value = inp
                self.state = 4
                return self.digital_switches & 0xFF, False
            case 4:
                if mode is ControllerMode.CONFIG:
                    _require(inp == 0, f"unexpected config byte {inp:02X}")
                    self.in_config = self._cache_value == 1
                self.state = 0
                return (self.digital_switches >> 8) & 0xFF, True
        raise RuntimeError(f"invalid controller state {self.state}")

    def _swap_rumble(self, index: int, inp: int) -> int:
        previous = self.rumble_config[index]
        self.rumble_config[index] = inp
        return previous

    def _exchange_config(self, inp: int) -> tuple[int, bool]:
        state = self.state
        mode = self.current_mode
        if state == 1:
            self._select_mode(inp, _CONFIG_MODES)
            self.state = 2
            return CONFIG_MODE_ID, False
        if state == 2:
            _require(inp in (0, 1), f"unexpected multitap byte {inp:02X}")
            self.state = 3
            return ID_SECOND_BYTE, False
        if not 3 <= state <= 8:
            raise RuntimeError(f"invalid controller state {state}")

        if mode is ControllerMode.SET_RUMBLE:
            result = self._swap_rumble(state - 3, inp)
        else:
            result = getattr(self, f"_config_state_{state}")(mode, inp)

        done = state == 8
        self.state = 0 if done else state + 1
        return result, done

    def _config_state_3(self, mode: ControllerMode, inp: int) -> int:
        if mode is ControllerMode.READ_BUTTONS:
            return self.digital_switches & 0xFF
        if mode in (ControllerMode.CONFIG, ControllerMode.SET_LED):
            _require(inp in (0, 1), f"unexpected byte {inp:02X}")
            self._cache_value = inp
            return 0
        if mode is ControllerMode.GET_LED:
            _require(inp == 0, f"unexpected byte {inp:02X}")
            return 1
        if mode is ControllerMode.GET_VARIABLE_RESPONSE_A:
            self._cache_value = inp
            return 0
        if mode is ControllerMode.GET_VARIABLE_RESPONSE_B:
            # identifies dual shock controllers
            self._cache_value = {0: 4, 1: 7}.get(inp, 0)
            return 0
        _require(inp == 0, f"unexpected byte {inp:02X}")
        return 0

    def _config_state_4(self, mode: ControllerMode, inp: int) -> int:
        if mode is ControllerMode.READ_BUTTONS:
            return (self.digital_switches >> 8) & 0xFF
        if mode is ControllerMode.CONFIG:
            _require(inp == 0, f"unexpected byte {inp:02X}")
            return 0
        if mode is ControllerMode.SET_LED:
            if inp == 2:
                self.led = self._cache_value == 1
            self.rumble_config = [0xFF] * 6
            return 0
        if mode is ControllerMode.GET_LED:
            _require(inp == 0, f"unexpected byte {inp:02X}")
            return 2
        if mode in _ZERO_ONLY_AT_4:
            _require(inp == 0, f"unexpected byte {inp:02X}")
        return 0

    def _config_state_5(self, mode: ControllerMode, inp: int) -> int:
        if mode is ControllerMode.GET_LED:
            return int(self.led)
        if mode is ControllerMode.GET_WHATEVER_VALUES:
            return 2
        if mode is ControllerMode.GET_VARIABLE_RESPONSE_A:
            return 1 if self._cache_value in (0, 1) else 0
        return 0

    def _config_state_6(self, mode: ControllerMode, inp: int) -> int:
        if mode is ControllerMode.GET_LED:
            return 2
        if mode is ControllerMode.GET_VARIABLE_RESPONSE_A:
            return {0: 2, 1: 1}.get(self._cache_value, 0)
        if mode is ControllerMode.GET_VARIABLE_RESPONSE_B:
            return self._cache_value
        return 0

    def _config_state_7(self, mode: ControllerMode, inp: int) -> int:
        if mode in (ControllerMode.GET_LED, ControllerMode.GET_WHATEVER_VALUES, ControllerMode.UNKNOWN_4010):
            return 1
        if mode is ControllerMode.GET_VARIABLE_RESPONSE_A:
            return 1 if self._cache_value == 1 else 0
        return 0

    def _config_state_8(self, mode: ControllerMode, inp: int) -> int:
        if mode is ControllerMode.GET_VARIABLE_RESPONSE_A:
            return {0: 0x0A, 1: 0x14}.get(self._cache_value, 0)
        if mode is ControllerMode.CONFIG:
            self.in_config = self._cache_value == 1
        return 0