import pytest

from psxperiph.controller import (
    ALL_RELEASED,
    CONFIG_MODE_ID,
    DIGITAL_PAD_ID,
    Controller,
    ControllerMode,
    DigitalControllerKey,
)


def run(controller, data):
    assert controller.start_access() == 0
    return [controller.exchange_bytes(b) for b in data]


def enter_config(controller):
    results = run(controller, [0x43, 0x00, 0x01, 0x00])
    assert results[-1][1] is True
    assert controller.in_config


def test_disconnected_controller_answers_ff():
    controller = Controller(connected=False)
    assert controller.start_access() == 0xFF
    assert controller.state == 0


def test_read_buttons_all_released():
    controller = Controller()
    results = run(controller, [0x42, 0x00, 0x00, 0x00])
    assert [r for r, _ in results] == [
        DIGITAL_PAD_ID & 0xFF,
        DIGITAL_PAD_ID >> 8,
        ALL_RELEASED & 0xFF,
        ALL_RELEASED >> 8,
    ]
    assert [done for _, done in results] == [False, False, False, True]
    assert controller.state == 0


@pytest.mark.parametrize("key", list(DigitalControllerKey))
def test_pressed_key_clears_its_bit(key):
    controller = Controller()
    controller.change_key_state(key, True)
    results = run(controller, [0x42, 0x00, 0x00, 0x00])
    switches = results[2][0] | (results[3][0] << 8)
    assert switches == ALL_RELEASED & ~(1 << key.value)


def test_press_then_release_round_trip():
    controller = Controller()
    controller.change_key_state(DigitalControllerKey.START, True)
    controller.change_key_state(DigitalControllerKey.X, True)
    controller.change_key_state(DigitalControllerKey.START, False)
    controller.change_key_state(DigitalControllerKey.X, False)
    assert controller.digital_switches == ALL_RELEASED


def test_exchange_without_access_raises():
    with pytest.raises(RuntimeError):
        Controller().exchange_bytes(0x42)


def test_unknown_normal_command_raises():
    controller = Controller()
    controller.start_access()
    with pytest.raises(ValueError):
        controller.exchange_bytes(0x99)


def test_invalid_multitap_byte_raises():
    controller = Controller()
    controller.start_access()
    controller.exchange_bytes(0x42)
    with pytest.raises(ValueError):
        controller.exchange_bytes(0x05)


def test_enter_config_with_zero_stays_normal():
    controller = Controller()
    run(controller, [0x43, 0x00, 0x00, 0x00])
    assert controller.in_config is False


def test_config_mode_id_bytes():
    controller = Controller()
    enter_config(controller)
    results = run(controller, [0x42, 0x00, 0x00, 0x00, 0, 0, 0, 0])
    assert results[0][0] == CONFIG_MODE_ID
    assert results[1][0] == 0x5A
    assert results[2][0] == ALL_RELEASED & 0xFF
    assert results[-1][1] is True
    assert controller.current_mode is ControllerMode.READ_BUTTONS


def test_set_led_and_get_led():
    controller = Controller()
    enter_config(controller)
    run(controller, [0x44, 0x00, 0x01, 0x02, 0, 0, 0, 0])
    assert controller.led is True
    results = run(controller, [0x45, 0x00, 0x00, 0x00, 0, 0, 0, 0])
    assert [r for r, _ in results] == [CONFIG_MODE_ID, 0x5A, 1, 2, 1, 2, 1, 0]


def test_set_led_ignored_without_two():
    controller = Controller()
    enter_config(controller)
    run(controller, [0x44, 0x00, 0x01, 0x03, 0, 0, 0, 0])
    assert controller.led is False


def test_set_rumble_swaps_config():
    controller = Controller()
    enter_config(controller)
    values = [0x00, 0x01, 0x10, 0x20, 0x30, 0x40]
    first = run(controller, [0x4D, 0x00, *values])
    assert [r for r, _ in first[2:]] == [0xFF] * 6
    second = run(controller, [0x4D, 0x00, 0, 0, 0, 0, 0, 0])
    assert [r for r, _ in second[2:]] == values
    assert second[-1][1] is True


def test_set_led_resets_rumble():
    controller = Controller()
    enter_config(controller)
    run(controller, [0x4D, 0x00, 1, 2, 3, 4, 5, 6])
    run(controller, [0x44, 0x00, 0x00, 0x02, 0, 0, 0, 0])
    assert controller.rumble_config == [0xFF] * 6


def test_variable_response_b_identifies_dual_shock():
    controller = Controller()
    enter_config(controller)
    results = run(controller, [0x4C, 0x00, 0x01, 0, 0, 0, 0, 0])
    assert results[5][0] == 7


def test_exit_config_returns_to_normal():
    controller = Controller()
    enter_config(controller)
    results = run(controller, [0x43, 0x00, 0x00, 0x00, 0, 0, 0, 0])
    assert results[-1][1] is True
    assert controller.in_config is False
    after = run(controller, [0x42, 0x00, 0x00, 0x00])
    assert after[0][0] == DIGITAL_PAD_ID & 0xFF


def test_unknown_config_command_raises():
    controller = Controller()
    enter_config(controller)
    controller.start_access()
    with pytest.raises(ValueError):
        controller.exchange_bytes(0x50)


def test_get_led_rejects_nonzero_byte():
    controller = Controller()
    enter_config(controller)
    controller.start_access()
    controller.exchange_bytes(0x45)
    controller.exchange_bytes(0x00)
    with pytest.raises(ValueError):
        controller.exchange_bytes(0x01)