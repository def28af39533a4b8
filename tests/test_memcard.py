import pytest

from psxperiph.memcard import CARD_SIZE, FRAME_SIZE, CardCommand, CardStage, MemoryCard


def _card(tmp_path):
    return MemoryCard(0, tmp_path / "card.mcd")


def _run(card, inputs):
    card.start_access()
    return [card.exchange_bytes(b) for b in inputs]


def _read_inputs(msb, lsb):
    return [ord("R"), 0, 0, msb, lsb, 0, 0, 0, 0] + [0] * FRAME_SIZE + [0, 0]


def _write_inputs(msb, lsb, payload, checksum):
    return [ord("W"), 0, 0, msb, lsb, *payload, checksum, 0, 0, 0]


def _xor(values):
    result = 0
    for value in values:
        result ^= value
    return result


def test_blank_card_header(tmp_path):
    card = _card(tmp_path)
    assert len(card.data) == CARD_SIZE
    assert card.data[0:2] == b"MC"
    assert card.data[0x7F] == 0x0E
    assert card.flag == 0x08


def test_loads_file_of_exact_size(tmp_path):
    path = tmp_path / "card.mcd"
    contents = bytes(range(256)) * (CARD_SIZE // 256)
    path.write_bytes(contents)
    card = MemoryCard(1, path)
    assert bytes(card.data) == contents


def test_ignores_file_of_wrong_size(tmp_path):
    path = tmp_path / "card.mcd"
    path.write_bytes(b"\x11" * 100)
    card = MemoryCard(1, path)
    assert card.data[0:2] == b"MC"
    assert card.data[2] == 0


def test_read_frame_protocol(tmp_path):
    card = _card(tmp_path)
    responses = _run(card, _read_inputs(0x00, 0x00))
    assert responses[0] == (0x08, False)
    assert responses[1] == (0x5A, False)
    assert responses[2] == (0x5D, False)
    assert responses[5] == (0x5C, False)
    assert responses[6] == (0x5D, False)
    assert responses[7] == (0x00, False)
    assert responses[8] == (0x00, False)
    data = bytes(value for value, _ in responses[9:9 + FRAME_SIZE])
    assert data == bytes(card.data[:FRAME_SIZE])
    assert responses[-1] == (0x47, True)
    assert card.stage is CardStage.COMMAND


def test_write_then_read_round_trip(tmp_path):
    card = _card(tmp_path)
    payload = [(i * 7) & 0xFF for i in range(FRAME_SIZE)]
    checksum = _xor([0x00, 0x05, *payload])
    responses = _run(card, _write_inputs(0x00, 0x05, payload, checksum))
    assert responses[3] == (0x00, False)
    assert [value for value, _ in responses[6:5 + FRAME_SIZE]] == payload[:-1]
    assert responses[5 + FRAME_SIZE] == (payload[-1], False)
    assert responses[-1] == (0x47, True)
    assert card.data[5 * FRAME_SIZE:6 * FRAME_SIZE] == bytes(payload)

    read = _run(card, _read_inputs(0x00, 0x05))
    assert bytes(value for value, _ in read[9:9 + FRAME_SIZE]) == bytes(payload)
    assert read[9 + FRAME_SIZE] == (checksum, False)


def test_write_flushes_to_file(tmp_path):
    card = _card(tmp_path)
    payload = [0xAB] * FRAME_SIZE
    _run(card, _write_inputs(0x00, 0x02, payload, _xor([0x00, 0x02, *payload])))
    stored = (tmp_path / "card.mcd").read_bytes()
    assert stored == bytes(card.data)
    assert MemoryCard(0, tmp_path / "card.mcd").data == card.data


def test_write_with_bad_checksum_reports_error(tmp_path):
    card = _card(tmp_path)
    payload = [0x01] * FRAME_SIZE
    good = _xor([0x00, 0x03, *payload])
    responses = _run(card, _write_inputs(0x00, 0x03, payload, good ^ 0xFF))
    assert responses[-1] == (0x4E, True)


def test_write_clears_flag(tmp_path):
    card = _card(tmp_path)
    payload = [0] * FRAME_SIZE
    _run(card, _write_inputs(0x00, 0x01, payload, 0x01))
    responses = _run(card, [ord("S"), 0])
    assert responses[0] == (0x00, False)
    assert card.flag == 0


def test_invalid_command_aborts(tmp_path):
    card = _card(tmp_path)
    responses = _run(card, [ord("X"), 0])
    assert responses == [(0x08, False), (0xFF, True)]
    assert card.stage is CardStage.COMMAND
    assert card.command is CardCommand.INVALID


def test_read_invalid_address_aborts(tmp_path):
    card = _card(tmp_path)
    responses = _run(card, [ord("R"), 0, 0, 0x04, 0x00, 0, 0, 0, 0])
    assert responses[7] == (0xFF, False)
    assert responses[8] == (0xFF, True)
    assert card.stage is CardStage.COMMAND


def test_write_invalid_address_leaves_data(tmp_path):
    card = _card(tmp_path)
    before = bytes(card.data)
    payload = [0x55] * FRAME_SIZE
    responses = _run(card, _write_inputs(0x04, 0x00, payload, 0))
    assert responses[-1] == (0xFF, True)
    assert bytes(card.data) == before


def test_nonzero_where_zero_expected_raises(tmp_path):
    card = _card(tmp_path)
    card.start_access()
    card.exchange_bytes(ord("R"))
    with pytest.raises(ValueError):
        card.exchange_bytes(1)


def test_start_access_resets_transfer(tmp_path):
    card = _card(tmp_path)
    _run(card, [ord("R"), 0, 0, 0x00])
    assert card.stage is CardStage.SEND_ADDRESS_LSB
    assert card.start_access() == 0
    assert card.stage is CardStage.COMMAND
    assert card.address == 0
    responses = [card.exchange_bytes(b) for b in _read_inputs(0x00, 0x00)]
    assert responses[-1] == (0x47, True)