# psxperiph

Models of PlayStation peripherals that you can drive from your own emulator
core. Each model is a small Python object that works one byte at a time.

- `psxperiph.controller`: `Controller`, a digital pad that speaks the pad
  protocol, including its config mode (LED, rumble and the identification
  queries). `DigitalControllerKey` names the sixteen buttons.
- `psxperiph.memcard`: `MemoryCard`, a 128 KiB memory card that handles the
  read (`R`), write (`W`) and id (`S`) commands.
- `psxperiph.peripheral`: `ControllerAndMemoryCard`, the serial port that
  connects two slots. Each slot is a `CommunicationHandler` that holds a pad
  and a memory card. The port runs the baud-rate timer, the TX/RX FIFOs and
  the ACK interrupt.
- `psxperiph.adpcm`: `AdpcmDecoder` decodes XA-ADPCM sound groups and
  `AdpcmInterpolator` resamples 18900 Hz or 37800 Hz audio to 44100 Hz.
  `from_bcd` and `to_bcd` convert binary-coded-decimal bytes.
- `psxperiph.cdrom_registers`: the CD-ROM drive status byte (`CdromStatus`,
  `ActionStatus`), the `Setmode` flags (`CdromMode`), the sector coding-info
  flags (`CodingInfo`), and the parameter, response and data FIFOs
  (`CdromFifos`, `FifoStatus`).

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## The serial port

`ControllerAndMemoryCard` has the bus interface of the JOY registers:

- `read_u8(0)` pops a received byte. An empty FIFO reads as `0`.
- `write_u8(0, byte)` queues a byte to send. The TX FIFO holds two bytes.
  Writing a third raises `OverflowError`.
- `read_u16` / `write_u16` at `0x8` (mode), `0xA` (control) and `0xE`
  (baud-rate reload).
- `read_u16(0x4)` and `read_u32(0x4)` read the status word.

Any other address raises `ValueError`.

`clock(interrupt_requester, cycles)` advances the port by a number of CPU
cycles. When a device has more bytes to exchange, the port calls
`interrupt_requester.request_controller_mem_card()`.

The pad in slot 0 is connected and the pad in slot 1 is not. A pad that is
not connected answers `0xFF`.

```python
from psxperiph.controller import DigitalControllerKey
from psxperiph.peripheral import ControllerAndMemoryCard


class Irq:
    def request_controller_mem_card(self):
        pass


irq = Irq()
port = ControllerAndMemoryCard()
port.change_controller_key_state(DigitalControllerKey.START, True)

port.write_u16(0xA, 0x0003)  # TX enable, JOY select, slot 0
received = []
for byte in (0x01, 0x42, 0x00, 0x00, 0x00):
    port.write_u8(0, byte)
    port.clock(irq, 0x1000)
    received.append(port.read_u8(0))

# received == [0x00, 0x41, 0x5A, 0xF7, 0xFF]
```

A pressed button reads as a cleared bit in the switch word.

## Memory cards

`MemoryCard(card_id, path=None)` stores its contents in `path`. If you give
no path, it uses `memcard<card_id>.mcd` in the current directory.

- When the card is created, it loads the file if the file exists and is
  exactly 131072 bytes. Otherwise the card starts blank, with the `MC`
  header.
- A write command that completes calls `flush()`, which writes the whole
  card back to the file.

`ControllerAndMemoryCard(memory_card_paths=None)` accepts two paths, one for
each slot. Any other number of paths raises `ValueError`.

## XA-ADPCM and BCD

```python
from psxperiph.adpcm import AdpcmDecoder, AdpcmInterpolator, from_bcd, to_bcd

decoder = AdpcmDecoder()
samples = decoder.decode_block(bytes(128), 0, False)  # 28 samples
out = AdpcmInterpolator().output_samples(samples, False)

assert from_bcd(0x59) == 59 and to_bcd(59) == 0x59
```

`decode_block` raises `ValueError` in these cases:

- the sound group is not 128 bytes;
- the unit number is outside 0–7;
- the unit number is outside 0–3 in 8-bit mode.

`AdpcmInterpolator.output_samples` emits seven output samples for every
six-sample step.

## CD-ROM registers

`CdromFifos` models the drive's FIFOs and keeps the `FifoStatus` bits up to
date:

- `write_parameter` / `read_parameter` use the parameter FIFO.
  `read_parameter` returns `None` when the FIFO is empty.
- `set_response(*bytes)` replaces the response FIFO contents.
  `read_response()` pops the next byte, and an empty FIFO reads as `0`.
- `load_data`, `read_data` and `clear_data` use the data FIFO.
  `read_data` raises `IndexError` when the FIFO is empty.

`CdromStatus.bits()` returns the status byte. While an error is flagged, the
byte shows the error bits only.

## What this package does not do

This package has no CD-ROM drive device. Nothing here does any of the
following:

- load a disk image;
- execute drive commands;
- read sectors;
- feed decoded audio to a sound unit.

`psxperiph.adpcm` and `psxperiph.cdrom_registers` provide the parts that such
a device is built from. The package also has no command-line program, video
output or audio playback.