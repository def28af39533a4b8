"""PlayStation pad, memory card and serial port emulation, with CD-ROM register and XA-ADPCM parts."""

__version__ = "0.1.0"
__all__ = ["adpcm", "cdrom_registers", "controller", "memcard", "peripheral"]