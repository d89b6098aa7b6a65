# LC-3 Virtual Machine — Pure-software LC-3 (Little Computer 3) simulator
#
# Loads LC-3 object images into a 64K-word memory and runs them with the
# trap routines (GETC, OUT, PUTS, IN, PUTSP, HALT) serviced natively
# over a pluggable host console (terminal, serial port, or in-memory).
"""
LC-3 Virtual Machine
====================

    ┌──────────┐    ┌──────────┐    ┌─────────────┐    ┌─────────────┐
    │  image   │───>│  Memory  │<──>│ LC3Emulator │───>│ TrapGateway │───> HostIO
    │ (.obj)   │    │ (64K w)  │    │ fetch/exec  │    │ GETC..HALT  │
    └──────────┘    └────┬─────┘    └─────────────┘    └─────────────┘
                         │ xFE00 / xFE02
                    KeyboardDevice ─────────────────────────────────────> HostIO
"""

__version__ = "0.1.0"

from .config import MachineConfig
from .emu import LC3Emulator, StopReason
from .image import ImageLoadError, LoadedImage, read_image
from .cpu.decoder import IllegalOpcode
from .traps import BadTrapVector
from .host import HostIO, HostIOError, HostInterrupted, BufferedHostIO

__all__ = [
    'LC3Emulator', 'StopReason', 'MachineConfig',
    'ImageLoadError', 'LoadedImage', 'read_image',
    'IllegalOpcode', 'BadTrapVector',
    'HostIO', 'HostIOError', 'HostInterrupted', 'BufferedHostIO',
]
