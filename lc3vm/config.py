"""
LC-3 Virtual Machine — Machine Constants / Run Configuration

Architecture constants are fixed by the LC-3 instruction set and are
shared by every module. The MachineConfig dataclass carries the
per-run knobs the CLI (or a test) can change.
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
#  ADDRESS SPACE
# =============================================================================
MEMORY_SIZE = 1 << 16     # 65536 words
WORD_MASK = 0xFFFF
PC_START = 0x3000         # Default user program origin

# Memory-mapped device registers
MR_KBSR = 0xFE00          # Keyboard status (bit 15 = character ready)
MR_KBDR = 0xFE02          # Keyboard data
KBSR_READY = 0x8000


# =============================================================================
#  CONDITION FLAGS (COND register, exactly one bit set)
# =============================================================================
FL_POS = 1 << 0           # P
FL_ZRO = 1 << 1           # Z
FL_NEG = 1 << 2           # N


# =============================================================================
#  TRAP VECTORS
# =============================================================================
TRAP_GETC = 0x20          # Read char, no echo
TRAP_OUT = 0x21           # Write char
TRAP_PUTS = 0x22          # Write word string
TRAP_IN = 0x23            # Prompt, read char, echo
TRAP_PUTSP = 0x24         # Write byte string
TRAP_HALT = 0x25          # Halt

IN_PROMPT = "Enter a character: "
HALT_MESSAGE = "HALT"


# =============================================================================
#  PROCESS EXIT STATUS
# =============================================================================
EXIT_OK = 0
EXIT_LOAD_FAILURE = 1
EXIT_USAGE = 2
EXIT_ILLEGAL_OPCODE = 3
EXIT_BAD_TRAP = 4
EXIT_IO_ERROR = 5
EXIT_TIMEOUT = 6
EXIT_INTERRUPTED = 130


# =============================================================================
#  SERIAL CONSOLE
# =============================================================================
SERIAL_BAUD = 115200
SERIAL_POLL_INTERVAL = 0.05   # seconds between cancel checks on blocking reads


@dataclass
class MachineConfig:
    """Per-run settings for an LC3Emulator instance."""
    pc_start: int = PC_START
    in_prompt: str = IN_PROMPT
    halt_message: str = HALT_MESSAGE
    max_instructions: Optional[int] = None   # None = run until HALT
    trace: bool = False
