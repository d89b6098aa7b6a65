"""
LC-3 Virtual Machine — CPU Register Set + Condition Flags

Register model:
  R0..R7  — 16-bit general purpose (R7 = return address after JSR/TRAP)
  PC      — 16-bit program counter
  COND    — condition flags, exactly one of:
            bit 2: N (Negative — bit 15 of result set)
            bit 1: Z (Zero — result == 0)
            bit 0: P (Positive)

COND is only written by update_flags(), which the emulator calls once
after ADD, AND, NOT, LD, LDI, LDR and LEA.
"""

from ..config import FL_POS, FL_ZRO, FL_NEG, PC_START, WORD_MASK
from . import alu


class Registers:
    """LC-3 register file."""

    __slots__ = ('R', 'PC', 'COND', 'instructions')

    def __init__(self, pc_start: int = PC_START):
        self.R = [0] * 8              # R0..R7
        self.PC: int = pc_start & WORD_MASK
        self.COND: int = FL_ZRO       # Z set at power-on
        self.instructions: int = 0    # Retired instruction counter

    def __getitem__(self, index: int) -> int:
        return self.R[index]

    def __setitem__(self, index: int, value: int):
        self.R[index] = value & WORD_MASK

    def update_flags(self, r: int):
        """Set COND from the current value of register r."""
        self.COND = alu.flags_for(self.R[r])

    @property
    def positive(self) -> bool:
        return self.COND == FL_POS

    @property
    def zero(self) -> bool:
        return self.COND == FL_ZRO

    @property
    def negative(self) -> bool:
        return self.COND == FL_NEG

    # --- Display ---

    def display(self) -> str:
        """One-line register dump for trace logs."""
        cond = ''.join(c if self.COND & bit else '.'
                       for c, bit in (('N', FL_NEG), ('Z', FL_ZRO), ('P', FL_POS)))
        regs = ' '.join(f"R{i}={v:04X}" for i, v in enumerate(self.R))
        return f"PC={self.PC:04X} {regs} COND=[{cond}]"

    def reset(self, pc_start: int = PC_START):
        """Reset to power-on state."""
        self.R = [0] * 8
        self.PC = pc_start & WORD_MASK
        self.COND = FL_ZRO
        self.instructions = 0
