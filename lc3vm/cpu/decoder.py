"""
LC-3 Virtual Machine — Opcode Decoder / Dispatch Table

Every LC-3 instruction is one 16-bit word. Bits 15-12 select the
opcode; the remaining fields depend on the opcode:

  ADD/AND  DR[11:9] SR1[8:6] imm?[5] imm5[4:0] | SR2[2:0]
  NOT      DR[11:9] SR[8:6]  111111
  BR       n[11] z[10] p[9]  PCoffset9[8:0]
  JMP      000 BaseR[8:6] 000000
  JSR      1 PCoffset11[10:0]
  JSRR     0 00 BaseR[8:6] 000000
  LD/LDI/LEA/ST/STI  DR|SR[11:9] PCoffset9[8:0]
  LDR/STR  DR|SR[11:9] BaseR[8:6] offset6[5:0]
  TRAP     0000 trapvect8[7:0]

All sixteen opcode values are listed in OPCODES. RTI and RES are not
part of the user program model supported here: they stay in the table
as explicit entries with defined=False so the dispatcher can reject
them by name instead of falling through.
"""

from enum import IntEnum
from typing import NamedTuple

from .alu import sign_extend


class Op(IntEnum):
    BR = 0x0
    ADD = 0x1
    LD = 0x2
    ST = 0x3
    JSR = 0x4
    AND = 0x5
    LDR = 0x6
    STR = 0x7
    RTI = 0x8
    NOT = 0x9
    LDI = 0xA
    STI = 0xB
    JMP = 0xC
    RES = 0xD
    LEA = 0xE
    TRAP = 0xF


class OpInfo(NamedTuple):
    mnemonic: str
    sets_flags: bool
    defined: bool


# ──────────────────────────────────────────────
# Opcode table: opcode -> (mnemonic, sets_flags, defined)
# ──────────────────────────────────────────────

OPCODES = {
    Op.BR:   OpInfo('BR',   False, True),
    Op.ADD:  OpInfo('ADD',  True,  True),
    Op.LD:   OpInfo('LD',   True,  True),
    Op.ST:   OpInfo('ST',   False, True),
    Op.JSR:  OpInfo('JSR',  False, True),
    Op.AND:  OpInfo('AND',  True,  True),
    Op.LDR:  OpInfo('LDR',  True,  True),
    Op.STR:  OpInfo('STR',  False, True),
    Op.RTI:  OpInfo('RTI',  False, False),
    Op.NOT:  OpInfo('NOT',  True,  True),
    Op.LDI:  OpInfo('LDI',  True,  True),
    Op.STI:  OpInfo('STI',  False, True),
    Op.JMP:  OpInfo('JMP',  False, True),
    Op.RES:  OpInfo('RES',  False, False),
    Op.LEA:  OpInfo('LEA',  True,  True),
    Op.TRAP: OpInfo('TRAP', False, True),
}


class IllegalOpcode(Exception):
    """Raised when an undefined opcode (RTI, RES) is dispatched."""
    def __init__(self, opcode: int, address: int):
        self.opcode = opcode
        self.address = address
        super().__init__(
            f"Illegal opcode {opcode:#x} ({OPCODES[opcode].mnemonic}) at x{address:04X}")


def decode(instr: int) -> Op:
    """Return the opcode of an instruction word."""
    return Op((instr >> 12) & 0xF)


# ──────────────────────────────────────────────
# Operand field extraction
# ──────────────────────────────────────────────

def dr(instr: int) -> int:
    """DR / SR field, bits 11-9."""
    return (instr >> 9) & 0x7


def sr1(instr: int) -> int:
    """SR1 / BaseR field, bits 8-6."""
    return (instr >> 6) & 0x7


def sr2(instr: int) -> int:
    return instr & 0x7


def imm_flag(instr: int) -> bool:
    return bool((instr >> 5) & 0x1)


def imm5(instr: int) -> int:
    return sign_extend(instr & 0x1F, 5)


def offset6(instr: int) -> int:
    return sign_extend(instr & 0x3F, 6)


def pc_offset9(instr: int) -> int:
    return sign_extend(instr & 0x1FF, 9)


def pc_offset11(instr: int) -> int:
    return sign_extend(instr & 0x7FF, 11)


def long_flag(instr: int) -> bool:
    """JSR (PC-relative) vs JSRR (register), bit 11."""
    return bool((instr >> 11) & 0x1)


def cond_mask(instr: int) -> int:
    """BR n/z/p mask, bits 11-9. Lines up with the COND bit layout."""
    return (instr >> 9) & 0x7


def trap_vector(instr: int) -> int:
    return instr & 0xFF
