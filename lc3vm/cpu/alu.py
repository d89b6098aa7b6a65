"""
LC-3 Virtual Machine — ALU Operations

All LC-3 arithmetic is 16-bit and wraps modulo 2^16; there is no carry
or overflow flag. Results feed update_flags(), which only classifies
the destination value as negative, zero or positive.
"""

from ..config import FL_POS, FL_ZRO, FL_NEG, WORD_MASK


def sign_extend(value: int, bit_count: int) -> int:
    """Sign-extend the low *bit_count* bits of value to 16 bits.

    sign_extend(0b11111, 5) == 0xFFFF   (-1)
    sign_extend(0b01111, 5) == 0x000F   (+15)
    """
    value &= (1 << bit_count) - 1
    if (value >> (bit_count - 1)) & 1:
        value |= (WORD_MASK << bit_count) & WORD_MASK
    return value


def to_signed(value: int) -> int:
    """Interpret a 16-bit word as a two's complement integer."""
    value &= WORD_MASK
    return value - 0x10000 if value & 0x8000 else value


def flags_for(value: int) -> int:
    """COND bits for a result word: exactly one of N, Z, P."""
    signed = to_signed(value)
    if signed == 0:
        return FL_ZRO
    if signed < 0:
        return FL_NEG
    return FL_POS


def add16(a: int, b: int) -> int:
    return (a + b) & WORD_MASK


def and16(a: int, b: int) -> int:
    return (a & b) & WORD_MASK


def not16(a: int) -> int:
    return ~a & WORD_MASK
