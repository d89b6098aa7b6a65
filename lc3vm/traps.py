"""
LC-3 Virtual Machine — Trap Gateway

TRAP x20..x25 are serviced natively in Python rather than by guest OS
code, bridging straight to the host character I/O:

  x20  GETC   read one char, no echo        → R0
  x21  OUT    write low byte of R0
  x22  PUTS   write string at R0, one char per word, until x0000
  x23  IN     prompt, read one char, echo   → R0
  x24  PUTSP  write string at R0, two chars per word (low, then high
              if non-zero), until x0000
  x25  HALT   print halt notice, stop the machine

Any other vector raises BadTrapVector. String walks read memory raw
(peek) so they never trigger the keyboard device, wrap at xFFFF and give
up after one full lap without a terminator.
"""

import logging
from typing import Callable

from .config import (
    TRAP_GETC, TRAP_OUT, TRAP_PUTS, TRAP_IN, TRAP_PUTSP, TRAP_HALT,
    MEMORY_SIZE, WORD_MASK, MachineConfig,
)
from .host.base import HostInterrupted

log = logging.getLogger(__name__)


class BadTrapVector(Exception):
    """Raised when TRAP is executed with an unassigned vector."""
    def __init__(self, vector: int, address: int):
        self.vector = vector
        self.address = address
        super().__init__(f"Undefined trap vector x{vector:02X} at x{address:04X}")


TRAP_NAMES = {
    TRAP_GETC: 'GETC',
    TRAP_OUT: 'OUT',
    TRAP_PUTS: 'PUTS',
    TRAP_IN: 'IN',
    TRAP_PUTSP: 'PUTSP',
    TRAP_HALT: 'HALT',
}


class TrapGateway:
    """Native trap service routines. Each routine returns True to halt."""

    def __init__(self, regs, mem, host, config: MachineConfig):
        self.regs = regs
        self.mem = mem
        self.host = host
        self.config = config
        self._routines = {
            TRAP_GETC: self._getc,
            TRAP_OUT: self._out,
            TRAP_PUTS: self._puts,
            TRAP_IN: self._in,
            TRAP_PUTSP: self._putsp,
            TRAP_HALT: self._halt,
        }

    def lookup(self, vector: int, address: int) -> Callable[[], bool]:
        """Resolve a vector to its routine, or raise BadTrapVector."""
        routine = self._routines.get(vector)
        if routine is None:
            raise BadTrapVector(vector, address)
        log.debug("TRAP x%02X %s at x%04X", vector, TRAP_NAMES[vector], address)
        return routine

    # ── Service routines ──

    def _getc(self) -> bool:
        self.regs[0] = self.host.read_char()
        return False

    def _out(self) -> bool:
        self.host.write_char(self.regs[0] & 0xFF)
        self.host.flush()
        return False

    def _string_words(self):
        """Yield words from R0 up to the x0000 terminator.

        Stops after one full lap of memory if no terminator exists, and
        raises HostInterrupted once the host has been cancelled.
        """
        addr = self.regs[0]
        for _ in range(MEMORY_SIZE):
            if self.host.cancelled:
                raise HostInterrupted("output cancelled")
            word = self.mem.peek(addr)
            if not word:
                return
            yield word
            addr = (addr + 1) & WORD_MASK
        log.warning("No string terminator from x%04X, stopped after one lap",
                    self.regs[0])

    def _puts(self) -> bool:
        for word in self._string_words():
            self.host.write_char(word & 0xFF)
        self.host.flush()
        return False

    def _in(self) -> bool:
        self.host.write_text(self.config.in_prompt)
        self.host.flush()
        char = self.host.read_char()
        self.host.write_char(char)
        self.host.flush()
        self.regs[0] = char
        return False

    def _putsp(self) -> bool:
        for word in self._string_words():
            self.host.write_char(word & 0xFF)
            high = word >> 8
            if high:
                self.host.write_char(high)
        self.host.flush()
        return False

    def _halt(self) -> bool:
        self.host.write_text(self.config.halt_message + "\n")
        self.host.flush()
        log.info("HALT at x%04X", (self.regs.PC - 1) & WORD_MASK)
        return True
