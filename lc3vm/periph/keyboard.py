"""
LC-3 Virtual Machine — Memory-Mapped Keyboard

Register map:
  xFE00  KBSR  — Keyboard status, bit 15 = character ready
  xFE02  KBDR  — Keyboard data (last character latched by a KBSR poll)

Only KBSR reads are intercepted. Each read polls the host without
blocking; if a character is pending it is consumed from the host,
latched into KBDR and KBSR reads back x8000, otherwise KBSR reads back
0. KBDR is plain storage, so a guest polling loop does
LDI R0,KBSR / BRzp poll / LDI R0,KBDR.
"""

from ..config import MR_KBSR, MR_KBDR, KBSR_READY


class KeyboardDevice:

    def __init__(self, host):
        self.host = host
        self._memory = None

    def register(self, memory):
        """Wire KBSR into the memory read path."""
        self._memory = memory
        memory.register_io_handler(MR_KBSR, self._read_kbsr)

    def _read_kbsr(self, addr: int) -> int:
        if self.host.poll_input():
            self._memory.poke(MR_KBSR, KBSR_READY)
            self._memory.poke(MR_KBDR, self.host.read_char())
        else:
            self._memory.poke(MR_KBSR, 0)
        return self._memory.peek(MR_KBSR)
