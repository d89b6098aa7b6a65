"""
LC-3 Virtual Machine — 64K Word Memory with Device Register Routing

Memory map (user program model):
  x0000–x2FFF  System space (trap table / OS, unused by this VM)
  x3000–xFDFF  User program space (default origin x3000)
  xFE00        KBSR — keyboard status   (read intercepted)
  xFE02        KBDR — keyboard data

Memory is a flat array of 65536 16-bit words. Reads of addresses with a
registered I/O handler are routed to the handler (the keyboard model
uses this for KBSR). Everything else is passive storage. Addresses and
values are masked to 16 bits, so there is no out-of-range case.
"""

from array import array
from typing import Callable, Dict, Iterable, Optional

from ..config import MEMORY_SIZE, WORD_MASK


class Memory:
    """65536-word LC-3 address space."""

    def __init__(self):
        self._mem = array('H', [0]) * MEMORY_SIZE

        # Device register handlers: addr -> read_fn(addr) -> int
        self._io_read_handlers: Dict[int, Callable[[int], int]] = {}

    # --- Core read/write ---

    def read(self, addr: int) -> int:
        """Read a word. Device registers are routed to their handler."""
        addr &= WORD_MASK
        handler = self._io_read_handlers.get(addr)
        if handler is not None:
            return handler(addr) & WORD_MASK
        return self._mem[addr]

    def write(self, addr: int, value: int):
        self._mem[addr & WORD_MASK] = value & WORD_MASK

    def peek(self, addr: int) -> int:
        """Raw read, never triggers a device handler."""
        return self._mem[addr & WORD_MASK]

    def poke(self, addr: int, value: int):
        """Raw write, used by device models to update their registers."""
        self._mem[addr & WORD_MASK] = value & WORD_MASK

    # --- Bulk load ---

    def load_words(self, words: Iterable[int], origin: int) -> int:
        """Store words contiguously from origin.

        Words that would land past xFFFF are dropped. Returns the number
        of words stored.
        """
        addr = origin & WORD_MASK
        count = 0
        for word in words:
            if addr >= MEMORY_SIZE:
                break
            self._mem[addr] = word & WORD_MASK
            addr += 1
            count += 1
        return count

    def clear(self):
        self._mem = array('H', [0]) * MEMORY_SIZE

    # --- I/O handler registration ---

    def register_io_handler(self, addr: int,
                            read_fn: Optional[Callable[[int], int]] = None):
        """Intercept reads of addr with read_fn(addr) -> word.

        Passing None removes an existing handler.
        """
        addr &= WORD_MASK
        if read_fn is None:
            self._io_read_handlers.pop(addr, None)
        else:
            self._io_read_handlers[addr] = read_fn

    def __len__(self) -> int:
        return MEMORY_SIZE
