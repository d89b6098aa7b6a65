"""
LC-3 Virtual Machine — Host Character I/O Interface

The machine never talks to a terminal, pipe or serial port directly.
The keyboard device and the trap gateway go through this capability:

  poll_input()  -> bool   non-blocking "is a character pending?"
  read_char()   -> int    blocking read of one character (0-255)
  write_char(c)           queue one character for output
  flush()                 push queued output to the host
  cancel()                make a blocked read_char() raise HostInterrupted
  resume()                clear the cancel latch so reads work again

Implementations:
  BufferedHostIO  (buffered.py)  — in-memory, tests and scripted input
  TerminalHostIO  (terminal.py)  — stdin/stdout with termios raw mode
  SerialHostIO    (serial_port.py) — pySerial port or URL
"""

from abc import ABC, abstractmethod


class HostIOError(Exception):
    """Host character stream failed (closed, EOF, device error)."""
    pass


class HostInterrupted(HostIOError):
    """A blocking read was cancelled by a shutdown request."""
    pass


class HostIO(ABC):

    _cancelled = False

    @abstractmethod
    def poll_input(self) -> bool:
        ...

    @abstractmethod
    def read_char(self) -> int:
        ...

    @abstractmethod
    def write_char(self, char: int):
        ...

    def write_text(self, text: str):
        for ch in text.encode('latin-1', errors='replace'):
            self.write_char(ch)

    def flush(self):
        pass

    def cancel(self):
        self._cancelled = True

    def resume(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def close(self):
        pass
