"""
LC-3 Virtual Machine — Terminal Host I/O (POSIX)

stdin → guest keyboard, guest output → stdout, raw bytes with no
translation. raw_mode() switches the terminal to non-canonical, no-echo
input for the duration of a run so the guest sees every keystroke
immediately (GETC must not echo; IN echoes itself). ISIG stays on so
Ctrl+C still reaches the SIGINT handler.

Blocking reads wait in short select() slices so cancel() from a signal
handler can break them out. EOF on stdin is a HostIOError.
"""

import logging
import os
import select
import sys
import termios
from contextlib import contextmanager
from typing import Optional

from .base import HostIO, HostIOError, HostInterrupted

log = logging.getLogger(__name__)

_READ_SLICE = 0.1   # seconds per select() wait while blocked


class TerminalHostIO(HostIO):

    def __init__(self, in_fd: Optional[int] = None, out_fd: Optional[int] = None):
        self.in_fd = sys.stdin.fileno() if in_fd is None else in_fd
        self.out_fd = sys.stdout.fileno() if out_fd is None else out_fd
        self._tx = bytearray()
        self._cancelled = False
        self._saved_attrs = None

    # --- Terminal mode ---

    @property
    def is_tty(self) -> bool:
        return os.isatty(self.in_fd)

    def disable_input_buffering(self):
        """Clear ICANON and ECHO on the input terminal (no-op for pipes)."""
        if not self.is_tty:
            return
        self._saved_attrs = termios.tcgetattr(self.in_fd)
        attrs = termios.tcgetattr(self.in_fd)
        attrs[3] &= ~(termios.ICANON | termios.ECHO)   # lflag
        termios.tcsetattr(self.in_fd, termios.TCSANOW, attrs)
        log.debug("terminal raw mode on (fd=%d)", self.in_fd)

    def restore_input_buffering(self):
        if self._saved_attrs is None:
            return
        try:
            termios.tcsetattr(self.in_fd, termios.TCSANOW, self._saved_attrs)
        except termios.error as e:
            log.warning("could not restore terminal attributes: %s", e)
        self._saved_attrs = None
        log.debug("terminal raw mode off")

    @contextmanager
    def raw_mode(self):
        self.disable_input_buffering()
        try:
            yield self
        finally:
            self.restore_input_buffering()

    # --- HostIO ---

    def _readable(self, timeout: float) -> bool:
        try:
            return bool(select.select([self.in_fd], [], [], timeout)[0])
        except (OSError, ValueError) as e:
            raise HostIOError(f"stdin poll failed: {e}") from e

    def poll_input(self) -> bool:
        return self._readable(0)

    def read_char(self) -> int:
        self.flush()
        while not self._readable(_READ_SLICE):
            if self._cancelled:
                raise HostInterrupted("read cancelled")
        if self._cancelled:
            raise HostInterrupted("read cancelled")
        try:
            data = os.read(self.in_fd, 1)
        except OSError as e:
            raise HostIOError(f"stdin read failed: {e}") from e
        if not data:
            raise HostIOError("end of input")
        return data[0]

    def write_char(self, char: int):
        self._tx.append(char & 0xFF)

    def flush(self):
        if not self._tx:
            return
        pending = bytes(self._tx)
        try:
            while pending:
                pending = pending[os.write(self.out_fd, pending):]
        except OSError as e:
            raise HostIOError(f"stdout write failed: {e}") from e
        self._tx.clear()

    def close(self):
        try:
            self.flush()
        finally:
            self.restore_input_buffering()
