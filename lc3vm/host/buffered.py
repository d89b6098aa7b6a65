"""
LC-3 Virtual Machine — In-Memory Host I/O

Input characters are injected into a queue; everything the guest
writes lands in an output buffer for inspection. Reading with an empty
queue raises HostIOError, the same as EOF on a real stream.

    io = BufferedHostIO()
    io.inject_input(b"y")
    emu = LC3Emulator(host=io)
    ...
    assert io.output == b"HALT\\n"
"""

from collections import deque

from .base import HostIO, HostIOError, HostInterrupted


class BufferedHostIO(HostIO):

    def __init__(self, input_data: bytes = b""):
        self._rx_queue: deque = deque()
        self.tx_buffer: bytearray = bytearray()
        self.flushes = 0
        self._cancelled = False
        self.inject_input(input_data)

    def inject_input(self, data: bytes):
        """Queue bytes the guest will read via KBSR/KBDR, GETC or IN."""
        for byte in data:
            self._rx_queue.append(byte & 0xFF)

    def poll_input(self) -> bool:
        return bool(self._rx_queue)

    def read_char(self) -> int:
        if self._cancelled:
            raise HostInterrupted("read cancelled")
        if not self._rx_queue:
            raise HostIOError("input exhausted")
        return self._rx_queue.popleft()

    def write_char(self, char: int):
        self.tx_buffer.append(char & 0xFF)

    def flush(self):
        self.flushes += 1

    @property
    def output(self) -> bytes:
        """All bytes written by the guest so far."""
        return bytes(self.tx_buffer)

    def reset(self):
        self._rx_queue.clear()
        self.tx_buffer.clear()
        self.flushes = 0
        self.resume()
