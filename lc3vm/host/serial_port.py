"""
LC-3 Virtual Machine — Serial Port Host I/O

Runs the guest console over a serial line instead of the local
terminal, e.g. a USB-UART to a real terminal, or any pySerial URL:

    SerialHostIO("/dev/ttyUSB0", baud=115200)
    SerialHostIO("socket://localhost:7777")
    SerialHostIO("loop://")            # loopback, used by the tests

Serial config: 8N1, no flow control. in_waiting backs poll_input();
blocking reads use the port timeout as a slice so cancel() is honoured.
Every SerialException (and a bad URL or setting at open) surfaces as
HostIOError.
"""

import logging
from typing import Optional

import serial

from ..config import SERIAL_BAUD, SERIAL_POLL_INTERVAL
from .base import HostIO, HostIOError, HostInterrupted

log = logging.getLogger(__name__)


class SerialHostIO(HostIO):

    def __init__(self, port: str, baud: int = SERIAL_BAUD,
                 ser: Optional[serial.SerialBase] = None):
        self.port = port
        self.baud = baud
        self._cancelled = False
        if ser is not None:
            self.ser = ser
        else:
            self.ser = self._open()

    def _open(self) -> serial.SerialBase:
        try:
            ser = serial.serial_for_url(
                self.port,
                baudrate=self.baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=SERIAL_POLL_INTERVAL,
                write_timeout=1.0,
            )
        except (serial.SerialException, ValueError) as e:
            raise HostIOError(f"Failed to open {self.port}: {e}") from e
        log.info("Opened %s @ %d baud", self.port, self.baud)
        return ser

    def poll_input(self) -> bool:
        try:
            return self.ser.in_waiting > 0
        except serial.SerialException as e:
            raise HostIOError(f"{self.port}: {e}") from e

    def read_char(self) -> int:
        self.flush()
        while True:
            if self._cancelled:
                raise HostInterrupted("read cancelled")
            try:
                data = self.ser.read(1)
            except serial.SerialException as e:
                raise HostIOError(f"{self.port}: {e}") from e
            if data:
                return data[0]

    def write_char(self, char: int):
        try:
            self.ser.write(bytes([char & 0xFF]))
        except serial.SerialException as e:
            raise HostIOError(f"{self.port}: {e}") from e

    def flush(self):
        try:
            self.ser.flush()
        except serial.SerialException as e:
            raise HostIOError(f"{self.port}: {e}") from e

    def close(self):
        if self.ser.is_open:
            self.ser.close()
            log.info("Closed %s", self.port)
