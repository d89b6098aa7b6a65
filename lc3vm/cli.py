#!/usr/bin/env python3
"""
lc3vm — LC-3 Virtual Machine CLI

Usage:
    lc3vm <image.obj> [image2.obj ...] [--serial URL] [--baud N]
          [--max-instructions N] [--trace] [-v|-vv|-q] [--log-file PATH]

Images are loaded in order (later images overwrite overlapping words),
then execution starts at x3000. The guest console is the local terminal
(raw mode, no echo) unless --serial is given.

Exit status:
    0    program executed TRAP HALT
    1    an image failed to load
    2    usage error
    3    illegal opcode (RTI / reserved)
    4    undefined trap vector
    5    host I/O failure (e.g. end of input)
    6    --max-instructions budget exhausted
    130  interrupted (Ctrl+C)

Examples:
    lc3vm 2048.obj
    lc3vm rogue.obj --serial socket://localhost:7777
    lc3vm hello.obj --trace -vv --log-file logs/hello.log
"""

import argparse
import logging
import signal
import sys
from contextlib import ExitStack

from . import __version__
from .config import (
    MachineConfig, SERIAL_BAUD,
    EXIT_OK, EXIT_LOAD_FAILURE, EXIT_ILLEGAL_OPCODE, EXIT_BAD_TRAP,
    EXIT_IO_ERROR, EXIT_TIMEOUT, EXIT_INTERRUPTED,
)
from .emu import LC3Emulator, StopReason
from .host.base import HostIOError
from .image import ImageLoadError
from .log_setup import setup_logging, verbosity_to_level

log = logging.getLogger("lc3vm.cli")

EXIT_CODES = {
    StopReason.HALT: EXIT_OK,
    StopReason.ILLEGAL: EXIT_ILLEGAL_OPCODE,
    StopReason.BAD_TRAP: EXIT_BAD_TRAP,
    StopReason.IO_ERROR: EXIT_IO_ERROR,
    StopReason.TIMEOUT: EXIT_TIMEOUT,
    StopReason.INTERRUPTED: EXIT_INTERRUPTED,
}


def parse_int_arg(s: str) -> int:
    """Parse decimal, 0x.. or LC-3 style x.. numbers."""
    s = s.strip()
    if s[:1] in ('x', 'X'):
        return int(s[1:], 16)
    return int(s, 0)


def positive_int_arg(s: str) -> int:
    """argparse type: a parse_int_arg number of at least 1."""
    try:
        value = parse_int_arg(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {s!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lc3vm",
        description="LC-3 virtual machine — run LC-3 object images",
    )
    parser.add_argument("images", nargs="+", metavar="image",
                        help="LC-3 object image(s): origin word + big-endian words")
    parser.add_argument("--serial", metavar="URL", default=None,
                        help="Use a serial port / pySerial URL as the console "
                             "(e.g. /dev/ttyUSB0, socket://host:port)")
    parser.add_argument("--baud", type=int, default=SERIAL_BAUD,
                        help=f"Serial baud rate (default: {SERIAL_BAUD})")
    parser.add_argument("--max-instructions", type=positive_int_arg, default=None,
                        help="Stop after N instructions (default: unlimited)")
    parser.add_argument("--trace", action="store_true",
                        help="Log every instruction at DEBUG level")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Increase log verbosity (-v, -vv)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only log errors")
    parser.add_argument("--log-file", default=None,
                        help="Also write a DEBUG log to this file")
    parser.add_argument("--version", action="version",
                        version=f"lc3vm {__version__}")
    return parser


def make_host(args):
    if args.serial:
        from .host.serial_port import SerialHostIO
        return SerialHostIO(args.serial, baud=args.baud)
    from .host.terminal import TerminalHostIO
    return TerminalHostIO()


def report_stop(reason: StopReason):
    """Finish the guest's output line after Ctrl+C.

    Fatal stops are already reported through the log by the emulator.
    """
    if reason is StopReason.INTERRUPTED:
        sys.stdout.write("\n")
        sys.stdout.flush()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    console_level = verbosity_to_level(args.verbose, args.quiet)
    if args.trace:
        console_level = min(console_level, logging.DEBUG)
    setup_logging(console_level=console_level, log_file=args.log_file)

    config = MachineConfig(max_instructions=args.max_instructions, trace=args.trace)

    try:
        host = make_host(args)
    except HostIOError as e:
        print(f"lc3vm: {e}", file=sys.stderr)
        return EXIT_IO_ERROR

    emu = LC3Emulator(host=host, config=config)

    with ExitStack() as stack:
        stack.callback(host.close)

        for path in args.images:
            try:
                emu.load_image(path)
            except ImageLoadError as e:
                log.debug("%s", e)
                print(f"failed to load image: {path}")
                return EXIT_LOAD_FAILURE

        previous = signal.signal(signal.SIGINT, lambda signum, frame: emu.request_stop())
        stack.callback(signal.signal, signal.SIGINT, previous)

        if hasattr(host, "raw_mode"):
            stack.enter_context(host.raw_mode())

        reason = emu.run()
        log.info("Stopped: %s after %d instructions", reason.value, emu.regs.instructions)

    report_stop(reason)
    return EXIT_CODES[reason]


if __name__ == "__main__":
    sys.exit(main())
