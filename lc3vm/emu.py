"""
LC-3 Virtual Machine — Main Emulator Class

Integrates:
  - CPU registers (cpu/regs.py)
  - 64K word memory (mem/memory.py)
  - Opcode decoder (cpu/decoder.py)
  - ALU helpers (cpu/alu.py)
  - Keyboard device at xFE00/xFE02 (periph/keyboard.py)
  - Trap gateway (traps.py) over a HostIO backend (host/)

Execution model, one instruction per step():
  1. Fetch word at PC, PC += 1
  2. Decode opcode (bits 15-12)
  3. Execute handler → registers, memory, host I/O
  4. Update COND from DR if the opcode sets flags
  5. Check termination

Termination reasons:
  - HALT:        TRAP x25
  - ILLEGAL:     RTI / reserved opcode (fatal)
  - BAD_TRAP:    undefined trap vector (fatal)
  - IO_ERROR:    host character stream failed (fatal)
  - INTERRUPTED: request_stop() from the host (e.g. SIGINT)
  - TIMEOUT:     instruction budget exhausted
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from .config import MachineConfig, WORD_MASK
from .cpu.regs import Registers
from .cpu.decoder import (
    Op, OPCODES, IllegalOpcode, decode,
    dr, sr1, sr2, imm_flag, imm5, offset6, pc_offset9, pc_offset11,
    long_flag, cond_mask, trap_vector,
)
from .cpu import alu
from .mem.memory import Memory
from .periph.keyboard import KeyboardDevice
from .host.base import HostIO, HostIOError, HostInterrupted
from .host.buffered import BufferedHostIO
from .traps import TrapGateway, BadTrapVector
from .image import LoadedImage, read_image

log = logging.getLogger(__name__)


class StopReason(Enum):
    HALT = 'HALT'
    ILLEGAL = 'ILLEGAL'
    BAD_TRAP = 'BAD_TRAP'
    IO_ERROR = 'IO_ERROR'
    INTERRUPTED = 'INTERRUPTED'
    TIMEOUT = 'TIMEOUT'


class LC3Emulator:
    """LC-3 virtual machine.

    All machine state lives on the instance, so independent machines
    can run side by side.

    Usage:
        emu = LC3Emulator(host=BufferedHostIO())
        emu.load_image('hello.obj')
        result = emu.run()
        print(emu.host.output)     # b"Hello\\nHALT\\n"
    """

    def __init__(self, host: Optional[HostIO] = None,
                 config: Optional[MachineConfig] = None):
        self.config = config if config is not None else MachineConfig()
        self.host = host if host is not None else BufferedHostIO()

        # Core components
        self.regs = Registers(self.config.pc_start)
        self.mem = Memory()

        # Devices
        self.keyboard = KeyboardDevice(self.host)
        self.keyboard.register(self.mem)
        self.traps = TrapGateway(self.regs, self.mem, self.host, self.config)

        self.halted = False
        self.fault: Optional[Exception] = None
        self._stop_requested = False

        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_image(self, path_or_data: Union[str, Path, bytes]) -> LoadedImage:
        """Load an LC-3 object image (origin word + big-endian words)."""
        image = read_image(path_or_data, self.mem)
        log.info("Loaded %s: %d words at x%04X-x%04X",
                 image.source, image.length, image.origin, image.end & WORD_MASK)
        return image

    def load_words(self, words: Iterable[int], origin: Optional[int] = None) -> int:
        """Store words at origin (default: the configured PC start)."""
        if origin is None:
            origin = self.config.pc_start
        return self.mem.load_words(words, origin)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason if stopped, else None."""
        if self.halted:
            return StopReason.HALT
        if self._stop_requested:
            return StopReason.INTERRUPTED

        pc = self.regs.PC
        try:
            # Fetch
            instr = self.mem.read(pc)
            self.regs.PC = (pc + 1) & WORD_MASK

            # Decode
            op = decode(instr)
            info = OPCODES[op]
            if self.config.trace:
                log.debug("x%04X: %04X %-4s %s", pc, instr, info.mnemonic,
                          self.regs.display())

            # Execute
            if not info.defined:
                raise IllegalOpcode(op, pc)
            self._dispatch[op](instr)
            if info.sets_flags:
                self.regs.update_flags(dr(instr))
        except _HaltException:
            self.regs.instructions += 1
            self.halted = True
            return StopReason.HALT
        except IllegalOpcode as e:
            return self._fatal(StopReason.ILLEGAL, e)
        except BadTrapVector as e:
            return self._fatal(StopReason.BAD_TRAP, e)
        except HostInterrupted as e:
            log.info("Stopped at x%04X: %s", pc, e)
            self.fault = e
            return StopReason.INTERRUPTED
        except HostIOError as e:
            return self._fatal(StopReason.IO_ERROR, e)

        self.regs.instructions += 1
        return None

    def run(self, max_instructions: Optional[int] = None) -> StopReason:
        """Run until HALT, a fatal error, a stop request or the budget.

        Args:
            max_instructions: Instruction budget before TIMEOUT. Defaults
                to config.max_instructions (None = unlimited).
        """
        if max_instructions is None:
            max_instructions = self.config.max_instructions

        executed = 0
        while max_instructions is None or executed < max_instructions:
            reason = self.step()
            if reason is not None:
                return reason
            executed += 1

        log.warning("Instruction budget of %d exhausted at x%04X",
                    max_instructions, self.regs.PC)
        return StopReason.TIMEOUT

    def request_stop(self):
        """Ask the machine to stop before the next fetch.

        Safe to call from a signal handler. A blocked GETC/IN read is
        cancelled through the host.
        """
        self._stop_requested = True
        self.host.cancel()

    def _fatal(self, reason: StopReason, error: Exception) -> StopReason:
        self.fault = error
        log.error("%s: %s", reason.value, error)
        return reason

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Handler signature: handler(instr). PC already points past instr.
    # COND is updated by step() for opcodes with sets_flags.

    def _build_dispatch(self) -> dict:
        """Build opcode → handler table for the defined opcodes.

        RTI and RES have no handler; step() rejects them from their
        OPCODES entry before dispatch.
        """
        return {
            Op.BR:   self._op_br,
            Op.ADD:  self._op_add,
            Op.LD:   self._op_ld,
            Op.ST:   self._op_st,
            Op.JSR:  self._op_jsr,
            Op.AND:  self._op_and,
            Op.LDR:  self._op_ldr,
            Op.STR:  self._op_str,
            Op.NOT:  self._op_not,
            Op.LDI:  self._op_ldi,
            Op.STI:  self._op_sti,
            Op.JMP:  self._op_jmp,
            Op.LEA:  self._op_lea,
            Op.TRAP: self._op_trap,
        }

    def _pc_relative(self, instr: int) -> int:
        return alu.add16(self.regs.PC, pc_offset9(instr))

    def _base_relative(self, instr: int) -> int:
        return alu.add16(self.regs[sr1(instr)], offset6(instr))

    # ── Operate ──

    def _op_add(self, instr):
        operand = imm5(instr) if imm_flag(instr) else self.regs[sr2(instr)]
        self.regs[dr(instr)] = alu.add16(self.regs[sr1(instr)], operand)

    def _op_and(self, instr):
        operand = imm5(instr) if imm_flag(instr) else self.regs[sr2(instr)]
        self.regs[dr(instr)] = alu.and16(self.regs[sr1(instr)], operand)

    def _op_not(self, instr):
        self.regs[dr(instr)] = alu.not16(self.regs[sr1(instr)])

    # ── Control transfer ──

    def _op_br(self, instr):
        if cond_mask(instr) & self.regs.COND:
            self.regs.PC = self._pc_relative(instr)

    def _op_jmp(self, instr):
        self.regs.PC = self.regs[sr1(instr)]

    def _op_jsr(self, instr):
        self.regs[7] = self.regs.PC
        if long_flag(instr):
            self.regs.PC = alu.add16(self.regs.PC, pc_offset11(instr))
        else:
            self.regs.PC = self.regs[sr1(instr)]

    # ── Load ──

    def _op_ld(self, instr):
        self.regs[dr(instr)] = self.mem.read(self._pc_relative(instr))

    def _op_ldi(self, instr):
        self.regs[dr(instr)] = self.mem.read(self.mem.read(self._pc_relative(instr)))

    def _op_ldr(self, instr):
        self.regs[dr(instr)] = self.mem.read(self._base_relative(instr))

    def _op_lea(self, instr):
        self.regs[dr(instr)] = self._pc_relative(instr)

    # ── Store ──

    def _op_st(self, instr):
        self.mem.write(self._pc_relative(instr), self.regs[dr(instr)])

    def _op_sti(self, instr):
        self.mem.write(self.mem.read(self._pc_relative(instr)), self.regs[dr(instr)])

    def _op_str(self, instr):
        self.mem.write(self._base_relative(instr), self.regs[dr(instr)])

    # ── Trap ──

    def _op_trap(self, instr):
        routine = self.traps.lookup(trap_vector(instr), (self.regs.PC - 1) & WORD_MASK)
        self.regs[7] = self.regs.PC
        if routine():
            raise _HaltException()

    # ══════════════════════════════════════════════
    # Reset
    # ══════════════════════════════════════════════

    def reset(self):
        """Full machine reset: zero memory and registers, re-arm host input."""
        self.regs.reset(self.config.pc_start)
        self.mem.clear()
        self.halted = False
        self.fault = None
        self._stop_requested = False
        self.host.resume()


# Internal exception for flow control
class _HaltException(Exception):
    pass
