"""
LC-3 Virtual Machine — Core Integration Tests

Tests that prove the emulator executes real LC-3 machine code. Each
program is hand-assembled; the comment next to every word gives the
address and the source instruction. PC-relative offsets are counted
from the address after the instruction.
"""

import logging
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lc3vm.config import FL_POS, FL_ZRO, FL_NEG, MachineConfig
from lc3vm.emu import LC3Emulator, StopReason
from lc3vm.cpu.decoder import IllegalOpcode, Op
from lc3vm.host import BufferedHostIO, HostIOError, HostInterrupted
from lc3vm.traps import BadTrapVector

HALT = 0xF025


def _emu(words, data: bytes = b"", origin: int = 0x3000) -> LC3Emulator:
    emu = LC3Emulator(host=BufferedHostIO(data))
    emu.load_words(words, origin)
    return emu


# ═══════════════════════════════════════════════
# Test Group 1: Operate instructions
# ═══════════════════════════════════════════════

class TestOperate:

    def test_add_immediate(self):
        """ADD R0, R0, #5 → R0=5, P"""
        emu = _emu([0x1025])
        emu.step()
        assert emu.regs[0] == 5
        assert emu.regs.COND == FL_POS
        assert emu.regs.PC == 0x3001

    def test_add_immediate_minus_one(self):
        """ADD R0, R0, #-1 (imm5 = 11111) → R0=xFFFF, N"""
        emu = _emu([0x103F])
        emu.step()
        assert emu.regs[0] == 0xFFFF
        assert emu.regs.COND == FL_NEG

    def test_add_register(self):
        """ADD R1, R2, R3"""
        emu = _emu([0x1283])
        emu.regs[2] = 0x1000
        emu.regs[3] = 0x0234
        emu.step()
        assert emu.regs[1] == 0x1234
        assert emu.regs.COND == FL_POS

    def test_add_wraps_to_zero(self):
        """ADD R1, R2, R3 with xFFFF + 1 → 0, Z"""
        emu = _emu([0x1283])
        emu.regs[2] = 0xFFFF
        emu.regs[3] = 0x0001
        emu.step()
        assert emu.regs[1] == 0
        assert emu.regs.COND == FL_ZRO

    def test_and_immediate_zero(self):
        """AND R0, R0, #0 → clears, Z"""
        emu = _emu([0x5020])
        emu.regs[0] = 0x1234
        emu.regs.COND = FL_POS
        emu.step()
        assert emu.regs[0] == 0
        assert emu.regs.COND == FL_ZRO

    def test_and_immediate_all_ones(self):
        """AND R0, R0, #-1 keeps every bit (imm5 extends to xFFFF)"""
        emu = _emu([0x503F])
        emu.regs[0] = 0xA5A5
        emu.step()
        assert emu.regs[0] == 0xA5A5
        assert emu.regs.COND == FL_NEG

    def test_and_register(self):
        """AND R1, R2, R3"""
        emu = _emu([0x5283])
        emu.regs[2] = 0x0FF0
        emu.regs[3] = 0x00FF
        emu.step()
        assert emu.regs[1] == 0x00F0

    def test_not(self):
        """NOT R1, R0"""
        emu = _emu([0x923F])
        emu.regs[0] = 0x00FF
        emu.step()
        assert emu.regs[1] == 0xFF00
        assert emu.regs.COND == FL_NEG


# ═══════════════════════════════════════════════
# Test Group 2: Loads and stores
# ═══════════════════════════════════════════════

class TestLoadStore:

    def test_ld(self):
        """LD R0, #2 → mem[x3003]"""
        emu = _emu([0x2002, 0x0000, 0x0000, 0x8001])
        emu.step()
        assert emu.regs[0] == 0x8001
        assert emu.regs.COND == FL_NEG

    def test_ldi_is_indirect(self):
        """LDI R0, #1 reads mem[mem[x3002]], not mem[x3002]"""
        emu = _emu([
            0xA001,   # x3000: LDI R0, PTR
            HALT,     # x3001
            0x4000,   # x3002: PTR → x4000
        ])
        emu.mem.write(0x4000, 0x0042)
        emu.step()
        assert emu.regs[0] == 0x0042
        assert emu.regs[0] != 0x4000

    def test_ld_vs_ldi_same_offset(self):
        """Same word, same offset: LD yields the pointer, LDI the target."""
        emu = _emu([0x2201, 0xA001, 0x5000])   # LD R1,#1 ; LDI R0,#1 ; x5000
        emu.mem.write(0x5000, 0x0777)
        emu.load_words([0x5000], 0x3003)       # LDI at x3001 → x3003
        emu.step()
        emu.step()
        assert emu.regs[1] == 0x5000
        assert emu.regs[0] == 0x0777

    def test_ldr_positive_offset(self):
        """LDR R0, R1, #2"""
        emu = _emu([0x6042])
        emu.regs[1] = 0x4000
        emu.mem.write(0x4002, 0x1111)
        emu.step()
        assert emu.regs[0] == 0x1111

    def test_ldr_negative_offset(self):
        """LDR R0, R1, #-1"""
        emu = _emu([0x607F])
        emu.regs[1] = 0x4000
        emu.mem.write(0x3FFF, 0x2222)
        emu.step()
        assert emu.regs[0] == 0x2222

    def test_lea_does_not_dereference(self):
        """LEA R0, #3 → R0 = x3004, P"""
        emu = _emu([0xE003])
        emu.mem.write(0x3004, 0x9999)
        emu.step()
        assert emu.regs[0] == 0x3004
        assert emu.regs.COND == FL_POS

    def test_st(self):
        """ST R0, #2 → mem[x3003]"""
        emu = _emu([0x3002])
        emu.regs[0] = 0xCAFE
        emu.step()
        assert emu.mem.read(0x3003) == 0xCAFE

    def test_sti(self):
        """STI R0, #1 → mem[mem[x3002]]"""
        emu = _emu([0xB001, HALT, 0x4100])
        emu.regs[0] = 0x00AB
        emu.step()
        assert emu.mem.read(0x4100) == 0x00AB
        assert emu.mem.read(0x3002) == 0x4100

    def test_str(self):
        """STR R0, R1, #1"""
        emu = _emu([0x7041])
        emu.regs[0] = 0x0055
        emu.regs[1] = 0x4000
        emu.step()
        assert emu.mem.read(0x4001) == 0x0055

    def test_stores_leave_flags_alone(self):
        """ADD sets P; the following ST/STR/STI must not touch COND."""
        emu = _emu([0x1025, 0x3006, 0x7041, 0xB003])
        emu.regs[1] = 0x4000
        emu.load_words([0x4200], 0x3007)
        for _ in range(4):
            emu.step()
        assert emu.regs.COND == FL_POS


# ═══════════════════════════════════════════════
# Test Group 3: Control transfer
# ═══════════════════════════════════════════════

class TestControl:

    def test_br_taken(self):
        """BRz #2 with Z set → PC = x3003"""
        emu = _emu([0x0402])
        emu.step()
        assert emu.regs.PC == 0x3003

    def test_br_not_taken(self):
        """BRn #2 with Z set → falls through"""
        emu = _emu([0x0802])
        emu.step()
        assert emu.regs.PC == 0x3001

    def test_br_backward(self):
        """BRnzp #-1 branches to itself"""
        emu = _emu([0x0FFF])
        emu.step()
        assert emu.regs.PC == 0x3000

    def test_br_does_not_set_flags(self):
        emu = _emu([0x0E00])   # BRnzp #0
        emu.regs.COND = FL_NEG
        emu.step()
        assert emu.regs.COND == FL_NEG

    def test_jmp(self):
        """JMP R2"""
        emu = _emu([0xC080])
        emu.regs[2] = 0x4000
        emu.step()
        assert emu.regs.PC == 0x4000

    def test_ret(self):
        """RET (JMP R7)"""
        emu = _emu([0xC1C0])
        emu.regs[7] = 0x3456
        emu.step()
        assert emu.regs.PC == 0x3456

    def test_jsr_long_saves_return(self):
        """JSR #5 → R7 = x3001, PC = x3006"""
        emu = _emu([0x4805])
        emu.step()
        assert emu.regs[7] == 0x3001
        assert emu.regs.PC == 0x3006

    def test_jsrr_saves_return(self):
        """JSRR R3 → R7 = x3001, PC = R3"""
        emu = _emu([0x40C0])
        emu.regs[3] = 0x5000
        emu.step()
        assert emu.regs[7] == 0x3001
        assert emu.regs.PC == 0x5000

    def test_jsrr_r7_reads_base_after_link(self):
        """JSRR R7: R7 is written first, so the jump lands on the return address."""
        emu = _emu([0x41C0])
        emu.regs[7] = 0x5000
        emu.step()
        assert emu.regs[7] == 0x3001
        assert emu.regs.PC == 0x3001

    def test_jsr_leaves_flags(self):
        emu = _emu([0x4805])
        emu.step()
        assert emu.regs.COND == FL_ZRO


# ═══════════════════════════════════════════════
# Test Group 4: Small programs
# ═══════════════════════════════════════════════

class TestPrograms:

    def test_countdown_loop(self):
        """R0 = 5; do { R1 += 2; R0 -= 1 } while (R0 > 0)"""
        emu = _emu([
            0x5020,   # x3000: AND  R0, R0, #0
            0x1025,   # x3001: ADD  R0, R0, #5
            0x1262,   # x3002: ADD  R1, R1, #2   (loop)
            0x103F,   # x3003: ADD  R0, R0, #-1
            0x03FD,   # x3004: BRp  loop
            HALT,     # x3005
        ])
        assert emu.run(max_instructions=1000) == StopReason.HALT
        assert emu.regs[0] == 0
        assert emu.regs[1] == 10
        assert emu.regs.COND == FL_ZRO
        assert emu.regs.instructions == 2 + 5 * 3 + 1

    def test_subroutine_call(self):
        emu = _emu([
            0x4802,   # x3000: JSR  SUB
            0x14A1,   # x3001: ADD  R2, R2, #1
            HALT,     # x3002
            0x16E7,   # x3003: SUB: ADD R3, R3, #7
            0xC1C0,   # x3004: RET
        ])
        assert emu.run(max_instructions=100) == StopReason.HALT
        assert emu.regs[3] == 7
        assert emu.regs[2] == 1
        assert emu.regs[7] == 0x3003   # overwritten by the HALT trap

    def test_memory_fill(self):
        """Fill x4000..x4003 with xFFFF via STR."""
        emu = _emu([
            0x2206,   # x3000: LD   R1, BASE (x3007)
            0x5020,   # x3001: AND  R0, R0, #0
            0x103F,   # x3002: ADD  R0, R0, #-1
            0x54A0,   # x3003: AND  R2, R2, #0
            0x14A4,   # x3004: ADD  R2, R2, #4
            0x7040,   # x3005: STR  R0, R1, #0   (loop)
            0x0E01,   # x3006: BRnzp +1 → x3008
            0x4000,   # x3007: BASE
            0x1261,   # x3008: ADD  R1, R1, #1
            0x14BF,   # x3009: ADD  R2, R2, #-1
            0x03FA,   # x300A: BRp  loop (x3005)
            HALT,     # x300B
        ])
        assert emu.run(max_instructions=1000) == StopReason.HALT
        assert [emu.mem.read(a) for a in range(0x4000, 0x4005)] == \
            [0xFFFF, 0xFFFF, 0xFFFF, 0xFFFF, 0x0000]


# ═══════════════════════════════════════════════
# Test Group 5: End-to-end scenarios
# ═══════════════════════════════════════════════

class TestEndToEnd:

    def test_add_then_halt_image(self):
        """Image x3000: ADD R0,R0,#5 ; HALT"""
        host = BufferedHostIO()
        emu = LC3Emulator(host=host)
        emu.load_image(bytes([0x30, 0x00, 0x10, 0x25, 0xF0, 0x25]))
        result = emu.run()
        assert result == StopReason.HALT
        assert emu.regs[0] == 5
        assert emu.regs.COND == FL_POS
        assert emu.fault is None
        assert host.output == b"HALT\n"

    def test_puts_hi(self):
        """Build "HI\\0" in memory, PUTS it, then keep executing."""
        host = BufferedHostIO()
        emu = LC3Emulator(host=host)
        emu.load_words([
            0x2209,   # x3000: LD   R1, CH_H
            0x320A,   # x3001: ST   R1, BUF
            0x2208,   # x3002: LD   R1, CH_I
            0x3209,   # x3003: ST   R1, BUF+1
            0x5260,   # x3004: AND  R1, R1, #0
            0x3208,   # x3005: ST   R1, BUF+2
            0xE005,   # x3006: LEA  R0, BUF
            0xF022,   # x3007: PUTS
            0x14A1,   # x3008: ADD  R2, R2, #1
            HALT,     # x3009
            0x0048,   # x300A: CH_H 'H'
            0x0049,   # x300B: CH_I 'I'
            0x0000,   # x300C: BUF
            0x0000,   # x300D
            0x0058,   # x300E: 'X', overwritten by the terminator
        ])
        assert emu.run(max_instructions=100) == StopReason.HALT
        assert host.output == b"HI" + b"HALT\n"
        assert emu.regs[2] == 1

    def test_reserved_opcode_is_fatal(self):
        emu = _emu([0xD000])
        result = emu.run()
        assert result == StopReason.ILLEGAL
        assert isinstance(emu.fault, IllegalOpcode)
        assert emu.fault.opcode == Op.RES
        assert emu.fault.address == 0x3000
        # Only the fetch increment happened
        assert emu.regs.PC == 0x3001
        assert emu.regs.R == [0] * 8
        assert emu.regs.COND == FL_ZRO
        assert emu.regs.instructions == 0

    def test_rti_is_fatal(self):
        emu = _emu([0x8000])
        assert emu.run() == StopReason.ILLEGAL
        assert emu.fault.opcode == Op.RTI

    def test_fatal_stop_is_not_retried(self):
        emu = _emu([0x1025, 0xD000, 0x1025])
        assert emu.run() == StopReason.ILLEGAL
        assert emu.regs[0] == 5
        assert emu.regs.PC == 0x3002


# ═══════════════════════════════════════════════
# Test Group 6: Loop control
# ═══════════════════════════════════════════════

class TestRunControl:

    def test_timeout(self):
        emu = _emu([0x0FFF])        # BRnzp #-1
        assert emu.run(max_instructions=100) == StopReason.TIMEOUT
        assert emu.regs.instructions == 100

    def test_timeout_from_config(self):
        emu = LC3Emulator(config=MachineConfig(max_instructions=10))
        emu.load_words([0x0FFF])
        assert emu.run() == StopReason.TIMEOUT
        assert emu.regs.instructions == 10

    def test_halted_machine_stays_halted(self):
        emu = _emu([HALT, 0x1025])
        assert emu.run() == StopReason.HALT
        assert emu.step() == StopReason.HALT
        assert emu.regs[0] == 0

    def test_request_stop_before_fetch(self):
        emu = _emu([0x1025])
        emu.request_stop()
        assert emu.run() == StopReason.INTERRUPTED
        assert emu.regs.PC == 0x3000
        assert emu.regs[0] == 0

    def test_request_stop_cancels_blocked_read(self):
        emu = _emu([0xF020])        # GETC
        emu.host.cancel()
        assert emu.step() == StopReason.INTERRUPTED
        assert isinstance(emu.fault, HostInterrupted)

    def test_io_error_is_fatal(self):
        emu = _emu([0xF020])        # GETC with no input
        assert emu.run() == StopReason.IO_ERROR
        assert isinstance(emu.fault, HostIOError)

    def test_bad_trap_vector(self):
        emu = _emu([0xF026])
        assert emu.run() == StopReason.BAD_TRAP
        assert isinstance(emu.fault, BadTrapVector)
        assert emu.fault.vector == 0x26
        assert emu.regs[7] == 0

    def test_independent_machines(self):
        a = _emu([0x1025, HALT])
        b = _emu([0x103F, HALT])
        a.run()
        b.run()
        assert a.regs[0] == 5
        assert b.regs[0] == 0xFFFF

    def test_reset(self):
        emu = _emu([0x1025, HALT])
        emu.run()
        emu.reset()
        assert emu.regs.PC == 0x3000
        assert emu.regs[0] == 0
        assert emu.mem.read(0x3000) == 0
        assert not emu.halted

    def test_reset_after_stop_request_reads_input(self):
        """A reset machine must accept keyboard input again after Ctrl+C."""
        host = BufferedHostIO()
        emu = LC3Emulator(host=host)
        emu.request_stop()
        assert emu.run() == StopReason.INTERRUPTED
        emu.reset()
        assert not host.cancelled
        host.inject_input(b"q")
        emu.load_words([0xF020, HALT])      # GETC ; HALT
        assert emu.run() == StopReason.HALT
        assert emu.regs[0] == ord('q')

    def test_reset_after_interrupted_read(self):
        """Cancel lands during GETC; after reset the keyboard polls again."""
        emu = _emu([0xF020])
        emu.host.cancel()
        assert emu.step() == StopReason.INTERRUPTED
        emu.reset()
        emu.host.inject_input(b"k")
        emu.load_words([
            0xA001,   # x3000: LDI R0, KBSRPTR
            HALT,     # x3001
            0xFE00,   # x3002: KBSRPTR
        ])
        assert emu.run() == StopReason.HALT
        assert emu.regs[0] == 0x8000
        assert emu.mem.read(0xFE02) == ord('k')

    def test_trace_logging(self, caplog):
        emu = LC3Emulator(config=MachineConfig(trace=True))
        emu.load_words([0x1025, HALT])
        logger = logging.getLogger("lc3vm.emu")
        logger.addHandler(caplog.handler)
        try:
            with caplog.at_level(logging.DEBUG, logger="lc3vm.emu"):
                emu.run()
        finally:
            logger.removeHandler(caplog.handler)
        assert "x3000: 1025 ADD" in caplog.text
