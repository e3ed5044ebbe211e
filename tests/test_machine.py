"""Tests for the stateful Machine facade."""

import io

import numpy as np
import pytest

from chip8vm import (
    MAX_PROGRAM_SIZE, PROGRAM_START, STACK_SIZE, LoadError, Machine, NoProgramLoadedError,
    ProgramTooLargeError, ProgramUnreadableError, StackOverflowError, StackUnderflowError,
)
from conftest import constant_random_source, program


class TestLoadProgram:

    def test_load_bytes(self, machine):
        machine.load_program(program(0x6005, 0x7003))

        assert machine.loaded
        assert machine.pc == PROGRAM_START
        assert machine.program_name == "<buffer>"
        assert int(machine.state.memory[PROGRAM_START]) == 0x60
        assert int(machine.state.memory[PROGRAM_START + 3]) == 0x03

    def test_load_path(self, machine, tmp_path):
        rom = tmp_path / "demo.ch8"
        rom.write_bytes(program(0x00E0))

        machine.load_program(rom)

        assert machine.loaded
        assert machine.program_name == str(rom)

    def test_load_binary_stream(self, machine):
        machine.load_program(io.BytesIO(program(0x6142)))
        machine.step()

        assert machine.registers[1] == 0x42

    def test_load_empty_program(self, machine):
        machine.load_program(b"")

        assert machine.loaded
        assert machine.pc == PROGRAM_START

    def test_exact_size_limit_loads(self, machine):
        data = bytes(range(256)) * (MAX_PROGRAM_SIZE // 256)

        machine.load_program(data)

        assert len(data) == MAX_PROGRAM_SIZE
        assert int(machine.state.memory[-1]) == data[-1]

    def test_one_byte_over_is_too_large(self, machine):
        with pytest.raises(ProgramTooLargeError) as excinfo:
            machine.load_program(bytes(MAX_PROGRAM_SIZE + 1))

        assert excinfo.value.size == MAX_PROGRAM_SIZE + 1
        assert excinfo.value.limit == MAX_PROGRAM_SIZE
        assert not machine.loaded

    def test_missing_file_is_unreadable(self, machine, tmp_path):
        with pytest.raises(ProgramUnreadableError):
            machine.load_program(tmp_path / "missing.ch8")

    def test_directory_is_unreadable(self, machine, tmp_path):
        with pytest.raises(ProgramUnreadableError):
            machine.load_program(tmp_path)

    def test_text_stream_is_unreadable(self, machine):
        with pytest.raises(ProgramUnreadableError):
            machine.load_program(io.StringIO("6005"))

    def test_unsupported_type_is_unreadable(self, machine):
        with pytest.raises(ProgramUnreadableError):
            machine.load_program(42)

    def test_load_errors_share_a_base(self):
        assert issubclass(ProgramUnreadableError, LoadError)
        assert issubclass(ProgramTooLargeError, LoadError)

    def test_failed_load_leaves_machine_unrunnable(self, machine):
        machine.load_program(program(0x6001))
        with pytest.raises(ProgramTooLargeError):
            machine.load_program(bytes(MAX_PROGRAM_SIZE + 1))

        with pytest.raises(NoProgramLoadedError):
            machine.step()

    def test_failed_load_forgets_previous_program(self, machine):
        machine.load_program(program(0x6001))
        with pytest.raises(ProgramUnreadableError):
            machine.load_program(42)

        assert machine.program_name is None
        with pytest.raises(NoProgramLoadedError):
            machine.reset()
        assert not machine.loaded

    def test_load_clears_previous_run(self, machine):
        machine.load_program(program(0x6007, 0xF015, 0xA123))
        for _ in range(3):
            machine.step()

        machine.load_program(program(0x1200))

        assert machine.registers == (0,) * 16
        assert machine.index == 0
        assert machine.delay_timer == 0
        assert machine.pc == PROGRAM_START


class TestStep:

    def test_step_without_program(self, machine):
        with pytest.raises(NoProgramLoadedError):
            machine.step()

    def test_run_frame_without_program(self, machine):
        with pytest.raises(NoProgramLoadedError):
            machine.run_frame(10)

    def test_step_advances_pc_by_two(self, machine):
        machine.load_program(program(0x6005, 0x7003))

        machine.step()
        assert machine.pc == PROGRAM_START + 2
        machine.step()
        assert machine.pc == PROGRAM_START + 4
        assert machine.registers[0] == 8

    def test_step_does_not_tick_timers(self, machine):
        machine.load_program(program(0x6009, 0xF015, 0xF018, 0x6000))
        for _ in range(4):
            machine.step()

        assert machine.delay_timer == 9
        assert machine.sound_timer == 9

    def test_subroutine_round_trip(self, machine):
        # 0x200: CALL 0x206 / 0x202: LD V1, 0x01 / 0x204: JP 0x204 / 0x206: LD V2, 0x02 / 0x208: RET
        machine.load_program(program(0x2206, 0x6101, 0x1204, 0x6202, 0x00EE))

        machine.step()
        assert machine.pc == 0x206
        assert machine.stack_depth == 1
        machine.step()
        machine.step()
        assert machine.pc == 0x202
        assert machine.stack_depth == 0
        machine.step()

        assert machine.registers[1] == 1
        assert machine.registers[2] == 2

    def test_current_instruction(self, machine):
        machine.load_program(program(0x6005, 0xD015))

        assert machine.current_instruction == "LD V0, 0x05"
        machine.step()
        assert machine.current_instruction == "DRW V0, V1, 5"


class TestFaults:

    def test_stack_overflow(self, machine):
        machine.load_program(program(0x2200))  # CALL 0x200 forever
        for _ in range(STACK_SIZE):
            machine.step()
        assert machine.stack_depth == STACK_SIZE

        with pytest.raises(StackOverflowError) as excinfo:
            machine.step()

        assert excinfo.value.address == PROGRAM_START
        assert machine.halted
        assert machine.stack_depth == STACK_SIZE

    def test_stack_underflow(self, machine):
        machine.load_program(program(0x00EE))

        with pytest.raises(StackUnderflowError) as excinfo:
            machine.step()

        assert excinfo.value.address == PROGRAM_START
        assert excinfo.value.instruction == 0x00EE
        assert machine.halted

    def test_halted_machine_keeps_raising(self, machine):
        machine.load_program(program(0x00EE, 0x6001))
        with pytest.raises(StackUnderflowError):
            machine.step()

        with pytest.raises(StackUnderflowError):
            machine.step()
        with pytest.raises(StackUnderflowError):
            machine.run_frame(5)

        assert machine.registers[0] == 0

    def test_fault_inside_frame(self, machine):
        machine.load_program(program(0x6001, 0x00EE, 0x6002))

        with pytest.raises(StackUnderflowError) as excinfo:
            machine.run_frame(10)

        assert excinfo.value.address == PROGRAM_START + 2
        assert machine.registers[0] == 1

    def test_reset_clears_fault(self, machine):
        machine.load_program(program(0x00EE))
        with pytest.raises(StackUnderflowError):
            machine.step()

        machine.reset()

        assert not machine.halted
        assert machine.pc == PROGRAM_START


class TestReset:

    def test_reset_without_program(self, machine):
        with pytest.raises(NoProgramLoadedError):
            machine.reset()

    def test_reset_restores_post_load_state(self, machine):
        machine.load_program(program(0x6005, 0xA300, 0xF015, 0xD005))
        for _ in range(4):
            machine.step()
        machine.press_key(3)

        machine.reset()

        assert machine.pc == PROGRAM_START
        assert machine.registers == (0,) * 16
        assert machine.index == 0
        assert machine.delay_timer == 0
        assert not machine.framebuffer.any()
        assert not machine.state.keypad.any()
        assert int(machine.state.memory[PROGRAM_START]) == 0x60

    def test_reset_replays_random_sequence(self, machine):
        machine.load_program(program(0xC0FF, 0xC1FF))
        machine.step()
        machine.step()
        first = machine.registers[:2]

        machine.reset()
        machine.step()
        machine.step()

        assert machine.registers[:2] == first

    def test_reset_from_stream_source(self, machine):
        machine.load_program(io.BytesIO(program(0x6142)))
        machine.step()

        machine.reset()
        machine.step()

        assert machine.registers[1] == 0x42

    def test_reset_after_file_removed(self, machine, tmp_path):
        rom = tmp_path / "gone.ch8"
        rom.write_bytes(program(0x6001))
        machine.load_program(rom)
        rom.unlink()

        with pytest.raises(ProgramUnreadableError):
            machine.reset()
        assert not machine.loaded


class TestTimersAndKeys:

    def test_tick_timers(self, machine):
        machine.load_program(program(0x6002, 0xF015, 0xF018))
        for _ in range(3):
            machine.step()
        assert machine.sound_active

        machine.tick_timers()
        assert machine.delay_timer == 1
        assert machine.sound_timer == 1

        machine.tick_timers()
        machine.tick_timers()
        assert machine.delay_timer == 0
        assert machine.sound_timer == 0
        assert not machine.sound_active

    def test_run_frame_ticks_once(self, machine):
        # LD V0, 0x0A / LD DT, V0 / JP 0x204
        machine.load_program(program(0x600A, 0xF015, 0x1204))

        machine.run_frame(10)

        assert machine.delay_timer == 9
        assert machine.pc == 0x204

    def test_key_skip(self, machine):
        # LD V0, 0x0B / SKP V0 / LD V1, 0x01 / LD V2, 0x02
        machine.load_program(program(0x600B, 0xE09E, 0x6101, 0x6202))
        machine.press_key(0xB)

        for _ in range(3):
            machine.step()

        assert machine.registers[1] == 0
        assert machine.registers[2] == 2

    def test_release_key(self, machine):
        machine.press_key(4)
        machine.release_key(4)

        assert not machine.state.keypad[4]

    @pytest.mark.parametrize("key", [-1, 16])
    def test_key_out_of_range(self, machine, key):
        with pytest.raises(ValueError):
            machine.press_key(key)

    def test_set_keypad(self, machine):
        pressed = [False] * 16
        pressed[0xF] = True

        machine.set_keypad(pressed)

        assert machine.state.keypad[0xF]
        assert not machine.state.keypad[0]

    def test_set_keypad_wrong_shape(self, machine):
        with pytest.raises(ValueError):
            machine.set_keypad([True] * 8)


class TestObservation:

    def test_framebuffer_shape_and_read_only(self, machine):
        machine.load_program(program(0xD005))  # glyph 0 at (0, 0)
        machine.step()

        frame = machine.framebuffer

        assert frame.shape == (32, 64)
        assert frame.dtype == np.bool_
        assert frame[0, 0] and frame[0, 3] and not frame[1, 1]
        with pytest.raises(ValueError):
            frame[0, 0] = False

    def test_stack_capacity(self, machine):
        assert machine.stack_capacity == STACK_SIZE

    def test_injected_random_source(self):
        machine = Machine(random_source=constant_random_source(0x5A))
        machine.load_program(program(0xC3F0, 0xC40F))

        machine.step()
        machine.step()

        assert machine.registers[3] == 0x50
        assert machine.registers[4] == 0x0A

    def test_shift_mode(self):
        machine = Machine(shift_from_vy=False)
        machine.load_program(program(0x6108, 0x6203, 0x8126))
        for _ in range(3):
            machine.step()

        assert machine.registers[1] == 0x04

    def test_shift_mode_survives_reset(self):
        machine = Machine(shift_from_vy=False)
        machine.load_program(program(0x6108, 0x6203, 0x8126))
        machine.reset()
        for _ in range(3):
            machine.step()

        assert machine.registers[1] == 0x04
