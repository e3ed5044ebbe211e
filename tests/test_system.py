"""Tests for system instructions, stack handling and fetch/step."""

import jax.numpy as jnp
import pytest

from chip8vm import (
    STACK_SIZE, StackOverflowError, StackUnderflowError, execute, fetch, step, tick_timers,
)
from chip8vm.constants import FAULT_NONE, FAULT_STACK_OVERFLOW, FAULT_STACK_UNDERFLOW
from chip8vm.emulator import raise_for_fault
from chip8vm.stack import pop, push
from chip8vm.state import StackState
from conftest import setup_sprite_in_memory


class TestStack:

    def test_push_pop(self):
        stack, ok = push(StackState(), jnp.uint16(0x234))
        assert ok
        assert stack.pointer == 1

        stack, address, ok = pop(stack)
        assert ok
        assert address == 0x234
        assert stack.pointer == 0

    def test_lifo_order(self):
        stack = StackState()
        for address in (0x200, 0x300, 0x400):
            stack, _ = push(stack, jnp.uint16(address))

        popped = []
        for _ in range(3):
            stack, address, _ = pop(stack)
            popped.append(int(address))

        assert popped == [0x400, 0x300, 0x200]

    def test_push_full_stack_is_refused(self):
        stack = StackState()
        for i in range(STACK_SIZE):
            stack, ok = push(stack, jnp.uint16(0x200 + 2 * i))
            assert ok

        full_data = stack.data
        stack, ok = push(stack, jnp.uint16(0xABC))

        assert not ok
        assert stack.pointer == STACK_SIZE
        assert jnp.array_equal(stack.data, full_data)

    def test_pop_empty_stack_is_refused(self):
        stack, address, ok = pop(StackState())

        assert not ok
        assert address == 0
        assert stack.pointer == 0


class TestCallReturn:

    def test_call_pushes_return_address(self, fresh_state):
        """2NNN - The return address is the instruction after the call."""
        state = fresh_state.replace(pc=jnp.uint16(0x202))  # as after fetching 0x200

        state = execute(state, 0x2400)

        assert state.pc == 0x400
        assert state.stack.pointer == 1
        assert state.stack.data[0] == 0x202

    def test_return_pops_address(self, fresh_state):
        state = fresh_state.replace(pc=jnp.uint16(0x202))
        state = execute(state, 0x2400)

        state = execute(state, 0x00EE)

        assert state.pc == 0x202
        assert state.stack.pointer == 0
        assert state.fault == FAULT_NONE

    def test_call_on_full_stack_faults(self, fresh_state):
        state = fresh_state
        for _ in range(STACK_SIZE):
            state = execute(state, 0x2300)
        assert state.fault == FAULT_NONE

        pc_before = state.pc
        state = execute(state, 0x2300)

        assert state.fault == FAULT_STACK_OVERFLOW
        assert state.pc == pc_before
        assert state.stack.pointer == STACK_SIZE

    def test_return_on_empty_stack_faults(self, fresh_state):
        state = execute(fresh_state, 0x00EE)

        assert state.fault == FAULT_STACK_UNDERFLOW
        assert state.pc == fresh_state.pc
        assert state.stack.pointer == 0

    def test_unknown_zero_instruction_is_noop(self, fresh_state):
        """0NNN machine-code calls are ignored."""
        state = execute(fresh_state, 0x0123)

        assert state.pc == fresh_state.pc
        assert state.stack.pointer == 0
        assert state.fault == FAULT_NONE


class TestFetchStep:

    def test_fetch_is_big_endian(self, fresh_state):
        state = setup_sprite_in_memory(fresh_state, 0x200, [0x12, 0x34])

        state, instruction = fetch(state)

        assert instruction == 0x1234
        assert state.pc == 0x202

    def test_fetch_wraps_around_memory(self, fresh_state):
        state = fresh_state.replace(memory=fresh_state.memory.at[0xFFF].set(0xA1))
        state = state.replace(pc=jnp.uint16(0xFFF))

        _, instruction = fetch(state)

        assert instruction == 0xA1F0  # low byte from 0x000 (glyph 0)

    def test_step_advances_then_executes(self, fresh_state):
        state = setup_sprite_in_memory(fresh_state, 0x200, [0x63, 0x2A])

        state = step(state)

        assert state.pc == 0x202
        assert state.V[3] == 0x2A

    def test_step_jump_overrides_advance(self, fresh_state):
        state = setup_sprite_in_memory(fresh_state, 0x200, [0x13, 0x00])

        state = step(state)

        assert state.pc == 0x300

    def test_step_on_faulted_state_does_nothing(self, fresh_state):
        state = setup_sprite_in_memory(fresh_state, 0x200, [0x00, 0xEE, 0x60, 0x01])
        state = step(state)
        assert state.fault == FAULT_STACK_UNDERFLOW

        halted = step(state)

        assert halted.pc == state.pc
        assert halted.V[0] == 0

    def test_step_does_not_touch_timers(self, fresh_state):
        state = fresh_state.replace(delay_timer=jnp.uint8(5), sound_timer=jnp.uint8(3))

        state = step(state)

        assert state.delay_timer == 5
        assert state.sound_timer == 3


class TestTickTimers:

    def test_tick_decrements(self, fresh_state):
        state = fresh_state.replace(delay_timer=jnp.uint8(2), sound_timer=jnp.uint8(1))

        state = tick_timers(state)

        assert state.delay_timer == 1
        assert state.sound_timer == 0

    def test_tick_stops_at_zero(self, fresh_state):
        state = tick_timers(tick_timers(fresh_state))

        assert state.delay_timer == 0
        assert state.sound_timer == 0

    def test_tick_leaves_pc(self, fresh_state):
        state = tick_timers(fresh_state)

        assert state.pc == fresh_state.pc


class TestRaiseForFault:

    def test_no_fault_does_not_raise(self, fresh_state):
        raise_for_fault(fresh_state)

    def test_underflow_reports_faulting_instruction(self, fresh_state):
        state = setup_sprite_in_memory(fresh_state, 0x200, [0x00, 0xEE])
        state = step(state)

        with pytest.raises(StackUnderflowError) as excinfo:
            raise_for_fault(state)

        assert excinfo.value.address == 0x200
        assert excinfo.value.instruction == 0x00EE
        assert "RET" in str(excinfo.value)

    def test_overflow_reports_faulting_instruction(self, fresh_state):
        # 0x200: CALL 0x200, recursing until the stack is full
        state = setup_sprite_in_memory(fresh_state, 0x200, [0x22, 0x00])
        for _ in range(STACK_SIZE + 1):
            state = step(state)

        with pytest.raises(StackOverflowError) as excinfo:
            raise_for_fault(state)

        assert excinfo.value.address == 0x200
        assert excinfo.value.instruction == 0x2200
