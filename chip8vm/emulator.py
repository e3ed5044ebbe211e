"""Main CHIP-8 emulator execution engine."""

import os

import jax
import jax.lax
import jax.numpy as jnp
import numpy as np

from chip8vm.state import EmulatorState, create_state
from chip8vm.decode import Op, decode, disassemble
from chip8vm.constants import (
    FAULT_NONE, FAULT_STACK_OVERFLOW, FAULT_STACK_UNDERFLOW, MAX_PROGRAM_SIZE, MEMORY_SIZE, PROGRAM_START,
)
from chip8vm.errors import (
    ProgramTooLargeError, ProgramUnreadableError, StackOverflowError, StackUnderflowError,
)
from chip8vm.instructions.system import no_op, execute_clear_screen, execute_return
from chip8vm.instructions.control_flow import (
    execute_jump, execute_call, execute_skip_if_equal_immediate,
    execute_skip_if_not_equal_immediate, execute_skip_if_equal_register,
    execute_skip_if_not_equal_register, execute_jump_with_offset,
    execute_skip_if_key_pressed, execute_skip_if_key_not_pressed,
)
from chip8vm.instructions.alu import (
    execute_alu_set, execute_alu_or, execute_alu_and, execute_alu_xor, execute_alu_add,
    execute_alu_sub_xy, execute_alu_shift_right, execute_alu_sub_yx, execute_alu_shift_left,
)
from chip8vm.instructions.memory import execute_set, execute_add, execute_set_index, execute_random
from chip8vm.instructions.display import execute_display
from chip8vm.instructions.misc import (
    execute_get_delay_timer, execute_set_delay_timer, execute_set_sound_timer,
    execute_add_to_index, execute_font_character, execute_bcd_conversion,
    execute_store_registers, execute_load_registers,
)

_HANDLERS = {
    Op.NOP: no_op,
    Op.CLS: execute_clear_screen,
    Op.RET: execute_return,
    Op.JP: execute_jump,
    Op.CALL: execute_call,
    Op.SE_IMM: execute_skip_if_equal_immediate,
    Op.SNE_IMM: execute_skip_if_not_equal_immediate,
    Op.SE_REG: execute_skip_if_equal_register,
    Op.LD_IMM: execute_set,
    Op.ADD_IMM: execute_add,
    Op.LD_REG: execute_alu_set,
    Op.OR: execute_alu_or,
    Op.AND: execute_alu_and,
    Op.XOR: execute_alu_xor,
    Op.ADD_REG: execute_alu_add,
    Op.SUB: execute_alu_sub_xy,
    Op.SHR: execute_alu_shift_right,
    Op.SUBN: execute_alu_sub_yx,
    Op.SHL: execute_alu_shift_left,
    Op.SNE_REG: execute_skip_if_not_equal_register,
    Op.LD_I: execute_set_index,
    Op.JP_V0: execute_jump_with_offset,
    Op.RND: execute_random,
    Op.DRW: execute_display,
    Op.SKP: execute_skip_if_key_pressed,
    Op.SKNP: execute_skip_if_key_not_pressed,
    Op.LD_VX_DT: execute_get_delay_timer,
    Op.LD_DT_VX: execute_set_delay_timer,
    Op.LD_ST_VX: execute_set_sound_timer,
    Op.ADD_I: execute_add_to_index,
    Op.LD_F: execute_font_character,
    Op.LD_B: execute_bcd_conversion,
    Op.STORE_REGS: execute_store_registers,
    Op.LOAD_REGS: execute_load_registers,
}

# Indexed by Op value; a missing handler fails at import time
_HANDLER_TABLE = [_HANDLERS[op] for op in Op]


def execute(state: EmulatorState, instruction: int) -> EmulatorState:
    """Execute single CHIP-8 instruction."""
    decoded_instruction = decode(instruction)
    return jax.lax.switch(decoded_instruction.op, _HANDLER_TABLE, state, decoded_instruction)


def _pack_u16(high: jnp.uint8, low: jnp.uint8) -> jnp.uint16:
    """Pack two bytes into uint16."""
    return (high.astype(jnp.uint16) << 8) | low.astype(jnp.uint16)


def fetch(state: EmulatorState) -> tuple[EmulatorState, jnp.uint16]:
    """Fetch next instruction from memory and advance PC past it."""
    pc = jnp.astype(state.pc, jnp.int32)
    instruction = _pack_u16(state.memory[pc % MEMORY_SIZE], state.memory[(pc + 1) % MEMORY_SIZE])
    return state.replace(pc=jnp.astype(state.pc + 2, jnp.uint16)), instruction


def step(state: EmulatorState) -> EmulatorState:
    """Fetch and execute one instruction. A faulted state is returned unchanged."""
    def _fetch_and_execute(state):
        state, instruction = fetch(state)
        return execute(state, instruction)

    return jax.lax.cond(state.fault == FAULT_NONE, _fetch_and_execute, lambda s: s, state)


def tick_timers(state: EmulatorState) -> EmulatorState:
    """Decrement delay and sound timers once, stopping at zero."""
    return state.replace(
        delay_timer=jnp.astype(jnp.where(state.delay_timer > 0, state.delay_timer - 1, 0), jnp.uint8),
        sound_timer=jnp.astype(jnp.where(state.sound_timer > 0, state.sound_timer - 1, 0), jnp.uint8),
    )


def read_program(source) -> bytes:
    """Read raw program bytes from a path, a bytes-like object or a binary file object.

    Raises:
        ProgramUnreadableError: If the source cannot be read
        ProgramTooLargeError: If the program does not fit above the entry point
    """
    name = None
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
    elif isinstance(source, (str, os.PathLike)):
        name = os.fspath(source)
        try:
            with open(source, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise ProgramUnreadableError(f"Program file '{name}' is invalid: {e}") from e
    elif hasattr(source, 'read'):
        name = getattr(source, 'name', None)
        try:
            data = source.read()
        except OSError as e:
            raise ProgramUnreadableError(f"Could not read program from {source!r}: {e}") from e
        if not isinstance(data, (bytes, bytearray)):
            raise ProgramUnreadableError(f"Program stream {source!r} is not opened in binary mode")
        data = bytes(data)
    else:
        raise ProgramUnreadableError(f"Unsupported program source type: {type(source).__name__}")

    if len(data) > MAX_PROGRAM_SIZE:
        raise ProgramTooLargeError(len(data), MAX_PROGRAM_SIZE, name)
    return data


def load_rom(state: EmulatorState, source) -> EmulatorState:
    """Reinitialize the machine and load program data at 0x200.

    Registers, stack, timers, keypad, display and fault are cleared and the
    font is rewritten. The rng and the static configuration of ``state`` are kept.
    """
    rom_data = read_program(source)
    new_state = create_state(
        state.rng, shift_from_vy=state.shift_from_vy, random_source=state.random_source
    )
    if rom_data:
        rom_array = jnp.asarray(np.frombuffer(rom_data, dtype=np.uint8))
        new_memory = new_state.memory.at[PROGRAM_START:PROGRAM_START + len(rom_data)].set(rom_array)
        new_state = new_state.replace(memory=new_memory)
    return new_state


_FAULT_ERRORS = {
    FAULT_STACK_OVERFLOW: StackOverflowError,
    FAULT_STACK_UNDERFLOW: StackUnderflowError,
}


def raise_for_fault(state: EmulatorState) -> None:
    """Raise the ``MachineFault`` recorded in ``state``, if any.

    A faulting instruction leaves PC just past itself, so the faulting address
    is PC - 2.
    """
    fault = int(state.fault)
    if fault == FAULT_NONE:
        return
    address = (int(state.pc) - 2) & 0xFFFF
    instruction = (
        (int(state.memory[address % MEMORY_SIZE]) << 8)
        | int(state.memory[(address + 1) % MEMORY_SIZE])
    )
    raise _FAULT_ERRORS[fault](address, instruction, disassemble(instruction))
