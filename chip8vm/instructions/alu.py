"""CHIP-8 ALU operations (8xxx).

Each ``alu_*`` function returns ``(result, flag)``. A ``None`` flag means the
operation leaves VF alone. Arithmetic writes VF after VX, so ``8FY4`` ends
with the flag in VF; shifts write VF before VX, so ``8FY6`` ends with the
shifted value.
"""

import jax.numpy as jnp
from chip8vm.constants import FLAG_REGISTER
from chip8vm.state import EmulatorState
from chip8vm.decode import DecodedInstruction


def alu_set(vx, vy):
    """8XY0 - Set: VX = VY."""
    return vy, None


def alu_or(vx, vy):
    """8XY1 - Binary OR: VX |= VY."""
    return vx | vy, None


def alu_and(vx, vy):
    """8XY2 - Binary AND: VX &= VY."""
    return vx & vy, None


def alu_xor(vx, vy):
    """8XY3 - Logical XOR: VX ^= VY."""
    return vx ^ vy, None


def alu_add(vx, vy):
    """8XY4 - Add: VX += VY, set carry flag."""
    result = jnp.astype(vx, jnp.int32) + jnp.astype(vy, jnp.int32)
    carry = jnp.astype(result > 255, jnp.uint8)
    return result & 0xFF, carry


def alu_sub_xy(vx, vy):
    """8XY5 - Subtract: VX -= VY, VF = 1 when no borrow."""
    not_borrow = jnp.astype(vx >= vy, jnp.uint8)
    result = (jnp.astype(vx, jnp.int32) - jnp.astype(vy, jnp.int32)) & 0xFF
    return result, not_borrow


def alu_sub_yx(vx, vy):
    """8XY7 - Subtract: VX = VY - VX, VF = 1 when no borrow."""
    not_borrow = jnp.astype(vy >= vx, jnp.uint8)
    result = (jnp.astype(vy, jnp.int32) - jnp.astype(vx, jnp.int32)) & 0xFF
    return result, not_borrow


def alu_shift_right(source):
    """8XY6 - Shift right, VF = shifted-out bit."""
    return source >> 1, source & 1


def alu_shift_left(source):
    """8XYE - Shift left, VF = shifted-out bit."""
    return (jnp.astype(source, jnp.int32) << 1) & 0xFF, (source & 0x80) >> 7


def _write_result(
    state: EmulatorState, instruction: DecodedInstruction, result, flag, flag_first: bool = False
) -> EmulatorState:
    result = jnp.astype(result, jnp.uint8)
    if flag is None:
        return state.replace(V=state.V.at[instruction.x].set(result))
    flag = jnp.astype(flag, jnp.uint8)
    if flag_first:
        new_V = state.V.at[FLAG_REGISTER].set(flag).at[instruction.x].set(result)
    else:
        new_V = state.V.at[instruction.x].set(result).at[FLAG_REGISTER].set(flag)
    return state.replace(V=new_V)


def make_alu_instruction(operation):
    """Factory for two-operand 8XYN instructions."""
    def alu_instruction(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
        result, flag = operation(state.V[instruction.x], state.V[instruction.y])
        return _write_result(state, instruction, result, flag)
    return alu_instruction


def make_shift_instruction(operation):
    """Factory for 8XY6/8XYE; the shifted register depends on ``state.shift_from_vy``."""
    def shift_instruction(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
        source = state.V[instruction.y] if state.shift_from_vy else state.V[instruction.x]
        result, flag = operation(source)
        return _write_result(state, instruction, result, flag, flag_first=True)
    return shift_instruction


execute_alu_set = make_alu_instruction(alu_set)
execute_alu_or = make_alu_instruction(alu_or)
execute_alu_and = make_alu_instruction(alu_and)
execute_alu_xor = make_alu_instruction(alu_xor)
execute_alu_add = make_alu_instruction(alu_add)
execute_alu_sub_xy = make_alu_instruction(alu_sub_xy)
execute_alu_sub_yx = make_alu_instruction(alu_sub_yx)
execute_alu_shift_right = make_shift_instruction(alu_shift_right)
execute_alu_shift_left = make_shift_instruction(alu_shift_left)
