"""CHIP-8 system instructions (0x0xxx)."""

import jax.numpy as jnp
from chip8vm.constants import FAULT_STACK_UNDERFLOW
from chip8vm.state import EmulatorState
from chip8vm.decode import DecodedInstruction
from chip8vm.stack import pop


def no_op(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """No operation."""
    return state


def execute_clear_screen(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """00E0 - Clear display."""
    return state.replace(display=jnp.zeros_like(state.display))


def execute_return(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """00EE - Return from subroutine. Faults on an empty stack."""
    stack, address, ok = pop(state.stack)
    return state.replace(
        stack=stack,
        pc=jnp.astype(jnp.where(ok, address, state.pc), jnp.uint16),
        fault=jnp.astype(jnp.where(ok, state.fault, FAULT_STACK_UNDERFLOW), jnp.uint8),
    )
