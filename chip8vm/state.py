"""CHIP-8 emulator state structures."""

from typing import Callable

import jax
import jax.numpy as jnp
from flax.struct import dataclass, PyTreeNode, field

from chip8vm.constants import (
    FAULT_NONE, FONT_DATA, FONT_START, MEMORY_SIZE, NUM_KEYS, NUM_REGISTERS,
    PROGRAM_START, SCREEN_HEIGHT, SCREEN_WIDTH, STACK_SIZE,
)


def jax_random_byte(key: jax.Array) -> tuple[jax.Array, jnp.ndarray]:
    """Default random source: split the key and draw one uniform byte."""
    key, subkey = jax.random.split(key)
    value = jax.random.randint(subkey, shape=(), minval=0, maxval=256, dtype=jnp.int32)
    return key, jnp.astype(value, jnp.uint8)


@dataclass(frozen=True)
class StackState:
    """Bounded return-address stack for subroutine calls."""
    data: jnp.ndarray = field(default_factory=lambda: jnp.zeros(STACK_SIZE, dtype=jnp.uint16))
    pointer: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.uint8))


class EmulatorState(PyTreeNode):
    """Main CHIP-8 emulator state.

    The display is stored row-major as ``display[y, x]``. ``fault`` holds one of
    the ``FAULT_*`` codes; a non-zero value halts execution.
    """
    rng: jax.Array
    memory: jnp.ndarray = field(default_factory=lambda: jnp.zeros(MEMORY_SIZE, dtype=jnp.uint8))
    pc: jnp.ndarray = field(default_factory=lambda: jnp.asarray(PROGRAM_START, dtype=jnp.uint16))
    display: jnp.ndarray = field(default_factory=lambda: jnp.zeros((SCREEN_HEIGHT, SCREEN_WIDTH), dtype=jnp.bool_))
    stack: StackState = field(default_factory=StackState)
    delay_timer: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.uint8))
    sound_timer: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.uint8))
    keypad: jnp.ndarray = field(default_factory=lambda: jnp.zeros(NUM_KEYS, dtype=jnp.bool_))
    V: jnp.ndarray = field(default_factory=lambda: jnp.zeros(NUM_REGISTERS, dtype=jnp.uint8))
    I: jnp.ndarray = field(default_factory=lambda: jnp.zeros((), dtype=jnp.uint16))
    fault: jnp.ndarray = field(default_factory=lambda: jnp.asarray(FAULT_NONE, dtype=jnp.uint8))
    # 8XY6/8XYE read VY (original interpreter); False shifts VX in place
    shift_from_vy: bool = field(pytree_node=False, default=True)
    random_source: Callable = field(pytree_node=False, default=jax_random_byte)


def create_state(
    rng: jax.Array = jax.random.PRNGKey(0),
    shift_from_vy: bool = True,
    random_source: Callable = jax_random_byte,
) -> EmulatorState:
    """Create initial emulator state with font data loaded."""
    state = EmulatorState(rng, shift_from_vy=shift_from_vy, random_source=random_source)
    return state.replace(memory=state.memory.at[FONT_START:FONT_START + len(FONT_DATA)].set(FONT_DATA))
