"""Test configuration and fixtures for CHIP-8 emulator tests."""

import pytest
import jax.numpy as jnp
from chip8vm import Machine, create_state


@pytest.fixture
def fresh_state():
    """Provide a fresh emulator state for each test."""
    return create_state()


@pytest.fixture
def shift_vx_state():
    """Provide a fresh state that shifts VX in place for 8XY6/8XYE."""
    return create_state(shift_from_vy=False)


@pytest.fixture
def machine():
    """Provide an unloaded machine."""
    return Machine()


def setup_sprite_in_memory(state, address, sprite_bytes):
    """Helper to put sprite data in memory."""
    return state.replace(
        memory=state.memory.at[address:address+len(sprite_bytes)].set(
            jnp.array(sprite_bytes, dtype=jnp.uint8)
        )
    )


def program(*instructions):
    """Assemble instruction words into big-endian program bytes."""
    return b"".join(word.to_bytes(2, "big") for word in instructions)


def constant_random_source(value):
    """Random source that always yields ``value`` and leaves the key unchanged."""
    return lambda key: (key, jnp.uint8(value))
