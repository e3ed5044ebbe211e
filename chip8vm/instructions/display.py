"""CHIP-8 display operations."""

import jax.numpy as jnp
from chip8vm.state import EmulatorState
from chip8vm.decode import DecodedInstruction
from chip8vm.constants import FLAG_REGISTER, MEMORY_SIZE, SCREEN_WIDTH, SCREEN_HEIGHT

# Pre-computed coordinate grids, indexed [y, x] like the display
yy, xx = jnp.meshgrid(jnp.arange(SCREEN_HEIGHT), jnp.arange(SCREEN_WIDTH), indexing='ij')


def execute_display(state: EmulatorState, instruction: DecodedInstruction) -> EmulatorState:
    """DXYN - XOR an 8xN sprite from memory[I] at (VX, VY).

    The origin wraps around the screen, the sprite itself is clipped at the
    right and bottom edges. VF is set when any lit pixel is turned off.
    """
    sprite_x = jnp.astype(state.V[instruction.x], jnp.int32) % SCREEN_WIDTH
    sprite_y = jnp.astype(state.V[instruction.y], jnp.int32) % SCREEN_HEIGHT

    row_offset = yy - sprite_y
    col_offset = xx - sprite_x
    in_sprite = (col_offset >= 0) & (col_offset < 8) & (row_offset >= 0) & (row_offset < instruction.n)

    addresses = (jnp.astype(state.I, jnp.int32) + jnp.clip(row_offset, 0, 15)) % MEMORY_SIZE
    sprite_bytes = jnp.astype(state.memory[addresses], jnp.int32)
    sprite = ((sprite_bytes >> (7 - jnp.clip(col_offset, 0, 7))) & 1).astype(jnp.bool_) & in_sprite

    return state.replace(
        display=state.display ^ sprite,
        V=state.V.at[FLAG_REGISTER].set(jnp.astype(jnp.any(state.display & sprite), jnp.uint8))
    )
