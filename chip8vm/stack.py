"""CHIP-8 stack operations.

Both operations return a success flag instead of touching memory outside the
stack; the caller records a fault when the flag is false.
"""

import jax.numpy as jnp
from chip8vm.constants import STACK_SIZE
from chip8vm.state import StackState


def push(stack: StackState, address: jnp.ndarray) -> tuple[StackState, jnp.ndarray]:
    """Push address onto stack. Leaves the stack untouched when it is full."""
    ok = stack.pointer < STACK_SIZE
    slot = jnp.minimum(stack.pointer, STACK_SIZE - 1)
    new_data = jnp.where(ok, stack.data.at[slot].set(jnp.astype(address, jnp.uint16)), stack.data)
    new_pointer = jnp.where(ok, stack.pointer + 1, stack.pointer)
    return stack.replace(data=new_data, pointer=jnp.astype(new_pointer, jnp.uint8)), ok


def pop(stack: StackState) -> tuple[StackState, jnp.ndarray, jnp.ndarray]:
    """Pop address from stack. Returns address 0 and leaves the stack untouched when empty."""
    ok = stack.pointer > 0
    new_pointer = jnp.astype(jnp.where(ok, stack.pointer - 1, stack.pointer), jnp.uint8)
    popped_address = jnp.where(ok, stack.data[new_pointer], 0)
    new_data = jnp.where(ok, stack.data.at[new_pointer].set(0), stack.data)
    return (
        stack.replace(data=new_data, pointer=new_pointer),
        jnp.astype(popped_address, jnp.uint16),
        ok,
    )
