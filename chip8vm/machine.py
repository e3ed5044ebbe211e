"""Stateful CHIP-8 machine for drivers.

``Machine`` owns an ``EmulatorState`` and advances it with the pure, jitted
core. Faults recorded by the core are raised here as ``MachineFault``
exceptions; a faulted machine stays halted until it is reset or reloaded.
"""

import os
from typing import Callable, Optional

import jax
import jax.numpy as jnp
import numpy as np

from chip8vm.constants import FAULT_NONE, MEMORY_SIZE, NUM_KEYS, STACK_SIZE
from chip8vm.decode import disassemble
from chip8vm.emulator import load_rom, raise_for_fault, read_program, step, tick_timers
from chip8vm.errors import LoadError, MachineFault, NoProgramLoadedError
from chip8vm.logging import MachineLogger
from chip8vm.runner import run_frame
from chip8vm.state import EmulatorState, create_state, jax_random_byte

_step = jax.jit(step)
_tick_timers = jax.jit(tick_timers)


class Machine:
    """A CHIP-8 machine: load a program, then step it and tick its timers.

    Args:
        seed: Seed of the PRNG key consumed by CXNN; reset restores it
        shift_from_vy: 8XY6/8XYE shift VY (True) or VX in place (False)
        random_source: Callable ``key -> (key, byte)`` replacing the default
            JAX random byte generator, e.g. for deterministic tests
        logger: Logger for load/reset/fault events
    """

    def __init__(
        self,
        seed: int = 0,
        shift_from_vy: bool = True,
        random_source: Optional[Callable] = None,
        logger: Optional[MachineLogger] = None,
    ):
        self.seed = seed
        self.logger = logger or MachineLogger(log_level="WARNING")
        self._state = create_state(
            jax.random.PRNGKey(seed),
            shift_from_vy=shift_from_vy,
            random_source=random_source or jax_random_byte,
        )
        self._program_source = None
        self._program_name = None
        self._loaded = False

    @property
    def state(self) -> EmulatorState:
        return self._state

    @property
    def program_name(self) -> Optional[str]:
        return self._program_name

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load_program(self, source) -> None:
        """Load a program from a path, bytes or binary stream and reinitialize the machine.

        Raises:
            LoadError: If the program cannot be read or is too large. The
                machine is left unloaded and cannot be stepped.
        """
        self._loaded = False
        self._program_source = None
        self._program_name = None
        rom_data = self._read(source)

        if isinstance(source, (str, os.PathLike)):
            self._program_source = source
            self._program_name = os.fspath(source)
        else:
            # Streams cannot be re-read, keep the bytes for reset
            self._program_source = rom_data
            self._program_name = getattr(source, 'name', None) or "<buffer>"

        self._install(rom_data)
        self.logger.log_program_loaded(self._program_name, len(rom_data))

    def reset(self) -> None:
        """Reload the current program, restoring the exact post-load state.

        Raises:
            NoProgramLoadedError: If no program was ever loaded
            LoadError: If a program file can no longer be read
        """
        if self._program_source is None:
            raise NoProgramLoadedError("No program to reset")
        self._loaded = False
        self._install(self._read(self._program_source))
        self.logger.log_reset(self._program_name)

    def _read(self, source) -> bytes:
        try:
            return read_program(source)
        except LoadError as e:
            self.logger.log_load_failed(e)
            raise

    def _install(self, rom_data: bytes) -> None:
        self._state = load_rom(self._state.replace(rng=jax.random.PRNGKey(self.seed)), rom_data)
        self._loaded = True

    def _check_runnable(self) -> None:
        if not self._loaded:
            raise NoProgramLoadedError("Load a program before running the machine")
        if self.halted:
            raise_for_fault(self._state)

    def _check_fault(self) -> None:
        try:
            raise_for_fault(self._state)
        except MachineFault as e:
            self.logger.log_fault(e)
            raise

    def step(self) -> None:
        """Execute exactly one instruction.

        Raises:
            NoProgramLoadedError: If no program is loaded
            StackOverflowError: On a call with a full stack
            StackUnderflowError: On a return with an empty stack
        """
        self._check_runnable()
        self._state = _step(self._state)
        self._check_fault()

    def tick_timers(self) -> None:
        """Decrement the delay and sound timers once."""
        self._state = _tick_timers(self._state)

    def run_frame(self, instructions_per_frame: int) -> None:
        """Execute ``instructions_per_frame`` instructions, then tick the timers once."""
        self._check_runnable()
        self._state = run_frame(self._state, instructions_per_frame)
        self._check_fault()

    def press_key(self, key: int) -> None:
        self._set_key(key, True)

    def release_key(self, key: int) -> None:
        self._set_key(key, False)

    def _set_key(self, key: int, pressed: bool) -> None:
        if not 0 <= key < NUM_KEYS:
            raise ValueError(f"Key must be in 0x0-0xF, got {key}")
        self._state = self._state.replace(keypad=self._state.keypad.at[key].set(pressed))

    def set_keypad(self, pressed) -> None:
        """Replace all 16 key states at once."""
        keypad = np.asarray(pressed, dtype=np.bool_)
        if keypad.shape != (NUM_KEYS,):
            raise ValueError(f"Expected {NUM_KEYS} key states, got shape {keypad.shape}")
        self._state = self._state.replace(keypad=jnp.asarray(keypad))

    @property
    def framebuffer(self) -> np.ndarray:
        """Read-only (32, 64) boolean view of the display, indexed [y, x]."""
        frame = np.array(self._state.display, dtype=np.bool_)
        frame.flags.writeable = False
        return frame

    @property
    def registers(self) -> tuple:
        return tuple(int(v) for v in self._state.V)

    @property
    def pc(self) -> int:
        return int(self._state.pc)

    @property
    def index(self) -> int:
        return int(self._state.I)

    @property
    def delay_timer(self) -> int:
        return int(self._state.delay_timer)

    @property
    def sound_timer(self) -> int:
        return int(self._state.sound_timer)

    @property
    def sound_active(self) -> bool:
        return self.sound_timer > 0

    @property
    def stack_depth(self) -> int:
        return int(self._state.stack.pointer)

    @property
    def stack_capacity(self) -> int:
        return STACK_SIZE

    @property
    def halted(self) -> bool:
        return int(self._state.fault) != FAULT_NONE

    @property
    def current_instruction(self) -> str:
        """Disassembly of the instruction at PC."""
        pc = self.pc
        word = (int(self._state.memory[pc % MEMORY_SIZE]) << 8) | int(self._state.memory[(pc + 1) % MEMORY_SIZE])
        return disassemble(word)
