"""CHIP-8 virtual machine package."""

from chip8vm.state import EmulatorState, create_state
from chip8vm.emulator import execute, fetch, step, tick_timers, load_rom, read_program
from chip8vm.decode import DecodedInstruction, Op, decode, disassemble
from chip8vm.constants import (
    MEMORY_SIZE, PROGRAM_START, MAX_PROGRAM_SIZE, FONT_START,
    SCREEN_WIDTH, SCREEN_HEIGHT, STACK_SIZE,
)
from chip8vm.errors import (
    Chip8Error, LoadError, ProgramUnreadableError, ProgramTooLargeError,
    MachineFault, StackOverflowError, StackUnderflowError, NoProgramLoadedError,
)
from chip8vm.machine import Machine

__all__ = [
    "EmulatorState",
    "create_state",
    "fetch",
    "execute",
    "step",
    "tick_timers",
    "load_rom",
    "read_program",
    "DecodedInstruction",
    "Op",
    "decode",
    "disassemble",
    "MEMORY_SIZE",
    "PROGRAM_START",
    "MAX_PROGRAM_SIZE",
    "FONT_START",
    "SCREEN_WIDTH",
    "SCREEN_HEIGHT",
    "STACK_SIZE",
    "Chip8Error",
    "LoadError",
    "ProgramUnreadableError",
    "ProgramTooLargeError",
    "MachineFault",
    "StackOverflowError",
    "StackUnderflowError",
    "NoProgramLoadedError",
    "Machine",
]
