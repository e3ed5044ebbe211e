"""Exceptions raised by the CHIP-8 machine."""

from typing import Optional


class Chip8Error(Exception):
    """Base class for all machine errors."""


class LoadError(Chip8Error):
    """A program could not be loaded. The machine must not be stepped afterwards."""


class ProgramUnreadableError(LoadError):
    """The program source is missing, unreadable or of an unsupported type."""


class ProgramTooLargeError(LoadError):
    """The program does not fit between the entry point and the end of memory."""

    def __init__(self, size: int, limit: int, name: Optional[str] = None):
        self.size = size
        self.limit = limit
        self.name = name
        source = f"Program '{name}'" if name else "Program"
        super().__init__(f"{source} is too large: {size} bytes (limit {limit})")


class MachineFault(Chip8Error):
    """Execution halted on a fault raised by an instruction.

    Attributes:
        address: Address of the faulting instruction
        instruction: The faulting 16-bit instruction word
    """

    description = "machine fault"

    def __init__(self, address: int, instruction: int, text: str = ""):
        self.address = address
        self.instruction = instruction
        detail = f" ({text})" if text else ""
        super().__init__(
            f"{self.description} at 0x{address:03X}: 0x{instruction:04X}{detail}"
        )


class StackOverflowError(MachineFault):
    """A subroutine call was made with the call stack already full."""

    description = "stack overflow"


class StackUnderflowError(MachineFault):
    """A subroutine return was made with an empty call stack."""

    description = "stack underflow"


class NoProgramLoadedError(Chip8Error):
    """The machine was stepped or reset without a successfully loaded program."""
