"""CHIP-8 instruction decoding.

Every 16-bit word is classified into one ``Op`` variant. The executor switches
on ``Op`` once, so the variant list and the handler table in
``chip8vm.emulator`` must stay in the same order.
"""

from enum import IntEnum

import jax.numpy as jnp
from chex import dataclass


class Op(IntEnum):
    """Closed set of instruction variants."""
    NOP = 0          # any unrecognized word
    CLS = 1          # 00E0
    RET = 2          # 00EE
    JP = 3           # 1NNN
    CALL = 4         # 2NNN
    SE_IMM = 5       # 3XNN
    SNE_IMM = 6      # 4XNN
    SE_REG = 7       # 5XY0
    LD_IMM = 8       # 6XNN
    ADD_IMM = 9      # 7XNN
    LD_REG = 10      # 8XY0
    OR = 11          # 8XY1
    AND = 12         # 8XY2
    XOR = 13         # 8XY3
    ADD_REG = 14     # 8XY4
    SUB = 15         # 8XY5
    SHR = 16         # 8XY6
    SUBN = 17        # 8XY7
    SHL = 18         # 8XYE
    SNE_REG = 19     # 9XY0
    LD_I = 20        # ANNN
    JP_V0 = 21       # BNNN
    RND = 22         # CXNN
    DRW = 23         # DXYN
    SKP = 24         # EX9E
    SKNP = 25        # EXA1
    LD_VX_DT = 26    # FX07
    LD_DT_VX = 27    # FX15
    LD_ST_VX = 28    # FX18
    ADD_I = 29       # FX1E
    LD_F = 30        # FX29
    LD_B = 31        # FX33
    STORE_REGS = 32  # FX55
    LOAD_REGS = 33   # FX65


# Variant by first nibble; 0, 5, 8, 9, E and F need a secondary selector
_PRIMARY_OPS = jnp.array([int(op) for op in (
    Op.NOP, Op.JP, Op.CALL, Op.SE_IMM, Op.SNE_IMM, Op.NOP, Op.LD_IMM, Op.ADD_IMM,
    Op.NOP, Op.NOP, Op.LD_I, Op.JP_V0, Op.RND, Op.DRW, Op.NOP, Op.NOP,
)], dtype=jnp.int32)

# 8XYN by N
_ALU_OPS = jnp.array([int(op) for op in (
    Op.LD_REG, Op.OR, Op.AND, Op.XOR, Op.ADD_REG, Op.SUB, Op.SHR, Op.SUBN,
    Op.NOP, Op.NOP, Op.NOP, Op.NOP, Op.NOP, Op.NOP, Op.SHL, Op.NOP,
)], dtype=jnp.int32)

# FXNN by NN
_MISC_OPS = (
    jnp.full(256, int(Op.NOP), dtype=jnp.int32)
    .at[0x07].set(int(Op.LD_VX_DT))
    .at[0x15].set(int(Op.LD_DT_VX))
    .at[0x18].set(int(Op.LD_ST_VX))
    .at[0x1E].set(int(Op.ADD_I))
    .at[0x29].set(int(Op.LD_F))
    .at[0x33].set(int(Op.LD_B))
    .at[0x55].set(int(Op.STORE_REGS))
    .at[0x65].set(int(Op.LOAD_REGS))
)


@dataclass(frozen=True)
class DecodedInstruction:
    """Decoded CHIP-8 instruction with extracted operands."""
    raw: int
    opcode: int  # First nibble
    x: int       # Second nibble (VX register)
    y: int       # Third nibble (VY register)
    n: int       # Fourth nibble (4-bit immediate)
    nn: int      # Last byte (8-bit immediate)
    nnn: int     # Last 12 bits (12-bit address)
    op: int      # Op variant


def classify(raw, opcode, n, nn) -> jnp.ndarray:
    """Map instruction fields to an ``Op`` value. Works on traced values."""
    raw, opcode, n, nn = (jnp.asarray(v) for v in (raw, opcode, n, nn))
    return jnp.select(
        [opcode == 0x0, opcode == 0x5, opcode == 0x8, opcode == 0x9, opcode == 0xE, opcode == 0xF],
        [
            jnp.where(raw == 0x00E0, int(Op.CLS), jnp.where(raw == 0x00EE, int(Op.RET), int(Op.NOP))),
            jnp.where(n == 0, int(Op.SE_REG), int(Op.NOP)),
            _ALU_OPS[n],
            jnp.where(n == 0, int(Op.SNE_REG), int(Op.NOP)),
            jnp.where(nn == 0x9E, int(Op.SKP), jnp.where(nn == 0xA1, int(Op.SKNP), int(Op.NOP))),
            _MISC_OPS[nn],
        ],
        _PRIMARY_OPS[opcode],
    ).astype(jnp.int32)


def decode(instruction: int) -> DecodedInstruction:
    """Decode 16-bit instruction into components."""
    opcode = (instruction & 0xF000) >> 12
    n = instruction & 0x000F
    nn = instruction & 0x00FF
    return DecodedInstruction(
        raw=instruction,
        opcode=opcode,
        x=(instruction & 0x0F00) >> 8,
        y=(instruction & 0x00F0) >> 4,
        n=n,
        nn=nn,
        nnn=instruction & 0x0FFF,
        op=classify(instruction, opcode, n, nn),
    )


_MNEMONICS = {
    Op.NOP: "DW 0x{raw:04X}",
    Op.CLS: "CLS",
    Op.RET: "RET",
    Op.JP: "JP 0x{nnn:03X}",
    Op.CALL: "CALL 0x{nnn:03X}",
    Op.SE_IMM: "SE V{x:X}, 0x{nn:02X}",
    Op.SNE_IMM: "SNE V{x:X}, 0x{nn:02X}",
    Op.SE_REG: "SE V{x:X}, V{y:X}",
    Op.LD_IMM: "LD V{x:X}, 0x{nn:02X}",
    Op.ADD_IMM: "ADD V{x:X}, 0x{nn:02X}",
    Op.LD_REG: "LD V{x:X}, V{y:X}",
    Op.OR: "OR V{x:X}, V{y:X}",
    Op.AND: "AND V{x:X}, V{y:X}",
    Op.XOR: "XOR V{x:X}, V{y:X}",
    Op.ADD_REG: "ADD V{x:X}, V{y:X}",
    Op.SUB: "SUB V{x:X}, V{y:X}",
    Op.SHR: "SHR V{x:X}, V{y:X}",
    Op.SUBN: "SUBN V{x:X}, V{y:X}",
    Op.SHL: "SHL V{x:X}, V{y:X}",
    Op.SNE_REG: "SNE V{x:X}, V{y:X}",
    Op.LD_I: "LD I, 0x{nnn:03X}",
    Op.JP_V0: "JP V0, 0x{nnn:03X}",
    Op.RND: "RND V{x:X}, 0x{nn:02X}",
    Op.DRW: "DRW V{x:X}, V{y:X}, {n}",
    Op.SKP: "SKP V{x:X}",
    Op.SKNP: "SKNP V{x:X}",
    Op.LD_VX_DT: "LD V{x:X}, DT",
    Op.LD_DT_VX: "LD DT, V{x:X}",
    Op.LD_ST_VX: "LD ST, V{x:X}",
    Op.ADD_I: "ADD I, V{x:X}",
    Op.LD_F: "LD F, V{x:X}",
    Op.LD_B: "LD B, V{x:X}",
    Op.STORE_REGS: "LD [I], V{x:X}",
    Op.LOAD_REGS: "LD V{x:X}, [I]",
}


def disassemble(instruction: int) -> str:
    """Render a single instruction word as assembly text."""
    word = int(instruction) & 0xFFFF
    decoded = decode(word)
    return _MNEMONICS[Op(int(decoded.op))].format(
        raw=word, x=decoded.x, y=decoded.y, n=decoded.n, nn=decoded.nn, nnn=decoded.nnn,
    )
