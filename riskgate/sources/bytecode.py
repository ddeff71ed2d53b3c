"""Static bytecode profile: size class, proxy markers and selfdestruct opcode."""

from __future__ import annotations

from riskgate.constants import (
    BYTECODE_SIZE_LOW,
    BYTECODE_SIZE_MEDIUM,
    PROXY_BYTECODE_MARKERS,
    PUSH1_OPCODE,
    PUSH32_OPCODE,
    SELFDESTRUCT_OPCODE,
)
from riskgate.models.risk import BytecodeProfile, Complexity


def code_size(code_hex: str) -> int:
    body = code_hex[2:] if code_hex.startswith("0x") else code_hex
    return len(body) // 2


def has_opcode(code: bytes, opcode: int) -> bool:
    """True if ``opcode`` occurs as an instruction, not inside PUSH immediate data."""
    pc = 0
    while pc < len(code):
        op = code[pc]
        if op == opcode:
            return True
        if PUSH1_OPCODE <= op <= PUSH32_OPCODE:
            pc += op - PUSH1_OPCODE + 1
        pc += 1
    return False


def analyze_bytecode(code_hex: str) -> BytecodeProfile:
    """Classify deployed bytecode given as a hex string.

    Proxy markers are matched on the hex text (they live in PUSH32 data).
    SELFDESTRUCT is found by walking the instructions, so ``0xff`` bytes in
    PUSH data (masks, constants) do not count. Trailing metadata is walked
    like code.
    """
    body = code_hex.lower()
    if body.startswith("0x"):
        body = body[2:]
    size = len(body) // 2
    if size == 0:
        return BytecodeProfile()

    if size < BYTECODE_SIZE_LOW:
        complexity = Complexity.LOW
    elif size < BYTECODE_SIZE_MEDIUM:
        complexity = Complexity.MEDIUM
    else:
        complexity = Complexity.HIGH

    try:
        code = bytes.fromhex(body[: size * 2])
    except ValueError:
        code = b""

    return BytecodeProfile(
        complexity=complexity,
        is_proxy=any(marker in body for marker in PROXY_BYTECODE_MARKERS),
        has_self_destruct=has_opcode(code, SELFDESTRUCT_OPCODE),
    )
