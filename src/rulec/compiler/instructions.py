"""
rulec Instructions - Typed instruction stream and numeric opcode table.

An instruction set is a flat sequence of three token kinds:
- Opcode: a mnemonic (N, PLH, PLHM, TRU, TRUM, AND, OR, NOT, ==, +, ...)
- Operand: a memory slot, placeholder ordinal, tracker id or flag
- Literal: a value embedded after N

The numeric form replaces each opcode with its code from OPCODES. The
table is a versioned contract with the on-chain interpreter and must
not be renumbered without an interpreter version bump.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

from rulec.parser.ast import Literal


# Interpreter opcode table, version 1
OPCODES: dict[str, int] = {
    "N": 0,
    "NOT": 1,
    "PLH": 2,
    "=": 3,
    "PLHM": 4,
    "+": 5,
    "-": 6,
    "*": 7,
    "/": 8,
    "<": 9,
    ">": 10,
    "==": 11,
    "AND": 12,
    "OR": 13,
    ">=": 14,
    "<=": 15,
    "!=": 16,
    "TRU": 17,
    "TRUM": 18,
}


@dataclass(frozen=True)
class Opcode:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Operand:
    value: int

    def __str__(self) -> str:
        return str(self.value)


Token = Union[Opcode, Operand, Literal]


def token_value(token: Token) -> Union[int, str]:
    """
    Plain value of a token.

    Opcodes give their mnemonic, operands their integer. Literals give
    their value, except string, bytes and unresolved literals which keep
    their source text so they stay distinguishable from mnemonics.
    """
    if isinstance(token, Opcode):
        return token.name
    if isinstance(token, Operand):
        return token.value
    if isinstance(token.value, int):
        return token.value
    return token.text


def map_opcodes(tokens: Iterable) -> list:
    """
    Replace opcode mnemonics with their numeric codes.

    Anything that is not a known mnemonic (slot indices, literal values,
    codes already mapped) passes through unchanged.

    Example:
        >>> map_opcodes(["PLH", 0, "N", 500, ">", 0, 1])
        [2, 0, 0, 500, 10, 0, 1]
    """
    mapped = []
    for token in tokens:
        if isinstance(token, Opcode):
            token = token.name
        if isinstance(token, str) and token in OPCODES:
            mapped.append(OPCODES[token])
        else:
            mapped.append(token)
    return mapped


class InstructionSet:
    """
    Ordered instruction tokens produced by the lowering engine.

    Supports iteration, indexing and len() over the typed tokens.
    """

    def __init__(self, tokens: Optional[Iterable[Token]] = None):
        self.tokens: list[Token] = list(tokens or [])

    def __iter__(self) -> Iterator[Token]:
        return iter(self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)

    def __getitem__(self, index):
        return self.tokens[index]

    def __eq__(self, other) -> bool:
        if isinstance(other, InstructionSet):
            return self.tokens == other.tokens
        return NotImplemented

    def __repr__(self) -> str:
        return f"InstructionSet({self.to_list()!r})"

    def to_list(self) -> list:
        """Instruction set as plain mnemonics, integers and literal text."""
        return [token_value(token) for token in self.tokens]

    def to_numeric(self) -> list:
        """Instruction set with every opcode replaced by its numeric code."""
        return [
            OPCODES[token.name] if isinstance(token, Opcode) else token_value(token)
            for token in self.tokens
        ]

    def opcodes(self) -> list[tuple[int, Opcode]]:
        """Positions and opcodes, in order."""
        return [(i, t) for i, t in enumerate(self.tokens) if isinstance(t, Opcode)]
