# -*- encoding: utf-8 -*-
"""
rulec Exceptions.

Custom exceptions raised while compiling rule conditions and effects.
Every error aborts the compilation of the current rule or effect; no
partially lowered instruction set is ever returned alongside one.
"""

from typing import Optional


class RuleCompilerError(Exception):
    """Base exception for all rulec errors."""

    def to_dict(self) -> dict:
        """Convert exception to dictionary representation."""
        return {
            "error": type(self).__name__,
            "message": str(self),
        }


class RuleParseError(RuleCompilerError):
    """
    Raised when a condition or effect string is structurally malformed.

    Covers unbalanced parentheses or brackets, logical operators with a
    missing operand, and text the expression grammar cannot parse.

    Attributes:
        syntax: The text being parsed when the error occurred
        position: Character offset of the problem, when known
    """

    def __init__(self, message: str, syntax: str = "", position: Optional[int] = None):
        super().__init__(message)
        self.syntax = syntax
        self.position = position

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update({
            "syntax": self.syntax,
            "position": self.position,
        })
        return d


class UnknownReferenceError(RuleParseError):
    """
    Raised when a prefixed reference has no matching table entry.

    Example:
        "FC:lookup > 5" where no foreign call named "lookup" was supplied.
    """

    def __init__(self, reference: str, syntax: str = "", message: str = ""):
        super().__init__(
            message or f"Unknown reference '{reference}'",
            syntax=syntax,
        )
        self.reference = reference

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["reference"] = self.reference
        return d


class NumericRangeError(RuleCompilerError):
    """
    Raised when a numeric literal does not fit in an unsigned 256-bit word.

    Literals are never truncated or wrapped.
    """

    def __init__(self, literal: str, maximum: int):
        super().__init__(
            f"Number '{literal}' exceeds uint256 maximum. "
            f"Maximum allowed is {maximum}."
        )
        self.literal = literal
        self.maximum = maximum

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["literal"] = self.literal
        return d


class LiteralValidationError(RuleCompilerError):
    """
    Raised when a literal in a finished instruction set cannot be encoded.

    The lowering engine turns unknown bare identifiers into literal nodes;
    this error surfaces them once the raw-data table is built.
    """

    def __init__(self, token: str, index: int, message: str = ""):
        super().__init__(
            message or f"Strings must be in quotes: '{token}' at instruction {index}"
        )
        self.token = token
        self.index = index

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update({
            "token": self.token,
            "index": self.index,
        })
        return d


class CyclicForeignCallError(RuleCompilerError):
    """
    Raised when foreign calls depend on each other in a cycle.

    Attributes:
        chain: Foreign call names along the cycle, first name repeated last
    """

    def __init__(self, chain: list[str]):
        if len(chain) == 2 and chain[0] == chain[1]:
            message = f"Foreign call '{chain[0]}' passes its own result as an argument"
        else:
            message = "Cyclic foreign call dependency: " + " -> ".join(chain)
        super().__init__(message)
        self.chain = list(chain)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["chain"] = self.chain
        return d
