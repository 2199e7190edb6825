"""
rulec AST - Expression tree nodes for rule conditions and effects.

These dataclasses represent the parsed structure of a condition or effect
string, ready to be lowered into an instruction set. Logical operators keep
the ordinal of the delimiter they were parsed from so the lowering engine
can restore the original keyword.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from rulec.components import PType
from rulec.exceptions import NumericRangeError


MAX_UINT256 = 2 ** 256 - 1

_ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')


def is_address(text: str) -> bool:
    """Return True if text is a 20-byte hex address literal."""
    return bool(_ADDRESS_PATTERN.match(text.strip()))


class Operator(Enum):
    """Comparison and arithmetic operators inside a leaf expression."""
    EQ = "=="
    NE = "!="
    GE = ">="
    LE = "<="
    GT = ">"
    LT = "<"
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    ASSIGN = "="


class UpdateOperator(Enum):
    """Tracker mutation operators."""
    ADD_ASSIGN = "+="
    SUB_ASSIGN = "-="
    MUL_ASSIGN = "*="
    DIV_ASSIGN = "/="
    ASSIGN = "="

    @property
    def arithmetic(self) -> Operator:
        """The arithmetic operator emitted in place of the update form."""
        return {
            UpdateOperator.ADD_ASSIGN: Operator.ADD,
            UpdateOperator.SUB_ASSIGN: Operator.SUB,
            UpdateOperator.MUL_ASSIGN: Operator.MUL,
            UpdateOperator.DIV_ASSIGN: Operator.DIV,
            UpdateOperator.ASSIGN: Operator.ASSIGN,
        }[self]


class LogicalOperator(Enum):
    """Logical connectives between leaf expressions."""
    AND = "AND"
    OR = "OR"
    NOT = "NOT"


@dataclass
class Literal:
    """
    A literal value embedded in an expression.

    Numbers and addresses carry their integer value, booleans 1 or 0,
    strings the unquoted text. VOID marks an identifier that matched no
    component and was kept as-is.
    """
    value: Union[int, str]
    p_type: PType
    text: str

    @classmethod
    def from_number(cls, text: str) -> "Literal":
        """Build a numeric or address literal, enforcing the uint256 range."""
        text = text.strip()
        if is_address(text):
            return cls(value=int(text, 16), p_type=PType.ADDRESS, text=text)
        value = int(text, 16) if text.lower().startswith("0x") else int(text)
        if value > MAX_UINT256:
            raise NumericRangeError(text, MAX_UINT256)
        return cls(value=value, p_type=PType.UINT256, text=text)

    @classmethod
    def from_string(cls, text: str) -> "Literal":
        inner = text[1:-1]
        p_type = PType.BYTES if inner.startswith("0x") else PType.STRING
        return cls(value=inner, p_type=p_type, text=text)

    @classmethod
    def from_bool(cls, text: str) -> "Literal":
        return cls(value=1 if text == "true" else 0, p_type=PType.BOOL, text=text)

    @classmethod
    def unresolved(cls, text: str) -> "Literal":
        return cls(value=text, p_type=PType.VOID, text=text)

    @property
    def is_unresolved(self) -> bool:
        return self.p_type == PType.VOID


@dataclass
class Identifier:
    """
    A bare name: function argument, reference (FC#n, TR:x, TRU:x, GV:X)
    or an unknown token. Resolved against the components during lowering.
    """
    name: str

    @property
    def is_tracker_update(self) -> bool:
        return self.name.startswith("TRU:")

    @property
    def tracker_name(self) -> Optional[str]:
        """Normalized 'TR:name' for tracker references, else None."""
        if self.name.startswith("TRU:"):
            return "TR:" + self.name[4:]
        if self.name.startswith("TR:"):
            return self.name
        return None


@dataclass
class MappedAccess:
    """
    A keyed tracker access: ``key | TR:name``.

    Written as ``TR:name(key)`` in the source text.
    """
    key: "Node"
    tracker: Identifier


@dataclass
class BinaryOp:
    """Comparison or arithmetic between two operands."""
    op: Operator
    left: "Node"
    right: "Node"


@dataclass
class LogicalOp:
    """
    AND / OR between two sub-expressions.

    Attributes:
        op: The logical operator
        ordinal: Index of the delimiter in the compilation's delimiter list
    """
    op: LogicalOperator
    ordinal: int
    left: "Node"
    right: "Node"


@dataclass
class UnaryNot:
    """NOT applied to a single sub-expression."""
    ordinal: int
    operand: "Node"


@dataclass
class TrackerUpdate:
    """
    Tracker mutation: ``TRU:name += value`` or ``TRU:name(key) = value``.
    """
    op: UpdateOperator
    target: Union[Identifier, MappedAccess]
    value: "Node"

    @property
    def tracker(self) -> Identifier:
        if isinstance(self.target, MappedAccess):
            return self.target.tracker
        return self.target

    @property
    def is_mapped(self) -> bool:
        return isinstance(self.target, MappedAccess)


Node = Union[Literal, Identifier, MappedAccess, BinaryOp, LogicalOp, UnaryNot, TrackerUpdate]
