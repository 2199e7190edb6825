# -*- encoding: utf-8 -*-
"""
rulec Placeholders - Placeholder list and raw-data table builders.

The placeholder list tells the interpreter where each PLH operand gets
its runtime value. Instructions reference placeholders by ordinal, so
the list order is part of the compiled artifact.

The raw-data table lifts every literal out of the instruction stream,
keyed by its position in the original instruction array, so the two can
be stored separately and recombined unambiguously.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Union

from rulec.components import PType, RuleComponent
from rulec.exceptions import LiteralValidationError
from rulec.parser.ast import Literal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaceholderStruct:
    """
    A runtime binding slot.

    Attributes:
        p_type: Parameter type of the bound value
        type_specific_index: Argument position, foreign call id or tracker id
        flags: Binding kind (0x00 argument, 0x01 foreign call, 0x02 tracker,
            0x04-0x14 global variables)
    """
    p_type: PType
    type_specific_index: int
    flags: int

    @classmethod
    def from_component(cls, component: RuleComponent) -> "PlaceholderStruct":
        return cls(
            p_type=component.p_type,
            type_specific_index=component.t_index,
            flags=component.flags,
        )

    def matches(self, component: RuleComponent) -> bool:
        return (self.type_specific_index == component.t_index
                and self.flags == component.flags)

    def to_dict(self) -> dict:
        return {
            "pType": int(self.p_type),
            "typeSpecificIndex": self.type_specific_index,
            "flags": self.flags,
        }


def build_placeholder_list(components: Iterable[RuleComponent]) -> list[PlaceholderStruct]:
    """
    Build the placeholder list for a set of components.

    One entry per distinct (type_specific_index, flags) pair, in
    first-seen order.
    """
    placeholders = []
    seen = set()
    for component in components:
        key = (component.t_index, component.flags)
        if key in seen:
            continue
        seen.add(key)
        placeholders.append(PlaceholderStruct.from_component(component))
    return placeholders


@dataclass
class RawData:
    """
    Literals lifted out of an instruction set.

    Attributes:
        instruction_set_index: Positions in the original instruction array,
            strictly increasing
        data_values: Literal values at those positions
        argument_types: Parameter type of each value
    """
    instruction_set_index: list[int] = field(default_factory=list)
    data_values: list[Union[int, str]] = field(default_factory=list)
    argument_types: list[PType] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.instruction_set_index)

    def to_dict(self) -> dict:
        return {
            "instructionSetIndex": list(self.instruction_set_index),
            "dataValues": list(self.data_values),
            "argumentTypes": [int(t) for t in self.argument_types],
        }


def build_raw_data(instruction_set: Iterable, strict: bool = True) -> RawData:
    """
    Lift every literal of an instruction set into a RawData table.

    Args:
        instruction_set: Typed instruction tokens
        strict: Reject identifiers that fell through lowering as literals

    Returns:
        RawData keyed by original instruction positions

    Raises:
        LiteralValidationError: If strict and an unquoted bare identifier
            reached the instruction set
    """
    raw = RawData()
    for index, token in enumerate(instruction_set):
        if not isinstance(token, Literal):
            continue
        if token.is_unresolved:
            if strict:
                raise LiteralValidationError(token.text, index)
            logger.warning("Unquoted literal '%s' at instruction %d", token.text, index)
        raw.instruction_set_index.append(index)
        raw.data_values.append(token.value)
        raw.argument_types.append(token.p_type)
    return raw
