"""
rulec Effects - Effect classification and compilation.

An effect runs when a rule condition holds (positive) or fails
(negative). Three forms exist:

    revert("Not allowed")        EffectType.REVERT
    emit Transfer, to            EffectType.EVENT
    TRU:count += 1               EffectType.EXPRESSION

Only expressions are lowered to an instruction set.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Optional, Union

from rulec.components import PType, RuleComponent, TrackerRef
from rulec.compiler.instructions import InstructionSet
from rulec.compiler.lowering import InstructionLowering, convert_to_instruction_set
from rulec.compiler.context import LoweringContext
from rulec.compiler.placeholders import PlaceholderStruct, RawData, build_raw_data
from rulec.exceptions import RuleParseError
from rulec.parser.ast import is_address
from rulec.parser.parser import ExpressionParser

logger = logging.getLogger(__name__)

_EMIT_PATTERN = re.compile(r'^emit\b\s*(.*)$')
_REVERT_PATTERN = re.compile(r'^revert\b\s*(?:\(\s*(?:"([^"]*)"|\'([^\']*)\')?\s*\))?$')


class EffectType(IntEnum):
    REVERT = 0
    EVENT = 1
    EXPRESSION = 2


@dataclass
class EffectDefinition:
    """
    A compiled effect.

    Attributes:
        type: Effect form
        text: Revert message or event name
        instruction_set: Lowered expression (expressions only)
        raw_data: Literals lifted from instruction_set
        p_type: Type of the event parameter
        parameter_value: Static event parameter
        dynamic_param: True when the event parameter is read from a placeholder
        event_placeholder_index: Placeholder ordinal of a dynamic parameter
    """
    type: EffectType
    text: str = ""
    instruction_set: InstructionSet = field(default_factory=InstructionSet)
    raw_data: RawData = field(default_factory=RawData)
    p_type: PType = PType.UINT256
    parameter_value: Union[int, str] = 0
    dynamic_param: bool = False
    event_placeholder_index: int = 0

    def to_dict(self) -> dict:
        return {
            "type": int(self.type),
            "text": self.text,
            "instructionSet": self.instruction_set.to_list(),
            "rawData": self.raw_data.to_dict(),
            "pType": int(self.p_type),
            "parameterValue": self.parameter_value,
            "dynamicParam": self.dynamic_param,
            "eventPlaceholderIndex": self.event_placeholder_index,
        }


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text


def _parse_event(
    body: str,
    components: list[RuleComponent],
    placeholders: list[PlaceholderStruct],
) -> EffectDefinition:
    event, _, param = body.partition(",")
    event, param = _unquote(event.strip()), param.strip()
    if not event:
        raise RuleParseError("emit requires an event name", syntax=body)

    effect = EffectDefinition(type=EffectType.EVENT, text=event)
    if not param:
        return effect

    lookup = InstructionLowering(LoweringContext(), components, placeholders)
    component = lookup.resolve(param)
    if component is not None:
        effect.dynamic_param = True
        effect.event_placeholder_index = lookup.placeholder_ordinal(component)
        effect.p_type = component.p_type
        effect.parameter_value = param
    elif is_address(param):
        effect.p_type = PType.ADDRESS
        effect.parameter_value = param
    elif param.isdigit():
        effect.p_type = PType.UINT256
        effect.parameter_value = int(param)
    else:
        effect.p_type = PType.STRING
        effect.parameter_value = _unquote(param)
    return effect


def parse_effect(
    effect: str,
    components: Iterable[RuleComponent],
    placeholders: Iterable[PlaceholderStruct],
    trackers: Iterable[TrackerRef] = (),
    parser: Optional[ExpressionParser] = None,
    strict: bool = True,
) -> EffectDefinition:
    """
    Classify and compile one normalized effect string.

    Args:
        effect: Effect text as returned by extract_references
        components: Components of all effects of the same polarity
        placeholders: Placeholder list shared by those effects
        trackers: Tracker table
        parser: Optional shared leaf parser
        strict: Reject unquoted bare identifiers in expression raw data

    Returns:
        EffectDefinition

    Raises:
        RuleParseError: If a revert or emit effect is malformed, or the
            expression cannot be parsed
    """
    effect = effect.strip()
    components = list(components)
    placeholders = list(placeholders)

    match = _EMIT_PATTERN.match(effect)
    if match:
        return _parse_event(match.group(1), components, placeholders)

    if re.match(r'^revert\b', effect):
        match = _REVERT_PATTERN.match(effect)
        if not match:
            raise RuleParseError("Malformed revert effect", syntax=effect)
        return EffectDefinition(
            type=EffectType.REVERT,
            text=match.group(1) or match.group(2) or "",
        )

    instruction_set = convert_to_instruction_set(effect, components, placeholders, trackers, parser)
    logger.debug("Compiled expression effect '%s'", effect)
    return EffectDefinition(
        type=EffectType.EXPRESSION,
        instruction_set=instruction_set,
        raw_data=build_raw_data(instruction_set, strict=strict),
    )
