# -*- encoding: utf-8 -*-
"""
rulec Components - Domain references a rule can bind at call time.

A rule condition or effect refers to four families of values:
- Calling function arguments, by their declared name
- Foreign call results, written FC:<name>
- Trackers, written TR:<name> (read) or TRU:<name> (update)
- Global variables, written GV:<NAME>

The policy layer supplies the foreign call and tracker tables
(ForeignCallRef, TrackerRef). Each compilation turns the references it
finds into immutable RuleComponent entries, from which the placeholder
list is derived.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, Optional, Union


class PType(IntEnum):
    """
    Parameter type enumeration shared with the on-chain interpreter.

    Static arrays (uint256[], address[], bool[]) and dynamic arrays
    (string[], bytes[]) each collapse to a single member.
    """
    ADDRESS = 0
    STRING = 1
    UINT256 = 2
    BOOL = 3
    VOID = 4
    BYTES = 5
    STATIC_TYPE_ARRAY = 6
    DYNAMIC_TYPE_ARRAY = 7

    @classmethod
    def from_name(cls, name: str) -> "PType":
        """Map a Solidity type name to its enumeration, VOID if unknown."""
        return _PTYPE_NAMES.get(name.strip(), cls.VOID)


_PTYPE_NAMES = {
    "address": PType.ADDRESS,
    "string": PType.STRING,
    "uint256": PType.UINT256,
    "bool": PType.BOOL,
    "void": PType.VOID,
    "bytes": PType.BYTES,
    "address[]": PType.STATIC_TYPE_ARRAY,
    "uint256[]": PType.STATIC_TYPE_ARRAY,
    "bool[]": PType.STATIC_TYPE_ARRAY,
    "string[]": PType.DYNAMIC_TYPE_ARRAY,
    "bytes[]": PType.DYNAMIC_TYPE_ARRAY,
}

# Types a calling function argument may be declared with
SUPPORTED_ARGUMENT_TYPES = frozenset(n for n in _PTYPE_NAMES if n != "void")


# Placeholder flags
FLAG_FUNCTION_ARGUMENT = 0x00
FLAG_FOREIGN_CALL = 0x01
FLAG_TRACKER = 0x02

GLOBAL_VARIABLE_FLAGS = {
    "GV:MSG_SENDER": 0x04,
    "GV:BLOCK_TIMESTAMP": 0x08,
    "GV:MSG_DATA": 0x0c,
    "GV:BLOCK_NUMBER": 0x10,
    "GV:TX_ORIGIN": 0x14,
}

GLOBAL_VARIABLE_TYPES = {
    "GV:MSG_SENDER": "address",
    "GV:BLOCK_TIMESTAMP": "uint256",
    "GV:MSG_DATA": "bytes",
    "GV:BLOCK_NUMBER": "uint256",
    "GV:TX_ORIGIN": "address",
}


class ComponentType(Enum):
    """Reference family a RuleComponent was extracted from."""
    FUNCTION_ARGUMENT = "function_argument"
    FOREIGN_CALL = "foreign_call"
    TRACKER = "tracker"
    TRACKER_UPDATE = "tracker_update"
    GLOBAL = "global"


def _tracker_type_name(p_type: PType) -> str:
    # Trackers only store these value kinds; everything else is numeric
    if p_type in (PType.ADDRESS, PType.STRING, PType.BOOL, PType.BYTES):
        return p_type.name.lower()
    return "uint256"


@dataclass(frozen=True)
class TrackerRef:
    """
    A tracker known to the policy.

    Attributes:
        name: Tracker name without the TR: prefix
        id: On-chain tracker id
        type: Declared value type; a type name or PType is accepted
    """
    name: str
    id: int
    type: Union[PType, str, int] = PType.UINT256

    def __post_init__(self):
        if isinstance(self.type, str):
            object.__setattr__(self, "type", PType.from_name(self.type))
        elif not isinstance(self.type, PType):
            object.__setattr__(self, "type", PType(self.type))

    @property
    def reference(self) -> str:
        return "TR:" + self.name

    @property
    def type_name(self) -> str:
        return _tracker_type_name(self.type)

    @property
    def is_placeholder_backed(self) -> bool:
        """String and bytes trackers are read through placeholders."""
        return self.type in (PType.STRING, PType.BYTES)


class EncodedType(IntEnum):
    """Source of a value passed to a foreign call."""
    FUNCTION_ARGUMENT = 0
    FOREIGN_CALL = 1
    TRACKER = 2
    # String trackers
    PLACEHOLDER_TRACKER = 4


@dataclass(frozen=True)
class EncodedIndex:
    """
    Where a foreign call argument comes from at call time.

    Attributes:
        e_type: Source family
        index: Argument position, foreign call id or tracker id
    """
    e_type: EncodedType
    index: int

    def to_dict(self) -> dict:
        return {"eType": int(self.e_type), "index": self.index}


def _split_values(values) -> tuple:
    if isinstance(values, str):
        values = [v.strip() for v in values.split(",") if v.strip()]
    return tuple(values)


@dataclass(frozen=True)
class ForeignCallRef:
    """
    A foreign call known to the policy.

    Attributes:
        name: Foreign call name without the FC: prefix
        id: On-chain foreign call id
        values_to_pass: Arguments the call receives: calling function
            argument names, FC:<name> or TR:<name> references. A comma
            separated string is accepted.
        return_type: Declared return type name
        mapped_tracker_key_values: Keys used to read mapped trackers
            passed to the call, written like values_to_pass
    """
    name: str
    id: int
    values_to_pass: tuple = ()
    return_type: str = "uint256"
    mapped_tracker_key_values: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "values_to_pass", _split_values(self.values_to_pass))
        object.__setattr__(
            self, "mapped_tracker_key_values", _split_values(self.mapped_tracker_key_values),
        )

    @property
    def reference(self) -> str:
        return "FC:" + self.name

    @property
    def token(self) -> str:
        """Synthetic token replacing the reference in normalized text."""
        return f"FC#{self.id}"

    def encoded_indices(
        self,
        function_arguments: Iterable["RuleComponent"] = (),
        trackers: Iterable[TrackerRef] = (),
        foreign_calls: Iterable["ForeignCallRef"] = (),
    ) -> list[EncodedIndex]:
        """
        Encode values_to_pass for the on-chain call.

        Function arguments encode their declared position, foreign calls
        their id and trackers their id; string trackers are read through a
        placeholder and encode as PLACEHOLDER_TRACKER. Values matching no
        argument, tracker or foreign call are dropped.
        """
        return _encode_values(self.values_to_pass, function_arguments, trackers, foreign_calls)

    def mapped_tracker_key_indices(
        self,
        function_arguments: Iterable["RuleComponent"] = (),
        trackers: Iterable[TrackerRef] = (),
        foreign_calls: Iterable["ForeignCallRef"] = (),
    ) -> list[EncodedIndex]:
        """Encode mapped_tracker_key_values the same way as values_to_pass."""
        return _encode_values(
            self.mapped_tracker_key_values, function_arguments, trackers, foreign_calls,
        )


def _encode_values(values, function_arguments, trackers, foreign_calls) -> list[EncodedIndex]:
    arguments = {argument.name: argument.t_index for argument in function_arguments}
    tracker_table = {tracker.reference: tracker for tracker in trackers}
    call_ids = {call.reference: call.id for call in foreign_calls}

    encoded = []
    for value in values:
        value = value.strip()
        if value.startswith("FC:"):
            if value in call_ids:
                encoded.append(EncodedIndex(EncodedType.FOREIGN_CALL, call_ids[value]))
        elif value.startswith("TR:"):
            tracker = tracker_table.get(value)
            if tracker is not None:
                e_type = (
                    EncodedType.PLACEHOLDER_TRACKER if tracker.type == PType.STRING
                    else EncodedType.TRACKER
                )
                encoded.append(EncodedIndex(e_type, tracker.id))
        elif value in arguments:
            encoded.append(EncodedIndex(EncodedType.FUNCTION_ARGUMENT, arguments[value]))
    return encoded


@dataclass(frozen=True)
class RuleComponent:
    """
    A named domain reference found in a condition or effect.

    Attributes:
        name: Reference name (argument name, FC:x, TR:x, GV:X)
        t_index: Argument position, foreign call id or tracker id
        component_type: Reference family
        raw_type: Declared type name of the bound value
        placeholder: For foreign calls, the synthetic token standing in
            for the call in normalized text. None when the call is only a
            dependency of another call.
    """
    name: str
    t_index: int
    component_type: ComponentType
    raw_type: str = "uint256"
    placeholder: Optional[str] = None

    @property
    def flags(self) -> int:
        if self.component_type == ComponentType.GLOBAL:
            return GLOBAL_VARIABLE_FLAGS[self.name]
        if self.component_type == ComponentType.FOREIGN_CALL:
            return FLAG_FOREIGN_CALL
        if self.component_type in (ComponentType.TRACKER, ComponentType.TRACKER_UPDATE):
            return FLAG_TRACKER
        return FLAG_FUNCTION_ARGUMENT

    @property
    def p_type(self) -> PType:
        return PType.from_name(self.raw_type)

    @property
    def is_dependency_only(self) -> bool:
        return self.component_type == ComponentType.FOREIGN_CALL and self.placeholder is None

    @classmethod
    def function_argument(cls, name: str, t_index: int, raw_type: str) -> "RuleComponent":
        return cls(name, t_index, ComponentType.FUNCTION_ARGUMENT, raw_type)

    @classmethod
    def foreign_call(cls, ref: ForeignCallRef, placeholder: Optional[str] = None) -> "RuleComponent":
        return cls(ref.reference, ref.id, ComponentType.FOREIGN_CALL, ref.return_type, placeholder)

    @classmethod
    def tracker(cls, ref: TrackerRef, update: bool = False) -> "RuleComponent":
        component_type = ComponentType.TRACKER_UPDATE if update else ComponentType.TRACKER
        return cls(ref.reference, ref.id, component_type, ref.type_name)

    @classmethod
    def global_variable(cls, name: str) -> "RuleComponent":
        return cls(name, 0, ComponentType.GLOBAL, GLOBAL_VARIABLE_TYPES[name])
