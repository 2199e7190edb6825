"""rulec Compiler module - Instruction lowering, placeholders, effects and rule compilation."""

from rulec.compiler.compiler import (
    CompiledExpression,
    RuleCompiler,
    RuleDefinition,
    RuleSyntax,
    merge_components,
)
from rulec.compiler.context import LoweringContext, TrackerUpdateTarget
from rulec.compiler.dependencies import (
    build_foreign_call_list,
    build_tracker_list,
    resolve_dependencies,
)
from rulec.compiler.effects import EffectDefinition, EffectType, parse_effect
from rulec.compiler.instructions import (
    OPCODES,
    InstructionSet,
    Opcode,
    Operand,
    map_opcodes,
)
from rulec.compiler.lowering import InstructionLowering, convert_to_instruction_set
from rulec.compiler.placeholders import (
    PlaceholderStruct,
    RawData,
    build_placeholder_list,
    build_raw_data,
)

__all__ = [
    "RuleCompiler",
    "RuleSyntax",
    "RuleDefinition",
    "CompiledExpression",
    "merge_components",
    "LoweringContext",
    "TrackerUpdateTarget",
    "build_foreign_call_list",
    "build_tracker_list",
    "resolve_dependencies",
    "EffectDefinition",
    "EffectType",
    "parse_effect",
    "OPCODES",
    "InstructionSet",
    "Opcode",
    "Operand",
    "map_opcodes",
    "InstructionLowering",
    "convert_to_instruction_set",
    "PlaceholderStruct",
    "RawData",
    "build_placeholder_list",
    "build_raw_data",
]
