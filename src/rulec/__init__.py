"""
rulec - Rule Syntax Compiler

Compiles human readable policy rules into the flat instruction sets,
placeholder lists and raw-data tables executed by an on-chain rules
interpreter.

Components:
- rulec.parser: reference extraction, expression tree, Lark leaf parser
- rulec.compiler: lowering engine, placeholders, effects, rule compiler

Usage:
    from rulec import RuleCompiler, RuleSyntax, TrackerRef

    compiler = RuleCompiler(
        "address to, uint256 value",
        trackers=[TrackerRef("count", 1)],
    )

    # Compile a condition
    compiled = compiler.compile_condition("value > 500 AND TR:count < 10")
    compiled.instruction_set.to_numeric()

    # Or a whole rule
    rule = compiler.compile_rule(RuleSyntax(
        condition="value > 500",
        positive_effects=["TRU:count += 1"],
        negative_effects=['revert("Too small")'],
    ))
"""

from rulec.components import (
    EncodedIndex,
    EncodedType,
    ForeignCallRef,
    PType,
    RuleComponent,
    TrackerRef,
)
from rulec.config import CompilerConfig
from rulec.compiler import (
    OPCODES,
    CompiledExpression,
    EffectDefinition,
    EffectType,
    InstructionSet,
    PlaceholderStruct,
    RawData,
    RuleCompiler,
    RuleDefinition,
    RuleSyntax,
    build_foreign_call_list,
    build_tracker_list,
    convert_to_instruction_set,
    map_opcodes,
)
from rulec.exceptions import (
    CyclicForeignCallError,
    LiteralValidationError,
    NumericRangeError,
    RuleCompilerError,
    RuleParseError,
    UnknownReferenceError,
)

__all__ = [
    # Main API
    "RuleCompiler",
    "RuleSyntax",
    "RuleDefinition",
    "CompiledExpression",
    "EffectDefinition",
    "EffectType",
    "CompilerConfig",
    # Tables
    "TrackerRef",
    "ForeignCallRef",
    "EncodedIndex",
    "EncodedType",
    "RuleComponent",
    "PType",
    # Artifacts
    "InstructionSet",
    "PlaceholderStruct",
    "RawData",
    "OPCODES",
    "map_opcodes",
    "convert_to_instruction_set",
    "build_foreign_call_list",
    "build_tracker_list",
    # Errors
    "RuleCompilerError",
    "RuleParseError",
    "UnknownReferenceError",
    "NumericRangeError",
    "LiteralValidationError",
    "CyclicForeignCallError",
]

__version__ = "0.1.0"
