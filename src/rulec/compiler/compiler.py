# -*- encoding: utf-8 -*-
"""
rulec Rule Compiler - Compiles rule conditions and effects into
instruction sets for the on-chain interpreter.

For every condition and effect string the compiler runs:

1. Dependency resolution:
   foreign calls named in the text, ordered dependencies first

2. Reference extraction:
   raw text -> normalized text + RuleComponent list

3. Placeholder list:
   components -> ordered PlaceholderStruct list

4. Tree building and lowering:
   normalized text -> expression tree -> InstructionSet

5. Raw data:
   InstructionSet -> literals keyed by instruction position

Effects of the same polarity share one placeholder list, so their
components are merged before any effect is lowered.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from rulec.components import ForeignCallRef, RuleComponent, TrackerRef
from rulec.config import CompilerConfig
from rulec.compiler.dependencies import resolve_dependencies
from rulec.compiler.effects import EffectDefinition, parse_effect
from rulec.compiler.instructions import InstructionSet
from rulec.compiler.lowering import convert_to_instruction_set
from rulec.compiler.placeholders import (
    PlaceholderStruct,
    RawData,
    build_placeholder_list,
    build_raw_data,
)
from rulec.parser.extractor import extract_references, parse_function_arguments
from rulec.parser.parser import ExpressionParser

logger = logging.getLogger(__name__)


@dataclass
class RuleSyntax:
    """
    Human readable rule.

    Attributes:
        condition: Condition text
        positive_effects: Effects run when the condition holds
        negative_effects: Effects run when it does not
    """
    condition: str
    positive_effects: list[str] = field(default_factory=list)
    negative_effects: list[str] = field(default_factory=list)


@dataclass
class CompiledExpression:
    """A compiled condition with its bindings."""
    instruction_set: InstructionSet
    placeholders: list[PlaceholderStruct]
    raw_data: RawData
    components: list[RuleComponent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "instructionSet": self.instruction_set.to_list(),
            "placeholders": [p.to_dict() for p in self.placeholders],
            "rawData": self.raw_data.to_dict(),
        }


@dataclass
class RuleDefinition:
    """
    A compiled rule.

    Attributes:
        condition: Compiled condition
        positive_effects: Compiled positive effects, in order
        negative_effects: Compiled negative effects, in order
        positive_effect_placeholders: Placeholders shared by positive effects
        negative_effect_placeholders: Placeholders shared by negative effects
    """
    condition: CompiledExpression
    positive_effects: list[EffectDefinition] = field(default_factory=list)
    negative_effects: list[EffectDefinition] = field(default_factory=list)
    positive_effect_placeholders: list[PlaceholderStruct] = field(default_factory=list)
    negative_effect_placeholders: list[PlaceholderStruct] = field(default_factory=list)

    @property
    def instruction_set(self) -> InstructionSet:
        return self.condition.instruction_set

    @property
    def placeholders(self) -> list[PlaceholderStruct]:
        return self.condition.placeholders

    @property
    def raw_data(self) -> RawData:
        return self.condition.raw_data

    def to_dict(self) -> dict:
        d = self.condition.to_dict()
        d.update({
            "positiveEffects": [e.to_dict() for e in self.positive_effects],
            "negativeEffects": [e.to_dict() for e in self.negative_effects],
            "positiveEffectPlaceholders": [p.to_dict() for p in self.positive_effect_placeholders],
            "negativeEffectPlaceholders": [p.to_dict() for p in self.negative_effect_placeholders],
        })
        return d


def merge_components(component_lists: Iterable[Iterable[RuleComponent]]) -> list[RuleComponent]:
    """
    Merge the components of several effects into one list.

    Entries are unique by name in first-seen order. A foreign call seen
    first only as a dependency is replaced in place by a later entry that
    carries a synthetic token.
    """
    merged: list[RuleComponent] = []
    positions: dict[str, int] = {}
    for components in component_lists:
        for component in components:
            index = positions.get(component.name)
            if index is None:
                positions[component.name] = len(merged)
                merged.append(component)
            elif merged[index].is_dependency_only and component.placeholder is not None:
                merged[index] = component
    return merged


class RuleCompiler:
    """
    Compiles the rules of one calling function.

    The Lark parser is built once per compiler and shared by every
    compilation; all other state is created per call.

    Usage:
        compiler = RuleCompiler(
            "address to, uint256 value",
            trackers=[TrackerRef("count", 1)],
        )
        compiled = compiler.compile_condition("value > 500")
        compiled.instruction_set.to_list()
        # ['PLH', 0, 'N', 500, '>', 0, 1]

    Args:
        encoded_values: Calling function argument declaration
        trackers: Tracker table of the policy
        foreign_calls: Foreign call table of the policy
        config: Compiler settings, defaults to CompilerConfig()
    """

    def __init__(
        self,
        encoded_values: str = "",
        trackers: Iterable[TrackerRef] = (),
        foreign_calls: Iterable[ForeignCallRef] = (),
        config: Optional[CompilerConfig] = None,
    ):
        self.encoded_values = encoded_values
        self.trackers = list(trackers)
        self.foreign_calls = list(foreign_calls)
        self.config = config or CompilerConfig()
        self.function_arguments = parse_function_arguments(encoded_values)
        self._parser = ExpressionParser()

    def process_syntax(self, syntax: str) -> tuple[str, list[RuleComponent]]:
        """
        Resolve dependencies and extract the references of one string.

        Returns:
            Tuple of (normalized text, component list)
        """
        dependencies = resolve_dependencies(syntax, self.foreign_calls)
        return extract_references(
            syntax,
            self.function_arguments,
            self.trackers,
            self.foreign_calls,
            dependencies,
        )

    def compile_condition(self, condition: str) -> CompiledExpression:
        """
        Compile a rule condition.

        Raises:
            RuleParseError: If the condition is malformed
            UnknownReferenceError: If it names an unknown reference
            NumericRangeError: If a literal exceeds uint256
            LiteralValidationError: If strict and a bare identifier fell
                through as a literal
            CyclicForeignCallError: If its foreign calls depend on each
                other in a cycle
        """
        text, components = self.process_syntax(condition)
        placeholders = build_placeholder_list(components)
        instruction_set = convert_to_instruction_set(
            text, components, placeholders, self.trackers, self._parser,
        )
        raw_data = build_raw_data(instruction_set, strict=self.config.strict_literals)
        logger.debug(
            "Compiled condition '%s': %d instructions, %d placeholders",
            condition, len(instruction_set), len(placeholders),
        )
        return CompiledExpression(instruction_set, placeholders, raw_data, components)

    def compile_effect(
        self,
        effect: str,
        components: Optional[list[RuleComponent]] = None,
        placeholders: Optional[list[PlaceholderStruct]] = None,
    ) -> EffectDefinition:
        """
        Compile a single effect.

        Args:
            effect: Effect text
            components: Components shared with sibling effects; defaults
                to the effect's own
            placeholders: Existing placeholder list to bind against;
                defaults to one built from components
        """
        text, own = self.process_syntax(effect)
        components = own if components is None else merge_components([components, own])
        if placeholders is None:
            placeholders = build_placeholder_list(components)
        return parse_effect(
            text,
            components,
            placeholders,
            self.trackers,
            self._parser,
            strict=self.config.strict_literals,
        )

    def compile_effects(
        self, effects: Iterable[str],
    ) -> tuple[list[EffectDefinition], list[PlaceholderStruct]]:
        """
        Compile effects of one polarity against a shared placeholder list.

        Returns:
            Tuple of (effect definitions, shared placeholder list)
        """
        processed = [self.process_syntax(effect) for effect in effects]
        components = merge_components(c for _, c in processed)
        placeholders = build_placeholder_list(components)
        definitions = [
            parse_effect(
                text,
                components,
                placeholders,
                self.trackers,
                self._parser,
                strict=self.config.strict_literals,
            )
            for text, _ in processed
        ]
        return definitions, placeholders

    def compile_rule(self, rule: RuleSyntax) -> RuleDefinition:
        """Compile a condition together with its positive and negative effects."""
        condition = self.compile_condition(rule.condition)
        positive, positive_placeholders = self.compile_effects(rule.positive_effects)
        negative, negative_placeholders = self.compile_effects(rule.negative_effects)
        return RuleDefinition(
            condition=condition,
            positive_effects=positive,
            negative_effects=negative,
            positive_effect_placeholders=positive_placeholders,
            negative_effect_placeholders=negative_placeholders,
        )

    def encode_foreign_calls(self) -> dict[str, dict]:
        """
        Encoded argument sources of every foreign call in the table.

        Returns:
            Dict keyed by foreign call name with encodedIndices and
            mappedTrackerKeyIndices lists
        """
        tables = (self.function_arguments, self.trackers, self.foreign_calls)
        return {
            fc.name: {
                "encodedIndices": [e.to_dict() for e in fc.encoded_indices(*tables)],
                "mappedTrackerKeyIndices": [
                    e.to_dict() for e in fc.mapped_tracker_key_indices(*tables)
                ],
            }
            for fc in self.foreign_calls
        }
