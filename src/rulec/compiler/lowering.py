# -*- encoding: utf-8 -*-
"""
rulec Lowering - Instruction lowering engine.

Walks an expression tree post-order and emits a flat instruction set.
Every value produced occupies one memory slot; operators consume the most
recent slots from the context's mem stack and record their own result
slot in turn:

    value > 500   ->   PLH 0  N 500  > 0 1

Tracker updates lower to the arithmetic on the current tracker value
followed by a TRU or TRUM trailer writing the result back:

    TRU:count += 1   ->   PLH 0  N 1  + 0 1  TRU <id> 2 0
"""

import logging
import re
from typing import Iterable, Optional

from rulec.components import RuleComponent, TrackerRef
from rulec.compiler.context import LoweringContext, TrackerUpdateTarget
from rulec.compiler.instructions import InstructionSet, Opcode, Operand
from rulec.compiler.placeholders import PlaceholderStruct
from rulec.exceptions import RuleCompilerError, UnknownReferenceError
from rulec.parser.ast import (
    BinaryOp,
    Identifier,
    Literal,
    LogicalOp,
    MappedAccess,
    Node,
    TrackerUpdate,
    UnaryNot,
)
from rulec.parser.parser import ExpressionParser
from rulec.parser.tree import ExpressionTreeBuilder

logger = logging.getLogger(__name__)

_DELIMITER_OPCODE = re.compile(r'^PLA(\d+)$')


class InstructionLowering:
    """
    Lowers one expression tree into an instruction set.

    Args:
        context: Per-compilation state; its delimiters must be the ones
            recorded while building the tree
        components: Components extracted from the same text
        placeholders: Placeholder list PLH operands index into
        trackers: Tracker table, for tracker ids and value types
        syntax: Text being lowered, carried into errors
    """

    def __init__(
        self,
        context: LoweringContext,
        components: Iterable[RuleComponent],
        placeholders: Iterable[PlaceholderStruct],
        trackers: Iterable[TrackerRef] = (),
        syntax: str = "",
    ):
        self.context = context
        self.components = list(components)
        self.placeholders = list(placeholders)
        self.trackers = {tracker.reference: tracker for tracker in trackers}
        self.syntax = syntax

        self._by_name = {c.name: c for c in self.components}
        self._by_token = {c.placeholder: c for c in self.components if c.placeholder}

    def lower(self, tree: Node) -> InstructionSet:
        self.visit(tree)
        self._restore_delimiters()
        logger.debug("Lowered to %d instructions", len(self.context.instructions))
        return InstructionSet(self.context.instructions)

    def visit(self, node: Node) -> None:
        if isinstance(node, Literal):
            self.visit_literal(node)
        elif isinstance(node, Identifier):
            self.visit_identifier(node)
        elif isinstance(node, MappedAccess):
            self.visit_mapped(node)
        elif isinstance(node, BinaryOp):
            self.visit(node.left)
            self.visit(node.right)
            self._emit_operator(Opcode(node.op.value), 2)
        elif isinstance(node, LogicalOp):
            self.visit(node.left)
            self.visit(node.right)
            self._emit_operator(Opcode(f"PLA{node.ordinal}"), 2)
        elif isinstance(node, UnaryNot):
            self.visit(node.operand)
            self._emit_operator(Opcode(f"PLA{node.ordinal}"), 1)
        elif isinstance(node, TrackerUpdate):
            self.visit_tracker_update(node)
        else:
            raise RuleCompilerError(f"Cannot lower node {node!r}")

    # --- Leaves ---

    def visit_literal(self, node: Literal) -> None:
        self.context.emit(Opcode("N"), node)
        self.context.push_slot()

    def visit_identifier(self, node: Identifier) -> None:
        component = self.resolve(node.name)
        if component is None:
            # Unknown names stay literals; raw-data building rejects them
            logger.warning("No component matches '%s', lowering it as a literal", node.name)
            self.context.emit(Opcode("N"), Literal.unresolved(node.name))
        else:
            self.context.emit(Opcode("PLH"), Operand(self.placeholder_ordinal(component)))
        self.context.push_slot()

    def visit_mapped(self, node: MappedAccess) -> int:
        """Emit a keyed tracker read and return the key slot."""
        self.visit(node.key)
        key_slot = self.context.mem.pop()
        tracker_id, _ = self._tracker_info(node.tracker)
        self.context.emit(Opcode("PLHM"), Operand(tracker_id), Operand(key_slot))
        self.context.push_slot()
        return key_slot

    # --- Tracker updates ---

    def visit_tracker_update(self, node: TrackerUpdate) -> None:
        tracker_id, flag = self._tracker_info(node.tracker)

        key_slot = None
        if isinstance(node.target, MappedAccess):
            key_slot = self.visit_mapped(node.target)
        else:
            self.visit(node.target)
        self.visit(node.value)
        self._emit_operator(Opcode(node.op.arithmetic.value), 2)

        result_slot = self.context.mem.pop()
        self.context.tracker_update = TrackerUpdateTarget(
            reference=node.tracker.tracker_name,
            tracker_id=tracker_id,
            key_slot=key_slot,
        )
        if key_slot is None:
            self.context.emit(Opcode("TRU"), Operand(tracker_id), Operand(result_slot), Operand(flag))
        else:
            self.context.emit(
                Opcode("TRUM"), Operand(tracker_id), Operand(result_slot),
                Operand(key_slot), Operand(flag),
            )
        self.context.push_slot()

    def _tracker_info(self, identifier: Identifier) -> tuple[int, int]:
        """Tracker id and placeholder-kind flag for a tracker reference."""
        tracker = self.trackers.get(identifier.tracker_name)
        if tracker is not None:
            return tracker.id, 1 if tracker.is_placeholder_backed else 0

        component = self.resolve(identifier.name)
        if component is None:
            raise UnknownReferenceError(identifier.name, syntax=self.syntax)
        # Undeclared value type counts as void, which is memory backed
        return component.t_index, 0

    # --- Resolution ---

    def resolve(self, name: str) -> Optional[RuleComponent]:
        """Find the component a leaf name refers to, None if unknown."""
        if name in self._by_token:
            return self._by_token[name]
        tracker_name = Identifier(name).tracker_name
        if tracker_name is not None:
            return self._by_name.get(tracker_name)
        return self._by_name.get(name)

    def placeholder_ordinal(self, component: RuleComponent) -> int:
        for ordinal, placeholder in enumerate(self.placeholders):
            if placeholder.matches(component):
                return ordinal
        raise UnknownReferenceError(
            component.name,
            syntax=self.syntax,
            message=f"No placeholder bound for '{component.name}'",
        )

    # --- Emission helpers ---

    def _emit_operator(self, opcode: Opcode, arity: int) -> None:
        slots = self.context.consume(arity)
        self.context.emit(opcode, *(Operand(slot) for slot in slots))
        self.context.push_slot()

    def _restore_delimiters(self) -> None:
        instructions = self.context.instructions
        for index, token in enumerate(instructions):
            if not isinstance(token, Opcode):
                continue
            match = _DELIMITER_OPCODE.match(token.name)
            if match:
                instructions[index] = Opcode(self.context.delimiters[int(match.group(1))].value)


def convert_to_instruction_set(
    syntax: str,
    components: Iterable[RuleComponent],
    placeholders: Iterable[PlaceholderStruct],
    trackers: Iterable[TrackerRef] = (),
    parser: Optional[ExpressionParser] = None,
    context: Optional[LoweringContext] = None,
) -> InstructionSet:
    """
    Convert normalized condition or effect text into an instruction set.

    A fresh LoweringContext is used unless one is given, so no bookkeeping
    leaks between conversions.

    Args:
        syntax: Text as returned by extract_references
        components: Components extracted from the same text
        placeholders: Placeholder list PLH operands index into
        trackers: Tracker table
        parser: Optional shared leaf parser
        context: Optional context to inspect after conversion

    Returns:
        Typed instruction set with logical keywords restored
    """
    context = context if context is not None else LoweringContext()
    tree = ExpressionTreeBuilder(context, parser).build(syntax)
    lowering = InstructionLowering(context, components, placeholders, trackers, syntax)
    return lowering.lower(tree)
