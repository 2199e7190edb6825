"""
rulec Lowering Context - Per-compilation state for tree building and lowering.

One context is created for every top-level conversion of a condition or
effect, so independent rules can be compiled concurrently without
sharing bookkeeping.
"""

from dataclasses import dataclass, field
from typing import Optional

from rulec.exceptions import RuleCompilerError
from rulec.parser.ast import LogicalOperator, Node


@dataclass
class TrackerUpdateTarget:
    """
    The tracker written by the most recent tracker update.

    Attributes:
        reference: Tracker reference (TR:name)
        tracker_id: On-chain tracker id
        key_slot: Memory slot holding the key for mapped trackers
    """
    reference: str
    tracker_id: int
    key_slot: Optional[int] = None


@dataclass
class LoweringContext:
    """
    Accumulator threaded through tree building and lowering.

    Attributes:
        instructions: Instruction tokens emitted so far
        mem: Slots available to the next operator, most recent last
        iterator: Next free memory slot
        delimiters: Logical keywords in source order; PLA<n> indexes here
        subexpressions: Built bracket sub-trees keyed by PLH<n> token
        tracker_update: Last tracker written, if any
    """
    instructions: list = field(default_factory=list)
    mem: list[int] = field(default_factory=list)
    iterator: int = 0
    delimiters: list[LogicalOperator] = field(default_factory=list)
    subexpressions: dict[str, Node] = field(default_factory=dict)
    tracker_update: Optional[TrackerUpdateTarget] = None

    def emit(self, *tokens) -> None:
        self.instructions.extend(tokens)

    def push_slot(self) -> int:
        """Record the next slot as available and advance the counter."""
        slot = self.iterator
        self.mem.append(slot)
        self.iterator += 1
        return slot

    def consume(self, count: int) -> list[int]:
        """Remove and return the last count slots, oldest first."""
        if len(self.mem) < count:
            raise RuleCompilerError(
                f"Operator needs {count} operands, {len(self.mem)} available"
            )
        slots = self.mem[-count:]
        del self.mem[-count:]
        return slots
