"""
rulec Parser - Lark-based parser for leaf rule expressions.

Parses a leaf expression string (no AND/OR/NOT connectives) into AST
nodes. Bracket sub-expressions already built by the tree builder are
passed in by their PLH<n> token and spliced back into the result.
"""

from typing import Optional

from lark import Lark, Transformer
from lark.exceptions import LarkError, UnexpectedInput, VisitError

from rulec.exceptions import RuleCompilerError, RuleParseError
from rulec.parser.grammar import get_grammar
from rulec.parser.ast import (
    BinaryOp,
    Identifier,
    Literal,
    MappedAccess,
    Node,
    Operator,
    TrackerUpdate,
    UpdateOperator,
)

_BOOLEANS = ("true", "false")


class ExpressionTransformer(Transformer):
    """
    Lark Transformer that converts a leaf parse tree to rulec AST nodes.

    Args:
        subexpressions: Already built bracket sub-trees keyed by PLH<n> token
    """

    def __init__(self, subexpressions: Optional[dict] = None):
        super().__init__()
        self.subexpressions = subexpressions or {}

    # --- Terminal handling ---

    def NAME(self, token):
        return str(token)

    # --- Operators ---

    def comp_op(self, items):
        return Operator(str(items[0]))

    def add_op(self, items):
        return Operator(str(items[0]))

    def mul_op(self, items):
        return Operator(str(items[0]))

    def assign_op(self, items):
        return UpdateOperator(str(items[0]))

    # --- Leaves ---

    def reference(self, items):
        name = items[0]
        if name in self.subexpressions:
            return self.subexpressions[name]
        if name in _BOOLEANS:
            return Literal.from_bool(name)
        return Identifier(name)

    def target_reference(self, items):
        return Identifier(items[0])

    def number(self, items):
        return Literal.from_number(str(items[0]))

    def string(self, items):
        return Literal.from_string(str(items[0]))

    def mapped(self, items):
        key, name = items
        tracker = Identifier(name)
        if tracker.tracker_name is None:
            raise RuleParseError(
                f"Mapped access requires a tracker, got '{name}'",
                syntax=name,
            )
        return MappedAccess(key=key, tracker=tracker)

    # --- Operations ---

    def binary(self, items):
        left, op, right = items
        return BinaryOp(op=op, left=left, right=right)

    def comparison(self, items):
        left, op, right = items
        return BinaryOp(op=op, left=left, right=right)

    def assignment(self, items):
        target, op, value = items
        tracker = target.tracker if isinstance(target, MappedAccess) else target
        if not isinstance(tracker, Identifier) or tracker.tracker_name is None:
            raise RuleParseError("Only trackers can be updated")
        return TrackerUpdate(op=op, target=target, value=value)


class ExpressionParser:
    """
    Leaf expression parser using Lark.

    The Lark instance is built once and only read afterwards, so one
    parser can be shared by any number of compilations.

    Example:
        parser = ExpressionParser()
        node = parser.parse("value > 500")
    """

    def __init__(self):
        self._parser = Lark(
            get_grammar(),
            parser='lalr',
        )

    def parse(self, text: str, subexpressions: Optional[dict] = None) -> Node:
        """
        Parse a leaf expression string into an AST node.

        Args:
            text: The leaf expression to parse
            subexpressions: Bracket sub-trees keyed by their PLH<n> token

        Returns:
            AST node

        Raises:
            RuleParseError: If the text does not match the grammar
            NumericRangeError: If a numeric literal exceeds uint256
        """
        try:
            tree = self._parser.parse(text)
        except UnexpectedInput as e:
            raise RuleParseError(
                f"Invalid expression '{text}': unexpected input at column {getattr(e, 'column', '?')}",
                syntax=text,
                position=getattr(e, "pos_in_stream", None),
            ) from e
        except LarkError as e:
            raise RuleParseError(f"Invalid expression '{text}': {e}", syntax=text) from e

        try:
            return ExpressionTransformer(subexpressions).transform(tree)
        except VisitError as e:
            if isinstance(e.orig_exc, RuleCompilerError):
                raise e.orig_exc
            raise


def parse_expression(text: str, subexpressions: Optional[dict] = None) -> Node:
    """
    Convenience function to parse a leaf expression.

    Creates a parser instance and parses the text.
    For repeated parsing, use ExpressionParser directly for better performance.

    Args:
        text: The leaf expression to parse
        subexpressions: Optional bracket sub-trees keyed by PLH<n> token

    Returns:
        AST node
    """
    parser = ExpressionParser()
    return parser.parse(text, subexpressions)
