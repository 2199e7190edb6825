"""
rulec Tree - Expression tree builder for logical connectives.

Turns a normalized condition or effect string into a typed expression
tree. Logical keywords are replaced by ordinal PLA<n> tokens recorded in
the context's delimiter list; parenthesized groups collapse into i:<n>
tokens, innermost and rightmost first; the remaining operands are handed
to the leaf grammar.

All AND/OR connectives share one precedence level and fold left to
right. NOT is a prefix operator binding to the operand that follows it.
"""

import logging
import re
from collections import deque
from typing import Optional

from rulec.exceptions import RuleParseError
from rulec.parser.ast import LogicalOp, LogicalOperator, Node, UnaryNot
from rulec.parser.extractor import extract_subexpressions, split_quoted
from rulec.parser.parser import ExpressionParser

logger = logging.getLogger(__name__)

_LOGICAL_PATTERN = re.compile(r'\b(AND|OR|NOT)\b')
_DELIMITER_PATTERN = re.compile(r'\s*\b(PLA\d+)\b\s*')
_GROUP_TOKEN = re.compile(r'(?<![\w:])i:(\d+)')
_STRING_TOKEN = re.compile(r'(?<![\w:])q:(\d+)')

_CLOSERS = {")": "(", "]": "["}


def check_balanced(text: str):
    """
    Raise RuleParseError unless every ( and [ is closed in nesting order.

    Quoted strings must already be masked.
    """
    stack = []
    for position, char in enumerate(text):
        if char in "([":
            stack.append((char, position))
        elif char in _CLOSERS:
            if not stack or stack[-1][0] != _CLOSERS[char]:
                raise RuleParseError(f"Unbalanced '{char}'", syntax=text, position=position)
            stack.pop()
    if stack:
        char, position = stack[-1]
        raise RuleParseError(f"Unclosed '{char}'", syntax=text, position=position)


class ExpressionTreeBuilder:
    """
    Builds the expression tree for one condition or effect.

    Args:
        context: Per-compilation state. The builder appends the logical
            keywords it replaces to context.delimiters and stores built
            bracket sub-trees in context.subexpressions.
        parser: Leaf expression parser; shared parsers are safe to pass

    Example:
        builder = ExpressionTreeBuilder(LoweringContext())
        tree = builder.build("value > 5 AND NOT (amount == 0)")
    """

    def __init__(self, context, parser: Optional[ExpressionParser] = None):
        self.context = context
        self.parser = parser or ExpressionParser()
        self._groups: list[str] = []
        self._strings: list[str] = []

    def build(self, text: str) -> Node:
        """
        Build the tree for a normalized condition or effect string.

        Raises:
            RuleParseError: On unbalanced parentheses or brackets, or a
                logical operator missing an operand
            NumericRangeError: If a numeric literal exceeds uint256
        """
        masked = self._mask_strings(text)
        check_balanced(masked)
        masked = _LOGICAL_PATTERN.sub(self._replace_delimiter, masked)

        start = len(self.context.subexpressions)
        masked, contents = extract_subexpressions(masked, start=start)
        for offset, content in enumerate(contents):
            self.context.subexpressions[f"PLH{start + offset}"] = self._build_level(content)

        tree = self._build_level(masked)
        logger.debug(
            "Built tree for '%s' with %d delimiters and %d sub-expressions",
            text, len(self.context.delimiters), len(self.context.subexpressions),
        )
        return tree

    # --- Text normalization ---

    def _mask_strings(self, text: str) -> str:
        parts = split_quoted(text)
        for index in range(1, len(parts), 2):
            self._strings.append(parts[index])
            parts[index] = f"q:{len(self._strings) - 1}"
        return "".join(parts)

    def _replace_delimiter(self, match: re.Match) -> str:
        self.context.delimiters.append(LogicalOperator(match.group(1)))
        return f" PLA{len(self.context.delimiters) - 1} "

    def _collapse_groups(self, text: str) -> str:
        # Rightmost '(' first, so every stored group holds only i:<n>
        # tokens for the groups nested in it
        while True:
            open_idx = text.rfind("(")
            if open_idx == -1:
                return text
            close_idx = text.find(")", open_idx)
            self._groups.append(text[open_idx + 1:close_idx])
            text = f"{text[:open_idx]} i:{len(self._groups) - 1} {text[close_idx + 1:]}"

    def _expand(self, text: str) -> str:
        """Restore group and string tokens to their original text."""
        def group(match):
            return "(" + self._expand(self._groups[int(match.group(1))]) + ")"

        text = _GROUP_TOKEN.sub(group, text)
        return _STRING_TOKEN.sub(lambda match: self._strings[int(match.group(1))], text)

    # --- Logical structure ---

    def _build_level(self, text: str) -> Node:
        return self._parse_logical(self._collapse_groups(text))

    def _parse_logical(self, text: str) -> Node:
        tokens = deque()
        for index, part in enumerate(_DELIMITER_PATTERN.split(text)):
            if index % 2:
                tokens.append(("delimiter", int(part[3:])))
            elif part.strip():
                tokens.append(("operand", part.strip()))

        if not tokens:
            raise RuleParseError("Empty expression", syntax=self._expand(text))

        left = self._parse_unary(tokens, text)
        while tokens:
            kind, value = tokens.popleft()
            if kind != "delimiter" or self.context.delimiters[value] == LogicalOperator.NOT:
                raise RuleParseError(
                    "Expected AND or OR between operands",
                    syntax=self._restore(text),
                )
            right = self._parse_unary(tokens, text)
            left = LogicalOp(
                op=self.context.delimiters[value],
                ordinal=value,
                left=left,
                right=right,
            )
        return left

    def _parse_unary(self, tokens: deque, text: str) -> Node:
        if not tokens:
            raise RuleParseError("Logical operator is missing an operand", syntax=self._restore(text))

        kind, value = tokens.popleft()
        if kind == "operand":
            return self._build_operand(value)

        operator = self.context.delimiters[value]
        if operator != LogicalOperator.NOT:
            raise RuleParseError(
                f"{operator.value} is missing its left operand",
                syntax=self._restore(text),
            )
        return UnaryNot(ordinal=value, operand=self._parse_unary(tokens, text))

    def _build_operand(self, text: str) -> Node:
        match = _GROUP_TOKEN.fullmatch(text)
        if match:
            return self._parse_logical(self._groups[int(match.group(1))])

        leaf = self._expand(text)
        if _DELIMITER_PATTERN.search(leaf):
            raise RuleParseError(
                "Logical operator inside a comparison or arithmetic expression",
                syntax=self._restore(leaf),
            )
        return self.parser.parse(leaf, self.context.subexpressions)

    def _restore(self, text: str) -> str:
        """Expanded text with PLA<n> tokens turned back into keywords."""
        def keyword(match):
            return f" {self.context.delimiters[int(match.group(1)[3:])].value} "

        return _DELIMITER_PATTERN.sub(keyword, self._expand(text)).strip()


def build_tree(text: str, context, parser: Optional[ExpressionParser] = None) -> Node:
    """
    Convenience function to build the expression tree for one string.

    Args:
        text: Normalized condition or effect text
        context: Per-compilation state holding delimiters and sub-expressions
        parser: Optional shared leaf parser

    Returns:
        Root node of the expression tree
    """
    return ExpressionTreeBuilder(context, parser).build(text)
