"""rulec Parser module - Reference extraction, expression tree and Lark leaf parser."""

from rulec.parser.ast import (
    BinaryOp,
    Identifier,
    Literal,
    LogicalOp,
    LogicalOperator,
    MappedAccess,
    Node,
    Operator,
    TrackerUpdate,
    UnaryNot,
    UpdateOperator,
)
from rulec.parser.parser import ExpressionParser, parse_expression
from rulec.parser.extractor import (
    extract_references,
    extract_subexpressions,
    parse_function_arguments,
)
from rulec.parser.tree import ExpressionTreeBuilder, build_tree

__all__ = [
    "ExpressionParser",
    "parse_expression",
    "ExpressionTreeBuilder",
    "build_tree",
    "extract_references",
    "extract_subexpressions",
    "parse_function_arguments",
    "BinaryOp",
    "Identifier",
    "Literal",
    "LogicalOp",
    "LogicalOperator",
    "MappedAccess",
    "Node",
    "Operator",
    "TrackerUpdate",
    "UnaryNot",
    "UpdateOperator",
]
