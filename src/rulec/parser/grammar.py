"""
rulec Grammar - Lark EBNF grammar for leaf rule expressions.

A leaf expression is what remains of a condition or effect once the
logical connectives (AND/OR/NOT) have been split out by the tree builder:
- Comparisons (==, !=, >=, <=, >, <)
- Arithmetic (+, -, *, /), multiplicative binding tighter than additive
- Tracker updates (+=, -=, *=, /=, =)
- Mapped tracker access (key | TR:name)
- References, numbers, addresses, booleans and quoted strings

Foreign calls arrive already normalized to FC#<id> tokens and bracket
sub-expressions to PLH<n> tokens.
"""

LEAF_GRAMMAR = r'''
?start: expression

?expression: assignment
           | comparison
           | sum

assignment: target assign_op sum

?target: NAME -> target_reference
       | mapped

comparison: sum comp_op sum

?sum: product
    | sum add_op product -> binary

?product: atom
        | product mul_op atom -> binary

?atom: mapped
     | primary

mapped: primary "|" NAME

?primary: NAME -> reference
        | NUMBER -> number
        | STRING -> string
        | "(" expression ")"

!comp_op: "==" | "!=" | ">=" | "<=" | ">" | "<"
!assign_op: "+=" | "-=" | "*=" | "/=" | "="
!add_op: "+" | "-"
!mul_op: "*" | "/"

// Terminals
NAME: /FC#[0-9]+|[A-Za-z_][A-Za-z0-9_]*(?::[A-Za-z_][A-Za-z0-9_]*)?/
NUMBER: /0x[0-9a-fA-F]+|[0-9]+/
STRING: /"[^"]*"/ | /'[^']*'/

%import common.WS
%ignore WS
'''


def get_grammar() -> str:
    """Return the leaf expression grammar string for use with Lark."""
    return LEAF_GRAMMAR
