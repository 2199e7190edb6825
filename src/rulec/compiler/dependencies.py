"""
rulec Dependencies - Foreign call and tracker reference discovery.

The policy layer uses these to decide which foreign calls and trackers
must exist before a rule can be compiled, and the compiler uses them to
order foreign call components so that every call's inputs are bound
before the call itself.
"""

import logging
import re
from typing import Iterable

from rulec.components import ForeignCallRef
from rulec.exceptions import CyclicForeignCallError, UnknownReferenceError

logger = logging.getLogger(__name__)

_FOREIGN_CALL_NAME = re.compile(r'(?<![\w:#])FC:([A-Za-z_]\w*)')
_TRACKER_NAME = re.compile(r'(?<![\w:])(TRU?):([A-Za-z_]\w*)')


def build_foreign_call_list(text: str) -> list[str]:
    """
    Names of the foreign calls referenced in text, in order of appearance.

    Example:
        >>> build_foreign_call_list("FC:balance(to) > 5 AND FC:limit > 2")
        ['balance', 'limit']
    """
    names = []
    for match in _FOREIGN_CALL_NAME.finditer(text):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def build_tracker_list(text: str) -> list[str]:
    """
    Names of the trackers referenced in text: read trackers (TR:) first,
    then updated trackers (TRU:), each name once.
    """
    reads, updates = [], []
    for match in _TRACKER_NAME.finditer(text):
        (updates if match.group(1) == "TRU" else reads).append(match.group(2))

    names = []
    for name in reads + updates:
        if name not in names:
            names.append(name)
    return names


def resolve_dependencies(syntax: str, foreign_calls: Iterable[ForeignCallRef]) -> list[str]:
    """
    Order the foreign calls a text needs, dependencies first.

    Each foreign call named in syntax is visited depth first through its
    values_to_pass. Trackers passed to a call are listed before it.

    Args:
        syntax: Condition or effect text
        foreign_calls: Foreign call table of the policy

    Returns:
        FC:<name> and TR:<name> references, each once

    Raises:
        CyclicForeignCallError: If a call depends on itself, directly or
            through other calls
        UnknownReferenceError: If a call or dependency is not in the table
    """
    calls = {fc.name: fc for fc in foreign_calls}
    order: list[str] = []

    def visit(name: str, chain: list[str]):
        if name in chain:
            raise CyclicForeignCallError(chain[chain.index(name):] + [name])
        reference = f"FC:{name}"
        if reference in order:
            return
        if name not in calls:
            raise UnknownReferenceError(reference, syntax=syntax)

        for value in calls[name].values_to_pass:
            value = value.strip().split("(")[0]
            if value.startswith("FC:"):
                visit(value[3:], chain + [name])
            elif value.startswith("TR:") and value not in order:
                order.append(value)
        order.append(reference)

    for name in build_foreign_call_list(syntax):
        visit(name, [])

    logger.debug("Dependency order for '%s': %s", syntax, order)
    return order
