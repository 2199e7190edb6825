"""
rulec Extractor - Reference extraction for condition and effect strings.

Finds the domain references in a raw rule string and normalizes them so
the tree builder and leaf grammar never confuse reference classes with
plain identifiers:

    FC:<name>(args)      ->  FC#<id>
    TR:<name>(key)       ->  key | TR:<name>
    TRU:<name>(key)      ->  key | TRU:<name>
    [ sub-expression ]   ->  PLH<n>

Each reference found becomes a RuleComponent. Text inside quotes is
never rewritten.
"""

import logging
import re
from typing import Iterable, Iterator, Optional

from rulec.components import (
    GLOBAL_VARIABLE_FLAGS,
    SUPPORTED_ARGUMENT_TYPES,
    ForeignCallRef,
    RuleComponent,
    TrackerRef,
)
from rulec.exceptions import RuleParseError, UnknownReferenceError

logger = logging.getLogger(__name__)

_QUOTED_PATTERN = re.compile(r'("[^"]*"|\'[^\']*\')')

FOREIGN_CALL_PATTERN = re.compile(r'(?<![\w:#])FC:([A-Za-z_]\w*)(\([^()]*\))?')
MAPPED_TRACKER_PATTERN = re.compile(r'(?<![\w:])(TRU?):([A-Za-z_]\w*)\(([^()]+)\)')
TRACKER_PATTERN = re.compile(r'(?<![\w:])(TRU?):([A-Za-z_]\w*)')
GLOBAL_PATTERN = re.compile(r'(?<![\w:])GV:([A-Za-z_]\w*)')


def clean_syntax(text: str) -> str:
    """Collapse line breaks and runs of whitespace into single spaces."""
    return re.sub(r'\s+', ' ', text).strip()


def split_quoted(text: str) -> list[str]:
    """
    Split text into alternating unquoted and quoted segments.

    Even indices are unquoted text, odd indices are quoted strings
    including their quotes.
    """
    return _QUOTED_PATTERN.split(text)


def map_unquoted(text: str, fn) -> str:
    """Apply fn to every unquoted segment of text."""
    parts = split_quoted(text)
    parts[::2] = [fn(part) for part in parts[::2]]
    return "".join(parts)


def find_unquoted(pattern: re.Pattern, text: str) -> Iterator[re.Match]:
    """Yield pattern matches found outside quoted strings, in order."""
    for part in split_quoted(text)[::2]:
        yield from pattern.finditer(part)


def references_name(name: str, text: str) -> bool:
    """Return True if name appears as a whole word outside quotes."""
    pattern = re.compile(r'(?<![\w:#])' + re.escape(name) + r'(?![\w:])')
    return any(True for _ in find_unquoted(pattern, text))


def parse_function_arguments(encoded_values: str, syntax: Optional[str] = None) -> list[RuleComponent]:
    """
    Parse a calling function argument declaration into components.

    Each argument keeps its declared position as t_index. Arguments of
    unsupported types are skipped, as are arguments syntax never names
    when syntax is given.

    Args:
        encoded_values: Declaration such as "address to, uint256 value"
        syntax: Optional condition or effect text to filter against

    Returns:
        List of function argument components

    Example:
        >>> [c.name for c in parse_function_arguments("address to, uint256 value", "value > 5")]
        ['value']
    """
    if not encoded_values.strip():
        return []

    components = []
    for t_index, param in enumerate(encoded_values.split(",")):
        parts = param.split()
        if len(parts) < 2:
            raise RuleParseError(
                f"Malformed argument declaration '{param.strip()}'",
                syntax=encoded_values,
            )
        raw_type, name = parts[0], parts[1]
        if raw_type not in SUPPORTED_ARGUMENT_TYPES:
            logger.debug("Skipping argument %s of unsupported type %s", name, raw_type)
            continue
        if syntax is not None and not references_name(name, syntax):
            continue
        components.append(RuleComponent.function_argument(name, t_index, raw_type))
    return components


def extract_subexpressions(text: str, start: int = 0) -> tuple[str, list[str]]:
    """
    Replace bracket sub-expressions with PLH<n> tokens, innermost first.

    The last '[' is paired with the first ']' after it, so nested
    brackets are always extracted before the brackets enclosing them and
    an outer sub-expression refers to its inner ones by token.

    Args:
        text: Text with quoted strings already masked
        start: First token number to hand out

    Returns:
        Tuple of (rewritten text, sub-expression contents in token order)

    Raises:
        RuleParseError: If brackets are unbalanced
    """
    contents = []
    while True:
        open_idx = text.rfind("[")
        if open_idx == -1:
            break
        close_idx = text.find("]", open_idx)
        if close_idx == -1:
            raise RuleParseError("Unbalanced brackets", syntax=text, position=open_idx)
        contents.append(text[open_idx + 1:close_idx].strip())
        token = f"PLH{start + len(contents) - 1}"
        text = text[:open_idx] + token + text[close_idx + 1:]

    if "]" in text:
        raise RuleParseError("Unbalanced brackets", syntax=text, position=text.index("]"))
    return text, contents


def _rewrite_mapped(match: re.Match) -> str:
    prefix, name, key = match.group(1), match.group(2), match.group(3).strip()
    if " " in key:
        key = f"({key})"
    return f"{key} | {prefix}:{name}"


def extract_references(
    syntax: str,
    function_arguments: Iterable[RuleComponent] = (),
    trackers: Iterable[TrackerRef] = (),
    foreign_calls: Iterable[ForeignCallRef] = (),
    dependencies: Optional[Iterable[str]] = None,
) -> tuple[str, list[RuleComponent]]:
    """
    Extract domain references from a condition or effect string.

    Components are returned grouped by family in the order function
    arguments, foreign calls, trackers, tracker updates, global
    variables; within a family in order of appearance. Each name appears
    once.

    Args:
        syntax: Raw condition or effect text
        function_arguments: Declared calling function arguments
        trackers: Tracker table of the policy
        foreign_calls: Foreign call table of the policy
        dependencies: FC:/TR: references in dependency order, as returned
            by resolve_dependencies. Foreign calls listed here but absent
            from the text become dependency-only components. Defaults to
            the foreign calls named in the text.

    Returns:
        Tuple of (normalized text, component list)

    Raises:
        UnknownReferenceError: If a prefixed reference has no table entry
    """
    text = clean_syntax(syntax)
    calls = {fc.name: fc for fc in foreign_calls}
    tracker_table = {tr.name: tr for tr in trackers}

    components: list[RuleComponent] = []
    seen = set()

    def add(component: RuleComponent):
        if component.name not in seen:
            seen.add(component.name)
            components.append(component)

    for argument in function_arguments:
        if references_name(argument.name, text):
            add(argument)

    # --- Foreign calls ---

    referenced_calls = []

    def replace_call(match: re.Match) -> str:
        name = match.group(1)
        if name not in calls:
            raise UnknownReferenceError(f"FC:{name}", syntax=syntax)
        if name not in referenced_calls:
            referenced_calls.append(name)
        return calls[name].token

    text = map_unquoted(text, lambda part: FOREIGN_CALL_PATTERN.sub(replace_call, part))

    if dependencies is None:
        dependencies = [f"FC:{name}" for name in referenced_calls]

    dependency_trackers = []
    for reference in dependencies:
        prefix, _, name = reference.partition(":")
        if prefix == "TR":
            dependency_trackers.append(name)
            continue
        if name not in calls:
            raise UnknownReferenceError(reference, syntax=syntax)
        fc = calls[name]
        add(RuleComponent.foreign_call(fc, fc.token if name in referenced_calls else None))

    # Calls named in the text but missing from the dependency list
    for name in referenced_calls:
        add(RuleComponent.foreign_call(calls[name], calls[name].token))

    # --- Trackers ---

    text = map_unquoted(text, lambda part: MAPPED_TRACKER_PATTERN.sub(_rewrite_mapped, part))

    tracker_reads = []
    tracker_updates = []
    for match in find_unquoted(TRACKER_PATTERN, text):
        prefix, name = match.group(1), match.group(2)
        if name not in tracker_table:
            raise UnknownReferenceError(f"{prefix}:{name}", syntax=syntax)
        (tracker_updates if prefix == "TRU" else tracker_reads).append(name)

    for name in tracker_reads + dependency_trackers:
        if name not in tracker_table:
            raise UnknownReferenceError(f"TR:{name}", syntax=syntax)
        add(RuleComponent.tracker(tracker_table[name]))
    for name in tracker_updates:
        add(RuleComponent.tracker(tracker_table[name], update=True))

    # --- Global variables ---

    for match in find_unquoted(GLOBAL_PATTERN, text):
        reference = f"GV:{match.group(1)}"
        if reference not in GLOBAL_VARIABLE_FLAGS:
            raise UnknownReferenceError(reference, syntax=syntax)
        add(RuleComponent.global_variable(reference))

    logger.debug("Extracted %d components from '%s'", len(components), text)
    return text, components
