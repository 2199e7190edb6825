"""
Tests for rulec effect classification and compilation.
"""

import pytest

from rulec.components import PType, RuleComponent, TrackerRef
from rulec.compiler.effects import EffectDefinition, EffectType, parse_effect
from rulec.compiler.placeholders import build_placeholder_list
from rulec.exceptions import LiteralValidationError, RuleParseError


TRACKERS = [TrackerRef("count", 1)]


@pytest.fixture
def components():
    return [
        RuleComponent.function_argument("to", 0, "address"),
        RuleComponent.function_argument("value", 1, "uint256"),
        RuleComponent.tracker(TrackerRef("count", 1), update=True),
    ]


@pytest.fixture
def placeholders(components):
    return build_placeholder_list(components)


def parse(effect, components, placeholders, **kwargs):
    return parse_effect(effect, components, placeholders, TRACKERS, **kwargs)


# ── Revert ───────────────────────────────────────────────────────────


class TestRevert:
    """revert effects carry only a message."""

    def test_with_message(self, components, placeholders):
        effect = parse('revert("Not allowed")', components, placeholders)

        assert effect.type == EffectType.REVERT
        assert effect.text == "Not allowed"
        assert len(effect.instruction_set) == 0

    def test_single_quotes(self, components, placeholders):
        assert parse("revert('Nope')", components, placeholders).text == "Nope"

    def test_bare(self, components, placeholders):
        effect = parse("revert", components, placeholders)

        assert effect.type == EffectType.REVERT
        assert effect.text == ""

    def test_empty_parentheses(self, components, placeholders):
        assert parse("revert()", components, placeholders).text == ""

    @pytest.mark.parametrize("text", ["revert(Not allowed)", 'revert("open"', "revert x"])
    def test_malformed(self, components, placeholders, text):
        with pytest.raises(RuleParseError):
            parse(text, components, placeholders)


# ── Emit ─────────────────────────────────────────────────────────────


class TestEmit:
    """emit effects name an event and an optional parameter."""

    def test_bare_event_name(self, components, placeholders):
        effect = parse("emit Transfer", components, placeholders)

        assert effect.type == EffectType.EVENT
        assert effect.text == "Transfer"
        assert not effect.dynamic_param

    def test_quoted_event_name(self, components, placeholders):
        assert parse('emit "Transfer"', components, placeholders).text == "Transfer"

    def test_dynamic_parameter(self, components, placeholders):
        effect = parse("emit Paid, value", components, placeholders)

        assert effect.dynamic_param
        assert effect.event_placeholder_index == 1
        assert effect.p_type == PType.UINT256
        assert effect.parameter_value == "value"

    def test_dynamic_address_parameter(self, components, placeholders):
        effect = parse("emit Paid, to", components, placeholders)

        assert effect.event_placeholder_index == 0
        assert effect.p_type == PType.ADDRESS

    def test_static_number(self, components, placeholders):
        effect = parse("emit Paid, 100", components, placeholders)

        assert not effect.dynamic_param
        assert effect.p_type == PType.UINT256
        assert effect.parameter_value == 100

    def test_static_address(self, components, placeholders):
        address = "0x" + "ab" * 20
        effect = parse(f"emit Paid, {address}", components, placeholders)

        assert effect.p_type == PType.ADDRESS
        assert effect.parameter_value == address

    def test_static_string(self, components, placeholders):
        effect = parse('emit Paid, "hello"', components, placeholders)

        assert effect.p_type == PType.STRING
        assert effect.parameter_value == "hello"

    def test_missing_event_name(self, components, placeholders):
        with pytest.raises(RuleParseError):
            parse("emit", components, placeholders)

    def test_name_starting_with_emit_is_expression(self, components, placeholders):
        """Test that emitter-like names are not mistaken for the keyword."""
        tracker = TrackerRef("emitted", 2)
        emitted = [RuleComponent.tracker(tracker, update=True)]
        effect = parse_effect("TRU:emitted += 1", emitted, build_placeholder_list(emitted), [tracker])

        assert effect.type == EffectType.EXPRESSION


# ── Expressions ──────────────────────────────────────────────────────


class TestExpressionEffects:
    """Anything else is lowered as an expression."""

    def test_tracker_update(self, components, placeholders):
        effect = parse("TRU:count += 1", components, placeholders)

        assert effect.type == EffectType.EXPRESSION
        assert effect.instruction_set.to_list() == [
            "PLH", 2, "N", 1, "+", 0, 1, "TRU", 1, 2, 0,
        ]
        assert effect.raw_data.instruction_set_index == [3]
        assert effect.raw_data.data_values == [1]

    def test_unquoted_literal_strict(self, components, placeholders):
        with pytest.raises(LiteralValidationError):
            parse("TRU:count = pending", components, placeholders)

    def test_unquoted_literal_permissive(self, components, placeholders):
        effect = parse("TRU:count = pending", components, placeholders, strict=False)
        assert effect.raw_data.data_values == ["pending"]


class TestEffectDefinition:
    """Serialized form."""

    def test_to_dict(self):
        effect = EffectDefinition(type=EffectType.REVERT, text="stop")

        assert effect.to_dict() == {
            "type": 0,
            "text": "stop",
            "instructionSet": [],
            "rawData": {"instructionSetIndex": [], "dataValues": [], "argumentTypes": []},
            "pType": 2,
            "parameterValue": 0,
            "dynamicParam": False,
            "eventPlaceholderIndex": 0,
        }
