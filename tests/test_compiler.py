"""
Tests for the rulec RuleCompiler.

End-to-end compilation of conditions, effects and whole rules, plus
configuration and error serialization.
"""

import pytest

from rulec import (
    CompilerConfig,
    ForeignCallRef,
    RuleCompiler,
    RuleSyntax,
    TrackerRef,
)
from rulec.components import ComponentType, RuleComponent
from rulec.compiler.compiler import merge_components
from rulec.compiler.effects import EffectType
from rulec.exceptions import (
    CyclicForeignCallError,
    LiteralValidationError,
    NumericRangeError,
    RuleParseError,
    UnknownReferenceError,
)


@pytest.fixture
def compiler():
    return RuleCompiler(
        "address to, uint256 value",
        trackers=[TrackerRef("count", 1), TrackerRef("limits", 2)],
        foreign_calls=[
            ForeignCallRef("score", 1, ("to", "FC:rate")),
            ForeignCallRef("rate", 2),
        ],
    )


# ── Conditions ───────────────────────────────────────────────────────


class TestCompileCondition:
    """Conditions compile to instructions, placeholders and raw data."""

    def test_simple(self, compiler):
        compiled = compiler.compile_condition("value > 500")

        assert compiled.instruction_set.to_list() == ["PLH", 0, "N", 500, ">", 0, 1]
        assert [p.to_dict() for p in compiled.placeholders] == [
            {"pType": 2, "typeSpecificIndex": 1, "flags": 0},
        ]
        assert compiled.raw_data.to_dict() == {
            "instructionSetIndex": [3],
            "dataValues": [500],
            "argumentTypes": [2],
        }

    def test_argument_and_tracker(self, compiler):
        compiled = compiler.compile_condition("value > 500 AND TR:count < 10")

        assert compiled.instruction_set.to_list() == [
            "PLH", 0, "N", 500, ">", 0, 1,
            "PLH", 1, "N", 10, "<", 3, 4,
            "AND", 2, 5,
        ]
        assert [(p.type_specific_index, p.flags) for p in compiled.placeholders] == [
            (1, 0x00), (1, 0x02),
        ]
        assert compiled.raw_data.instruction_set_index == [3, 10]

    def test_dependency_placeholders_first(self, compiler):
        """Test a call's dependency is bound before the call itself."""
        compiled = compiler.compile_condition("FC:score > 5")

        assert [(p.type_specific_index, p.flags) for p in compiled.placeholders] == [
            (2, 0x01), (1, 0x01),
        ]
        assert compiled.instruction_set.to_list() == ["PLH", 1, "N", 5, ">", 0, 1]

    def test_string_literal(self, compiler):
        compiled = compiler.compile_condition('to == "alice"')

        assert compiled.raw_data.data_values == ["alice"]
        assert compiled.instruction_set.to_list()[3] == '"alice"'

    def test_to_dict(self, compiler):
        d = compiler.compile_condition("value > 500").to_dict()
        assert set(d) == {"instructionSet", "placeholders", "rawData"}


class TestConditionErrors:
    """Every error aborts the compilation."""

    def test_unquoted_literal(self, compiler):
        with pytest.raises(LiteralValidationError):
            compiler.compile_condition("value == pending")

    def test_unquoted_literal_permissive(self):
        compiler = RuleCompiler("uint256 value", config=CompilerConfig(strict_literals=False))
        compiled = compiler.compile_condition("value == pending")

        assert compiled.raw_data.data_values == ["pending"]

    def test_overflow(self, compiler):
        with pytest.raises(NumericRangeError) as exc_info:
            compiler.compile_condition(f"value > {2 ** 256}")

        assert exc_info.value.literal == str(2 ** 256)

    def test_max_uint256_accepted(self, compiler):
        compiled = compiler.compile_condition(f"value > {2 ** 256 - 1}")
        assert compiled.raw_data.data_values == [2 ** 256 - 1]

    def test_unknown_foreign_call(self, compiler):
        with pytest.raises(UnknownReferenceError) as exc_info:
            compiler.compile_condition("FC:missing > 1")

        assert exc_info.value.reference == "FC:missing"

    def test_unknown_tracker(self, compiler):
        with pytest.raises(UnknownReferenceError):
            compiler.compile_condition("TR:missing > 1")

    def test_cyclic_calls(self):
        compiler = RuleCompiler(foreign_calls=[
            ForeignCallRef("a", 1, ("FC:b",)),
            ForeignCallRef("b", 2, ("FC:a",)),
        ])

        with pytest.raises(CyclicForeignCallError):
            compiler.compile_condition("FC:a > 1")

    def test_unbalanced(self, compiler):
        with pytest.raises(RuleParseError):
            compiler.compile_condition("(value > 1")

    def test_compiler_reusable_after_error(self, compiler):
        """Test that a failed compilation leaves no state behind."""
        with pytest.raises(RuleParseError):
            compiler.compile_condition("value > 1 AND")

        compiled = compiler.compile_condition("value > 1 OR value < 0")
        assert compiled.instruction_set.to_list()[-3:] == ["OR", 2, 5]


# ── Effects ──────────────────────────────────────────────────────────


class TestCompileEffects:
    """Effects of one polarity share a placeholder list."""

    def test_shared_placeholders(self, compiler):
        effects, placeholders = compiler.compile_effects([
            "TRU:count += value",
            "emit Paid, value",
        ])

        assert [(p.type_specific_index, p.flags) for p in placeholders] == [
            (1, 0x00), (1, 0x02),
        ]
        assert effects[0].instruction_set.to_list() == [
            "PLH", 1, "PLH", 0, "+", 0, 1, "TRU", 1, 2, 0,
        ]
        assert effects[1].dynamic_param
        assert effects[1].event_placeholder_index == 0

    def test_expression_continues_after_update(self, compiler):
        effect = compiler.compile_effect("TRU:count += 1 AND value > 5")

        assert effect.instruction_set.to_list() == [
            "PLH", 1, "N", 1, "+", 0, 1, "TRU", 1, 2, 0,
            "PLH", 0, "N", 5, ">", 4, 5,
            "AND", 3, 6,
        ]

    def test_no_effects(self, compiler):
        assert compiler.compile_effects([]) == ([], [])

    def test_compile_single_effect(self, compiler):
        effect = compiler.compile_effect('revert("blocked")')

        assert effect.type == EffectType.REVERT
        assert effect.text == "blocked"


class TestMergeComponents:
    """Merging keeps one entry per name."""

    def test_first_seen_order(self):
        value = RuleComponent.function_argument("value", 1, "uint256")
        to = RuleComponent.function_argument("to", 0, "address")

        assert merge_components([[value], [to, value]]) == [value, to]

    def test_dependency_only_call_upgraded(self):
        call = ForeignCallRef("rate", 2)
        dependency = RuleComponent.foreign_call(call)
        referenced = RuleComponent.foreign_call(call, call.token)

        merged = merge_components([[dependency], [referenced]])

        assert merged == [referenced]
        assert merged[0].component_type == ComponentType.FOREIGN_CALL


class TestEncodeForeignCalls:

    def test_encode_foreign_calls(self, compiler):
        assert compiler.encode_foreign_calls() == {
            "score": {
                "encodedIndices": [
                    {"eType": 0, "index": 0},
                    {"eType": 1, "index": 2},
                ],
                "mappedTrackerKeyIndices": [],
            },
            "rate": {"encodedIndices": [], "mappedTrackerKeyIndices": []},
        }


# ── Whole rules ──────────────────────────────────────────────────────


class TestCompileRule:

    def test_compile_rule(self, compiler):
        rule = RuleSyntax(
            condition="value > 500 AND TR:count < 10",
            positive_effects=["TRU:count += 1", "emit Big, value"],
            negative_effects=['revert("too small")'],
        )

        compiled = compiler.compile_rule(rule)

        assert compiled.instruction_set == compiled.condition.instruction_set
        assert len(compiled.placeholders) == 2
        assert [e.type for e in compiled.positive_effects] == [
            EffectType.EXPRESSION, EffectType.EVENT,
        ]
        assert compiled.negative_effects[0].text == "too small"
        assert compiled.negative_effect_placeholders == []

        d = compiled.to_dict()
        assert d["rawData"]["instructionSetIndex"] == [3, 10]
        assert len(d["positiveEffects"]) == 2


# ── Configuration and errors ─────────────────────────────────────────


class TestConfig:

    def test_default_strict(self):
        assert CompilerConfig().strict_literals

    @pytest.mark.parametrize("value", ["0", "false", "No", " off "])
    def test_from_env_disabled(self, value):
        assert not CompilerConfig.from_env({"RULEC_STRICT_LITERALS": value}).strict_literals

    def test_from_env_missing(self):
        assert CompilerConfig.from_env({}).strict_literals

    def test_from_os_environ(self, monkeypatch):
        monkeypatch.setenv("RULEC_STRICT_LITERALS", "false")
        assert not CompilerConfig.from_env().strict_literals


class TestErrorSerialization:

    def test_unknown_reference(self):
        d = UnknownReferenceError("FC:x", syntax="FC:x > 1").to_dict()

        assert d["error"] == "UnknownReferenceError"
        assert d["reference"] == "FC:x"
        assert d["syntax"] == "FC:x > 1"

    def test_literal_validation(self):
        d = LiteralValidationError("pending", 3).to_dict()

        assert d["token"] == "pending"
        assert d["index"] == 3
        assert d["message"] == "Strings must be in quotes: 'pending' at instruction 3"

    def test_cycle(self):
        d = CyclicForeignCallError(["a", "b", "a"]).to_dict()

        assert d["chain"] == ["a", "b", "a"]
        assert "a -> b -> a" in d["message"]
