"""
Tests for rulec foreign call and tracker discovery.
"""

import pytest

from rulec.components import ForeignCallRef
from rulec.compiler.dependencies import (
    build_foreign_call_list,
    build_tracker_list,
    resolve_dependencies,
)
from rulec.exceptions import CyclicForeignCallError, UnknownReferenceError


class TestBuildLists:
    """Pure extraction entry points."""

    def test_foreign_call_list(self):
        text = "FC:balance(to) > 5 AND FC:limit > 2 OR FC:balance(from) < 1"
        assert build_foreign_call_list(text) == ["balance", "limit"]

    def test_foreign_call_list_empty(self):
        assert build_foreign_call_list("value > 5") == []

    def test_tracker_list_reads_then_updates(self):
        text = "TRU:total += 1 AND TR:count > 2 AND TR:limit(to) < 5"
        assert build_tracker_list(text) == ["count", "limit", "total"]

    def test_tracker_list_deduplicated(self):
        assert build_tracker_list("TRU:count = TR:count + 1") == ["count"]


class TestResolveDependencies:
    """Depth-first dependency ordering and cycle detection."""

    def test_no_dependencies(self):
        calls = [ForeignCallRef("price", 1, ("to",))]
        assert resolve_dependencies("FC:price > 5", calls) == ["FC:price"]

    def test_dependencies_first(self):
        calls = [
            ForeignCallRef("score", 1, ("to", "FC:rate", "TR:weight")),
            ForeignCallRef("rate", 2, "FC:base"),
            ForeignCallRef("base", 3),
        ]

        assert resolve_dependencies("FC:score > 5", calls) == [
            "FC:base", "FC:rate", "TR:weight", "FC:score",
        ]

    def test_shared_dependency_listed_once(self):
        calls = [
            ForeignCallRef("a", 1, "FC:base"),
            ForeignCallRef("b", 2, "FC:base"),
            ForeignCallRef("base", 3),
        ]

        assert resolve_dependencies("FC:a > FC:b", calls) == ["FC:base", "FC:a", "FC:b"]

    def test_self_reference(self):
        calls = [ForeignCallRef("loop", 1, ("FC:loop",))]

        with pytest.raises(CyclicForeignCallError) as exc_info:
            resolve_dependencies("FC:loop > 1", calls)

        assert exc_info.value.chain == ["loop", "loop"]
        assert "own result" in str(exc_info.value)

    def test_indirect_cycle(self):
        calls = [
            ForeignCallRef("a", 1, ("FC:b",)),
            ForeignCallRef("b", 2, ("FC:c",)),
            ForeignCallRef("c", 3, ("FC:a",)),
        ]

        with pytest.raises(CyclicForeignCallError) as exc_info:
            resolve_dependencies("FC:a > 1", calls)

        assert exc_info.value.chain == ["a", "b", "c", "a"]

    def test_unknown_dependency(self):
        calls = [ForeignCallRef("a", 1, ("FC:ghost",))]

        with pytest.raises(UnknownReferenceError) as exc_info:
            resolve_dependencies("FC:a > 1", calls)

        assert exc_info.value.reference == "FC:ghost"
