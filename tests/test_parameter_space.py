"""
Test 1: ParameterSpace (_datastructures.py)

Ordered multi-value parameters with typed accessors.
"""

import pytest

from strix._datastructures import ParameterSpace


class TestParameterSpaceAdd:

    def test_init_empty(self):
        ps = ParameterSpace()
        assert len(ps) == 0

    def test_add_appends_in_order(self):
        ps = ParameterSpace()
        ps.add("tag", "a")
        ps.add("tag", "b")
        ps.add("tag", "c")
        assert ps.get("tag") == "a"
        assert ps.get_all("tag") == ["a", "b", "c"]

    def test_add_never_overwrites(self):
        ps = ParameterSpace()
        ps.add("id", "1")
        ps.add("id", "2")
        assert ps.get("id") == "1"
        assert len(ps) == 1

    def test_init_from_list_keeps_duplicates(self):
        ps = ParameterSpace([("a", "1"), ("b", "2"), ("a", "3")])
        assert ps.get_all("a") == ["1", "3"]
        assert ps.get("b") == "2"

    def test_init_from_dict(self):
        ps = ParameterSpace({"x": "10", "y": ["20", "30"]})
        assert ps.get("x") == "10"
        assert ps.get_all("y") == ["20", "30"]

    def test_init_from_parameter_space(self):
        source = ParameterSpace([("a", "1"), ("a", "2")])
        copy = ParameterSpace(source)
        assert copy.get_all("a") == ["1", "2"]
        copy.add("a", "3")
        assert source.get_all("a") == ["1", "2"]

    def test_setitem_replaces(self):
        ps = ParameterSpace([("a", "1"), ("a", "2")])
        ps["a"] = "replaced"
        assert ps.get_all("a") == ["replaced"]


class TestParameterSpaceGet:

    def test_missing_key_is_empty_string(self):
        assert ParameterSpace().get("missing") == ""

    def test_default(self):
        assert ParameterSpace().get("missing", "fallback") == "fallback"

    def test_empty_value_vs_absent(self):
        ps = ParameterSpace()
        ps.add("blank", "")
        assert ps.get("blank") == ""
        assert ps.get("absent") == ""
        assert "blank" in ps
        assert "absent" not in ps
        assert ps.get_all("blank") == [""]
        assert ps.get_all("absent") == []

    def test_key_with_no_values(self):
        ps = ParameterSpace({"k": []})
        assert ps.get("k") == ""


    def test_get_all_returns_copy(self):
        ps = ParameterSpace([("a", "1")])
        ps.get_all("a").append("injected")
        assert ps.get_all("a") == ["1"]
        assert ps.get("a") == "1"


class TestParameterSpaceGetInt:

    @pytest.mark.parametrize("raw,expected", [
        ("42", 42),
        ("-7", -7),
        ("+3", 3),
        ("007", 7),
    ])
    def test_valid_integers(self, raw, expected):
        assert ParameterSpace([("n", raw)]).get_int("n") == expected

    @pytest.mark.parametrize("raw", ["abc", "", "4.5", "12abc", " 12", "1_000", "0x10"])
    def test_invalid_integers_are_zero(self, raw):
        assert ParameterSpace([("n", raw)]).get_int("n") == 0

    def test_absent_is_zero(self):
        assert ParameterSpace().get_int("n") == 0

    def test_uses_first_value(self):
        ps = ParameterSpace([("n", "1"), ("n", "2")])
        assert ps.get_int("n") == 1


class TestParameterSpaceConversion:

    def test_items_list(self):
        ps = ParameterSpace([("a", "1"), ("b", "2"), ("a", "3")])
        assert ps.items_list() == [("a", "1"), ("a", "3"), ("b", "2")]

    def test_to_dict_single(self):
        ps = ParameterSpace([("a", "1"), ("a", "2"), ("b", "3")])
        assert ps.to_dict() == {"a": "1", "b": "3"}

    def test_to_dict_multi_is_a_copy(self):
        ps = ParameterSpace([("a", "1"), ("a", "2")])
        d = ps.to_dict(multi=True)
        assert d == {"a": ["1", "2"]}
        d["a"].append("3")
        assert ps.get_all("a") == ["1", "2"]

    def test_repr(self):
        assert "ParameterSpace" in repr(ParameterSpace([("a", "1")]))
