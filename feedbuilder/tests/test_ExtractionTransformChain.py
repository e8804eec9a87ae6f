"""Unit tests for ExtractionTransformChain."""

import json
import math

import pytest

from feedbuilder.src.ExtractionTransformChain import (
    Abs,
    Ceil,
    Divide,
    ExtractionSpec,
    Floor,
    Identity,
    Multiply,
    Percentage,
    Round,
    apply_transforms,
    extract,
    generate_path,
    list_paths,
    parse_path,
    parse_transform,
    transform_from_dict,
)
from feedbuilder.src.failures import FailureKind


PRICE_DOC = {
    "bitcoin": {"usd": 45000},
    "items": [{"name": "a"}, {"name": "b"}],
    "data": {"subscribers": 15234},
    "odd key": {"value": 7},
    "nothing": None,
    "flag": True,
}


class TestParsePath:
    """Test path expression parsing."""

    def test_root(self) -> None:
        assert parse_path("$") == []
        assert parse_path("") == []

    def test_dotted_fields(self) -> None:
        assert parse_path("$.bitcoin.usd") == ["bitcoin", "usd"]

    def test_optional_root(self) -> None:
        assert parse_path("bitcoin.usd") == ["bitcoin", "usd"]

    def test_indices_and_quoted_keys(self) -> None:
        assert parse_path("$.items[1]['full name']") == ["items", 1, "full name"]
        assert parse_path('$["odd key"].value') == ["odd key", "value"]

    @pytest.mark.parametrize("path", ["$.", "$.a..b", "$[abc]", "$.a[", "$x"])
    def test_malformed(self, path) -> None:
        with pytest.raises(ValueError, match="Malformed path"):
            parse_path(path)


class TestGeneratePath:
    """Test path generation from keys."""

    def test_identifiers(self) -> None:
        assert generate_path(["rates", "EUR"]) == "$.rates.EUR"

    def test_indices_and_odd_keys(self) -> None:
        assert generate_path(["items", 0, "full name"]) == '$.items[0]["full name"]'

    def test_key_with_double_quote(self) -> None:
        assert generate_path(['say "hi"']) == "$['say \"hi\"']"

    def test_empty_is_root(self) -> None:
        assert generate_path([]) == "$"

    def test_generated_paths_parse_back(self) -> None:
        keys = ["items", 3, "full name", "x_1"]
        assert parse_path(generate_path(keys)) == keys


class TestListPaths:
    """Test enumerating scalar leaves."""

    def test_lists_leaves(self) -> None:
        doc = {"rates": {"EUR": 0.92}, "tags": ["x", None]}
        paths = {path: (value, kind) for path, value, kind in list_paths(doc)}

        assert paths == {
            "$.rates.EUR": (0.92, "number"),
            "$.tags[0]": ("x", "string"),
            "$.tags[1]": (None, "null"),
        }

    def test_every_listed_scalar_is_extractable(self) -> None:
        for path, value, kind in list_paths(PRICE_DOC):
            if kind == "null":
                continue
            assert extract(PRICE_DOC, path).value == value

    def test_max_depth(self) -> None:
        doc = {"a": {"b": {"c": 1}}, "top": 2}
        assert [p for p, _, _ in list_paths(doc, max_depth=2)] == ["$.top"]

    def test_scalar_document(self) -> None:
        assert list(list_paths(42)) == [("$", 42, "number")]


class TestExtract:
    """Test path resolution."""

    def test_nested_field(self) -> None:
        result = extract(PRICE_DOC, "$.bitcoin.usd")

        assert result.success
        assert result.value == 45000
        assert result.metadata["type"] == "number"
        assert result.error is None

    def test_array_index(self) -> None:
        assert extract(PRICE_DOC, "$.items[1].name").value == "b"

    def test_numeric_field_on_array(self) -> None:
        """A dotted digit segment indexes into a list."""
        assert extract(PRICE_DOC, "$.items.0.name").value == "a"

    def test_quoted_key(self) -> None:
        assert extract(PRICE_DOC, '$["odd key"].value').value == 7

    def test_root_scalar(self) -> None:
        assert extract(42.5, "$").value == 42.5
        assert extract("plain text", "$").value == "plain text"

    def test_boolean_leaf_is_scalar(self) -> None:
        assert extract(PRICE_DOC, "$.flag").value is True

    def test_missing_field(self) -> None:
        result = extract(PRICE_DOC, "$.bitcoin.eur")

        assert not result.success
        assert result.error is FailureKind.PATH_NOT_FOUND
        assert result.metadata["segment"] == "eur"
        assert result.metadata["depth"] == 1

    def test_index_out_of_range(self) -> None:
        result = extract(PRICE_DOC, "$.items[5].name")

        assert result.error is FailureKind.PATH_NOT_FOUND
        assert result.metadata["segment"] == 5

    def test_negative_index(self) -> None:
        assert extract(PRICE_DOC, "$.items[-1]").error is FailureKind.PATH_NOT_FOUND

    def test_field_on_scalar(self) -> None:
        result = extract(PRICE_DOC, "$.bitcoin.usd.value")

        assert result.error is FailureKind.PATH_NOT_FOUND
        assert result.metadata["found"] == "number"

    def test_name_on_array(self) -> None:
        result = extract(PRICE_DOC, "$.items.name")

        assert result.error is FailureKind.PATH_NOT_FOUND
        assert result.metadata["found"] == "array"

    def test_object_is_not_scalar(self) -> None:
        result = extract(PRICE_DOC, "$.bitcoin")

        assert result.value is None
        assert result.error is FailureKind.NOT_SCALAR
        assert result.metadata["found"] == "object"

    def test_array_is_not_scalar(self) -> None:
        assert extract(PRICE_DOC, "$.items").error is FailureKind.NOT_SCALAR

    def test_null_is_not_scalar(self) -> None:
        result = extract(PRICE_DOC, "$.nothing")

        assert result.error is FailureKind.NOT_SCALAR
        assert result.metadata["found"] == "null"

    def test_malformed_path(self) -> None:
        result = extract(PRICE_DOC, "$.a..b")

        assert result.error is FailureKind.PATH_NOT_FOUND
        assert "Malformed path" in result.metadata["reason"]

    def test_price_document(self) -> None:
        doc = {"bitcoin": {"usd": 42000}}

        assert extract(doc, "$.bitcoin.usd").value == 42000
        assert extract(doc, "$.bitcoin.eur").error is FailureKind.PATH_NOT_FOUND
        assert extract(doc, "$.bitcoin").error is FailureKind.NOT_SCALAR

    def test_zero_is_success(self) -> None:
        result = extract({"v": 0}, "$.v")

        assert result.success
        assert result.value == 0


class TestTransforms:
    """Test individual transform steps."""

    def test_multiply(self) -> None:
        assert Multiply(2.5).apply(4) == 10.0

    def test_divide(self) -> None:
        assert Divide(4).apply(10) == 2.5

    def test_divide_by_zero(self) -> None:
        assert Divide(0).apply(5) == math.inf
        assert Divide(0).apply(-5) == -math.inf
        assert math.isnan(Divide(0).apply(0))

    @pytest.mark.parametrize(
        "value, decimals, expected",
        [
            (2.345, 2, 2.35),
            (-2.345, 2, -2.35),
            (2.5, 0, 3.0),
            (-2.5, 0, -3.0),
            (1.005, 2, 1.01),
            (1234.5678, 1, 1234.6),
            (7, 0, 7.0),
        ],
    )
    def test_round_half_away_from_zero(self, value, decimals, expected) -> None:
        assert Round(decimals).apply(value) == expected

    def test_round_negative_decimals(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            Round(-1)

    def test_round_non_finite(self) -> None:
        assert Round(2).apply(math.inf) == math.inf

    def test_floor_ceil(self) -> None:
        assert Floor().apply(-1.5) == -2
        assert Ceil().apply(-1.5) == -1
        assert Floor().apply(math.inf) == math.inf

    def test_abs_percentage_identity(self) -> None:
        assert Abs().apply(-3.5) == 3.5
        assert Percentage().apply(0.25) == 25.0
        assert Identity().apply(7) == 7

    def test_to_dict(self) -> None:
        assert Multiply(100).to_dict() == {"type": "multiply", "value": 100}
        assert Round(2).to_dict() == {"type": "round", "decimals": 2}
        assert Identity().to_dict() == {"type": "none"}


class TestApplyTransforms:
    """Test chains of transforms."""

    def test_empty_chain(self) -> None:
        assert apply_transforms(42, []) == 42

    def test_order_matters(self) -> None:
        """[multiply 10, round 0] and [round 0, multiply 10] differ on 1.26."""
        assert apply_transforms(1.26, [Multiply(10), Round(0)]) == 13.0
        assert apply_transforms(1.26, [Round(0), Multiply(10)]) == 10.0

    def test_unit_multiply_then_round(self) -> None:
        assert apply_transforms(2.345, [Multiply(1), Round(2)]) == 2.35

    def test_subscribers_percentage(self) -> None:
        assert apply_transforms(15234, [Percentage()]) == 1523400

    def test_numeric_string_is_coerced(self) -> None:
        assert apply_transforms("15234", [Percentage()]) == 1523400.0

    def test_boolean_is_coerced(self) -> None:
        assert apply_transforms(True, [Multiply(5)]) == 5.0

    def test_non_numeric_passthrough(self) -> None:
        assert apply_transforms("n/a", [Multiply(2), Round(0)]) == "n/a"

    def test_integer_beyond_float_range(self) -> None:
        """JSON integers past float range read as infinity instead of raising."""
        doc = json.loads('{"v": 1' + "0" * 400 + ', "w": -1' + "0" * 400 + "}")

        assert apply_transforms(doc["v"], [Round(2)]) == math.inf
        assert apply_transforms(doc["v"], [Floor()]) == math.inf
        assert apply_transforms(doc["w"], [Ceil()]) == -math.inf
        assert apply_transforms(doc["v"], []) == math.inf

        result = ExtractionSpec("$.v", (Multiply(1.5),)).evaluate(doc)
        assert result.value == math.inf
        assert result.metadata["raw_value"] == doc["v"]

    def test_large_integer_steps_applied_directly(self) -> None:
        assert Floor().apply(10**400) == 10**400
        assert Round(2).apply(10**400) == 10**400

    def test_non_numeric_special_strings_passthrough(self) -> None:
        assert apply_transforms("NaN", [Multiply(2)]) == "NaN"
        assert apply_transforms("Infinity", [Multiply(2)]) == "Infinity"
        assert apply_transforms("1_000", []) == "1_000"

    def test_divide_by_zero_does_not_raise(self) -> None:
        assert apply_transforms(10, [Divide(0), Round(2)]) == math.inf


class TestTransformParsing:
    """Test declarative and compact transform forms."""

    def test_from_dict(self) -> None:
        assert transform_from_dict({"type": "multiply", "value": 2}) == Multiply(2.0)
        assert transform_from_dict({"type": "round", "decimals": 2}) == Round(2)
        assert transform_from_dict({"type": "none"}) == Identity()

    def test_from_dict_numeric_string_operand(self) -> None:
        assert transform_from_dict({"type": "divide", "value": "1e6"}) == Divide(1e6)

    def test_from_dict_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown transform 'sqrt'"):
            transform_from_dict({"type": "sqrt"})

    def test_from_dict_round_decimals(self) -> None:
        assert transform_from_dict({"type": "round", "decimals": 0}) == Round(0)
        assert transform_from_dict({"type": "round"}) == Round(0)

        with pytest.raises(ValueError, match="non-negative"):
            transform_from_dict({"type": "round", "decimals": -1})

    def test_from_dict_missing_operand(self) -> None:
        with pytest.raises(ValueError, match="requires a numeric value"):
            transform_from_dict({"type": "multiply"})

        with pytest.raises(ValueError, match="requires a numeric value"):
            transform_from_dict({"type": "divide", "value": "abc"})

    def test_parse_transform(self) -> None:
        assert parse_transform("multiply:100") == Multiply(100.0)
        assert parse_transform("ROUND:2") == Round(2)
        assert parse_transform("floor") == Floor()
        assert parse_transform(" percentage ") == Percentage()

    def test_parse_transform_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid transform 'round:x'"):
            parse_transform("round:x")


class TestExtractionSpec:
    """Test the combined path and transform chain."""

    def test_subscribers_scenario(self) -> None:
        spec = ExtractionSpec("$.data.subscribers", (Percentage(),))
        result = spec.evaluate(PRICE_DOC)

        assert result.value == 1523400
        assert result.metadata["raw_value"] == 15234
        assert result.metadata["transforms"] == 1
        assert result.metadata["path"] == "$.data.subscribers"

    def test_failure_short_circuits(self) -> None:
        spec = ExtractionSpec("$.data", (Percentage(),))
        result = spec.evaluate(PRICE_DOC)

        assert result.error is FailureKind.NOT_SCALAR
        assert "raw_value" not in result.metadata

    def test_default_is_root(self) -> None:
        assert ExtractionSpec().evaluate(3).value == 3

    def test_list_transforms_become_tuple(self) -> None:
        spec = ExtractionSpec("$", [Abs()])
        assert spec.transforms == (Abs(),)

    def test_from_dict(self) -> None:
        spec = ExtractionSpec.from_dict(
            {
                "jsonPath": "$.bitcoin.usd",
                "transforms": [
                    {"type": "none"},
                    {"type": "multiply", "value": 100},
                    {"type": "round", "decimals": 0},
                ],
            }
        )

        assert spec.path == "$.bitcoin.usd"
        assert spec.transforms == (Multiply(100.0), Round(0))
        assert spec.evaluate(PRICE_DOC).value == 4500000.0

    def test_to_dict(self) -> None:
        spec = ExtractionSpec("$.a", (Multiply(2.0), Floor()))
        assert spec.to_dict() == {
            "jsonPath": "$.a",
            "transforms": [{"type": "multiply", "value": 2.0}, {"type": "floor"}],
        }
