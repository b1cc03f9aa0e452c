import math

from apps.api.guildboard.utils.numeric import (
    as_int_if_whole,
    coerce_text_cell,
    normalize_identifier,
    parse_delta,
    to_number,
)


def test_parse_delta_strips_thousands_separators():
    assert parse_delta("1,234,567") == 1234567
    assert parse_delta("0") == 0
    assert parse_delta(" 2,500 ") == 2500
    assert parse_delta(42) == 42
    assert parse_delta(12.5) == 12.5


def test_parse_delta_returns_nan_for_unparsable_values():
    assert math.isnan(parse_delta("abc"))
    assert math.isnan(parse_delta(""))
    assert math.isnan(parse_delta(None))
    assert math.isnan(parse_delta(True))
    assert math.isnan(parse_delta(float("inf")))


def test_to_number_does_not_strip_separators():
    assert to_number("1500") == 1500
    assert to_number(7) == 7
    assert math.isnan(to_number("1,500"))
    assert math.isnan(to_number(None))


def test_coerce_text_cell_types_numbers_like_a_spreadsheet():
    assert coerce_text_cell("1,234") == 1234
    assert coerce_text_cell("42") == 42
    assert coerce_text_cell("3.5") == 3.5
    assert coerce_text_cell("  ") is None
    assert coerce_text_cell("Lord ID") == "Lord ID"
    assert coerce_text_cell("12,34") == "12,34"


def test_normalize_identifier_handles_float_ids():
    assert normalize_identifier(12345.0) == "12345"
    assert normalize_identifier(" 777 ") == "777"
    assert normalize_identifier(98) == "98"
    assert normalize_identifier("") is None
    assert normalize_identifier(None) is None


def test_as_int_if_whole():
    assert as_int_if_whole(1500.0) == 1500
    assert isinstance(as_int_if_whole(1500.0), int)
    assert as_int_if_whole(2.25) == 2.25
    assert as_int_if_whole(float("nan")) is None
