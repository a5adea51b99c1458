import pytest

from primeserver.helpers import parse_quiesce_config, split


def test_split_skips_empty_parts_by_default():
    assert split("a,,b,", ",") == ["a", "b"]


def test_split_keeps_empty_parts_when_asked():
    assert split("a,,b", ",", False) == ["a", "", "b"]


def test_split_empty_string():
    assert split("", ",") == []
    assert split("", ",", False) == [""]


def test_split_applies_transform():
    assert split("1,2,3", ",", True, int) == [1, 2, 3]


def test_split_rejoins_to_original_when_nothing_skipped():
    text = "x;y;;z"
    assert ";".join(split(text, ";", False)) == text


def test_parse_quiesce_config_defaults():
    assert parse_quiesce_config("") == (28, 1)


def test_parse_quiesce_config_partial():
    assert parse_quiesce_config("5") == (5, 1)


def test_parse_quiesce_config_full():
    assert parse_quiesce_config("5,2") == (5, 2)


def test_parse_quiesce_config_custom_defaults():
    assert parse_quiesce_config("", 7, 9) == (7, 9)


def test_parse_quiesce_config_rejects_garbage():
    with pytest.raises(ValueError):
        parse_quiesce_config("soon")


def test_parse_quiesce_config_rejects_negative():
    with pytest.raises(ValueError):
        parse_quiesce_config("-3,1")