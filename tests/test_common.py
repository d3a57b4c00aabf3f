import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from charsheet.common import ability_mod, fold_text, format_bonus, normalize_key, str_list, to_float, to_int


def test_normalize_key_ignores_case_accents_and_punctuation():
    assert normalize_key("Sleight of Hand") == "sleightofhand"
    assert normalize_key("sleight-of-hand") == "sleightofhand"
    assert normalize_key("Clérigo") == "clerigo"
    assert normalize_key(None) == ""
    assert fold_text("Ação") == "acao"


def test_to_int_coerces_loose_values():
    assert to_int("12") == 12
    assert to_int(" +3 ") == 3
    assert to_int("2.0") == 2
    assert to_int(7.9) == 7
    assert to_int(True) == 1
    assert to_int("abc") == 0
    assert to_int(None, 5) == 5
    assert to_int(float("nan"), 4) == 4


def test_to_float_accepts_decimal_comma():
    assert to_float("2,5") == 2.5
    assert to_float("x", 1.0) == 1.0
    assert to_float(float("inf")) == 0.0


def test_ability_mod_floors():
    assert ability_mod(10) == 0
    assert ability_mod(9) == -1
    assert ability_mod(18) == 4
    assert ability_mod("garbage") == 0


def test_format_bonus_and_str_list():
    assert format_bonus(0) == "+0"
    assert format_bonus(-2) == "-2"
    assert str_list("a, b, a") == ["a", "b"]
    assert str_list(["x", None, " ", "y"]) == ["x", "y"]
    assert str_list(5) == []
