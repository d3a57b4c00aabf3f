import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from charsheet.records import (
    parse_class_definition,
    parse_hit_die,
    parse_item_import,
    parse_spell_import,
    parse_spell_level,
)


def test_parse_class_definition_accepts_camel_case():
    definition, errors = parse_class_definition({
        "name": "Fighter",
        "hitDie": "d10",
        "savingThrows": ["Strength", "Constitution", "Luck"],
        "armor": ["Light", "Medium", "Heavy", "Shields"],
        "weapons": ["Simple", "Martial"],
        "progression": {"1": ["Fighting Style", "Second Wind"], "2": ["Action Surge"], "zero": ["x"]},
        "definitions": {"Second Wind": "Regain hit points."},
        "skillPrompt": {"count": 2, "options": ["Acrobatics", "Athletics", "History"]},
        "multiclassText": "Fighters need STR or DEX 13.",
    })
    assert definition is not None
    assert definition.hit_die == 10
    assert definition.saving_throws == ["STR", "CON"]
    assert definition.features_at(1) == ["Fighting Style", "Second Wind"]
    assert definition.features_at(2) == ["Action Surge"]
    assert definition.skill_choice.count == 2
    assert definition.multiclass_text.startswith("Fighters")
    assert any("Luck" in e for e in errors)
    assert any("zero" in e for e in errors)


def test_parse_class_definition_rejects_bad_payloads():
    assert parse_class_definition("Fighter")[0] is None
    definition, errors = parse_class_definition({"name": "  "})
    assert definition is None
    assert errors == ["class definition has no name"]


def test_parse_hit_die():
    assert parse_hit_die("1d12") == 12
    assert parse_hit_die(6) == 6
    assert parse_hit_die(None) == 8
    assert parse_hit_die("-3") == 8


def test_parse_item_import_weapon():
    item, errors = parse_item_import({
        "name": "Longsword",
        "damage": "1d8",
        "damageType": "slashing",
        "weaponCategory": "Martial Weapons",
        "properties": ["Versatile"],
        "versatileDamage": "1d10",
        "weight": "3",
        "equipped": True,
        "rarity": "common",
    })
    assert errors == []
    assert item.type == "weapon"
    assert item.category == "martial"
    assert item.versatile_damage == "1d10"
    assert item.weight == 3.0
    assert item.equipped is False


def test_parse_item_import_reads_versatile_die_from_property():
    item, _ = parse_item_import({"name": "Longsword", "damage": "1d8", "properties": ["Versatile (1d10)"]})
    assert item.versatile_damage == "1d10"
    assert item.properties == ["Versatile (1d10)"]

    explicit, _ = parse_item_import({"name": "Odd Sword", "properties": ["Versatile (1d10)"], "versatileDamage": "1d12"})
    assert explicit.versatile_damage == "1d12"

    plain, _ = parse_item_import({"name": "Spear", "properties": ["Thrown (range 20/60)", "Versatile"]})
    assert plain.versatile_damage == ""


def test_parse_item_import_infers_shield_and_armor():
    shield, _ = parse_item_import({"name": "Escudo de Madeira"})
    assert shield.type == "shield"
    armor, _ = parse_item_import({"name": "Chain Mail", "armor_class": 16, "stealthDisadvantage": True, "maxDex": 0})
    assert armor.type == "armor"
    assert armor.ac_bonus == 16
    assert armor.max_dex == 0
    assert armor.stealth_disadvantage is True
    assert parse_item_import({"weight": 2})[0] is None


def test_parse_spell_level():
    assert parse_spell_level(3) == 3
    assert parse_spell_level("3rd-level") == 3
    assert parse_spell_level("Cantrip") == 0
    assert parse_spell_level(None, "Evocation cantrip") == 0
    assert parse_spell_level(None, "2nd-level illusion") == 2
    assert parse_spell_level(15) == 9


def test_parse_spell_import_merges_full_data():
    parsed, errors = parse_spell_import({
        "name": "Fireball",
        "fullData": {
            "school": "3rd-level evocation",
            "castingTime": "1 action",
            "range": "150 feet",
            "description": "A bright streak...",
            "source": "Player's Handbook",
        },
    })
    assert errors == []
    level, spell = parsed
    assert level == 3
    assert spell.name == "Fireball"
    assert spell.casting_time == "1 action"
    assert spell.source == "Player's Handbook"
    assert spell.prepared is False
    assert parse_spell_import({"level": 1})[0] is None
