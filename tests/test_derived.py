import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from charsheet.derived import derive_stats, is_weapon_proficient, step_up_die
from charsheet.document import CharacterDocument, ClassEntry, Item, Proficiencies
from charsheet.records import parse_item_import


def make_doc(**abilities) -> CharacterDocument:
    scores = {"STR": 10, "DEX": 10, "CON": 10, "INT": 10, "WIS": 10, "CHA": 10}
    scores.update(abilities)
    doc = CharacterDocument(classes=[ClassEntry("Fighter", 1, 10)], abilities=scores)
    doc.recompute_levels()
    return doc


def attack_named(stats, name):
    return next(a for a in stats.attacks if a.name == name)


# ============================================================
# ARMOR CLASS
# ============================================================

def test_unarmored_ac():
    doc = make_doc(DEX=14)
    assert derive_stats(doc).armor_class == 12


def test_armor_with_dex_cap_and_shield():
    doc = make_doc(DEX=18)
    doc.inventory = [
        Item(id="a", name="Breastplate", type="armor", equipped=True, ac_bonus=14, max_dex=2),
        Item(id="s", name="Shield", type="shield", equipped=True, ac_bonus=2),
    ]
    assert derive_stats(doc).armor_class == 18


def test_armor_defaults_and_manual_modifier():
    doc = make_doc(DEX=16)
    doc.inventory = [
        Item(id="a", name="Mystery Armor", type="armor", equipped=True),
        Item(id="s", name="Buckler", type="shield", equipped=True),
    ]
    doc.combat.manual_ac_modifier = 1
    # armor without AC counts as 10, uncapped DEX +3, shield without value counts as 2
    assert derive_stats(doc).armor_class == 16


def test_unequipped_armor_is_ignored():
    doc = make_doc(DEX=12)
    doc.inventory = [Item(id="a", name="Plate", type="armor", equipped=False, ac_bonus=18, max_dex=0)]
    assert derive_stats(doc).armor_class == 11


# ============================================================
# LOAD
# ============================================================

def test_carrying_load():
    doc = make_doc(STR=10)
    doc.inventory = [Item(id="x", name="Rope", weight=10, quantity=2)]
    doc.currency["gp"] = "100"
    stats = derive_stats(doc)
    assert stats.carrying_load == 22
    assert stats.max_carrying_load == 150
    assert stats.is_overloaded is False


def test_overloaded_and_malformed_currency():
    doc = make_doc(STR=3)
    doc.inventory = [Item(id="x", name="Anvil", weight=50, quantity=1)]
    doc.currency["sp"] = "lots"
    stats = derive_stats(doc)
    assert stats.carrying_load == 50
    assert stats.max_carrying_load == 45
    assert stats.is_overloaded is True


# ============================================================
# ATTACKS
# ============================================================

def test_finesse_uses_better_of_str_and_dex():
    doc = make_doc(STR=10, DEX=16)
    doc.proficiencies = Proficiencies(weapon=["Martial weapons"])
    doc.inventory = [Item(id="r", name="Rapier", type="weapon", equipped=True, damage="1d8",
                          properties=["Finesse"], category="martial")]
    rapier = attack_named(derive_stats(doc), "Rapier")
    assert rapier.ability == "DEX"
    assert rapier.proficient is True
    assert rapier.attack_bonus == 5
    assert rapier.damage == "1d8+3"


def test_ranged_uses_dex_and_override_wins():
    doc = make_doc(STR=16, DEX=14, INT=18)
    doc.inventory = [
        Item(id="b", name="Longbow", type="weapon", equipped=True, damage="1d8", properties=["Ammunition"]),
        Item(id="h", name="Thunder Gauntlet", type="weapon", equipped=True, damage="1d8", ability_override="INT"),
    ]
    stats = derive_stats(doc)
    assert attack_named(stats, "Longbow").ability == "DEX"
    gauntlet = attack_named(stats, "Thunder Gauntlet")
    assert gauntlet.ability == "INT"
    assert gauntlet.attack_bonus == 4
    assert gauntlet.proficient is False



def test_parameterized_properties_keep_their_tags():
    doc = make_doc(STR=10, DEX=18)
    item, _ = parse_item_import({
        "name": "Longbow",
        "damage": "1d8",
        "properties": ["Ammunition (range 150/600)", "Heavy", "Two-Handed"],
    })
    item.equipped = True
    doc.inventory = [item]
    longbow = attack_named(derive_stats(doc), "Longbow")
    assert longbow.ability == "DEX"
    assert longbow.damage == "1d8+4"
    assert longbow.two_handed is True

def test_only_equipped_weapons_attack():
    doc = make_doc()
    doc.inventory = [
        Item(id="d", name="Dagger", type="weapon", equipped=False, damage="1d4"),
        Item(id="c", name="Club", type="weapon", equipped=True, damage="1d4"),
    ]
    assert [a.name for a in derive_stats(doc).attacks] == ["Club"]


def test_zero_modifier_is_shown_in_damage():
    doc = make_doc(STR=10)
    doc.inventory = [Item(id="c", name="Club", type="weapon", equipped=True, damage="1d4")]
    assert attack_named(derive_stats(doc), "Club").damage == "1d4+0"


def test_negative_modifier_in_damage():
    doc = make_doc(STR=8)
    doc.inventory = [Item(id="c", name="Club", type="weapon", equipped=True, damage="1d4")]
    assert attack_named(derive_stats(doc), "Club").damage == "1d4-1"


def test_versatile_die_when_configured_two_handed():
    doc = make_doc(STR=14)
    doc.inventory = [Item(id="l", name="Longsword", type="weapon", equipped=True, damage="1d8",
                          properties=["Versatile"], versatile_damage="1d10", two_handed_config=True)]
    longsword = attack_named(derive_stats(doc), "Longsword")
    assert longsword.damage == "1d10+2"
    assert longsword.two_handed is True


def test_ladder_applies_without_explicit_versatile_die():
    doc = make_doc(STR=10)
    doc.inventory = [
        Item(id="w", name="Warhammer", type="weapon", equipped=True, damage="1d8",
             properties=["Versátil"], two_handed_config=True),
        Item(id="g", name="Maul", type="weapon", equipped=True, damage="1d12", two_handed_config=True),
        Item(id="o", name="Spear", type="weapon", equipped=True, damage="1d6", two_handed_config=False,
             versatile_damage="1d8"),
    ]
    stats = derive_stats(doc)
    assert attack_named(stats, "Warhammer").damage == "1d10+0"
    assert attack_named(stats, "Maul").damage == "2d6+0"
    assert attack_named(stats, "Spear").damage == "1d6+0"


@pytest.mark.parametrize("dice,expected", [
    ("1d4", "1d6"),
    ("1d6", "1d8"),
    ("1d8", "1d10"),
    ("1d10", "1d12"),
    ("1d12", "2d6"),
    ("d8", "1d10"),
    ("2d6", "2d8"),
    ("5", "5"),
])
def test_step_up_die(dice, expected):
    assert step_up_die(dice) == expected


def test_weapon_proficiency_by_name_or_category():
    sword = Item(name="Espada Longa", type="weapon", properties=["Marcial"])
    assert is_weapon_proficient(sword, ["espada longa"])
    assert is_weapon_proficient(sword, ["Armas Marciais"])
    assert not is_weapon_proficient(sword, ["Simple weapons"])

    longsword = Item(name="Longsword", type="weapon")
    assert is_weapon_proficient(longsword, ["Longswords"])
    assert not is_weapon_proficient(longsword, ["Martial"])


# ============================================================
# SAVES & SKILLS
# ============================================================

def test_saving_throws_skills_and_passive_perception():
    doc = make_doc(CON=14, WIS=12, DEX=8)
    doc.saving_throw_proficiencies = {"CON"}
    doc.skill_proficiencies = {"perception"}
    stats = derive_stats(doc)
    assert stats.saving_throws["CON"] == 4
    assert stats.saving_throws["DEX"] == -1
    assert stats.skills["perception"] == 3
    assert stats.skills["stealth"] == -1
    assert stats.passive_perception == 13
    assert stats.initiative == -1


def test_derive_stats_does_not_modify_document():
    doc = make_doc(DEX=14)
    doc.inventory = [Item(id="c", name="Club", type="weapon", equipped=True, damage="1d4")]
    before = doc.to_dict()
    derive_stats(doc).to_dict()
    assert doc.to_dict() == before
