import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from charsheet import inventory
from charsheet.document import CharacterDocument, ClassFeature, Item, Spell


@pytest.fixture
def doc():
    d = CharacterDocument()
    d.inventory = [
        Item(id="ga", name="Greataxe", type="weapon", damage="1d12", properties=["Heavy", "Two-Handed"]),
        Item(id="ls", name="Longsword", type="weapon", damage="1d8", properties=["Versatile"],
             versatile_damage="1d10"),
        Item(id="sh", name="Shield", type="shield", ac_bonus=2),
        Item(id="sh2", name="Tower Shield", type="shield", ac_bonus=3),
        Item(id="cm", name="Chain Mail", type="armor", ac_bonus=16, max_dex=0),
        Item(id="la", name="Leather", type="armor", ac_bonus=11),
    ]
    return d


def equipped_ids(d):
    return {i.id for i in d.inventory if i.equipped}


def test_shield_unequips_two_handed_weapon(doc):
    inventory.set_equipped(doc, "ga", True)
    result = inventory.set_equipped(doc, "sh", True)
    assert result["unequipped"] == ["Greataxe"]
    assert equipped_ids(doc) == {"sh"}


def test_two_handed_weapon_unequips_shield(doc):
    inventory.set_equipped(doc, "sh", True)
    inventory.set_equipped(doc, "ga", True)
    assert equipped_ids(doc) == {"ga"}


def test_versatile_grip_conflicts_with_shield(doc):
    inventory.set_equipped(doc, "ls", True)
    inventory.set_equipped(doc, "sh", True)
    assert equipped_ids(doc) == {"ls", "sh"}

    result = inventory.set_two_handed_config(doc, "ls", True)
    assert result["success"] is True
    assert equipped_ids(doc) == {"ls"}

    inventory.set_equipped(doc, "sh", True)
    assert equipped_ids(doc) == {"sh"}


def test_single_armor_and_single_shield(doc):
    inventory.set_equipped(doc, "cm", True)
    inventory.set_equipped(doc, "la", True)
    inventory.set_equipped(doc, "sh", True)
    inventory.set_equipped(doc, "sh2", True)
    assert equipped_ids(doc) == {"la", "sh2"}


def test_toggle_equipped(doc):
    inventory.toggle_equipped(doc, "cm")
    assert doc.find_item("cm").equipped is True
    inventory.toggle_equipped(doc, "cm")
    assert doc.find_item("cm").equipped is False
    assert inventory.toggle_equipped(doc, "missing")["success"] is False


def test_two_handed_config_only_for_weapons(doc):
    assert inventory.set_two_handed_config(doc, "sh", True)["success"] is False
    assert inventory.set_two_handed_config(doc, "nope", True)["success"] is False


def test_add_equipped_item_enforces_rules(doc):
    inventory.set_equipped(doc, "cm", True)
    result = inventory.add_item(doc, {"id": "pl", "name": "Plate", "type": "armor", "ac_bonus": 18, "equipped": True})
    assert result["unequipped"] == ["Chain Mail"]
    assert equipped_ids(doc) == {"pl"}


def test_add_item_with_duplicate_id_gets_new_id(doc):
    result = inventory.add_item(doc, Item(id="ga", name="Other Axe", type="weapon"))
    assert result["item_id"] != "ga"
    assert len({i.id for i in doc.inventory}) == len(doc.inventory)


def test_remove_item(doc):
    assert inventory.remove_item(doc, "la")["success"] is True
    assert doc.find_item("la") is None
    assert inventory.remove_item(doc, "la")["success"] is False


def test_import_item(doc):
    result = inventory.import_item(doc, {"name": "Handaxe", "damage": "1d6", "properties": ["Light", "Thrown"]})
    assert result["success"] is True
    item = doc.find_item(result["item_id"])
    assert item.type == "weapon"
    assert item.equipped is False
    assert inventory.import_item(doc, "Handaxe")["success"] is False


def test_spell_edits():
    d = CharacterDocument()
    result = inventory.import_spell(d, {"name": "Fire Bolt", "level": "cantrip", "school": "Evocation"})
    assert result["level"] == 0
    inventory.add_spell(d, 1, {"name": "Magic Missile"})
    inventory.add_spell(d, 1, Spell(name="Shield"))

    assert inventory.set_spell_prepared(d, 1, 1, True)["success"] is True
    assert d.spellcasting.spells_by_level[1][1].prepared is True

    assert inventory.remove_spell(d, 1, 0)["success"] is True
    assert [s.name for s in d.spellcasting.spells_by_level[1]] == ["Shield"]

    assert inventory.remove_spell(d, 1, 5)["success"] is False
    assert inventory.add_spell(d, 10, {"name": "Wish+"})["success"] is False
    assert inventory.add_spell(d, 2, {"name": ""})["success"] is False


def test_feat_edits():
    d = CharacterDocument()
    assert inventory.add_feat(d, {"name": "Alert", "source": "Variant Human"})["success"] is True
    assert inventory.add_feat(d, {"name": "alert"})["success"] is False
    assert inventory.remove_feat(d, "ALERT")["success"] is True
    assert d.feats == []
    assert inventory.remove_feat(d, "Alert")["success"] is False


def test_remove_class_feature_by_name_and_source():
    d = CharacterDocument()
    d.class_features = [
        ClassFeature(1, "Spellcasting", "", "Wizard"),
        ClassFeature(1, "Spellcasting", "", "Cleric"),
    ]
    assert inventory.remove_class_feature(d, "spellcasting", "Mago")["success"] is True
    assert [f.source_class for f in d.class_features] == ["Cleric"]
    assert inventory.remove_class_feature(d, "Spellcasting", "Wizard")["success"] is False
