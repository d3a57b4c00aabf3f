import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from charsheet import commands
from charsheet.document import CharacterDocument, Feat, Item, Spell


WIZARD = {
    "name": "Wizard",
    "hitDie": "d6",
    "savingThrows": ["Intelligence", "Wisdom"],
    "weapons": ["Daggers"],
    "progression": {1: ["Spellcasting", "Arcane Recovery"], 2: ["Arcane Tradition"]},
    "skillPrompt": {"count": 2, "options": ["Arcana", "History", "Insight"]},
}


@pytest.fixture
def wizard_doc():
    doc = CharacterDocument()
    doc.abilities["INT"] = 16
    return commands.import_class(doc, WIZARD)["document"]


def test_commands_never_modify_their_input():
    doc = CharacterDocument()
    before = doc.to_dict()
    result = commands.import_class(doc, WIZARD)
    assert result["success"] is True
    assert doc.to_dict() == before
    assert result["document"] is not doc
    assert result["document"].classes[0].name == "Wizard"


def test_added_objects_are_not_shared_between_documents():
    sword = Item(id="abc", name="Longsword", type="weapon")
    first = commands.add_item(CharacterDocument(), sword)["document"]
    second = commands.add_item(first, sword)["document"]

    assert [i.id for i in first.inventory] == ["abc"]
    assert len(second.inventory) == 2
    assert second.inventory[1].id != "abc"
    assert sword.id == "abc"
    assert first.inventory[0] is not sword

    bolt = Spell(name="Fire Bolt")
    doc = commands.add_spell(CharacterDocument(), 0, bolt)["document"]
    commands.set_spell_prepared(doc, 0, 0, True)
    assert doc.spellcasting.spells_by_level[0][0] is not bolt
    assert bolt.prepared is not True

    alert = Feat(name="Alert")
    doc = commands.add_feat(CharacterDocument(), alert)["document"]
    assert doc.feats[0] is not alert


def test_results_carry_fresh_views(wizard_doc):
    result = commands.level_up(wizard_doc, "Wizard")
    assert result["total_level"] == 2
    assert result["spellcasting"]["slots_per_level"][:2] == [3, 0]
    assert result["stats"]["armor_class"] == 10
    assert result["stats"]["saving_throws"]["INT"] == 5
    assert result["document"].spellcasting.slots[0].total == 3
    assert result["document"].spellcasting.save_dc == 13


def test_import_syncs_slots_and_dc(wizard_doc):
    assert wizard_doc.spellcasting.slots[0].total == 2
    assert wizard_doc.spellcasting.ability == "INT"
    assert wizard_doc.spellcasting.save_dc == 13


def test_rejected_command_returns_unchanged_copy(wizard_doc):
    result = commands.level_up(wizard_doc, "Druid")
    assert result["success"] is False
    assert result["document"].to_dict() == wizard_doc.to_dict()
    assert result["document"] is not wizard_doc

    again = commands.import_class(wizard_doc, WIZARD)
    assert again["success"] is False
    assert again["document"].to_dict() == wizard_doc.to_dict()


def test_view_and_pure_calculators(wizard_doc):
    result = commands.view(wizard_doc)
    assert result["success"] is True
    assert result["spellcasting"] == commands.aggregate_spellcasting(wizard_doc).to_dict()
    assert result["stats"] == commands.derive_stats(wizard_doc).to_dict()


def test_skill_commands_resolve_prompt(wizard_doc):
    doc = commands.set_skill_proficiency(wizard_doc, "Arcana")["document"]
    assert len(doc.skill_prompts) == 1
    result = commands.set_skill_proficiency(doc, "História")
    assert result["resolved_prompt"]["source_class"] == "Wizard"
    assert result["pending_prompt"] is None
    assert result["document"].skill_prompts == []

    assert commands.resolve_skill_prompts(result["document"])["resolved_prompt"] is None


def test_equipment_commands(wizard_doc):
    doc = commands.add_item(wizard_doc, {"id": "qs", "name": "Quarterstaff", "type": "weapon", "damage": "1d6",
                                         "properties": ["Versatile"], "versatile_damage": "1d8"})["document"]
    doc = commands.add_item(doc, Item(id="sh", name="Shield", type="shield"))["document"]
    doc = commands.set_equipped(doc, "qs", True)["document"]
    doc = commands.toggle_equipped(doc, "sh")["document"]
    result = commands.set_two_handed_config(doc, "qs", True)

    assert result["unequipped"] == ["Shield"]
    assert [a["damage"] for a in result["stats"]["attacks"]] == ["1d8+0"]
    assert result["stats"]["armor_class"] == 10

    doc = commands.remove_item(result["document"], "qs")["document"]
    assert doc.find_item("qs") is None


def test_import_commands(wizard_doc):
    result = commands.import_spell(wizard_doc, {"name": "Magic Missile", "level": 1})
    doc = commands.set_spell_prepared(result["document"], 1, 0, True)["document"]
    assert commands.view(doc)["spellcasting"]["current_prepared"] == 1
    doc = commands.remove_spell(doc, 1, 0)["document"]
    assert doc.spellcasting.spells_by_level[1] == []

    doc = commands.add_spell(doc, 0, {"name": "Light", "prepared": True})["document"]
    assert commands.view(doc)["spellcasting"]["current_cantrips"] == 1

    result = commands.import_item(doc, {"name": "Dagger", "damage": "1d4", "properties": ["Finesse", "Simple"]})
    assert result["success"] is True
    assert result["document"].inventory[-1].category == "simple"


def test_feat_and_feature_commands(wizard_doc):
    doc = commands.add_feat(wizard_doc, {"name": "War Caster"})["document"]
    assert [f.name for f in doc.feats] == ["War Caster"]
    doc = commands.remove_feat(doc, "war caster")["document"]
    assert doc.feats == []

    doc = commands.remove_class_feature(doc, "Arcane Recovery", "Wizard")["document"]
    assert [f.name for f in doc.class_features] == ["Spellcasting"]


def test_scalar_edits(wizard_doc):
    result = commands.set_ability(wizard_doc, "Inteligência", "18")
    assert result["document"].abilities["INT"] == 18
    assert result["document"].spellcasting.save_dc == 14

    assert commands.set_ability(wizard_doc, "Luck", 12)["success"] is False

    doc = commands.set_saving_throw(wizard_doc, "dex")["document"]
    assert "DEX" in doc.saving_throw_proficiencies
    doc = commands.set_saving_throw(doc, "DEX", False)["document"]
    assert "DEX" not in doc.saving_throw_proficiencies

    result = commands.update_combat(wizard_doc, hp_current="4", death_save_failures=7)
    assert result["document"].combat.hp_current == 4
    assert result["document"].combat.death_save_failures == 3
    assert commands.update_combat(wizard_doc, mana=3)["success"] is False


def test_set_currency(wizard_doc):
    result = commands.set_currency(wizard_doc, "GP", "150")
    assert result["document"].currency["gp"] == "150"
    assert result["stats"]["carrying_load"] == 3

    assert commands.set_currency(wizard_doc, "sp", -4)["document"].currency["sp"] == "0"
    assert commands.set_currency(wizard_doc, "gold", 1)["success"] is False


def test_multiclass_command(wizard_doc):
    result = commands.multiclass(wizard_doc, {"name": "Warlock", "hit_die": 8, "multiclassText": "Pact."})
    assert result["success"] is True
    doc = result["document"]
    assert [c.name for c in doc.classes] == ["Wizard", "Warlock"]
    assert result["spellcasting"]["slots_per_level"][0] == 3
    assert doc.notes == ["Pact."]
