"""
Engine Command Surface.

Every command takes a CharacterDocument, works on a deep copy and
returns a result dict:

    {
        "success": bool,
        "message": str,
        "document": CharacterDocument,   # new version (unchanged copy if rejected)
        "stats": {...},                  # derive_stats(document).to_dict()
        "spellcasting": {...},           # aggregate_spellcasting(document).to_dict()
        "total_level": int,
        ...command specific details
    }

The input document is never modified. Commands are logged to the
command journal when it is enabled.
"""

from typing import Dict, Any, Callable, Optional

from charsheet import class_import, inventory, leveling, skill_prompts
from charsheet.common import to_float, to_int
from charsheet.derived import derive_stats
from charsheet.document import CharacterDocument, Combat, CURRENCY_KEYS
from charsheet.journal import CommandJournal, get_journal
from charsheet.rules import resolve_ability_key
from charsheet.spellcasting import aggregate_spellcasting, sync_spell_slots


__all__ = [
    "derive_stats",
    "aggregate_spellcasting",
    "view",
    "import_class",
    "multiclass",
    "level_up",
    "resolve_skill_prompts",
    "set_skill_proficiency",
    "add_item",
    "remove_item",
    "set_equipped",
    "toggle_equipped",
    "set_two_handed_config",
    "import_item",
    "import_spell",
    "add_spell",
    "remove_spell",
    "set_spell_prepared",
    "add_feat",
    "remove_feat",
    "remove_class_feature",
    "set_ability",
    "set_saving_throw",
    "update_combat",
    "set_currency",
]


def _attach_views(result: Dict[str, Any], doc: CharacterDocument) -> Dict[str, Any]:
    result["document"] = doc
    result["stats"] = derive_stats(doc).to_dict()
    result["spellcasting"] = aggregate_spellcasting(doc).to_dict()
    result["total_level"] = doc.total_level
    return result


def _run(
    command: str,
    doc: CharacterDocument,
    args: Dict[str, Any],
    apply: Callable[[CharacterDocument], Dict[str, Any]],
    sync_slots: bool = False,
    journal: Optional[CommandJournal] = None,
) -> Dict[str, Any]:
    """Apply one transition to a copy of doc and attach the derived views."""
    working = doc.copy()
    result = apply(working)

    if result.get("success"):
        working.recompute_levels()
        if sync_slots:
            sync_spell_slots(working)
    else:
        working = doc.copy()

    _attach_views(result, working)
    (journal or get_journal()).log_command(command, args, result)
    return result


def view(doc: CharacterDocument) -> Dict[str, Any]:
    """Derived views for a document without changing it."""
    return _attach_views({"success": True, "message": "ok"}, doc.copy())


# ============================================================
# CLASSES & LEVELING
# ============================================================

def import_class(doc: CharacterDocument, definition: Any, journal: CommandJournal = None) -> Dict[str, Any]:
    name = definition.get("name") if isinstance(definition, dict) else getattr(definition, "name", None)
    return _run(
        "import_class", doc, {"name": name},
        lambda d: class_import.import_class(d, definition),
        sync_slots=True, journal=journal,
    )


def multiclass(doc: CharacterDocument, definition: Any, journal: CommandJournal = None) -> Dict[str, Any]:
    name = definition.get("name") if isinstance(definition, dict) else getattr(definition, "name", None)
    return _run(
        "multiclass", doc, {"name": name},
        lambda d: leveling.multiclass(d, definition),
        sync_slots=True, journal=journal,
    )


def level_up(
    doc: CharacterDocument,
    class_name: str,
    roll_hp: bool = False,
    seed: Optional[int] = None,
    journal: CommandJournal = None,
) -> Dict[str, Any]:
    return _run(
        "level_up", doc, {"class_name": class_name, "roll_hp": roll_hp, "seed": seed},
        lambda d: leveling.level_up(d, class_name, roll_hp=roll_hp, seed=seed),
        sync_slots=True, journal=journal,
    )


# ============================================================
# SKILLS
# ============================================================

def resolve_skill_prompts(doc: CharacterDocument, journal: CommandJournal = None) -> Dict[str, Any]:
    def apply(d):
        resolved = skill_prompts.resolve_skill_prompts(d)
        return {
            "success": True,
            "message": "Skill choice complete" if resolved is not None else "No skill choice resolved",
            "resolved_prompt": resolved.to_dict() if resolved is not None else None,
            "pending_prompt": skill_prompts.pending_skill_prompt(d),
        }
    return _run("resolve_skill_prompts", doc, {}, apply, journal=journal)


def set_skill_proficiency(doc: CharacterDocument, skill: str, proficient: bool = True,
                          journal: CommandJournal = None) -> Dict[str, Any]:
    def apply(d):
        result = skill_prompts.set_skill_proficiency(d, skill, proficient)
        result["pending_prompt"] = skill_prompts.pending_skill_prompt(d)
        return result
    return _run("set_skill_proficiency", doc, {"skill": skill, "proficient": proficient}, apply, journal=journal)


# ============================================================
# INVENTORY, SPELLS, FEATS
# ============================================================

def add_item(doc: CharacterDocument, item: Any, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run("add_item", doc, {"item": item}, lambda d: inventory.add_item(d, item), journal=journal)


def remove_item(doc: CharacterDocument, item_id: str, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run("remove_item", doc, {"item_id": item_id}, lambda d: inventory.remove_item(d, item_id), journal=journal)


def set_equipped(doc: CharacterDocument, item_id: str, equipped: bool, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run(
        "set_equipped", doc, {"item_id": item_id, "equipped": equipped},
        lambda d: inventory.set_equipped(d, item_id, equipped), journal=journal,
    )


def toggle_equipped(doc: CharacterDocument, item_id: str, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run(
        "toggle_equipped", doc, {"item_id": item_id},
        lambda d: inventory.toggle_equipped(d, item_id), journal=journal,
    )


def set_two_handed_config(doc: CharacterDocument, item_id: str, two_handed: bool,
                          journal: CommandJournal = None) -> Dict[str, Any]:
    return _run(
        "set_two_handed_config", doc, {"item_id": item_id, "two_handed": two_handed},
        lambda d: inventory.set_two_handed_config(d, item_id, two_handed), journal=journal,
    )


def import_item(doc: CharacterDocument, record: Any, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run("import_item", doc, {"record": record}, lambda d: inventory.import_item(d, record), journal=journal)


def import_spell(doc: CharacterDocument, record: Any, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run("import_spell", doc, {"record": record}, lambda d: inventory.import_spell(d, record), journal=journal)


def add_spell(doc: CharacterDocument, level: int, spell: Any, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run(
        "add_spell", doc, {"level": level, "spell": spell},
        lambda d: inventory.add_spell(d, level, spell), journal=journal,
    )


def remove_spell(doc: CharacterDocument, level: int, index: int, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run(
        "remove_spell", doc, {"level": level, "index": index},
        lambda d: inventory.remove_spell(d, level, index), journal=journal,
    )


def set_spell_prepared(doc: CharacterDocument, level: int, index: int, prepared: bool,
                       journal: CommandJournal = None) -> Dict[str, Any]:
    return _run(
        "set_spell_prepared", doc, {"level": level, "index": index, "prepared": prepared},
        lambda d: inventory.set_spell_prepared(d, level, index, prepared), journal=journal,
    )


def add_feat(doc: CharacterDocument, feat: Any, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run("add_feat", doc, {"feat": feat}, lambda d: inventory.add_feat(d, feat), journal=journal)


def remove_feat(doc: CharacterDocument, name: str, journal: CommandJournal = None) -> Dict[str, Any]:
    return _run("remove_feat", doc, {"name": name}, lambda d: inventory.remove_feat(d, name), journal=journal)


def remove_class_feature(doc: CharacterDocument, name: str, source_class: str,
                         journal: CommandJournal = None) -> Dict[str, Any]:
    return _run(
        "remove_class_feature", doc, {"name": name, "source_class": source_class},
        lambda d: inventory.remove_class_feature(d, name, source_class), journal=journal,
    )


# ============================================================
# SCALAR EDITS
# ============================================================

def set_ability(doc: CharacterDocument, ability: str, score: Any, journal: CommandJournal = None) -> Dict[str, Any]:
    def apply(d):
        key = resolve_ability_key(ability)
        if key is None:
            return {"success": False, "message": f"Unknown ability: {ability}"}
        d.abilities[key] = to_int(score, 10)
        return {"success": True, "message": f"{key} set to {d.abilities[key]}", "ability": key}
    return _run("set_ability", doc, {"ability": ability, "score": score}, apply, sync_slots=True, journal=journal)


def set_saving_throw(doc: CharacterDocument, ability: str, proficient: bool = True,
                     journal: CommandJournal = None) -> Dict[str, Any]:
    def apply(d):
        key = resolve_ability_key(ability)
        if key is None:
            return {"success": False, "message": f"Unknown ability: {ability}"}
        if proficient:
            d.saving_throw_proficiencies.add(key)
        else:
            d.saving_throw_proficiencies.discard(key)
        return {"success": True, "message": f"{key} save {'proficient' if proficient else 'not proficient'}"}
    return _run("set_saving_throw", doc, {"ability": ability, "proficient": proficient}, apply, journal=journal)


_COMBAT_FIELDS = tuple(Combat().to_dict().keys())


def update_combat(doc: CharacterDocument, journal: CommandJournal = None, **fields) -> Dict[str, Any]:
    """Set combat fields (hp_current=7, speed=25, ...). Unknown field names reject the edit."""
    def apply(d):
        unknown = [k for k in fields if k not in _COMBAT_FIELDS]
        if unknown:
            return {"success": False, "message": f"Unknown combat field(s): {', '.join(unknown)}"}
        for k, v in fields.items():
            value = to_int(v, getattr(d.combat, k))
            if k in ("death_save_successes", "death_save_failures"):
                value = min(3, max(0, value))
            setattr(d.combat, k, value)
        return {"success": True, "message": f"Updated {', '.join(fields) or 'nothing'}"}
    return _run("update_combat", doc, dict(fields), apply, journal=journal)


def set_currency(doc: CharacterDocument, denomination: str, amount: Any,
                 journal: CommandJournal = None) -> Dict[str, Any]:
    def apply(d):
        key = str(denomination).lower().strip()
        if key not in CURRENCY_KEYS:
            return {"success": False, "message": f"Unknown currency: {denomination}"}
        number = max(0.0, to_float(amount, 0.0))
        d.currency[key] = str(int(number)) if number.is_integer() else str(number)
        return {"success": True, "message": f"{key} = {d.currency[key]}"}
    return _run("set_currency", doc, {"denomination": denomination, "amount": amount}, apply, journal=journal)
