"""
Inventory, Spell and Feat Edits.

Every edit here keeps the equipment invariants:
- at most one equipped armor and one equipped shield
- a shield and a two-handed weapon are never equipped together
  (whichever was equipped last wins)

All functions modify the given document in place and return a result
dict; a rejected edit leaves the document untouched.
"""

import copy
from typing import Dict, Any, List, Union

from charsheet.common import normalize_key
from charsheet.derived import is_wielded_two_handed
from charsheet.document import CharacterDocument, Item, Spell, Feat, SPELL_LEVELS, class_names_match
from charsheet.records import parse_item_import, parse_spell_import


# ============================================================
# EQUIPMENT
# ============================================================

def _enforce_equip_rules(doc: CharacterDocument, item: Item) -> List[str]:
    """
    Unequip whatever conflicts with a freshly equipped item.

    Returns:
        Names of the items that were unequipped
    """
    if not item.equipped:
        return []

    unequipped = []
    for other in doc.inventory:
        if other is item or not other.equipped:
            continue
        conflict = (
            (item.type == "armor" and other.type == "armor")
            or (item.type == "shield" and other.type == "shield")
            or (item.type == "shield" and is_wielded_two_handed(other))
            or (is_wielded_two_handed(item) and other.type == "shield")
        )
        if conflict:
            other.equipped = False
            unequipped.append(other.name)
    return unequipped


def normalize_equipped(doc: CharacterDocument) -> List[str]:
    """
    Re-apply the equip rules to a whole inventory.

    Later items in the list win, as if each had been equipped in turn.

    Returns:
        Names of the items that were unequipped
    """
    unequipped = []
    for item in reversed(doc.inventory):
        unequipped.extend(_enforce_equip_rules(doc, item))
    return unequipped


def _coerce_item(item: Union[Item, Dict[str, Any]]) -> Item:
    if isinstance(item, Item):
        return copy.deepcopy(item)
    return Item.from_dict(item if isinstance(item, dict) else {})


def add_item(doc: CharacterDocument, item: Union[Item, Dict[str, Any]]) -> Dict[str, Any]:
    """Add an item to the inventory (an equipped item displaces conflicting gear)."""
    item = _coerce_item(item)
    while doc.find_item(item.id) is not None:
        item.id = Item().id
    doc.inventory.append(item)
    unequipped = _enforce_equip_rules(doc, item)
    return {
        "success": True,
        "message": f"Added {item.name}",
        "item_id": item.id,
        "unequipped": unequipped,
    }


def remove_item(doc: CharacterDocument, item_id: str) -> Dict[str, Any]:
    item = doc.find_item(item_id)
    if item is None:
        return {"success": False, "message": f"No item with id {item_id}"}
    doc.inventory.remove(item)
    return {"success": True, "message": f"Removed {item.name}", "item_id": item_id}


def set_equipped(doc: CharacterDocument, item_id: str, equipped: bool) -> Dict[str, Any]:
    """
    Equip or unequip an item.

    Equipping armor unequips other armor; equipping a shield unequips other
    shields and any two-handed weapon; equipping a two-handed weapon
    unequips shields.
    """
    item = doc.find_item(item_id)
    if item is None:
        return {"success": False, "message": f"No item with id {item_id}"}

    item.equipped = bool(equipped)
    unequipped = _enforce_equip_rules(doc, item)

    message = f"{'Equipped' if item.equipped else 'Unequipped'} {item.name}"
    if unequipped:
        message += f" (unequipped {', '.join(unequipped)})"
    return {"success": True, "message": message, "item_id": item_id, "unequipped": unequipped}


def toggle_equipped(doc: CharacterDocument, item_id: str) -> Dict[str, Any]:
    item = doc.find_item(item_id)
    if item is None:
        return {"success": False, "message": f"No item with id {item_id}"}
    return set_equipped(doc, item_id, not item.equipped)


def set_two_handed_config(doc: CharacterDocument, item_id: str, two_handed: bool) -> Dict[str, Any]:
    """Switch a weapon between one- and two-handed grip."""
    item = doc.find_item(item_id)
    if item is None:
        return {"success": False, "message": f"No item with id {item_id}"}
    if item.type != "weapon":
        return {"success": False, "message": f"{item.name} is not a weapon"}

    item.two_handed_config = bool(two_handed)
    unequipped = _enforce_equip_rules(doc, item)

    grip = "two-handed" if item.two_handed_config else "one-handed"
    return {"success": True, "message": f"{item.name} wielded {grip}", "item_id": item_id, "unequipped": unequipped}


def import_item(doc: CharacterDocument, record: Any) -> Dict[str, Any]:
    """Add an unequipped item built from an equipment import record."""
    item, errors = parse_item_import(record)
    if item is None:
        return {"success": False, "message": "Invalid item record: " + "; ".join(errors), "warnings": errors}
    result = add_item(doc, item)
    result["message"] = f"Imported {item.name}"
    result["warnings"] = errors
    return result


# ============================================================
# SPELLS
# ============================================================

def _spell_at(doc: CharacterDocument, level: int, index: int):
    if not 0 <= level < SPELL_LEVELS:
        return None
    spells = doc.spellcasting.spells_by_level[level]
    if not 0 <= index < len(spells):
        return None
    return spells[index]


def add_spell(doc: CharacterDocument, level: int, spell: Union[Spell, Dict[str, Any]]) -> Dict[str, Any]:
    if not 0 <= level < SPELL_LEVELS:
        return {"success": False, "message": f"Spell level must be 0-{SPELL_LEVELS - 1}, got {level}"}
    if isinstance(spell, Spell):
        spell = copy.deepcopy(spell)
    else:
        spell = Spell.from_dict(spell if isinstance(spell, dict) else {})
    if not spell.name.strip():
        return {"success": False, "message": "Spell has no name"}

    spells = doc.spellcasting.spells_by_level[level]
    spells.append(spell)
    return {
        "success": True,
        "message": f"Added {spell.name} ({'cantrip' if level == 0 else f'level {level}'})",
        "level": level,
        "index": len(spells) - 1,
    }


def remove_spell(doc: CharacterDocument, level: int, index: int) -> Dict[str, Any]:
    spell = _spell_at(doc, level, index)
    if spell is None:
        return {"success": False, "message": f"No spell at level {level} index {index}"}
    del doc.spellcasting.spells_by_level[level][index]
    return {"success": True, "message": f"Removed {spell.name}", "level": level}


def set_spell_prepared(doc: CharacterDocument, level: int, index: int, prepared: bool) -> Dict[str, Any]:
    """Flag a spell prepared/known. Going over the cap is allowed and reported by the aggregator."""
    spell = _spell_at(doc, level, index)
    if spell is None:
        return {"success": False, "message": f"No spell at level {level} index {index}"}
    spell.prepared = bool(prepared)
    state = "prepared" if spell.prepared else "unprepared"
    return {"success": True, "message": f"{spell.name} {state}", "level": level, "index": index}


def import_spell(doc: CharacterDocument, record: Any) -> Dict[str, Any]:
    """Add an unprepared spell built from a spell import record."""
    parsed, errors = parse_spell_import(record)
    if parsed is None:
        return {"success": False, "message": "Invalid spell record: " + "; ".join(errors), "warnings": errors}
    level, spell = parsed
    result = add_spell(doc, level, spell)
    result["message"] = f"Imported {spell.name}"
    result["warnings"] = errors
    return result


# ============================================================
# FEATS & CLASS FEATURES
# ============================================================

def add_feat(doc: CharacterDocument, feat: Union[Feat, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(feat, Feat):
        feat = copy.deepcopy(feat)
    else:
        feat = Feat.from_dict(feat if isinstance(feat, dict) else {})
    if not feat.name.strip():
        return {"success": False, "message": "Feat has no name"}

    key = normalize_key(feat.name)
    if any(normalize_key(f.name) == key for f in doc.feats):
        return {"success": False, "message": f"Already has feat: {feat.name}"}

    doc.feats.append(feat)
    return {"success": True, "message": f"Gained feat: {feat.name}", "feat": feat.to_dict()}


def remove_feat(doc: CharacterDocument, name: str) -> Dict[str, Any]:
    key = normalize_key(name)
    for feat in doc.feats:
        if normalize_key(feat.name) == key:
            doc.feats.remove(feat)
            return {"success": True, "message": f"Removed feat: {feat.name}"}
    return {"success": False, "message": f"No feat named {name}"}


def remove_class_feature(doc: CharacterDocument, name: str, source_class: str) -> Dict[str, Any]:
    key = normalize_key(name)
    for feature in doc.class_features:
        same_source = class_names_match(feature.source_class, source_class) or (
            not feature.source_class.strip() and not source_class.strip()
        )
        if normalize_key(feature.name) == key and same_source:
            doc.class_features.remove(feature)
            return {"success": True, "message": f"Removed feature: {feature.name}"}
    return {"success": False, "message": f"No feature {name} from {source_class or 'no class'}"}
