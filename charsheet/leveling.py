"""
Leveling State Machine.

Each held class sits at its own level >= 1; the character's total level
is their sum. Two transitions move the character forward:

- level_up(doc, class_name): one more level in a class already held
- multiclass(doc, definition): a new class at level 1 (see class_import)

Both are rejected (document untouched) when the total level is at the cap.
"""

from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple, Union

import numpy as np

from charsheet.class_import import add_features, import_class
from charsheet.common import ability_mod
from charsheet.document import CharacterDocument, class_names_match
from charsheet.records import ClassDefinition
from charsheet.rules import get_max_total_level
from charsheet.spellcasting import aggregate_spellcasting


def calculate_hp_increase(
    con_score: Any,
    hit_die: int,
    roll_hp: bool = False,
    seed: Optional[int] = None,
) -> Tuple[int, str]:
    """
    Calculate HP gained for one level.

    Args:
        con_score: Constitution score
        hit_die: Die size of the class gaining the level
        roll_hp: If True, roll the hit die. If False, use the average.
        seed: Optional seed for a reproducible roll

    Returns:
        Tuple of (hp_gained, description)
    """
    con_mod = ability_mod(con_score)
    hit_die = max(1, hit_die)

    if roll_hp:
        rng = np.random.default_rng(seed)
        roll = int(rng.integers(1, hit_die + 1))
        hp_gained = max(1, roll + con_mod)
        desc = f"Rolled d{hit_die}: {roll} + CON mod ({con_mod}) = {hp_gained} HP"
    else:
        avg = (hit_die // 2) + 1
        hp_gained = max(1, avg + con_mod)
        desc = f"Average d{hit_die}: {avg} + CON mod ({con_mod}) = {hp_gained} HP"

    return hp_gained, desc


def get_progression_for(doc: CharacterDocument, class_name: str) -> Dict[int, List[str]]:
    """Stored progression table of a held class (matched in any language/case)."""
    if class_name in doc.class_progression:
        return doc.class_progression[class_name]
    for name, table in doc.class_progression.items():
        if class_names_match(name, class_name):
            return table
    return {}


def level_up(
    doc: CharacterDocument,
    class_name: str,
    roll_hp: bool = False,
    seed: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Advance a held class by one level.

    This function:
    - Increments the class level (and so the total level)
    - Recomputes the proficiency bonus
    - Adds HP from the class's hit die + CON
    - Appends features unlocked at the new class level
    - Logs the level up

    Modifies doc in place only on success.

    Args:
        doc: Working copy of the character
        class_name: The class to gain a level in
        roll_hp: If True, roll hit die for HP. If False, use average.
        seed: Optional seed for the HP roll

    Returns:
        Dict with level-up details
    """
    entry = doc.find_class(class_name)
    if entry is None:
        return {
            "success": False,
            "message": f"Class not held: {class_name}",
            "class_leveled": class_name,
            "features_gained": [],
            "hp_gained": 0,
        }

    max_level = get_max_total_level()
    old_total_level = doc.total_level
    if old_total_level >= max_level:
        return {
            "success": False,
            "message": f"Already at maximum level ({max_level})",
            "class_leveled": entry.name,
            "features_gained": [],
            "hp_gained": 0,
        }

    old_class_level = entry.level
    new_class_level = old_class_level + 1
    entry.level = new_class_level
    doc.recompute_levels()
    new_total_level = doc.total_level

    hit_die = entry.hit_die or doc.hit_die_type
    hp_gained, hp_desc = calculate_hp_increase(doc.abilities.get("CON"), hit_die, roll_hp, seed)
    doc.combat.hp_max += hp_gained
    doc.combat.hp_current += hp_gained
    doc.combat.hit_dice_total = new_total_level

    progression = get_progression_for(doc, entry.name)
    features_gained = add_features(doc, progression.get(new_class_level, []), new_class_level, entry.name)

    spellcasting = aggregate_spellcasting(doc)

    doc.level_up_log.append({
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "event": "level_up",
        "class_leveled": entry.name,
        "old_level": old_total_level,
        "new_level": new_total_level,
        "old_class_level": old_class_level,
        "new_class_level": new_class_level,
        "hp_gained": hp_gained,
        "proficiency_bonus": doc.proficiency_bonus,
        "features_gained": list(features_gained),
    })

    return {
        "success": True,
        "message": f"Gained level in {entry.name}! (Total level: {new_total_level})",
        "class_leveled": entry.name,
        "old_level": old_total_level,
        "new_level": new_total_level,
        "old_class_level": old_class_level,
        "new_class_level": new_class_level,
        "proficiency_bonus": doc.proficiency_bonus,
        "hp_gained": hp_gained,
        "hp_description": hp_desc,
        "features_gained": features_gained,
        "new_spellcasting": spellcasting.to_dict(),
    }


def multiclass(doc: CharacterDocument, definition: Union[ClassDefinition, Dict[str, Any]]) -> Dict[str, Any]:
    """Add a new class at level 1. Same rules as import_class."""
    result = import_class(doc, definition)
    result["multiclass"] = bool(result.get("success")) and not result.get("primary", False)
    return result
