"""
Document Persistence.

dump_document() wraps a document in a versioned blob:

    {"version": 2, "saved_at": "...", "document": {...}}

load_document() accepts that blob, a bare document dict, a JSON string of
either, or an older single-sheet layout (info/stats/magic, or the
class + level pair). Missing fields take their defaults; a field that
cannot be parsed falls back to its default and a warning is returned.
"""

import json
import re
from datetime import datetime
from typing import Dict, Any, List, Tuple

from charsheet.common import to_int
from charsheet.document import CharacterDocument, SPELL_SLOT_LEVELS
from charsheet.inventory import normalize_equipped


SCHEMA_VERSION = 2

_CLASS_LEVEL_RE = re.compile(r"^(.*?)\s*(\d+)\s*$")
_LEGACY_KEYS = ("info", "stats", "magic", "class_level", "classLevel", "class")


def dump_document(doc: CharacterDocument) -> Dict[str, Any]:
    """Serialize a document into a versioned, JSON-safe blob."""
    return {
        "version": SCHEMA_VERSION,
        "saved_at": datetime.now().isoformat(timespec="seconds"),
        "document": doc.to_dict(),
    }


def dumps_document(doc: CharacterDocument) -> str:
    return json.dumps(dump_document(doc), ensure_ascii=False)


# ============================================================
# LEGACY MIGRATION
# ============================================================

def parse_class_level(text: Any) -> List[Dict[str, Any]]:
    """
    Split a free-text class/level line into class entries.

    "Artífice 3 / Mago 2" -> [{"name": "Artífice", "level": 3}, {"name": "Mago", "level": 2}]
    A part without a number counts as level 1.
    """
    if not isinstance(text, str):
        return []
    entries = []
    for part in re.split(r"[/,;]", text):
        part = part.strip()
        if not part:
            continue
        match = _CLASS_LEVEL_RE.match(part)
        if match and match.group(1).strip():
            entries.append({"name": match.group(1).strip(), "level": max(1, int(match.group(2)))})
        elif not part.isdigit():
            entries.append({"name": part, "level": 1})
    return entries


_ITEM_KEYS = {
    "damageType": "damage_type",
    "isTwoHandedConfig": "two_handed_config",
    "acBonus": "ac_bonus",
    "maxDex": "max_dex",
    "stealthDisadvantage": "stealth_disadvantage",
    "strengthRequirement": "strength_requirement",
    "versatileDamage": "versatile_damage",
    "abilityOverride": "ability_override",
}

_COMBAT_KEYS = {
    "hpMax": "hp_max",
    "hpCurrent": "hp_current",
    "hpTemp": "hp_temp",
    "hitDiceTotal": "hit_dice_total",
    "deathSaveSuccess": "death_save_successes",
    "deathSaveFailure": "death_save_failures",
    "manualACModifier": "manual_ac_modifier",
}


def _rename_keys(d: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    return {mapping.get(k, k): v for k, v in d.items()}


def migrate_legacy_sheet(data: Dict[str, Any], warnings: List[str]) -> Dict[str, Any]:
    """
    Convert an older sheet layout into the current document shape.

    Handles:
    - info.classLevel / class_level strings ("Artífice 3 / Mago 2")
    - the single "class" + "level" pair
    - stats -> abilities, savingThrows/skills flag maps
    - camelCase combat and item fields
    - magic block with a 10-entry slot list (entry 0 was the unused cantrip row)
    - free-text features / otherProficiencies kept as notes
    """
    out = {k: v for k, v in data.items() if k not in ("info", "stats", "magic")}
    info = data.get("info") if isinstance(data.get("info"), dict) else {}

    if "classes" not in data:
        class_text = info.get("classLevel") or data.get("class_level") or data.get("classLevel")
        if class_text:
            out["classes"] = parse_class_level(class_text)
        elif data.get("class"):
            out["classes"] = [{"name": str(data["class"]), "level": max(1, to_int(data.get("level"), 1))}]
        if "classes" in out:
            warnings.append(f"migrated class line to {len(out['classes'])} class entr{'y' if len(out['classes']) == 1 else 'ies'}")

    if info.get("name") and "name" not in out:
        out["name"] = info["name"]

    if isinstance(data.get("stats"), dict) and "abilities" not in data:
        out["abilities"] = data["stats"]
    if "savingThrows" in data and "saving_throw_proficiencies" not in data:
        out["saving_throw_proficiencies"] = out.pop("savingThrows")
    if "skills" in data and "skill_proficiencies" not in data:
        out["skill_proficiencies"] = out.pop("skills")

    if isinstance(data.get("combat"), dict):
        out["combat"] = _rename_keys(data["combat"], _COMBAT_KEYS)
    if isinstance(data.get("inventory"), list):
        out["inventory"] = [_rename_keys(i, _ITEM_KEYS) if isinstance(i, dict) else i for i in data["inventory"]]

    magic = data.get("magic")
    if isinstance(magic, dict) and "spellcasting" not in data:
        slots = magic.get("slots") if isinstance(magic.get("slots"), list) else []
        if len(slots) > SPELL_SLOT_LEVELS:
            slots = slots[len(slots) - SPELL_SLOT_LEVELS:]
        out["spellcasting"] = {
            "ability": magic.get("ability", ""),
            "save_dc": magic.get("saveDC", 0),
            "attack_bonus": magic.get("attackBonus", 0),
            "slots": slots,
            "spells_by_level": magic.get("spells", []),
        }

    notes = list(out.get("notes") or []) if isinstance(out.get("notes"), list) else []
    for key in ("features", "otherProficiencies"):
        text = out.pop(key, None)
        if isinstance(text, str) and text.strip():
            notes.append(text.strip())
    if notes:
        out["notes"] = notes

    return out


def _is_legacy(data: Dict[str, Any]) -> bool:
    return "classes" not in data and any(k in data for k in _LEGACY_KEYS)


# ============================================================
# LOADING
# ============================================================

def load_document(blob: Any) -> Tuple[CharacterDocument, List[str]]:
    """
    Load a document from a persisted blob.

    Never raises: anything unusable falls back to defaults and is
    reported in the warnings list.

    Args:
        blob: Versioned blob, bare document dict, or a JSON string of either

    Returns:
        Tuple of (document, warnings)
    """
    warnings: List[str] = []

    if isinstance(blob, (str, bytes)):
        try:
            blob = json.loads(blob)
        except ValueError as e:
            warnings.append(f"unreadable blob ({e}); using defaults")
            return CharacterDocument(), warnings

    if not isinstance(blob, dict):
        warnings.append("blob is not a mapping; using defaults")
        return CharacterDocument(), warnings

    data = blob
    if "document" in blob and "version" in blob:
        version = to_int(blob.get("version"), 0)
        if version > SCHEMA_VERSION:
            warnings.append(f"blob version {version} is newer than {SCHEMA_VERSION}; unknown fields ignored")
        data = blob["document"]
        if not isinstance(data, dict):
            warnings.append("document is not a mapping; using defaults")
            return CharacterDocument(), warnings

    if _is_legacy(data):
        data = migrate_legacy_sheet(data, warnings)

    doc = CharacterDocument.from_dict(data, warnings)
    for name in normalize_equipped(doc):
        warnings.append(f"unequipped {name}: conflicts with other equipped gear")
    return doc, warnings
