"""
Static Rules Tables for the Character Engine

This module holds:
- Ability and skill keys (with English/Portuguese aliases)
- Per-class spellcasting rules and the class alias table
- The shared multiclass spell slot table and warlock pact magic tables
- Weapon property tags and the two-handed damage die ladder
- Loading of data/class_rules.json (homebrew classes, extra aliases, level cap)
"""

import json
import os
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

import numpy as np

from charsheet.common import normalize_key, to_int


# ============================================================
# ABILITIES & SKILLS
# ============================================================

ABILITY_KEYS = ("STR", "DEX", "CON", "INT", "WIS", "CHA")

ABILITY_ALIASES = {
    "STR": ["str", "strength", "for", "forca"],
    "DEX": ["dex", "dexterity", "des", "destreza"],
    "CON": ["con", "constitution", "constituicao"],
    "INT": ["int", "intelligence", "inteligencia"],
    "WIS": ["wis", "wisdom", "sab", "sabedoria"],
    "CHA": ["cha", "charisma", "car", "carisma"],
}

# skill key -> (governing ability, aliases)
SKILLS = {
    "athletics": ("STR", ["athletics", "atletismo"]),
    "acrobatics": ("DEX", ["acrobatics", "acrobacia"]),
    "sleight_of_hand": ("DEX", ["sleight of hand", "sleightofhand", "prestidigitacao"]),
    "stealth": ("DEX", ["stealth", "furtividade"]),
    "arcana": ("INT", ["arcana", "arcanismo"]),
    "history": ("INT", ["history", "historia"]),
    "investigation": ("INT", ["investigation", "investigacao"]),
    "nature": ("INT", ["nature", "natureza"]),
    "religion": ("INT", ["religion", "religiao"]),
    "animal_handling": ("WIS", ["animal handling", "animalhandling", "lidar com animais", "lidar c/ animais"]),
    "insight": ("WIS", ["insight", "intuicao"]),
    "medicine": ("WIS", ["medicine", "medicina"]),
    "perception": ("WIS", ["perception", "percepcao"]),
    "survival": ("WIS", ["survival", "sobrevivencia"]),
    "deception": ("CHA", ["deception", "enganacao"]),
    "intimidation": ("CHA", ["intimidation", "intimidacao"]),
    "performance": ("CHA", ["performance", "atuacao"]),
    "persuasion": ("CHA", ["persuasion", "persuasao"]),
}

_ABILITY_LOOKUP = {normalize_key(alias): key for key, aliases in ABILITY_ALIASES.items() for alias in aliases}
_SKILL_LOOKUP = {normalize_key(alias): key for key, (_, aliases) in SKILLS.items() for alias in aliases}
_SKILL_LOOKUP.update({normalize_key(key): key for key in SKILLS})


def resolve_ability_key(name: Any) -> Optional[str]:
    """Map "Dexterity", "dex", "Destreza" -> "DEX". Returns None when unknown."""
    return _ABILITY_LOOKUP.get(normalize_key(name))


def resolve_skill_key(name: Any) -> Optional[str]:
    """Map "Sleight of Hand", "Prestidigitação" -> "sleight_of_hand". Returns None when unknown."""
    return _SKILL_LOOKUP.get(normalize_key(name))


# ============================================================
# CLASS SPELLCASTING RULES
# ============================================================

CASTER_TYPES = ("full", "half", "third", "warlock", "none")


@dataclass(frozen=True)
class ClassRule:
    """How one class participates in the spellcasting economy."""
    caster_type: str = "none"
    casting_ability: str = ""
    spell_style: str = "known"  # "known" or "prepared"
    cantrips_at_1: int = 0

    @classmethod
    def from_dict(cls, d: Dict) -> "ClassRule":
        caster_type = str(d.get("caster_type", "none")).lower()
        if caster_type == "pact":
            caster_type = "warlock"
        if caster_type not in CASTER_TYPES:
            caster_type = "none"
        style = str(d.get("spell_style", "known")).lower()
        return cls(
            caster_type=caster_type,
            casting_ability=resolve_ability_key(d.get("casting_ability", "")) or "",
            spell_style=style if style in ("known", "prepared") else "known",
            cantrips_at_1=max(0, to_int(d.get("cantrips_at_1"), 0)),
        )


CLASS_RULES = {
    "artificer": ClassRule("half", "INT", "prepared", 2),
    "bard": ClassRule("full", "CHA", "known", 2),
    "cleric": ClassRule("full", "WIS", "prepared", 3),
    "druid": ClassRule("full", "WIS", "prepared", 2),
    "paladin": ClassRule("half", "CHA", "prepared", 0),
    "ranger": ClassRule("half", "WIS", "known", 0),
    "sorcerer": ClassRule("full", "CHA", "known", 4),
    "warlock": ClassRule("warlock", "CHA", "known", 2),
    "wizard": ClassRule("full", "INT", "prepared", 3),
    "eldritch_knight": ClassRule("third", "INT", "known", 2),
    "arcane_trickster": ClassRule("third", "INT", "known", 3),
    "barbarian": ClassRule(),
    "fighter": ClassRule(),
    "monk": ClassRule(),
    "rogue": ClassRule(),
}

# alias -> canonical class id (English and Portuguese names)
CLASS_ALIASES = {
    "artifice": "artificer",
    "bardo": "bard",
    "clerigo": "cleric",
    "druida": "druid",
    "paladino": "paladin",
    "patrulheiro": "ranger",
    "guardiao": "ranger",
    "feiticeiro": "sorcerer",
    "bruxo": "warlock",
    "mago": "wizard",
    "barbaro": "barbarian",
    "guerreiro": "fighter",
    "lutador": "fighter",
    "monge": "monk",
    "ladino": "rogue",
    "eldritch knight": "eldritch_knight",
    "cavaleiro arcano": "eldritch_knight",
    "arcane trickster": "arcane_trickster",
    "trapaceiro arcano": "arcane_trickster",
}


# ============================================================
# SPELL SLOT TABLES
# ============================================================

# Row = aggregate caster level - 1, column = spell level - 1
SPELL_SLOT_TABLE = np.array([
    [2, 0, 0, 0, 0, 0, 0, 0, 0],
    [3, 0, 0, 0, 0, 0, 0, 0, 0],
    [4, 2, 0, 0, 0, 0, 0, 0, 0],
    [4, 3, 0, 0, 0, 0, 0, 0, 0],
    [4, 3, 2, 0, 0, 0, 0, 0, 0],
    [4, 3, 3, 0, 0, 0, 0, 0, 0],
    [4, 3, 3, 1, 0, 0, 0, 0, 0],
    [4, 3, 3, 2, 0, 0, 0, 0, 0],
    [4, 3, 3, 3, 1, 0, 0, 0, 0],
    [4, 3, 3, 3, 2, 0, 0, 0, 0],
    [4, 3, 3, 3, 2, 1, 0, 0, 0],
    [4, 3, 3, 3, 2, 1, 0, 0, 0],
    [4, 3, 3, 3, 2, 1, 1, 0, 0],
    [4, 3, 3, 3, 2, 1, 1, 0, 0],
    [4, 3, 3, 3, 2, 1, 1, 1, 0],
    [4, 3, 3, 3, 2, 1, 1, 1, 0],
    [4, 3, 3, 3, 2, 1, 1, 1, 1],
    [4, 3, 3, 3, 3, 1, 1, 1, 1],
    [4, 3, 3, 3, 3, 2, 1, 1, 1],
    [4, 3, 3, 3, 3, 2, 2, 1, 1],
], dtype=np.int64)

# Index = warlock level - 1
PACT_SLOT_COUNT = np.array([1, 2, 2, 2, 2, 2, 2, 2, 2, 2, 3, 3, 3, 3, 3, 3, 4, 4, 4, 4], dtype=np.int64)
PACT_SLOT_LEVEL = np.array([1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 5, 5, 5, 5, 5, 5, 5, 5, 5, 5], dtype=np.int64)

WARLOCK_SPELLS_KNOWN = np.array([2, 3, 4, 5, 6, 7, 8, 9, 10, 10, 11, 11, 12, 12, 13, 13, 14, 14, 15, 15], dtype=np.int64)

MAX_KNOWN_SPELLS = 22


# ============================================================
# WEAPONS
# ============================================================

# Two-handed configuration steps the die up once along this ladder
DIE_LADDER = {"d4": "d6", "d6": "d8", "d8": "d10", "d10": "d12"}

WEAPON_PROPERTY_ALIASES = {
    "finesse": ["finesse", "acuidade"],
    "ranged": ["ranged", "ammunition", "distancia", "municao", "arremesso a distancia"],
    "versatile": ["versatile", "versatil"],
    "two_handed": ["two-handed", "two handed", "duas maos"],
    "simple": ["simple", "simples", "simple weapon", "simple weapons", "armas simples"],
    "martial": ["martial", "marcial", "martial weapon", "martial weapons", "armas marciais"],
}

_PROPERTY_LOOKUP = {normalize_key(alias): tag for tag, aliases in WEAPON_PROPERTY_ALIASES.items() for alias in aliases}


def resolve_property_tag(name: Any) -> Optional[str]:
    """
    Map a free-text weapon property to its tag ("Acuidade" -> "finesse").

    A parenthesized parameter is ignored: "Ammunition (range 150/600)" -> "ranged".
    """
    tag = _PROPERTY_LOOKUP.get(normalize_key(name))
    if tag is None and isinstance(name, str) and "(" in name:
        tag = _PROPERTY_LOOKUP.get(normalize_key(name.split("(", 1)[0]))
    return tag


# ============================================================
# RULES FILE LOADING
# ============================================================

_RULES_CACHE: Optional[Dict[str, Any]] = None
_DEFAULT_MAX_TOTAL_LEVEL = 20


def _get_rules_path() -> str:
    """Get path to class_rules.json (CHARSHEET_RULES_PATH overrides)."""
    override = os.environ.get("CHARSHEET_RULES_PATH")
    if override:
        return override
    base_dir = os.path.dirname(__file__)
    return os.path.join(base_dir, "..", "data", "class_rules.json")


def _builtin_rules() -> Dict[str, Any]:
    aliases = {normalize_key(alias): class_id for alias, class_id in CLASS_ALIASES.items()}
    for class_id in CLASS_RULES:
        aliases[normalize_key(class_id)] = class_id
    return {
        "max_total_level": _DEFAULT_MAX_TOTAL_LEVEL,
        "classes": dict(CLASS_RULES),
        "aliases": aliases,
    }


def load_class_rules() -> Dict[str, Any]:
    """
    Load class rules: built-in tables extended by data/class_rules.json.

    Returns dict with:
        {
            "max_total_level": int,
            "classes": {class_id: ClassRule},
            "aliases": {normalized alias: class_id}
        }
    """
    global _RULES_CACHE

    if _RULES_CACHE is not None:
        return _RULES_CACHE

    rules = _builtin_rules()

    try:
        with open(_get_rules_path(), "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        # Missing or unreadable file: built-in tables only
        data = {}

    if isinstance(data, dict):
        rules["max_total_level"] = to_int(data.get("max_total_level"), _DEFAULT_MAX_TOTAL_LEVEL) or _DEFAULT_MAX_TOTAL_LEVEL

        classes = data.get("classes")
        for class_id, raw in (classes.items() if isinstance(classes, dict) else []):
            if isinstance(raw, dict):
                key = normalize_key(class_id)
                rules["classes"][key] = ClassRule.from_dict(raw)
                rules["aliases"][key] = key

        aliases = data.get("aliases")
        for alias, class_id in (aliases.items() if isinstance(aliases, dict) else []):
            target = normalize_key(class_id)
            target = rules["aliases"].get(target, target)
            if target in rules["classes"]:
                rules["aliases"][normalize_key(alias)] = target

    _RULES_CACHE = rules
    return _RULES_CACHE


def reset_rules_cache():
    """Forget the loaded rules so the next lookup re-reads the file."""
    global _RULES_CACHE
    _RULES_CACHE = None


def get_max_total_level() -> int:
    """Get maximum total character level (sum of all class levels)."""
    return load_class_rules()["max_total_level"]


def resolve_class_id(class_name: Any) -> Optional[str]:
    """
    Resolve a class name in any supported language to its canonical id.

    "Clérigo", "cleric" and "CLERIC" all resolve to "cleric".
    Returns None for classes without a rule entry.
    """
    key = normalize_key(class_name)
    if not key:
        return None
    return load_class_rules()["aliases"].get(key)


def get_class_rule(class_name: Any) -> Optional[ClassRule]:
    """Get the spellcasting rule for a class, or None if the class is unknown."""
    class_id = resolve_class_id(class_name)
    if class_id is None:
        return None
    return load_class_rules()["classes"].get(class_id)


def known_class_ids() -> List[str]:
    """All class ids with a rule entry (built-in plus rules file)."""
    return sorted(load_class_rules()["classes"].keys())
