"""
Import Record Schemas.

External adapters (the reference-site scraper, JSON files dropped on the
sheet) hand the engine loosely-shaped dicts. This module validates them at
the boundary and returns typed records plus a list of errors:

    definition, errors = parse_class_definition(payload)
    if definition is None:
        ...  # rejected, errors explain why

Field names are accepted in both snake_case and the camelCase used by the
import contract ("hitDie", "savingThrows", "skillPrompt", ...).
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Tuple

from charsheet.common import normalize_key, str_list, to_int
from charsheet.document import Item, Spell, ITEM_TYPES, SPELL_LEVELS
from charsheet.rules import resolve_ability_key, resolve_property_tag


def _pick(payload: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key among several spellings."""
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def parse_hit_die(value: Any, default: int = 8) -> int:
    """Parse 10, "10", "d10" or "1d10" -> 10."""
    if isinstance(value, str):
        match = re.search(r"d\s*(\d+)", value.lower())
        if match:
            return int(match.group(1))
    die = to_int(value, default)
    return die if die > 0 else default


# ============================================================
# CLASS DEFINITIONS
# ============================================================

@dataclass
class SkillChoice:
    count: int = 0
    options: List[str] = field(default_factory=list)


@dataclass
class ClassDefinition:
    """A class as supplied by the reference adapter."""
    name: str
    hit_die: int = 8
    saving_throws: List[str] = field(default_factory=list)
    armor: List[str] = field(default_factory=list)
    weapons: List[str] = field(default_factory=list)
    tools: List[str] = field(default_factory=list)
    progression: Dict[int, List[str]] = field(default_factory=dict)
    definitions: Dict[str, str] = field(default_factory=dict)
    skill_choice: Optional[SkillChoice] = None
    multiclass_text: str = ""

    def features_at(self, level: int) -> List[str]:
        return list(self.progression.get(level, []))


def _parse_progression(raw: Any, errors: List[str]) -> Dict[int, List[str]]:
    if not isinstance(raw, dict):
        if raw not in (None, ""):
            errors.append("progression: expected a mapping of level -> feature names")
        return {}
    progression: Dict[int, List[str]] = {}
    for lvl, features in raw.items():
        level = to_int(lvl, 0)
        if level < 1:
            errors.append(f"progression: ignored level key {lvl!r}")
            continue
        progression[level] = str_list(features)
    return progression


def _parse_skill_choice(raw: Any) -> Optional[SkillChoice]:
    if not isinstance(raw, dict):
        return None
    count = to_int(_pick(raw, "count", "required_count", "requiredCount"), 0)
    options = str_list(_pick(raw, "options", "allowed_options", "allowedOptions", default=[]))
    if count <= 0 or not options:
        return None
    return SkillChoice(count=count, options=options)


def parse_class_definition(payload: Any) -> Tuple[Optional[ClassDefinition], List[str]]:
    """
    Validate an externally supplied class definition.

    Args:
        payload: Dict in the class import contract shape

    Returns:
        Tuple of (definition or None, errors). Non-fatal problems (an
        ignored progression level, an unknown saving throw) are reported in
        errors alongside a usable definition; a payload that is not a
        mapping or has no name yields None.
    """
    errors: List[str] = []

    if not isinstance(payload, dict):
        return None, ["class definition must be a mapping"]

    name = str(_pick(payload, "name", default="") or "").strip()
    if not name:
        return None, ["class definition has no name"]

    saving_throws = []
    for raw in str_list(_pick(payload, "saving_throws", "savingThrows", default=[])):
        key = resolve_ability_key(raw)
        if key is None:
            errors.append(f"saving_throws: unknown ability {raw!r}")
        elif key not in saving_throws:
            saving_throws.append(key)

    definitions_raw = _pick(payload, "definitions", "feature_definitions", "featureDefinitions", default={})
    if isinstance(definitions_raw, dict):
        definitions = {str(k): str(v or "") for k, v in definitions_raw.items() if str(k).strip()}
    else:
        errors.append("definitions: expected a mapping of feature name -> description")
        definitions = {}

    definition = ClassDefinition(
        name=name,
        hit_die=parse_hit_die(_pick(payload, "hit_die", "hitDie")),
        saving_throws=saving_throws,
        armor=str_list(_pick(payload, "armor", "armor_categories", "armorCategories", default=[])),
        weapons=str_list(_pick(payload, "weapons", "weapon_categories", "weaponCategories", default=[])),
        tools=str_list(_pick(payload, "tools", default=[])),
        progression=_parse_progression(_pick(payload, "progression"), errors),
        definitions=definitions,
        skill_choice=_parse_skill_choice(_pick(payload, "skill_prompt", "skillPrompt", "skill_choice", "skillChoice")),
        multiclass_text=str(_pick(payload, "multiclass_text", "multiclassText", default="") or "").strip(),
    )
    return definition, errors


# ============================================================
# EQUIPMENT RECORDS
# ============================================================

def _infer_item_type(payload: Dict[str, Any]) -> str:
    declared = str(_pick(payload, "type", "item_type", "itemType", default="") or "").lower()
    if declared in ITEM_TYPES:
        return declared
    name = normalize_key(payload.get("name", ""))
    if _pick(payload, "damage", "damage_dice"):
        return "weapon"
    if "shield" in name or "escudo" in name:
        return "shield"
    if _pick(payload, "ac_bonus", "acBonus", "armor_class", "base_ac") is not None:
        return "armor"
    return "misc"


_DICE_IN_PARENS_RE = re.compile(r"\(\s*(\d*d\d+(?:\s*[+-]\s*\d+)?)\s*\)", re.IGNORECASE)


def _versatile_from_properties(properties: List[str]) -> str:
    """Two-handed die from a "Versatile (1d10)" property, "" without one."""
    for prop in properties:
        if resolve_property_tag(prop) != "versatile":
            continue
        match = _DICE_IN_PARENS_RE.search(prop)
        if match:
            return re.sub(r"\s+", "", match.group(1)).lower()
    return ""


def parse_item_import(payload: Any) -> Tuple[Optional[Item], List[str]]:
    """
    Turn an equipment import record into an unequipped Item.

    Unknown fields are ignored and missing ones default to empty.
    """
    if not isinstance(payload, dict):
        return None, ["item record must be a mapping"]

    name = str(payload.get("name", "") or "").strip()
    if not name:
        return None, ["item record has no name"]

    item_type = _infer_item_type(payload)
    properties = str_list(payload.get("properties", []))

    category = str(_pick(payload, "weapon_category", "weaponCategory", "category", default="") or "")
    category_tag = resolve_property_tag(category)
    if category_tag not in ("simple", "martial"):
        category_tag = next(
            (tag for tag in (resolve_property_tag(p) for p in properties) if tag in ("simple", "martial")),
            "",
        )

    item = Item.from_dict({
        "name": name,
        "type": item_type,
        "equipped": False,
        "weight": payload.get("weight"),
        "quantity": payload.get("quantity", 1),
        "description": _pick(payload, "description", "desc", default=""),
        "damage": _pick(payload, "damage", "damage_dice", default=""),
        "damage_type": _pick(payload, "damage_type", "damageType", default=""),
        "properties": properties,
        "category": category_tag,
        "versatile_damage": (
            _pick(payload, "versatile_damage", "versatileDamage", "two_handed_damage", default="")
            or _versatile_from_properties(properties)
        ),
        "ability_override": _pick(payload, "ability_override", "abilityOverride", default=""),
        "ac_bonus": _pick(payload, "ac_bonus", "acBonus", "armor_class", "base_ac", default=0),
        "max_dex": _pick(payload, "max_dex", "maxDex", "dex_cap"),
        "stealth_disadvantage": bool(_pick(payload, "stealth_disadvantage", "stealthDisadvantage", default=False)),
        "strength_requirement": _pick(payload, "strength_requirement", "strengthRequirement", "str_minimum", default=0),
    })
    return item, []


# ============================================================
# SPELL RECORDS
# ============================================================

def parse_spell_level(value: Any, school_text: str = "") -> int:
    """
    Read a spell level from 3, "3", "3rd-level", "Cantrip" or a school
    line such as "Evocation cantrip". Out-of-range levels are clamped to 0-9.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return min(SPELL_LEVELS - 1, max(0, int(value)))
    for text in (value, school_text):
        if not isinstance(text, str) or not text.strip():
            continue
        folded = text.lower()
        if "cantrip" in folded or "truque" in folded:
            return 0
        match = re.search(r"\d+", folded)
        if match:
            return min(SPELL_LEVELS - 1, max(0, int(match.group(0))))
    return 0


def parse_spell_import(payload: Any) -> Tuple[Optional[Tuple[int, Spell]], List[str]]:
    """
    Turn a spell import record into (spell level, unprepared Spell).

    The reference importer nests the parsed page under "full_data"/"fullData";
    those fields are merged under the top-level ones.
    """
    if not isinstance(payload, dict):
        return None, ["spell record must be a mapping"]

    nested = _pick(payload, "full_data", "fullData", default={})
    merged = dict(nested) if isinstance(nested, dict) else {}
    merged.update({k: v for k, v in payload.items() if v not in (None, "")})

    name = str(merged.get("name", "") or "").strip()
    if not name:
        return None, ["spell record has no name"]

    school = str(merged.get("school", "") or "")
    level = parse_spell_level(merged.get("level"), school)

    spell = Spell.from_dict({
        "name": name,
        "prepared": False,
        "school": school,
        "casting_time": _pick(merged, "casting_time", "castingTime", default=""),
        "range": merged.get("range", ""),
        "components": merged.get("components", ""),
        "duration": merged.get("duration", ""),
        "description": _pick(merged, "description", "desc", default=""),
        "source": merged.get("source", ""),
    })
    return (level, spell), []
