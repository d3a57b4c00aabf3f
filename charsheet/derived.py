"""
Derived Statistics Calculator.

Pure read-only view over a CharacterDocument:
- Armor class from equipped armor/shield
- Initiative
- Carrying load and capacity
- Attack lines for equipped weapons
- Saving throw and skill modifiers, passive perception

Malformed numbers never raise; they are coerced with sane defaults.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional

from charsheet.common import ability_mod, format_bonus, normalize_key, to_float, to_int
from charsheet.document import CharacterDocument, Item, CURRENCY_KEYS
from charsheet.rules import ABILITY_KEYS, SKILLS, DIE_LADDER, resolve_property_tag


UNARMORED_BASE_AC = 10
DEFAULT_ARMOR_AC = 10
DEFAULT_SHIELD_BONUS = 2
DEFAULT_WEAPON_DAMAGE = "1d4"
CARRY_MULTIPLIER = 15
COINS_PER_POUND = 50

_DICE_RE = re.compile(r"(\d*)\s*d\s*(\d+)", re.IGNORECASE)


@dataclass
class Attack:
    """One attack line for an equipped weapon."""
    item_id: str
    name: str
    ability: str
    attack_bonus: int
    damage: str
    damage_type: str = ""
    proficient: bool = False
    two_handed: bool = False

    def to_dict(self) -> Dict:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "ability": self.ability,
            "attack_bonus": self.attack_bonus,
            "attack_bonus_text": format_bonus(self.attack_bonus),
            "damage": self.damage,
            "damage_type": self.damage_type,
            "proficient": self.proficient,
            "two_handed": self.two_handed,
        }


@dataclass
class DerivedStats:
    armor_class: int = UNARMORED_BASE_AC
    initiative: int = 0
    carrying_load: float = 0.0
    max_carrying_load: int = 0
    is_overloaded: bool = False
    attacks: List[Attack] = field(default_factory=list)
    saving_throws: Dict[str, int] = field(default_factory=dict)
    skills: Dict[str, int] = field(default_factory=dict)
    passive_perception: int = 10

    def to_dict(self) -> Dict:
        return {
            "armor_class": self.armor_class,
            "initiative": self.initiative,
            "carrying_load": self.carrying_load,
            "max_carrying_load": self.max_carrying_load,
            "is_overloaded": self.is_overloaded,
            "attacks": [a.to_dict() for a in self.attacks],
            "saving_throws": dict(self.saving_throws),
            "skills": dict(self.skills),
            "passive_perception": self.passive_perception,
        }


# ============================================================
# WEAPON HELPERS
# ============================================================

def property_tags(item: Item) -> List[str]:
    """Canonical property tags of an item (unknown free-text properties dropped)."""
    tags = []
    for prop in item.properties:
        tag = resolve_property_tag(prop)
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def is_wielded_two_handed(item: Item) -> bool:
    """A weapon occupies both hands if it is two-handed or configured to be."""
    if item.type != "weapon":
        return False
    return item.two_handed_config or "two_handed" in property_tags(item)


def weapon_category(item: Item) -> str:
    """simple / martial / "" from the category field or the property tags."""
    tag = resolve_property_tag(item.category)
    if tag in ("simple", "martial"):
        return tag
    for tag in property_tags(item):
        if tag in ("simple", "martial"):
            return tag
    return ""


def step_up_die(dice: str) -> str:
    """
    Step a damage die one size up: d4->d6->d8->d10->d12->2d6.

    The first die term is replaced; any flat modifier in the string is kept.
    Strings without a die term are returned unchanged.
    """
    match = _DICE_RE.search(dice)
    if not match:
        return dice
    count = to_int(match.group(1), 1) or 1
    die = f"d{match.group(2)}"
    if die == "d12":
        replacement = f"{count * 2}d6"
    elif die in DIE_LADDER:
        replacement = f"{count}{DIE_LADDER[die]}"
    else:
        return dice
    return dice[:match.start()] + replacement + dice[match.end():]


def damage_dice(item: Item) -> str:
    """Damage die for the weapon's current grip."""
    base = item.damage or DEFAULT_WEAPON_DAMAGE
    if not item.two_handed_config:
        return base
    if item.versatile_damage:
        return item.versatile_damage
    return step_up_die(base)


def attack_ability(item: Item, abilities: Dict[str, Any]) -> str:
    """Ability governing a weapon: override, then finesse, then ranged, then STR."""
    if item.ability_override in ABILITY_KEYS:
        return item.ability_override
    tags = property_tags(item)
    if "finesse" in tags:
        str_mod = ability_mod(abilities.get("STR"))
        dex_mod = ability_mod(abilities.get("DEX"))
        return "DEX" if dex_mod > str_mod else "STR"
    if "ranged" in tags:
        return "DEX"
    return "STR"


def is_weapon_proficient(item: Item, weapon_proficiencies: List[str]) -> bool:
    """
    True if the weapon's own name or its simple/martial category appears
    in the proficiency list, ignoring case and accents.
    """
    name_key = normalize_key(item.name)
    category = weapon_category(item)
    for entry in weapon_proficiencies:
        entry_key = normalize_key(entry)
        if not entry_key:
            continue
        if entry_key in (name_key, name_key + "s"):
            return True
        if category and resolve_property_tag(entry) == category:
            return True
    return False


def build_attack(item: Item, doc: CharacterDocument) -> Attack:
    ability = attack_ability(item, doc.abilities)
    mod = ability_mod(doc.abilities.get(ability))
    proficient = is_weapon_proficient(item, doc.proficiencies.weapon)
    bonus = mod + (doc.proficiency_bonus if proficient else 0)

    dice = damage_dice(item)
    damage = f"{dice}{format_bonus(mod)}"

    return Attack(
        item_id=item.id,
        name=item.name,
        ability=ability,
        attack_bonus=bonus,
        damage=damage,
        damage_type=item.damage_type,
        proficient=proficient,
        two_handed=is_wielded_two_handed(item),
    )


# ============================================================
# ARMOR & LOAD
# ============================================================

def _first_equipped(doc: CharacterDocument, item_type: str) -> Optional[Item]:
    for item in doc.inventory:
        if item.type == item_type and item.equipped:
            return item
    return None


def calculate_armor_class(doc: CharacterDocument) -> int:
    """
    Calculate armor class.

    No armor: 10 + DEX mod + shield.
    Armor:    armor AC + min(DEX mod, max_dex) + shield.
    Both:     + manual modifier.
    """
    dex_mod = ability_mod(doc.abilities.get("DEX"))

    armor = _first_equipped(doc, "armor")
    if armor is None:
        base = UNARMORED_BASE_AC + dex_mod
    else:
        armor_ac = armor.ac_bonus or DEFAULT_ARMOR_AC
        effective_dex = dex_mod if armor.max_dex is None else min(dex_mod, armor.max_dex)
        base = armor_ac + effective_dex

    shield = _first_equipped(doc, "shield")
    shield_bonus = (shield.ac_bonus or DEFAULT_SHIELD_BONUS) if shield is not None else 0

    return base + shield_bonus + doc.combat.manual_ac_modifier


def calculate_carrying_load(doc: CharacterDocument) -> float:
    """Sum of item weight x quantity plus coins at 50 per pound."""
    item_weight = sum(max(0.0, item.weight) * max(0, item.quantity) for item in doc.inventory)
    coins = sum(max(0.0, to_float(doc.currency.get(key), 0.0)) for key in CURRENCY_KEYS)
    return round(item_weight + coins / COINS_PER_POUND, 2)


def calculate_max_carrying_load(doc: CharacterDocument) -> int:
    return to_int(doc.abilities.get("STR"), 10) * CARRY_MULTIPLIER


# ============================================================
# PUBLIC API
# ============================================================

def derive_stats(doc: CharacterDocument) -> DerivedStats:
    """
    Compute every derived statistic for a document.

    Args:
        doc: Character document (not modified)

    Returns:
        DerivedStats
    """
    abilities = doc.abilities
    pb = doc.proficiency_bonus

    saving_throws = {}
    for key in ABILITY_KEYS:
        bonus = pb if key in doc.saving_throw_proficiencies else 0
        saving_throws[key] = ability_mod(abilities.get(key)) + bonus

    skills = {}
    for skill, (ability, _) in SKILLS.items():
        bonus = pb if skill in doc.skill_proficiencies else 0
        skills[skill] = ability_mod(abilities.get(ability)) + bonus

    load = calculate_carrying_load(doc)
    capacity = calculate_max_carrying_load(doc)

    return DerivedStats(
        armor_class=calculate_armor_class(doc),
        initiative=ability_mod(abilities.get("DEX")),
        carrying_load=load,
        max_carrying_load=capacity,
        is_overloaded=load > capacity,
        attacks=[build_attack(item, doc) for item in doc.inventory if item.type == "weapon" and item.equipped],
        saving_throws=saving_throws,
        skills=skills,
        passive_perception=10 + skills["perception"],
    )
