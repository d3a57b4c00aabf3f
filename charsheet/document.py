"""
Character Document Container.

The normalized, serializable state of one character. Every engine command
takes a document, deep-copies it and returns the new version; nothing in
this module mutates a document on behalf of a caller.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Set, Callable
import copy
import math
import uuid

from charsheet.common import normalize_key, str_list, to_int, to_float
from charsheet.rules import (
    ABILITY_KEYS,
    resolve_ability_key,
    resolve_skill_key,
    resolve_class_id,
)


ITEM_TYPES = ("weapon", "armor", "shield", "misc")
CURRENCY_KEYS = ("cp", "sp", "ep", "gp", "pp")
SPELL_SLOT_LEVELS = 9
SPELL_LEVELS = 10


def proficiency_bonus_for(total_level: int) -> int:
    """Proficiency bonus as a pure function of total level: ceil(1 + level/4)."""
    return math.ceil(1 + max(0, total_level) / 4)


def class_names_match(a: str, b: str) -> bool:
    """True when two class names denote the same class (any language, any case)."""
    key_a, key_b = normalize_key(a), normalize_key(b)
    if not key_a or not key_b:
        return False
    if key_a == key_b:
        return True
    id_a = resolve_class_id(a)
    return id_a is not None and id_a == resolve_class_id(b)


def new_item_id() -> str:
    return uuid.uuid4().hex[:9]


def _flag_set(value: Any, resolver: Callable[[Any], Optional[str]]) -> Set[str]:
    """
    Read a proficiency set stored either as a list of keys or as
    a {key: bool} mapping (the older sheet format).
    """
    if isinstance(value, dict):
        raw = [k for k, v in value.items() if v]
    elif isinstance(value, (list, tuple, set)):
        raw = list(value)
    else:
        return set()
    out = set()
    for k in raw:
        key = resolver(k) or str(k).strip()
        if key:
            out.add(key)
    return out


# ============================================================
# SUB-ENTITIES
# ============================================================

@dataclass
class ClassEntry:
    """One held class. A blank name marks a placeholder."""
    name: str = ""
    level: int = 1
    hit_die: int = 0

    @property
    def is_placeholder(self) -> bool:
        return not self.name.strip()

    def to_dict(self) -> Dict:
        return {"name": self.name, "level": self.level, "hit_die": self.hit_die}

    @classmethod
    def from_dict(cls, d: Dict) -> "ClassEntry":
        return cls(
            name=str(d.get("name", d.get("class_id", "")) or "").strip(),
            level=max(1, to_int(d.get("level"), 1)),
            hit_die=max(0, to_int(d.get("hit_die"), 0)),
        )


@dataclass
class SkillPrompt:
    """Pending "choose N of these skills" obligation."""
    source_class: str = ""
    required_count: int = 0
    allowed_options: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "source_class": self.source_class,
            "required_count": self.required_count,
            "allowed_options": list(self.allowed_options),
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "SkillPrompt":
        options = [resolve_skill_key(o) or str(o).strip() for o in str_list(d.get("allowed_options", d.get("options", [])))]
        return cls(
            source_class=str(d.get("source_class", "") or ""),
            required_count=max(0, to_int(d.get("required_count", d.get("count")), 0)),
            allowed_options=options,
        )


@dataclass
class Proficiencies:
    """Armor/weapon/tool/language proficiencies (category tags or free text)."""
    armor: List[str] = field(default_factory=list)
    weapon: List[str] = field(default_factory=list)
    tool: List[str] = field(default_factory=list)
    language: List[str] = field(default_factory=list)

    def add(self, category: str, entries: List[str]) -> List[str]:
        """Add entries to a category, skipping case/accent-insensitive duplicates."""
        current = getattr(self, category)
        existing = {normalize_key(e) for e in current}
        added = []
        for entry in str_list(entries):
            if normalize_key(entry) not in existing:
                current.append(entry)
                existing.add(normalize_key(entry))
                added.append(entry)
        return added

    def to_dict(self) -> Dict:
        return {
            "armor": list(self.armor),
            "weapon": list(self.weapon),
            "tool": list(self.tool),
            "language": list(self.language),
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Proficiencies":
        return cls(
            armor=str_list(d.get("armor", [])),
            weapon=str_list(d.get("weapon", d.get("weapons", []))),
            tool=str_list(d.get("tool", d.get("tools", []))),
            language=str_list(d.get("language", d.get("languages", []))),
        )


@dataclass
class Feat:
    name: str = ""
    source: str = ""
    description: str = ""

    def to_dict(self) -> Dict:
        return {"name": self.name, "source": self.source, "description": self.description}

    @classmethod
    def from_dict(cls, d: Dict) -> "Feat":
        return cls(
            name=str(d.get("name", "") or ""),
            source=str(d.get("source", "") or ""),
            description=str(d.get("description", "") or ""),
        )


@dataclass
class ClassFeature:
    """An unlocked class ability."""
    level: int = 1
    name: str = ""
    description: str = ""
    source_class: str = ""

    def to_dict(self) -> Dict:
        return {
            "level": self.level,
            "name": self.name,
            "description": self.description,
            "source_class": self.source_class,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "ClassFeature":
        return cls(
            level=max(0, to_int(d.get("level"), 1)),
            name=str(d.get("name", "") or ""),
            description=str(d.get("description", "") or ""),
            source_class=str(d.get("source_class", "") or ""),
        )


@dataclass
class Combat:
    hp_max: int = 10
    hp_current: int = 10
    hp_temp: int = 0
    hit_dice_total: int = 1
    hit_dice_used: int = 0
    speed: int = 30
    manual_ac_modifier: int = 0
    death_save_successes: int = 0
    death_save_failures: int = 0

    def to_dict(self) -> Dict:
        return {
            "hp_max": self.hp_max,
            "hp_current": self.hp_current,
            "hp_temp": self.hp_temp,
            "hit_dice_total": self.hit_dice_total,
            "hit_dice_used": self.hit_dice_used,
            "speed": self.speed,
            "manual_ac_modifier": self.manual_ac_modifier,
            "death_save_successes": self.death_save_successes,
            "death_save_failures": self.death_save_failures,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Combat":
        default = cls()
        return cls(
            hp_max=to_int(d.get("hp_max"), default.hp_max),
            hp_current=to_int(d.get("hp_current"), default.hp_current),
            hp_temp=to_int(d.get("hp_temp"), 0),
            hit_dice_total=to_int(d.get("hit_dice_total"), default.hit_dice_total),
            hit_dice_used=to_int(d.get("hit_dice_used"), 0),
            speed=to_int(d.get("speed"), default.speed),
            manual_ac_modifier=to_int(d.get("manual_ac_modifier"), 0),
            death_save_successes=min(3, max(0, to_int(d.get("death_save_successes", d.get("death_save_success")), 0))),
            death_save_failures=min(3, max(0, to_int(d.get("death_save_failures", d.get("death_save_failure")), 0))),
        )


@dataclass
class Item:
    """
    Inventory entry. Weapon fields and armor/shield fields are carried on
    every item and simply ignored for types that don't use them.
    """
    id: str = field(default_factory=new_item_id)
    name: str = "New Item"
    type: str = "misc"
    equipped: bool = False
    weight: float = 0.0
    quantity: int = 1
    description: str = ""
    # weapon
    damage: str = ""
    damage_type: str = ""
    properties: List[str] = field(default_factory=list)
    category: str = ""  # "simple" / "martial" / ""
    versatile_damage: str = ""
    two_handed_config: bool = False
    ability_override: str = ""
    # armor / shield
    ac_bonus: int = 0
    max_dex: Optional[int] = None
    stealth_disadvantage: bool = False
    strength_requirement: int = 0

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "equipped": self.equipped,
            "weight": self.weight,
            "quantity": self.quantity,
            "description": self.description,
            "damage": self.damage,
            "damage_type": self.damage_type,
            "properties": list(self.properties),
            "category": self.category,
            "versatile_damage": self.versatile_damage,
            "two_handed_config": self.two_handed_config,
            "ability_override": self.ability_override,
            "ac_bonus": self.ac_bonus,
            "max_dex": self.max_dex,
            "stealth_disadvantage": self.stealth_disadvantage,
            "strength_requirement": self.strength_requirement,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Item":
        item_type = str(d.get("type", "misc") or "misc").lower()
        max_dex = d.get("max_dex")
        return cls(
            id=str(d.get("id") or new_item_id()),
            name=str(d.get("name", "New Item") or "New Item"),
            type=item_type if item_type in ITEM_TYPES else "misc",
            equipped=bool(d.get("equipped", False)),
            weight=max(0.0, to_float(d.get("weight"), 0.0)),
            quantity=max(0, to_int(d.get("quantity"), 1)),
            description=str(d.get("description", "") or ""),
            damage=str(d.get("damage", "") or "").strip(),
            damage_type=str(d.get("damage_type", "") or ""),
            properties=str_list(d.get("properties", [])),
            category=str(d.get("category", "") or "").lower(),
            versatile_damage=str(d.get("versatile_damage", "") or "").strip(),
            two_handed_config=bool(d.get("two_handed_config", d.get("is_two_handed_config", False))),
            ability_override=resolve_ability_key(d.get("ability_override", "")) or "",
            ac_bonus=to_int(d.get("ac_bonus"), 0),
            max_dex=None if max_dex is None or max_dex == "" else to_int(max_dex, 0),
            stealth_disadvantage=bool(d.get("stealth_disadvantage", False)),
            strength_requirement=max(0, to_int(d.get("strength_requirement"), 0)),
        )


@dataclass
class Spell:
    name: str = ""
    prepared: bool = False
    school: str = ""
    casting_time: str = ""
    range: str = ""
    components: str = ""
    duration: str = ""
    description: str = ""
    source: str = ""

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "prepared": self.prepared,
            "school": self.school,
            "casting_time": self.casting_time,
            "range": self.range,
            "components": self.components,
            "duration": self.duration,
            "description": self.description,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Spell":
        return cls(
            name=str(d.get("name", "") or ""),
            prepared=d.get("prepared") is True,
            school=str(d.get("school", "") or ""),
            casting_time=str(d.get("casting_time", "") or ""),
            range=str(d.get("range", "") or ""),
            components=str(d.get("components", "") or ""),
            duration=str(d.get("duration", "") or ""),
            description=str(d.get("description", "") or ""),
            source=str(d.get("source", "") or ""),
        )


@dataclass
class SpellSlot:
    total: int = 0
    used: int = 0

    def to_dict(self) -> Dict:
        return {"total": self.total, "used": self.used}

    @classmethod
    def from_dict(cls, d: Dict) -> "SpellSlot":
        return cls(total=max(0, to_int(d.get("total"), 0)), used=max(0, to_int(d.get("used"), 0)))


@dataclass
class Spellcasting:
    """Spellcasting block: slots[0] is spell level 1, spells_by_level[0] are cantrips."""
    ability: str = ""
    save_dc: int = 0
    attack_bonus: int = 0
    slots: List[SpellSlot] = field(default_factory=lambda: [SpellSlot() for _ in range(SPELL_SLOT_LEVELS)])
    spells_by_level: List[List[Spell]] = field(default_factory=lambda: [[] for _ in range(SPELL_LEVELS)])

    def to_dict(self) -> Dict:
        return {
            "ability": self.ability,
            "save_dc": self.save_dc,
            "attack_bonus": self.attack_bonus,
            "slots": [s.to_dict() for s in self.slots],
            "spells_by_level": [[sp.to_dict() for sp in level] for level in self.spells_by_level],
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Spellcasting":
        raw_slots = d.get("slots") or []
        if not isinstance(raw_slots, list):
            raw_slots = []
        slots = [SpellSlot.from_dict(s) if isinstance(s, dict) else SpellSlot() for s in raw_slots[:SPELL_SLOT_LEVELS]]
        slots += [SpellSlot() for _ in range(SPELL_SLOT_LEVELS - len(slots))]

        raw_levels = d.get("spells_by_level") or []
        if not isinstance(raw_levels, list):
            raw_levels = []
        levels: List[List[Spell]] = []
        for lvl in range(SPELL_LEVELS):
            entries = raw_levels[lvl] if lvl < len(raw_levels) and isinstance(raw_levels[lvl], list) else []
            levels.append([Spell.from_dict(sp) for sp in entries if isinstance(sp, dict)])

        return cls(
            ability=resolve_ability_key(d.get("ability", "")) or "",
            save_dc=to_int(d.get("save_dc"), 0),
            attack_bonus=to_int(d.get("attack_bonus"), 0),
            slots=slots,
            spells_by_level=levels,
        )


# ============================================================
# CHARACTER DOCUMENT
# ============================================================

def _default_abilities() -> Dict[str, int]:
    return {key: 10 for key in ABILITY_KEYS}


def _default_currency() -> Dict[str, str]:
    return {key: "0" for key in CURRENCY_KEYS}


@dataclass
class CharacterDocument:
    """Complete character state."""
    name: str = ""
    classes: List[ClassEntry] = field(default_factory=lambda: [ClassEntry()])
    abilities: Dict[str, int] = field(default_factory=_default_abilities)
    proficiency_bonus: int = 2
    saving_throw_proficiencies: Set[str] = field(default_factory=set)
    skill_proficiencies: Set[str] = field(default_factory=set)
    skill_prompts: List[SkillPrompt] = field(default_factory=list)
    proficiencies: Proficiencies = field(default_factory=Proficiencies)
    feats: List[Feat] = field(default_factory=list)
    class_features: List[ClassFeature] = field(default_factory=list)
    class_progression: Dict[str, Dict[int, List[str]]] = field(default_factory=dict)
    class_feature_definitions: Dict[str, str] = field(default_factory=dict)
    hit_die_type: int = 8
    combat: Combat = field(default_factory=Combat)
    inventory: List[Item] = field(default_factory=list)
    currency: Dict[str, str] = field(default_factory=_default_currency)
    spellcasting: Spellcasting = field(default_factory=Spellcasting)
    notes: List[str] = field(default_factory=list)
    level_up_log: List[Dict] = field(default_factory=list)

    @property
    def total_level(self) -> int:
        return sum(c.level for c in self.classes)

    def real_classes(self) -> List[ClassEntry]:
        """Held classes, placeholders excluded."""
        return [c for c in self.classes if not c.is_placeholder]

    def find_class(self, class_name: str) -> Optional[ClassEntry]:
        for entry in self.real_classes():
            if class_names_match(entry.name, class_name):
                return entry
        return None

    def has_feature(self, name: str, source_class: str) -> bool:
        key = normalize_key(name)
        return any(
            normalize_key(f.name) == key and class_names_match(f.source_class, source_class)
            for f in self.class_features
        )

    def find_item(self, item_id: str) -> Optional[Item]:
        for item in self.inventory:
            if item.id == item_id:
                return item
        return None

    def recompute_levels(self):
        """Re-derive proficiency bonus from the class list."""
        self.proficiency_bonus = proficiency_bonus_for(self.total_level)

    def copy(self) -> "CharacterDocument":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "classes": [c.to_dict() for c in self.classes],
            "total_level": self.total_level,
            "abilities": dict(self.abilities),
            "proficiency_bonus": self.proficiency_bonus,
            "saving_throw_proficiencies": sorted(self.saving_throw_proficiencies),
            "skill_proficiencies": sorted(self.skill_proficiencies),
            "skill_prompts": [p.to_dict() for p in self.skill_prompts],
            "proficiencies": self.proficiencies.to_dict(),
            "feats": [f.to_dict() for f in self.feats],
            "class_features": [f.to_dict() for f in self.class_features],
            "class_progression": {
                name: {str(lvl): list(features) for lvl, features in table.items()}
                for name, table in self.class_progression.items()
            },
            "class_feature_definitions": dict(self.class_feature_definitions),
            "hit_die_type": self.hit_die_type,
            "combat": self.combat.to_dict(),
            "inventory": [i.to_dict() for i in self.inventory],
            "currency": dict(self.currency),
            "spellcasting": self.spellcasting.to_dict(),
            "notes": list(self.notes),
            "level_up_log": copy.deepcopy(self.level_up_log),
        }

    @classmethod
    def from_dict(cls, d: Dict, warnings: Optional[List[str]] = None) -> "CharacterDocument":
        """
        Build a document from a plain dict.

        Each field is parsed on its own; a field that fails to parse keeps
        its default and, if a warnings list is given, a message is appended.
        """
        doc = cls()
        if not isinstance(d, dict):
            if warnings is not None:
                warnings.append("document is not a mapping; using defaults")
            return doc

        for field_name, parser in _FIELD_PARSERS.items():
            if field_name not in d:
                continue
            try:
                setattr(doc, field_name, parser(d[field_name]))
            except (TypeError, ValueError, AttributeError, KeyError) as e:
                if warnings is not None:
                    warnings.append(f"{field_name}: {type(e).__name__}: {e}; using default")

        if not doc.classes:
            doc.classes = [ClassEntry()]
        doc.recompute_levels()
        return doc


def _parse_classes(value: Any) -> List[ClassEntry]:
    entries: List[ClassEntry] = []
    for raw in value:
        entry = ClassEntry.from_dict(raw)
        if entry.is_placeholder or not any(class_names_match(entry.name, e.name) for e in entries):
            entries.append(entry)
    return entries


def _parse_abilities(value: Any) -> Dict[str, int]:
    abilities = _default_abilities()
    for k, v in value.items():
        key = resolve_ability_key(k)
        if key:
            abilities[key] = to_int(v, 10)
    return abilities


def _parse_progression(value: Any) -> Dict[str, Dict[int, List[str]]]:
    progression: Dict[str, Dict[int, List[str]]] = {}
    for class_name, table in value.items():
        if not isinstance(table, dict):
            continue
        progression[str(class_name)] = {
            to_int(lvl, 0): str_list(features)
            for lvl, features in table.items()
            if to_int(lvl, 0) > 0
        }
    return progression


def _parse_currency(value: Any) -> Dict[str, str]:
    currency = _default_currency()
    for key in CURRENCY_KEYS:
        if key in value:
            currency[key] = str(value[key]).strip() or "0"
    return currency


def _parse_notes(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    return [str(n).strip() for n in value if n is not None and str(n).strip()]


def _parse_features(value: Any) -> List[ClassFeature]:
    features: List[ClassFeature] = []
    seen = set()
    for raw in value:
        feature = ClassFeature.from_dict(raw)
        key = (normalize_key(feature.name), normalize_key(feature.source_class))
        if key not in seen:
            seen.add(key)
            features.append(feature)
    return features


_FIELD_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "name": lambda v: str(v or ""),
    "classes": _parse_classes,
    "abilities": _parse_abilities,
    "saving_throw_proficiencies": lambda v: _flag_set(v, resolve_ability_key),
    "skill_proficiencies": lambda v: _flag_set(v, resolve_skill_key),
    "skill_prompts": lambda v: [SkillPrompt.from_dict(p) for p in v],
    "proficiencies": Proficiencies.from_dict,
    "feats": lambda v: [Feat.from_dict(f) for f in v],
    "class_features": _parse_features,
    "class_progression": _parse_progression,
    "class_feature_definitions": lambda v: {normalize_key(k): str(desc or "") for k, desc in v.items()},
    "hit_die_type": lambda v: max(1, to_int(v, 8)),
    "combat": Combat.from_dict,
    "inventory": lambda v: [Item.from_dict(i) for i in v],
    "currency": _parse_currency,
    "spellcasting": Spellcasting.from_dict,
    "notes": _parse_notes,
    "level_up_log": lambda v: [dict(e) for e in v],
}
