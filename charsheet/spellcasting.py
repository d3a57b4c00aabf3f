"""
Multiclass Spellcasting Aggregator.

Combines every held class into one spellcasting economy:
- Aggregate caster level (full + half/2 + third/3, warlock excluded)
- Spell slots from the shared multiclass table
- Warlock pact slots folded into the bucket of their slot level
- Cantrip and prepared/known spell allotments
- Current usage and over-cap flags
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from charsheet.common import ability_mod
from charsheet.document import CharacterDocument, SpellSlot, SPELL_SLOT_LEVELS
from charsheet.rules import (
    ClassRule,
    get_class_rule,
    SPELL_SLOT_TABLE,
    PACT_SLOT_COUNT,
    PACT_SLOT_LEVEL,
    WARLOCK_SPELLS_KNOWN,
    MAX_KNOWN_SPELLS,
)


MAX_CASTER_LEVEL = 20

# full casters count every level, half and third casters round down per class
_CASTER_DIVISORS = {"full": 1, "half": 2, "third": 3}


@dataclass
class SpellcastingSummary:
    slots_per_level: List[int] = field(default_factory=lambda: [0] * SPELL_SLOT_LEVELS)
    max_prepared_or_known: int = 0
    max_cantrips: int = 0
    current_prepared: int = 0
    current_cantrips: int = 0
    caster_level: int = 0
    pact_slots: int = 0
    pact_slot_level: int = 0
    prepared_over_cap: bool = False
    cantrips_over_cap: bool = False
    casting_ability: str = ""
    spell_save_dc: int = 0
    spell_attack_bonus: int = 0

    def to_dict(self) -> Dict:
        return {
            "slots_per_level": list(self.slots_per_level),
            "max_prepared_or_known": self.max_prepared_or_known,
            "max_cantrips": self.max_cantrips,
            "current_prepared": self.current_prepared,
            "current_cantrips": self.current_cantrips,
            "caster_level": self.caster_level,
            "pact_slots": self.pact_slots,
            "pact_slot_level": self.pact_slot_level,
            "prepared_over_cap": self.prepared_over_cap,
            "cantrips_over_cap": self.cantrips_over_cap,
            "casting_ability": self.casting_ability,
            "spell_save_dc": self.spell_save_dc,
            "spell_attack_bonus": self.spell_attack_bonus,
        }


# ============================================================
# PER-CLASS ALLOTMENTS
# ============================================================

def cantrips_for_class(rule: ClassRule, class_level: int) -> int:
    """Base cantrips at level 1, +1 at 4 and +1 at 10 (only for classes that get cantrips)."""
    if class_level < 1 or rule.cantrips_at_1 <= 0:
        return 0
    count = rule.cantrips_at_1
    if class_level >= 4:
        count += 1
    if class_level >= 10:
        count += 1
    return count


def spells_for_class(rule: ClassRule, class_level: int, abilities: Dict) -> int:
    """Prepared: max(1, mod + level). Known: min(22, level + 1). Warlock: fixed table."""
    if rule.caster_type == "none" or class_level < 1:
        return 0
    if rule.caster_type == "warlock":
        return int(WARLOCK_SPELLS_KNOWN[min(class_level, MAX_CASTER_LEVEL) - 1])
    if rule.spell_style == "prepared":
        return max(1, ability_mod(abilities.get(rule.casting_ability)) + class_level)
    return min(MAX_KNOWN_SPELLS, class_level + 1)


# ============================================================
# SLOTS
# ============================================================

def calculate_caster_level(class_levels: List[Tuple[str, int]]) -> int:
    """
    Calculate combined caster level for the multiclass slot table.

    Each class rounds down on its own: Paladin 3 / Ranger 3 is caster level 2.
    Warlock levels do NOT contribute (they use pact slots).

    Args:
        class_levels: (caster_type, class_level) per held class
    """
    caster_level = sum(
        level // _CASTER_DIVISORS[caster_type]
        for caster_type, level in class_levels
        if caster_type in _CASTER_DIVISORS
    )
    return min(caster_level, MAX_CASTER_LEVEL)


def get_pact_slots(warlock_level: int) -> Tuple[int, int]:
    """Returns (slot count, slot level) for a warlock level, (0, 0) without warlock levels."""
    if warlock_level <= 0:
        return 0, 0
    idx = min(warlock_level, MAX_CASTER_LEVEL) - 1
    return int(PACT_SLOT_COUNT[idx]), int(PACT_SLOT_LEVEL[idx])


def get_slot_row(caster_level: int, warlock_level: int = 0) -> List[int]:
    """Slots for spell levels 1-9: table row for the caster level plus pact slots."""
    if caster_level > 0:
        row = SPELL_SLOT_TABLE[min(caster_level, MAX_CASTER_LEVEL) - 1].copy()
    else:
        row = np.zeros(SPELL_SLOT_LEVELS, dtype=np.int64)

    pact_count, pact_level = get_pact_slots(warlock_level)
    if pact_count:
        row[pact_level - 1] += pact_count

    return [int(n) for n in row]


# ============================================================
# AGGREGATION
# ============================================================

def _count_prepared(doc: CharacterDocument) -> Tuple[int, int]:
    """(cantrips, levelled spells) flagged prepared."""
    levels = doc.spellcasting.spells_by_level
    cantrips = sum(1 for sp in levels[0] if sp.prepared is True) if levels else 0
    prepared = sum(1 for lvl in levels[1:] for sp in lvl if sp.prepared is True)
    return cantrips, prepared


def casting_ability_for(doc: CharacterDocument) -> str:
    """The document's chosen casting ability, else the first casting class's."""
    if doc.spellcasting.ability:
        return doc.spellcasting.ability
    for entry in doc.real_classes():
        rule = get_class_rule(entry.name)
        if rule is not None and rule.caster_type != "none" and rule.casting_ability:
            return rule.casting_ability
    return ""


def aggregate_spellcasting(doc: CharacterDocument) -> SpellcastingSummary:
    """
    Aggregate the spellcasting economy over all held classes.

    Unknown classes contribute nothing. Exceeding a cap is reported
    through the *_over_cap flags and never blocked.

    Args:
        doc: Character document (not modified)

    Returns:
        SpellcastingSummary
    """
    class_levels: List[Tuple[str, int]] = []
    warlock_level = 0
    max_cantrips = 0
    max_spells = 0

    for entry in doc.real_classes():
        rule: Optional[ClassRule] = get_class_rule(entry.name)
        if rule is None:
            continue
        class_levels.append((rule.caster_type, entry.level))
        if rule.caster_type == "warlock":
            warlock_level += entry.level
        max_cantrips += cantrips_for_class(rule, entry.level)
        max_spells += spells_for_class(rule, entry.level, doc.abilities)

    caster_level = calculate_caster_level(class_levels)
    pact_count, pact_level = get_pact_slots(warlock_level)

    current_cantrips, current_prepared = _count_prepared(doc)

    ability = casting_ability_for(doc)
    if ability:
        mod = ability_mod(doc.abilities.get(ability))
        save_dc = 8 + doc.proficiency_bonus + mod
        attack_bonus = doc.proficiency_bonus + mod
    else:
        save_dc = attack_bonus = 0

    return SpellcastingSummary(
        slots_per_level=get_slot_row(caster_level, warlock_level),
        max_prepared_or_known=max_spells,
        max_cantrips=max_cantrips,
        current_prepared=current_prepared,
        current_cantrips=current_cantrips,
        caster_level=caster_level,
        pact_slots=pact_count,
        pact_slot_level=pact_level,
        prepared_over_cap=current_prepared > max_spells,
        cantrips_over_cap=current_cantrips > max_cantrips,
        casting_ability=ability,
        spell_save_dc=save_dc,
        spell_attack_bonus=attack_bonus,
    )


def sync_spell_slots(doc: CharacterDocument) -> SpellcastingSummary:
    """
    Write aggregated slot totals, DC and attack bonus into the document's
    spellcasting block. Used slots are clamped to the new totals.
    Modifies doc in place; callers pass their working copy.
    """
    summary = aggregate_spellcasting(doc)
    block = doc.spellcasting

    slots = []
    for i, total in enumerate(summary.slots_per_level):
        used = block.slots[i].used if i < len(block.slots) else 0
        slots.append(SpellSlot(total=total, used=min(max(0, used), total)))
    block.slots = slots

    if not block.ability and summary.casting_ability:
        block.ability = summary.casting_ability
    block.save_dc = summary.spell_save_dc
    block.attack_bonus = summary.spell_attack_bonus
    return summary
