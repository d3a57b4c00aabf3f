"""
Class Import Resolver.

Applies an externally supplied class definition to a character:
- Primary class (no real class held yet): hit die, saving throws and
  armor/weapon/tool proficiencies propagate to the character.
- Multiclass addition: those fields are left alone and the class's
  multiclass text is kept as an advisory note instead.
- Always: the class is added at level 1, its progression and feature
  definitions are stored, its skill choice is queued and its level-1
  features are created.
"""

from datetime import datetime
from typing import Dict, Any, List, Union

from charsheet.common import normalize_key
from charsheet.document import CharacterDocument, ClassEntry, ClassFeature, SkillPrompt
from charsheet.records import ClassDefinition, parse_class_definition
from charsheet.rules import get_max_total_level, resolve_skill_key


def resolve_feature_description(feature_name: str, definitions: Dict[str, str]) -> str:
    """
    Find the description for a feature name.

    Order: exact normalized key, then the first key containing the
    normalized name, then "".
    """
    key = normalize_key(feature_name)
    if not key:
        return ""
    if key in definitions:
        return definitions[key]
    for def_key, description in definitions.items():
        if key in def_key:
            return description
    return ""


def add_features(
    doc: CharacterDocument,
    feature_names: List[str],
    level: int,
    source_class: str,
) -> List[str]:
    """
    Append ClassFeature records for feature names, skipping any
    (name, source_class) the character already has.

    Returns:
        Names of the features actually added
    """
    added = []
    for name in feature_names:
        if not name.strip() or doc.has_feature(name, source_class):
            continue
        doc.class_features.append(ClassFeature(
            level=level,
            name=name,
            description=resolve_feature_description(name, doc.class_feature_definitions),
            source_class=source_class,
        ))
        added.append(name)
    return added


def import_class(doc: CharacterDocument, definition: Union[ClassDefinition, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Add a class to the character at level 1.

    Modifies doc in place only on success; a rejected import leaves it
    untouched.

    Args:
        doc: Working copy of the character
        definition: ClassDefinition, or a raw dict in the import contract shape

    Returns:
        Result dict with success status and details
    """
    warnings: List[str] = []
    if not isinstance(definition, ClassDefinition):
        definition, warnings = parse_class_definition(definition)
        if definition is None:
            return {
                "success": False,
                "message": "Invalid class definition: " + "; ".join(warnings),
                "warnings": warnings,
            }

    if doc.find_class(definition.name) is not None:
        return {
            "success": False,
            "message": f"Class already held: {definition.name}",
            "class_name": definition.name,
        }

    max_level = get_max_total_level()
    current_total = sum(c.level for c in doc.real_classes())
    if current_total >= max_level:
        return {
            "success": False,
            "message": f"Already at maximum level ({max_level})",
            "class_name": definition.name,
        }

    is_primary = not doc.real_classes()
    added_proficiencies: Dict[str, List[str]] = {}

    if is_primary:
        doc.hit_die_type = definition.hit_die
        doc.saving_throw_proficiencies.update(definition.saving_throws)
        added_proficiencies = {
            "armor": doc.proficiencies.add("armor", definition.armor),
            "weapon": doc.proficiencies.add("weapon", definition.weapons),
            "tool": doc.proficiencies.add("tool", definition.tools),
        }
    elif definition.multiclass_text and definition.multiclass_text not in doc.notes:
        doc.notes.append(definition.multiclass_text)

    # Placeholders go away once a real class exists
    doc.classes = doc.real_classes() + [ClassEntry(name=definition.name, level=1, hit_die=definition.hit_die)]

    doc.class_progression[definition.name] = {lvl: list(names) for lvl, names in definition.progression.items()}
    for feature_name, description in definition.definitions.items():
        key = normalize_key(feature_name)
        if key:
            doc.class_feature_definitions[key] = description

    if definition.skill_choice is not None:
        doc.skill_prompts.append(SkillPrompt(
            source_class=definition.name,
            required_count=definition.skill_choice.count,
            allowed_options=[resolve_skill_key(o) or o for o in definition.skill_choice.options],
        ))

    features_gained = add_features(doc, definition.features_at(1), 1, definition.name)

    doc.recompute_levels()
    doc.combat.hit_dice_total = doc.total_level

    doc.level_up_log.append({
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "event": "class_added",
        "class_name": definition.name,
        "primary": is_primary,
        "old_level": current_total,
        "new_level": doc.total_level,
        "features_gained": list(features_gained),
    })

    kind = "primary class" if is_primary else "multiclass"
    return {
        "success": True,
        "message": f"Added {definition.name} as {kind} (Total level: {doc.total_level})",
        "class_name": definition.name,
        "primary": is_primary,
        "features_gained": features_gained,
        "proficiencies_added": added_proficiencies,
        "skill_prompt_queued": definition.skill_choice is not None,
        "warnings": warnings,
    }
