"""
Skill Prompt Queue.

Classes hand out "choose N skills from this list" obligations. They wait
in doc.skill_prompts (FIFO) until enough of their options are proficient.

Only the head of the queue is checked on each skill change; a satisfied
entry further back stays queued until it reaches the head and another
change happens.
"""

from typing import Dict, Any, Optional

from charsheet.document import CharacterDocument, SkillPrompt
from charsheet.rules import resolve_skill_key


def count_satisfied(prompt: SkillPrompt, skill_proficiencies) -> int:
    """How many of the prompt's options are currently proficient."""
    chosen = 0
    for option in prompt.allowed_options:
        key = resolve_skill_key(option) or option
        if key in skill_proficiencies:
            chosen += 1
    return chosen


def resolve_skill_prompts(doc: CharacterDocument) -> Optional[SkillPrompt]:
    """
    Dequeue the head prompt if it is satisfied.

    Modifies doc in place. Returns the prompt that was resolved, or None.
    """
    if not doc.skill_prompts:
        return None
    head = doc.skill_prompts[0]
    if count_satisfied(head, doc.skill_proficiencies) >= head.required_count:
        doc.skill_prompts.pop(0)
        return head
    return None


def set_skill_proficiency(doc: CharacterDocument, skill: str, proficient: bool) -> Dict[str, Any]:
    """
    Toggle a skill proficiency and run the prompt check.

    Returns:
        Result dict with success status, the skill key and any resolved prompt
    """
    key = resolve_skill_key(skill)
    if key is None:
        return {"success": False, "message": f"Unknown skill: {skill}"}

    if proficient:
        doc.skill_proficiencies.add(key)
    else:
        doc.skill_proficiencies.discard(key)

    resolved = resolve_skill_prompts(doc)
    message = f"{key} {'proficient' if proficient else 'not proficient'}"
    if resolved is not None:
        message += f"; skill choice from {resolved.source_class or 'class'} complete"

    return {
        "success": True,
        "message": message,
        "skill": key,
        "resolved_prompt": resolved.to_dict() if resolved is not None else None,
    }


def pending_skill_prompt(doc: CharacterDocument) -> Optional[Dict[str, Any]]:
    """
    Describe the head prompt for the caller.

    Returns:
        {"source_class", "required_count", "allowed_options", "chosen", "remaining"}
        or None when nothing is pending
    """
    if not doc.skill_prompts:
        return None
    head = doc.skill_prompts[0]
    chosen = count_satisfied(head, doc.skill_proficiencies)
    info = head.to_dict()
    info["chosen"] = chosen
    info["remaining"] = max(0, head.required_count - chosen)
    return info

