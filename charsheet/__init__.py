# Character rules engine for a 5e-style character sheet
# This package provides:
# - rules.py: class/skill/slot tables and data/class_rules.json loading
# - document.py: normalized character document (dataclasses)
# - records.py: validation of class/item/spell import records
# - derived.py: armor class, initiative, carrying load, attacks
# - spellcasting.py: multiclass slot table, pact magic, spell caps
# - skill_prompts.py: pending "choose N skills" queue
# - class_import.py: first acquisition of a class from an import record
# - leveling.py: per-class level-up with feature propagation
# - inventory.py: equipment, spell and feat edits
# - persistence.py: versioned save/load with legacy sheet migration
# - journal.py: JSONL command journal
# - commands.py: public command surface (returns new documents)

__version__ = "0.1.0"
