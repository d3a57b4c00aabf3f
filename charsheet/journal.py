"""
JSONL Command Journal.

Logs command -> arguments -> outcome, one JSON line per engine command.
"""

import json
import os
from datetime import datetime
from typing import Dict, Any, Optional

import numpy as np


def convert_numpy(obj):
    """Convert numpy types to Python native types for JSON serialization."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, dict):
        return {str(k): convert_numpy(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple, set)):
        return [convert_numpy(v) for v in obj]
    elif hasattr(obj, "to_dict"):
        return convert_numpy(obj.to_dict())
    return obj


class CommandJournal:
    """
    Journal of engine commands in JSONL format.
    """

    def __init__(self, log_dir: str = None, enabled: bool = True):
        """
        Initialize command journal.

        Args:
            log_dir: Directory to write logs. Defaults to data/journal/
            enabled: Whether logging is active
        """
        self.enabled = enabled

        if log_dir is None:
            base_path = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
            log_dir = os.path.join(base_path, "data", "journal")

        self.log_dir = log_dir
        self.current_file = None
        self.session_id = None
        self.step_idx = 0

        if self.enabled:
            os.makedirs(self.log_dir, exist_ok=True)

    def start_session(self, session_id: str = None, character_name: str = ""):
        """Start a new session file."""
        if not self.enabled:
            return

        self.step_idx = 0
        if session_id is None:
            session_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        self.session_id = session_id
        self.current_file = os.path.join(self.log_dir, f"journal_{session_id}.jsonl")

        self._write({
            "timestamp": datetime.now().isoformat(),
            "type": "session_start",
            "session_id": self.session_id,
            "character_name": character_name,
        })

    def log_command(self, command: str, args: Dict[str, Any], result: Dict[str, Any]):
        """
        Log a single command.

        Args:
            command: Command name ("level_up", "import_class", ...)
            args: Arguments the command was called with (document excluded)
            result: Result dict returned by the command
        """
        if not self.enabled:
            return
        if self.current_file is None:
            self.start_session()

        entry = {
            "timestamp": datetime.now().isoformat(),
            "type": "command",
            "session_id": self.session_id,
            "step_idx": self.step_idx,
            "command": command,
            "args": convert_numpy(args),
            "success": bool(result.get("success", False)),
            "message": result.get("message", ""),
            "total_level": result.get("total_level"),
        }
        self._write(entry)
        self.step_idx += 1

    def end_session(self, final_info: Optional[Dict] = None):
        """End current session."""
        if not self.enabled:
            return

        if self.current_file:
            self._write({
                "timestamp": datetime.now().isoformat(),
                "type": "session_end",
                "session_id": self.session_id,
                "total_steps": self.step_idx,
                "final_info": convert_numpy(final_info or {}),
            })

        self.current_file = None
        self.session_id = None
        self.step_idx = 0

    def _write(self, entry: Dict[str, Any]):
        try:
            with open(self.current_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except (OSError, TypeError, ValueError) as e:
            print(f"Warning: Failed to write journal entry: {e}")


# Global journal instance
_journal = None


def get_journal() -> CommandJournal:
    """Get or create the global journal."""
    global _journal
    if _journal is None:
        _journal = CommandJournal(enabled=False)  # Disabled by default
    return _journal


def set_journal_enabled(enabled: bool, log_dir: str = None):
    """Enable or disable the global journal."""
    global _journal
    if log_dir is not None:
        _journal = CommandJournal(log_dir=log_dir, enabled=enabled)
    journal = get_journal()
    journal.enabled = enabled
    if enabled:
        os.makedirs(journal.log_dir, exist_ok=True)
        if journal.current_file is None:
            journal.start_session()
