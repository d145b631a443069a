from enum import Enum
from typing import NamedTuple


class EnterPolicy(Enum):
    # Enter while editing only commits the draft
    COMMIT_ONLY = "commit_only"
    # Enter while editing commits, then moves the active cell one row down
    COMMIT_AND_MOVE = "commit_and_move"


class EditorSettings(NamedTuple):
    default_rows: int = 20
    default_cols: int = 10
    history_capacity: int = 20
    # Quiet window, in seconds, before pending edits are saved
    autosave_delay: float = 2.0
    enter_policy: EnterPolicy = EnterPolicy.COMMIT_ONLY


DEFAULT_SETTINGS = EditorSettings()
