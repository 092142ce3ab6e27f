from __future__ import annotations

from pathlib import Path
from typing import Final

GRAMMAR_ASSIST_ROOT: Final = Path(__file__).resolve().parent
GRAMMAR_SCHEMA_PATH: Final = GRAMMAR_ASSIST_ROOT / 'grammar.schema.json'

EOF_TOKEN_TYPE: Final = -1
UNKNOWN_TOKEN_TYPE: Final = 0

DEFAULT_CHANNEL: Final = 0
HIDDEN_CHANNEL: Final = 1

# Rule names in grammar documents never contain this character.
SYNTHETIC_RULE_SEPARATOR: Final = '$'
