"""Shared constants used across the squad engine."""

import re

# Number of players on the pitch, goalkeeper included.
STARTING_XI_SIZE = 11

# Supported formations, outfield lines only (defenders-midfielders-forwards).
FORMATIONS: tuple[str, ...] = ("4-4-2", "4-3-3", "3-5-2", "5-4-1", "4-5-1", "3-4-3")
DEFAULT_FORMATION = "4-3-3"

# Free-text position labels seen in roster payloads, keyed by the lower-cased,
# whitespace-collapsed label. Values are canonical position names.
POSITION_ALIASES: dict[str, str] = {
    "goalkeeper": "Goalkeeper",
    "keeper": "Goalkeeper",
    "gk": "Goalkeeper",
    "g": "Goalkeeper",
    "defender": "Defender",
    "def": "Defender",
    "d": "Defender",
    "midfielder": "Midfielder",
    "mid": "Midfielder",
    "m": "Midfielder",
    "forward": "Forward",
    "attacker": "Forward",
    "striker": "Forward",
    "fwd": "Forward",
    "st": "Forward",
    "f": "Forward",
}

# Short labels used in rendered lineups.
POSITION_SHORT_LABELS: dict[str, str] = {
    "Goalkeeper": "GK",
    "Defender": "DEF",
    "Midfielder": "MID",
    "Forward": "FWD",
}

# "4-3-3" style descriptors; components are validated separately.
FORMATION_PATTERN: re.Pattern[str] = re.compile(r"^\s*\d+(?:\s*-\s*\d+)*\s*$")
