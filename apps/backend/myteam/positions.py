from enum import Enum
from typing import Optional

from .constants import POSITION_ALIASES, POSITION_SHORT_LABELS


class CanonicalPosition(str, Enum):
    GOALKEEPER = "Goalkeeper"
    DEFENDER = "Defender"
    MIDFIELDER = "Midfielder"
    FORWARD = "Forward"

    @property
    def short(self) -> str:
        return POSITION_SHORT_LABELS[self.value]


# Unrecognised labels land in midfield, the most flexible line.
DEFAULT_POSITION = CanonicalPosition.MIDFIELDER

# Pitch order, back to front.
OUTFIELD_LINES: tuple[CanonicalPosition, ...] = (
    CanonicalPosition.DEFENDER,
    CanonicalPosition.MIDFIELDER,
    CanonicalPosition.FORWARD,
)


def _normalise(raw: str) -> str:
    return " ".join(raw.split()).lower()


def classify(raw_position: Optional[str]) -> CanonicalPosition:
    """Map a free-text position label onto one of the four canonical positions.

    Matching ignores case and surrounding whitespace, and "Attacker" is
    treated as "Forward". Empty or unknown labels return ``DEFAULT_POSITION``
    rather than raising.
    """
    if not raw_position or not isinstance(raw_position, str):
        return DEFAULT_POSITION
    name = POSITION_ALIASES.get(_normalise(raw_position))
    if name is None:
        return DEFAULT_POSITION
    return CanonicalPosition(name)


def is_recognised(raw_position: Optional[str]) -> bool:
    if not raw_position or not isinstance(raw_position, str):
        return False
    return _normalise(raw_position) in POSITION_ALIASES
