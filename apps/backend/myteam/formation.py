from dataclasses import dataclass
from typing import Dict, List

from .constants import DEFAULT_FORMATION, FORMATION_PATTERN, FORMATIONS, STARTING_XI_SIZE
from .errors import InvalidFormation
from .positions import CanonicalPosition


@dataclass(frozen=True)
class FormationSpec:
    defenders: int
    midfielders: int
    forwards: int

    @property
    def goalkeepers(self) -> int:
        return 1

    def slots(self) -> Dict[CanonicalPosition, int]:
        return {
            CanonicalPosition.GOALKEEPER: self.goalkeepers,
            CanonicalPosition.DEFENDER: self.defenders,
            CanonicalPosition.MIDFIELDER: self.midfielders,
            CanonicalPosition.FORWARD: self.forwards,
        }

    def __str__(self) -> str:
        return f"{self.defenders}-{self.midfielders}-{self.forwards}"


def parse_formation(descriptor: str) -> FormationSpec:
    """Parse a ``defenders-midfielders-forwards`` descriptor such as ``"4-3-3"``.

    The goalkeeper is implicit. Raises :class:`InvalidFormation` when the
    descriptor is not exactly three positive integers or when the outfield
    lines plus the goalkeeper do not add up to eleven.
    """
    if not isinstance(descriptor, str) or not FORMATION_PATTERN.match(descriptor):
        raise InvalidFormation(str(descriptor), "expected dash-separated integers like '4-3-3'")
    parts = [int(p) for p in descriptor.split("-")]
    if len(parts) != 3:
        raise InvalidFormation(descriptor, f"expected 3 outfield lines, got {len(parts)}")
    if any(p <= 0 for p in parts):
        raise InvalidFormation(descriptor, "every line needs at least one player")
    if sum(parts) + 1 != STARTING_XI_SIZE:
        raise InvalidFormation(
            descriptor,
            f"lines add up to {sum(parts) + 1} players including the goalkeeper, expected {STARTING_XI_SIZE}",
        )
    return FormationSpec(*parts)


# Parsed once at import so a bad catalogue entry fails at startup.
FORMATION_CATALOGUE: Dict[str, FormationSpec] = {f: parse_formation(f) for f in FORMATIONS}


def is_supported(descriptor: str) -> bool:
    return descriptor in FORMATION_CATALOGUE


def supported_formations() -> List[FormationSpec]:
    return list(FORMATION_CATALOGUE.values())


def catalogue_formation(descriptor: str) -> FormationSpec:
    """Return the catalogue entry for *descriptor*, rejecting anything not offered."""
    spec = parse_formation(descriptor)
    if not is_supported(str(spec)):
        raise InvalidFormation(descriptor, f"not one of the supported formations {', '.join(FORMATIONS)}")
    return FORMATION_CATALOGUE[str(spec)]


def default_formation() -> FormationSpec:
    return FORMATION_CATALOGUE[DEFAULT_FORMATION]
