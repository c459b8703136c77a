import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .constants import STARTING_XI_SIZE
from .errors import IncompleteSquad
from .formation import FormationSpec
from .models import Player
from .positions import CanonicalPosition, OUTFIELD_LINES

log = logging.getLogger(__name__)

GK = CanonicalPosition.GOALKEEPER
DEF = CanonicalPosition.DEFENDER
MID = CanonicalPosition.MIDFIELDER
FWD = CanonicalPosition.FORWARD

# Buckets that lend spare players to short lines, most flexible first.
BORROW_PRIORITY: tuple[CanonicalPosition, ...] = (MID, FWD, DEF)

# Which short line an out-of-position starter is sent to, nearest first.
_LINE_PREFERENCE: Dict[CanonicalPosition, tuple[CanonicalPosition, ...]] = {
    GK: (MID, FWD, DEF),
    DEF: (MID, FWD),
    MID: (FWD, DEF),
    FWD: (MID, DEF),
}


@dataclass
class Selection:
    formation: FormationSpec
    starters: List[Player] = field(default_factory=list)
    lines: Dict[CanonicalPosition, List[Player]] = field(default_factory=dict)
    missing_goalkeeper: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def incomplete(self) -> bool:
        return len(self.starters) < STARTING_XI_SIZE

    @property
    def degraded(self) -> bool:
        return self.incomplete or self.missing_goalkeeper or bool(self.warnings)

    def line_counts(self) -> Dict[str, int]:
        return {pos.short: len(self.lines.get(pos, [])) for pos in CanonicalPosition}

    def raise_if_incomplete(self) -> None:
        if self.incomplete or self.missing_goalkeeper:
            raise IncompleteSquad(len(self.starters), self.missing_goalkeeper)


def partition(roster: Iterable[Player]) -> Dict[CanonicalPosition, List[Player]]:
    buckets: Dict[CanonicalPosition, List[Player]] = {pos: [] for pos in CanonicalPosition}
    for player in roster:
        buckets[player.canonical_position].append(player)
    return buckets


def select_starting_xi(roster: Sequence[Player], formation: FormationSpec) -> Selection:
    """Pick eleven starters for *formation* from *roster*.

    Each line takes its own specialists first (one goalkeeper, then
    defenders, midfielders and forwards up to the formation's counts). Any
    shortfall is covered by spare players borrowed from the midfield, forward
    and defender buckets in that order, and whatever is still missing is
    filled from the remaining roster in roster order. The result never holds
    more than eleven players; fewer means the squad is incomplete and the
    selection says so instead of raising.

    The roster is not modified; use :func:`apply_selection` to write the
    starter flags.
    """
    selection = Selection(formation=formation)
    chosen: List[Player] = []
    chosen_ids = set()

    def take(player: Player) -> None:
        chosen.append(player)
        chosen_ids.add(player.id)

    unique: List[Player] = []
    seen = set()
    for player in roster:
        if player.id in seen:
            continue
        seen.add(player.id)
        unique.append(player)
    buckets = partition(unique)
    slots = formation.slots()

    shortfall = 0
    if buckets[GK]:
        take(buckets[GK][0])
    else:
        selection.missing_goalkeeper = True
        shortfall += slots[GK]
        selection.warnings.append("No goalkeeper in squad")

    for pos in OUTFIELD_LINES:
        target = slots[pos]
        available = buckets[pos][:target]
        for player in available:
            take(player)
        if len(available) < target:
            shortfall += target - len(available)
            selection.warnings.append(
                f"Formation {formation} needs {target} {pos.value.lower()}s, squad has {len(available)}"
            )

    for pos in BORROW_PRIORITY:
        if shortfall <= 0:
            break
        for player in buckets[pos]:
            if shortfall <= 0:
                break
            if player.id in chosen_ids:
                continue
            take(player)
            shortfall -= 1

    if len(chosen) < STARTING_XI_SIZE:
        for player in unique:
            if len(chosen) >= STARTING_XI_SIZE:
                break
            if player.id not in chosen_ids:
                take(player)

    selection.starters = chosen[:STARTING_XI_SIZE]
    selection.lines = assign_lines(selection.starters, formation)

    if selection.incomplete:
        selection.warnings.append(
            f"Incomplete squad: {len(selection.starters)} of {STARTING_XI_SIZE} starters"
        )
    for warning in selection.warnings:
        log.warning("starting XI (%s): %s", formation, warning)
    return selection


def assign_lines(
    starters: Sequence[Player], formation: FormationSpec
) -> Dict[CanonicalPosition, List[Player]]:
    """Place each starter in a pitch line.

    Starters fill their own line first. Anyone left over is moved into the
    nearest short line; a defender covering a forward gap (or the reverse)
    goes through midfield, pushing the last midfielder up or back instead of
    jumping two lines.
    """
    targets = formation.slots()
    lines: Dict[CanonicalPosition, List[Player]] = {pos: [] for pos in CanonicalPosition}
    overflow: List[Player] = []
    for player in starters:
        pos = player.canonical_position
        if len(lines[pos]) < targets[pos]:
            lines[pos].append(player)
        else:
            overflow.append(player)

    for player in overflow:
        source = player.canonical_position
        target = _nearest_short_line(source, lines, targets)
        if target is None:
            lines[source if source != GK else MID].append(player)
            continue
        if {source, target} == {DEF, FWD}:
            pivot = _last_midfielder(lines[MID])
            if pivot is not None:
                lines[MID].remove(pivot)
                lines[MID].append(player)
                lines[target].append(pivot)
                continue
        lines[target].append(player)
    return lines


def _nearest_short_line(
    source: CanonicalPosition,
    lines: Dict[CanonicalPosition, List[Player]],
    targets: Dict[CanonicalPosition, int],
) -> Optional[CanonicalPosition]:
    for pos in _LINE_PREFERENCE[source]:
        if len(lines[pos]) < targets[pos]:
            return pos
    return None


def _last_midfielder(players: List[Player]) -> Optional[Player]:
    for player in reversed(players):
        if player.canonical_position == MID:
            return player
    return None


def apply_selection(roster: Iterable[Player], selection: Selection) -> None:
    starter_ids = {p.id for p in selection.starters}
    for player in roster:
        player.is_starter = player.id in starter_ids
