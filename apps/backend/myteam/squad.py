import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Sequence

from .constants import STARTING_XI_SIZE
from .errors import InvalidFormation, SubstitutionRejected, UnknownPlayer
from .formation import FormationSpec, catalogue_formation, default_formation, parse_formation
from .models import Player, TacticalState
from .positions import CanonicalPosition
from .selector import Selection, apply_selection, assign_lines, select_starting_xi
from .substitution import SubstitutionCheck, rejection_message, validate_substitution

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SquadSnapshot:
    formation: FormationSpec
    order: tuple[str, ...]
    starters: FrozenSet[str]
    captain_id: Optional[str]


class Squad:
    """A user's fantasy squad: players, the chosen formation and the captain.

    Every change to starter or captain flags goes through one of
    :meth:`select_lineup`, :meth:`change_formation`, :meth:`substitute` or
    :meth:`set_captain`, which keep the squad within eleven starters and at
    most one captain.
    """

    def __init__(self, players: Sequence[Player], formation: Optional[FormationSpec] = None) -> None:
        self._players: List[Player] = list(players)
        self.formation: FormationSpec = formation or default_formation()
        self._normalise_captain()

    # ── Queries ──────────────────────────────────────────────────────────────

    @property
    def players(self) -> List[Player]:
        return list(self._players)

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return any(p.id == player_id for p in self._players)

    def get(self, player_id: str) -> Player:
        for player in self._players:
            if player.id == player_id:
                return player
        raise UnknownPlayer(player_id)

    def starters(self) -> List[Player]:
        return [p for p in self._players if p.is_starter]

    def bench(self) -> List[Player]:
        return [p for p in self._players if not p.is_starter]

    @property
    def captain(self) -> Optional[Player]:
        for player in self._players:
            if player.is_captain:
                return player
        return None

    def lines(self) -> Dict[CanonicalPosition, List[Player]]:
        return assign_lines(self.starters(), self.formation)

    def is_complete(self) -> bool:
        return len(self.starters()) == STARTING_XI_SIZE

    # ── Mutators ─────────────────────────────────────────────────────────────

    def select_lineup(self, formation: Optional[FormationSpec] = None) -> Selection:
        """Recompute the starting XI for *formation* (default: the current one).

        Current starters are offered to the selector ahead of the bench so
        that, within a position, players the user already picked keep their
        places.
        """
        spec = formation or self.formation
        selection = select_starting_xi(self.starters() + self.bench(), spec)
        apply_selection(self._players, selection)
        self.formation = spec
        return selection

    def change_formation(self, descriptor: str) -> Selection:
        """Switch to a catalogue formation and rebuild the lineup.

        Raises :class:`InvalidFormation` and keeps the current formation and
        lineup when *descriptor* is malformed or not offered.
        """
        spec = catalogue_formation(descriptor)
        log.info("formation change %s -> %s", self.formation, spec)
        return self.select_lineup(spec)

    def substitute(self, a_id: str, b_id: str) -> SubstitutionCheck:
        a = self.get(a_id)
        b = self.get(b_id)
        check = validate_substitution(a, b)
        if check.noop:
            return check
        if not check.ok:
            log.info("substitution rejected: %s", rejection_message(a, b, check.reason))
            raise SubstitutionRejected(check.reason)
        a.is_starter, b.is_starter = b.is_starter, a.is_starter
        i, j = self._players.index(a), self._players.index(b)
        self._players[i], self._players[j] = b, a
        return check

    def set_captain(self, player_id: str) -> Player:
        target = self.get(player_id)
        for player in self._players:
            player.is_captain = player is target
        return target

    # ── Snapshots and persistence projection ─────────────────────────────────

    def snapshot(self) -> SquadSnapshot:
        captain = self.captain
        return SquadSnapshot(
            formation=self.formation,
            order=tuple(p.id for p in self._players),
            starters=frozenset(p.id for p in self._players if p.is_starter),
            captain_id=captain.id if captain else None,
        )

    def restore(self, snapshot: SquadSnapshot) -> None:
        by_id = {p.id: p for p in self._players}
        ordered = [by_id[pid] for pid in snapshot.order if pid in by_id]
        ordered += [p for p in self._players if p.id not in snapshot.order]
        for player in ordered:
            player.is_starter = player.id in snapshot.starters
            player.is_captain = player.id == snapshot.captain_id
        self._players = ordered
        self.formation = snapshot.formation

    def tactical_state(self, now: Optional[datetime] = None) -> TacticalState:
        captain = self.captain
        return TacticalState(
            formation=str(self.formation),
            starters=[p.id for p in self._players if p.is_starter],
            substitutes=[p.id for p in self._players if not p.is_starter],
            captain_id=captain.id if captain else None,
            last_updated=(now or datetime.now()).isoformat(timespec="seconds"),
        )

    @classmethod
    def from_state(cls, roster: Sequence[Player], state: TacticalState) -> "Squad":
        """Rebuild flags on a freshly fetched roster from a persisted tactical state.

        Players are matched by id. Anyone missing from both persisted lists
        goes to the bench, and at most the first eleven persisted starters
        present in the roster start.
        """
        by_id = {p.id: p for p in roster}
        starters = [pid for pid in dict.fromkeys(state.starters) if pid in by_id][:STARTING_XI_SIZE]
        starter_set = set(starters)
        substitutes = [pid for pid in dict.fromkeys(state.substitutes) if pid in by_id and pid not in starter_set]
        listed = starter_set.union(substitutes)
        ordered = [by_id[pid] for pid in starters + substitutes]
        ordered += [p for p in roster if p.id not in listed]

        captain_id = state.captain_id if state.captain_id in by_id else None
        if captain_id is None:
            captain_id = next((p.id for p in roster if p.is_captain), None)
        for player in ordered:
            player.is_starter = player.id in starter_set
            player.is_captain = player.id == captain_id

        try:
            formation = parse_formation(state.formation)
        except InvalidFormation:
            log.warning("persisted formation %r is invalid; using default", state.formation)
            formation = default_formation()
        return cls(ordered, formation)

    def _normalise_captain(self) -> None:
        seen = False
        for player in self._players:
            if player.is_captain and seen:
                player.is_captain = False
            elif player.is_captain:
                seen = True
