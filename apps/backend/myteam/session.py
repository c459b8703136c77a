import logging
import threading
from typing import Any, Dict, List, Optional

from .api_client import TeamApiClient
from .config import SETTINGS
from .errors import ApiError, InvalidFormation, PersistenceFailed
from .formation import FormationSpec, default_formation, parse_formation
from .models import Player, TacticalState, roster_from_team
from .positions import CanonicalPosition
from .selector import Selection
from .squad import Squad, SquadSnapshot
from .substitution import SubstitutionCheck
from .sync import SyncResult, TacticalSynchronizer

log = logging.getLogger(__name__)


class TeamSession:
    """One user's "my team" view: the squad, its edits and their persistence.

    Edits are applied to the in-memory squad straight away. Saves capture
    the squad as it is when they are dispatched, and a failed save restores
    the last state the team API confirmed, unless a newer save is already on
    its way.
    """

    def __init__(
        self,
        client: TeamApiClient,
        team: Dict[str, Any],
        default_formation_name: str = "",
        timezone: str = "",
    ) -> None:
        self.client = client
        self.team_id = str(team.get("_id") or "")
        self.name = team.get("name") or ""
        self.default_formation_name = default_formation_name or SETTINGS.default_formation
        self.synchronizer = TacticalSynchronizer(client, self.team_id, timezone or SETTINGS.timezone)
        self.selection: Optional[Selection] = None
        self.auto_lineup = False
        self.last_error: Optional[str] = None

        self._lock = threading.Lock()
        self._dispatched_seq = 0
        self._confirmed_seq = 0
        self._dispatched_selection: Dict[int, Optional[Selection]] = {}
        self.squad = self._build_squad(team)
        self._confirmed: SquadSnapshot = self.squad.snapshot()
        if self.auto_lineup:
            self.selection = self.squad.select_lineup()
        # Restored by a failed save; a generated lineup stands until a save is confirmed.
        self._fallback: SquadSnapshot = self.squad.snapshot()
        self._fallback_selection: Optional[Selection] = self.selection

    @classmethod
    def load(cls, client: TeamApiClient, team_id: str = "", autosave: bool = True) -> "TeamSession":
        """Fetch a team and build its session.

        Without *team_id* the user's first team is used. When the team has no
        saved lineup a starting XI is generated and, with *autosave*, saved
        straight away.
        """
        if team_id:
            team = client.get_team(team_id)
        else:
            teams = client.my_teams()
            if not teams:
                raise ApiError("No fantasy team found. Create a team first.")
            team = teams[0]
        if not team.get("_id"):
            raise ApiError("Invalid team data received.")
        session = cls(client, team)
        if session.auto_lineup and autosave and len(session.squad):
            log.info("team %s has no saved lineup; saving generated starting XI", session.team_id)
            try:
                session.save()
            except PersistenceFailed:
                log.warning("generated lineup for team %s kept locally only", session.team_id)
        return session

    def _team_formation(self, team: Dict[str, Any]) -> FormationSpec:
        raw = team.get("formation") or self.default_formation_name
        try:
            return parse_formation(raw)
        except InvalidFormation:
            log.warning("team %s has invalid formation %r; using default", self.team_id, raw)
            return default_formation()

    def _build_squad(self, team: Dict[str, Any]) -> Squad:
        roster = roster_from_team(team)
        state = TacticalState.from_team(team, self.default_formation_name)
        has_starters = any(p.is_starter for p in roster)
        if state is not None and state.has_lineup() and has_starters:
            return Squad.from_state(roster, state)
        self.auto_lineup = bool(roster)
        return Squad(roster, self._team_formation(team))

    # ── Edits ────────────────────────────────────────────────────────────────

    def change_formation(self, descriptor: str) -> Selection:
        with self._lock:
            self.selection = self.squad.change_formation(descriptor)
            return self.selection

    def substitute(self, a_id: str, b_id: str) -> SubstitutionCheck:
        with self._lock:
            return self.squad.substitute(a_id, b_id)

    def set_captain(self, player_id: str) -> Player:
        with self._lock:
            return self.squad.set_captain(player_id)

    # ── Persistence ──────────────────────────────────────────────────────────

    @property
    def dirty(self) -> bool:
        return self.squad.snapshot() != self._confirmed

    @property
    def confirmed(self) -> SquadSnapshot:
        return self._confirmed

    def _dispatch(self) -> tuple[int, TacticalState, SquadSnapshot]:
        with self._lock:
            self._dispatched_seq += 1
            self._dispatched_selection[self._dispatched_seq] = self.selection
            state = self.squad.tactical_state(self.synchronizer.now())
            return self._dispatched_seq, state, self.squad.snapshot()

    def _complete(self, seq: int, snapshot: SquadSnapshot, result: SyncResult) -> None:
        with self._lock:
            selection = self._dispatched_selection.pop(seq, None)
            if result.ok:
                if seq > self._confirmed_seq:
                    self._confirmed = self._fallback = snapshot
                    self._fallback_selection = selection
                    self._confirmed_seq = seq
                self.last_error = None
                return
            self.last_error = result.reason
            if seq < self._dispatched_seq:
                log.warning("save #%d for team %s failed but a newer save is pending", seq, self.team_id)
                return
            log.error("rolling back team %s to last saved lineup", self.team_id)
            self.squad.restore(self._fallback)
            self.selection = self._fallback_selection

    def save(self) -> SyncResult:
        """Persist the current squad; raise :class:`PersistenceFailed` after rolling back."""
        seq, state, snapshot = self._dispatch()
        result = self.synchronizer.write(state)
        self._complete(seq, snapshot, result)
        if not result.ok:
            raise PersistenceFailed(result.reason)
        return result

    def save_async(self) -> threading.Thread:
        """Persist the current squad on a background thread.

        Failures roll back the same way as :meth:`save` and are recorded on
        ``last_error`` rather than raised.
        """
        seq, state, snapshot = self._dispatch()

        def _run() -> None:
            self._complete(seq, snapshot, self.synchronizer.write(state))

        thread = threading.Thread(target=_run, daemon=True)
        thread.start()
        return thread

    def resync(self) -> bool:
        """Re-save when the persisted tactics no longer match the local squad.

        Returns True when a save was issued.
        """
        persisted = self.synchronizer.fetch_state(self.default_formation_name)
        local = self.squad.tactical_state()
        if persisted is not None and _same_tactics(persisted, local):
            return False
        log.info("team %s persisted tactics out of date; re-saving", self.team_id)
        self.save()
        return True

    # ── Views ────────────────────────────────────────────────────────────────

    def view(self) -> Dict[str, Any]:
        lines = self.squad.lines()
        captain = self.squad.captain
        warnings: List[str] = list(self.selection.warnings) if self.selection else []
        return {
            "team_id": self.team_id,
            "name": self.name,
            "formation": str(self.squad.formation),
            "pitch": {pos.short: [p.to_dict() for p in lines[pos]] for pos in CanonicalPosition},
            "bench": [p.to_dict() for p in self.squad.bench()],
            "captain_id": captain.id if captain else None,
            "starters": len(self.squad.starters()),
            "complete": self.squad.is_complete(),
            "auto_lineup": self.auto_lineup,
            "warnings": warnings,
            "degraded": bool(self.selection and self.selection.degraded),
            "dirty": self.dirty,
            "last_error": self.last_error,
        }


def _same_tactics(a: TacticalState, b: TacticalState) -> bool:
    return (
        a.formation == b.formation
        and a.starters == b.starters
        and a.substitutes == b.substitutes
        and a.captain_id == b.captain_id
    )
