import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from zoneinfo import ZoneInfo

from .api_client import TeamApiClient
from .errors import ApiError
from .models import TacticalState
from .squad import Squad

log = logging.getLogger(__name__)


@dataclass
class SyncResult:
    ok: bool
    state: TacticalState
    reason: str = ""


class TacticalSynchronizer:
    """Writes a squad's tactical state to the team API.

    The synchronizer only reads the squad; it never changes starter or
    captain flags. Rolling back after a failed save is the caller's job.
    """

    def __init__(self, client: TeamApiClient, team_id: str, timezone: str = "UTC") -> None:
        self.client = client
        self.team_id = team_id
        self.timezone = timezone

    def now(self) -> datetime:
        return datetime.now(tz=ZoneInfo(self.timezone))

    def persist(self, squad: Squad) -> SyncResult:
        state = squad.tactical_state(self.now())
        return self.write(state)

    def write(self, state: TacticalState) -> SyncResult:
        """Send the player list update and the tactics for *state* as one save.

        The save only counts as done when both writes succeed.
        """
        try:
            self.client.update_players(self.team_id, state.players_payload())
            self.client.save_tactics(self.team_id, state.tactics_payload())
        except ApiError as exc:
            log.error("saving tactics for team %s failed: %s", self.team_id, exc)
            return SyncResult(ok=False, state=state, reason=str(exc))
        log.info(
            "saved tactics for team %s: %s, %d starters, captain=%s",
            self.team_id,
            state.formation,
            len(state.starters),
            state.captain_id,
        )
        return SyncResult(ok=True, state=state)

    def fetch_state(self, default_formation: str) -> Optional[TacticalState]:
        team = self.client.get_team(self.team_id)
        return TacticalState.from_team(team, default_formation)
