import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .positions import CanonicalPosition, classify, is_recognised

log = logging.getLogger(__name__)


@dataclass
class Player:
    id: str
    name: str
    position: str
    team: str
    price: float
    photo: str = ""
    number: Optional[int] = None
    nationality: Optional[str] = None
    age: Optional[int] = None
    injured: bool = False
    is_starter: bool = False
    is_captain: bool = False

    @property
    def canonical_position(self) -> CanonicalPosition:
        return classify(self.position)

    @property
    def on_bench(self) -> bool:
        return not self.is_starter

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "canonical_position": self.canonical_position.value,
            "team": self.team,
            "price": self.price,
            "photo": self.photo,
            "number": self.number,
            "nationality": self.nationality,
            "age": self.age,
            "injured": self.injured,
            "is_starter": self.is_starter,
            "is_captain": self.is_captain,
        }


@dataclass
class TacticalState:
    formation: str
    starters: List[str] = field(default_factory=list)
    substitutes: List[str] = field(default_factory=list)
    captain_id: Optional[str] = None
    last_updated: Optional[str] = None

    def tactics_payload(self) -> Dict[str, Any]:
        return {
            "formation": self.formation,
            "starters": list(self.starters),
            "substitutes": list(self.substitutes),
        }

    def players_payload(self) -> Dict[str, Any]:
        """Body for the player list update; carries the captain flag per player."""
        starters = set(self.starters)
        ordered = list(self.starters) + [pid for pid in self.substitutes if pid not in starters]
        return {
            "players": [
                {
                    "player": pid,
                    "isCaptain": pid == self.captain_id,
                    "isViceCaptain": False,
                    "isSubstitute": pid not in starters,
                }
                for pid in ordered
            ]
        }

    def has_lineup(self) -> bool:
        return bool(self.starters)

    @classmethod
    def from_team(cls, team: Dict[str, Any], default_formation: str) -> Optional["TacticalState"]:
        """Read the persisted tactical setup off a team record, if it has one."""
        setup = team.get("tacticalSetup")
        if not isinstance(setup, dict):
            return None
        starters = setup.get("starters")
        if not isinstance(starters, list):
            return None
        substitutes = setup.get("substitutes")
        captain_id = None
        for record in team.get("players") or []:
            if isinstance(record, dict) and record.get("isCaptain"):
                captain_id = _record_id(record)
                break
        return cls(
            formation=team.get("formation") or default_formation,
            starters=[str(s) for s in starters],
            substitutes=[str(s) for s in substitutes] if isinstance(substitutes, list) else [],
            captain_id=captain_id,
            last_updated=setup.get("lastUpdated"),
        )


def _record_id(record: Dict[str, Any]) -> str:
    player = record.get("player")
    if isinstance(player, dict) and player.get("_id"):
        return str(player["_id"])
    if isinstance(player, str) and player:
        return player
    return str(record.get("_id") or "")


def _optional_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def player_from_record(record: Dict[str, Any]) -> Player:
    """Build a :class:`Player` from one entry of a team's ``players`` array.

    Records look like ``{"player": {...}, "isCaptain": bool, "isSubstitute":
    bool}``. Missing fields fall back to the same placeholders the web client
    shows ("Unknown Player", "Unknown Team", price 5).
    """
    info = record.get("player") if isinstance(record.get("player"), dict) else {}
    position = info.get("position") or "Unknown"
    if not is_recognised(position):
        log.debug("unrecognised position %r for player %s; treating as %s", position, _record_id(record), classify(position).value)
    team = info.get("team")
    team_name = team.get("name") if isinstance(team, dict) else team
    try:
        price = float(info.get("price") or 5)
    except (TypeError, ValueError):
        price = 5.0
    return Player(
        id=_record_id(record),
        name=info.get("name") or "Unknown Player",
        position=position,
        team=team_name or "Unknown Team",
        price=price,
        photo=info.get("photo") or "",
        number=_optional_int(info.get("number")),
        nationality=info.get("nationality"),
        age=_optional_int(info.get("age")),
        injured=bool(info.get("injured")),
        is_starter=record.get("isSubstitute") is False,
        is_captain=bool(record.get("isCaptain")),
    )


def roster_from_team(team: Dict[str, Any]) -> List[Player]:
    players: List[Player] = []
    seen = set()
    for record in team.get("players") or []:
        if not isinstance(record, dict):
            continue
        player = player_from_record(record)
        if not player.id or player.id in seen:
            continue
        seen.add(player.id)
        players.append(player)
    return players
