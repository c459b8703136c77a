"""Error taxonomy for the squad engine.

Selection problems degrade and are reported, substitution and captaincy
errors reject the user action without applying it, and persistence failures
trigger a rollback of the in-memory squad.
"""

from typing import Optional


class SquadError(Exception):
    """Base class for every engine error."""


class IncompleteSquad(SquadError):
    def __init__(self, selected: int, missing_goalkeeper: bool = False) -> None:
        detail = f"starting XI has {selected} players"
        if missing_goalkeeper:
            detail += " and no goalkeeper"
        super().__init__(detail)
        self.selected = selected
        self.missing_goalkeeper = missing_goalkeeper


class InvalidFormation(SquadError, ValueError):
    def __init__(self, descriptor: str, reason: str) -> None:
        super().__init__(f"invalid formation {descriptor!r}: {reason}")
        self.descriptor = descriptor
        self.reason = reason


class SubstitutionRejected(SquadError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class UnknownPlayer(SquadError, LookupError):
    def __init__(self, player_id: str) -> None:
        super().__init__(f"player {player_id!r} is not in the squad")
        self.player_id = player_id


class PersistenceFailed(SquadError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"failed to save tactics: {reason}")
        self.reason = reason


class ApiError(RuntimeError):
    """Raised by the team API client for non-2xx responses and transport errors."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
