"""Tests for myteam.session and myteam.sync: loading, auto-lineup, saves,
rollback on failure and superseded saves."""

from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from myteam.errors import ApiError, PersistenceFailed
from myteam.models import TacticalState
from myteam.session import TeamSession
from myteam.sync import SyncResult, TacticalSynchronizer


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_LABELS = {"g": "Goalkeeper", "d": "Defender", "m": "Midfielder", "f": "Attacker"}
_IDS = ["g1", "g2", "d1", "d2", "d3", "d4", "d5", "m1", "m2", "m3", "m4", "m5", "f1", "f2", "f3"]
_STARTERS = ["g1", "d1", "d2", "d3", "d4", "m1", "m2", "m3", "m4", "f1", "f2"]


def _record(pid: str, starter: Optional[bool], captain: bool = False) -> Dict[str, Any]:
    rec: Dict[str, Any] = {
        "player": {
            "_id": pid,
            "name": pid.upper(),
            "position": _LABELS[pid[0]],
            "team": {"name": "FC Test"},
            "price": 6.0,
        },
        "isCaptain": captain,
    }
    if starter is not None:
        rec["isSubstitute"] = not starter
    return rec


def _team(with_setup: bool = True, formation: str = "4-4-2", captain: str = "m1") -> Dict[str, Any]:
    if with_setup:
        players = [_record(pid, pid in _STARTERS, pid == captain) for pid in _IDS]
    else:
        players = [_record(pid, None) for pid in _IDS]
    team: Dict[str, Any] = {"_id": "team-1", "name": "My XI", "formation": formation, "players": players}
    if with_setup:
        team["tacticalSetup"] = {
            "starters": list(_STARTERS),
            "substitutes": [pid for pid in _IDS if pid not in _STARTERS],
            "lastUpdated": "2026-01-01T00:00:00+00:00",
        }
    return team


def _client(team: Optional[Dict[str, Any]] = None) -> MagicMock:
    client = MagicMock()
    client.get_team.return_value = team if team is not None else _team()
    client.my_teams.return_value = [client.get_team.return_value]
    client.update_players.return_value = {}
    client.save_tactics.return_value = {}
    return client


def _starter_ids(session: TeamSession) -> List[str]:
    return sorted(p.id for p in session.squad.starters())


def _flags(session: TeamSession) -> dict:
    return {p.id: (p.is_starter, p.is_captain) for p in session.squad.players}


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoad:
    def test_saved_lineup_is_restored(self) -> None:
        client = _client()
        session = TeamSession.load(client, "team-1")
        assert not session.auto_lineup
        assert _starter_ids(session) == sorted(_STARTERS)
        assert session.squad.captain.id == "m1"
        assert str(session.squad.formation) == "4-4-2"
        client.save_tactics.assert_not_called()
        assert not session.dirty

    def test_missing_setup_generates_and_saves_lineup(self) -> None:
        client = _client(_team(with_setup=False, formation=""))
        session = TeamSession.load(client, "team-1")
        assert session.auto_lineup
        assert len(session.squad.starters()) == 11
        assert str(session.squad.formation) == "4-3-3"
        client.save_tactics.assert_called_once()
        team_id, payload = client.save_tactics.call_args.args
        assert team_id == "team-1"
        assert payload["formation"] == "4-3-3"
        assert len(payload["starters"]) == 11
        assert len(payload["substitutes"]) == 4
        assert not session.dirty

    def test_auto_lineup_save_failure_keeps_generated_xi(self) -> None:
        client = _client(_team(with_setup=False))
        client.update_players.side_effect = ApiError("offline")
        session = TeamSession.load(client, "team-1")
        assert session.last_error == "offline"
        assert len(session.squad.starters()) == 11
        assert session.squad.is_complete()
        assert session.dirty
        view = session.view()
        assert view["auto_lineup"] is True
        assert view["starters"] == 11
        assert len(view["pitch"]["GK"]) == 1

    def test_failed_edit_after_unsaved_auto_lineup_returns_to_generated_xi(self) -> None:
        client = _client(_team(with_setup=False))
        client.update_players.side_effect = ApiError("offline")
        session = TeamSession.load(client, "team-1")
        generated = _flags(session)
        session.set_captain("d1")
        with pytest.raises(PersistenceFailed):
            session.save()
        assert _flags(session) == generated
        assert len(session.squad.starters()) == 11

    def test_unsaved_auto_lineup_is_saved_by_resync(self) -> None:
        client = _client(_team(with_setup=False))
        client.update_players.side_effect = ApiError("offline")
        session = TeamSession.load(client, "team-1")
        client.update_players.side_effect = None
        assert session.resync() is True
        assert not session.dirty
        assert session.last_error is None
        assert len(client.save_tactics.call_args.args[1]["starters"]) == 11

    def test_autosave_disabled(self) -> None:
        client = _client(_team(with_setup=False))
        session = TeamSession.load(client, "team-1", autosave=False)
        assert session.auto_lineup
        assert session.dirty
        client.save_tactics.assert_not_called()

    def test_first_team_used_without_id(self) -> None:
        client = _client()
        session = TeamSession.load(client)
        client.my_teams.assert_called_once()
        assert session.team_id == "team-1"

    def test_no_teams_raises(self) -> None:
        client = _client()
        client.my_teams.return_value = []
        with pytest.raises(ApiError, match="No fantasy team"):
            TeamSession.load(client)

    def test_empty_roster_loads_without_lineup(self) -> None:
        client = _client({"_id": "team-1", "name": "Empty", "players": []})
        session = TeamSession.load(client, "team-1")
        assert len(session.squad) == 0
        assert not session.auto_lineup
        client.save_tactics.assert_not_called()


# ---------------------------------------------------------------------------
# Saving and rollback
# ---------------------------------------------------------------------------

class TestSave:
    def test_save_sends_both_payloads_for_current_state(self) -> None:
        client = _client()
        session = TeamSession.load(client, "team-1")
        session.substitute("m5", "m1")
        session.set_captain("f3")
        session.save()
        players = client.update_players.call_args.args[1]["players"]
        by_id = {p["player"]: p for p in players}
        assert by_id["m5"]["isSubstitute"] is False
        assert by_id["m1"]["isSubstitute"] is True
        assert by_id["f3"]["isCaptain"] is True
        assert [p["player"] for p in players if p["isCaptain"]] == ["f3"]
        tactics = client.save_tactics.call_args.args[1]
        assert "m5" in tactics["starters"]
        assert "m1" in tactics["substitutes"]
        assert not session.dirty

    def test_failed_save_rolls_back_to_last_confirmed(self) -> None:
        client = _client()
        session = TeamSession.load(client, "team-1")
        before = _flags(session)
        session.substitute("m5", "m1")
        session.set_captain("d5")
        session.change_formation("3-5-2")
        client.save_tactics.side_effect = ApiError("server error")
        with pytest.raises(PersistenceFailed, match="server error"):
            session.save()
        assert _flags(session) == before
        assert str(session.squad.formation) == "4-4-2"
        assert session.last_error == "server error"

    def test_player_update_failure_skips_tactics_and_rolls_back(self) -> None:
        client = _client()
        session = TeamSession.load(client, "team-1")
        before = _flags(session)
        session.set_captain("g2")
        client.update_players.side_effect = ApiError("rejected")
        with pytest.raises(PersistenceFailed):
            session.save()
        client.save_tactics.assert_not_called()
        assert _flags(session) == before

    def test_rollback_goes_to_latest_successful_save(self) -> None:
        client = _client()
        session = TeamSession.load(client, "team-1")
        session.set_captain("d1")
        session.save()
        confirmed = _flags(session)
        session.set_captain("d2")
        client.save_tactics.side_effect = ApiError("boom")
        with pytest.raises(PersistenceFailed):
            session.save()
        assert _flags(session) == confirmed
        assert session.squad.captain.id == "d1"

    def test_failure_superseded_by_newer_save_does_not_roll_back(self) -> None:
        session = TeamSession.load(_client(), "team-1")
        seq1, state1, snap1 = session._dispatch()
        session.set_captain("f1")
        seq2, state2, snap2 = session._dispatch()
        assert state2.captain_id == "f1"

        session._complete(seq1, snap1, SyncResult(ok=False, state=state1, reason="timeout"))
        assert session.squad.captain.id == "f1"
        assert session.last_error == "timeout"

        session._complete(seq2, snap2, SyncResult(ok=True, state=state2))
        assert session.confirmed == snap2
        assert session.last_error is None

    def test_late_ack_does_not_move_confirmed_backwards(self) -> None:
        session = TeamSession.load(_client(), "team-1")
        seq1, state1, snap1 = session._dispatch()
        session.set_captain("f1")
        seq2, state2, snap2 = session._dispatch()
        session._complete(seq2, snap2, SyncResult(ok=True, state=state2))
        session._complete(seq1, snap1, SyncResult(ok=True, state=state1))
        assert session.confirmed == snap2

    def test_failed_formation_change_drops_its_warnings(self) -> None:
        team = _team()
        team["players"] = [r for r in team["players"] if r["player"]["_id"] != "f3"]
        client = _client(team)
        session = TeamSession.load(client, "team-1")
        session.change_formation("3-4-3")
        assert session.view()["warnings"]
        assert session.view()["degraded"] is True
        client.save_tactics.side_effect = ApiError("down")
        with pytest.raises(PersistenceFailed):
            session.save()
        view = session.view()
        assert view["formation"] == "4-4-2"
        assert view["warnings"] == []
        assert view["degraded"] is False

    def test_rollback_keeps_warnings_of_saved_formation(self) -> None:
        team = _team()
        team["players"] = [r for r in team["players"] if r["player"]["_id"] != "f3"]
        client = _client(team)
        session = TeamSession.load(client, "team-1")
        session.change_formation("3-4-3")
        session.save()
        session.set_captain("d1")
        client.save_tactics.side_effect = ApiError("down")
        with pytest.raises(PersistenceFailed):
            session.save()
        view = session.view()
        assert view["formation"] == "3-4-3"
        assert any("forwards" in w for w in view["warnings"])

    def test_save_async_success(self) -> None:
        client = _client()
        session = TeamSession.load(client, "team-1")
        session.set_captain("g1")
        session.save_async().join(timeout=5)
        assert not session.dirty
        assert client.save_tactics.call_count == 1

    def test_save_async_failure_rolls_back(self) -> None:
        client = _client()
        session = TeamSession.load(client, "team-1")
        before = _flags(session)
        session.substitute("f3", "f1")
        client.save_tactics.side_effect = ApiError("down")
        session.save_async().join(timeout=5)
        assert _flags(session) == before
        assert session.last_error == "down"


# ---------------------------------------------------------------------------
# Resync
# ---------------------------------------------------------------------------

class TestResync:
    def test_in_sync_does_nothing(self) -> None:
        client = _client()
        session = TeamSession.load(client, "team-1")
        assert session.resync() is False
        client.save_tactics.assert_not_called()

    def test_drift_triggers_save(self) -> None:
        client = _client()
        session = TeamSession.load(client, "team-1")
        session.set_captain("d4")
        assert session.resync() is True
        client.save_tactics.assert_called_once()


# ---------------------------------------------------------------------------
# TacticalSynchronizer
# ---------------------------------------------------------------------------

class TestSynchronizer:
    def test_persist_reports_failure_without_raising(self) -> None:
        client = _client()
        client.save_tactics.side_effect = ApiError("nope", 500)
        sync = TacticalSynchronizer(client, "team-1", "UTC")
        session = TeamSession.load(_client(), "team-1")
        result = sync.persist(session.squad)
        assert result.ok is False
        assert result.reason == "nope"
        assert len(result.state.starters) == 11

    def test_persist_does_not_touch_flags(self) -> None:
        session = TeamSession.load(_client(), "team-1")
        before = _flags(session)
        TacticalSynchronizer(_client(), "team-1").persist(session.squad)
        assert _flags(session) == before

    def test_timestamp_is_timezone_aware(self) -> None:
        session = TeamSession.load(_client(), "team-1")
        result = TacticalSynchronizer(_client(), "team-1", "UTC").persist(session.squad)
        assert result.state.last_updated.endswith("+00:00")

    def test_fetch_state(self) -> None:
        sync = TacticalSynchronizer(_client(), "team-1")
        state = sync.fetch_state("4-3-3")
        assert isinstance(state, TacticalState)
        assert state.formation == "4-4-2"
        assert state.captain_id == "m1"
