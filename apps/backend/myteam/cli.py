import argparse
import json
import sys
from typing import List, Optional

from .api_client import default_client
from .config import SETTINGS, configure_logging
from .errors import (
    ApiError,
    IncompleteSquad,
    InvalidFormation,
    PersistenceFailed,
    SubstitutionRejected,
    UnknownPlayer,
)
from .formation import supported_formations
from .render import render_squad_md
from .session import TeamSession


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fantasy my-team lineup CLI")
    parser.add_argument("--team-id", default=SETTINGS.team_id, help="team to edit (default: TEAM_ID or first team)")
    parser.add_argument("--token", default="", help="API bearer token (default: API_TOKEN)")
    parser.add_argument("--markdown", action="store_true", help="print the lineup as Markdown instead of JSON")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("formations", help="list supported formations")
    sub.add_parser("show", help="show the current lineup")
    formation = sub.add_parser("formation", help="change formation and rebuild the starting XI")
    formation.add_argument("formation")
    formation.add_argument(
        "--strict", action="store_true", help="refuse to save a short starting XI or one without a goalkeeper"
    )
    swap = sub.add_parser("sub", help="swap two players")
    swap.add_argument("player_a")
    swap.add_argument("player_b")
    captain = sub.add_parser("captain", help="make a player captain")
    captain.add_argument("player_id")
    return parser


def _print_session(session: TeamSession, markdown: bool) -> None:
    if markdown:
        print(render_squad_md(session.squad, session.name))
    else:
        print(json.dumps(session.view(), indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.command == "formations":
        print("\n".join(str(f) for f in supported_formations()))
        return 0

    client = default_client(args.token)
    try:
        session = TeamSession.load(client, args.team_id)
        if args.command == "formation":
            selection = session.change_formation(args.formation)
            if args.strict:
                selection.raise_if_incomplete()
        elif args.command == "sub":
            check = session.substitute(args.player_a, args.player_b)
            if check.noop:
                _print_session(session, args.markdown)
                return 0
        elif args.command == "captain":
            session.set_captain(args.player_id)
        if args.command != "show":
            session.save()
    except SubstitutionRejected as exc:
        print(f"Invalid substitution: {exc.reason}", file=sys.stderr)
        return 2
    except (IncompleteSquad, InvalidFormation, UnknownPlayer) as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except (ApiError, PersistenceFailed) as exc:
        print(str(exc), file=sys.stderr)
        return 1

    _print_session(session, args.markdown)
    return 0


if __name__ == "__main__":
    sys.exit(main())
