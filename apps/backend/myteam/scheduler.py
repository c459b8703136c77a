import logging
import time
from typing import Callable, Iterable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from zoneinfo import ZoneInfo

from .api_client import default_client
from .config import SETTINGS, configure_logging
from .session import TeamSession

log = logging.getLogger(__name__)


def run_resync(sessions: Iterable[TeamSession]) -> int:
    """Re-save every session whose persisted tactics drifted from the local squad.

    Errors are logged per session so one failing team does not stop the rest.
    Returns the number of sessions that were re-saved.
    """
    saved = 0
    for session in list(sessions):
        try:
            if session.resync():
                saved += 1
        except Exception as exc:
            log.error("[resync] team %s failed: %s", session.team_id, exc)
    if saved:
        log.info("[resync] re-saved %d team(s)", saved)
    return saved


def start_resync_scheduler(
    sessions: Callable[[], Iterable[TeamSession]],
    minutes: Optional[int] = None,
) -> BackgroundScheduler:
    tz = ZoneInfo(SETTINGS.timezone)
    scheduler = BackgroundScheduler(timezone=tz)
    scheduler.add_job(
        lambda: run_resync(sessions()),
        IntervalTrigger(minutes=minutes or SETTINGS.resync_interval_minutes),
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    return scheduler


def main() -> None:
    configure_logging()
    client = default_client()
    session = TeamSession.load(client, SETTINGS.team_id)
    scheduler = start_resync_scheduler(lambda: [session])
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        scheduler.shutdown()


if __name__ == "__main__":
    main()
