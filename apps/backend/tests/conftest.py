"""
pytest configuration: pin the environment before any ``myteam`` module is imported.

``myteam.config`` builds ``SETTINGS = Settings()`` at import time and loads a
``.env`` file from the repo root when one exists. Setting the variables here,
before collection, keeps a developer's local ``.env`` from pointing the tests
at a real team API.

``os.environ.setdefault`` keeps values already exported in the environment.
"""
import os

os.environ.setdefault("API_BASE", "http://api.test")
os.environ.setdefault("API_TOKEN", "")
os.environ.setdefault("TEAM_ID", "")
os.environ.setdefault("REPORTS_TZ", "UTC")
os.environ.setdefault("RESYNC_ENABLED", "false")
