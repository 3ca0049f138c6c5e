"""
mootbracket - Moot Court Round & Bracket Engine

Backend for running a single-elimination moot-court competition:
administrators schedule rounds between eligible teams, judges submit
per-criterion oral marks, and a winner is committed per round to advance
the bracket.

Main components:
- db: SQLAlchemy models, sessions and the bracket repository
- scoring: score sheet submission and multi-judge aggregation
- bracket: round lifecycle, eligibility, winner commits, round admin
- web: FastAPI JSON API for the admin and jury dashboards
"""

__version__ = "1.0.0"
