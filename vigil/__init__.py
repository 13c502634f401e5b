"""
Vigil — Behavioral Anti-Cheat for Community Bot Economies
==========================================================
Watches the rate-limited reward commands of a bot economy (``/work``,
``/daily``, …), decides whether a user's activity looks automated, fuses
the evidence into one suspicion score, and picks a proportionate response
tempered by the user's long-term trust.

Package layout::

    vigil/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Thresholds, weights, enforcement messages
    ├── errors.py          # InvalidInput / UpstreamUnavailable / NotFound
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (8 tables)
    ├── engine/
    │   ├── events.py      # CommandEvent + interval derivation
    │   ├── timing.py      # CV / cooldown-snipe / z-score analysis
    │   ├── sessions.py    # Session breaks + command sequences
    │   ├── scoring.py     # Multi-signal suspicion fusion
    │   └── enforcement.py # Progressive enforcement ladder
    ├── services/
    │   ├── providers.py        # Signal-source interfaces + SQL stores
    │   ├── command_service.py  # Recording + metrics refresh job
    │   ├── dispatcher.py       # Fire-and-forget analysis tasks
    │   ├── trust_ledger.py     # Atomic trust score deltas
    │   ├── flag_service.py     # Suspicion audit records
    │   └── anticheat_service.py # Async operations façade
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT + service wiring
        └── routes/        # /api/anticheat endpoints
"""

__version__ = "0.1.0"
