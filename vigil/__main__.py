"""
vigil.__main__ — Entry point for ``python -m vigil``
=====================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (tunables).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Serve the API with uvicorn (blocking).

Run with::

    python -m vigil
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("vigil")


def main() -> None:
    """Bootstrap and serve the Vigil API."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2-3. Config + engine.  Imported late so JWT_SECRET from .env is visible.
    try:
        from vigil.api.deps import get_config, get_engine
    except RuntimeError as exc:
        logger.critical("%s", exc)
        sys.exit(1)

    try:
        cfg = get_config()
    except (FileNotFoundError, ValueError) as exc:
        logger.critical("%s", exc)
        sys.exit(1)

    from vigil.database.engine import init_db

    init_db(get_engine())

    # 4. Serve.
    logger.info("Starting Vigil API on port %d …", cfg.api_port)
    uvicorn.run("vigil.api.main:app", host="0.0.0.0", port=cfg.api_port, log_config=None)


if __name__ == "__main__":
    main()
