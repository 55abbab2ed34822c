#!/usr/bin/env python3
"""Start the tabletop session API with uvicorn.

Settings come from the environment (see core/config.py); a .env file next to
this script is loaded first, so it can set TABLETOP_DB_PATH, TABLETOP_PORT and
friends.
"""

import logging
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

logger = logging.getLogger("run_server")


def main():
    env_file = Path(__file__).parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    # Import after .env is loaded; config reads the environment at import time
    from core.config import DB_PATH, HOST, LOG_LEVEL, PORT, RELOAD

    logging.basicConfig(level=LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info(f"Serving tabletop sessions from {DB_PATH} on {HOST}:{PORT} (reload={RELOAD})")

    uvicorn.run(
        "web.api:app",
        host=HOST,
        port=PORT,
        reload=RELOAD,
        log_level=LOG_LEVEL,
    )


if __name__ == "__main__":
    main()
