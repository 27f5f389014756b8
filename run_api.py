"""
Serve the annotation API.

Reads configuration from the environment / .env (see
annotator/config/settings.py) and serves the FastAPI app with uvicorn on
a Redis-backed persistence bridge.
"""
import logging
import sys

import uvicorn

from annotator.config.settings import API_HOST, API_PORT, LOG_LEVEL, REDIS_URL

# ---------------------------------------------------------------------------
# Setup logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("run_api")

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
from annotator.api.app import create_app
from annotator.persistence.redis_bridge import build_redis_bridge

bridge = build_redis_bridge(REDIS_URL)
app = create_app(bridge)

if __name__ == "__main__":
    logger.info("Backend     : %s", REDIS_URL)
    logger.info("Listening on: http://%s:%d", API_HOST, API_PORT)
    uvicorn.run(app, host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())
