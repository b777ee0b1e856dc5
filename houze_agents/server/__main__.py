"""Run the API server with uvicorn: ``python -m houze_agents.server``."""

import uvicorn

from houze_agents.server.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "houze_agents.server.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
    )
