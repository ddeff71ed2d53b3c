"""Programmatic uvicorn entry point for RiskGate.

Reads host and port from the loaded config (127.0.0.1:3000 by default,
``RISKGATE_PORT`` overrides the port) and starts uvicorn with bounded
concurrency and keep-alive.

Usage:
    python -m riskgate.run     # reads .riskgate/config.yaml
    riskgate                   # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from riskgate.config import load_config

# Maximum number of concurrent connections accepted by uvicorn.
# Matches the shared httpx pool size (POOL_MAX_CONNECTIONS in main.py).
UVICORN_LIMIT_CONCURRENCY: int = 100

# OS-level TCP connection backlog queue size.
UVICORN_BACKLOG: int = 50

# HTTP keep-alive timeout in seconds.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the RiskGate server.

    Raises:
        SystemExit: Propagated from load_config() on config parse errors.
    """
    config = load_config()

    uvicorn.run(
        "riskgate.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
