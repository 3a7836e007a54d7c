from __future__ import annotations

import argparse
import os

import uvicorn

from taskhub.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Task Hub API server")
    parser.add_argument("--host", default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port")
    parser.add_argument("--log-level", default=settings.log_level, help="Log level for app and uvicorn")
    args = parser.parse_args()

    # The app factory reads its own settings; hand the CLI override through the environment.
    os.environ["LOG_LEVEL"] = args.log_level
    get_settings.cache_clear()

    uvicorn.run(
        "taskhub.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        # Logging is configured by the app itself.
        log_config=None,
    )


if __name__ == "__main__":
    main()
