from __future__ import annotations

import argparse

import uvicorn

from reqlens.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the reqlens demo application")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args()

    uvicorn.run(
        "reqlens.main:app",
        host=args.host,
        port=args.port,
        reload=bool(args.reload),
        log_config=None,
    )


if __name__ == "__main__":
    main()
