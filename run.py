"""Launch the gateway with uvicorn"""
import argparse

import uvicorn

from app.core.config import settings


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"Run the {settings.PROJECT_NAME} API server")
    parser.add_argument("--host", default=settings.HOST, help=f"Bind address (default: {settings.HOST})")
    parser.add_argument("--port", type=int, default=settings.PORT, help=f"Bind port (default: {settings.PORT})")
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=settings.RELOAD,
        help="Restart on code changes (development only)"
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL.lower(),
        choices=["critical", "error", "warning", "info", "debug"],
        help="uvicorn log level"
    )
    return parser.parse_args(argv)


def main(argv=None):
    """
    Serve ``app.main:app``.

    Configure the store with ``REDIS_URL`` and fallback keys with
    ``GEMINI_API_KEY``, ``GEMINI_API_KEY_2``... (or a ``.env`` file).
    """
    args = parse_args(argv)
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level
    )


if __name__ == "__main__":
    main()
