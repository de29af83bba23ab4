"""CLI entry point for the darkroom API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="darkroom-server",
        description="darkroom API server: scheduled job orchestration",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, console logs",
    )
    parser.add_argument(
        "--scheduler",
        action="store_true",
        help="Run the in-process tick loop instead of relying on an external timer",
    )
    args = parser.parse_args(argv)

    if args.local:
        os.environ["DARKROOM_LOCAL_MODE"] = "1"
        os.environ["DARKROOM_LOCAL"] = "1"
    if args.scheduler:
        os.environ["DARKROOM_SCHEDULER_ENABLED"] = "1"

    import uvicorn

    uvicorn.run("darkroom.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
