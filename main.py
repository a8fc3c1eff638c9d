"""Avatar Journey - dev launcher. Serves the journey API with uvicorn."""

import argparse
import logging
import os

import uvicorn

from avatar_journey.config import load_config


def main():
    config = load_config()
    log_level = os.getenv("AVATAR_JOURNEY_LOG_LEVEL", "INFO")
    parser = argparse.ArgumentParser(description="Avatar Journey dev launcher")
    parser.add_argument("--host", default=config.host, help=f"Bind address (default: {config.host})")
    parser.add_argument("--port", type=int, default=config.port, help=f"Port (default: {config.port})")
    parser.add_argument("--demo", action="store_true",
                        help="Use the built-in demo backend instead of a real model")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args()

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # The app factory reads its backend from the environment
    if args.demo:
        os.environ["LLM_PROVIDER_FORMAT"] = "demo"

    print(f"Starting Avatar Journey on http://localhost:{args.port} ...")
    uvicorn.run(
        "avatar_journey.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=log_level.lower(),
    )


if __name__ == "__main__":
    main()
