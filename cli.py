import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from config import ConfigError, apply_overrides, load_config

ENDPOINTS = [
    ("POST  ", "/api/v1/auth/token", "Generate token"),
    ("GET   ", "/api/v1/tasks", "List all tasks (no auth)"),
    ("GET   ", "/api/v1/tasks/pending", "List pending tasks (no auth)"),
    ("GET   ", "/api/v1/tasks/{id}", "Get task (no auth)"),
    ("POST  ", "/api/v1/tasks", "Create task (requires token)"),
    ("PUT   ", "/api/v1/tasks/{id}", "Update task (requires token)"),
    ("DELETE", "/api/v1/tasks/{id}", "Delete task (requires token)"),
]


def setup_logging(level: int = logging.INFO):
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def print_banner(config):
    base = f"http://localhost:{config.port}"
    print(f"TaskMate API server starting on :{config.port}")
    print(f"Data File: {config.data_file}")
    print(f"\nWeb UI: {base}")
    print(f"Health check: {base}/health")
    print(f"API Base URL: {base}/api/v1")
    if config.require_password:
        print("Token issuance requires the master password.")
    print("\nEndpoints:")
    for method, path, summary in ENDPOINTS:
        print(f"  {method} {path:<24} - {summary}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the TaskMate task tracking API server.")
    parser.add_argument("--config", type=str, default=None, help="Path to config.json.")
    parser.add_argument("--host", type=str, default=None, help="Interface to bind.")
    parser.add_argument("--port", type=str, default=None, help="Port to listen on (overrides config).")
    parser.add_argument("--data-file", type=str, default=None, help="Path to the tasks JSON file.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    try:
        config = load_config(args.config)
        config = apply_overrides(config, host=args.host, port=args.port, data_file=args.data_file)
    except ConfigError as e:
        print(f"FATAL: {e}")
        return 1

    # Imported late so .env values are visible to everything the app loads.
    from main import create_app

    app = create_app(config)
    print_banner(config)
    uvicorn.run(app, host=config.host, port=int(config.port), timeout_keep_alive=60)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
