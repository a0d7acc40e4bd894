#!/usr/bin/env python
"""Run the Ember API."""

import argparse

import uvicorn
from dotenv import load_dotenv

load_dotenv()


def main():
    from ember.config.settings import get_settings
    from ember.utils.logger import setup_logging

    settings = get_settings()

    parser = argparse.ArgumentParser(description="Ember API")
    parser.add_argument("--host", default=settings.host, help="Host")
    parser.add_argument("--port", type=int, default=settings.port, help="Port")
    parser.add_argument("--reload", action="store_true", help="Auto-reload")

    args = parser.parse_args()

    setup_logging(json_log_path=settings.log_json_path)

    uvicorn.run(
        "ember.app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload or settings.debug,
    )


if __name__ == "__main__":
    main()
