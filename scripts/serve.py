#!/usr/bin/env python
"""Serve the application with Hypercorn."""
import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from hypercorn.asyncio import serve
from hypercorn.config import Config

from docchat.logging_setup import configure_logging
from docchat.main import create_app


def main():
    parser = argparse.ArgumentParser(description="Run the docchat API server")
    parser.add_argument("--bind", default="0.0.0.0:5000", help="host:port to bind")
    args = parser.parse_args()

    configure_logging()

    hypercorn_config = Config()
    hypercorn_config.bind = [args.bind]

    asyncio.run(serve(create_app(), hypercorn_config))


if __name__ == "__main__":
    main()
