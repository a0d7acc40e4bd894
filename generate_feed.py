#!/usr/bin/env python
"""Generate feed.json and users.json once. Exit code 0 on success, 1 on failure."""

from dotenv import load_dotenv

load_dotenv()

from ember.generator import main  # noqa: E402

if __name__ == "__main__":
    raise SystemExit(main())
