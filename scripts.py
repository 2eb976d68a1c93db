#!/usr/bin/env python3
"""Development scripts for the Venue Booking reservation core."""

import subprocess
import sys


def start():
    """Start the development server."""
    subprocess.run([
        "uvicorn",
        "venue_booking.main:app",
        "--host", "0.0.0.0",
        "--port", "3000",
        "--reload"
    ])


def worker():
    """Start the Celery worker that delivers notifications."""
    subprocess.run([
        "celery",
        "-A", "venue_booking.tasks.celery_app",
        "worker",
        "--loglevel", "info"
    ])


def test():
    """Run the test suite."""
    sys.exit(subprocess.run(["pytest", *sys.argv[2:]]).returncode)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts.py <command>")
        print("Commands: start, worker, test")
        sys.exit(1)

    command = sys.argv[1].replace("-", "_")
    if hasattr(sys.modules[__name__], command):
        getattr(sys.modules[__name__], command)()
    else:
        print(f"Unknown command: {sys.argv[1]}")
        sys.exit(1)
