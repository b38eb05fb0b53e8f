"""Entry point for running strava-trails as a module.

Usage:
    python -m strava_trails [command] [options]
"""

from strava_trails.cli import main

if __name__ == "__main__":
    main()
