#!/usr/bin/env python3
"""
TripSync Runner Script

Usage:
    python run.py --status         # Connectivity and pending changes
    python run.py --sync           # Replay queued changes now
    python run.py --geocode "Louvre" --context Paris
    python run.py --weather 48.85 2.35
    python run.py --check-config   # Validate configuration
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from tripsync.cli import main

if __name__ == "__main__":
    sys.exit(main())
