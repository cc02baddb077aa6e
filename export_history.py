#!/usr/bin/env python3
"""
Export Plex watch history to a Letterboxd-compatible CSV.

Usage:
    python export_history.py [--config config/config.yml] [--output history.csv]
"""

import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from utils.cli import main


if __name__ == "__main__":
    main()
