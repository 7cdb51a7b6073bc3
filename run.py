#!/usr/bin/env python3
"""Convenience runner for the trail progress tracker.

Usage:
    python run.py stats
    python run.py --mock report --output progress.xlsx
"""
import sys

from trail_progress.main import main

if __name__ == "__main__":
    sys.exit(main())
