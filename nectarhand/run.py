#!/usr/bin/env python
"""
Simple runner script for NectarHand.
Run this from inside the nectarhand directory:
    python run.py --agent hand --scenario small
"""
import sys
import os

# Add parent directory to path so imports work
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, parent_dir)

# Now import and run
from nectarhand.main import main

if __name__ == "__main__":
    sys.exit(main())
