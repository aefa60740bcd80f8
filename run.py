#!/usr/bin/env python3
"""
run.py — Launch ontime-relay without installing.

Usage (from the ontime-relay directory):
    python run.py start
    python run.py start --ontime-host 192.168.1.50 --ontime-port 4001
    python run.py init-config
    python run.py check --host 192.168.1.50
    python run.py list-actions
"""
import sys
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent))

from ontime_relay.main import app

if __name__ == "__main__":
    app()
