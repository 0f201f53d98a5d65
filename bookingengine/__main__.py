#!/usr/bin/env python3
"""
Convenience entry point for running bookingengine directly.

Usage: python -m bookingengine [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
