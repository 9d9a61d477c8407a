"""
Entry point for running Mkulima as a module.

Usage:
    python -m mkulima [command] [options]

Example:
    python -m mkulima offline status
    python -m mkulima payment quote tigopesa 5000
    python -m mkulima escrow release TX12345678ABCDEF
"""

from mkulima.cli.main import cli

if __name__ == "__main__":
    cli()
