#!/usr/bin/env python
"""
Command-line interface for the particle cloud application.

This script provides a CLI wrapper around the run_handcloud function, allowing the
main parameters to be controlled via command-line arguments.

Examples:
    # Run with default settings (6000 particles, audio off until 'a' is pressed)
    python handcloud_cli.py

    # Start with the microphone on and fewer particles
    python handcloud_cli.py --audio --particle-count 3000

    # Print the hand features of every detection
    python handcloud_cli.py --log-hand-features
"""

from handcloud.script_utils import dispatched_handcloud_cli

if __name__ == "__main__":
    dispatched_handcloud_cli()
