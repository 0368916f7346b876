"""
musicbox-cli: a command-line client for a personal music library backend.
"""

__version__ = "0.1.0"
