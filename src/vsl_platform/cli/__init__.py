"""
CLI module for dictionary index maintenance.
"""

from vsl_platform.cli.sync import main as sync_main

__all__ = ["sync_main"]
