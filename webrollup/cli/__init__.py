"""
Command Line Interface for webrollup

This package provides command line argument parsing and validation.

Classes:
    CLIManager: Command line interface manager
"""

from webrollup.cli.arguments import CLIManager

__all__ = ['CLIManager']
