"""CLI command modules for GreenKeep.

Each module contains related command handlers used by __main__.py.
"""

from greenkeep.cli.commands.record import cmd_record
from greenkeep.cli.commands.sync import cmd_sync

__all__ = ["cmd_record", "cmd_sync"]
