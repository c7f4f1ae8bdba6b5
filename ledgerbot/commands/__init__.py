"""Chat command parsing and reply formatting."""

from ledgerbot.commands.parser import Command, CommandName, parse_command

__all__ = ["Command", "CommandName", "parse_command"]
