"""
Command Parser

Turns one chat message into a Command. The parser only splits and
classifies; it does not validate numbers or amounts and it does not
touch the resolver. That is the flow's job.

Grammar:
    send <number> <amount> [details="free text"]
    details <number> [period] [year=YY]
    bill <number> [period] [year=YY]
    help | commands
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


DETAILS_PATTERN = re.compile(r'details="([^"]*)"')


class CommandName(str, Enum):
    """Commands the bot understands."""
    SEND = "send"
    DETAILS = "details"
    BILL = "bill"
    HELP = "help"
    UNKNOWN = "unknown"


COMMAND_WORDS = {
    "send": CommandName.SEND,
    "details": CommandName.DETAILS,
    "bill": CommandName.BILL,
    "help": CommandName.HELP,
    "commands": CommandName.HELP,
}


class Command(BaseModel):
    """A parsed chat command."""
    model_config = ConfigDict(frozen=True)

    name: CommandName
    word: str = Field(
        ...,
        description="The command word as typed, lower-cased"
    )
    args: tuple[str, ...] = Field(
        default=(),
        description="Whitespace-separated tokens after the command word"
    )
    details: Optional[str] = Field(
        default=None,
        description='Text inside details="..." (send only)'
    )
    raw_text: str = ""

    @property
    def counterparty(self) -> Optional[str]:
        return self.args[0] if self.args else None

    @property
    def amount(self) -> Optional[str]:
        """Second token of a send command."""
        return self.args[1] if len(self.args) > 1 else None

    @property
    def period_token(self) -> Optional[str]:
        """First token after the number of a details/bill command."""
        return self.args[1] if len(self.args) > 1 else None

    @property
    def year_token(self) -> Optional[str]:
        """Token after the period (only month= queries look at it)."""
        return self.args[2] if len(self.args) > 2 else None


def parse_command(text: str) -> Command:
    """
    Split a message into a Command.

    Unknown words and empty messages become CommandName.UNKNOWN.
    """
    text = (text or "").strip()
    parts = text.split()
    if not parts:
        return Command(name=CommandName.UNKNOWN, word="", raw_text=text)

    word = parts[0].lower()
    name = COMMAND_WORDS.get(word, CommandName.UNKNOWN)

    details = None
    if name == CommandName.SEND and len(parts) > 3:
        match = DETAILS_PATTERN.search(" ".join(parts[3:]))
        if match:
            details = match.group(1)

    return Command(
        name=name,
        word=word,
        args=tuple(parts[1:]),
        details=details,
        raw_text=text,
    )
