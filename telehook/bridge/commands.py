"""Commands the broker watches for during an exchange.

A command pairs a pattern with a handler:
  INTERACTIVE: rendered as an inline button, also matched against free text
  PASSIVE:     never rendered, matched against free text only

Patterns are either an exact string or a regular expression. Both expose the
same ``matches()`` call so the broker never branches on pattern type.
"""

import inspect
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

# Exact patterns yield the full text, regex patterns yield their capture groups
MatchResult = Union[str, tuple]
Handler = Callable[[MatchResult], Union[None, Awaitable[None]]]


class CommandKind(str, Enum):
    INTERACTIVE = "interactive"
    PASSIVE = "passive"


@dataclass(frozen=True)
class ExactPattern:
    value: str

    def matches(self, text: str) -> Optional[MatchResult]:
        return text if text == self.value else None

    @property
    def source(self) -> str:
        return self.value


@dataclass(frozen=True)
class RegexPattern:
    regex: re.Pattern

    def matches(self, text: str) -> Optional[MatchResult]:
        m = self.regex.search(text)
        if m is None:
            return None
        # No capture groups: hand the handler the matched text itself
        return m.groups() if m.re.groups else m.group(0)

    @property
    def source(self) -> str:
        return self.regex.pattern


Pattern = Union[ExactPattern, RegexPattern]


def as_pattern(value: Union[str, re.Pattern, Pattern]) -> Pattern:
    """Coerce a bare string or compiled regex into a pattern variant."""
    if isinstance(value, (ExactPattern, RegexPattern)):
        return value
    if isinstance(value, re.Pattern):
        return RegexPattern(value)
    if isinstance(value, str):
        return ExactPattern(value)
    raise TypeError(f"Unsupported pattern type: {type(value).__name__}")


def _noop(match: MatchResult) -> None:
    return None


@dataclass
class Command:
    """A rule the broker watches for.

    Args:
        kind: INTERACTIVE (button) or PASSIVE (free text only)
        pattern: exact string, compiled regex, or a pattern variant
        on_match: called with the match result before the exchange resolves;
            may be a plain function or a coroutine function
        label: button text, required for INTERACTIVE commands
    """

    kind: CommandKind
    pattern: Any
    on_match: Handler = field(default=_noop)
    label: Optional[str] = None

    def __post_init__(self):
        self.kind = CommandKind(self.kind)
        self.pattern = as_pattern(self.pattern)
        if self.kind is CommandKind.INTERACTIVE and not self.label:
            raise ValueError("Interactive commands require a label")

    @property
    def is_interactive(self) -> bool:
        return self.kind is CommandKind.INTERACTIVE

    @property
    def callback_data(self) -> str:
        """Payload attached to the rendered button."""
        return self.pattern.source

    def matches(self, text: str) -> Optional[MatchResult]:
        return self.pattern.matches(text)

    async def apply(self, match: MatchResult) -> None:
        result = self.on_match(match)
        if inspect.isawaitable(result):
            await result


def interactive(label: str, pattern, on_match: Handler = _noop) -> Command:
    return Command(CommandKind.INTERACTIVE, pattern, on_match, label=label)


def passive(pattern, on_match: Handler = _noop) -> Command:
    return Command(CommandKind.PASSIVE, pattern, on_match)


def find_command(
    commands: Sequence[Command],
    text: str,
    interactive_only: bool = False,
) -> Optional[tuple[Command, MatchResult]]:
    """Return the first command matching ``text`` and its match result.

    Order decides overlaps: the earliest matching command wins.
    """
    for command in commands:
        if interactive_only and not command.is_interactive:
            continue
        match = command.matches(text)
        if match is not None:
            return command, match
    return None
