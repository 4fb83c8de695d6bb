"""Pattern registries mapping regular expressions to handlers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from rtmbot.bus.events import Message
from rtmbot.errors import PatternError

if TYPE_CHECKING:
    from rtmbot.session.handle import SessionHandle

ActionHandler = Callable[["SessionHandle", "ActionContext"], Awaitable[None] | None]


@dataclass(frozen=True)
class Action:
    """
    A handler bound to a pattern.

    The pattern is compiled when the action is created, so an invalid
    expression fails at registration time rather than on the first message.
    """

    pattern: str
    handler: ActionHandler
    friendly_pattern: str = ""
    description: str = ""
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            compiled = re.compile(self.pattern)
        except re.error as e:
            raise PatternError(self.pattern, str(e)) from e
        object.__setattr__(self, "regex", compiled)

    def find_matches(self, text: str) -> list[list[str]]:
        """Return every occurrence as ``[whole_match, group1, ...]``."""
        return [[m.group(0), *m.groups("")] for m in self.regex.finditer(text)]

    def help_line(self) -> str:
        label = self.friendly_pattern or self.pattern
        if self.description:
            return f"{label} - {self.description}"
        return label


@dataclass(frozen=True)
class ActionContext:
    """Passed to every handler invocation."""

    action: Action
    matches: list[list[str]]
    message: Message


class ActionRegistry:
    """
    Registry of actions keyed by their raw pattern string.

    Registering the same pattern twice keeps only the latest action.
    """

    def __init__(self, name: str):
        self.name = name
        self._actions: dict[str, Action] = {}

    def register(self, action: Action) -> None:
        """Register an action, replacing any action with the same pattern."""
        self._actions[action.pattern] = action

    def add(
        self,
        pattern: str,
        handler: ActionHandler,
        friendly_pattern: str = "",
        description: str = "",
    ) -> Action:
        """Build and register an action. Raises PatternError on a bad pattern."""
        action = Action(
            pattern=pattern,
            handler=handler,
            friendly_pattern=friendly_pattern,
            description=description,
        )
        self.register(action)
        return action

    def unregister(self, pattern: str) -> None:
        self._actions.pop(pattern, None)

    def get(self, pattern: str) -> Action | None:
        return self._actions.get(pattern)

    def actions(self) -> tuple[Action, ...]:
        return tuple(self._actions.values())

    def match_all(self, text: str) -> list[tuple[Action, list[list[str]]]]:
        """
        Evaluate every registered pattern against ``text``.

        Uses search semantics (pattern found anywhere). All matching actions
        are returned; callers must not rely on their order.
        """
        matched: list[tuple[Action, list[list[str]]]] = []
        for action in self.actions():
            matches = action.find_matches(text)
            if matches:
                matched.append((action, matches))
        return matched

    def help_lines(self) -> list[str]:
        return [action.help_line() for action in self.actions()]

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, pattern: Any) -> bool:
        return pattern in self._actions
