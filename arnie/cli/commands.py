from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple


CommandHandler = Callable[[str], Awaitable[bool]]


def _slash(name: str) -> str:
    return name if name.startswith("/") else f"/{name}"


@dataclass(frozen=True)
class Command:
    name: str
    handler: CommandHandler
    description: str
    usage: str
    aliases: Tuple[str, ...] = ()

    def help_line(self, *, code: bool = False) -> str:
        usage = f"`{self.usage}`" if code else self.usage
        line = f"{usage} - {self.description}"
        if self.aliases:
            line += f" (alias: {', '.join(self.aliases)})"
        return line


class CommandRegistry:
    """Slash commands of the REPL, looked up by name or alias."""

    def __init__(self) -> None:
        self._commands: Dict[str, Command] = {}
        self._aliases: Dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        description: str,
        *,
        usage: Optional[str] = None,
        aliases: Sequence[str] = (),
    ) -> Command:
        name = _slash(name)
        command = Command(
            name=name,
            handler=handler,
            description=description,
            usage=usage or name,
            aliases=tuple(_slash(alias) for alias in aliases),
        )
        self._commands[name] = command
        for alias in command.aliases:
            self._aliases[alias] = name
        return command

    def get(self, name: str) -> Optional[Command]:
        name = _slash(name)
        return self._commands.get(self._aliases.get(name, name))

    def parse(self, line: str) -> Tuple[Optional[Command], str]:
        """Split ``/name rest`` into the matching command and the argument text."""
        parts = line.split(maxsplit=1)
        if not parts:
            return None, ""
        rest = parts[1].strip() if len(parts) > 1 else ""
        return self.get(parts[0]), rest

    def names(self) -> List[str]:
        return list(self._commands)

    def help_lines(self, *, code: bool = False) -> List[str]:
        return [command.help_line(code=code) for command in self._commands.values()]
