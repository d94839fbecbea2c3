"""
CommandRegistry - Explicit command registration pattern

Bounded Context: Verb registration and validation
Responsibilities:
  - Register command verbs with their builders
  - Validate verb existence before building
  - Generate the usage text (usage_lines)

Design Motivation:
  Problem: A long if/elif over verbs hides which commands exist and
           duplicates the usage text
  Solution: Explicit registration; the usage text is generated from it

Threading: Thread-safe (uses lock for write operations)
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Tuple

from indy_mqtt.errors import UsageError

# builder(client_id, host, args) -> Command
CommandBuilder = Callable[[str, str, List[str]], Any]


class CommandNotAvailableError(UsageError):
    """Raised when attempting to build an unregistered command"""
    pass


@dataclass(frozen=True)
class CommandEntry:
    """A registered verb: how to build it and how to describe it."""
    verb: str
    builder: CommandBuilder
    usage: Tuple[str, ...]
    description: str


class CommandRegistry:
    """
    Registry for command verbs with explicit registration.

    Key Features:
      - Fail-fast: Unknown verbs rejected immediately (as usage errors)
      - Introspection: Can query available commands at runtime
      - Self-Documenting: Each verb has usage lines and a description

    Thread Safety:
      - Uses lock for write operations (register)
      - Read operations are lock-free (immutable dict reads)

    Example:
        registry = CommandRegistry()
        registry.register(
            'switch', build_control_command,
            usage=['switch [on|off]'],
            description="Turn the switch on or off"
        )

        command = registry.build('switch', client_id, 'esp-vorona', ['on'])
    """

    def __init__(self):
        self._entries: Dict[str, CommandEntry] = {}
        self._lock = threading.Lock()

    def register(
        self,
        verb: str,
        builder: CommandBuilder,
        usage: Sequence[str],
        description: str
    ) -> None:
        """
        Register a verb with its builder function.

        Args:
            verb: Command verb (lowercase, no spaces)
            builder: Callable(client_id, host, args) returning a Command
            usage: Usage lines shown in the help text
            description: Human-readable description

        Raises:
            ValueError: If verb already registered (double registration)
        """
        with self._lock:
            if verb in self._entries:
                raise ValueError(f"Command '{verb}' already registered")

            self._entries[verb] = CommandEntry(
                verb=verb,
                builder=builder,
                usage=tuple(usage),
                description=description,
            )

    def build(self, verb: str, client_id: str, host: str, args: List[str]) -> Any:
        """
        Build the command for a registered verb.

        Raises:
            CommandNotAvailableError: If verb not registered
            UsageError: If the builder rejects the arguments
        """
        entry = self._entries.get(verb)
        if entry is None:
            raise CommandNotAvailableError(f"unrecognized command {verb}")

        return entry.builder(client_id, host, list(args))

    def usage_lines(self) -> List[str]:
        """Usage lines of all verbs, in registration order."""
        return [line for entry in self._entries.values() for line in entry.usage]
