"""
indy_control - Command construction for IndySwitch devices

Bounded Context: Command-line verbs to typed commands
Responsibilities:
  - Verb registration and validation (CommandRegistry)
  - Building command envelopes from positional arguments
  - Rendering acknowledgment content (StatusAckHandler)

Design Philosophy:
  - Explicit registration (fail-fast, usage text generated from it)
  - Invalid arguments are usage errors, never protocol errors
"""

from .registry import CommandRegistry, CommandNotAvailableError, CommandEntry
from .handlers import StatusAckHandler
from .commands import Command, build_command, create_default_registry, read_suntimes

__all__ = [
    "CommandRegistry",
    "CommandNotAvailableError",
    "CommandEntry",
    "StatusAckHandler",
    "Command",
    "build_command",
    "create_default_registry",
    "read_suntimes",
]
