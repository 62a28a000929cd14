"""
Commands — Directive implementations with self-registration

Each command module:
1. Defines an XxxCommand class (handler implementation)
2. Exports register_parser(subparsers) to configure its argparse
3. Exports handle(cli, args) returning the process exit status

Add a directive = add a module to COMMAND_MODULES.
"""

import importlib
from typing import Any, Callable, Dict

from .base import BaseCommand

# Order determines help display order
COMMAND_MODULES = [
    'codebase_cmd',
    'diff_cmd',
    'equivalence_cmd',
    'migrate_cmd',
    'config_cmd',
]

# Handler registry: command_name -> handle function
_handlers: Dict[str, Callable] = {}


def register_all(subparsers) -> None:
    """Import each module in COMMAND_MODULES and register its parsers and handler."""
    _handlers.clear()

    for module_name in COMMAND_MODULES:
        module = importlib.import_module(f'.{module_name}', __package__)
        module.register_parser(subparsers)
        for name in getattr(module, 'COMMAND_NAMES', [module_name.replace('_cmd', '')]):
            _handlers[name] = module.handle


def dispatch(command: str, cli: Any, args: Any) -> int:
    """
    Dispatch command to its registered handler.

    Raises:
        KeyError: If command not registered
    """
    if command not in _handlers:
        raise KeyError(f"Unknown command: {command}. Available: {list(_handlers.keys())}")

    return _handlers[command](cli, args)


__all__ = ['BaseCommand', 'register_all', 'dispatch']
