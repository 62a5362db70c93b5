"""Decorators shared by builtin commands"""

import functools
import logging

from rich.markup import escape

logger = logging.getLogger(__name__)


def builtin_command(command_name=None):
    """
    Decorator that turns unexpected exceptions into one error line.

    Expected failures travel as Result values and are rendered from the
    session error log; anything raised out of a builtin is a fault and is
    reported here so it never escapes the REPL loop.

    Args:
        command_name: Name to use in error messages (defaults to the method
            name without its ``cmd_`` prefix)

    Example:
        class CommandHandler:
            @builtin_command()
            def cmd_pwd(self, args):
                ...
    """
    def decorator(func):
        cmd_name = command_name or func.__name__.replace("cmd_", "")

        @functools.wraps(func)
        def wrapper(handler, args):
            try:
                return func(handler, args)
            except Exception as e:
                logger.debug(f"{cmd_name} failed", exc_info=True)
                if args:
                    handler.console.print(f"[red]{cmd_name}: {escape(args[0])}: {escape(str(e))}[/red]", highlight=False)
                else:
                    handler.console.print(f"[red]{cmd_name}: {escape(str(e))}[/red]", highlight=False)
                return True

        return wrapper
    return decorator
