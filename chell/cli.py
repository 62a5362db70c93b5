"""chell entry point and interactive loop"""

import logging
import sys

import click
from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from rich.console import Console

from .commands import CommandHandler
from .config import Config
from .models import AddressingMode, EntryKind
from .parser import CommandParser
from .session import Session
from .version import get_version_string

console = Console()

logger = logging.getLogger(__name__)


class ChellCompleter(Completer):
    """Completes command names and remote paths"""

    def __init__(self, handler: CommandHandler):
        self.handler = handler
        self.command_names = sorted(handler.commands.keys())

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        words = text.split()

        # still typing the command name
        if len(words) == 0 or (len(words) == 1 and not text.endswith(" ")):
            word = words[0] if words else ""
            for cmd in self.command_names:
                if cmd.startswith(word.lower()):
                    yield Completion(cmd, start_position=-len(word))
            return

        current_word = "" if text.endswith(" ") else words[-1]
        if "/" in current_word:
            last_slash = current_word.rfind("/")
            dir_part = current_word[: last_slash + 1]
            file_part = current_word[last_slash + 1 :]
        else:
            dir_part = ""
            file_part = current_word

        session = self.handler.session
        list_path = session.resolve(dir_part) if dir_part else session.cwd

        # Cache-first listing; a failure just means no completions
        result = session.vfs.list(list_path, mode=AddressingMode.PHYSICAL)
        session.errors.drain()
        if not result.ok:
            return

        for entry in result.value:
            if not entry.name.startswith(file_part):
                continue
            is_dir = entry.kind.is_container or entry.kind is EntryKind.LINK
            display_name = entry.name + "/" if is_dir else entry.name
            yield Completion(
                CommandParser.quote_arg(dir_part + display_name),
                start_position=-len(current_word),
                display=display_name,
            )


def prompt_text(handler: CommandHandler, style: str) -> str:
    if style == "minimal":
        return "> "
    session = handler.session
    user = session.user or "anonymous"
    return f"{user}@chell:{session.cwd}$ "


def start_repl(handler: CommandHandler, style: str = "default"):
    """Start interactive REPL session"""
    console.print(f"[dim]{get_version_string()}[/dim]", highlight=False)
    console.print("press 'help' or '?' for help", highlight=False)
    print()

    session = PromptSession(
        history=InMemoryHistory(),
        auto_suggest=AutoSuggestFromHistory(),
        completer=ChellCompleter(handler),
        complete_while_typing=False,
    )

    while True:
        try:
            line = session.prompt(prompt_text(handler, style))
            if not handler.execute(line):
                break
        except KeyboardInterrupt:
            console.print("\nUse 'exit' or 'quit' to leave", highlight=False)
            continue
        except EOFError:
            console.print("\nGoodbye!", highlight=False)
            break
        except Exception as e:
            logger.debug("unexpected error in REPL", exc_info=True)
            console.print(f"Unexpected error: {e}", highlight=False)


@click.command()
@click.version_option(version=get_version_string(), prog_name="chell")
@click.option(
    "--url",
    "server_url",
    default=None,
    help="ChRIS API base URL (can also set via CHRIS_URL environment variable)",
)
@click.option("--user", default=None, help="ChRIS user name (or CHRIS_USER)")
@click.option("--token", default=None, help="ChRIS auth token (or CHRIS_TOKEN)")
@click.option("--timeout", type=int, default=None, help="Request timeout in seconds")
@click.option(
    "--physical-fs",
    "physical_fs",
    is_flag=True,
    help="Follow links and store physical paths when navigating",
)
@click.option("-c", "--command", "command", default=None, help="Execute a command string and exit")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(server_url, user, token, timeout, physical_fs, command, verbose):
    """chell - a Unix-like shell for the ChRIS filesystem"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = Config.from_args(
            server_url=server_url,
            user=user,
            token=token,
            timeout=timeout,
            physical_mode=True if physical_fs else None,
        )
    except ValueError as e:
        console.print(f"[red]chell: {e}[/red]", highlight=False)
        sys.exit(2)

    logger.debug(f"starting with {config!r}")
    handler = CommandHandler(Session.from_config(config), server_url=config.server_url)

    if command:
        handler.execute(command)
        return

    start_repl(handler, style=config.prompt_style)


if __name__ == "__main__":
    main()
