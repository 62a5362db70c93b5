"""REPL Command Handlers"""

import math
from typing import Dict, List, Optional, Union

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .decorators import builtin_command
from .models import EPOCH, AddressingMode, Entry, EntryKind, ListOptions, SortField
from .parser import CommandParser
from .paths import basename, is_within, parent
from .result import ErrorKind
from .scan import scan, total_size
from .session import Session
from .wildcard import has_wildcard

# Commands whose arguments go through wildcard expansion
WILDCARD_COMMANDS = ("ls",)

_NAME_STYLES = {
    EntryKind.DIRECTORY: "bright_blue",
    EntryKind.LINK: "bright_cyan",
    EntryKind.OVERLAY_DIRECTORY: "cyan",
}

ParsedArgs = Dict[str, Union[bool, str, List[str]]]


def parse_args(args: List[str]) -> ParsedArgs:
    """Split arguments into flags and positionals

    ``--key value`` and ``--key`` become entries keyed by name, ``-abc`` sets
    a, b and c, and everything after ``--`` is positional.
    """
    result: ParsedArgs = {"_": []}
    end_of_options = False
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--" and not end_of_options:
            end_of_options = True
        elif end_of_options:
            result["_"].append(arg)
        elif arg.startswith("--"):
            key = arg[2:]
            if i + 1 < len(args) and not args[i + 1].startswith("-"):
                result[key] = args[i + 1]
                i += 1
            else:
                result[key] = True
        elif arg.startswith("-") and len(arg) > 1:
            for flag in arg[1:]:
                result[flag] = True
        else:
            result["_"].append(arg)
        i += 1
    return result


def rename_option(args: List[str], short: str, long: str) -> List[str]:
    """Rewrite a short option that takes a value into its long form

    parse_args treats ``-d 2`` as a flag followed by a path; ``--max-depth 2``
    keeps the value.
    """
    return [f"--{long}" if arg == short else arg for arg in args]


def format_size(num_bytes: int) -> str:
    """Format a byte count with 1024-based units, e.g. '1.5 KB'"""
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(num_bytes)
    unit = 0
    while size >= 1024 and unit < len(units) - 1:
        size /= 1024
        unit += 1
    return f"{round(size, 1):g} {units[unit]}"


def format_entry(entry: Entry, long: bool = False, human: bool = False) -> str:
    """Render one entry as rich markup"""
    name = escape(entry.name)
    if entry.kind is EntryKind.EXECUTABLE and entry.version:
        name = f"{name} ({escape(entry.version)})"
    style = _NAME_STYLES.get(entry.kind)
    if style:
        name = f"[{style}]{name}[/{style}]"

    if not long:
        return name

    if entry.kind is EntryKind.EXECUTABLE:
        size = "-"
    elif human:
        size = format_size(entry.size)
    else:
        size = str(entry.size)
    if entry.modified == EPOCH:
        date = "-" * 19
    else:
        date = entry.modified.strftime("%Y-%m-%d %H:%M:%S")
    line = f"{entry.kind.letter} {escape(entry.owner or 'unknown'):<10} {size:<8} {date} {name}"
    if entry.is_link and entry.link_target:
        line += f" -> {escape(entry.link_target)}"
    return line


class CommandHandler:
    """Handler for REPL commands"""

    def __init__(self, session: Session, console: Optional[Console] = None, server_url: str = ""):
        self.session = session
        self.console = console or Console(highlight=False)
        self.server_url = server_url
        # arguments of the running command as typed, before wildcard expansion
        self.raw_args: List[str] = []
        self.commands = {
            "help": self.cmd_help,
            "?": self.cmd_help,
            "cd": self.cmd_cd,
            "pwd": self.cmd_pwd,
            "ls": self.cmd_ls,
            "tree": self.cmd_tree,
            "du": self.cmd_du,
            "mkdir": self.cmd_mkdir,
            "physicalmode": self.cmd_physicalmode,
            "context": self.cmd_context,
            "cache": self.cmd_cache,
            "exit": self.cmd_exit,
            "quit": self.cmd_exit,
        }

    def execute(self, line: str) -> bool:
        """Execute a command line. Returns False if should exit."""
        for cmd, args in CommandParser.parse_command_line(line):
            if not self._dispatch(cmd.lower(), args):
                return False
        return True

    def _dispatch(self, cmd: str, args: List[str]) -> bool:
        handler = self.commands.get(cmd)
        if handler is None:
            self.console.print(f"[red]Unknown command: {escape(cmd)}[/red]", highlight=False)
            self.console.print("Type 'help' for available commands", highlight=False)
            return True

        self.raw_args = list(args)
        if cmd in WILDCARD_COMMANDS:
            expanded = self.session.expander.expand_all(args, self.session.context())
            if not expanded.ok:
                self.report_errors(cmd)
                return True
            args = expanded.value

        keep_going = handler(args)
        self.report_errors(cmd)
        return keep_going

    def report_errors(self, cmd: str) -> None:
        """Print and clear every failure logged while running cmd"""
        for error in self.session.errors.drain():
            self.console.print(f"[red]{cmd}: {escape(error.message)}[/red]", highlight=False)

    @builtin_command()
    def cmd_help(self, args: List[str]) -> bool:
        """Show help information"""
        commands_help = [
            ("Navigation", ""),
            ("  cd [path]", "Change directory (no path: home)"),
            ("  pwd", "Print working directory"),
            ("  ls [-l] [-h] [-d] [-r] [-f] [--sort name|size|date|owner] [path...]", "List directory contents"),
            ("", ""),
            ("Filesystem", ""),
            ("  tree [-L level] [--follow] [path]", "Show the directory tree with a size summary"),
            ("  du [-h] [-s] [-a] [-c] [-S] [-d depth] [path...]", "Show disk usage"),
            ("  mkdir <directory> [directory...]", "Create directories"),
            ("", ""),
            ("Session", ""),
            ("  physicalmode [on|off]", "Show or toggle physical (link-following) paths"),
            ("  context", "Show the current session context"),
            ("  cache [stats|clear|invalidate <path>]", "Inspect or reset the listing cache"),
            ("", ""),
            ("Utility Commands", ""),
            ("  help, ?", "Show this help"),
            ("  exit, quit", "Exit REPL"),
        ]

        self.console.print("\nchell commands\n", highlight=False)
        for cmd, desc in commands_help:
            if not desc:
                self.console.print(f"[bold]{escape(cmd)}[/bold]", highlight=False)
            else:
                self.console.print(f"{escape(cmd):<40} {desc}", highlight=False)
        self.console.print(highlight=False)
        return True

    @builtin_command()
    def cmd_cd(self, args: List[str]) -> bool:
        """Change directory"""
        token = " ".join(args) if args else None
        self.session.change_directory(token)
        return True

    @builtin_command()
    def cmd_pwd(self, args: List[str]) -> bool:
        """Print working directory"""
        self.console.print(escape(self.session.cwd), highlight=False)
        return True

    @builtin_command()
    def cmd_ls(self, args: List[str]) -> bool:
        """List directory contents"""
        parsed = parse_args(args)
        targets: List[str] = parsed["_"]
        # boolean long flags swallow the following path
        for flag in ("refresh", "reverse"):
            if isinstance(parsed.get(flag), str):
                targets.insert(0, parsed[flag])

        sort = SortField.NAME
        if isinstance(parsed.get("sort"), str):
            sort = SortField.parse(parsed["sort"]) or SortField.NAME
        options = ListOptions(
            sort=sort,
            reverse=bool(parsed.get("reverse") or parsed.get("r")),
            self_only=bool(parsed.get("d")),
        )
        long = bool(parsed.get("l"))
        human = bool(parsed.get("h"))

        # "ls My Folder" without quotes: try the tokens as one path first
        has_flags = any(key != "_" for key in parsed)
        globbed = any(has_wildcard(arg) for arg in self.raw_args)
        if not has_flags and not globbed and len(targets) > 1:
            joined = self.session.resolve(" ".join(targets))
            listing = self.session.vfs.list(joined, options, mode=AddressingMode.PHYSICAL)
            if listing.ok:
                self._print_entries(listing.value, long, human)
                return True
            self.session.errors.pop()

        if parsed.get("refresh") or parsed.get("f"):
            for target in targets or [self.session.cwd]:
                resolved = self.session.resolve(target)
                self.console.print(f"[dim][Cache] Invalidating: {escape(resolved)}[/dim]", highlight=False)
            self.session.cache.invalidate()

        if not targets:
            self._list_one(self.session.cwd, options, long, human)
        elif len(targets) == 1:
            self._list_one(self.session.resolve(targets[0]), options, long, human)
        elif long:
            for target in targets:
                self.console.print(escape(self.session.resolve(target)), highlight=False)
        else:
            names = [basename(t.rstrip("/")) or t for t in targets]
            self.console.print(escape("  ".join(names)), highlight=False)
        return True

    def _list_one(self, path: str, options: ListOptions, long: bool, human: bool) -> None:
        vfs = self.session.vfs
        # listings are always served from the dereferenced address
        path = vfs.links.resolve_links(path)
        if self.session.cache.is_stale(path):
            pushed = len(self.session.errors)
            if not vfs.refresh(path).ok:
                # keep serving the stale listing
                while len(self.session.errors) > pushed:
                    self.session.errors.pop()

        result = vfs.list(path, options)
        if not result.ok and result.error is not None and result.error.kind is ErrorKind.NOT_FOUND:
            # not a directory listing; it may still name a file
            described = vfs.list(path, ListOptions(sort=options.sort, self_only=True))
            self.session.errors.pop()
            if described.ok:
                result = described
        if result.ok:
            self._print_entries(result.value, long, human)

    def _print_entries(self, entries: List[Entry], long: bool, human: bool) -> None:
        if long:
            for entry in entries:
                self.console.print(format_entry(entry, long=True, human=human), highlight=False)
        elif entries:
            self.console.print("  ".join(format_entry(e) for e in entries), highlight=False)

    @builtin_command()
    def cmd_tree(self, args: List[str]) -> bool:
        """Show a directory tree"""
        parsed = parse_args(rename_option(args, "-L", "level"))
        targets: List[str] = parsed["_"]
        if isinstance(parsed.get("follow"), str):
            targets.insert(0, parsed["follow"])

        max_depth = None
        if "level" in parsed:
            level = parsed["level"]
            if not isinstance(level, str) or not level.isdigit() or int(level) < 1:
                self.console.print("[red]tree: invalid level, must be greater than 0[/red]", highlight=False)
                return True
            max_depth = int(level)

        root = self.session.resolve(targets[0]) if targets else self.session.cwd
        result = scan(self.session.vfs, root, follow=bool(parsed.get("follow")), max_depth=max_depth)
        if not result.ok:
            return True

        tree = Tree(f"[bright_blue]{escape(root)}[/bright_blue]")
        nodes = {root: tree}
        for record in result.value:
            label = format_entry(record.entry)
            if record.entry.is_link and record.entry.link_target:
                label += f" -> {escape(record.entry.link_target)}"
            nodes[record.path] = nodes[parent(record.path)].add(label)
        self.console.print(tree, highlight=False)
        self.console.print(f"[green]Total size: {format_size(total_size(result.value))}[/green]", highlight=False)
        self.console.print(f"[dim]{len(result.value)} items[/dim]", highlight=False)
        return True

    @builtin_command()
    def cmd_du(self, args: List[str]) -> bool:
        """Show disk usage"""
        parsed = parse_args(rename_option(args, "-d", "max-depth"))
        targets: List[str] = parsed["_"]
        for flag in ("human-readable", "summarize", "all", "total", "separate-dirs"):
            if isinstance(parsed.get(flag), str):
                targets.insert(0, parsed[flag])
        human = bool(parsed.get("h") or parsed.get("human-readable"))
        summarize = bool(parsed.get("s") or parsed.get("summarize"))
        show_all = bool(parsed.get("a") or parsed.get("all"))
        show_total = bool(parsed.get("c") or parsed.get("total"))
        separate = bool(parsed.get("S") or parsed.get("separate-dirs"))

        max_depth = None
        if "max-depth" in parsed:
            depth = parsed["max-depth"]
            if not isinstance(depth, str) or not depth.isdigit():
                self.console.print("[red]du: invalid maximum depth[/red]", highlight=False)
                return True
            max_depth = int(depth)

        vfs = self.session.vfs
        grand_total = 0
        for target in targets or ["."]:
            path = self.session.resolve(target)
            described = vfs.list(vfs.links.resolve_links(path), ListOptions(self_only=True))
            if not described.ok:
                continue
            entry = described.value[0]
            if not entry.kind.is_container:
                grand_total += entry.size
                self._print_usage(entry.size, path, human)
                continue

            result = scan(vfs, path)
            if not result.ok:
                continue
            sizes: Dict[str, int] = {path: 0}
            for record in result.value:
                if record.entry.kind.is_container:
                    sizes.setdefault(record.path, 0)
                elif record.entry.kind is EntryKind.FILE:
                    # charge the file to every directory up to the target
                    current = parent(record.path)
                    while is_within(current, path):
                        sizes[current] = sizes.get(current, 0) + record.entry.size
                        if current == path or separate:
                            break
                        current = parent(current)
                    if show_all:
                        sizes[record.path] = record.entry.size
            grand_total += total_size(result.value)

            if summarize:
                self._print_usage(sizes[path], path, human)
                continue
            for member in sorted(sizes):
                relative = member[len(path):].strip("/")
                depth = len(relative.split("/")) if relative else 0
                if max_depth is not None and depth > max_depth:
                    continue
                self._print_usage(sizes[member], member, human)

        if show_total:
            self._print_usage(grand_total, "total", human)
        return True

    def _print_usage(self, size: int, label: str, human: bool) -> None:
        # du counts 1024-byte blocks unless asked for human sizes
        text = format_size(size) if human else str(math.ceil(size / 1024))
        self.console.print(f"{text:>12}  {escape(label)}", highlight=False)

    @builtin_command()
    def cmd_mkdir(self, args: List[str]) -> bool:
        """Create directories"""
        if not args:
            self.console.print("[red]Usage: mkdir <directory> \\[directory...][/red]", highlight=False)
            return True
        for arg in args:
            result = self.session.make_directory(arg)
            if result.ok:
                self.console.print(f"[green]Created directory: {escape(result.value)}[/green]", highlight=False)
        return True

    @builtin_command()
    def cmd_physicalmode(self, args: List[str]) -> bool:
        """Show or toggle physical addressing"""
        physical = self.session.mode is AddressingMode.PHYSICAL
        if not args:
            status = "enabled" if physical else "disabled"
            self.console.print(f"Physical filesystem mode: [yellow]{status}[/yellow]", highlight=False)
            if physical:
                self.console.print("[dim]  Links are followed; cd stores the dereferenced path.[/dim]", highlight=False)
            else:
                self.console.print("[dim]  Links are kept; cd stores the path as typed.[/dim]", highlight=False)
            self.console.print("[dim]\nUsage: physicalmode \\[on|off][/dim]", highlight=False)
        elif args[0] == "on":
            self.session.set_mode(AddressingMode.PHYSICAL)
            self.console.print("[yellow]\\[!] Physical filesystem mode enabled[/yellow]", highlight=False)
        elif args[0] == "off":
            self.session.set_mode(AddressingMode.LOGICAL)
            self.console.print("[green]\\[+] Physical filesystem mode disabled[/green]", highlight=False)
        else:
            self.console.print(f"[red]Unknown argument: {escape(args[0])}[/red]", highlight=False)
            self.console.print("[dim]Usage: physicalmode \\[on|off][/dim]", highlight=False)
        return True

    @builtin_command()
    def cmd_context(self, args: List[str]) -> bool:
        """Show the session context"""
        not_set = "[dim]Not set[/dim]"
        table = Table(title="ChRIS Context")
        table.add_column("Context")
        table.add_column("Value")
        table.add_row("ChRIS User", escape(self.session.user) if self.session.user else not_set)
        table.add_row("ChRIS URL", escape(self.server_url) if self.server_url else not_set)
        table.add_row("ChRIS Folder", escape(self.session.cwd))
        table.add_row(
            "Physical Mode",
            "[magenta]Enabled[/magenta]" if self.session.mode is AddressingMode.PHYSICAL else "[dim]Disabled[/dim]",
        )
        self.console.print(table)
        return True

    @builtin_command()
    def cmd_cache(self, args: List[str]) -> bool:
        """Inspect or reset the listing cache"""
        cache = self.session.cache
        sub = args[0] if args else "stats"
        if sub == "stats":
            for key, value in cache.stats().items():
                self.console.print(f"{key:<8} {escape(str(value))}", highlight=False)
        elif sub == "clear":
            cache.invalidate()
            cache.reset_stats()
            self.console.print("[dim]Cache cleared[/dim]", highlight=False)
        elif sub == "invalidate" and len(args) > 1:
            path = self.session.resolve(args[1])
            cache.invalidate(path)
            self.console.print(f"[dim][Cache] Invalidating: {escape(path)}[/dim]", highlight=False)
        else:
            self.console.print("Usage: cache \\[stats|clear|invalidate <path>]", highlight=False)
        return True

    def cmd_exit(self, args: List[str]) -> bool:
        """Exit the shell"""
        self.console.print("Goodbye!", highlight=False)
        return False
