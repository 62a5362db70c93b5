import io
import unittest
from unittest import mock

from rich.console import Console

from chell.cache import ListCache
from chell.commands import CommandHandler, format_entry, format_size, parse_args
from chell.models import AddressingMode, Entry, EntryKind
from fakes import LINKED_TREE, d, f, link, make_session, when

TREE = dict(LINKED_TREE)
TREE["/"] = LINKED_TREE["/"] + [d("data")]
TREE["/data"] = [f("a.txt", 10), f("b.txt", 2048), f("notes.md", 5), d("My Folder")]
TREE["/data/My Folder"] = [f("inner.txt")]
TREE["/home/alice/work"] = [f("x"), f("y"), d("x y")]
TREE["/home/alice/work/x y"] = [f("inside.txt")]


class CommandTestCase(unittest.TestCase):
    def make_handler(self, cwd="/data", **kwargs):
        tree = {path: list(entries) for path, entries in TREE.items()}
        self.session, self.remote, self.catalog = make_session(tree, user="alice", cwd=cwd, **kwargs)
        self.out = io.StringIO()
        console = Console(file=self.out, width=200, color_system=None, highlight=False)
        return CommandHandler(self.session, console=console, server_url="http://chris.local/api/v1/")

    def output(self):
        return self.out.getvalue()

    def lines(self):
        return [line.rstrip() for line in self.output().splitlines() if line.strip()]


class TestLs(CommandTestCase):
    def setUp(self):
        self.handler = self.make_handler()

    def test_ls_cwd(self):
        self.assertTrue(self.handler.execute("ls"))
        self.assertEqual(self.lines(), ["a.txt  b.txt  My Folder  notes.md"])

    def test_ls_wildcard(self):
        self.handler.execute("ls *.txt")
        self.assertEqual(self.lines(), ["a.txt  b.txt"])

    def test_ls_unquoted_name_with_space(self):
        self.handler.execute("ls My Folder")
        self.assertEqual(self.lines(), ["inner.txt"])
        self.assertEqual(len(self.session.errors), 0)

    def test_ls_glob_matches_not_joined_into_one_path(self):
        handler = self.make_handler(cwd="/home/alice/work")
        handler.execute("ls [xy]")
        self.assertEqual(self.lines(), ["x  y"])
        self.assertNotIn("/home/alice/work/x y", self.remote.calls)

    def test_ls_file(self):
        self.handler.execute("ls notes.md")
        self.assertEqual(self.lines(), ["notes.md"])

    def test_ls_missing(self):
        self.handler.execute("ls nothing")
        self.assertEqual(self.lines(), ["ls: /data/nothing: No such file or directory"])
        self.assertEqual(len(self.session.errors), 0)

    def test_ls_long(self):
        self.handler.execute("ls -l")
        lines = self.lines()
        self.assertEqual(len(lines), 4)
        self.assertTrue(lines[0].startswith("f alice"))
        self.assertIn("2024-01-01 00:00:00 a.txt", lines[0])
        self.assertTrue(lines[2].startswith("d alice"))

    def test_ls_long_human_sizes(self):
        self.handler.execute("ls -lh --sort size -r")
        lines = self.lines()
        self.assertIn("2 KB", lines[0])
        self.assertTrue(lines[0].endswith("b.txt"))

    def test_ls_long_flag_before_path(self):
        self.handler.execute("ls --reverse /data")
        self.assertEqual(self.lines(), ["notes.md  My Folder  b.txt  a.txt"])

    def test_ls_link_shows_target(self):
        self.handler.execute("ls -l /home/alice")
        self.assertTrue(any(line.endswith("link -> /shared/project") for line in self.lines()))

    def test_ls_bin(self):
        self.handler.execute("ls -l /bin")
        lines = self.lines()
        self.assertTrue(lines[0].startswith("p system"))
        self.assertIn("pl-dircopy (2.1.1)", lines[0])

    def test_ls_root_shows_overlay(self):
        self.handler.execute("ls /")
        self.assertEqual(self.lines(), ["bin  data  home  shared"])

    def test_ls_directory_itself(self):
        self.handler.execute("ls -d /data")
        self.assertEqual(self.lines(), ["data"])

    def test_ls_multiple_targets(self):
        self.handler.execute("ls a.txt /home/alice")
        self.assertEqual(self.lines(), ["a.txt  alice"])

    def test_ls_refresh(self):
        self.handler.execute("ls")
        self.remote.tree["/data"].append(f("c.txt"))
        self.handler.execute("ls")
        self.assertNotIn("c.txt", self.output())
        self.handler.execute("ls -f")
        self.assertIn("[Cache] Invalidating: /data", self.output())
        self.assertIn("c.txt", self.output())

    def test_ls_provider_failure(self):
        handler = self.make_handler()
        self.remote.failing.add("/data")
        handler.execute("ls")
        self.assertEqual(len(self.lines()), 1)
        self.assertIn("ls: Failed to list /data: connection reset by peer", self.output())

    def test_ls_stale_listing_refreshed(self):
        now = [0.0]
        cache = ListCache(default_ttl=60, clock=lambda: now[0])
        handler = self.make_handler(cache=cache)
        handler.execute("ls")
        self.remote.tree["/data"].append(f("c.txt"))
        now[0] = 61.0
        handler.execute("ls")
        self.assertEqual(self.lines()[-1], "a.txt  b.txt  c.txt  My Folder  notes.md")

    def test_ls_stale_refresh_failure_serves_cached(self):
        now = [0.0]
        cache = ListCache(default_ttl=60, clock=lambda: now[0])
        handler = self.make_handler(cache=cache)
        handler.execute("ls")
        self.remote.failing.add("/data")
        now[0] = 61.0
        handler.execute("ls")
        self.assertEqual(self.lines(), ["a.txt  b.txt  My Folder  notes.md"] * 2)


class TestNavigation(CommandTestCase):
    def setUp(self):
        self.handler = self.make_handler(cwd="/")

    def test_cd_and_pwd(self):
        self.handler.execute("cd /home/alice/link; pwd")
        self.assertEqual(self.lines(), ["/home/alice/link"])

    def test_ls_after_logical_cd_into_link(self):
        self.handler.execute("cd /home/alice/link; ls; pwd")
        self.assertEqual(self.lines(), ["results.csv", "/home/alice/link"])

    def test_cd_physical(self):
        self.handler.execute("physicalmode on; cd /home/alice/link; pwd")
        self.assertEqual(self.lines()[-1], "/shared/project")

    def test_cd_quoted(self):
        self.handler.execute('cd "/data/My Folder"; pwd')
        self.assertEqual(self.lines(), ["/data/My Folder"])

    def test_cd_unquoted_spaces_joined(self):
        self.handler.execute("cd /data/My Folder; pwd")
        self.assertEqual(self.lines(), ["/data/My Folder"])

    def test_cd_errors(self):
        self.handler.execute("cd /nope")
        self.handler.execute("cd /data/a.txt")
        self.assertEqual(self.lines(), [
            "cd: /nope: No such file or directory",
            "cd: /data/a.txt: Not a directory",
        ])
        self.assertEqual(self.session.cwd, "/")

    def test_cd_home(self):
        self.handler.execute("cd; pwd")
        self.assertEqual(self.lines(), ["/home/alice"])

    def test_physicalmode(self):
        self.handler.execute("physicalmode")
        self.assertIn("Physical filesystem mode: disabled", self.output())
        self.handler.execute("physicalmode on")
        self.assertIs(self.session.mode, AddressingMode.PHYSICAL)
        self.assertIn("[!] Physical filesystem mode enabled", self.output())
        self.handler.execute("physicalmode off")
        self.assertIs(self.session.mode, AddressingMode.LOGICAL)
        self.handler.execute("physicalmode sideways")
        self.assertIn("Unknown argument: sideways", self.output())
        self.assertIn("Usage: physicalmode [on|off]", self.output())


def usage(size, label):
    return f"{size:>12}  {label}"


class TestTree(CommandTestCase):
    def setUp(self):
        self.handler = self.make_handler()

    def test_tree_cwd(self):
        self.handler.execute("tree")
        lines = self.lines()
        self.assertEqual(lines[0], "/data")
        names = [line.split()[-1] for line in lines[1:6]]
        self.assertEqual(names, ["a.txt", "b.txt", "Folder", "inner.txt", "notes.md"])
        self.assertTrue(lines[4].endswith("└── inner.txt"))
        self.assertEqual(lines[-2:], ["Total size: 2 KB", "5 items"])

    def test_tree_level(self):
        self.handler.execute("tree -L 1")
        self.assertNotIn("inner.txt", self.output())
        self.assertEqual(self.lines()[-1], "4 items")

    def test_tree_invalid_level(self):
        self.handler.execute("tree -L zero")
        self.assertEqual(self.lines(), ["tree: invalid level, must be greater than 0"])

    def test_tree_follow(self):
        self.handler.execute("tree /home/alice")
        self.assertNotIn("results.csv", self.output())
        self.assertIn("link -> /shared/project", self.output())
        self.handler.execute("tree --follow /home/alice")
        self.assertIn("results.csv", self.output())
        self.assertEqual(self.lines()[-1], "8 items")

    def test_tree_missing(self):
        self.handler.execute("tree /nope")
        self.assertEqual(self.lines(), ["tree: /nope: No such file or directory"])


class TestDu(CommandTestCase):
    def setUp(self):
        self.handler = self.make_handler()

    def test_du_cwd(self):
        self.handler.execute("du")
        self.assertEqual(self.lines(), [usage(3, "/data"), usage(0, "/data/My Folder")])

    def test_du_summary_human(self):
        self.handler.execute("du -sh")
        self.assertEqual(self.lines(), [usage("2 KB", "/data")])

    def test_du_all_with_max_depth(self):
        self.handler.execute("du -a -d 1")
        self.assertEqual(self.lines(), [
            usage(3, "/data"),
            usage(0, "/data/My Folder"),
            usage(1, "/data/a.txt"),
            usage(2, "/data/b.txt"),
            usage(1, "/data/notes.md"),
        ])

    def test_du_files_with_total(self):
        self.handler.execute("du -c a.txt b.txt")
        self.assertEqual(self.lines(), [
            usage(1, "/data/a.txt"),
            usage(2, "/data/b.txt"),
            usage(3, "total"),
        ])

    def test_du_through_link(self):
        self.handler.execute("du /home/alice/link")
        self.assertEqual(self.lines(), [usage(2, "/home/alice/link")])

    def test_du_nested_sizes_reach_ancestors(self):
        self.remote.tree["/data/My Folder"] = [f("big.bin", 4096)]
        self.handler.execute("du -s /data")
        self.assertEqual(self.lines(), [usage(7, "/data")])

    def test_du_separate_dirs(self):
        self.remote.tree["/data/My Folder"] = [f("big.bin", 4096)]
        self.handler.execute("du -S")
        self.assertEqual(self.lines(), [usage(3, "/data"), usage(4, "/data/My Folder")])

    def test_du_missing(self):
        self.handler.execute("du /nope")
        self.assertEqual(self.lines(), ["du: /nope: No such file or directory"])

    def test_du_invalid_depth(self):
        self.handler.execute("du --max-depth deep")
        self.assertEqual(self.lines(), ["du: invalid maximum depth"])


class TestMkdir(CommandTestCase):
    def setUp(self):
        self.handler = self.make_handler()

    def test_mkdir_shows_up_in_next_listing(self):
        self.handler.execute("ls")
        self.handler.execute("mkdir new")
        self.assertIn("Created directory: /data/new", self.output())
        self.assertNotIn("/data", self.session.cache)
        self.handler.execute("ls")
        self.assertEqual(self.lines()[-1], "a.txt  b.txt  My Folder  new  notes.md")

    def test_mkdir_usage(self):
        self.handler.execute("mkdir")
        self.assertEqual(self.lines(), ["Usage: mkdir <directory> [directory...]"])

    def test_mkdir_existing(self):
        self.handler.execute("mkdir a.txt")
        self.assertEqual(self.lines(), ["mkdir: /data/a.txt: File exists"])

    def test_mkdir_in_overlay(self):
        self.handler.execute("mkdir /bin/tool")
        self.assertEqual(self.lines(), ["mkdir: /bin/tool: Read-only file system"])

    def test_mkdir_under_link(self):
        self.handler.execute("mkdir ~/link/out")
        self.assertEqual(self.remote.created, ["/shared/project/out"])
        self.assertIn("Created directory: /shared/project/out", self.output())

    def test_mkdir_failure_marks_listing_dirty(self):
        self.handler.execute("ls")
        self.remote.failing.add("/data/new")
        self.handler.execute("mkdir new")
        self.assertIn("mkdir: Failed to create /data/new: connection reset by peer", self.output())
        self.assertTrue(self.session.cache.is_stale("/data"))


class TestMisc(CommandTestCase):
    def setUp(self):
        self.handler = self.make_handler()

    def test_unknown_command(self):
        self.assertTrue(self.handler.execute("frobnicate"))
        self.assertIn("Unknown command: frobnicate", self.output())

    def test_exit_stops_the_line(self):
        self.assertFalse(self.handler.execute("exit; pwd"))
        self.assertEqual(self.lines(), ["Goodbye!"])
        self.assertFalse(self.handler.execute("QUIT"))

    def test_help(self):
        self.handler.execute("help")
        self.assertIn("physicalmode [on|off]", self.output())

    def test_context(self):
        self.handler.execute("context")
        out = self.output()
        self.assertIn("ChRIS Context", out)
        self.assertIn("alice", out)
        self.assertIn("http://chris.local/api/v1/", out)
        self.assertIn("Disabled", out)

    def test_cache_commands(self):
        self.handler.execute("ls")
        self.handler.execute("cache")
        self.assertIn("/data", self.session.cache)
        self.assertIn("entries", self.output())
        self.handler.execute("cache invalidate .")
        self.assertNotIn("/data", self.session.cache)
        self.handler.execute("ls; cache clear")
        self.assertEqual(len(self.session.cache), 0)
        self.assertEqual(self.session.cache.stats()["hits"], 0)

    def test_unexpected_exception_is_reported(self):
        with mock.patch.object(self.session, "change_directory", side_effect=RuntimeError("boom")):
            self.assertTrue(self.handler.execute("cd /x"))
        self.assertEqual(self.lines(), ["cd: /x: boom"])


class TestHelpers(unittest.TestCase):
    def test_parse_args(self):
        parsed = parse_args(["-lh", "--sort", "size", "a", "--reverse", "--", "-b"])
        self.assertEqual(parsed["_"], ["a", "-b"])
        self.assertTrue(parsed["l"])
        self.assertTrue(parsed["h"])
        self.assertEqual(parsed["sort"], "size")
        self.assertTrue(parsed["reverse"])

    def test_parse_args_no_flags(self):
        self.assertEqual(parse_args(["x", "y"]), {"_": ["x", "y"]})
        self.assertEqual(parse_args(["-"]), {"_": ["-"]})

    def test_format_size(self):
        self.assertEqual(format_size(0), "0 B")
        self.assertEqual(format_size(512), "512 B")
        self.assertEqual(format_size(1536), "1.5 KB")
        self.assertEqual(format_size(1024 ** 3), "1 GB")

    def test_format_entry_escapes_markup(self):
        entry = Entry(name="[red]x", kind=EntryKind.FILE)
        self.assertEqual(format_entry(entry), "\\[red]x")

    def test_format_entry_long_without_date(self):
        entry = Entry(name="x", kind=EntryKind.FILE, size=3, owner="bob")
        self.assertIn("-------------------", format_entry(entry, long=True))

    def test_format_entry_link(self):
        entry = link("PACS", "/SERVICES/PACS")
        line = format_entry(entry, long=True)
        self.assertTrue(line.startswith("l alice"))
        self.assertIn("2024-01-01", line)
        self.assertTrue(line.endswith("-> /SERVICES/PACS"))
        self.assertEqual(entry.modified, when(1))

if __name__ == '__main__':
    unittest.main()
