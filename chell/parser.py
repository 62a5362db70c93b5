"""Shell command line tokenizer"""

import shlex
from typing import List, Tuple


class CommandParser:
    """Split raw command lines into commands and argument tokens"""

    @staticmethod
    def parse_command_line(command_line: str) -> List[Tuple[str, List[str]]]:
        """
        Parse a command line into (command, args) pairs

        Args:
            command_line: Full command line, possibly holding several
                commands separated by ';'

        Returns:
            List of (command, args) tuples, in input order

        Example:
            >>> CommandParser.parse_command_line("cd /tmp; ls -l")
            [('cd', ['/tmp']), ('ls', ['-l'])]
        """
        commands = []
        for part in CommandParser.split_commands(command_line):
            tokens = CommandParser.tokenize(part)
            if tokens:
                commands.append((tokens[0], tokens[1:]))
        return commands

    @staticmethod
    def split_commands(command_line: str) -> List[str]:
        """
        Split a command line on ';' separators outside of quotes and escapes

        Quote and escape characters are kept so each piece can be tokenized
        afterwards.
        """
        commands = []
        current = []
        in_single = False
        in_double = False
        escape_next = False

        for char in command_line:
            if escape_next:
                escape_next = False
            elif char == '\\':
                escape_next = True
            elif char == "'" and not in_double:
                in_single = not in_single
            elif char == '"' and not in_single:
                in_double = not in_double
            elif char == ';' and not in_single and not in_double:
                piece = ''.join(current).strip()
                if piece:
                    commands.append(piece)
                current = []
                continue
            current.append(char)

        piece = ''.join(current).strip()
        if piece:
            commands.append(piece)
        return commands

    @staticmethod
    def tokenize(line: str) -> List[str]:
        """
        Split a single command into tokens

        Single and double quotes group whitespace and are removed from the
        result; a backslash escapes the following character. An unmatched
        quote runs to the end of the line instead of failing.

        Example:
            >>> CommandParser.tokenize('cat "my file.txt" other\\ file')
            ['cat', 'my file.txt', 'other file']
        """
        tokens = []
        current = []
        in_single = False
        in_double = False
        escape_next = False

        for char in line:
            if escape_next:
                current.append(char)
                escape_next = False
                continue

            if char == '\\':
                escape_next = True
                continue

            if char == "'" and not in_double:
                in_single = not in_single
                continue

            if char == '"' and not in_single:
                in_double = not in_double
                continue

            if not in_single and not in_double and char.isspace():
                if current:
                    tokens.append(''.join(current))
                    current = []
                continue

            current.append(char)

        if current:
            tokens.append(''.join(current))

        return tokens

    @staticmethod
    def quote_arg(arg: str) -> str:
        """Quote an argument if it contains spaces or special characters"""
        if ' ' in arg or any(c in arg for c in '|&;<>()$`\\"\''):
            return shlex.quote(arg)
        return arg
