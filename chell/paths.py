"""Path resolution for the remote filesystem

Paths handled here are canonical: '/'-rooted, no '.' or '..' segments, no
repeated separators and no trailing '/' except for the root itself.
Resolution is lexical only; following links is the job of chell.links.
"""

import posixpath
from dataclasses import dataclass
from typing import Optional

from .models import AddressingMode

ROOT = "/"


@dataclass(frozen=True)
class PathContext:
    """Everything path resolution depends on

    Attributes:
        user: Logged-in user, or None for an anonymous session
        cwd: Current working directory (canonical)
        mode: Addressing mode in effect for this call
    """

    user: Optional[str] = None
    cwd: str = ROOT
    mode: AddressingMode = AddressingMode.LOGICAL


def home_for(user: Optional[str]) -> str:
    return f"/home/{user}" if user else ROOT


def normalize(path: str) -> str:
    """Normalize an absolute path into canonical form"""
    normalized = posixpath.normpath(path)
    # normpath keeps exactly two leading slashes (POSIX allows it), we don't
    if normalized.startswith("//"):
        normalized = ROOT + normalized.lstrip("/")
    if not normalized.startswith(ROOT):
        normalized = ROOT + normalized
    if normalized == "/.":
        normalized = ROOT
    return normalized


def resolve(token: str, ctx: PathContext) -> str:
    """
    Resolve a user-typed path token into a canonical absolute path

    Args:
        token: Path as typed (absolute, relative or starting with ~)
        ctx: User and working directory to resolve against

    Returns:
        Canonical absolute path. Never fails; an unknown user makes ~ the root.

    Examples:
        resolve('~/data', PathContext('alice', '/x')) -> '/home/alice/data'
        resolve('..', PathContext(cwd='/home/alice/work')) -> '/home/alice'
    """
    if not token:
        return ctx.cwd

    resolved = token
    if token.startswith("~"):
        home = home_for(ctx.user)
        if token in ("~", "~/"):
            resolved = home
        elif token.startswith("~/"):
            resolved = posixpath.join(home, token[2:].lstrip("/"))

    if not resolved.startswith(ROOT):
        resolved = posixpath.join(ctx.cwd, resolved)

    return normalize(resolved)


def is_canonical(path: str) -> bool:
    return path.startswith(ROOT) and normalize(path) == path


def parent(path: str) -> str:
    """Parent of a canonical path; the root is its own parent"""
    return posixpath.dirname(path) or ROOT


def basename(path: str) -> str:
    return posixpath.basename(path)


def join(directory: str, name: str) -> str:
    """Join a child name (or relative path) onto a canonical directory"""
    return normalize(posixpath.join(directory, name))


def is_within(path: str, mount: str) -> bool:
    """True if path is mount itself or lies below it"""
    return path == mount or path.startswith(mount.rstrip("/") + "/")
