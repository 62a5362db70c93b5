"""Shell session state

A Session carries what used to be process-wide in a shell: the user, the
working directory, the addressing mode, the listing cache and the error
log. Everything below it receives that state explicitly.
"""

import logging
from typing import Dict, Optional

from . import paths
from .cache import ListCache
from .client import ChrisClient
from .config import Config
from .models import AddressingMode, ListOptions
from .paths import ROOT, PathContext
from .providers import ListingProvider, OverlayProvider, RemoteTreeProvider
from .result import Err, ErrorKind, ErrorStack, Ok, Result
from .vfs import VFS
from .wildcard import WildcardExpander

logger = logging.getLogger(__name__)

BIN_MOUNT = "/bin"


class Session:
    """Per-shell state plus the path/VFS services built on it"""

    def __init__(
        self,
        remote: ListingProvider,
        overlays: Optional[Dict[str, OverlayProvider]] = None,
        cache: Optional[ListCache] = None,
        user: Optional[str] = None,
        cwd: str = ROOT,
        mode: AddressingMode = AddressingMode.LOGICAL,
        errors: Optional[ErrorStack] = None,
    ):
        overlays = overlays or {}
        self.user = user
        self.errors = errors if errors is not None else ErrorStack()
        self.cache = cache if cache is not None else ListCache(overlay_mounts=overlays.keys())
        self.vfs = VFS(remote, overlays, self.cache, self.errors)
        self.expander = WildcardExpander(self.vfs)
        self._mode = mode
        self._cwd = ROOT
        self.set_cwd(cwd)

    @classmethod
    def from_config(cls, config: Config, client: Optional[ChrisClient] = None) -> "Session":
        """Wire the remote tree and the /bin plugin overlay from configuration"""
        if client is None:
            client = ChrisClient(config.server_url, token=config.token, timeout=config.timeout)
        overlays = {BIN_MOUNT: OverlayProvider(BIN_MOUNT, client.plugins)}
        cache = ListCache(
            default_ttl=config.cache_ttl,
            overlay_ttl=config.overlay_ttl,
            feed_ttl=config.feed_ttl,
            overlay_mounts=overlays.keys(),
        )
        mode = AddressingMode.PHYSICAL if config.physical_mode else AddressingMode.LOGICAL
        return cls(RemoteTreeProvider(client), overlays, cache, user=config.user, mode=mode)

    @property
    def cwd(self) -> str:
        return self._cwd

    @property
    def mode(self) -> AddressingMode:
        return self._mode

    @property
    def home(self) -> str:
        return paths.home_for(self.user)

    def context(self) -> PathContext:
        return PathContext(user=self.user, cwd=self._cwd, mode=self._mode)

    def set_cwd(self, path: str) -> None:
        if not paths.is_canonical(path):
            raise ValueError(f"not a canonical path: {path!r}")
        self._cwd = path
        self.cache.cwd_update(path)

    def set_mode(self, mode: AddressingMode) -> None:
        if mode is not self._mode:
            logger.info(f"addressing mode: {self._mode.value} -> {mode.value}")
        self._mode = mode

    def resolve(self, token: str) -> str:
        """Resolve a token against this session, following links in physical mode"""
        return self.vfs.resolve(token, self.context())

    def make_directory(self, token: str) -> Result[str]:
        """Create the folder a token names; the parent is dereferenced first"""
        logical = paths.resolve(token, self.context())
        if logical == ROOT:
            return Err(self.errors.push(ErrorKind.INVALID_PATH, f"{logical}: File exists"))
        parent = self.vfs.links.resolve_links(paths.parent(logical))
        return self.vfs.make_folder(paths.join(parent, paths.basename(logical)))

    def change_directory(self, token: Optional[str] = None) -> Result[str]:
        """
        Change the working directory

        Args:
            token: Target as typed; None or empty means the home directory

        Returns:
            Result holding the new working directory. In logical mode that is
            the path as typed (links stay visible); in physical mode it is the
            dereferenced path.
        """
        logical = paths.resolve(token or "~", self.context())

        if self.vfs.is_overlay_mount(logical):
            self.set_cwd(logical)
            return Ok(logical)

        if self._mode is AddressingMode.PHYSICAL:
            target = self.vfs.links.resolve_links(logical)
        else:
            translated = self.vfs.links.to_physical(logical)
            if not translated.ok:
                return translated
            target = translated.value

        described = self.vfs.list(target, ListOptions(self_only=True))
        if not described.ok:
            return described
        if not described.value[0].kind.is_container:
            return Err(self.errors.push(ErrorKind.NOT_FOUND, f"{logical}: Not a directory"))

        new_cwd = target if self._mode is AddressingMode.PHYSICAL else logical
        self.set_cwd(new_cwd)
        return Ok(new_cwd)
