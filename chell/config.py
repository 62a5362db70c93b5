"""Configuration management for chell"""

import os

from .cache import DEFAULT_TTL, FEED_TTL, OVERLAY_TTL

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


class Config:
    """Configuration for the chell shell"""

    def __init__(self):
        # ChRIS API base URL
        self.server_url = os.getenv('CHRIS_URL', 'http://localhost:8000/api/v1/')
        self.user = os.getenv('CHRIS_USER') or None
        self.token = os.getenv('CHRIS_TOKEN') or None
        self.timeout = int(_env_float('CHELL_TIMEOUT', 10))
        self.physical_mode = os.getenv('CHELL_PHYSICAL_FS', '').lower() in _TRUE_VALUES

        # Listing cache TTLs, in seconds
        self.cache_ttl = _env_float('CHELL_CACHE_TTL', DEFAULT_TTL)
        self.overlay_ttl = _env_float('CHELL_OVERLAY_TTL', OVERLAY_TTL)
        self.feed_ttl = _env_float('CHELL_FEED_TTL', FEED_TTL)

        self.prompt_style = os.getenv('CHELL_PROMPT_STYLE', 'default')

    @classmethod
    def from_env(cls):
        """Create configuration from environment variables"""
        return cls()

    @classmethod
    def from_args(cls, server_url: str = None, user: str = None, token: str = None,
                  timeout: int = None, physical_mode: bool = None):
        """Create configuration from command line arguments"""
        config = cls()
        if server_url:
            config.server_url = server_url
        if user:
            config.user = user
        if token:
            config.token = token
        if timeout is not None:
            config.timeout = timeout
        if physical_mode is not None:
            config.physical_mode = physical_mode
        return config

    def __repr__(self):
        return f"Config(server_url={self.server_url}, user={self.user}, physical_mode={self.physical_mode})"
