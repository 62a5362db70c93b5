"""Version information for chell"""

__version__ = "0.1.0"

# Release builds replace this with the commit hash
__git_hash__ = "dev"


def get_version_string():
    if __git_hash__ == "dev":
        return f"chell {__version__} (dev)"
    return f"chell {__version__} ({__git_hash__[:8]})"


def user_agent():
    """User-Agent header sent with every API request"""
    return f"chell/{__version__}"
