"""Version and build information."""

import platform

_VERSION = "dev"
_BUILD_INFO = "unknown"
_LONG_VERSION = f"{_VERSION} {_BUILD_INFO} python{platform.python_version()}"


def short() -> str:
    """Return the short Major.Minor.Patch[-pre] version string."""
    return _VERSION


def long() -> str:
    """Return the version followed by build information and runtime version."""
    return _LONG_VERSION