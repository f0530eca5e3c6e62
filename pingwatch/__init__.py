"""pingwatch: a small JSON API for users, login tokens and uptime checks.

Records live as one JSON file each under the configured data directory.
"""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pingwatch")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
