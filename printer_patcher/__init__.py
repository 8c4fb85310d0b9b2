"""printer-patcher: run scripted maintenance actions against a device over SSH.

Actions and their step scripts are loaded from the bundled resources or
from a GitHub repository at a branch or release tag.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("printer-patcher")
except PackageNotFoundError:
    __version__ = "0.0.0"
