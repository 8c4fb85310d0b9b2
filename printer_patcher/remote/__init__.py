"""
Remote device access.

Key functions:
- connect(host, port, credentials): Open an SSH session (RemoteSession)
- RemoteSession.run(cmd): Run a command, return (output, error)
- validate_output(actual, expected): Match step output against a pattern
"""

from printer_patcher.remote.session import Credentials, RemoteSession, connect
from printer_patcher.remote.validation import validate_output

__all__ = [
    "Credentials",
    "RemoteSession",
    "connect",
    "validate_output",
]
