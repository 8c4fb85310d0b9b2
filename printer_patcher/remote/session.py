"""
SSH session to the target device.

One ``RemoteSession`` wraps one Fabric ``Connection`` opened with password
authentication. It lives for exactly one action run and is always closed
when the run ends; use it as a context manager::

    with connect(host, 22, Credentials("root", "secret")) as session:
        output, error = session.run("uname -a")

``run()`` never raises for command failures: it returns the combined
stdout/stderr and an error string (None on success), leaving the decision
to the engine.
"""

import logging
from dataclasses import dataclass, field

from fabric import Connection

from printer_patcher.errors import SSHConnectionError
from printer_patcher.settings import get_ssh_connect_timeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Plaintext SSH credentials as supplied by the catalog or CLI."""

    username: str
    password: str = field(default="", repr=False)


# (substring of the lowercased error, message template, suggestion)
_CONNECT_FAILURES = [
    (
        "timed out",
        "Connection to {host} timed out",
        "Check the device is powered on and on the network",
    ),
    (
        "connection refused",
        "Connection to {host} refused",
        "SSH service may not be running on the device",
    ),
    (
        "no route to host",
        "Cannot reach {host} - network unreachable",
        "Check the device IP address and network",
    ),
    (
        "network is unreachable",
        "Cannot reach {host} - network unreachable",
        "Check the device IP address and network",
    ),
    (
        "name or service not known",
        "Cannot resolve hostname {host}",
        "Use the device IP address",
    ),
    (
        "authentication failed",
        "Authentication failed for {host}",
        "Check the username and password",
    ),
]


def _describe_connect_error(host: str, error: Exception) -> SSHConnectionError:
    text = str(error).lower()
    for needle, template, suggestion in _CONNECT_FAILURES:
        if needle in text:
            return SSHConnectionError(host, template.format(host=host), suggestion)
    return SSHConnectionError(host, f"SSH connection to {host} failed: {error}")


class RemoteSession:
    """Live command channel to the device."""

    def __init__(self, connection: Connection):
        self._connection = connection
        self._closed = False

    @property
    def host(self) -> str:
        return self._connection.host

    @property
    def closed(self) -> bool:
        return self._closed

    def run(self, command: str, timeout: float | None = None) -> tuple[str, str | None]:
        """Run ``command`` and return ``(combined_output, error)``.

        ``error`` is None when the command exits 0. A non-zero exit or a
        transport failure yields a description of the failure.
        """
        if self._closed:
            return "", "session is closed"

        try:
            result = self._connection.run(
                command,
                hide=True,
                warn=True,
                in_stream=False,
                timeout=timeout,
            )
        except Exception as e:
            logger.debug("Command failed on %s: %s", self.host, e)
            return "", f"command failed: {e}"

        output = result.stdout + result.stderr
        if result.exited != 0:
            return output, f"Process exited with status {result.exited}"
        return output, None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._connection.close()
        except Exception as e:
            logger.warning("Error closing SSH connection to %s: %s", self.host, e)
        logger.debug("Closed SSH connection to %s", self.host)

    def __enter__(self) -> "RemoteSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def connect(
    host: str,
    port: int,
    credentials: Credentials,
    timeout: float | None = None,
) -> RemoteSession:
    """Open an SSH session to ``host``.

    Host keys are accepted on first use; password authentication only.

    Raises:
        SSHConnectionError: If the connection cannot be established.
    """
    timeout = timeout if timeout is not None else get_ssh_connect_timeout()
    connect_kwargs = {"look_for_keys": False, "allow_agent": False}
    if credentials.password:
        connect_kwargs["password"] = credentials.password

    connection = Connection(
        host=host,
        user=credentials.username,
        port=port,
        connect_timeout=timeout,
        connect_kwargs=connect_kwargs,
    )

    logger.info("Connecting to %s@%s:%d", credentials.username, host, port)
    try:
        connection.open()
    except Exception as e:
        connection.close()
        raise _describe_connect_error(host, e) from e

    logger.info("Connected to %s", host)
    return RemoteSession(connection)
