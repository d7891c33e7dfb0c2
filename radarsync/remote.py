"""
Radar Sync - Remote catalog client.

Thin wrapper over ``ftplib`` exposing the three operations the sync engine
needs: list a directory, fetch a file, close. Every failure surfaces as
RemoteError so callers handle one exception type.
"""

from __future__ import annotations

import ftplib
import io
import logging

logger = logging.getLogger(__name__)

# ftplib decodes control-channel lines (including NLST output) as strict UTF-8
_REMOTE_ERRORS = ftplib.all_errors + (UnicodeDecodeError,)


class RemoteError(Exception):
    """A connect, login, navigate, list or fetch call failed."""


class RemoteSession:
    """An open, logged-in FTP session positioned in one remote directory."""

    def __init__(self, ftp: ftplib.FTP, directory: str) -> None:
        self._ftp = ftp
        self.directory = directory

    def list(self) -> list[str]:
        """Return the file names in the session's directory."""
        try:
            names = self._ftp.nlst()
        except _REMOTE_ERRORS as exc:
            raise RemoteError(
                f"Failed to get file list in {self.directory}: {exc}"
            ) from exc
        logger.debug("Listed %d name(s) in %s", len(names), self.directory)
        return names

    def fetch(self, name: str) -> bytes:
        """Download ``name`` and return its bytes."""
        buf = io.BytesIO()
        try:
            self._ftp.retrbinary(f"RETR {name}", buf.write)
        except _REMOTE_ERRORS as exc:
            raise RemoteError(f"Failed to get file {name}: {exc}") from exc
        data = buf.getvalue()
        logger.debug("Fetched %s (%d bytes)", name, len(data))
        return data

    def close(self) -> None:
        """Disconnect. Best-effort: errors are logged, never raised."""
        try:
            self._ftp.quit()
        except _REMOTE_ERRORS as exc:
            logger.debug("QUIT failed (%s); closing socket", exc)
            self._ftp.close()

    def __enter__(self) -> RemoteSession:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_session(config: dict, directory: str) -> RemoteSession:
    """
    Connect, log in and change to ``directory``.

    Raises RemoteError if any step fails; the connection is closed first.
    """
    source = config["source"]
    host = source["host"]
    port = int(source.get("port", 21))
    timeout = source.get("timeout", 30)

    ftp = ftplib.FTP(timeout=timeout)
    step = "connect to server"
    try:
        ftp.connect(host, port)
        step = "log in"
        ftp.login(source.get("user", "anonymous"), source.get("password", ""))
        step = "navigate to directory"
        ftp.cwd(directory)
    except _REMOTE_ERRORS as exc:
        ftp.close()
        raise RemoteError(
            f"Failed to {step} ({host}:{port} {directory}): {exc}"
        ) from exc

    logger.debug("Connected to %s:%d, in %s", host, port, directory)
    return RemoteSession(ftp, directory)
