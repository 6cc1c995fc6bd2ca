"""Remote repository access.

The resolver only needs ``fetch(uri) -> bytes``. RemoteRepository provides
it over HTTP(S) with requests, and reads ``file:`` URIs from the local
filesystem. Nothing is retried: a failed fetch fails the resolution.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Optional, Protocol, runtime_checkable
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import requests

from modbuild.config import DEFAULT_NETWORK_TIMEOUT

logger = logging.getLogger(__name__)

USER_AGENT = "modbuild"


@runtime_checkable
class Repository(Protocol):
    """Source of remote artifacts and index files."""

    def fetch(self, uri: str) -> bytes:
        """Fetch the content addressed by ``uri``.

        Raises:
            Exception: Any failure; the resolver treats it as fatal.
        """
        ...


class RemoteRepository:
    """Fetches ``http(s):`` URIs with requests and ``file:`` URIs from disk.

    Args:
        timeout: Seconds before a connection or read attempt fails.
        session: Optional requests session (a new one is created otherwise).
    """

    def __init__(self, timeout: float = DEFAULT_NETWORK_TIMEOUT, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def fetch(self, uri: str) -> bytes:
        """Fetch the content addressed by ``uri``.

        Raises:
            requests.HTTPError: On a non-success HTTP status
            requests.RequestException: On connection problems or timeouts
            OSError: If a ``file:`` URI cannot be read
            ValueError: On an unsupported URI scheme
        """
        parsed = urlparse(uri)
        if parsed.scheme == "file":
            return Path(url2pathname(unquote(parsed.path))).read_bytes()
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Unsupported URI scheme: {uri}")
        logger.debug(f"GET {uri}")
        response = self.session.get(uri, stream=True, timeout=self.timeout)
        response.raise_for_status()
        chunks = [chunk for chunk in response.iter_content(chunk_size=8192) if chunk]
        return b"".join(chunks)

    def download(self, uri: str, target: Path) -> Path:
        """Fetch ``uri`` into ``target`` through a ``.download`` temp file."""
        write_atomically(target, self.fetch(uri))
        return target

    def close(self) -> None:
        self.session.close()


def write_atomically(target: Path, data: bytes, check: Optional[Callable[[Path], object]] = None) -> None:
    """Write ``data`` to ``target`` through a ``.download`` temp file.

    Readers never observe a partially written target. When given, ``check``
    inspects the temp file before it replaces the target; if it raises, the
    temp file is removed and the target is left untouched.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_file = target.with_name(target.name + ".download")
    try:
        temp_file.write_bytes(data)
        if check is not None:
            check(temp_file)
        os.replace(temp_file, target)
    except BaseException:
        temp_file.unlink(missing_ok=True)
        raise


def fetch_cached(repository: Repository, uri: str, target: Path) -> Path:
    """Fetch ``uri`` into ``target`` unless a cached copy already exists."""
    if target.is_file():
        logger.debug(f"Using cached {target}")
        return target
    write_atomically(target, repository.fetch(uri))
    logger.info(f"Cached {uri} as {target}")
    return target
