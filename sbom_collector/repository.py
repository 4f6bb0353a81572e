"""Repository checkout for collection runs.

Each run clones into its own temporary directory under the checkouts root,
and the directory is removed on every exit path.
"""

import os
import shutil
import tempfile
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from sbom_collector._collection.utils import GIT_TIMEOUT, run_command
from sbom_collector.exceptions import CheckoutError, CommandExecutionError
from sbom_collector.logging_config import logger

DEFAULT_CHECKOUTS_ROOT = os.path.join(tempfile.gettempdir(), "checkouts")


@dataclass(frozen=True)
class Credentials:
    """Basic-auth credentials used when an anonymous clone fails."""

    username: str = ""
    access_token: str = ""

    @property
    def is_set(self) -> bool:
        return bool(self.username and self.access_token)


@dataclass
class Repository:
    """
    A checked-out repository.

    Attributes:
        name: Repository name (last URL path segment without ``.git``)
        url: URL it was cloned from
        path: Local checkout directory
        code_owners: Author e-mails ordered by commit count, most active first
    """

    name: str
    url: str
    path: str
    code_owners: List[str] = field(default_factory=list)


def repository_name(url: str) -> str:
    """
    Extract the repository name from a clone URL.

    Raises:
        CheckoutError: If the URL has no usable name
    """
    path = urlsplit(url).path if "://" in url else url.split(":", 1)[-1]
    name = path.rstrip("/").split("/")[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name or name in (".", ".."):
        raise CheckoutError(f"Invalid repository URL: {url}")
    return name


def url_with_credentials(url: str, credentials: Credentials) -> str:
    """
    Embed basic-auth credentials into an HTTP(S) clone URL.

    Raises:
        CheckoutError: If the URL is not an HTTP(S) URL
    """
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise CheckoutError(f"Can't use credentials with repository URL: {url}")
    host = parts.hostname if parts.port is None else f"{parts.hostname}:{parts.port}"
    netloc = f"{quote(credentials.username, safe='')}:{quote(credentials.access_token, safe='')}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _clone(url: str, destination: str, cancel_event: Optional[threading.Event], display_url: str) -> None:
    cmd = ["git", "clone", "--depth", "1", "--single-branch", "--no-tags", url, destination]
    run_command(
        cmd,
        "git",
        timeout=GIT_TIMEOUT,
        env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        cancel_event=cancel_event,
        display=f"git clone --depth 1 --single-branch --no-tags {display_url} {destination}",
    )


def parse_code_owners(path: str, cancel_event: Optional[threading.Event] = None) -> List[str]:
    """
    Author e-mails of a checkout, ordered by commit count (descending).

    Failures are logged and yield an empty list.
    """
    try:
        output = run_command(
            ["git", "log", "--format=%ae"],
            "git",
            timeout=GIT_TIMEOUT,
            cwd=path,
            cancel_event=cancel_event,
        )
    except CommandExecutionError as e:
        logger.warning(f"Can't parse code owners from {path}: {e}")
        return []

    counts = Counter(line.strip() for line in output.splitlines() if line.strip())
    return [email for email, _ in sorted(counts.items(), key=lambda item: (-item[1], item[0]))]


@contextmanager
def checkout_repository(
    url: str,
    checkouts_root: str = DEFAULT_CHECKOUTS_ROOT,
    credentials: Optional[Credentials] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[Repository]:
    """
    Shallow-clone a repository into a private directory.

    The anonymous clone is retried with credentials when it fails and
    credentials are available. The checkout is removed when the context exits,
    whatever the outcome.

    Args:
        url: Clone URL
        checkouts_root: Parent directory for checkouts
        credentials: Optional credentials for private repositories
        cancel_event: Event that aborts the clone when set

    Yields:
        The checked-out Repository

    Raises:
        CheckoutError: If the URL is invalid or the clone fails
        CollectionCancelledError: If cancelled while cloning
    """
    name = repository_name(url)
    os.makedirs(checkouts_root, exist_ok=True)
    checkout_dir = tempfile.mkdtemp(prefix=f"{name}-", dir=checkouts_root)
    destination = os.path.join(checkout_dir, name)

    try:
        logger.info(f"Cloning {url} into {destination}")
        try:
            _clone(url, destination, cancel_event, url)
        except CommandExecutionError as e:
            if credentials is None or not credentials.is_set:
                raise CheckoutError(f"Failed to clone {url}: {e}") from e
            logger.info(f"Anonymous clone of {url} failed, retrying with credentials")
            shutil.rmtree(destination, ignore_errors=True)
            try:
                _clone(url_with_credentials(url, credentials), destination, cancel_event, url)
            except CommandExecutionError as retry_error:
                raise CheckoutError(f"Failed to clone {url}: {retry_error}") from retry_error

        yield Repository(
            name=name,
            url=url,
            path=destination,
            code_owners=parse_code_owners(destination, cancel_event),
        )
    finally:
        logger.debug(f"Removing checkout {checkout_dir}")
        shutil.rmtree(checkout_dir, ignore_errors=True)
