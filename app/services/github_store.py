"""GitHub Contents API client used as a JSON document store.

Every tenant document (users, pending registrations, menus) is a JSON file in
a GitHub repository. Reads return the file's blob ``sha`` alongside the parsed
document and writes pass it back as an optimistic-concurrency precondition, so
a stale write is refused instead of silently overwriting a newer version.
"""

import base64
import copy
import json
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from app.config import GithubConfig, get_settings

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for document store errors."""


class MissingGithubConfig(StoreError):
    """Raised when token, owner or repository are not configured."""

    def __init__(self, presence: dict[str, bool]):
        self.presence = presence
        super().__init__("GitHub configuration incomplete")


class DocumentNotFound(StoreError):
    """Raised when the requested path does not exist in the repository."""


class StoreUnavailable(StoreError):
    """Raised when GitHub is unreachable or answers with an unexpected status."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class StoreWriteConflict(StoreError):
    """Raised when a write's revision precondition no longer holds."""


class CorruptDocument(StoreError):
    """Raised when a stored file exists but does not hold valid JSON."""

    def __init__(self, path: str, sha: str | None):
        self.sha = sha
        super().__init__(f"{path} does not contain valid JSON")


@dataclass
class StoredDocument:
    """A parsed JSON document and the revision it was read at.

    ``sha`` is None when the document does not exist yet.
    """

    data: Any
    sha: str | None


def _decode_content(payload: dict) -> str:
    raw = base64.b64decode(payload.get("content") or "")
    return raw.decode("utf-8-sig").strip()


def _json_object(response: requests.Response) -> dict:
    """Parse a GitHub response body that must be a JSON object.

    Raises:
        StoreUnavailable: If the body is not JSON (proxy pages, truncated
            bodies) or is not an object (directory listings).
    """
    try:
        payload = response.json()
    except ValueError as e:
        raise StoreUnavailable(
            "unexpected GitHub response", status_code=response.status_code
        ) from e
    if not isinstance(payload, dict):
        raise StoreUnavailable(
            "unexpected GitHub response", status_code=response.status_code
        )
    return payload


def _error_message(response: requests.Response) -> str:
    try:
        return str(_json_object(response).get("message") or "")
    except StoreUnavailable:
        return ""


class GitHubStore:
    """Read and write JSON documents through the GitHub Contents API."""

    def __init__(
        self,
        config: GithubConfig,
        session: requests.Session | None = None,
        write_retries: int = 2,
    ):
        self.config = config
        self.session = session or requests.Session()
        self.write_retries = write_retries
        self.session.headers.update(
            {
                "Authorization": f"Bearer {config.token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": config.user_agent,
            }
        )

    def close(self) -> None:
        """Release the HTTP session's pooled connections."""
        self.session.close()

    def _contents_url(self, path: str) -> str:
        clean = quote(path.lstrip("/"), safe="/")
        return (
            f"{self.config.api_url}/repos/{self.config.owner}/"
            f"{self.config.repo}/contents/{clean}"
        )

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(
                method, url, timeout=self.config.timeout, **kwargs
            )
        except requests.Timeout as e:
            logger.error("GitHub %s %s timed out", method, url)
            raise StoreUnavailable(f"GitHub request timed out: {e}") from e
        except requests.RequestException as e:
            logger.error("GitHub %s %s failed: %s", method, url, e)
            raise StoreUnavailable(f"GitHub request failed: {e}") from e

    def ping(self) -> None:
        """Check that the configured repository is reachable.

        Raises:
            StoreUnavailable: If the repository cannot be fetched.
        """
        url = f"{self.config.api_url}/repos/{self.config.owner}/{self.config.repo}"
        response = self._request("GET", url)
        if not response.ok:
            raise StoreUnavailable(
                f"Repository check failed with status {response.status_code}",
                status_code=response.status_code,
            )

    def get(self, path: str) -> StoredDocument:
        """Fetch and parse the JSON document at ``path``.

        Args:
            path: Repository-relative file path.

        Returns:
            StoredDocument with the parsed data and current sha.

        Raises:
            DocumentNotFound: If the file does not exist.
            StoreUnavailable: On network errors or unexpected statuses.
            CorruptDocument: If the content is not valid JSON.
        """
        response = self._request(
            "GET", self._contents_url(path), params={"ref": self.config.branch}
        )

        if response.status_code == 404:
            raise DocumentNotFound(path)
        if not response.ok:
            logger.error("GitHub read of %s failed: %s", path, response.status_code)
            raise StoreUnavailable(
                f"GitHub read failed with status {response.status_code}",
                status_code=response.status_code,
            )

        payload = _json_object(response)
        sha = payload.get("sha")
        try:
            text = _decode_content(payload)
            data = json.loads(text) if text else None
        except ValueError as e:
            raise CorruptDocument(path, sha) from e
        return StoredDocument(data=data, sha=sha)

    def read_json(self, path: str, default: Any) -> StoredDocument:
        """Read a document, substituting ``default`` when absent or unreadable.

        A missing file yields the default with no sha. An empty or corrupt
        file yields the default but keeps the real sha so the next write can
        replace it.
        """
        try:
            doc = self.get(path)
        except DocumentNotFound:
            logger.debug("%s not found, using default", path)
            return StoredDocument(data=copy.deepcopy(default), sha=None)
        except CorruptDocument as e:
            logger.warning("%s is not valid JSON, using default", path)
            return StoredDocument(data=copy.deepcopy(default), sha=e.sha)

        if doc.data is None or not isinstance(doc.data, type(default)):
            logger.warning("%s has unexpected shape, using default", path)
            return StoredDocument(data=copy.deepcopy(default), sha=doc.sha)
        return doc

    def put(
        self,
        path: str,
        document: Any,
        message: str,
        expected_sha: str | None = None,
        discover: bool = True,
    ) -> str | None:
        """Serialise ``document`` and commit it to ``path``.

        Args:
            path: Repository-relative file path.
            document: JSON-serialisable value.
            message: Commit message.
            expected_sha: Revision the caller read; omitted to create.
            discover: Look up the current revision first when none is given.

        Returns:
            The sha of the newly written blob.

        Raises:
            StoreWriteConflict: If the revision precondition fails.
            StoreUnavailable: On network errors or unexpected statuses.
        """
        sha = expected_sha
        if sha is None and discover:
            try:
                sha = self.get(path).sha
            except DocumentNotFound:
                sha = None
            except CorruptDocument as e:
                sha = e.sha

        text = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
        body = {
            "message": message,
            "content": base64.b64encode(text.encode("utf-8")).decode("ascii"),
            "branch": self.config.branch,
        }
        if sha:
            body["sha"] = sha

        response = self._request("PUT", self._contents_url(path), json=body)

        # GitHub reports a missing sha as 422; other 422s are validation errors.
        if response.status_code == 409 or (
            response.status_code == 422 and "sha" in _error_message(response)
        ):
            logger.warning(
                "GitHub write of %s rejected (%s): revision changed",
                path,
                response.status_code,
            )
            raise StoreWriteConflict(f"{path} was modified concurrently")
        if not response.ok:
            logger.error("GitHub write of %s failed: %s", path, response.status_code)
            raise StoreUnavailable(
                f"GitHub write failed with status {response.status_code}",
                status_code=response.status_code,
            )

        logger.info("Committed %s: %s", path, message)
        content = _json_object(response).get("content")
        return content.get("sha") if isinstance(content, dict) else None

    def update_json(
        self,
        path: str,
        default: Any,
        mutate: Callable[[Any], bool],
        message: str,
    ) -> tuple[StoredDocument, bool]:
        """Read-modify-write ``path``, retrying when the revision moved.

        ``mutate`` edits the document in place and returns True when it
        changed it. It may be called more than once, so it must only depend
        on the document it is given.

        Returns:
            Tuple of (final document, whether a write happened).
        """
        for attempt in Retrying(
            stop=stop_after_attempt(self.write_retries + 1),
            retry=retry_if_exception_type(StoreWriteConflict),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True,
        ):
            with attempt:
                doc = self.read_json(path, default)
                if not mutate(doc.data):
                    return doc, False
                new_sha = self.put(
                    path, doc.data, message, expected_sha=doc.sha, discover=False
                )
                return StoredDocument(data=doc.data, sha=new_sha), True


def build_store() -> GitHubStore:
    """Build a store from current settings.

    Raises:
        MissingGithubConfig: If token, owner or repository are not set.
    """
    settings = get_settings()
    if not settings.github.is_configured:
        raise MissingGithubConfig(settings.github.presence())
    return GitHubStore(settings.github, write_retries=settings.app.write_retries)


def get_store() -> Iterator[GitHubStore]:
    """FastAPI dependency yielding a store that is closed after the request."""
    store = build_store()
    try:
        yield store
    finally:
        store.close()
