"""Bugsnag Data Access API client used as the page source for exports."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlencode, urljoin, urlsplit

import requests

from bugsnag_pagination import Page, PageFetchError, iter_records
from bugsnag_query import EventQuery

DEFAULT_BASE_URL = "https://api.bugsnag.com/"

logger = logging.getLogger(__name__)


class BugsnagClientError(RuntimeError):
    """Error raised for Bugsnag client failures other than page fetches."""


@dataclass
class BugsnagClientConfig:
    base_url: str = DEFAULT_BASE_URL
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: int = 30

    @classmethod
    def from_env(cls) -> "BugsnagClientConfig":
        return cls(
            base_url=os.getenv("BUGSNAG_API_BASE_URL", DEFAULT_BASE_URL),
            token=os.getenv("BUGSNAG_TOKEN"),
            username=os.getenv("BUGSNAG_USERNAME"),
            password=os.getenv("BUGSNAG_PASSWORD"),
            timeout=int(os.getenv("BUGSNAG_API_TIMEOUT", "30")),
        )


def build_path(path: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Append ``params`` as a query string to ``path``."""

    if not params:
        return path
    separator = "&" if urlsplit(path).query else "?"
    return f"{path}{separator}{urlencode(params)}"


def events_path(project_id: str, query: Optional[EventQuery] = None) -> str:
    query = query or EventQuery()
    return build_path(f"/projects/{project_id}/events", query.to_query_params())


class BugsnagClient:
    def __init__(
        self,
        token: str | None = None,
        username: str | None = None,
        password: str | None = None,
        base_url: str | None = None,
        timeout: int | None = None,
        session: requests.Session | None = None,
    ) -> None:
        config = BugsnagClientConfig.from_env()
        self.base_url = base_url or config.base_url
        self.timeout = timeout if timeout is not None else config.timeout
        self.session = session or requests.Session()

        token = token or config.token
        username = username or config.username
        password = password or config.password
        if token:
            self.session.headers["Authorization"] = f"token {token}"
        elif username and password:
            self.session.auth = (username, password)
        else:
            raise BugsnagClientError(
                "Please specify either a token or a username and password"
            )

    def _url(self, path_or_uri: str) -> str:
        if urlsplit(path_or_uri).netloc:
            return path_or_uri
        return urljoin(self.base_url, path_or_uri)

    def get_page(self, path_or_uri: str) -> Page:
        url = self._url(path_or_uri)
        logger.debug("GET %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise PageFetchError(f"Request to {url} failed: {exc}", uri=path_or_uri) from exc

        if not response.ok:
            raise PageFetchError(
                f"bugsnag returned error: {response.status_code} {response.reason or ''}".rstrip(),
                uri=path_or_uri,
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise PageFetchError("Failed to decode JSON response", uri=path_or_uri) from exc
        if not isinstance(data, list):
            raise PageFetchError(
                f"Expected a JSON array of records, got {type(data).__name__}",
                uri=path_or_uri,
                status_code=response.status_code,
            )

        return Page(records=data, link_headers=_link_header_values(response))

    def iter_records(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterable[Any]:
        return iter_records(self, build_path(path, params), base_url=self.base_url)


def _link_header_values(response: requests.Response) -> List[str]:
    # requests folds repeated Link headers into one comma separated value
    value = response.headers.get("Link")
    return [value] if value else []


def find_project(client: BugsnagClient, account_name: str, project_name: str) -> str:
    """Return the id of ``project_name`` inside the account named ``account_name``."""

    for account in client.iter_records("/accounts"):
        if account.get("name") != account_name:
            continue
        for project in client.iter_records(f"/accounts/{account['id']}/projects"):
            if project.get("name") == project_name:
                logger.info("Found project %s/%s (%s)", account_name, project_name, project["id"])
                return str(project["id"])
    raise BugsnagClientError(f"Could not find project {account_name}/{project_name}")
