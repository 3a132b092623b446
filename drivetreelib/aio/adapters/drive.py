"""Google Drive v3 listing client.

Lists the children of a Drive folder page by page. The Google client
library is blocking, so each request runs in a worker thread with its own
authorized HTTP object (``httplib2`` connections are not thread-safe).

Requires the ``drive`` extra::

    pip install drivetreelib[drive]
"""

import asyncio
import json
import logging
import threading
from typing import Any, Dict, Optional, Set

import google_auth_httplib2
import httplib2
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ...config import DriveConfig
from ..core.client import AsyncListingClient, ListingPage, TransientListingError
from ..core.node import AccessControlEntry, RemoteItem

logger = logging.getLogger(__name__)

DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"

_TRANSIENT_STATUSES = {429, 500, 502, 503, 504}
_RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}
_ITEM_FIELDS = {"id", "name", "mimeType", "permissions"}


def authorize(config: DriveConfig) -> Credentials:
    """Get read-only Drive credentials for ``config.user``.

    Reuses the cached token when possible, refreshes it when expired and
    otherwise runs the installed-app consent flow in a local browser.
    """
    scopes = [DRIVE_READONLY_SCOPE]
    credentials = None
    if config.token_path.exists():
        credentials = Credentials.from_authorized_user_file(str(config.token_path), scopes)

    if credentials is not None and credentials.valid:
        return credentials

    if credentials is not None and credentials.expired and credentials.refresh_token:
        logger.info("Refreshing Drive token for %s", config.user)
        credentials.refresh(Request())
    else:
        logger.info("Authorizing %s with %s", config.user, config.client_secret_path)
        flow = InstalledAppFlow.from_client_secrets_file(str(config.client_secret_path), scopes)
        credentials = flow.run_local_server(port=0)

    config.token_path.parent.mkdir(parents=True, exist_ok=True)
    config.token_path.write_text(credentials.to_json(), encoding="utf-8")
    return credentials


def file_to_item(resource: Dict[str, Any]) -> RemoteItem:
    """Convert a Drive ``File`` resource into a RemoteItem."""
    permissions = None
    if resource.get("permissions") is not None:
        permissions = [
            AccessControlEntry(
                type=p.get("type"),
                role=p.get("role"),
                id=p.get("id"),
                email_address=p.get("emailAddress"),
                domain=p.get("domain"),
            )
            for p in resource["permissions"]
        ]
    return RemoteItem(
        id=resource["id"],
        name=resource.get("name", ""),
        mime_type=resource.get("mimeType", ""),
        metadata={k: v for k, v in resource.items() if k not in _ITEM_FIELDS},
        permissions=permissions,
    )


def _error_reasons(error: HttpError) -> Set[str]:
    """The ``reason`` codes of a Drive error response body."""
    try:
        body = json.loads(error.content.decode("utf-8"))
    except (AttributeError, UnicodeDecodeError, ValueError):
        return set()
    errors = body.get("error", {}).get("errors", []) if isinstance(body, dict) else []
    return {e.get("reason") for e in errors if isinstance(e, dict)}


def _is_transient(error: HttpError) -> bool:
    status = getattr(error.resp, "status", None)
    if status in _TRANSIENT_STATUSES:
        return True
    if status == 403:
        return bool(_error_reasons(error) & _RATE_LIMIT_REASONS)
    return False


def _retry_after(error: HttpError) -> Optional[float]:
    value = error.resp.get("retry-after") if hasattr(error.resp, "get") else None
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class DriveListingClient(AsyncListingClient):
    """Listing client backed by the Google Drive v3 API.

    Example:
        credentials = authorize(DriveConfig(user="ogp"))
        async with DriveListingClient(credentials) as client:
            root = await crawl_tree(client, root_id)
    """

    def __init__(
        self,
        credentials: Credentials,
        application_name: str = "DriverPermissionScanner",
        page_size: int = 1000,
        fields: str = "*",
    ):
        """Initialize the client.

        Args:
            credentials: Authorized credentials with a Drive read scope
            application_name: Sent as the HTTP user agent
            page_size: Items requested per page (Drive allows up to 1000)
            fields: Drive field mask applied to each listed file
        """
        self.credentials = credentials
        self.application_name = application_name
        self.page_size = page_size
        self.fields = fields
        self._service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        self._local = threading.local()
        self.requests = 0

    @classmethod
    def from_config(cls, config: DriveConfig) -> "DriveListingClient":
        return cls(authorize(config), config.application_name, config.page_size)

    def _http(self) -> google_auth_httplib2.AuthorizedHttp:
        http = getattr(self._local, "http", None)
        if http is None:
            http = google_auth_httplib2.AuthorizedHttp(
                self.credentials, http=httplib2.Http()
            )
            self._local.http = http
        return http

    def _execute(self, request) -> Dict[str, Any]:
        request.headers["user-agent"] = self.application_name
        try:
            return request.execute(http=self._http())
        except HttpError as e:
            if _is_transient(e):
                raise TransientListingError(str(e), retry_after=_retry_after(e)) from e
            raise
        except (OSError, httplib2.HttpLib2Error) as e:
            raise TransientListingError(f"Network error: {e}") from e

    async def list_children(self, parent_id: str, page_token: Optional[str] = None) -> ListingPage:
        request = self._service.files().list(
            q=f"'{parent_id}' in parents and trashed = false",
            fields=f"nextPageToken, files({self.fields})",
            pageSize=self.page_size,
            pageToken=page_token or None,
            supportsAllDrives=True,
            includeItemsFromAllDrives=True,
        )
        self.requests += 1
        response = await asyncio.to_thread(self._execute, request)
        return ListingPage(
            items=[file_to_item(f) for f in response.get("files", [])],
            next_page_token=response.get("nextPageToken"),
        )

    async def get_item(self, item_id: str) -> RemoteItem:
        request = self._service.files().get(
            fileId=item_id,
            fields=self.fields,
            supportsAllDrives=True,
        )
        self.requests += 1
        return file_to_item(await asyncio.to_thread(self._execute, request))

    async def get_stats(self) -> dict:
        return {'requests': self.requests, 'page_size': self.page_size}

    async def close(self):
        self._service.close()
