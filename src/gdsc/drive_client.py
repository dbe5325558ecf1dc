#!/usr/bin/env python3
"""Google Drive listing client for GDSC."""

import asyncio
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple

import requests
import certifi
from requests.adapters import HTTPAdapter
from dateutil import parser as date_parser

from .errors import (
    DriveError,
    NoCredentialError,
    UnauthorizedError,
    QuotaExceededError,
    AccessDeniedError,
    InvalidCursorError,
    NotFoundError,
    MalformedQueryError,
    TransportError,
)
from .models import (
    FOLDER_MIME_TYPE,
    BrowseChildren,
    ChildCount,
    DirectoryEntry,
    EntryKind,
    ListingPage,
    ListingQuery,
    SearchGlobal,
    SearchWithin,
)


logger = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

QUOTA_REASONS = {
    'dailyLimitExceeded',
    'dailyLimitExceededUnreg',
    'rateLimitExceeded',
    'userRateLimitExceeded',
    'quotaExceeded',
}
BLOCKED_REASONS = {'API_KEY_SERVICE_BLOCKED', 'API_KEY_INVALID', 'keyInvalid'}


def format_bound(bound: datetime) -> str:
    """Format a modification-time bound as RFC 3339 UTC (``...Z``)."""
    if bound.tzinfo is None:
        bound = bound.replace(tzinfo=timezone.utc)
    text = bound.astimezone(timezone.utc).isoformat(timespec='milliseconds')
    return text.replace('+00:00', 'Z')


def escape_literal(text: str) -> str:
    """Escape a value for use inside a quoted Drive query literal."""
    return text.replace('\\', '\\\\').replace("'", "\\'")


def query_clauses(query: ListingQuery, modified_since: Optional[datetime] = None) -> Tuple[List[str], Dict[str, str]]:
    """Build the ``q`` clauses and extra request parameters for a query shape.

    Args:
        query: One of BrowseChildren, SearchWithin, SearchGlobal
        modified_since: Lower bound for ``modifiedTime`` (None = unbounded)

    Returns:
        Tuple of (list of clauses joined by ``and``, extra parameters)
    """
    clauses = ["trashed = false"]
    extra: Dict[str, str] = {}

    if isinstance(query, BrowseChildren):
        clauses.append(f"'{escape_literal(query.container_id)}' in parents")
    elif isinstance(query, SearchWithin):
        clauses.append(f"name contains '{escape_literal(query.text)}'")
        clauses.append(f"'{escape_literal(query.container_id)}' in parents")
    elif isinstance(query, SearchGlobal):
        clauses.append(f"name contains '{escape_literal(query.text)}'")
        # corpora=allDrives is rejected together with an 'in parents' clause
        extra['corpora'] = 'allDrives'
    else:
        raise TypeError(f"Unsupported query shape: {query!r}")

    if modified_since is not None:
        clauses.append(f"modifiedTime > '{format_bound(modified_since)}'")

    return clauses, extra


class DriveClient:
    """Client for the Google Drive v3 ``files.list`` endpoint."""

    API_BASE = "https://www.googleapis.com/drive/v3/files"
    MAX_PAGE_SIZE = 1000
    REQUEST_TIMEOUT = 30
    ORDER_BY = "folder, modifiedTime desc"
    FIELDS = (
        "nextPageToken, files(id, name, mimeType, size, modifiedTime, "
        "createdTime, webViewLink, iconLink, thumbnailLink)"
    )

    DEFAULT_MAX_CONNECTIONS = 20

    def __init__(self, api_key: Optional[str] = None, max_connections: int = DEFAULT_MAX_CONNECTIONS):
        """Initialize Drive client.

        Args:
            api_key: Google API key; calls fail with NoCredentialError without it
            max_connections: Pooled connections kept open, at least the enrichment batch width
        """
        self.api_key = api_key or ''
        self.max_connections = max(1, int(max_connections))
        self._session = requests.Session()
        self._session.verify = certifi.where()  # Explicit certificate validation
        adapter = HTTPAdapter(pool_connections=1, pool_maxsize=self.max_connections)
        self._session.mount('https://', adapter)

    def _sanitize_for_log(self, text: str) -> str:
        """Remove credentials from log output.

        Args:
            text: Text to sanitize

        Returns:
            Sanitized text with the API key redacted
        """
        text = re.sub(r'(key|access_token)=[\w\-\.]+', r'\1=***REDACTED***', text, flags=re.IGNORECASE)
        text = re.sub(r'Bearer\s+[\w\-\.]+', 'Bearer ***REDACTED***', text, flags=re.IGNORECASE)
        if self.api_key:
            text = text.replace(self.api_key, '***REDACTED***')
        return text

    def _ensure_credential(self) -> None:
        if not self.api_key:
            raise NoCredentialError("No API key configured.")

    def _api_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Issue one ``files.list`` request and decode the JSON body.

        Args:
            params: Query string parameters (the key is added here)

        Returns:
            Decoded response body

        Raises:
            DriveError: Typed failure for any non-2xx response or transport problem
        """
        self._ensure_credential()

        params = dict(params)
        params['key'] = self.api_key
        params['supportsAllDrives'] = 'true'
        params['includeItemsFromAllDrives'] = 'true'

        try:
            response = self._session.request(
                'GET', self.API_BASE, params=params,
                headers={'Accept': 'application/json'},
                timeout=self.REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Drive request failed: {self._sanitize_for_log(str(e))}")
            raise TransportError(f"Network error: {self._sanitize_for_log(str(e))}") from e

        if not response.ok:
            self._raise_for_error(response)

        try:
            return response.json()
        except ValueError as e:
            raise TransportError("Drive returned an unreadable response", status=response.status_code) from e

    def _raise_for_error(self, response: requests.Response) -> None:
        """Translate an error response into the typed taxonomy.

        Raises:
            DriveError: Always
        """
        status = response.status_code
        text = response.text or ''
        try:
            body = response.json()
        except ValueError:
            body = None

        logger.error(f"Drive API error {status}: {self._sanitize_for_log(text)}")

        error = body.get('error', {}) if isinstance(body, dict) else {}
        if not isinstance(error, dict):
            error = {}
        message = error.get('message') or ''
        errors = error.get('errors') or []
        first = errors[0] if errors and isinstance(errors[0], dict) else {}
        reason = first.get('reason')
        location = first.get('location')
        detail_reasons = {d.get('reason') for d in error.get('details') or [] if isinstance(d, dict)}

        if status == 401:
            raise UnauthorizedError(f"API key rejected: {message or 'unauthorized'}", status, reason)

        if status == 403:
            if detail_reasons & BLOCKED_REASONS or reason in BLOCKED_REASONS:
                raise UnauthorizedError(
                    "API key is blocked for the Google Drive API. Allow the Drive API for this key.",
                    status, reason or 'API_KEY_SERVICE_BLOCKED')
            if reason in QUOTA_REASONS or detail_reasons & QUOTA_REASONS:
                raise QuotaExceededError("API quota exceeded for this key.", status, reason)
            raise AccessDeniedError(
                f"Access denied: {message or 'the folder is not shared with this key'}", status, reason)

        if status == 429:
            raise QuotaExceededError("Too many requests.", status, reason)

        if status == 400:
            if location == 'pageToken' or 'pageToken' in text:
                raise InvalidCursorError("Pagination cursor was rejected.", status, reason)
            raise MalformedQueryError(f"Invalid query: {message or 'bad request'}", status, reason)

        if status == 404:
            raise NotFoundError("Folder not found or the folder ID is wrong.", status, reason)

        raise TransportError(f"HTTP error {status}", status, reason)

    def _parse_entry(self, item: Dict[str, Any]) -> DirectoryEntry:
        """Map a Drive ``files`` resource to a DirectoryEntry."""
        mime_type = item.get('mimeType')
        is_folder = mime_type == FOLDER_MIME_TYPE

        modified = item.get('modifiedTime')
        created = item.get('createdTime')
        size = item.get('size')

        return DirectoryEntry(
            id=item['id'],
            name=item.get('name', ''),
            kind=EntryKind.FOLDER if is_folder else EntryKind.FILE,
            last_modified=date_parser.isoparse(modified) if modified else _EPOCH,
            created_at=date_parser.isoparse(created) if created else None,
            external_url=item.get('webViewLink', ''),
            size_bytes=int(size) if size is not None and not is_folder else None,
            content_type=None if is_folder else mime_type,
            icon_link=item.get('iconLink'),
            thumbnail_link=item.get('thumbnailLink'),
        )

    def fetch_page(self, query: ListingQuery, modified_since: Optional[datetime] = None,
                   page_size: int = MAX_PAGE_SIZE, page_token: Optional[str] = None) -> ListingPage:
        """Fetch one page of a listing.

        Args:
            query: Query shape (browse, search within, search global)
            modified_since: Only entries modified after this instant (None = unbounded)
            page_size: Page size hint, clamped to MAX_PAGE_SIZE
            page_token: Continuation cursor from the previous page, passed back verbatim

        Returns:
            ListingPage with entries and the next cursor (None on the final page)
        """
        clauses, extra = query_clauses(query, modified_since)
        actual_page_size = max(1, min(int(page_size), self.MAX_PAGE_SIZE))

        params: Dict[str, Any] = {
            'q': " and ".join(clauses),
            'fields': self.FIELDS,
            'pageSize': str(actual_page_size),
            'orderBy': self.ORDER_BY,
        }
        params.update(extra)
        if page_token:
            params['pageToken'] = page_token

        data = self._api_request(params)
        entries = []
        for item in data.get('files') or []:
            try:
                entries.append(self._parse_entry(item))
            except (KeyError, ValueError, OverflowError) as e:
                logger.warning(f"Skipping unreadable entry {item.get('id')}: {e}")

        page = ListingPage(entries=entries, continuation_cursor=data.get('nextPageToken') or None)
        logger.debug(f"Fetched page with {len(entries)} entries (more={page.has_more})")
        return page

    def fetch_child_folder_count(self, container_id: str) -> ChildCount:
        """Count folder-kind direct children of a container.

        A single page is requested, so counts above MAX_PAGE_SIZE are capped.
        Any failure yields ``ChildCount.unknown()`` instead of raising.

        Args:
            container_id: Folder ID

        Returns:
            Counted(n) or Unknown
        """
        params = {
            'q': (f"'{escape_literal(container_id)}' in parents and "
                  f"mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"),
            'pageSize': str(self.MAX_PAGE_SIZE),
            'fields': 'files(id)',
        }
        try:
            data = self._api_request(params)
        except DriveError as e:
            logger.debug(f"Child folder count failed for {container_id}: {e}")
            return ChildCount.unknown()
        return ChildCount.counted(len(data.get('files') or []))

    def close(self) -> None:
        self._session.close()


class AsyncDriveClient:
    """Asyncio facade over DriveClient.

    Each call runs the blocking request on the facade's own thread pool so
    the event loop only suspends on network I/O. The pool has one worker per
    pooled connection, so a whole enrichment batch is in flight at once.
    """

    MAX_PAGE_SIZE = DriveClient.MAX_PAGE_SIZE

    def __init__(self, client: DriveClient, max_workers: Optional[int] = None):
        self._client = client
        self.max_workers = max_workers or client.max_connections
        self.executor = ThreadPoolExecutor(max_workers=self.max_workers,
                                           thread_name_prefix='gdsc-drive')

    @property
    def api_key(self) -> str:
        return self._client.api_key

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, func, *args)

    async def fetch_page(self, query: ListingQuery, modified_since: Optional[datetime] = None,
                         page_size: int = DriveClient.MAX_PAGE_SIZE,
                         page_token: Optional[str] = None) -> ListingPage:
        return await self._run(
            self._client.fetch_page, query, modified_since, page_size, page_token)

    async def fetch_child_folder_count(self, container_id: str) -> ChildCount:
        return await self._run(self._client.fetch_child_folder_count, container_id)

    def close(self) -> None:
        self.executor.shutdown(wait=False)
        self._client.close()
