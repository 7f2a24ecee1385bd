"""
Google Workspace Admin Directory gateway.

All outbound calls to the Directory API go through this class. Direct
HTTP calls to Google in services or blueprints are FORBIDDEN.

  - Service-account credentials with domain-wide delegation, impersonating
    GSUITE_ADMIN_EMAIL, scope admin.directory.group.readonly
  - Authorised requests via google-auth's AuthorizedSession (a
    requests.Session subclass that refreshes the access token itself)
  - Pagination followed through nextPageToken, 200 items per page
  - No retries: each failure is mapped once to the exception hierarchy
    and the caller decides (group sync keeps its cached membership)

Error mapping:
  missing admin email / non-delegatable credentials → ConfigurationError
  HTTP 403 or token refresh refused                 → WorkspaceAuthorizationError
  HTTP 404                                          → WorkspaceNotFoundError
  anything else                                     → WorkspaceError

Testability: pass a mock `session` to WorkspaceDirectoryGateway() in tests
instead of letting it build an AuthorizedSession from real credentials.
"""

from __future__ import annotations

import logging
import time

import google.auth
import requests
from flask import current_app
from google.auth import exceptions as google_auth_exceptions
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from actionhub.core.exceptions import (
    ConfigurationError,
    WorkspaceAuthorizationError,
    WorkspaceError,
    WorkspaceNotFoundError,
)

logger = logging.getLogger(__name__)

DIRECTORY_BASE_URL = "https://admin.googleapis.com/admin/directory/v1"
GROUP_READONLY_SCOPE = "https://www.googleapis.com/auth/admin.directory.group.readonly"
PAGE_SIZE = 200
_DEFAULT_TIMEOUT = 20

MEMBER_TYPE_USER = "USER"
MEMBER_TYPE_GROUP = "GROUP"


def map_group(raw: dict) -> dict:
    """Directory group resource → application group record."""
    key = raw.get("email") or raw.get("id") or ""
    return {
        "id": key.lower(),
        "name": raw.get("name") or "",
        "description": raw.get("description"),
    }


class WorkspaceDirectoryGateway:
    """Read-only client for groups and group members.

    Usage:
        from actionhub.integrations.workspace_gateway import get_workspace_gateway
        groups = get_workspace_gateway().list_domain_groups()
    """

    def __init__(
        self,
        admin_email: str | None,
        credentials_file: str | None = None,
        session: requests.Session | None = None,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> None:
        self.admin_email = (admin_email or "").strip() or None
        self.credentials_file = credentials_file
        self.timeout = timeout
        # Inject custom session for testing; create an authorised one lazily otherwise.
        self._session: requests.Session | None = session

    # ── Configuration ─────────────────────────────────────────────────────────

    @property
    def is_configured(self) -> bool:
        return bool(self.admin_email)

    def _require_admin_email(self) -> str:
        if not self.admin_email:
            raise ConfigurationError(
                "GSUITE_ADMIN_EMAIL is not configured; Workspace groups cannot be read"
            )
        if "@" not in self.admin_email:
            raise ConfigurationError(f"GSUITE_ADMIN_EMAIL is not an email address: {self.admin_email!r}")
        return self.admin_email

    @property
    def domain(self) -> str:
        """Workspace domain, derived from the delegated admin address."""
        return self._require_admin_email().split("@", 1)[1].lower()

    # ── HTTP session ──────────────────────────────────────────────────────────

    def _build_credentials(self):
        admin_email = self._require_admin_email()
        try:
            if self.credentials_file:
                credentials = service_account.Credentials.from_service_account_file(
                    self.credentials_file, scopes=[GROUP_READONLY_SCOPE],
                )
            else:
                credentials, _ = google.auth.default(scopes=[GROUP_READONLY_SCOPE])
        except (OSError, ValueError, google_auth_exceptions.DefaultCredentialsError) as exc:
            raise ConfigurationError(f"Google service-account credentials unavailable: {exc}") from exc

        if not hasattr(credentials, "with_subject"):
            raise ConfigurationError(
                "Domain-wide delegation requires service-account credentials "
                "(set GOOGLE_APPLICATION_CREDENTIALS to a key file)"
            )
        return credentials.with_subject(admin_email)

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the authorised session."""
        if self._session is None:
            self._session = AuthorizedSession(self._build_credentials())
        return self._session

    # ── Core request ──────────────────────────────────────────────────────────

    def _get(self, path: str, params: dict) -> dict:
        self._require_admin_email()
        url = f"{DIRECTORY_BASE_URL}{path}"
        t0 = time.perf_counter()
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except google_auth_exceptions.RefreshError as exc:
            # unauthorized_client: the service account lacks domain-wide delegation
            logger.warning("Workspace token refresh refused for %s: %s", self.admin_email, exc)
            raise WorkspaceAuthorizationError(
                "Service account is not authorised for domain-wide delegation"
            ) from exc
        except (requests.RequestException, google_auth_exceptions.TransportError) as exc:
            logger.error("Workspace request failed path=%s: %s", path, exc)
            raise WorkspaceError("Unexpected error contacting Google Workspace") from exc

        duration_ms = int((time.perf_counter() - t0) * 1000)
        logger.debug("Workspace GET %s → %s (%dms)", path, resp.status_code, duration_ms)

        if resp.status_code == 403:
            raise WorkspaceAuthorizationError(
                "Permission denied by Google Workspace: check domain-wide delegation "
                "and that the Admin SDK API is enabled",
                status_code=403,
            )
        if resp.status_code == 404:
            raise WorkspaceNotFoundError(
                "Google Workspace resource not found (user, group or domain)",
                status_code=404,
            )
        if not resp.ok:
            logger.error("Workspace GET %s returned HTTP %s: %s", path, resp.status_code, resp.text[:500])
            raise WorkspaceError(
                "Unexpected error reading Google Workspace groups", status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise WorkspaceError("Google Workspace returned a non-JSON response", status_code=resp.status_code) from exc

    def _paginate(self, path: str, params: dict, items_key: str) -> list[dict]:
        items: list[dict] = []
        page_token = None
        while True:
            query = dict(params, maxResults=PAGE_SIZE)
            if page_token:
                query["pageToken"] = page_token
            body = self._get(path, query)
            items.extend(body.get(items_key) or [])
            page_token = body.get("nextPageToken")
            if not page_token:
                return items

    # ── Public API ────────────────────────────────────────────────────────────

    def list_domain_groups(self) -> list[dict]:
        """All groups of the admin's domain, mapped to application records."""
        groups = [map_group(g) for g in self._paginate("/groups", {"domain": self.domain}, "groups")]
        logger.info("Listed %d Workspace groups for domain %s", len(groups), self.domain)
        return groups

    def list_groups_for_member(self, member_key: str) -> list[dict]:
        """Groups that directly contain a user or group (by email)."""
        return [map_group(g) for g in self._paginate("/groups", {"userKey": member_key}, "groups")]

    def list_group_members(self, group_key: str) -> list[dict]:
        """Direct members of a group: ``{"email", "type"}`` with type USER or GROUP."""
        raw_members = self._paginate(f"/groups/{group_key}/members", {}, "members")
        return [
            {"email": (m.get("email") or "").lower(), "type": m.get("type") or MEMBER_TYPE_USER}
            for m in raw_members
            if m.get("email")
        ]


# ── Module-level accessor ──────────────────────────────────────────────────────


def get_workspace_gateway() -> WorkspaceDirectoryGateway:
    """Return the app-scoped gateway, building it from config on first use."""
    gateway = current_app.extensions.get("workspace_gateway")
    if gateway is None:
        gateway = WorkspaceDirectoryGateway(
            admin_email=current_app.config.get("GSUITE_ADMIN_EMAIL"),
            credentials_file=current_app.config.get("GOOGLE_APPLICATION_CREDENTIALS"),
            timeout=current_app.config.get("WORKSPACE_TIMEOUT", _DEFAULT_TIMEOUT),
        )
        current_app.extensions["workspace_gateway"] = gateway
    return gateway
