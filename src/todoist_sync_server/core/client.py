import logging
import threading
from typing import Any

import requests

from ..config import Config
from ..exceptions import (
    ConfigurationError,
    MalformedResponseError,
    RemoteCallError,
)
from .responses import (
    BareListing,
    EnvelopeListing,
    RemoteProject,
    RemoteTask,
    decode_items,
    decode_listing,
)

logger = logging.getLogger(__name__)

# Safety net against a server that keeps returning the same cursor.
MAX_PAGES = 1000


class TodoistClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.base_url = config.api_url.rstrip("/")

    @property
    def session(self) -> requests.Session:
        """Return the current thread's session."""
        return self._get_session()

    @property
    def has_credentials(self) -> bool:
        return self.config.has_token

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.api_token}",
                "Content-Type": "application/json",
            }
        )
        return session

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
    ) -> Any:
        """
        Make a request to the Todoist REST API and return the decoded body.

        Raises:
            ConfigurationError: If no token is configured or Todoist
                rejects it (HTTP 401/403).
            RemoteCallError: On transport errors, timeouts and any other
                non-2xx status.
            MalformedResponseError: If a non-empty body is not JSON.
        """
        if not self.has_credentials:
            raise ConfigurationError("Todoist API token is not configured")

        url = f"{self.base_url}{path}"
        session = self._get_session()
        try:
            response = session.request(
                method,
                url,
                params=params,
                json=json,
                timeout=(
                    self.config.connect_timeout,
                    self.config.request_timeout,
                ),
            )
        except requests.RequestException as exc:
            raise RemoteCallError(f"{method} {path} failed: {exc}") from exc

        status = response.status_code
        if status in (401, 403):
            raise ConfigurationError(
                f"Todoist rejected the API token (HTTP {status})"
            )
        if not response.ok:
            raise RemoteCallError(
                f"{method} {path} returned HTTP {status}: {response.text[:200]}",
                status_code=status,
            )

        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"{method} {path} returned a non-JSON body"
            ) from exc

    def _list_all(self, path: str) -> list[dict[str, Any]]:
        """Collect every item of a listing endpoint, following cursors."""
        items: list[dict[str, Any]] = []
        params: dict[str, Any] = {}
        for _ in range(MAX_PAGES):
            listing = decode_listing(self._request("GET", path, params=params))
            items.extend(listing.items)
            match listing:
                case EnvelopeListing(next_cursor=str() as cursor) if cursor:
                    params = {"cursor": cursor}
                case EnvelopeListing() | BareListing():
                    return items
        raise MalformedResponseError(
            f"GET {path} did not finish paginating after {MAX_PAGES} pages"
        )

    def _created_id(self, payload: Any, path: str) -> str:
        match payload:
            case {"id": str() | int() as remote_id}:
                return str(remote_id)
            case _:
                raise MalformedResponseError(
                    f"POST {path} response has no 'id' field"
                )

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> list[RemoteProject]:
        """
        List every project visible to the token.
        """
        return decode_items(self._list_all("/projects"), RemoteProject)

    def create_project(self, name: str) -> str:
        """
        Create a project and return its Todoist id.
        """
        payload = self._request("POST", "/projects", json={"name": name})
        remote_id = self._created_id(payload, "/projects")
        logger.debug("Created Todoist project %s (%s)", remote_id, name)
        return remote_id

    def update_project(self, remote_id: str, name: str) -> None:
        """
        Rename an existing project.
        """
        self._request("POST", f"/projects/{remote_id}", json={"name": name})

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def list_tasks(self) -> list[RemoteTask]:
        """
        List every active task visible to the token.
        """
        return decode_items(self._list_all("/tasks"), RemoteTask)

    def create_task(self, fields: dict[str, Any]) -> str:
        """
        Create a task from a payload built by ``build_task_payload``.
        """
        payload = self._request("POST", "/tasks", json=fields)
        remote_id = self._created_id(payload, "/tasks")
        logger.debug("Created Todoist task %s", remote_id)
        return remote_id

    def update_task(self, remote_id: str, fields: dict[str, Any]) -> None:
        self._request("POST", f"/tasks/{remote_id}", json=fields)

    def close_task(self, remote_id: str) -> None:
        self._request("POST", f"/tasks/{remote_id}/close")

    def reopen_task(self, remote_id: str) -> None:
        self._request("POST", f"/tasks/{remote_id}/reopen")

    def validate_connection(self) -> int:
        """
        Validate the token by listing projects.
        Returns the number of projects visible to the token.
        """
        return len(self.list_projects())
