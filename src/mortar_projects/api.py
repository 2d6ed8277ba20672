"""Client for the remote project service."""

import logging
from typing import Any, Protocol

import httpx

from .config import ApiConfig
from .constants import APP_NAME
from .errors import ApiError, RemoteProtocolError
from .models import Project, ProjectStatus

logger = logging.getLogger(APP_NAME)


class ProjectService(Protocol):
    """The remote calls the provisioning workflows depend on."""

    def list_projects(self) -> list[Project]: ...

    def create_project(self, name: str, is_private: bool) -> str: ...

    def get_project(self, project_id: str) -> ProjectStatus: ...

    def delete_project(self, project_id: str) -> None: ...


class HttpProjectService:
    """`ProjectService` backed by the project HTTP API.

    Authentication is HTTP basic with the account email and API key. Every
    non-2xx response and every transport failure is raised as `ApiError`;
    nothing is retried here.
    """

    def __init__(self, config: ApiConfig, transport: httpx.BaseTransport | None = None):
        auth = None
        if config.email and config.api_key:
            auth = httpx.BasicAuth(config.email, config.api_key)
        self.client = httpx.Client(
            base_url=config.url,
            auth=auth,
            headers={"Accept": "application/json"},
            timeout=config.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        logger.debug(f"API {method} {path}")
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"Unable to reach the Mortar API: {e}") from e

        if response.status_code == 401:
            raise ApiError(
                "Authentication failed. Check MORTAR_EMAIL and MORTAR_API_KEY.",
                status_code=401,
            )
        if response.is_error:
            raise ApiError(
                f"Mortar API returned {response.status_code} for {method} {path}: "
                f"{response.text.strip() or response.reason_phrase}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteProtocolError(
                f"Mortar API returned a non-JSON body for {method} {path}."
            ) from e
        if not isinstance(body, dict):
            raise RemoteProtocolError(
                f"Mortar API returned an unexpected body for {method} {path}."
            )
        return body

    def list_projects(self) -> list[Project]:
        body = self._request("GET", "/projects")
        try:
            return [Project.from_payload(p) for p in body.get("projects", [])]
        except (KeyError, TypeError) as e:
            raise RemoteProtocolError(f"Malformed project list: {e}") from e

    def create_project(self, name: str, is_private: bool) -> str:
        body = self._request(
            "POST", "/projects", json={"project_name": name, "is_private": is_private}
        )
        project_id = body.get("project_id")
        if not project_id:
            raise RemoteProtocolError(
                f"Mortar API accepted project {name} but returned no project_id."
            )
        return str(project_id)

    def get_project(self, project_id: str) -> ProjectStatus:
        return ProjectStatus.from_payload(self._request("GET", f"/projects/{project_id}"))

    def delete_project(self, project_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}")
