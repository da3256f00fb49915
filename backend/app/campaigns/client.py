"""Thin client for the upstream TGE campaign API."""
from __future__ import annotations

import hmac
import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

from ..errors import AuthenticationError, NotFoundError, UpstreamError
from .config import CampaignConfig

logger = logging.getLogger("campaigns")


class CampaignClient:
    """Reads campaign records and forwards administrator writes."""

    def __init__(self, config: CampaignConfig) -> None:
        self._config = config

    def check_admin_password(self, candidate: Optional[str]) -> None:
        expected = self._config.admin_password
        if not expected or not candidate:
            raise AuthenticationError("Invalid admin password", code="invalid_admin_password")
        if not hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8")):
            raise AuthenticationError("Invalid admin password", code="invalid_admin_password")

    def list_projects(self) -> List[Dict[str, Any]]:
        payload = self._request("GET", "/v1/projects")
        return _extract_list(payload, "projects")

    def get_project(self, slug: str) -> Dict[str, Any]:
        for project in self.list_projects():
            if project_slug(project) == slug:
                return project
        raise NotFoundError("Project not found")

    def list_platform_images(self) -> Dict[str, Any]:
        payload = self._request("GET", "/v1/platform-images")
        return payload if isinstance(payload, dict) else {"images": payload}

    def submit_project(self, project: Mapping[str, Any], *, admin_password: Optional[str]) -> Dict[str, Any]:
        self.check_admin_password(admin_password)
        payload = self._request("POST", "/v1/projects", body=project, admin=True)
        logger.info("Campaign project submitted", extra={"project_slug": project_slug(project)})
        return payload if isinstance(payload, dict) else {"result": payload}

    def delete_project(self, slug: str, *, admin_password: Optional[str]) -> None:
        self.check_admin_password(admin_password)
        self._request("DELETE", f"/v1/projects/{urllib_parse.quote(slug, safe='')}", admin=True)
        logger.info("Campaign project deleted", extra={"project_slug": slug})

    def _request(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Mapping[str, Any]] = None,
        admin: bool = False,
    ) -> Any:
        headers = {"Accept": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if admin and self._config.admin_password:
            headers["X-ADMIN-KEY"] = self._config.admin_password

        request = urllib_request.Request(
            f"{self._config.api_base_url}{path}", data=data, method=method, headers=headers
        )
        try:
            with urllib_request.urlopen(request, timeout=self._config.timeout_seconds) as response:
                raw = response.read()
        except urllib_error.HTTPError as exc:
            if exc.code == 404:
                raise NotFoundError("Project not found") from exc
            logger.warning("Campaign API error", extra={"campaign_path": path, "campaign_status": exc.code})
            raise UpstreamError("Campaign API request failed") from exc
        except (urllib_error.URLError, TimeoutError, OSError) as exc:
            logger.warning("Campaign API unreachable", extra={"campaign_path": path, "error": str(exc)})
            raise UpstreamError("Campaign API unreachable") from exc

        if not raw:
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise UpstreamError("Malformed campaign API response") from exc


def project_slug(project: Mapping[str, Any]) -> str:
    """Projects are addressed by an explicit slug, or their lower-cased hyphenated name."""

    slug = project.get("slug")
    if slug:
        return str(slug)
    return re.sub(r"\s+", "-", str(project.get("name") or "").strip().lower())


def _extract_list(payload: Any, key: str) -> List[Dict[str, Any]]:
    if isinstance(payload, dict):
        payload = payload.get(key) or payload.get("data") or []
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]
