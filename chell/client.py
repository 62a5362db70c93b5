"""ChRIS filebrowser API client"""

import requests
from typing import Any, Dict, Iterator, List, Optional
from requests.exceptions import ConnectionError, Timeout

from .version import user_agent

PAGE_LIMIT = 100


class ChrisClientError(Exception):
    """Custom exception for ChRIS client errors"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ChrisClient:
    """Client for the ChRIS filebrowser and plugin catalog"""

    def __init__(self, api_base_url: str, token: Optional[str] = None, timeout: int = 10):
        """
        Initialize ChRIS client.

        Args:
            api_base_url: Full API base URL including version, e.g. "http://localhost:8000/api/v1/"
            token: Auth token obtained elsewhere (optional)
            timeout: Request timeout in seconds (default: 10)
        """
        self.api_base = api_base_url.rstrip("/")
        self.session = requests.Session()
        self.session.headers["Accept"] = "application/json"
        self.session.headers["User-Agent"] = user_agent()
        if token:
            self.session.headers["Authorization"] = f"Token {token}"
        self.timeout = timeout

    def _handle_request_error(self, e: Exception) -> None:
        """Convert request exceptions to user-friendly error messages"""
        if isinstance(e, ConnectionError):
            url_parts = self.api_base.split("://")
            if len(url_parts) > 1:
                host_port = url_parts[1].split("/")[0]
            else:
                host_port = "server"
            raise ChrisClientError(f"Connection refused - server not running at {host_port}") from e
        elif isinstance(e, Timeout):
            raise ChrisClientError(f"Request timeout after {self.timeout}s") from e
        elif isinstance(e, requests.exceptions.HTTPError):
            if e.response is None:
                raise ChrisClientError("HTTP error") from e
            status_code = e.response.status_code
            try:
                detail = e.response.json().get("detail", "")
            except ValueError:
                detail = ""
            if detail:
                raise ChrisClientError(detail, status_code) from e

            if status_code == 404:
                raise ChrisClientError("No such file or directory", status_code) from e
            elif status_code in (401, 403):
                raise ChrisClientError("Permission denied", status_code) from e
            elif status_code == 500:
                raise ChrisClientError("Internal server error", status_code) from e
            elif status_code == 502:
                raise ChrisClientError("Bad Gateway - backend service unavailable", status_code) from e
            else:
                raise ChrisClientError(f"HTTP error {status_code}", status_code) from e
        else:
            raise ChrisClientError(str(e)) from e

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except Exception as e:
            self._handle_request_error(e)

    def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except Exception as e:
            self._handle_request_error(e)

    def _paginate(self, url: str) -> Iterator[Dict[str, Any]]:
        """Yield every record of a paginated collection, following 'next'"""
        params: Optional[Dict[str, Any]] = {"limit": PAGE_LIMIT, "offset": 0}
        while url:
            data = self._get(url, params)
            for record in data.get("results") or []:
                yield record
            # 'next' already carries limit/offset
            url = data.get("next")
            params = None

    def folder_get(self, path: str) -> Optional[Dict[str, Any]]:
        """Look up a folder record by absolute path, None if it doesn't exist"""
        # The filebrowser stores paths relative to the root
        data = self._get(
            f"{self.api_base}/filebrowser/search/",
            {"path": path.strip("/")},
        )
        results = data.get("results") or []
        return results[0] if results else None

    def folder_children(self, folder: Dict[str, Any]) -> List[Dict[str, Any]]:
        """List sub-folder records"""
        url = folder.get("folders")
        return list(self._paginate(url)) if url else []

    def folder_files(self, folder: Dict[str, Any]) -> List[Dict[str, Any]]:
        """List file records"""
        url = folder.get("files")
        return list(self._paginate(url)) if url else []

    def folder_links(self, folder: Dict[str, Any]) -> List[Dict[str, Any]]:
        """List link-file records"""
        url = folder.get("link_files")
        return list(self._paginate(url)) if url else []

    def folder_create(self, path: str) -> Dict[str, Any]:
        """Create a folder by absolute path and return its record"""
        return self._post(f"{self.api_base}/filebrowser/", {"path": path.strip("/")})

    def plugins(self) -> List[Dict[str, Any]]:
        """List all registered plugins"""
        return list(self._paginate(f"{self.api_base}/plugins/"))
