# apps_script_client.py

import json
import logging
from typing import Any, Dict, Optional

import requests

from placement_config import BACKEND_TIMEOUT_SECONDS, CSV_FALLBACK_TIMEOUT_SECONDS, PLACEMENT_BACKEND_URL
from placement_errors import BackendResponseError, BackendTransportError, MalformedResponseError

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class AppsScriptClient:
    """Thin JSON client for the spreadsheet's remote scripting endpoint."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.base_url = (base_url if base_url is not None else PLACEMENT_BACKEND_URL).rstrip("/")
        self.timeout = timeout or BACKEND_TIMEOUT_SECONDS

        if not self.base_url:
            logger.error("placement_backend_url_missing")

    # -------------------------------
    # Internal HTTP helper
    # -------------------------------
    def _request(
        self,
        method: str,
        action: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not self.base_url:
            raise BackendTransportError("PLACEMENT_BACKEND_URL is not configured")

        headers = {"Content-Type": "application/json"}
        logger.debug(
            "backend_request",
            extra={"method": method, "action": action},
        )

        try:
            if method == "GET":
                query = {"action": action}
                query.update(params or {})
                response = requests.get(
                    self.base_url, params=query, headers=headers, timeout=self.timeout
                )
            else:
                body = {"action": action}
                body.update(payload or {})
                response = requests.post(
                    self.base_url, data=json.dumps(body), headers=headers, timeout=self.timeout
                )
        except requests.RequestException as exc:
            logger.error(
                "backend_http_error",
                extra={"action": action, "error": str(exc)},
            )
            raise BackendTransportError(f"{action}: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            logger.error(
                "backend_non_json_response",
                extra={"action": action, "status": response.status_code},
            )
            if not response.ok:
                raise BackendTransportError(
                    f"{action}: HTTP error! status: {response.status_code}"
                ) from exc
            raise MalformedResponseError(f"{action}: response was not JSON") from exc

        if not isinstance(data, dict):
            logger.error("backend_unexpected_payload", extra={"action": action})
            raise MalformedResponseError(f"{action}: expected a JSON object")

        if not data.get("success"):
            logger.error(
                "backend_api_error",
                extra={"action": action, "status": response.status_code, "error": data.get("error")},
            )
            if not response.ok and not data.get("error"):
                raise BackendTransportError(f"{action}: HTTP error! status: {response.status_code}")
            raise BackendResponseError(data.get("error"), action=action)

        return data

    def get(self, action: str, **params: str) -> Dict[str, Any]:
        return self._request("GET", action, params=params)

    def post(self, action: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("POST", action, payload=payload)


def download_csv(url: str, timeout: Optional[float] = None) -> str:
    """Fetch a published sheet export; raises BackendTransportError on any failure."""
    try:
        response = requests.get(
            url,
            headers={"Cache-Control": "no-cache"},
            timeout=timeout or CSV_FALLBACK_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        logger.warning("csv_download_failed", extra={"url": url, "error": str(exc)})
        raise BackendTransportError(f"CSV download failed: {exc}") from exc

    if not response.ok:
        logger.warning(
            "csv_download_http_error",
            extra={"url": url, "status": response.status_code},
        )
        raise BackendTransportError(f"HTTP error! status: {response.status_code}")

    return response.text
