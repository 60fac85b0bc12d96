import time
import requests
from typing import Any, Dict, Optional
from app.config import (
    GRAPH_API_URL,
    GRAPH_REFRESH_URL,
    HTTP_CONNECT_TIMEOUT_S,
    HTTP_READ_TIMEOUT_S,
    PUBLISH_MAX_POLLS,
    PUBLISH_POLL_INTERVAL_S,
)

class GraphApiError(RuntimeError):
    def __init__(self, code: str, message: str, retryable: bool, details: Optional[dict] = None):
        super().__init__(message)
        self.code = code
        self.retryable = retryable
        self.details = details

class GraphApiClient:
    """Action executor for the Instagram Graph API."""

    def __init__(
        self,
        base_url: str = GRAPH_API_URL,
        refresh_url: str = GRAPH_REFRESH_URL,
        poll_interval_s: float = PUBLISH_POLL_INTERVAL_S,
        max_polls: int = PUBLISH_MAX_POLLS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.refresh_url = refresh_url
        self.poll_interval_s = poll_interval_s
        self.max_polls = max_polls
        self.http = session or requests.Session()

    def _parse_error(self, resp: requests.Response) -> dict:
        try:
            body = resp.json()
        except ValueError:
            body = None

        # Graph API errors look like {"error": {"message", "type", "code"}}
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            err = body["error"]
            return {
                "code": "GRAPH_API_ERROR",
                "message": err.get("message", f"HTTP {resp.status_code}"),
                "retryable": resp.status_code >= 500 or resp.status_code == 429,
                "details": err,
            }

        return {
            "code": "GRAPH_HTTP_ERROR",
            "message": f"Graph API returned HTTP {resp.status_code}",
            "retryable": resp.status_code >= 500 or resp.status_code == 429,
            "details": body if isinstance(body, dict) else None,
        }

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        timeout = (HTTP_CONNECT_TIMEOUT_S, HTTP_READ_TIMEOUT_S)
        try:
            resp = self.http.request(method, url, timeout=timeout, **kwargs)
        except requests.Timeout as e:
            raise GraphApiError("SERVICE_TIMEOUT", str(e), True)
        except requests.RequestException as e:
            raise GraphApiError("SERVICE_UNREACHABLE", str(e), True)

        if resp.status_code < 200 or resp.status_code >= 300:
            err = self._parse_error(resp)
            raise GraphApiError(err["code"], err["message"], err["retryable"], err.get("details"))

        try:
            out = resp.json()
        except ValueError:
            raise GraphApiError("BAD_RESPONSE", "Graph API returned non-JSON", True)

        if not isinstance(out, dict):
            raise GraphApiError("BAD_RESPONSE", "Graph API returned a non-object body", True)

        # Some endpoints answer 200 with an error object
        if isinstance(out.get("error"), dict):
            err = out["error"]
            raise GraphApiError("GRAPH_API_ERROR", err.get("message", "Graph API error"), False, err)

        return out

    def _require(self, out: Dict[str, Any], key: str) -> Any:
        if key not in out:
            raise GraphApiError("BAD_RESPONSE", f"Missing '{key}' in Graph API response", True)
        return out[key]

    # Publishing

    def create_media_container(
        self,
        ig_user_id: str,
        access_token: str,
        media_url: str,
        caption: Optional[str] = None,
        media_type: str = "IMAGE",
    ) -> str:
        # Container creation wants form-urlencoded, not JSON
        data = {"access_token": access_token}
        if media_type == "IMAGE":
            data["image_url"] = media_url
        else:
            data["video_url"] = media_url
            data["media_type"] = "REELS"
        if caption:
            data["caption"] = caption
        out = self._request("POST", f"{self.base_url}/{ig_user_id}/media", data=data)
        return str(self._require(out, "id"))

    def get_container_status(self, container_id: str, access_token: str) -> str:
        out = self._request(
            "GET",
            f"{self.base_url}/{container_id}",
            params={"fields": "status_code", "access_token": access_token},
        )
        return str(out.get("status_code", ""))

    def publish_container(self, ig_user_id: str, container_id: str, access_token: str) -> str:
        out = self._request(
            "POST",
            f"{self.base_url}/{ig_user_id}/media_publish",
            data={"access_token": access_token, "creation_id": container_id},
        )
        return str(self._require(out, "id"))

    def publish_media(
        self,
        ig_user_id: str,
        access_token: str,
        media_url: str,
        caption: Optional[str] = None,
        media_type: str = "IMAGE",
    ) -> str:
        """Create a container, wait until it is FINISHED, publish it."""
        container_id = self.create_media_container(ig_user_id, access_token, media_url, caption, media_type)

        status = self.get_container_status(container_id, access_token)
        polls = 0
        while status == "IN_PROGRESS" and polls < self.max_polls:
            time.sleep(self.poll_interval_s)
            polls += 1
            status = self.get_container_status(container_id, access_token)

        if status != "FINISHED":
            raise GraphApiError(
                "MEDIA_NOT_READY",
                f"Media processing failed with status: {status or 'UNKNOWN'}",
                status == "IN_PROGRESS",
            )

        return self.publish_container(ig_user_id, container_id, access_token)

    # Engagement

    def post_comment(self, media_id: str, message: str, access_token: str) -> str:
        out = self._request(
            "POST",
            f"{self.base_url}/{media_id}/comments",
            data={"access_token": access_token, "message": message},
        )
        return str(self._require(out, "id"))

    def send_message(self, recipient_id: str, message: str, access_token: str) -> str:
        # The messaging endpoint takes JSON and a bearer token
        out = self._request(
            "POST",
            f"{self.base_url}/me/messages",
            json={"recipient": {"id": recipient_id}, "message": {"text": message}},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return str(self._require(out, "message_id"))

    # Account

    def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        return self._request(
            "GET",
            f"{self.base_url}/me",
            params={
                "fields": "id,username,followers_count,follows_count,media_count",
                "access_token": access_token,
            },
        )

    def refresh_access_token(self, access_token: str) -> Dict[str, Any]:
        out = self._request(
            "GET",
            self.refresh_url,
            params={"grant_type": "ig_refresh_token", "access_token": access_token},
        )
        self._require(out, "access_token")
        return out
