"""
HTTP base service for the remote collaborators (flow, plan, attachment
and upload storage).
"""
import logging
from typing import Optional, Any, Dict, List, Type, TypeVar
import httpx
from pydantic import BaseModel, ValidationError

from ..core.config import settings
from ..core.exceptions import ApiError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class HttpService:
    """
    Thin JSON-over-HTTP client.

    Every call is fail-fast: no retries. Non-2xx responses raise ApiError
    carrying the server's `message` verbatim when the body is JSON.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None
    ):
        """
        Args:
            base_url: API base URL (defaults to env API_BASE_URL)
            token: Bearer token (defaults to env API_TOKEN)
            client: Shared AsyncClient; one is opened per request when omitted
            timeout: Request timeout in seconds
        """
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.API_TOKEN
        self.client = client
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    def _get_headers(self, json_body: bool = True) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if json_body:
            headers["Content-Type"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    async def request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        auth: bool = True
    ) -> Dict[str, Any]:
        """
        Perform a request and return the decoded JSON body.

        Raises:
            ApiError: on transport failure or non-2xx status
        """
        url = self.url(endpoint)
        headers = self._get_headers(json_body=files is None)
        if not auth:
            headers.pop("Authorization", None)

        logger.debug(f"{method} {url}")

        try:
            if self.client is not None:
                response = await self.client.request(
                    method, url, json=json, params=params, files=files, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method, url, json=json, params=params, files=files, headers=headers
                    )
        except httpx.TimeoutException:
            logger.error(f"Timeout calling {method} {url}")
            raise ApiError("Request timeout")
        except httpx.HTTPError as e:
            logger.error(f"Error calling {method} {url}: {e}")
            raise ApiError(f"HTTP request failed: {e}")

        if response.is_success:
            if not response.content:
                return {}
            try:
                body = response.json()
            except ValueError:
                raise ApiError("Invalid JSON in response", response.status_code, response.text)
            if not isinstance(body, dict):
                raise ApiError("Unexpected response format", response.status_code, body)
            return body

        message = f"HTTP request failed: {response.reason_phrase}"
        payload: Any = None
        try:
            payload = response.json()
            if isinstance(payload, dict) and payload.get("message"):
                message = payload["message"]
        except ValueError:
            payload = response.text

        logger.error(f"{method} {url} -> {response.status_code}: {message}")
        raise ApiError(message, response.status_code, payload)

    # ==================== RESPONSE PARSING ====================

    @staticmethod
    def data_field(res: Dict[str, Any], key: str) -> Any:
        """`res["data"][key]`, or None when the envelope is missing"""
        data = res.get("data")
        return data.get(key) if isinstance(data, dict) else None

    @staticmethod
    def parse(model: Type[M], data: Any, what: str = "response") -> M:
        """Validate a response payload; shape errors become ApiError"""
        if not isinstance(data, dict):
            logger.error(f"Invalid {what}: {data!r}")
            raise ApiError(f"Invalid {what} from server", 502, data)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid {what}: {e}")
            raise ApiError(f"Invalid {what} from server", 502, data)

    @classmethod
    def parse_list(cls, model: Type[M], items: Any, what: str = "response") -> List[M]:
        if items is None:
            return []
        if not isinstance(items, list):
            raise ApiError(f"Invalid {what} from server", 502, items)
        return [cls.parse(model, item, what) for item in items]
