"""Replicate prediction client — the external Prediction Provider.

Wraps the four Replicate endpoints the service needs (create, get, cancel,
account) behind one small async client. Every failure, whether transport
errors, non-2xx responses or payloads without a prediction id, surfaces as
``ProviderError``; callers decide whether that is fatal (submission) or
soft (reconciliation, cancellation).

No retry logic lives here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from videogen.config import Settings, get_settings
from videogen.exceptions import ProviderError
from videogen.services.http_client_manager import get_http_client

logger = logging.getLogger(__name__)

# Replicate prediction states
STARTING = "starting"
PROCESSING = "processing"
SUCCEEDED = "succeeded"
FAILED = "failed"
CANCELED = "canceled"


@dataclass
class Prediction:
    """A prediction as reported by Replicate."""
    id: str
    status: str
    output: Any = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "Prediction":
        if not isinstance(payload, dict) or not payload.get("id"):
            raise ProviderError("Malformed response from Replicate: missing prediction id")
        error = payload.get("error")
        return cls(
            id=str(payload["id"]),
            status=str(payload.get("status") or STARTING),
            output=payload.get("output"),
            error=str(error) if error else None,
            raw=payload,
        )

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == FAILED

    @property
    def canceled(self) -> bool:
        return self.status == CANCELED

    @property
    def video_url(self) -> str | None:
        return extract_video_url(self.output)


def extract_video_url(output: Any) -> str | None:
    """Return the media URL from a prediction output.

    Seedance returns a single URL string; some models return a list of URLs,
    in which case the first one is used.
    """
    if isinstance(output, str) and output:
        return output
    if isinstance(output, list):
        for item in output:
            if isinstance(item, str) and item:
                return item
    return None


def build_prediction_input(
    prompt: str,
    image: str | None = None,
    duration: int | None = None,
    aspect_ratio: str | None = None,
    resolution: str | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Normalize a generation request into the provider's input payload.

    Missing options fall back to the configured defaults. Including ``image``
    switches the model from text-to-video to image-to-video.
    """
    settings = settings or get_settings()
    payload: dict[str, Any] = {
        "prompt": prompt,
        "duration": duration or settings.DEFAULT_DURATION,
        "aspect_ratio": aspect_ratio or settings.DEFAULT_ASPECT_RATIO,
        "resolution": resolution or settings.DEFAULT_RESOLUTION,
        "fps": settings.DEFAULT_FPS,
        "camera_fixed": settings.CAMERA_FIXED,
    }
    if image:
        payload["image"] = image
    return payload


def _error_detail(response: httpx.Response) -> str:
    """Pull a human-readable message out of a Replicate error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("title") or body.get("error") or body)
    return str(body)


class ReplicateClient:
    """Async client for the Replicate predictions API."""

    name = "replicate"

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.replicate.com/v1",
        model: str = "bytedance/seedance-1-lite",
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ReplicateClient":
        settings = settings or get_settings()
        return cls(
            api_token=settings.REPLICATE_API_TOKEN,
            base_url=settings.REPLICATE_API_URL,
            model=settings.REPLICATE_MODEL,
        )

    def _client(self) -> httpx.AsyncClient:
        return self._http_client or get_http_client(self.name)

    def _headers(self) -> dict[str, str]:
        if not self.api_token:
            raise ProviderError("REPLICATE_API_TOKEN environment variable is required")
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, json: dict | None = None) -> Any:
        headers = self._headers()
        try:
            resp = await self._client().request(
                method, f"{self.base_url}{path}", headers=headers, json=json,
            )
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            raise ProviderError(
                f"Replicate API error {e.response.status_code}: {detail}"
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderError(f"Request to Replicate timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Could not connect to Replicate: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Malformed response from Replicate: {e}") from e

    # ── Predictions ────────────────────────────────────────────────────

    async def create_prediction(self, input_data: dict[str, Any]) -> Prediction:
        """Start a prediction on the configured model."""
        mode = "image-to-video" if input_data.get("image") else "text-to-video"
        logger.info("Starting %s prediction on %s", mode, self.model)
        payload = await self._request(
            "POST", f"/models/{self.model}/predictions", json={"input": input_data},
        )
        prediction = Prediction.from_payload(payload)
        logger.info("Prediction %s accepted (status=%s)", prediction.id, prediction.status)
        return prediction

    async def get_prediction(self, prediction_id: str) -> Prediction:
        payload = await self._request("GET", f"/predictions/{prediction_id}")
        prediction = Prediction.from_payload(payload)
        logger.debug("Prediction %s status=%s", prediction_id, prediction.status)
        return prediction

    async def get_video_url(self, prediction_id: str) -> str:
        """Return the output URL of a finished prediction.

        Raises ProviderError if the prediction failed or is not ready yet.
        """
        prediction = await self.get_prediction(prediction_id)
        url = prediction.video_url
        if prediction.succeeded and url:
            return url
        if prediction.failed:
            raise ProviderError(f"Generation failed: {prediction.error or 'Unknown error'}")
        raise ProviderError(f"Video not ready. Status: {prediction.status}")

    async def cancel_prediction(self, prediction_id: str) -> Prediction:
        payload = await self._request("POST", f"/predictions/{prediction_id}/cancel")
        logger.info("Prediction %s cancelled on Replicate", prediction_id)
        return Prediction.from_payload(payload)

    # ── Account ────────────────────────────────────────────────────────

    async def get_account(self) -> dict[str, Any]:
        payload = await self._request("GET", "/account")
        if not isinstance(payload, dict):
            raise ProviderError("Malformed account response from Replicate")
        return payload

    async def test_connection(self) -> bool:
        """Return True if the configured token can reach the API."""
        try:
            account = await self.get_account()
        except ProviderError as e:
            logger.warning("Replicate connection test failed: %s", e)
            return False
        logger.info("Replicate connection OK (account: %s)", account.get("username", "unknown"))
        return True
