"""Virtual try-on image synthesis over the Hugging Face Inference API."""

import asyncio
import base64
import logging
import time

import httpx

from vyuga.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Latency thresholds for logging (milliseconds)
SLOW_CALL_THRESHOLD_MS = 30000
VERY_SLOW_CALL_THRESHOLD_MS = 60000


class SynthesisError(Exception):
    """Synthesis failed; ``message`` is safe to show to the shopper."""

    def __init__(self, message: str, cause: str | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class HuggingFaceSynthesisClient:
    """Generates a person-wearing-garment image from two image URLs.

    The call is slow (tens of seconds) and billed per request, so it is
    never retried here.
    """

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    @property
    def model_url(self) -> str:
        return f"{self._settings.huggingface_api_url.rstrip('/')}/{self._settings.huggingface_model}"

    async def _download(self, client: httpx.AsyncClient, url: str) -> bytes:
        response = await client.get(url, follow_redirects=True)
        response.raise_for_status()
        return response.content

    async def generate(self, person_image_url: str, garment_image_url: str) -> bytes:
        """Generate the try-on image.

        Args:
            person_image_url: Public URL of the shopper's photo.
            garment_image_url: Public URL of the garment image.

        Returns:
            bytes: The generated image.

        Raises:
            SynthesisError: On any transport or service failure.
        """
        start_time = time.perf_counter()
        timeout = httpx.Timeout(self._settings.synthesis_timeout_seconds, connect=10.0)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                person_image, garment_image = await asyncio.gather(
                    self._download(client, person_image_url),
                    self._download(client, garment_image_url),
                )

                response = await client.post(
                    self.model_url,
                    headers={"Authorization": f"Bearer {self._settings.huggingface_api_key}"},
                    json={
                        "inputs": {
                            "person_image": base64.b64encode(person_image).decode("ascii"),
                            "garment_image": base64.b64encode(garment_image).decode("ascii"),
                        },
                        "parameters": {
                            "num_inference_steps": self._settings.synthesis_inference_steps,
                            "guidance_scale": self._settings.synthesis_guidance_scale,
                        },
                    },
                )
        except httpx.TimeoutException as e:
            raise SynthesisError("Try-on generation timed out", cause=repr(e)) from e
        except httpx.HTTPStatusError as e:
            raise SynthesisError(
                "Could not fetch the images for this try-on",
                cause=f"{e.request.url} returned {e.response.status_code}",
            ) from e
        except httpx.RequestError as e:
            raise SynthesisError("Try-on service is unreachable", cause=repr(e)) from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        log_msg = f"Try-on synthesis: model={self._settings.huggingface_model}, status={response.status_code}, latency={latency_ms:.2f}ms"

        if response.status_code >= 400:
            logger.error(log_msg)
            raise SynthesisError(
                "Try-on service rejected the request",
                cause=f"HTTP {response.status_code}: {response.text[:500]}",
            )
        if not response.content:
            logger.error(log_msg)
            raise SynthesisError("Try-on service returned an empty image")

        if latency_ms > VERY_SLOW_CALL_THRESHOLD_MS:
            logger.warning(f"VERY SLOW synthesis call: {log_msg}")
        elif latency_ms > SLOW_CALL_THRESHOLD_MS:
            logger.warning(f"SLOW synthesis call: {log_msg}")
        else:
            logger.info(log_msg)

        return response.content
