"""Client for the Civitai public API: model metadata and example images."""
import logging
from typing import Any, Literal
from urllib.parse import urlparse

import httpx

from core.retry import RetryPolicy

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (compatible; PromptManager/1.0)'
DEFAULT_BASE_URL = "https://civitai.com"
DEFAULT_TIMEOUT = 30.0
IMAGES_PAGE_SIZE = 50

CivitaiErrorKind = Literal[
    "invalid_url", "timeout", "connection", "not_found", "forbidden", "upstream",
]


class CivitaiError(Exception):
    """Raised when model metadata cannot be fetched; `kind` says why."""

    def __init__(self, message: str, kind: CivitaiErrorKind = "upstream") -> None:
        self.kind = kind
        super().__init__(message)


def extract_model_id(model_url: str) -> int | None:
    """
    Extract the numeric model ID from a Civitai model page URL.

    `https://civitai.com/models/12345/some-name` gives 12345. Returns None
    when the URL has no numeric segment after `models`.
    """
    try:
        parts = urlparse(model_url).path.split("/")
    except ValueError:
        return None
    if "models" not in parts:
        return None
    index = parts.index("models")
    if index + 1 >= len(parts):
        return None
    try:
        return int(parts[index + 1])
    except ValueError:
        return None


def validate_civitai_url(url: str) -> bool:
    """Check that a URL points at a model page on civitai.com."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.hostname == "civitai.com" and "/models/" in url


def format_file_size(size_kb: float) -> str:
    """Format a size given in kilobytes as KB, MB or GB."""
    if size_kb < 1024:
        return f"{size_kb:g} KB"
    if size_kb < 1024 * 1024:
        return f"{size_kb / 1024:.1f} MB"
    return f"{size_kb / (1024 * 1024):.1f} GB"


def _first_version(model: dict[str, Any]) -> dict[str, Any]:
    versions = model.get("modelVersions") or []
    return versions[0] if versions else {}


def get_primary_image(model: dict[str, Any]) -> str | None:
    """URL of the first image of the model's newest version, if any."""
    images = _first_version(model).get("images") or []
    return images[0].get("url") if images else None


def get_trained_words(model: dict[str, Any]) -> list[str]:
    """Trigger words of the model's newest version."""
    return list(_first_version(model).get("trainedWords") or [])


def extract_image_params(image: dict[str, Any]) -> dict[str, Any]:
    """Pull the generation parameters out of an image's `meta` block."""
    meta = image.get("meta") or {}
    return {
        "prompt": meta.get("prompt") or "",
        "negativePrompt": meta.get("negativePrompt") or "",
        "steps": meta.get("steps") or None,
        "cfgScale": meta.get("cfgScale") or None,
        "sampler": meta.get("sampler") or "",
        "seed": meta.get("seed") or None,
        "size": f"{image.get('width')}x{image.get('height')}",
        "imageUrl": image.get("url"),
        "imageId": image.get("id"),
    }


def classify_error(error: Exception) -> CivitaiError:
    """Turn the final error of a failed fetch into a user-facing CivitaiError."""
    if isinstance(error, httpx.TimeoutException):
        return CivitaiError("Request timed out, please try again later", "timeout")
    if isinstance(error, httpx.TransportError):
        return CivitaiError(
            "Network connection failed, check your connection or try again later",
            "connection",
        )
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 404:
            return CivitaiError("Model does not exist or has been deleted", "not_found")
        if status == 403:
            return CivitaiError(
                "Access denied; the model may be private or require login", "forbidden",
            )
        return CivitaiError(f"Failed to fetch model info: HTTP {status}")
    return CivitaiError(f"Failed to fetch model info: {error}")


class CivitaiClient:
    """
    Fetches model metadata from Civitai.

    Every request goes through one RetryPolicy; the HTTP client is owned by the
    application and shared across requests.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        retry_policy: RetryPolicy | None = None,
        nsfw: bool = False,
    ) -> None:
        self._http = http_client
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self.nsfw = nsfw

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._http.get(
            f"{self.base_url}{path}",
            params=params,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        )
        response.raise_for_status()
        return response.json()

    async def get_model_info(self, model_url: str) -> dict[str, Any]:
        """
        Fetch a model's metadata from its page URL.

        Raises:
            CivitaiError: If the URL has no model ID or every attempt failed.
        """
        model_id = extract_model_id(model_url)
        if model_id is None:
            logger.warning("Could not extract model ID from URL %s", model_url)
            raise CivitaiError("Invalid Civitai URL, please check the link format", "invalid_url")

        try:
            model = await self.retry_policy.run(
                lambda: self._get_json(f"/api/v1/models/{model_id}"),
                description=f"Civitai model {model_id}",
            )
        except Exception as e:
            raise classify_error(e) from e
        if not isinstance(model, dict):
            raise CivitaiError("Unexpected response from Civitai")
        logger.info("Fetched Civitai model %s: %s", model_id, model.get("name"))
        return model

    async def get_model_images(self, model_id: int) -> list[dict[str, Any]]:
        """Fetch example images for a model. Returns [] when every attempt failed."""
        params: dict[str, Any] = {"modelId": model_id, "limit": IMAGES_PAGE_SIZE}
        if self.nsfw:
            params["nsfw"] = "true"
        try:
            data = await self.retry_policy.run(
                lambda: self._get_json("/api/v1/images", params),
                description=f"Civitai images for model {model_id}",
            )
        except Exception as e:  # noqa: BLE001
            logger.warning("Failed to fetch images for model %s: %s", model_id, e)
            return []
        if not isinstance(data, dict):
            return []
        return list(data.get("items") or [])

    async def get_model_with_images(self, model_url: str) -> dict[str, Any]:
        """
        Fetch a model plus its example images, each with extracted generation params.

        Raises:
            CivitaiError: If the model itself cannot be fetched.
        """
        model = await self.get_model_info(model_url)
        images = await self.get_model_images(model.get("id") or extract_model_id(model_url))
        return {
            **model,
            "allImages": [{**image, "params": extract_image_params(image)} for image in images],
        }
