"""Tests for the Civitai API client and its helpers."""
import httpx
import pytest
import respx

from services.civitai_client import (
    CivitaiClient,
    CivitaiError,
    classify_error,
    extract_image_params,
    extract_model_id,
    format_file_size,
    get_primary_image,
    get_trained_words,
    validate_civitai_url,
)

MODEL_URL = "https://civitai.com/models/4201/realistic-vision"
MODEL_API = "https://civitai.com/api/v1/models/4201"
IMAGES_API = "https://civitai.com/api/v1/images"

MODEL = {
    "id": 4201,
    "name": "Realistic Vision",
    "modelVersions": [
        {
            "trainedWords": ["rv", "photo"],
            "images": [{"url": "https://image.civitai.com/a.jpeg"}],
        },
    ],
}

IMAGE = {
    "id": 77,
    "url": "https://image.civitai.com/77.jpeg",
    "width": 512,
    "height": 768,
    "meta": {
        "prompt": "a cat",
        "negativePrompt": "blurry",
        "steps": 30,
        "cfgScale": 7,
        "sampler": "DPM++ 2M",
        "seed": 1234,
    },
}


# =============================================================================
# Helpers
# =============================================================================


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        (MODEL_URL, 4201),
        ("https://civitai.com/models/12", 12),
        ("https://civitai.com/models/", None),
        ("https://civitai.com/models/abc", None),
        ("https://civitai.com/images/5", None),
    ],
)
def test__extract_model_id(url: str, expected: int | None) -> None:
    assert extract_model_id(url) == expected


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        (MODEL_URL, True),
        ("https://example.com/models/1", False),
        ("https://civitai.com/images/1", False),
        ("not a url", False),
    ],
)
def test__validate_civitai_url(url: str, expected: bool) -> None:
    assert validate_civitai_url(url) is expected


@pytest.mark.parametrize(
    ("size_kb", "expected"),
    [
        (512, "512 KB"),
        (2048, "2.0 MB"),
        (1536, "1.5 MB"),
        (2 * 1024 * 1024, "2.0 GB"),
    ],
)
def test__format_file_size(size_kb: float, expected: str) -> None:
    assert format_file_size(size_kb) == expected


def test__model_helpers() -> None:
    assert get_primary_image(MODEL) == "https://image.civitai.com/a.jpeg"
    assert get_trained_words(MODEL) == ["rv", "photo"]
    assert get_primary_image({}) is None
    assert get_trained_words({"modelVersions": []}) == []


def test__extract_image_params() -> None:
    params = extract_image_params(IMAGE)

    assert params == {
        "prompt": "a cat",
        "negativePrompt": "blurry",
        "steps": 30,
        "cfgScale": 7,
        "sampler": "DPM++ 2M",
        "seed": 1234,
        "size": "512x768",
        "imageUrl": "https://image.civitai.com/77.jpeg",
        "imageId": 77,
    }


def test__extract_image_params__missing_meta() -> None:
    params = extract_image_params({"id": 1, "width": 10, "height": 20})

    assert params["prompt"] == ""
    assert params["steps"] is None
    assert params["size"] == "10x20"


def test__classify_error__http_statuses() -> None:
    request = httpx.Request("GET", MODEL_API)

    def status_error(code: int) -> httpx.HTTPStatusError:
        return httpx.HTTPStatusError(
            "error", request=request, response=httpx.Response(code, request=request),
        )

    assert classify_error(status_error(404)).kind == "not_found"
    assert classify_error(status_error(403)).kind == "forbidden"
    server_error = classify_error(status_error(500))
    assert server_error.kind == "upstream"
    assert "HTTP 500" in str(server_error)
    assert classify_error(httpx.ReadTimeout("slow", request=request)).kind == "timeout"
    assert classify_error(httpx.ConnectError("down", request=request)).kind == "connection"


# =============================================================================
# CivitaiClient
# =============================================================================


@respx.mock
async def test__get_model_info__success(civitai_client: CivitaiClient) -> None:
    route = respx.get(MODEL_API).mock(return_value=httpx.Response(200, json=MODEL))

    model = await civitai_client.get_model_info(MODEL_URL)

    assert model["name"] == "Realistic Vision"
    assert route.call_count == 1


async def test__get_model_info__invalid_url_makes_no_request(civitai_client: CivitaiClient) -> None:
    with respx.mock(assert_all_called=False) as mock:
        route = mock.get(url__startswith="https://civitai.com/")
        with pytest.raises(CivitaiError) as exc_info:
            await civitai_client.get_model_info("https://civitai.com/models/not-a-number")

    assert exc_info.value.kind == "invalid_url"
    assert route.call_count == 0


@respx.mock
async def test__get_model_info__retries_then_classifies_404(civitai_client: CivitaiClient) -> None:
    route = respx.get(MODEL_API).mock(return_value=httpx.Response(404))

    with pytest.raises(CivitaiError) as exc_info:
        await civitai_client.get_model_info(MODEL_URL)

    assert exc_info.value.kind == "not_found"
    assert route.call_count == 3


@respx.mock
async def test__get_model_info__recovers_after_transient_failure(
    civitai_client: CivitaiClient,
) -> None:
    route = respx.get(MODEL_API).mock(
        side_effect=[httpx.Response(502), httpx.Response(200, json=MODEL)],
    )

    model = await civitai_client.get_model_info(MODEL_URL)

    assert model["id"] == 4201
    assert route.call_count == 2


@respx.mock
async def test__get_model_info__timeout(civitai_client: CivitaiClient) -> None:
    respx.get(MODEL_API).mock(side_effect=httpx.ReadTimeout)

    with pytest.raises(CivitaiError) as exc_info:
        await civitai_client.get_model_info(MODEL_URL)

    assert exc_info.value.kind == "timeout"


@respx.mock
async def test__get_model_images__returns_items(civitai_client: CivitaiClient) -> None:
    route = respx.get(IMAGES_API).mock(
        return_value=httpx.Response(200, json={"items": [IMAGE]}),
    )

    images = await civitai_client.get_model_images(4201)

    assert images == [IMAGE]
    params = route.calls.last.request.url.params
    assert params["modelId"] == "4201"
    assert params["limit"] == "50"
    assert "nsfw" not in params


@respx.mock
async def test__get_model_images__failure_returns_empty_list(
    civitai_client: CivitaiClient,
) -> None:
    route = respx.get(IMAGES_API).mock(return_value=httpx.Response(500))

    assert await civitai_client.get_model_images(4201) == []
    assert route.call_count == 3


@respx.mock
async def test__get_model_with_images__attaches_params(civitai_client: CivitaiClient) -> None:
    respx.get(MODEL_API).mock(return_value=httpx.Response(200, json=MODEL))
    respx.get(IMAGES_API).mock(return_value=httpx.Response(200, json={"items": [IMAGE]}))

    result = await civitai_client.get_model_with_images(MODEL_URL)

    assert result["name"] == "Realistic Vision"
    assert len(result["allImages"]) == 1
    assert result["allImages"][0]["params"]["prompt"] == "a cat"
    assert result["allImages"][0]["id"] == 77
