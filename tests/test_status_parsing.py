import pytest

from core.errors import NoAssetUrl
from schemas.job_models import JobState
from services.asset_resolver import meshy_asset_resolver, skybox_asset_resolver
from services.status_parser import (
    GENERIC_FAILURE_MESSAGE,
    classify_status,
    meshy_status_parser,
    skybox_status_parser,
)


# ----------------------------------------------------------------------------
# Status classification
# ----------------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("complete", JobState.SUCCEEDED),
        ("SUCCEEDED", JobState.SUCCEEDED),
        ("error", JobState.FAILED),
        ("abort", JobState.FAILED),
        ("FAILED", JobState.FAILED),
        ("EXPIRED", JobState.EXPIRED),
        ("PENDING", JobState.PENDING),
        ("pending", JobState.PENDING),
        (None, JobState.PENDING),
        ("IN_PROGRESS", JobState.IN_PROGRESS),
        ("processing", JobState.IN_PROGRESS),
    ],
)
def test_classify_status(raw, expected):
    assert classify_status(raw) == expected


def test_nested_and_top_level_status_classify_the_same():
    nested = {"request": {"status": "complete", "file_url": "https://cdn.example/sky.jpg"}}
    flat = {"status": "complete", "file_url": "https://cdn.example/sky.jpg"}

    from_nested = skybox_status_parser.parse(nested)
    from_flat = skybox_status_parser.parse(flat)

    assert from_nested.state == from_flat.state == JobState.SUCCEEDED
    assert from_nested.result == from_flat.result


def test_nested_block_without_status_falls_back_to_top_level():
    payload = {"request": {"id": 7}, "status": "processing", "queue_position": 3}
    status = skybox_status_parser.parse(payload)
    assert status.state == JobState.IN_PROGRESS
    assert status.queue_position == 3


def test_progress_defaults_to_zero():
    status = meshy_status_parser.parse({"status": "IN_PROGRESS"})
    assert status.state == JobState.IN_PROGRESS
    assert status.progress == 0
    assert status.is_terminal is False


def test_progress_is_reported_while_running():
    status = meshy_status_parser.parse({"status": "IN_PROGRESS", "progress": 35})
    assert status.progress == 35


def test_meshy_failure_message_comes_from_task_error():
    status = meshy_status_parser.parse({"status": "FAILED", "task_error": {"message": "NSFW prompt"}})
    assert status.state == JobState.FAILED
    assert status.error == "NSFW prompt"


def test_failure_without_message_uses_generic_text():
    status = meshy_status_parser.parse({"status": "EXPIRED", "task_error": {}})
    assert status.state == JobState.EXPIRED
    assert status.error == GENERIC_FAILURE_MESSAGE


def test_skybox_error_message_fallback_chain():
    assert skybox_status_parser.parse(
        {"request": {"status": "abort", "error_message": "cancelled"}}
    ).error == "cancelled"
    assert skybox_status_parser.parse(
        {"request": {"status": "error", "message": "quota exceeded"}}
    ).error == "quota exceeded"


def test_non_dict_payload_is_pending():
    assert meshy_status_parser.parse(None).state == JobState.PENDING


# ----------------------------------------------------------------------------
# Asset resolution
# ----------------------------------------------------------------------------

def test_resolves_binary_model_url_first():
    asset = meshy_asset_resolver.resolve({
        "model_urls": {"glb": "https://cdn.example/T1.glb"},
        "model_url": "https://cdn.example/T1.fbx",
        "thumbnail_url": "https://cdn.example/T1.png",
    })
    assert asset.asset_url == "https://cdn.example/T1.glb"
    assert asset.thumbnail_url == "https://cdn.example/T1.png"


def test_resolves_fallback_field_when_primary_missing():
    asset = meshy_asset_resolver.resolve({"model_urls": {}, "model_url": "https://cdn.example/T1.fbx"})
    assert asset.asset_url == "https://cdn.example/T1.fbx"
    assert asset.thumbnail_url is None


def test_skybox_falls_back_to_thumbnail_url():
    asset = skybox_asset_resolver.resolve({"thumb_url": "https://cdn.example/sky-thumb.jpg"})
    assert asset.asset_url == "https://cdn.example/sky-thumb.jpg"


def test_no_known_url_field_fails():
    with pytest.raises(NoAssetUrl) as exc_info:
        meshy_asset_resolver.resolve({"status": "SUCCEEDED", "model_urls": {"usdz": None}}, task_id="T9")
    assert exc_info.value.details == {"taskId": "T9", "jobStatus": "SUCCEEDED"}


def test_empty_string_url_is_not_a_url():
    with pytest.raises(NoAssetUrl):
        skybox_asset_resolver.resolve({"file_url": "", "thumb_url": ""})
