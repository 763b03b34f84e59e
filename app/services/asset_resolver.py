# services/asset_resolver.py

from typing import Any, Dict, Optional, Tuple

from core.errors import NoAssetUrl
from schemas.job_models import ResolvedAsset
from services.status_parser import first_present

# Ordered by preference: binary model first, generic source file last
MESHY_ASSET_FIELDS: Tuple[str, ...] = ("model_urls.glb", "model_url", "file_url")
MESHY_THUMBNAIL_FIELDS: Tuple[str, ...] = ("thumbnail_url",)

SKYBOX_ASSET_FIELDS: Tuple[str, ...] = ("file_url", "thumb_url")
SKYBOX_THUMBNAIL_FIELDS: Tuple[str, ...] = ("thumb_url",)


class AssetResolver:
    """
    Turns a terminal success payload into {asset_url, thumbnail_url}.

    A success payload without any known URL field is a failure (NoAssetUrl),
    never an empty success.
    """

    def __init__(self, asset_fields: Tuple[str, ...], thumbnail_fields: Tuple[str, ...] = ()):
        self.asset_fields = asset_fields
        self.thumbnail_fields = thumbnail_fields

    def resolve(self, payload: Optional[Dict[str, Any]], task_id: Optional[str] = None) -> ResolvedAsset:
        asset_url = first_present(payload or {}, self.asset_fields)
        if not isinstance(asset_url, str):
            raise NoAssetUrl(task_id)

        thumbnail = first_present(payload or {}, self.thumbnail_fields)
        return ResolvedAsset(
            asset_url=asset_url,
            thumbnail_url=thumbnail if isinstance(thumbnail, str) else None,
        )


meshy_asset_resolver = AssetResolver(MESHY_ASSET_FIELDS, MESHY_THUMBNAIL_FIELDS)
skybox_asset_resolver = AssetResolver(SKYBOX_ASSET_FIELDS, SKYBOX_THUMBNAIL_FIELDS)
