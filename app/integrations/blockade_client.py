# integrations/blockade_client.py

from typing import Any, Dict

from core.config import settings
from core.errors import ProviderRejected
from core.logger import logger
from integrations.provider_http import ProviderHttpClient

BLOCKADE_API_URL = "https://backend.blockadelabs.com/api/v1"


class BlockadeClient(ProviderHttpClient):
    """
    Skybox provider.

    POST  /skybox                 -> {"id": <int>}
    GET   /imagine/requests/{id}  -> {"request": {...}} or the request itself
    """

    provider_name = "Blockade Labs"

    def __init__(self, *args, style_id: int = 2, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.style_id = style_id

    def _auth_headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key}

    def create_skybox(self, prompt: str) -> str:
        data = self._request(
            "POST",
            f"{BLOCKADE_API_URL}/skybox",
            body={"prompt": prompt, "skybox_style_id": self.style_id},
        )
        skybox_id = data.get("id") if isinstance(data, dict) else None
        if skybox_id is None or skybox_id == "":
            raise ProviderRejected("Failed to get skybox ID from response", body=data)
        logger.info(f"[SKYBOX] Task ID: {skybox_id}")
        return str(skybox_id)

    def get_request(self, skybox_id: str) -> Dict[str, Any]:
        return self._request("GET", f"{BLOCKADE_API_URL}/imagine/requests/{skybox_id}")


blockade_client = BlockadeClient(
    api_key=settings.BLOCKADE_API_KEY,
    timeout=settings.PROVIDER_REQUEST_TIMEOUT_SECONDS,
    style_id=settings.SKYBOX_STYLE_ID,
)
