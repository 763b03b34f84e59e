# integrations/meshy_client.py

from typing import Any, Dict, Optional

from core.config import settings
from core.errors import ProviderRejected
from core.logger import logger
from integrations.provider_http import ProviderHttpClient

MESHY_API_URL = "https://api.meshy.ai/v2/text-to-3d"

NEGATIVE_PROMPT = "low quality, blurry, distorted, ugly, monochrome, flat shading"


class MeshyClient(ProviderHttpClient):
    """
    Text-to-3D provider (v2 API).

    POST  {MESHY_API_URL}            -> {"result": "<task id>"}
    GET   {MESHY_API_URL}/{task_id}  -> task document with "status"
    """

    provider_name = "Meshy"

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def create_preview(self, prompt: str) -> str:
        body = {
            "mode": "preview",
            "prompt": prompt,
            "art_style": "realistic",
            "negative_prompt": NEGATIVE_PROMPT,
            # PBR material output
            "enable_pbr": True,
            "texture_richness": "high",
        }
        return self._create(body)

    def create_refine(self, preview_task_id: str, timeout: Optional[float] = None) -> str:
        body = {
            "mode": "refine",
            "preview_task_id": preview_task_id,
            "texture_richness": "high",
        }
        return self._create(body, timeout=timeout)

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("GET", f"{MESHY_API_URL}/{task_id}")

    def _create(self, body: Dict[str, Any], timeout: Optional[float] = None) -> str:
        data = self._request("POST", MESHY_API_URL, body=body, timeout=timeout)
        task_id = data.get("result") if isinstance(data, dict) else None
        if not task_id:
            logger.error(f"[Meshy] No taskId received from API: {data}")
            raise ProviderRejected("Meshy API did not return a taskId", body=data)
        logger.info(f"[Meshy] {body['mode']} task started - TaskId: {task_id}")
        return str(task_id)


meshy_client = MeshyClient(
    api_key=settings.MESHY_API_KEY,
    timeout=settings.PROVIDER_REQUEST_TIMEOUT_SECONDS,
)
