# services/job_submitter.py
"""
Submission of generation jobs to external providers.

Exactly one outbound call per submission and no retries. Input validation
happens before anything else so a bad request never touches the provider
or the quota.
"""

import re
from typing import Any, Optional

from core.errors import InvalidInput, MissingSource
from core.logger import logger
from integrations.blockade_client import BlockadeClient
from integrations.meshy_client import MeshyClient
from schemas.job_models import JobKind

_UNWANTED_SKYBOX_TERMS = (
    re.compile(r"holographic", re.IGNORECASE),
    re.compile(r"lasers?", re.IGNORECASE),
    re.compile(r"neon glow", re.IGNORECASE),
)

SKYBOX_PROMPT_TEMPLATE = (
    "Photorealistic, 360-degree high-resolution panoramic environment, "
    "{prompt}, natural lighting, ultra detailed, 8K quality"
)


def validate_prompt(prompt: Any) -> str:
    if not isinstance(prompt, str) or not prompt.strip():
        raise InvalidInput("Prompt is required")
    return prompt.strip()


class JobSubmitter:
    """Text-to-3D submissions (preview and refine stages)."""

    def __init__(self, client: MeshyClient):
        self.client = client

    def ensure_configured(self) -> None:
        self.client.ensure_configured()

    def submit_generation(
        self,
        prompt: Any,
        mode: JobKind = JobKind.PREVIEW,
        refine_source_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Start a provider job and return its task id.

        A refine source is trusted as-is; checking that it succeeded is the
        caller's job (PipelineCoordinator).

        Raises:
            InvalidInput: prompt missing, empty or not a string
            MissingSource: refine mode without a source task id
            ProviderRejected / ProviderUnreachable: provider failure
        """
        prompt = validate_prompt(prompt)

        if mode == JobKind.PREVIEW:
            logger.info(f"[Meshy] Starting preview: \"{prompt[:40]}\"")
            return self.client.create_preview(prompt)

        if mode == JobKind.REFINE:
            if not refine_source_id:
                raise MissingSource(refine_source_id)
            return self.client.create_refine(refine_source_id, timeout=timeout)

        raise InvalidInput(f"Unsupported generation mode: {mode}")


def prepare_skybox_prompt(prompt: str) -> str:
    """Strip terms that render badly as panoramas and wrap in the photoreal template."""
    cleaned = prompt
    for pattern in _UNWANTED_SKYBOX_TERMS:
        cleaned = pattern.sub("", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return SKYBOX_PROMPT_TEMPLATE.format(prompt=cleaned)


class SkyboxSubmitter:

    def __init__(self, client: BlockadeClient):
        self.client = client

    def ensure_configured(self) -> None:
        self.client.ensure_configured()

    def submit_skybox(self, prompt: Any) -> str:
        prompt = validate_prompt(prompt)
        enhanced = prepare_skybox_prompt(prompt)
        logger.info(f"[SKYBOX] Starting generation: \"{prompt[:20]}...\"")
        return self.client.create_skybox(enhanced)
