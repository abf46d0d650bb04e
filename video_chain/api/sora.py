"""
OpenAI Sora Client
==================

Job client for the OpenAI video API (Sora 2 models).

Endpoints:
- POST /videos                    create a job (multipart form)
- GET  /videos/{id}               job status and progress
- GET  /videos/{id}/content       raw MP4 of a completed job
"""

import logging
from typing import Dict, Any

from .base import (
    BaseJobClient,
    GenerationRequest,
    ModelConstraints,
)
from .factory import register_client

logger = logging.getLogger(__name__)


@register_client("sora")
class SoraJobClient(BaseJobClient):
    """
    OpenAI Sora video generation client.

    Segments are 4, 8 or 12 seconds long. ``sora-2`` renders landscape or
    portrait 720p; ``sora-2-pro`` adds the tall and wide 1792px sizes.
    """

    MODEL_CONSTRAINTS = {
        "sora-2": ModelConstraints(sizes=("1280x720", "720x1280")),
        "sora-2-pro": ModelConstraints(sizes=("1280x720", "720x1280", "1024x1792", "1792x1024")),
    }

    REFERENCE_FILENAME = "reference.jpg"
    REFERENCE_MIME_TYPE = "image/jpeg"

    @property
    def provider_name(self) -> str:
        return "OpenAI Sora"

    @property
    def env_key_name(self) -> str:
        return "OPENAI_API_KEY"

    @property
    def model_constraints(self) -> Dict[str, ModelConstraints]:
        return self.MODEL_CONSTRAINTS

    def _get_default_base_url(self) -> str:
        return "https://api.openai.com/v1"

    async def _create_job(self, request: GenerationRequest) -> Dict[str, Any]:
        form = {
            "model": request.model,
            "prompt": request.prompt_text,
            "seconds": str(request.duration_seconds),
            "size": str(request.frame_size),
        }
        logger.debug(f"Create payload: model={request.model} size={request.frame_size} seconds={request.duration_seconds}")

        if request.reference_image:
            # The reference image forces a multipart upload
            files = {
                "input_reference": (
                    self.REFERENCE_FILENAME,
                    request.reference_image,
                    self.REFERENCE_MIME_TYPE,
                ),
            }
            response = await self._send(
                "POST",
                f"{self.base_url}/videos",
                operation="create video",
                data=form,
                files=files,
            )
        else:
            response = await self._send(
                "POST",
                f"{self.base_url}/videos",
                operation="create video",
                json=form,
            )
        return self._json_body(response, "create video")

    async def _retrieve_job(self, job_id: str) -> Dict[str, Any]:
        response = await self._send(
            "GET",
            f"{self.base_url}/videos/{job_id}",
            operation="retrieve video",
        )
        return self._json_body(response, "retrieve video")

    async def _download_content(self, job_id: str) -> bytes:
        response = await self._send(
            "GET",
            f"{self.base_url}/videos/{job_id}/content",
            operation="download video",
            params={"variant": "video"},
        )
        return response.content
