"""
API Integration Layer
=====================

Remote job clients for video generation providers.

Supported Providers:
- OpenAI Sora (sora-2, sora-2-pro)

Usage:
    from video_chain.api import get_client, GenerationRequest, FrameSize

    async with get_client("sora") as client:
        job = await client.submit(GenerationRequest(
            prompt_text="A lighthouse at dusk",
            frame_size=FrameSize.parse("1280x720"),
            duration_seconds=8,
            model="sora-2",
        ))
        job = await client.await_completion(job)
        video = await client.fetch_content(job.id)
"""

from .base import (
    BaseJobClient,
    FrameSize,
    GenerationRequest,
    JobStatus,
    ModelConstraints,
    RemoteJob,
)
from .factory import get_client, list_clients, register_client

__all__ = [
    "BaseJobClient",
    "FrameSize",
    "GenerationRequest",
    "JobStatus",
    "ModelConstraints",
    "RemoteJob",
    "get_client",
    "list_clients",
    "register_client",
]
