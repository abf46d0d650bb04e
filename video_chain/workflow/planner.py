"""
Segment Planner
===============

Turns a base prompt into an ordered list of shot prompts, one per segment,
written so that each segment starts where the previous one ended.

The planner is an external collaborator: the chain only relies on
``plan(base_prompt, seconds_per_segment, segment_count)`` returning
SegmentPlan entries. Whatever the model returns is clamped to exactly the
requested count.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from ..core.exceptions import PlanningError, RemoteError, TransportError
from ..core.security import redact_api_key, sanitize_prompt
from .models import SegmentPlan

logger = logging.getLogger(__name__)


PLANNER_INSTRUCTIONS = """
You direct shots for an AI video model that can only render a few seconds at
a time. Turn the BASE PROMPT into exactly N shot prompts that play back as one
continuous video.

Return a JSON object only, shaped as:
{"segments": [{"title": "Generation 1", "seconds": <length>, "prompt": "<text>"}, ...]}

- Every segment uses the given generation length in seconds.
- Segment 1 opens the scene from the base prompt.
- Every later segment begins exactly on the final frame of the segment before
  it. Start its prompt with a short Context block (for the model only, not
  shown on screen) describing how the previous segment ended, then a Prompt
  line for the new shot.
- Keep subject identity, style, lighting and tone consistent unless the base
  prompt asks for a change.
- Describe camera, lighting, motion and subject focus concisely.
- No real people, public figures, copyrighted characters, logos or music.
  Keep it suitable for general audiences.
""".strip()

CONTINUATION_PREFIX = (
    "Context (not visible in video, only for AI guidance):\n"
    "* This part continues directly from the final frame of the previous segment.\n\n"
    "Prompt: "
)


def clamp_plan(
    segments: List[SegmentPlan],
    segment_count: int,
    seconds_per_segment: int,
    base_prompt: str = "",
) -> List[SegmentPlan]:
    """
    Force a planner response to exactly ``segment_count`` entries.

    Surplus entries are dropped. Missing entries are padded with a shot that
    continues from the previous segment using the base prompt. Every entry
    gets the requested duration and ordinals are renumbered 1..N.
    """
    if segment_count < 1:
        raise PlanningError(f"segment_count must be >= 1, got {segment_count}")

    if len(segments) != segment_count:
        logger.warning(f"Planner returned {len(segments)} segments, expected {segment_count}; clamping")

    clamped = []
    for ordinal in range(1, segment_count + 1):
        if ordinal <= len(segments):
            source = segments[ordinal - 1]
            title, prompt = source.title, source.prompt_text
        else:
            title = f"Generation {ordinal}"
            prompt = base_prompt if ordinal == 1 else CONTINUATION_PREFIX + base_prompt
        clamped.append(SegmentPlan(
            ordinal=ordinal,
            title=title or f"Generation {ordinal}",
            target_duration_seconds=seconds_per_segment,
            prompt_text=prompt,
        ))
    return clamped


class SegmentPlanner(ABC):
    """Produces the shot list for a run."""

    async def plan(
        self,
        base_prompt: str,
        seconds_per_segment: int,
        segment_count: int,
    ) -> List[SegmentPlan]:
        """Plan exactly ``segment_count`` segments of ``seconds_per_segment`` seconds."""
        raw = await self._plan_raw(base_prompt, seconds_per_segment, segment_count)
        segments = [
            SegmentPlan(
                ordinal=i,
                title=str(entry.get("title") or f"Generation {i}"),
                target_duration_seconds=seconds_per_segment,
                prompt_text=sanitize_prompt(str(entry.get("prompt") or "")),
            )
            for i, entry in enumerate(raw, start=1)
            if isinstance(entry, dict) and entry.get("prompt")
        ]
        return clamp_plan(segments, segment_count, seconds_per_segment, base_prompt)

    @abstractmethod
    async def _plan_raw(
        self,
        base_prompt: str,
        seconds_per_segment: int,
        segment_count: int,
    ) -> List[Dict[str, Any]]:
        """Return raw ``{"title", "seconds", "prompt"}`` entries."""


class StaticPlanner(SegmentPlanner):
    """Planner that repeats the base prompt; used when no planning model is wanted."""

    async def _plan_raw(self, base_prompt, seconds_per_segment, segment_count):
        return [
            {
                "title": f"Generation {i}",
                "seconds": seconds_per_segment,
                "prompt": base_prompt if i == 1 else CONTINUATION_PREFIX + base_prompt,
            }
            for i in range(1, segment_count + 1)
        ]


class OpenAIPlanner(SegmentPlanner):
    """Planner backed by the OpenAI chat completions API (JSON mode)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        temperature: float = 0.7,
        base_url: str = "https://api.openai.com/v1",
        timeout: int = 120,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model
        self.temperature = temperature
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

        if not self.api_key:
            logger.warning("No API key found for the planner. Set OPENAI_API_KEY or pass api_key.")

    async def _plan_raw(self, base_prompt, seconds_per_segment, segment_count):
        user_input = (
            f"BASE PROMPT: {base_prompt}\n\n"
            f"GENERATION LENGTH (seconds): {seconds_per_segment}\n"
            f"TOTAL GENERATIONS: {segment_count}\n\n"
            f"Return exactly {segment_count} segments with perfect continuity."
        )
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": PLANNER_INSTRUCTIONS},
                {"role": "user", "content": user_input},
            ],
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }

        logger.info(f"Planning {segment_count} x {seconds_per_segment}s segments with {self.model}")
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"Authorization": f"Bearer {self.api_key}"},
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(f"{self.base_url}/chat/completions", json=payload)
            except httpx.TransportError as e:
                raise TransportError(
                    "Network error during planning: cannot connect to OpenAI",
                    operation="plan",
                ) from e

        if not response.is_success:
            message = f"Planning request failed: {response.status_code}"
            try:
                message = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                pass
            logger.error(f"Planner error: {redact_api_key(message)}")
            raise RemoteError(
                message,
                provider="OpenAI planner",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PlanningError(f"Planner response is not JSON: {e}") from e
        return self._parse_segments(data)

    @staticmethod
    def _parse_segments(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Pull the segments list out of a chat completion response."""
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise PlanningError(f"Unexpected planner response shape: {e}") from e
        try:
            parsed = json.loads(content)
        except (TypeError, json.JSONDecodeError) as e:
            raise PlanningError(f"Planner did not return valid JSON: {e}") from e
        segments = parsed.get("segments") if isinstance(parsed, dict) else None
        if not isinstance(segments, list):
            raise PlanningError("Planner JSON has no 'segments' list")
        return segments
