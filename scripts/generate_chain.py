#!/usr/bin/env python3
"""
CLI Script: Generate Chain
==========================

Command-line tool for generating one long video from chained segments.

Usage:
    python scripts/generate_chain.py --prompt "A paper boat drifting down a rainy street"
    python scripts/generate_chain.py -p "A lighthouse at dusk" -n 4 -d 12 --model sora-2-pro --size 1792x1024
    python scripts/generate_chain.py -p "A fox in the snow" --plan-only
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from video_chain.api import FrameSize, get_client
from video_chain.core.config import ALLOWED_SEGMENT_SECONDS, MAX_SEGMENTS, MIN_SEGMENTS, Config, set_config
from video_chain.core.exceptions import (
    ConcatenationError,
    RunCancelledError,
    ValidationError,
    VideoChainError,
)
from video_chain.core.scheduling import CancelToken
from video_chain.core.security import sanitize_filename
from video_chain.utils.storage import build_manifest, ensure_dir, save_manifest, save_segments, write_video
from video_chain.workflow import ChainOrchestrator, RunContext


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Generate a long video from chained AI video segments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -p "A paper boat drifting down a rainy street"
  %(prog)s -p "A lighthouse at dusk" -n 4 -d 12
  %(prog)s -p "A fox in the snow" --model sora-2-pro --size 1792x1024
  %(prog)s -p "A fox in the snow" --plan-only
        """,
    )

    parser.add_argument(
        "-p", "--prompt",
        required=True,
        help="Base prompt describing the whole video",
    )
    parser.add_argument(
        "-n", "--segments",
        type=int,
        help=f"Number of segments ({MIN_SEGMENTS}-{MAX_SEGMENTS}, default from config)",
    )
    parser.add_argument(
        "-d", "--duration",
        type=int,
        help="Seconds per segment (4, 8 or 12, default from config)",
    )
    parser.add_argument(
        "--model",
        help="Video model (sora-2 or sora-2-pro, default from config)",
    )
    parser.add_argument(
        "--size",
        help="Frame size WIDTHxHEIGHT (default from config)",
    )
    parser.add_argument(
        "-o", "--output",
        help="Output directory (default from config)",
    )
    parser.add_argument(
        "--config",
        help="Path to config file",
    )
    parser.add_argument(
        "--plan-only",
        action="store_true",
        help="Print the planned segments and exit without generating",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args()


def print_event(event) -> None:
    print(f"  {event}")


def save_outputs(config: Config, output_dir: Path, context: RunContext, error: Exception = None) -> None:
    """Write the final video, segments and run manifest for a finished or failed run."""
    video_file = None
    if context.final_video is not None:
        video_file = write_video(context.final_video.data, output_dir / sanitize_filename(config.output.filename))
        print(f"Video saved: {video_file}")

    # Segments are always kept when concatenation fails so the work is not lost
    segment_files = {}
    if config.output.save_segments or isinstance(error, ConcatenationError):
        segment_files = save_segments(context.results, output_dir / "segments")
        if segment_files:
            print(f"Segments saved: {output_dir / 'segments'} ({len(segment_files)} files)")

    if config.output.save_metadata:
        manifest = build_manifest(
            context.to_dict(),
            segment_files=segment_files,
            video_file=video_file,
            error_details=error.to_dict() if isinstance(error, VideoChainError) else None,
        )
        path = save_manifest(manifest, output_dir, format=config.output.metadata_format)
        print(f"Manifest saved: {path}")


async def main() -> int:
    """Main CLI entry point."""
    args = parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = Config.load(args.config)
    except VideoChainError as e:
        print(f"Error: {e}")
        return 1
    set_config(config)

    seconds = args.duration or config.generation.seconds_per_segment
    segment_count = args.segments or config.generation.segment_count
    model = args.model or config.generation.model
    size = args.size or config.generation.size
    output_dir = Path(args.output or config.output.base_path)

    # Validate arguments
    if not args.prompt.strip():
        print("Error: --prompt must not be empty")
        return 1
    if seconds not in ALLOWED_SEGMENT_SECONDS:
        print(f"Error: --duration must be one of {list(ALLOWED_SEGMENT_SECONDS)}")
        return 1
    if not MIN_SEGMENTS <= segment_count <= MAX_SEGMENTS:
        print(f"Error: --segments must be between {MIN_SEGMENTS} and {MAX_SEGMENTS}")
        return 1
    if not (config.api.api_key or os.getenv("OPENAI_API_KEY")):
        print("Error: OPENAI_API_KEY environment variable not set")
        print("Get your key at: https://platform.openai.com/api-keys")
        return 1

    try:
        frame_size = FrameSize.parse(size)
        client = get_client(
            config.api.provider,
            api_key=config.api.api_key,
            base_url=config.api.base_url,
            timeout=config.api.timeout,
            poll_retries=config.generation.poll_retries,
            retry_delay=config.generation.retry_delay,
        )
        allowed = client.model_constraints.get(model)
        if allowed is None:
            raise ValidationError(f"Unknown model: {model}", field="model", value=model)
        if str(frame_size) not in allowed.sizes:
            raise ValidationError(
                f"Size {frame_size} is not allowed for {model}; choose one of {list(allowed.sizes)}",
                field="size",
                value=size,
            )
    except (VideoChainError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    orchestrator = ChainOrchestrator.from_config(config, client=client)
    orchestrator.progress.subscribe(print_event)

    print("=" * 50)
    print("Chained Video Generator")
    print("=" * 50)
    print(f"\nPrompt: {args.prompt}")
    print(f"Segments: {segment_count} x {seconds}s")
    print(f"Model: {model} @ {frame_size}")

    async with client:
        try:
            plan = await orchestrator.planner.plan(args.prompt, seconds, segment_count)
        except VideoChainError as e:
            print(f"\nPlanning failed: {e}")
            return 1

        print("\nPlan:")
        for segment in plan:
            print(f"  {segment.ordinal}. {segment.title} ({segment.target_duration_seconds}s)")
            if args.plan_only:
                print(f"     {segment.prompt_text}")
        if args.plan_only:
            return 0

        cancel_token = CancelToken()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, cancel_token.cancel, "interrupted by user")
        except NotImplementedError:
            pass

        context = RunContext(plan=plan, frame_size=frame_size, model=model)
        ensure_dir(output_dir)
        print("\n" + "-" * 50)
        try:
            await orchestrator.run(plan, frame_size, model, context=context, cancel_token=cancel_token)
        except RunCancelledError:
            print("\nCancelled")
            return 130
        except VideoChainError as e:
            print(f"\nError: {e}")
            save_outputs(config, output_dir, context, e)
            return 1
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except NotImplementedError:
                pass

    print("\n" + "-" * 50)
    save_outputs(config, output_dir, context)
    print(f"Strategy: {context.final_video.strategy}")
    print("=" * 50)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nCancelled")
        sys.exit(130)
