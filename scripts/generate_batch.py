#!/usr/bin/env python3
"""
Run a generation batch from the command line.

Usage:
    python scripts/generate_batch.py --image ./portrait.jpg

    python scripts/generate_batch.py --image ./portrait.jpg \
        --prompts "Watercolor painting" "Neon cyberpunk poster" \
        --output-dir ./out

    python scripts/generate_batch.py --image ./portrait.jpg --mode video \
        --prompts "Slow zoom while the subject smiles" --aspect-ratio 9:16

    # Store credentials once instead of using GEMINI_API_KEY
    python scripts/generate_batch.py --save-api-key AIza... --model gemini-2.5-flash-image-preview
"""
import argparse
import asyncio
import base64
import sys
from pathlib import Path

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shared.credentials import CredentialStore
from shared.errors import ConfigError, DailyQuotaExhaustedError, ValidationError
from shared.models.generation import AspectRatio, GenerationMode, summarize_outcomes
from shared.quota import QuotaLedger
from modules.batch_generator.config import BatchOptions
from modules.batch_generator.lifecycle import LifecycleTracker
from modules.batch_generator.process import process

_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
}


def write_artifact(data_uri: str, output_dir: Path, index: int) -> Path:
    """Decode a data URI artifact into output_dir."""
    header, encoded = data_uri.split(",", 1)
    mime_type = header[len("data:"):].split(";")[0]
    path = output_dir / f"generated-{index + 1}{_EXTENSIONS.get(mime_type, '.bin')}"
    path.write_bytes(base64.b64decode(encoded))
    return path


def print_transition(entry) -> None:
    if entry.is_processing:
        print(f"  [{entry.id}] processing: {entry.prompt[:60]}")
    elif entry.error_message:
        print(f"  [{entry.id}] failed: {entry.error_message}")
    else:
        print(f"  [{entry.id}] done")


async def run(args: argparse.Namespace) -> int:
    credentials = CredentialStore()

    if args.save_api_key:
        credentials.save(args.save_api_key, args.model)
        print(f"Credentials saved to {credentials.path}")
        if not args.image:
            return 0

    if args.quota:
        status = QuotaLedger().peek()
        print(f"Video quota: {status.count}/{status.limit} used today ({status.remaining} remaining)")
        return 0

    if not args.image:
        print("ERROR: --image is required")
        return 2

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"ERROR: image not found: {image_path}")
        return 2

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    options = BatchOptions(
        aspect_ratio=AspectRatio(args.aspect_ratio),
        max_concurrency=args.max_concurrency,
    )
    tracker = LifecycleTracker(on_change=print_transition)

    try:
        outcomes = await process(
            image_path.read_bytes(),
            prompts=args.prompts,
            mode=GenerationMode(args.mode),
            options=options,
            credentials=credentials,
            tracker=tracker,
        )
    except ConfigError as e:
        print(f"ERROR: {e.message}")
        print("Set GEMINI_API_KEY or run with --save-api-key.")
        return 1
    except DailyQuotaExhaustedError as e:
        print(f"ERROR: {e.message}")
        return 1
    except ValidationError as e:
        print(f"ERROR: {e.message}")
        return 2

    print()
    for outcome in outcomes:
        if outcome.succeeded:
            path = write_artifact(outcome.artifact, output_dir, outcome.index)
            print(f"{outcome.index + 1}. OK     {path}")
        else:
            print(f"{outcome.index + 1}. FAILED [{outcome.error_kind.value}] {outcome.error_message}")

    summary = summarize_outcomes(outcomes)
    print(f"\n{summary['succeeded']}/{summary['total']} succeeded")
    return 0 if summary["failed"] == 0 else 1


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate one image or video per prompt from a single source image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--image", help="Path to the source image")
    parser.add_argument("--prompts", nargs="+", help="Prompts to run (default: built-in prompt set)")
    parser.add_argument("--mode", choices=[m.value for m in GenerationMode], default=GenerationMode.IMAGE.value)
    parser.add_argument(
        "--aspect-ratio",
        choices=[a.value for a in AspectRatio],
        default=AspectRatio.LANDSCAPE.value,
        help="Video aspect ratio (video mode only)"
    )
    parser.add_argument(
        "--max-concurrency",
        type=positive_int,
        default=None,
        help="Limit in-flight requests (default: MAX_CONCURRENCY setting)"
    )
    parser.add_argument("--output-dir", default="output", help="Directory for generated files")
    parser.add_argument("--save-api-key", help="Store an API key in the local credentials file")
    parser.add_argument("--model", help="Image model override stored with --save-api-key")
    parser.add_argument("--quota", action="store_true", help="Show today's video quota usage and exit")
    return parser


def main() -> int:
    args = build_parser().parse_args()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
