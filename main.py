"""
Imagify - command-line front end for the transformation engine.

Usage:
    python main.py SOURCE DEST [--config options.json] [--base64]

Prints the TransformResult as JSON. Exit status is 0 on success, 1 when a
size derivative failed, and the exception code for aborted requests.
"""

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from config import get_settings
from core.cancellation import CancellationToken
from core.exceptions import ImageProcessorException, InvalidConfigurationException
from core.platform import PlatformCapability
from core.utils.params_processor import merge_params, prepare_params
from schemas.options import TransformOptions
from services.transform_service import TransformService

# Get configuration
settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.system.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resize, watermark, optimize and convert images")
    parser.add_argument("source", help="Source image path (or base64 file with --base64)")
    parser.add_argument("destination", help="Primary output path")
    parser.add_argument("--config", help="JSON file with transform options")
    parser.add_argument("--set", dest="overrides", default="{}", help="Inline JSON merged over --config")
    parser.add_argument("--base64", action="store_true", help="SOURCE holds a base64 string or data URI")
    parser.add_argument("--quality", type=int, help="Shortcut for the quality option")
    parser.add_argument("--webp", action="store_true", help="Shortcut enabling WebP output")
    return parser


def load_options(args: argparse.Namespace) -> TransformOptions:
    """Merge --config, --set and the shortcut flags into TransformOptions."""
    params = {}
    if args.config:
        params = json.loads(Path(args.config).read_text(encoding="utf-8"))
    params = merge_params(params, json.loads(args.overrides))
    if args.quality is not None:
        params["quality"] = args.quality
    if args.webp:
        params = merge_params(params, {"webp": {"enabled": True}})
    return prepare_params(params, TransformOptions)


def build_service(options: TransformOptions) -> TransformService:
    platform = None
    if settings.tools.binary_dir:
        if settings.tools.platform:
            platform = PlatformCapability.for_system(settings.tools.platform, settings.tools.binary_dir)
        else:
            platform = PlatformCapability.detect(settings.tools.binary_dir)

    return TransformService(
        options=options,
        platform=platform,
        tool_timeout=settings.processing.tool_timeout_s,
        max_workers=settings.processing.max_workers,
        fail_fast=settings.processing.fail_fast,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cancel_token = CancellationToken()

    def handle_signal(signum, frame):
        """Stop at the next stage boundary"""
        logger.info(f"Received signal {signum}, cancelling...")
        cancel_token.cancel()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    try:
        options = load_options(args)
        service = build_service(options)
        if args.base64:
            payload = Path(args.source).read_text(encoding="utf-8")
            result = service.process_base64(payload, args.destination, cancel_token=cancel_token)
        else:
            result = service.process(args.source, args.destination, cancel_token=cancel_token)
    except ImageProcessorException as e:
        logger.error(f"Transformation failed: {e.message}")
        return e.code
    except (OSError, ValueError) as e:
        # Unreadable config file, bad JSON or invalid options
        logger.error(f"Invalid input: {e}")
        return InvalidConfigurationException.code

    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
