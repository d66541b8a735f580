"""
Command-line interface for faceanchor.

This module provides the main entry point for the CLI tool.
"""

import json
import logging
import sys
from contextlib import ExitStack
from typing import Optional

from .assets import MODELS, variants_of
from .config import create_argument_parser, Config
from .landmarks import LandmarkIngest
from .pipeline import AcquisitionError, AnchorPipeline, FrameResult


def _print_assets() -> None:
    for model in MODELS:
        print(model)
        for variant in variants_of(model):
            print(f"  {variant.id:<24} {variant.path}")


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for CLI.

    Args:
        argv: Command-line arguments (None = sys.argv)

    Returns:
        Exit code (0 = success, 1 = error, 2 = capture failure)
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if args.save_config:
        template = Config.generate_default_config_template()
        with open(args.save_config, 'w') as f:
            f.write(template)
        print(f"Default configuration saved to: {args.save_config}")
        print(f"Edit this file and use with: faceanchor --config {args.save_config}")
        return 0

    if args.list_assets:
        _print_assets()
        return 0

    try:
        config = Config.from_args(args)
        pipeline = AnchorPipeline.from_config(config)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print(f"\nUse --help for usage information or --save-config to generate a template.", file=sys.stderr)
        return 1

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

        print("=" * 60, file=sys.stderr)
        print("faceanchor - eyewear face anchoring", file=sys.stderr)
        print("=" * 60, file=sys.stderr)
        print(f"Asset: {pipeline.state.asset.id}", file=sys.stderr)
        print(f"Camera: {config.camera.projection}, viewport "
              f"{config.camera.viewport[0]}x{config.camera.viewport[1]}", file=sys.stderr)
        print(f"Input: {args.replay or f'camera {config.capture.device}'}", file=sys.stderr)
        print("=" * 60, file=sys.stderr)

    try:
        with ExitStack() as stack:
            if args.output:
                out = stack.enter_context(open(args.output, 'w'))
            else:
                out = sys.stdout

            def emit(result: FrameResult) -> None:
                out.write(json.dumps(result.to_dict()))
                out.write('\n')

            if args.replay:
                frames = LandmarkIngest.from_json(args.replay)
                results = pipeline.run_frames(frames)
                for result in results:
                    emit(result)
                n_frames = len(results)
                n_visible = sum(1 for r in results if r.visible)
            else:
                from .capture import TrackingSession

                counts = {"visible": 0}

                def on_result(result: FrameResult) -> None:
                    if result.visible:
                        counts["visible"] += 1
                    emit(result)

                with TrackingSession(config, on_result=on_result, pipeline=pipeline) as session:
                    n_frames = session.run(max_frames=args.max_frames)
                n_visible = counts["visible"]

        if args.verbose:
            print(f"\n✓ {n_frames} frames, face visible in {n_visible}", file=sys.stderr)

        return 0

    except FileNotFoundError as e:
        print(f"Error: File not found: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: Invalid input: {e}", file=sys.stderr)
        return 1
    except AcquisitionError as e:
        print(f"Error: Capture failed: {e}", file=sys.stderr)
        print("Check the camera and restart tracking.", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
