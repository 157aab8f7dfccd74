"""Command-line interface for retext.

This module provides the main CLI entry point with one subcommand per
editing use case: applying filters, detecting and extracting text,
replacing detected text and adding new text.
"""

import json
import logging
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .buffer import PixelBuffer
from .compositor import TextStyle
from .config import EditorConfig
from .errors import RetextError
from .filters import FilterKind
from .utils import IMAGE_EXTENSIONS, setup_logger
from .workflow import EditResult, EditWorkflow

logger = setup_logger(__name__)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the photo text editing tool."""
    args = parse_args(argv)

    # Setup logging
    if args.verbose:
        _set_package_level(logging.DEBUG)
        logger.debug("Debug logging enabled")

    # Setup file logging if requested
    if args.logfile:
        log_path = Path(args.logfile)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode='w')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        logging.getLogger().addHandler(file_handler)
        logger.info(f"Logging to file: {log_path}")

    try:
        workflow = EditWorkflow(config=EditorConfig.from_args(args))
        args.handler(workflow, args)
    except RetextError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)

def _set_package_level(level: int) -> None:
    for name in list(logging.root.manager.loggerDict):
        if name == "retext" or name.startswith("retext."):
            logging.getLogger(name).setLevel(level)

def _load_input(args: argparse.Namespace) -> PixelBuffer:
    input_path = Path(args.input)
    if not input_path.is_file():
        logger.error(f"Input path '{args.input}' does not exist")
        sys.exit(1)
    return PixelBuffer.load(input_path)

def _write_result(result: EditResult, output: str) -> Path:
    """Save a result to ``output``, a file path or an existing directory."""
    output_path = Path(output)
    if output_path.is_dir() or output_path.suffix.lower() not in IMAGE_EXTENSIONS:
        output_path.mkdir(parents=True, exist_ok=True)
        output_path = output_path / result.name

    result.image.save(output_path)
    logger.info(f"Saved {result.width}×{result.height} result to: {output_path}")
    return output_path

def _style_from_args(args: argparse.Namespace) -> TextStyle:
    return TextStyle.from_params(
        font_family=args.font,
        size=args.size,
        color=args.color,
        style=args.style,
    )

def cmd_filter(workflow: EditWorkflow, args: argparse.Namespace) -> None:
    image = _load_input(args)
    result = workflow.apply_filter(image, args.type, args.value, source_name=Path(args.input).name)
    _write_result(result, args.output)

def cmd_detect(workflow: EditWorkflow, args: argparse.Namespace) -> None:
    regions = workflow.detect_text(_load_input(args))
    print(json.dumps([region.to_dict() for region in regions], indent=2))

def cmd_extract(workflow: EditWorkflow, args: argparse.Namespace) -> None:
    print(workflow.extract_text(_load_input(args)))

def cmd_replace_text(workflow: EditWorkflow, args: argparse.Namespace) -> None:
    image = _load_input(args)
    result = workflow.replace_text(
        image, args.find, args.replace,
        style=_style_from_args(args),
        source_name=Path(args.input).name,
    )
    logger.info(f"Replaced text '{result.region.text}' at ({result.region.x},{result.region.y})")
    _write_result(result, args.output)

def cmd_add_text(workflow: EditWorkflow, args: argparse.Namespace) -> None:
    image = _load_input(args)
    result = workflow.add_text(
        image, args.text, args.x, args.y,
        style=_style_from_args(args),
        source_name=Path(args.input).name,
    )
    _write_result(result, args.output)

def cmd_health(workflow: EditWorkflow, args: argparse.Namespace) -> None:
    status = workflow.health()
    print(json.dumps(status, indent=2))
    if not status["ocr_available"]:
        sys.exit(1)

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Edit photos: apply filters, detect text and replace or add text."
    )

    parser.add_argument(
        "-l", "--logfile",
        help="Path to log file for detailed logging"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--tessdata",
        help="Tesseract data directory, searched before the default locations"
    )

    parser.add_argument(
        "--lang",
        default="eng",
        help="Tesseract language code (default: eng)"
    )

    parser.add_argument(
        "--tesseract-cmd",
        help="Path to the tesseract executable"
    )

    parser.add_argument(
        "--margin",
        type=int,
        default=10,
        help="Width of the background band sampled around removed text (default: 10)"
    )

    parser.add_argument(
        "-p", "--inpaint",
        choices=["flat", "telea"],
        default="flat",
        help="Inpainting method used to remove text (default: flat)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    filter_parser = _add_command(subparsers, "filter", cmd_filter, "Apply a pixel filter", output=True)
    filter_parser.add_argument(
        "-t", "--type",
        required=True,
        choices=[kind.value for kind in FilterKind],
        help="Filter to apply"
    )
    filter_parser.add_argument(
        "--value",
        help="Factor for brightness/contrast (e.g. 1.2) or radius for blur (e.g. 2)"
    )

    _add_command(subparsers, "detect", cmd_detect, "Print detected text regions as JSON")
    _add_command(subparsers, "extract", cmd_extract, "Print the plain text found in an image")

    replace_parser = _add_command(
        subparsers, "replace-text", cmd_replace_text, "Replace detected text", output=True
    )
    replace_parser.add_argument(
        "--find",
        required=True,
        help="Text to replace (case-insensitive exact match)"
    )
    replace_parser.add_argument(
        "--replace",
        required=True,
        help="Replacement text"
    )
    _add_style_arguments(replace_parser)

    add_parser = _add_command(subparsers, "add-text", cmd_add_text, "Draw new text", output=True)
    add_parser.add_argument(
        "--text",
        required=True,
        help="Text to draw"
    )
    add_parser.add_argument(
        "-x",
        type=int,
        default=50,
        help="Baseline start column (default: 50)"
    )
    add_parser.add_argument(
        "-y",
        type=int,
        default=50,
        help="Baseline row (default: 50)"
    )
    _add_style_arguments(add_parser)

    health_parser = subparsers.add_parser("health", help="Check whether the OCR engine works")
    health_parser.set_defaults(handler=cmd_health)

    return parser.parse_args(argv)

def _add_command(subparsers, name: str, handler, help_text: str, output: bool = False) -> argparse.ArgumentParser:
    command = subparsers.add_parser(name, help=help_text)
    command.set_defaults(handler=handler)
    command.add_argument(
        "-i", "--input",
        required=True,
        help="Path to input image file"
    )
    if output:
        command.add_argument(
            "-o", "--output",
            required=True,
            help="Output image path, or a directory to write a generated file name into"
        )
    return command

def _add_style_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--font",
        default="default",
        help="Font family name (default: platform default)"
    )
    parser.add_argument(
        "--size",
        type=int,
        default=20,
        help="Font size in pixels (default: 20)"
    )
    parser.add_argument(
        "--color",
        default="#000000",
        help="Text color in hex format (default: #000000)"
    )
    parser.add_argument(
        "--style",
        choices=["normal", "bold", "italic", "bold italic"],
        default="normal",
        help="Font style (default: normal)"
    )

if __name__ == "__main__":
    main()
