import os
import re
import sys
import warnings
from argparse import ArgumentParser
from pathlib import Path
from typing import Callable, Optional, Tuple, TypeVar

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


import tensorflow as tf
import numpy as np
import PIL.Image

from mandelbrot_bands import DEFAULT_LIMIT, RenderParameters, default_worker_count, render

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")
    for handler in tf.get_logger().handlers:
        handler.setLevel("ERROR")

T = TypeVar("T")

EXAMPLE_ARGS = "mandel.png 1000x750 -1.20,0.35 -1,0.20"


def select_device() -> str:
    """Use the first GPU when TensorFlow can see one, else the CPU."""

    gpus = tf.config.list_physical_devices('GPU')
    if not gpus:
        log("No GPU found, using CPU")
        return '/CPU:0'
    try:
        for gpu in gpus:
            tf.config.experimental.set_memory_growth(gpu, True)
    except RuntimeError as e:
        log(e)
        return '/CPU:0'
    log("GPU found, using %s" % gpus[0].name)
    return '/GPU:0'


def parse_pair(s: str, separator: str, convert: Callable[[str], T]) -> Optional[Tuple[T, T]]:
    """Parse ``"<left><separator><right>"`` into two converted values.

    Returns ``None`` when the separator is missing or either half does not
    convert.
    """

    index = s.find(separator)
    if index == -1:
        return None
    try:
        return convert(s[:index]), convert(s[index + 1:])
    except ValueError:
        return None


def parse_complex(s: str) -> Optional[complex]:
    pair = parse_pair(s, ',', float)
    if pair is None:
        return None
    return complex(pair[0], pair[1])


class UsageParser(ArgumentParser):
    """Argument parser that exits with status 1 and an example on misuse."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Corners such as "-1.20,0.35" are positionals, not options.
        self._negative_number_matcher = re.compile(r"^-\.?\d")

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\nExample: {self.prog} {EXAMPLE_ARGS}\n")


def build_parser():
    parser = UsageParser(prog=os.path.basename(sys.argv[0]) or "render.py",
                         description="Render the Mandelbrot set to a grayscale image.")

    parser.add_argument('file', metavar='FILE', help='image file to write')
    parser.add_argument('pixels', metavar='PIXELS', help='image size as WIDTHxHEIGHT, e.g. 1000x750')
    parser.add_argument('upper_left', metavar='UPPERLEFT', help='upper left corner of the window as RE,IM')
    parser.add_argument('lower_right', metavar='LOWERRIGHT', help='lower right corner of the window as RE,IM')

    parser.add_argument('--workers', type=int,
                        dest='workers', help='number of row bands rendered concurrently (default: CPU count)',
                        metavar='WORKERS', default=None)

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='iteration limit per pixel, at most 255',
                        metavar='MAX_ITERATIONS', default=DEFAULT_LIMIT)

    parser.add_argument('--format', type=str,
                        dest='format', help='file format for the image. Can be any extension supported by Pillow. Default: "png".',
                        metavar='FORMAT', default='png')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow and hardware diagnostics.')

    return parser


def resolve_parameters(opt, parser: ArgumentParser) -> RenderParameters:
    dimensions = parse_pair(opt.pixels, 'x', int)
    if dimensions is None:
        parser.error(f"error parsing image dimensions '{opt.pixels}'")
    width, height = dimensions
    if width <= 0 or height <= 0:
        parser.error(f"image dimensions must be positive, got {opt.pixels}")

    upper_left = parse_complex(opt.upper_left)
    if upper_left is None:
        parser.error(f"error parsing upper left corner point '{opt.upper_left}'")
    lower_right = parse_complex(opt.lower_right)
    if lower_right is None:
        parser.error(f"error parsing lower right corner point '{opt.lower_right}'")

    workers = opt.workers if opt.workers is not None else default_worker_count()
    if workers < 1:
        parser.error("--workers must be at least 1.")
    if not 1 <= opt.max_iterations <= DEFAULT_LIMIT:
        parser.error(f"--max-iterations must be between 1 and {DEFAULT_LIMIT}.")

    return RenderParameters(
        width=width,
        height=height,
        upper_left=upper_left,
        lower_right=lower_right,
        workers=workers,
        limit=opt.max_iterations,
    )


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def write_image(output_path: Path, pixels: np.ndarray, width: int, height: int, image_format: str = "png") -> None:
    """Encode a row-major byte buffer as an 8-bit grayscale image."""

    image = PIL.Image.fromarray(pixels.reshape(height, width).astype(np.uint8, copy=False))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    image.save(str(output_path), format=_pil_format_name(image_format.lower().lstrip(".") or "png"))


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    global VERBOSE
    VERBOSE = bool(opt.verbose)

    params = resolve_parameters(opt, parser)
    log("TensorFlow version: %s" % tf.__version__)
    device = select_device()

    log("rendering {0}x{1} with {2} workers".format(params.width, params.height, params.workers))
    result = render(params, device=device)

    output_path = Path(opt.file).expanduser()
    try:
        write_image(output_path, result.pixels, params.width, params.height, opt.format)
    except (OSError, ValueError, KeyError) as e:
        print(f"error writing image file {output_path}: {e}", file=sys.stderr)
        return 1
    log("wrote %s" % output_path)
    return 0


if __name__ == '__main__':
    sys.exit(main())
