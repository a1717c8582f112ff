import math
import os
import sys
import time
import warnings
from argparse import ArgumentParser, ArgumentTypeError
from pathlib import Path

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

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")
    for handler in tf.get_logger().handlers:
        handler.setLevel("ERROR")

from thorn import (
    CountStorage,
    PGMWriteError,
    RasterAllocationError,
    ThornParameters,
    Viewport,
    render_raster,
    to_image,
    write_pgm,
)
from thorn.renderer import DEFAULT_CX, DEFAULT_CY, DEFAULT_ESCAPE, DEFAULT_MAX_ITERATIONS

log("TensorFlow version: %s" % tf.__version__)


def _pair(kind, name):
    def parse(text):
        parts = text.split(',')
        if len(parts) != 2:
            raise ArgumentTypeError(f"{name} must be two comma-separated values, got '{text}'")
        try:
            return tuple(kind(part) for part in parts)
        except ValueError as exc:
            raise ArgumentTypeError(f"invalid {name} '{text}'") from exc
    return parse


def build_parser():
    parser = ArgumentParser(description='Render the Thorn fractal to a binary PGM file.')

    parser.add_argument('pgmfile', type=str,
                        help='destination PGM file')

    parser.add_argument('-s', '--size', type=_pair(int, 'size'),
                        dest='size', help='output resolution in pixels',
                        metavar='WIDTH,HEIGHT', default=(1024, 768))

    parser.add_argument('-x', '--x-range', type=_pair(float, 'x range'),
                        dest='x_range', help='sampled interval along the real axis',
                        metavar='XMIN,XMAX', default=(-math.pi, math.pi))

    parser.add_argument('-y', '--y-range', type=_pair(float, 'y range'),
                        dest='y_range', help='sampled interval along the imaginary axis',
                        metavar='YMIN,YMAX', default=(-math.pi, math.pi))

    parser.add_argument('--cx', type=float,
                        dest='cx', help='real constant added after each step',
                        metavar='CX', default=DEFAULT_CX)

    parser.add_argument('--cy', type=float,
                        dest='cy', help='imaginary constant added after each step',
                        metavar='CY', default=DEFAULT_CY)

    parser.add_argument('-m', '--max-iterations', type=int,
                        dest='max_iterations', help='iteration cap for each trajectory',
                        metavar='MAX_ITERATIONS', default=DEFAULT_MAX_ITERATIONS)

    parser.add_argument('-e', '--escape', type=float,
                        dest='escape', help='squared radius beyond which a trajectory has escaped',
                        metavar='ESCAPE', default=DEFAULT_ESCAPE)

    parser.add_argument('--storage', choices=[s.value for s in CountStorage], default=CountStorage.WIDE.value,
                        help='width of a stored iteration count: "byte" (8 bits) or "wide" (16 bits).')

    parser.add_argument('-j', '--workers', type=int,
                        dest='workers', help='number of worker threads (default: one per CPU)',
                        metavar='WORKERS', default=None)

    parser.add_argument('--standard-16bit', dest='standard_16bit', action='store_true',
                        help='Write wide pixels with the netpbm high-byte split instead of the historical value/255 split.')

    parser.add_argument('--preview', type=str, dest='preview', metavar='IMAGE',
                        help='Also write an 8-bit grayscale preview in any format supported by Pillow.')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow diagnostics.')

    return parser


def validate_options(opt, parser: ArgumentParser) -> None:
    width, height = opt.size
    if width <= 0 or height <= 0:
        parser.error(f"--size must be positive, got {width},{height}.")
    if not opt.x_range[0] < opt.x_range[1]:
        parser.error("--x-range must satisfy XMIN < XMAX.")
    if not opt.y_range[0] < opt.y_range[1]:
        parser.error("--y-range must satisfy YMIN < YMAX.")
    if not opt.escape > 0:
        parser.error("--escape must be positive.")
    storage = CountStorage(opt.storage)
    if opt.max_iterations < 0:
        parser.error("--max-iterations must not be negative.")
    if opt.max_iterations > storage.max_iterations:
        parser.error(f"--max-iterations must be at most {storage.max_iterations} with {storage.value} storage.")
    if opt.workers is not None and opt.workers <= 0:
        parser.error("--workers must be positive.")


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)
    validate_options(opt, parser)

    global VERBOSE
    VERBOSE = bool(opt.verbose)

    width, height = opt.size
    viewport = Viewport(opt.x_range[0], opt.x_range[1], opt.y_range[0], opt.y_range[1])
    params = ThornParameters(
        cx=opt.cx,
        cy=opt.cy,
        max_iterations=opt.max_iterations,
        escape=opt.escape,
    )
    storage = CountStorage(opt.storage)

    log("rendering %dx%d with %s" % (width, height, params))
    log("sampling %s" % viewport.metadata(width, height))
    started = time.perf_counter()
    try:
        raster = render_raster(width, height, viewport, params, storage=storage, workers=opt.workers)
    except RasterAllocationError as exc:
        print(f"Unable to allocate a {width}x{height} raster: {exc}", file=sys.stderr)
        return 1
    log("computed in %.3fs, maxval %d" % (time.perf_counter() - started, raster.maxval()))

    try:
        comment = "Thorn fractal: cx=%g, cy=%g" % (opt.cx, opt.cy)
        try:
            write_pgm(opt.pgmfile, raster, comment, standard_16bit=opt.standard_16bit)
        except PGMWriteError as exc:
            print(exc, file=sys.stderr)
            return 1
        log("wrote %s" % opt.pgmfile)

        if opt.preview:
            preview_path = Path(opt.preview).expanduser()
            try:
                preview_path.parent.mkdir(parents=True, exist_ok=True)
                to_image(raster).save(str(preview_path))
            except (OSError, ValueError) as exc:
                print(f"Unable to write preview {preview_path}: {exc}", file=sys.stderr)
                return 1
            log("wrote preview %s" % preview_path)
    finally:
        raster.release()

    return 0


if __name__ == '__main__':
    sys.exit(main())
