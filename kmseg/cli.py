"""
Command line entry point.

    kmseg -i input.png -o output.png -k 4 [-m 150] [-p serial|parallel|cuda]
          [-t threads] [-s seed | -d] [-v]
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from .data_loader import (
    load_image, save_image, ImageLoadError, ImageSaveError, UnsupportedFormatError
)
from .kmeans import KMeans, KMeansConfig, Backend, DEBUG_SEED


logger = logging.getLogger(__name__)

DEFAULT_N_CLUSTERS = 4
DEFAULT_MAX_ITERS = 150
DEFAULT_THREADS = 1

PARADIGM_ALIASES = {'omp': Backend.PARALLEL.value}

DETAILS = (
    "EXECUTION DETAILS\n"
    "-------------------------------------------------------\n"
    "  Number of pixels        : {n_pixels}\n"
    "  Number of channels      : {n_channels}\n"
    "  Number of clusters      : {n_clusters}\n"
    "  Programming paradigm    : {paradigm}\n"
    "  Number of threads       : {n_threads}\n"
    "  Execution time          : {exec_time:f}\n"
    "  Sum of Squared Errors   : {sse:f}\n"
    "  Number of iterations    : {n_iter}\n"
    "  Status                  : {status}"
)


def _at_least(minimum: int):
    def parse(value: str) -> int:
        number = int(value)
        if number < minimum:
            raise argparse.ArgumentTypeError(f"must be >= {minimum}, got {number}")
        return number
    return parse


def _paradigm(value: str) -> str:
    value = PARADIGM_ALIASES.get(value.lower(), value.lower())
    valid = [b.value for b in Backend]
    if value not in valid:
        raise argparse.ArgumentTypeError(f"must be one of {valid}, got '{value}'")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kmseg",
        description="Color-based image segmentation with k-means clustering."
    )
    parser.add_argument("-i", "--input", required=True,
                        help="Input image file (any format Pillow can decode)")
    parser.add_argument("-o", "--output", required=True,
                        help="Output image file: .jpg, .jpeg, .png, .bmp or .tga")
    parser.add_argument("-k", "--clusters", type=_at_least(2), default=DEFAULT_N_CLUSTERS,
                        help=f"Number of clusters, >= 2 (default {DEFAULT_N_CLUSTERS})")
    parser.add_argument("-m", "--max-iters", type=_at_least(1), default=DEFAULT_MAX_ITERS,
                        help=f"Maximum number of iterations (default {DEFAULT_MAX_ITERS})")
    parser.add_argument("-p", "--paradigm", type=_paradigm, default=Backend.SERIAL.value,
                        help="Execution strategy: serial, parallel (alias omp) or cuda")
    parser.add_argument("-t", "--threads", type=_at_least(1), default=DEFAULT_THREADS,
                        help="Number of workers, parallel paradigm only "
                             f"(default {DEFAULT_THREADS})")
    parser.add_argument("-s", "--seed", type=int, default=None,
                        help="Seed for the selection of the initial centers")
    parser.add_argument("-d", "--debug", action="store_true",
                        help=f"Always use the same initial centers (seed {DEBUG_SEED})")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log every iteration")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    seed = DEBUG_SEED if args.debug else args.seed

    try:
        buffer = load_image(args.input)
    except ImageLoadError as e:
        print(f"ERROR LOADING IMAGE: {e}", file=sys.stderr)
        return 1

    try:
        config = KMeansConfig(
            n_clusters=args.clusters,
            max_iter=args.max_iters,
            backend=args.paradigm,
            n_workers=args.threads,
            random_state=seed,
        )
        kmeans = KMeans(config)
        logger.debug("Loaded %s (%dx%d, %d channels), %s",
                     args.input, buffer.width, buffer.height, buffer.n_channels, config)

        start_time = time.perf_counter()
        result = kmeans.segment(buffer)
        exec_time = time.perf_counter() - start_time
    except (NotImplementedError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    try:
        save_image(args.output, buffer)
    except (UnsupportedFormatError, ImageSaveError) as e:
        print(f"ERROR SAVING IMAGE: {e}", file=sys.stderr)
        return 1

    print(DETAILS.format(
        n_pixels=buffer.n_pixels,
        n_channels=buffer.n_channels,
        n_clusters=config.n_clusters,
        paradigm=config.backend.value,
        n_threads=kmeans.backend.n_workers,
        exec_time=exec_time,
        sse=result.sse,
        n_iter=result.n_iter,
        status=result.status.value,
    ))

    return 0
