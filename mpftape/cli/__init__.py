"""
Command line programs: mpf2raw (encode) and raw2mpf (decode).
"""

import logging
import sys


def setup_logging(prog: str, verbose: bool, debug: bool):
    """Send diagnostics to stderr, prefixed by the program name."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format=f"{prog}:%(levelname)s:%(message)s",
        stream=sys.stderr,
    )
