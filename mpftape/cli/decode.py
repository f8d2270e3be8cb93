#!/usr/bin/env python3
"""
raw2mpf - recover MPF-1 programs from tape audio.
"""

import sys

import click

from mpftape import MID_SYNC_MIN, TAIL_SYNC_MIN, MPFDecoder, decode_file, decode_stream
from mpftape.cli import setup_logging


@click.command()
@click.argument(
    "input",
    type=click.Path(dir_okay=False, allow_dash=True),
    default="-",
)
@click.option(
    "-o", "--output",
    type=click.File("w"),
    default="-",
    help="Output text file (default: stdout)",
)
@click.option(
    "-f", "--format", "fmt",
    type=click.Choice(["raw", "wav"]),
    default=None,
    help="Input format (default: from the input suffix, raw for stdin)",
)
@click.option(
    "-c", "--channel",
    type=int,
    default=0,
    help="Channel of a multi-channel WAV file (default: 0)",
)
@click.option(
    "--mid-sync-min",
    type=int,
    default=MID_SYNC_MIN,
    show_default=True,
    help="Minimum MID_SYNC length in 2kHz waves",
)
@click.option(
    "--tail-sync-min",
    type=int,
    default=TAIL_SYNC_MIN,
    show_default=True,
    help="Minimum TAIL_SYNC length in 2kHz waves",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output with statistics",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Debug output",
)
def main(input: str, output, fmt: str | None, channel: int, mid_sync_min: int,
         tail_sync_min: int, verbose: bool, debug: bool):
    """
    Decode 8kHz/U8 tape audio to lines of the form FFFF/AAAA:hexdata.

    Records with framing or checksum errors are reported and skipped.

    Examples:

        raw2mpf programs.raw

        raw2mpf recording.wav -o programs.txt

        raw2mpf -v < programs.raw
    """
    setup_logging("raw2mpf", verbose, debug)

    decoder = MPFDecoder(mid_sync_min=mid_sync_min, tail_sync_min=tail_sync_min)
    count = 0

    try:
        if input == "-":
            if fmt == "wav":
                raise ValueError("WAV input needs a file")
            records = decode_stream(click.get_binary_stream("stdin"), decoder)
        else:
            records = decode_file(input, fmt=fmt, channel=channel, decoder=decoder)

        for record in records:
            output.write(record.to_line())
            output.flush()
            count += 1
    except (ValueError, OSError, RuntimeError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if verbose:
        click.echo(f"Stats: {decoder.get_statistics()}", err=True)

    if count == 0:
        click.echo("No programs decoded.", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
