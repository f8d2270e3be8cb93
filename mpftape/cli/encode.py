#!/usr/bin/env python3
"""
mpf2raw - convert MPF-1 hex program listings to tape audio.
"""

import sys

import click

from mpftape import SAMPLE_RATE, MPFEncoder, parse_lines
from mpftape.audio import detect_format, write_samples
from mpftape.cli import setup_logging


@click.command()
@click.argument(
    "input",
    type=click.File("r"),
    default="-",
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, allow_dash=True),
    default="-",
    help="Output file, '-' for raw samples on stdout (default: -)",
)
@click.option(
    "-f", "--format", "fmt",
    type=click.Choice(["raw", "wav"]),
    default=None,
    help="Output format (default: from the output suffix, raw for stdout)",
)
@click.option(
    "-a", "--amplitude",
    type=float,
    default=1.0,
    help="Amplitude 0.0-1.0 (default: 1.0)",
)
@click.option(
    "-w", "--waveform",
    type=click.Choice(["square", "sine"]),
    default="square",
    help="Tone waveform (default: square)",
)
@click.option(
    "-p", "--play",
    is_flag=True,
    help="Also play the audio (requires sounddevice)",
)
@click.option(
    "-d", "--device",
    type=int,
    help="Audio output device number for --play (default: system default)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Debug output",
)
def main(input, output: str, fmt: str | None, amplitude: float, waveform: str,
         play: bool, device: int | None, verbose: bool, debug: bool):
    """
    Convert lines of the form FFFF/AAAA:hexdata to 8kHz/U8 tape audio.

    Malformed lines are skipped with a warning.

    Examples:

        mpf2raw programs.txt -o programs.raw

        mpf2raw programs.txt -o programs.wav --waveform sine

        echo 0000/1800:3e01 | mpf2raw --play -o /dev/null
    """
    setup_logging("mpf2raw", verbose, debug)

    try:
        encoder = MPFEncoder(amplitude=amplitude, waveform=waveform)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    records = list(parse_lines(input))
    samples = encoder.encode_records(records)

    try:
        if output == "-":
            if fmt == "wav":
                raise ValueError("WAV output needs a file, use -o")
            stdout = click.get_binary_stream("stdout")
            stdout.write(samples.tobytes())
            stdout.flush()
        else:
            write_samples(output, samples, detect_format(output, fmt))
    except (ValueError, OSError, RuntimeError) as e:
        click.echo(f"Error writing output: {e}", err=True)
        sys.exit(1)

    if play and len(samples):
        try:
            MPFEncoder.play(samples, device=device)
        except Exception as e:
            click.echo(f"Error playing audio: {e}", err=True)
            sys.exit(1)

    if verbose:
        click.echo(f"Encoded {len(records)} program(s), {len(samples) / SAMPLE_RATE:.1f}s of audio", err=True)


if __name__ == "__main__":
    main()
