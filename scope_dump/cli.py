"""
scdd - scope data dumper for Rigol MSO5000 series

Command line entry point. Owns the device and the output stream, and is the
single place where errors and early exit outcomes turn into exit codes.
"""

import argparse
import contextlib
import logging
import os
import sys
from datetime import datetime
from typing import BinaryIO, ContextManager, List, Optional

from scope_dump import __version__
from scope_dump.config import DEFAULT_CHANNEL, PIPE_FILENAME, SUPPORTED_BACKENDS, DumpConfig
from scope_dump.errors import ScopeDumpError, SinkWriteError
from scope_dump.rigol_oscilloscope import DumpStatus, RigolMSO5000
from scope_dump.transport import DEFAULT_DEVICE, DEFAULT_TIMEOUT_MS, open_transport

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

BANNER = (
    f"This is scdd version {__version__} - data dumper for Rigol MSO5000 series\n"
    "(c) 2025 kittennbfive - github.com/kittennbfive/\n"
    "AGPLv3+ and NO WARRANTY\n"
)

logger = logging.getLogger("scdd")


def _setup_logging(verbose: bool = False) -> logging.Logger:
    """Send log records to stderr; stdout stays free for PIPE output"""
    level = logging.DEBUG if verbose else logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_scdd_handler", False):
            root.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler._scdd_handler = True

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scdd",
        description="Dump the RAW sample memory of one Rigol MSO5000 channel as voltages.",
        add_help=False,
    )
    parser.add_argument("--device", default=None,
                        help=f"USBTMC device or VISA address (default: {DEFAULT_DEVICE})")
    parser.add_argument("--channel", type=int, default=DEFAULT_CHANNEL,
                        help=f"Channel 1-4 (default: {DEFAULT_CHANNEL})")
    parser.add_argument("--filename", default=None,
                        help=f"Output file, {PIPE_FILENAME} for stdout (default: synthesized from device and time)")
    parser.add_argument("--raw-float", action="store_true",
                        help="Write raw native float32 values instead of text")
    parser.add_argument("--backend", choices=SUPPORTED_BACKENDS, default="usbtmc",
                        help="Transport backend (default: usbtmc)")
    parser.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS,
                        help=f"VISA timeout in milliseconds (default: {DEFAULT_TIMEOUT_MS})")
    parser.add_argument("--verbose", action="store_true", help="Log every SCPI exchange")
    parser.add_argument("--version", action="store_true", help="Print version banner and exit")
    parser.add_argument("-h", "--help", "--usage", action="help", help="Show this help and exit")
    return parser


def _print_progress(bytes_done: int, bytes_total: int) -> None:
    sys.stderr.write(f"\r{bytes_done} bytes read...")
    sys.stderr.flush()


def _open_sink(config: DumpConfig, filename: str) -> ContextManager[BinaryIO]:
    if config.writes_to_stdout:
        return contextlib.nullcontext(sys.stdout.buffer)
    return open(filename, "wb")


def _detach_stdout() -> None:
    """Point stdout at devnull so the interpreter's final flush cannot hit a closed pipe"""
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())


def run_dump(config: DumpConfig, now: Optional[datetime] = None) -> int:
    """
    Run one dump with a validated configuration.

    Returns:
        Process exit code
    """
    filename = config.resolve_filename(now)
    if config.writes_to_stdout:
        logger.info("output will be written to stdout")
    if config.raw_float:
        logger.info("will output raw binary data (float, 4 bytes each)")

    transport = open_transport(config.backend, config.device, config.timeout_ms)
    if not transport.connect():
        logger.error(f"opening device {transport.address} failed")
        return EXIT_FAILURE

    sink_opened = False
    try:
        scope = RigolMSO5000(transport, config.channel)
        logger.info(f"reading data from channel {scope.channel}")

        status = scope.check_preconditions()
        if status is DumpStatus.NOT_STOPPED:
            logger.warning("scope is not in STOP mode, exiting...")
            return EXIT_FAILURE
        if status is DumpStatus.CHANNEL_INACTIVE:
            logger.warning(f"channel {scope.channel} is not active, exiting...")
            return EXIT_FAILURE

        if not config.writes_to_stdout:
            logger.info(f"saving to file \"{filename}\"")

        try:
            sink_context = _open_sink(config, filename)
        except OSError as e:
            logger.error(f"opening output file \"{filename}\" failed: {e}")
            return EXIT_FAILURE

        try:
            with sink_context as sink:
                sink_opened = True
                result = scope.dump_waveform(sink, config.output_mode, _print_progress)
        except OSError as e:
            # close() retries a buffer whose flush already failed
            if isinstance(e.__context__, ScopeDumpError):
                raise e.__context__
            raise SinkWriteError("close output", "close failed", e) from e
        finally:
            sys.stderr.write("\n")

        logger.info(f"done, {result.samples_written} samples written, all fine")
        return EXIT_OK

    except ScopeDumpError as e:
        cause = f" ({e.cause})" if e.cause is not None else ""
        logger.error(f"{e.operation} failed: {e.message}{cause}")
        if config.writes_to_stdout and isinstance(e.cause, BrokenPipeError):
            _detach_stdout()
        if sink_opened and not config.writes_to_stdout:
            logger.warning(f"output file \"{filename}\" may be incomplete")
        return EXIT_FAILURE

    finally:
        transport.disconnect()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    device_defaulted = args.device is None
    if device_defaulted:
        args.device = DEFAULT_DEVICE
    config = DumpConfig.from_args(args)

    _setup_logging(config.verbose)
    sys.stderr.write(BANNER + "\n")

    if args.version:
        return EXIT_OK

    if device_defaulted:
        logger.info(f"no device specified, using default {DEFAULT_DEVICE}")

    is_valid, message = config.validate()
    if not is_valid:
        logger.error(message)
        return EXIT_FAILURE

    try:
        return run_dump(config)
    except KeyboardInterrupt:
        logger.warning("Shutdown requested by user")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
