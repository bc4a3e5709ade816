"""Run configuration for the scope data dumper."""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from scope_dump.sample_converter import OutputMode
from scope_dump.transport import DEFAULT_DEVICE, DEFAULT_TIMEOUT_MS

DEFAULT_CHANNEL = 1

# Filename that selects standard output
PIPE_FILENAME = "PIPE"

SUPPORTED_BACKENDS = ("usbtmc", "visa")

# Characters kept from the device name in synthesized filenames
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass
class DumpConfig:
    """
    Settings of one dump run.

    filename None means a name is synthesized from device, channel and time;
    "PIPE" means standard output.
    """

    device: str = DEFAULT_DEVICE
    channel: int = DEFAULT_CHANNEL
    filename: Optional[str] = None
    output_mode: OutputMode = OutputMode.TEXT_DECIMAL
    backend: str = "usbtmc"
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    verbose: bool = False

    def validate(self) -> Tuple[bool, str]:
        """Returns (True, "Configuration valid") or (False, reason)"""
        if not self.device:
            return False, "Device cannot be empty"

        if not isinstance(self.channel, int) or not (1 <= self.channel <= 4):
            return False, f"invalid channel {self.channel}"

        if self.backend not in SUPPORTED_BACKENDS:
            return False, f"Unsupported backend {self.backend!r}, must be one of {SUPPORTED_BACKENDS}"

        if self.timeout_ms <= 0:
            return False, "Timeout must be positive"

        if self.filename is not None and not self.filename:
            return False, "Filename cannot be empty"

        return True, "Configuration valid"

    @property
    def writes_to_stdout(self) -> bool:
        return self.filename == PIPE_FILENAME

    @property
    def raw_float(self) -> bool:
        return self.output_mode is OutputMode.RAW_BINARY_FLOAT

    def device_basename(self) -> str:
        """Last path component of the device, made safe for filenames"""
        base = self.device.rstrip("/").rsplit("/", 1)[-1] or self.device
        return _UNSAFE_FILENAME_CHARS.sub("_", base)

    def resolve_filename(self, now: Optional[datetime] = None) -> str:
        """
        Output filename; synthesized as <device>_ch<N>_<DD>.<MM>_<HHMMSS>.txt
        when none was given. No ':' so the name is valid on FAT32.
        """
        if self.filename:
            return self.filename

        now = now or datetime.now()
        return f"{self.device_basename()}_ch{self.channel}_{now:%d.%m_%H%M%S}.txt"

    @classmethod
    def from_args(cls, args) -> "DumpConfig":
        """Build from an argparse namespace"""
        return cls(
            device=args.device,
            channel=args.channel,
            filename=args.filename,
            output_mode=OutputMode.RAW_BINARY_FLOAT if args.raw_float else OutputMode.TEXT_DECIMAL,
            backend=args.backend,
            timeout_ms=args.timeout_ms,
            verbose=args.verbose,
        )
