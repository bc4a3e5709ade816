"""
Instrument transports.

Byte-level channels to the oscilloscope. Both backends expose the same
bounded read/write pair: every read returns at most one transfer worth of
bytes, exactly like read(2) on the Linux USBTMC character device.

- UsbtmcTransport: the kernel USBTMC driver's /dev/usbtmcN node
- VisaTransport: any VISA resource through pyvisa (NI-VISA or pyvisa-py)
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple, Type

import pyvisa

from scope_dump.errors import TransportError, TransportReadError, TransportWriteError

DEFAULT_DEVICE = "/dev/usbtmc0"
DEFAULT_TIMEOUT_MS = 10000


class Transport(ABC):
    """Common write/read bookkeeping for instrument transports."""

    # Backend exceptions that are translated into TransportError subclasses
    _io_errors: Tuple[Type[BaseException], ...] = (OSError,)

    def __init__(self, address: str) -> None:
        if not address or not isinstance(address, str):
            raise ValueError("address must be a non-empty string")

        self._address = address
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def address(self) -> str:
        return self._address

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    def connect(self) -> bool:
        """Open the backend; False if the instrument cannot be reached"""

    @abstractmethod
    def disconnect(self) -> None:
        pass

    @abstractmethod
    def _write(self, data: bytes) -> int:
        """Write once, returning the number of bytes accepted"""

    @abstractmethod
    def _read(self, max_bytes: int) -> bytes:
        """Read once, returning at most max_bytes"""

    def write(self, data: bytes, operation: str = "write") -> int:
        """
        Write bytes to the instrument.

        Raises:
            TransportWriteError: not connected, backend error, or short write
        """
        if not self.is_connected:
            raise TransportWriteError(operation, "instrument not connected")

        try:
            written = self._write(data)
        except self._io_errors as e:
            self._logger.error(f"Write of {len(data)} bytes failed: {e}")
            raise TransportWriteError(operation, "write failed", e) from e

        if written is None or written != len(data):
            raise TransportWriteError(operation, f"short write ({written} of {len(data)} bytes)")

        return written

    def read(self, max_bytes: int, operation: str = "read") -> bytes:
        """
        Read at most max_bytes from the instrument in a single transfer.

        Raises:
            TransportReadError: not connected, backend error, or zero bytes returned
        """
        if max_bytes <= 0:
            raise ValueError(f"max_bytes must be positive, got {max_bytes}")
        if not self.is_connected:
            raise TransportReadError(operation, "instrument not connected")

        try:
            data = self._read(max_bytes)
        except self._io_errors as e:
            self._logger.error(f"Read of up to {max_bytes} bytes failed: {e}")
            raise TransportReadError(operation, "read failed", e) from e

        if not data:
            raise TransportReadError(operation, "read returned no data")

        return data

    def __enter__(self):
        if not self.connect():
            raise TransportError("connect", f"failed to connect to {self._address}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


class UsbtmcTransport(Transport):
    """Linux kernel USBTMC character device (/dev/usbtmcN)."""

    def __init__(self, device_path: str = DEFAULT_DEVICE) -> None:
        super().__init__(device_path)
        self._fd: Optional[int] = None

    @property
    def is_connected(self) -> bool:
        return self._fd is not None

    def connect(self) -> bool:
        try:
            self._logger.info(f"Opening device {self._address}")
            self._fd = os.open(self._address, os.O_RDWR)
            return True
        except OSError as e:
            self._logger.error(f"Opening device {self._address} failed: {e}")
            self._fd = None
            return False

    def disconnect(self) -> None:
        if self._fd is None:
            return
        try:
            os.close(self._fd)
            self._logger.info(f"Closed device {self._address}")
        except OSError as e:
            self._logger.warning(f"Error closing device {self._address}: {e}")
        self._fd = None

    def _write(self, data: bytes) -> int:
        return os.write(self._fd, data)

    def _read(self, max_bytes: int) -> bytes:
        return os.read(self._fd, max_bytes)


class VisaTransport(Transport):
    """
    VISA resource transport.

    Uses write_raw and a single visalib read per call so that no termination
    characters are added or stripped and read boundaries stay bounded.
    """

    _io_errors = (pyvisa.errors.VisaIOError, OSError)

    def __init__(self, visa_address: str, timeout_ms: int = DEFAULT_TIMEOUT_MS,
                 visa_library: str = "") -> None:
        super().__init__(visa_address)
        if timeout_ms <= 0:
            raise ValueError("Timeout must be positive")

        self._timeout_ms = timeout_ms
        self._visa_library = visa_library
        self._resource_manager: Optional[pyvisa.ResourceManager] = None
        self._instrument: Any = None  # pyvisa Resource object

    @property
    def timeout(self) -> int:
        """Get current timeout in milliseconds"""
        return self._timeout_ms

    @property
    def is_connected(self) -> bool:
        return self._instrument is not None

    def connect(self) -> bool:
        try:
            self._logger.info(f"Attempting VISA connection to: {self._address}")
            self._resource_manager = pyvisa.ResourceManager(self._visa_library)
            self._instrument = self._resource_manager.open_resource(self._address)
            self._instrument.timeout = self._timeout_ms
            return True

        except pyvisa.errors.VisaIOError as e:
            self._logger.error(f"VISA IO error connecting to {self._address}: {e}")
        except (OSError, ValueError) as e:
            self._logger.error(f"Unexpected error connecting to {self._address}: {e}")

        self.disconnect()
        return False

    def disconnect(self) -> None:
        """Clean disconnect with proper resource cleanup"""
        try:
            if self._instrument is not None:
                self._logger.info("Closing instrument connection...")
                self._instrument.close()
        except pyvisa.errors.VisaIOError as e:
            self._logger.warning(f"Error closing instrument: {e}")

        try:
            if self._resource_manager is not None:
                self._resource_manager.close()
        except pyvisa.errors.VisaIOError as e:
            self._logger.warning(f"Error closing resource manager: {e}")

        self._instrument = None
        self._resource_manager = None

    def _write(self, data: bytes) -> int:
        return self._instrument.write_raw(data)

    def _read(self, max_bytes: int) -> bytes:
        data, _status = self._instrument.visalib.read(self._instrument.session, max_bytes)
        return bytes(data)


def open_transport(backend: str, address: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> Transport:
    """
    Factory function to create a transport for the given backend.

    Raises:
        ValueError: If backend is not supported
    """
    backend = backend.lower()

    if backend == "usbtmc":
        return UsbtmcTransport(address)
    elif backend == "visa":
        return VisaTransport(address, timeout_ms=timeout_ms)
    else:
        raise ValueError(f"Unsupported transport backend: {backend}. "
                         f"Supported backends: usbtmc, visa")
