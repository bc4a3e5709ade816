"""Tests for raw sample conversion and output serialization."""

import io

import numpy as np
import pytest

from scope_dump.errors import SinkWriteError
from scope_dump.sample_converter import CalibrationParameters, OutputMode, SampleConverter

ALL_RAW = bytes(range(256))


def expected_values(raw: bytes, offset: float, scale: float) -> np.ndarray:
    samples = np.frombuffer(raw, dtype=np.uint8).astype(np.float32)
    return (samples - (np.float32(128) + np.float32(offset))) * np.float32(scale)


class BrokenSink:
    def write(self, data):
        raise OSError(28, "No space left on device")


@pytest.mark.parametrize("offset,scale", [
    (0.0, 1.0),
    (0.0, 0.04),
    (-12.5, 0.0125),
    (3.0, -2.0),
])
def test_convert_matches_formula_for_every_raw_value(offset, scale):
    converter = SampleConverter(CalibrationParameters(offset, scale), io.BytesIO())

    values = converter.convert(ALL_RAW)

    assert values.dtype == np.float32
    np.testing.assert_array_equal(values, expected_values(ALL_RAW, offset, scale))
    for raw, value in zip(ALL_RAW, values.tolist()):
        assert value == pytest.approx((raw - 128 - offset) * scale, rel=1e-5, abs=1e-5)


def test_text_output_two_decimals_one_per_line():
    sink = io.BytesIO()
    converter = SampleConverter(CalibrationParameters(0.0, 1.0), sink, OutputMode.TEXT_DECIMAL)

    converter.write(bytes([0, 128, 255, 129]))

    assert sink.getvalue() == b"-128.00\n0.00\n127.00\n1.00\n"
    assert converter.samples_written == 4


def test_raw_float_output_is_native_float32():
    sink = io.BytesIO()
    converter = SampleConverter(CalibrationParameters(1.5, 0.02), sink, OutputMode.RAW_BINARY_FLOAT)

    converter.write(ALL_RAW)

    data = sink.getvalue()
    assert len(data) == 4 * 256
    np.testing.assert_array_equal(np.frombuffer(data, dtype=np.float32), expected_values(ALL_RAW, 1.5, 0.02))


def test_text_and_raw_float_agree_within_rounding():
    calibration = CalibrationParameters(-7.25, 0.0390625)
    text_sink, raw_sink = io.BytesIO(), io.BytesIO()

    SampleConverter(calibration, text_sink, OutputMode.TEXT_DECIMAL).write(ALL_RAW)
    SampleConverter(calibration, raw_sink, OutputMode.RAW_BINARY_FLOAT).write(ALL_RAW)

    text_values = [float(line) for line in text_sink.getvalue().decode("ascii").splitlines()]
    raw_values = np.frombuffer(raw_sink.getvalue(), dtype=np.float32)

    assert len(text_values) == len(raw_values) == 256
    for text_value, raw_value in zip(text_values, raw_values.tolist()):
        assert abs(text_value - raw_value) <= 0.005 + 1e-9


def test_streaming_writes_accumulate():
    sink = io.BytesIO()
    converter = SampleConverter(CalibrationParameters(0.0, 1.0), sink)

    converter.write(bytes([128]) * 3)
    converter.write(memoryview(bytes([130]) * 2))
    converter.write(b"")

    assert sink.getvalue() == b"0.00\n0.00\n0.00\n2.00\n2.00\n"
    assert converter.samples_written == 5


def test_calibration_is_float32_and_immutable():
    calibration = CalibrationParameters(offset=0.1, scale=2)

    assert isinstance(calibration.offset, np.float32)
    assert isinstance(calibration.scale, np.float32)
    with pytest.raises(AttributeError):
        calibration.offset = 1.0


def test_sink_failure_raises_sink_write_error():
    converter = SampleConverter(CalibrationParameters(0.0, 1.0), BrokenSink())

    with pytest.raises(SinkWriteError) as excinfo:
        converter.write(bytes([1, 2, 3]))

    assert isinstance(excinfo.value.cause, OSError)
    assert converter.samples_written == 0


def test_closed_sink_raises_sink_write_error():
    sink = io.BytesIO()
    sink.close()
    converter = SampleConverter(CalibrationParameters(0.0, 1.0), sink)

    with pytest.raises(SinkWriteError):
        converter.write(bytes([1]))


class BufferedFullSink:
    """Accepts writes, fails once the buffer is pushed out"""

    def write(self, data):
        return len(data)

    def flush(self):
        raise OSError(28, "No space left on device")


def test_flush_failure_raises_sink_write_error():
    converter = SampleConverter(CalibrationParameters(0.0, 1.0), BufferedFullSink())
    converter.write(bytes([128, 129]))

    with pytest.raises(SinkWriteError) as excinfo:
        converter.flush()

    assert excinfo.value.operation == "flush output"
    assert excinfo.value.cause.errno == 28
