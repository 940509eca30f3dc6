"""Tests for timestamps."""
import re

from docchat.utils.clock import compact_timestamp, utc_timestamp


def test_timestamps_strictly_increase():
    stamps = [utc_timestamp() for _ in range(1000)]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


def test_timestamp_format():
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6}\+00:00", utc_timestamp())
    assert re.fullmatch(r"\d{20}", compact_timestamp())
