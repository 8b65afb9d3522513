"""Tests for audio level analysis."""

import numpy as np

from voicecall.audio.analysis import LevelAnalyser, compute_rms


class TestComputeRms:
    """Tests for compute_rms."""

    def test_constant_signal(self) -> None:
        """RMS of a constant signal is its amplitude."""
        audio = np.full(160, 1000, dtype=np.int16).tobytes()

        assert compute_rms(audio) == 1000.0

    def test_silence(self) -> None:
        """Digital silence has zero level."""
        assert compute_rms(b"\x00\x00" * 100) == 0.0

    def test_empty_and_odd_bytes(self) -> None:
        """Short input is zero and a torn trailing byte is dropped."""
        audio = np.full(4, -500, dtype=np.int16).tobytes() + b"\x01"

        assert compute_rms(b"") == 0.0
        assert compute_rms(b"\x01") == 0.0
        assert compute_rms(audio) == 500.0


class TestLevelAnalyser:
    """Tests for LevelAnalyser."""

    def test_level_before_audio(self) -> None:
        """No level until the first chunk."""
        analyser = LevelAnalyser()

        assert analyser.level is None
        assert analyser.chunks_seen == 0

    def test_feed_updates_level(self) -> None:
        """The level follows the latest chunk."""
        analyser = LevelAnalyser()
        analyser.feed(np.full(160, 2000, dtype=np.int16).tobytes())
        analyser.feed(np.full(160, 10, dtype=np.int16).tobytes())

        assert analyser.level == 10.0
        assert analyser.chunks_seen == 2

    def test_close_releases_context(self) -> None:
        """After close() the level is gone and feeding is ignored."""
        analyser = LevelAnalyser()
        analyser.feed(np.full(160, 2000, dtype=np.int16).tobytes())

        analyser.close()
        analyser.feed(np.full(160, 2000, dtype=np.int16).tobytes())

        assert analyser.closed is True
        assert analyser.level is None
        assert analyser.chunks_seen == 1
