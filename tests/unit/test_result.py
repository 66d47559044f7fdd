"""
Unit tests for the Result type
"""
import pytest

from ai_music.core.result import Result

pytestmark = pytest.mark.unit


class TestResult:
    def test_ok_carries_data(self):
        result = Result.ok({"local_path": "public/generated-music/a.mp3"})

        assert result.success
        assert result.error is None
        assert result.unwrap() == {"local_path": "public/generated-music/a.mp3"}

    def test_ok_allows_empty_data(self):
        assert Result.ok().unwrap() is None

    def test_err_raises_on_unwrap(self):
        result = Result.err("Failed to download audio: 404")

        assert not result.success
        with pytest.raises(ValueError, match="404"):
            result.unwrap()
