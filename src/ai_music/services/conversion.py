"""
Audio Format Conversion
Converts downloaded tracks to WAV or FLAC with ffmpeg
"""

import asyncio
import time
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from ..catalog import get_format_credit_cost
from ..core.logging import performance_logger, storage_logger

SUPPORTED_CONVERSION_FORMATS = ("wav", "flac")
STDERR_TAIL_CHARS = 500


class ConversionOptions(BaseModel):
    sample_rate: int = Field(default=44100, gt=0)
    bit_depth: Optional[int] = Field(default=None, description="16 for WAV and 24 for FLAC when unset")
    channels: int = Field(default=2, ge=1)


class ConversionResult(BaseModel):
    success: bool
    format: str
    output_path: Optional[str] = None
    file_size: Optional[int] = None
    error: Optional[str] = None


class FfmpegError(Exception):
    """ffmpeg could not be started or exited with a non-zero code"""
    pass


class AudioConverter:
    """Thin async wrapper around the ffmpeg binary"""

    def __init__(self, ffmpeg_binary: str = "ffmpeg"):
        self.ffmpeg_binary = ffmpeg_binary

    async def check_ffmpeg(self) -> bool:
        """Check if ffmpeg is available"""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.ffmpeg_binary, "-version",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            return await proc.wait() == 0
        except (FileNotFoundError, PermissionError):
            return False

    async def _run_ffmpeg(self, args: List[str]) -> None:
        start_time = time.time()
        try:
            proc = await asyncio.create_subprocess_exec(
                self.ffmpeg_binary, *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FfmpegError(f"Failed to start ffmpeg: {e}") from e

        _, stderr = await proc.communicate()
        performance_logger.log_subprocess_completed(
            command=f"{self.ffmpeg_binary} {' '.join(args[:2])}",
            duration_ms=(time.time() - start_time) * 1000,
            returncode=proc.returncode
        )

        if proc.returncode != 0:
            tail = (stderr or b"").decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:]
            raise FfmpegError(f"ffmpeg exited with code {proc.returncode}: {tail}")

    @staticmethod
    def output_path_for(input_path: str, format: str) -> Path:
        """Same directory and base name, new extension"""
        return Path(input_path).with_suffix(f".{format}")

    async def _convert(self, input_path: str, format: str, codec_args: List[str]) -> ConversionResult:
        output_path = self.output_path_for(input_path, format)
        try:
            await self._run_ffmpeg(["-i", str(input_path), *codec_args, "-y", str(output_path)])
            file_size = output_path.stat().st_size
        except (FfmpegError, OSError) as e:
            storage_logger.log_storage_error(f"convert_{format}", str(e), str(input_path))
            return ConversionResult(success=False, format=format, error=str(e))

        return ConversionResult(
            success=True,
            format=format,
            output_path=str(output_path),
            file_size=file_size
        )

    async def convert_to_wav(
        self,
        input_path: str,
        options: Optional[ConversionOptions] = None
    ) -> ConversionResult:
        options = options or ConversionOptions()
        bit_depth = options.bit_depth or 16
        return await self._convert(input_path, "wav", [
            "-acodec", f"pcm_s{bit_depth}le",
            "-ar", str(options.sample_rate),
            "-ac", str(options.channels),
        ])

    async def convert_to_flac(
        self,
        input_path: str,
        options: Optional[ConversionOptions] = None
    ) -> ConversionResult:
        options = options or ConversionOptions()
        bit_depth = options.bit_depth or 24
        return await self._convert(input_path, "flac", [
            "-acodec", "flac",
            "-ar", str(options.sample_rate),
            "-ac", str(options.channels),
            "-sample_fmt", "s32" if bit_depth == 24 else "s16",
            "-compression_level", "8",
        ])

    async def convert_audio(
        self,
        input_path: str,
        output_format: str,
        options: Optional[ConversionOptions] = None
    ) -> ConversionResult:
        """Convert after checking that ffmpeg and the input file are both there"""
        output_format = output_format.lower()
        if output_format not in SUPPORTED_CONVERSION_FORMATS:
            return ConversionResult(
                success=False,
                format=output_format,
                error=f"Unsupported output format: {output_format}"
            )

        if not await self.check_ffmpeg():
            return ConversionResult(
                success=False,
                format=output_format,
                error="ffmpeg is not installed or not available in PATH"
            )

        if not Path(input_path).exists():
            return ConversionResult(success=False, format=output_format, error="Input file not found")

        if output_format == "wav":
            return await self.convert_to_wav(input_path, options)
        return await self.convert_to_flac(input_path, options)

    @staticmethod
    def delete_converted_file(file_path: str) -> None:
        """Remove a converted file, ignoring a file that is already gone"""
        Path(file_path).unlink(missing_ok=True)

    @staticmethod
    def get_format_credit_cost(format: str) -> int:
        return get_format_credit_cost(format)
