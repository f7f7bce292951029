"""Local toolchain capability detection."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Sequence

from loguru import logger

from vicon.core.lazy import Lazy
from vicon.core.types import CapabilitySnapshot, ImageToolCapabilities, TranscoderCapabilities

FFMPEG_VERSION_RE = re.compile(r"ffmpeg version (\S+)")
MAGICK_VERSION_RE = re.compile(r"Version: ImageMagick (\S+)")
# " V....D libx264   H.264 / AVC ..." from `ffmpeg -encoders` / `-decoders`
CODEC_LINE_RE = re.compile(r"^ [VAS][A-Z.]{5} \S")
CODEC_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
# "      PNG* PNG       rw-   Portable Network Graphics" from `magick -list format`
FORMAT_LINE_RE = re.compile(r"^\s+[A-Z0-9]+\*?\s")

ProbeRunner = Callable[[Sequence[str]], Awaitable[str]]


async def run_probe(argv: Sequence[str]) -> str:
    """Run one read-only query and return its stripped stdout, or "" on any failure."""

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        stdout_bytes, _ = await process.communicate()
    except OSError as exc:
        logger.debug("probe.launch.failed argv={} error={}", argv[0], exc)
        return ""
    if process.returncode != 0:
        logger.debug("probe.exit.nonzero argv={} code={}", " ".join(argv), process.returncode)
        return ""
    return (stdout_bytes or b"").decode("utf-8", errors="replace").strip()


def _first_line_match(pattern: re.Pattern[str], text: str) -> str | None:
    first_line = text.split("\n", 1)[0]
    match = pattern.search(first_line)
    return match.group(1) if match else None


def parse_codec_lines(output: str) -> list[tuple[str, str]]:
    """Return ``(type, name)`` pairs from an ffmpeg codec listing.

    Header lines and the " V..... = Video" legend are skipped.
    """

    entries: list[tuple[str, str]] = []
    for line in output.splitlines():
        if not CODEC_LINE_RE.match(line):
            continue
        words = line.split()
        if len(words) < 2 or not CODEC_NAME_RE.match(words[1]):
            continue
        entries.append((line[1], words[1]))
    return entries


def parse_magick_formats(output: str) -> list[str]:
    formats: list[str] = []
    for line in output.splitlines():
        if not FORMAT_LINE_RE.match(line):
            continue
        name = line.split()[0].replace("*", "")
        if name:
            formats.append(name)
    return formats


class CapabilityProber:
    """Detects ffmpeg and ImageMagick capabilities once per prober instance."""

    def __init__(
        self,
        *,
        ffmpeg_binary: str = "ffmpeg",
        magick_binary: str = "magick",
        runner: ProbeRunner = run_probe,
    ) -> None:
        self._ffmpeg = ffmpeg_binary
        self._magick = magick_binary
        self._run = runner
        self._snapshot: Lazy[CapabilitySnapshot] = Lazy()

    async def detect(self) -> CapabilitySnapshot:
        if self._snapshot.loaded:
            cached = self._snapshot.get()
            if cached is not None:
                return cached

        transcoder, image_tool = await asyncio.gather(self._probe_ffmpeg(), self._probe_magick())
        snapshot = CapabilitySnapshot(transcoder=transcoder, image_tool=image_tool)
        self._snapshot.set(snapshot)
        logger.info(
            "probe.done ffmpeg={} magick={}",
            transcoder.version if transcoder.installed else "missing",
            image_tool.version if image_tool.installed else "missing",
        )
        return snapshot

    async def _safe_run(self, argv: Sequence[str]) -> str:
        try:
            return await self._run(argv)
        except Exception:
            logger.exception("probe.runner.error argv={}", " ".join(argv))
            return ""

    async def _probe_ffmpeg(self) -> TranscoderCapabilities:
        version_out, encoders_out, decoders_out = await asyncio.gather(
            self._safe_run([self._ffmpeg, "-version"]),
            self._safe_run([self._ffmpeg, "-encoders"]),
            self._safe_run([self._ffmpeg, "-decoders"]),
        )
        if not version_out:
            return TranscoderCapabilities.missing()

        encoders = parse_codec_lines(encoders_out)
        return TranscoderCapabilities(
            installed=True,
            version=_first_line_match(FFMPEG_VERSION_RE, version_out),
            video_encoders=frozenset(name for kind, name in encoders if kind == "V"),
            audio_encoders=frozenset(name for kind, name in encoders if kind == "A"),
            decoders=frozenset(name for _, name in parse_codec_lines(decoders_out)),
        )

    async def _probe_magick(self) -> ImageToolCapabilities:
        version_out = await self._safe_run([self._magick, "-version"])
        if not version_out:
            return ImageToolCapabilities.missing()

        formats_out = await self._safe_run([self._magick, "-list", "format"])
        return ImageToolCapabilities(
            installed=True,
            version=_first_line_match(MAGICK_VERSION_RE, version_out),
            formats=frozenset(parse_magick_formats(formats_out)),
        )
