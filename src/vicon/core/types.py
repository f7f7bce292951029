"""Shared core dataclasses."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class TranscoderCapabilities:
    """What the local ffmpeg reports about itself."""

    installed: bool
    version: str | None = None
    video_encoders: frozenset[str] = field(default_factory=frozenset)
    audio_encoders: frozenset[str] = field(default_factory=frozenset)
    decoders: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.installed and (self.version or self.video_encoders or self.audio_encoders or self.decoders):
            raise ValueError("transcoder marked as not installed cannot carry capabilities")

    @classmethod
    def missing(cls) -> TranscoderCapabilities:
        return cls(installed=False)


@dataclass(frozen=True)
class ImageToolCapabilities:
    """What the local ImageMagick reports about itself."""

    installed: bool
    version: str | None = None
    formats: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.installed and (self.version or self.formats):
            raise ValueError("image tool marked as not installed cannot carry capabilities")

    @classmethod
    def missing(cls) -> ImageToolCapabilities:
        return cls(installed=False)


@dataclass(frozen=True)
class CapabilitySnapshot:
    """Detected inventory of both backing tools."""

    transcoder: TranscoderCapabilities
    image_tool: ImageToolCapabilities


@dataclass(frozen=True)
class GenerationRequest:
    """Prompt pair sent to a backend for one attempt."""

    system_prompt: str
    user_prompt: str


@dataclass(frozen=True)
class GenerateResult:
    """Validated model reply."""

    commands: tuple[str, ...]
    explanation: str

    def with_commands(self, commands: Iterable[str]) -> GenerateResult:
        return GenerateResult(commands=tuple(commands), explanation=self.explanation)
