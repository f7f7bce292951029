from __future__ import annotations

import pytest

from vicon.core.types import CapabilitySnapshot, ImageToolCapabilities, TranscoderCapabilities


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.delenv("VICON_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def ffmpeg_only_snapshot() -> CapabilitySnapshot:
    return CapabilitySnapshot(
        transcoder=TranscoderCapabilities(
            installed=True,
            version="7.1",
            video_encoders=frozenset({"libx264"}),
            audio_encoders=frozenset({"aac"}),
            decoders=frozenset({"h264", "aac"}),
        ),
        image_tool=ImageToolCapabilities.missing(),
    )


@pytest.fixture
def full_snapshot() -> CapabilitySnapshot:
    return CapabilitySnapshot(
        transcoder=TranscoderCapabilities(
            installed=True,
            version="6.1.1",
            video_encoders=frozenset({"libx264", "libvpx-vp9", "gif"}),
            audio_encoders=frozenset({"aac", "libopus", "libmp3lame"}),
            decoders=frozenset({"h264", "vp9", "aac"}),
        ),
        image_tool=ImageToolCapabilities(installed=True, version="7.1.1-29", formats=frozenset({"PNG", "JPEG", "WEBP"})),
    )
