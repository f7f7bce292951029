"""System and user prompt construction."""

from __future__ import annotations

from collections.abc import Iterable

from vicon.core.types import CapabilitySnapshot, ImageToolCapabilities, TranscoderCapabilities

ROLE_SECTION = """## Role
You translate media conversion requests into shell commands for ffmpeg and ImageMagick (magick) on this machine."""

# output container/format -> encoders ffmpeg needs for it, in order of preference
FORMAT_ENCODERS: tuple[tuple[str, str, str], ...] = (
    ("mp4", "libx264, libx265, h264_videotoolbox", "aac, libfdk_aac"),
    ("mov", "libx264, prores_ks", "aac, pcm_s16le"),
    ("mkv", "libx264, libx265, libvpx-vp9, libaom-av1", "libopus, aac, flac"),
    ("webm", "libvpx-vp9, libvpx, libaom-av1, libsvtav1", "libopus, libvorbis"),
    ("gif", "gif", "-"),
    ("mp3", "-", "libmp3lame"),
    ("m4a", "-", "aac, alac"),
    ("ogg", "libtheora", "libvorbis, libopus"),
    ("opus", "-", "libopus"),
    ("flac", "-", "flac"),
    ("wav", "-", "pcm_s16le"),
)

RULES_SECTION = """## Rules
Return ONLY valid JSON in this exact shape: {"commands": string[], "explanation": string}
No other top-level keys, no arrays or strings at the top level.
- explanation: plain prose only, no shell syntax, no backticks, no code, no flags
- commands: complete, copy-pasteable shell strings; no placeholders like <input> or INPUT_FILE
- commands must not contain &&, ||, ;, pipes, subshells, backgrounding or loops; each command runs on its own
- Before using an encoder, decoder or format, check that it is listed under Environment; never use one that is not listed
- If ffmpeg cannot satisfy the request with the listed capabilities, use magick instead when it can
- If no listed capability can satisfy the request, return {"commands": [], "explanation": "<why it is not possible>"}
- Only use tools that are listed as installed above
- Prefer non-destructive output: append _converted to output filenames, use the -n flag so ffmpeg never overwrites
- For batch tasks, emit one command per file
IMPORTANT: Reply with ONLY the JSON object, no markdown fences, no extra text"""


def _join_names(names: Iterable[str]) -> str:
    return ", ".join(sorted(names))


def _transcoder_line(transcoder: TranscoderCapabilities) -> str:
    if not transcoder.installed:
        return "ffmpeg: not installed, do not use ffmpeg"
    return (
        f"ffmpeg {transcoder.version or 'unknown'}"
        f" | video encoders: [{_join_names(transcoder.video_encoders)}]"
        f" | audio encoders: [{_join_names(transcoder.audio_encoders)}]"
        f" | decoders: [{_join_names(transcoder.decoders)}]"
    )


def _image_tool_line(image_tool: ImageToolCapabilities) -> str:
    if not image_tool.installed:
        return "magick: not installed, do not use magick"
    return f"magick {image_tool.version or 'unknown'} | formats: [{_join_names(image_tool.formats)}]"


def render_environment(snapshot: CapabilitySnapshot) -> str:
    return "\n".join(
        [
            "## Environment",
            _transcoder_line(snapshot.transcoder),
            _image_tool_line(snapshot.image_tool),
        ]
    )


def render_format_reference() -> str:
    lines = ["## Format reference", "output | video encoder | audio encoder"]
    for extension, video, audio in FORMAT_ENCODERS:
        lines.append(f"{extension} | {video} | {audio}")
    return "\n".join(lines)


def build_system_prompt(snapshot: CapabilitySnapshot) -> str:
    """Render the system prompt for one capability snapshot.

    The rules section goes last; models weight trailing instructions most.
    """

    sections = [
        ROLE_SECTION,
        render_environment(snapshot),
        render_format_reference(),
        RULES_SECTION,
    ]
    return "\n\n".join(sections)


def build_user_prompt(request: str) -> str:
    return request
