import json

import pytest

from vicon.core.types import GenerateResult
from vicon.core.validator import (
    check_command_syntax,
    find_control_operator,
    normalize_response,
    parse_response,
    validate_response,
)
from vicon.errors import ResponseValidationError

VALID = '{"commands": ["ffmpeg -n -i a.mov a_converted.mp4"], "explanation": "Converts the movie to MP4."}'


def test_valid_reply() -> None:
    assert validate_response(VALID) == GenerateResult(
        commands=("ffmpeg -n -i a.mov a_converted.mp4",),
        explanation="Converts the movie to MP4.",
    )


@pytest.mark.parametrize(
    "wrapped",
    [
        f"```json\n{VALID}\n```",
        f"```\n{VALID}\n```",
        f"  \n```json{VALID}```\n  ",
        f"\n\n{VALID}\n",
    ],
)
def test_fence_stripping_does_not_change_result(wrapped: str) -> None:
    assert validate_response(wrapped) == validate_response(VALID)


def test_normalize_without_fence_only_trims() -> None:
    assert normalize_response("  {}  ") == "{}"


@pytest.mark.parametrize(
    "raw",
    [
        "Sure! Here are your commands.",
        "```json\n{not json}\n```",
        '{"explanation": "no commands here"}',
        '{"commands": ["ffmpeg -i a.mp4 b.mp4", 3], "explanation": "x"}',
        '{"commands": ["ffmpeg -i a.mp4 b.mp4"], "explanation": ["x"]}',
        '{"commands": "ffmpeg -i a.mp4 b.mp4", "explanation": "x"}',
        '[{"commands": [], "explanation": "x"}]',
        '"just a string"',
    ],
    ids=[
        "prose",
        "fenced-garbage",
        "missing-commands",
        "non-string-command",
        "non-string-explanation",
        "commands-not-list",
        "top-level-array",
        "top-level-string",
    ],
)
def test_failures_carry_original_text(raw: str) -> None:
    with pytest.raises(ResponseValidationError) as excinfo:
        validate_response(raw)
    assert excinfo.value.raw == raw


def test_failure_keeps_fence_in_raw_text() -> None:
    raw = '```json\n{"commands": [1], "explanation": "x"}\n```'
    with pytest.raises(ResponseValidationError, match="missing required fields") as excinfo:
        validate_response(raw)
    assert excinfo.value.raw.startswith("```json")


def test_parse_response_reports_given_raw() -> None:
    with pytest.raises(ResponseValidationError) as excinfo:
        parse_response("nope", "  original nope  ")
    assert excinfo.value.raw == "  original nope  "


def test_empty_commands_mean_not_possible() -> None:
    result = validate_response('{"commands":[],"explanation":"cannot be done"}')
    assert result.commands == ()
    assert result.explanation == "cannot be done"


def test_extra_keys_are_ignored() -> None:
    payload = json.dumps({"commands": ["magick in.png out_converted.jpg"], "explanation": "x", "notes": 1})
    assert validate_response(payload).commands == ("magick in.png out_converted.jpg",)


@pytest.mark.parametrize(
    ("command", "operator"),
    [
        ("ffmpeg -i a.mp4 a_converted.webm && rm a.mp4", "&&"),
        ("ffmpeg -i a.mp4 -f wav - | lame - out.mp3", "|"),
        ("ffmpeg -i a.mp4 b.mp4; ls", ";"),
        ("ffmpeg -i a.mp4 b.mp4 || true", "||"),
        ("ffmpeg -i a.mp4 b.mp4 &", "&"),
        ("(cd clips && ffmpeg -i a.mp4 b.mp4)", "("),
        ("ffmpeg -i $(ls *.mp4) out.mp4", "("),
        ("magick in.png \\( +clone -flip \\) -append out.png ; rm in.png", ";"),
        ("ffmpeg -i a.mp4 b.mp4 |& tee log.txt", "|&"),
    ],
)
def test_control_operators_are_found(command: str, operator: str) -> None:
    assert find_control_operator(command) == operator


@pytest.mark.parametrize(
    "command",
    [
        "ffmpeg -n -i in.mp4 -c:v libx264 -crf 28 out_converted.mp4",
        'ffmpeg -i in.mp4 -filter_complex "[0:v]split[a][b];[a]palettegen[p];[b][p]paletteuse" out_converted.gif',
        "ffmpeg -i in.mp4 -vf 'fps=15,scale=480:-1:flags=lanczos' out_converted.gif",
        "ffmpeg -f lavfi -i color=c=#000000:s=1280x720 -t 5 black_converted.mp4",
        "ffmpeg -loglevel error -i in.wav out_converted.flac 2>/dev/null",
        "magick 'My Photo (1).png' -resize 800x 'My Photo (1)_converted.jpg'",
        "magick in.png \\( +clone -background black -shadow 60x4+4+4 \\) +swap -layers merge out_converted.png",
        "magick in.png '(' +clone -resize 50% ')' -append out_converted.png",
        "magick in.png -gravity south -annotate +0+10 ';' out_converted.png",
        'magick in.png -annotate +0+10 "a \\"quoted\\" (caption); here" out_converted.png',
        "ffmpeg -i in.mp4 out_converted.mp4 > log.txt 2>&1",
        "ffmpeg -i in.mp4 out_converted.mp4 &> log.txt",
    ],
)
def test_single_commands_pass_syntax_check(command: str) -> None:
    assert find_control_operator(command) is None
    check_command_syntax([command], raw="raw")


def test_magick_grouping_reply_validates() -> None:
    command = "magick in.png \\( +clone -background black -shadow 60x4+4+4 \\) +swap -layers merge out_converted.png"
    raw = json.dumps({"commands": [command], "explanation": "Adds a drop shadow."})

    assert validate_response(raw).commands == (command,)


def test_chained_command_is_a_validation_failure() -> None:
    raw = '{"commands": ["ffmpeg -i a.mp4 b.mp4 && rm a.mp4"], "explanation": "x"}'
    with pytest.raises(ResponseValidationError, match="'&&'") as excinfo:
        validate_response(raw)
    assert excinfo.value.raw == raw


def test_unbalanced_quotes_are_a_validation_failure() -> None:
    raw = '{"commands": ["ffmpeg -i \'broken.mp4 out.mp4"], "explanation": "x"}'
    with pytest.raises(ResponseValidationError, match="unbalanced quoting") as excinfo:
        validate_response(raw)
    assert excinfo.value.raw == raw
