import pyperclip
import pytest

import vicon.cli.clipboard as clipboard_module


def test_copy_success(monkeypatch: pytest.MonkeyPatch) -> None:
    copied: list[str] = []
    monkeypatch.setattr(clipboard_module.pyperclip, "copy", copied.append)

    assert clipboard_module.copy_to_clipboard("ffmpeg -i a b\nffmpeg -i c d") is True
    assert copied == ["ffmpeg -i a b\nffmpeg -i c d"]


def test_copy_without_clipboard_tool(monkeypatch: pytest.MonkeyPatch) -> None:
    def no_clipboard(text: str) -> None:
        raise pyperclip.PyperclipException("could not find a copy/paste mechanism")

    monkeypatch.setattr(clipboard_module.pyperclip, "copy", no_clipboard)

    assert clipboard_module.copy_to_clipboard("x") is False
