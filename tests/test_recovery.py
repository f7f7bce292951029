import pytest

from vicon.core.recovery import LoopState, RecoveryChoice, RecoveryLoop
from vicon.core.types import GenerationRequest
from vicon.errors import BackendError, ResponseValidationError

GOOD = '{"commands": ["ffmpeg -n -i a.mov a_converted.mp4"], "explanation": "Converts the movie."}'
BAD = "I think you want ffmpeg."


class ScriptedBackend:
    def __init__(self, replies: list[str]) -> None:
        self._replies = list(replies)
        self.requests: list[GenerationRequest] = []

    async def __call__(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        return self._replies.pop(0)


class ScriptedOperator:
    def __init__(self, choices: list[RecoveryChoice], edits: list[str | None] | None = None) -> None:
        self._choices = list(choices)
        self._edits = list(edits or [])
        self.failures: list[ResponseValidationError] = []
        self.edit_calls: list[str] = []

    async def choose(self, failure: ResponseValidationError) -> RecoveryChoice:
        self.failures.append(failure)
        return self._choices.pop(0)

    async def edit_request(self, current: str) -> str | None:
        self.edit_calls.append(current)
        return self._edits.pop(0)


@pytest.mark.asyncio
async def test_first_reply_valid() -> None:
    backend = ScriptedBackend([GOOD])
    operator = ScriptedOperator([])

    outcome = await RecoveryLoop(backend, operator).run("SYS", "make it mp4")

    assert outcome.state is LoopState.SUCCESS
    assert outcome.succeeded
    assert outcome.attempts == 1
    assert outcome.result is not None
    assert outcome.result.commands == ("ffmpeg -n -i a.mov a_converted.mp4",)
    assert operator.failures == []


@pytest.mark.asyncio
async def test_retries_until_success() -> None:
    backend = ScriptedBackend([BAD, BAD, GOOD])
    operator = ScriptedOperator([RecoveryChoice.RETRY, RecoveryChoice.RETRY])

    outcome = await RecoveryLoop(backend, operator).run("SYS", "make it mp4")

    assert outcome.state is LoopState.SUCCESS
    assert outcome.attempts == 3
    assert len(backend.requests) == 3
    assert all(request == GenerationRequest("SYS", "make it mp4") for request in backend.requests)
    assert [failure.raw for failure in operator.failures] == [BAD, BAD]


@pytest.mark.asyncio
async def test_cancel_on_first_failure() -> None:
    backend = ScriptedBackend([BAD, GOOD])
    operator = ScriptedOperator([RecoveryChoice.CANCEL])

    outcome = await RecoveryLoop(backend, operator).run("SYS", "make it mp4")

    assert outcome.state is LoopState.CANCELLED
    assert outcome.result is None
    assert outcome.attempts == 1
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_edit_changes_user_prompt_only() -> None:
    backend = ScriptedBackend([BAD, GOOD])
    operator = ScriptedOperator([RecoveryChoice.EDIT], edits=["  make it a small mp4  "])

    outcome = await RecoveryLoop(backend, operator).run("SYS", "make it mp4")

    assert outcome.state is LoopState.SUCCESS
    assert outcome.request == "make it a small mp4"
    assert operator.edit_calls == ["make it mp4"]
    assert backend.requests[1] == GenerationRequest("SYS", "make it a small mp4")


@pytest.mark.asyncio
async def test_abandoned_edit_cancels() -> None:
    backend = ScriptedBackend([BAD])
    operator = ScriptedOperator([RecoveryChoice.EDIT], edits=[None])

    outcome = await RecoveryLoop(backend, operator).run("SYS", "make it mp4")

    assert outcome.state is LoopState.CANCELLED
    assert outcome.request == "make it mp4"
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_chained_command_goes_through_recovery() -> None:
    chained = '{"commands": ["ffmpeg -i a.mov b.mp4 && rm a.mov"], "explanation": "x"}'
    backend = ScriptedBackend([chained, GOOD])
    operator = ScriptedOperator([RecoveryChoice.RETRY])

    outcome = await RecoveryLoop(backend, operator).run("SYS", "make it mp4")

    assert outcome.state is LoopState.SUCCESS
    assert operator.failures[0].raw == chained


@pytest.mark.asyncio
async def test_backend_errors_are_not_retried() -> None:
    calls = 0

    async def failing_backend(request: GenerationRequest) -> str:
        nonlocal calls
        calls += 1
        raise BackendError("Cloudflare API error 500: upstream")

    with pytest.raises(BackendError, match="500"):
        await RecoveryLoop(failing_backend, ScriptedOperator([])).run("SYS", "make it mp4")
    assert calls == 1


@pytest.mark.asyncio
async def test_operator_sees_each_rejected_reply() -> None:
    chained = '{"commands": ["ffmpeg -i a.mov b.mp4; rm a.mov"], "explanation": "x"}'
    backend = ScriptedBackend([BAD, chained, GOOD])
    operator = ScriptedOperator([RecoveryChoice.EDIT, RecoveryChoice.RETRY], edits=["make it a webm"])

    outcome = await RecoveryLoop(backend, operator).run("SYS", "make it mp4")

    assert outcome.state is LoopState.SUCCESS
    assert outcome.attempts == 3
    assert [failure.raw for failure in operator.failures] == [BAD, chained]
    assert str(operator.failures[0]) == "Invalid JSON response from AI"
    assert "';'" in str(operator.failures[1])
    assert [request.user_prompt for request in backend.requests] == ["make it mp4", "make it a webm", "make it a webm"]
