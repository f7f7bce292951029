"""Retry / edit / cancel loop around generation and validation."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from loguru import logger

from vicon.core.prompt import build_user_prompt
from vicon.core.types import GenerateResult, GenerationRequest
from vicon.core.validator import validate_response
from vicon.errors import ResponseValidationError

GenerateFn = Callable[[GenerationRequest], Awaitable[str]]


class LoopState(str, Enum):
    GENERATING = "generating"
    SUCCESS = "success"
    FAILED = "failed"
    RETRYING = "retrying"
    EDITING_PROMPT = "editing_prompt"
    CANCELLED = "cancelled"


class RecoveryChoice(str, Enum):
    RETRY = "retry"
    EDIT = "edit"
    CANCEL = "cancel"


class RecoveryOperator(Protocol):
    """The human deciding what happens after a rejected reply."""

    async def choose(self, failure: ResponseValidationError) -> RecoveryChoice: ...

    async def edit_request(self, current: str) -> str | None:
        """Return the edited request, or ``None`` to cancel."""
        ...


@dataclass(frozen=True)
class RecoveryOutcome:
    state: LoopState
    result: GenerateResult | None
    attempts: int
    request: str

    @property
    def succeeded(self) -> bool:
        return self.state is LoopState.SUCCESS


class RecoveryLoop:
    """Drive generation until a reply validates or the operator cancels.

    There is no attempt limit; every resubmission is an operator choice.
    Backend errors are not caught here.
    """

    def __init__(self, generate: GenerateFn, operator: RecoveryOperator) -> None:
        self._generate = generate
        self._operator = operator

    async def run(self, system_prompt: str, request: str) -> RecoveryOutcome:
        attempts = 0
        state = LoopState.GENERATING

        while True:
            if state is LoopState.GENERATING:
                attempts += 1
                generation = GenerationRequest(system_prompt=system_prompt, user_prompt=build_user_prompt(request))
                raw = await self._generate(generation)
                try:
                    result = validate_response(raw)
                except ResponseValidationError as exc:
                    state = await self._leave_failed(exc, attempts)
                    continue
                logger.info("recovery.success attempt={} commands={}", attempts, len(result.commands))
                return RecoveryOutcome(LoopState.SUCCESS, result, attempts, request)

            if state is LoopState.RETRYING:
                state = LoopState.GENERATING
                continue

            if state is LoopState.EDITING_PROMPT:
                edited = await self._operator.edit_request(request)
                if edited is None or not edited.strip():
                    state = LoopState.CANCELLED
                    continue
                request = edited.strip()
                state = LoopState.GENERATING
                continue

            logger.info("recovery.cancelled attempts={}", attempts)
            return RecoveryOutcome(LoopState.CANCELLED, None, attempts, request)

    async def _leave_failed(self, failure: ResponseValidationError, attempts: int) -> LoopState:
        """FAILED is left only through the operator's choice."""

        logger.info("recovery.failed attempt={} reason={}", attempts, failure)
        choice = await self._operator.choose(failure)
        return _FAILED_TRANSITIONS[choice]


_FAILED_TRANSITIONS = {
    RecoveryChoice.RETRY: LoopState.RETRYING,
    RecoveryChoice.EDIT: LoopState.EDITING_PROMPT,
    RecoveryChoice.CANCEL: LoopState.CANCELLED,
}
