"""Generation backends: remote chat completion and local agent process."""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from loguru import logger

from vicon.config import CloudflareCredentials, Provider, ProviderConfig, Settings
from vicon.errors import BackendError

USER_AGENT = "vicon/0.1"
CHAT_COMPLETIONS_PATH = "/accounts/{account_id}/ai/v1/chat/completions"


def build_chat_payload(system_prompt: str, user_prompt: str, *, model: str, max_tokens: int) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "response_format": {"type": "json_object"},
        "max_tokens": max_tokens,
    }


def extract_chat_content(data: Any) -> str:
    """Pull ``choices[0].message.content`` out of a chat completion body, or ""."""

    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""


def combine_prompts(system_prompt: str, user_prompt: str) -> str:
    """The local agent has no message roles, so both prompts travel as one block."""

    return f"{system_prompt}\n\n{user_prompt}"


def decode_agent_output(stdout: bytes) -> str:
    return stdout.decode("utf-8", errors="replace").strip()


class Dispatcher:
    """Produces raw reply text from a prompt pair. Never parses the reply."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def generate(self, system_prompt: str, user_prompt: str, config: ProviderConfig) -> str:
        provider = config.default_provider
        logger.info("generate.start provider={}", provider.value)
        if provider is Provider.CLOUDFLARE:
            raw = await self.generate_remote(system_prompt, user_prompt, config.cloudflare_credentials())
        elif provider is Provider.CLAUDE:
            raw = await self.generate_local(system_prompt, user_prompt)
        else:
            raise ValueError(f"unsupported provider: {provider!r}")
        logger.info("generate.done provider={} chars={}", provider.value, len(raw))
        return raw

    def chat_completions_url(self, credentials: CloudflareCredentials) -> str:
        account = urllib_parse.quote(credentials.account_id, safe="")
        base = self._settings.cloudflare_api_base.rstrip("/")
        return base + CHAT_COMPLETIONS_PATH.format(account_id=account)

    async def generate_remote(
        self, system_prompt: str, user_prompt: str, credentials: CloudflareCredentials
    ) -> str:
        payload = build_chat_payload(
            system_prompt,
            user_prompt,
            model=self._settings.cloudflare_model,
            max_tokens=self._settings.max_tokens,
        )
        url = self.chat_completions_url(credentials)
        data = await asyncio.to_thread(self._post_json, url, credentials.api_token, payload)
        return extract_chat_content(data)

    def _post_json(self, url: str, token: str, payload: dict[str, Any]) -> Any:
        request = urllib_request.Request(  # noqa: S310 - url derives from the configured https api base.
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {token}",
                "User-Agent": USER_AGENT,
            },
            method="POST",
        )
        timeout = self._settings.request_timeout_seconds
        try:
            with urllib_request.urlopen(request, timeout=timeout) as response:  # noqa: S310
                status = response.status
                body = response.read().decode("utf-8", errors="replace")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace").strip()
            raise BackendError(f"Cloudflare API error {exc.code}: {detail}") from exc
        except TimeoutError as exc:
            raise BackendError(f"Cloudflare API timed out after {timeout:g}s") from exc
        except urllib_error.URLError as exc:
            raise BackendError(f"Cloudflare API unreachable: {exc.reason}") from exc
        except OSError as exc:
            raise BackendError(f"Cloudflare API request failed: {exc!s}") from exc

        if not 200 <= status < 300:
            raise BackendError(f"Cloudflare API error {status}: {body.strip()}")
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise BackendError(f"Cloudflare API returned invalid JSON: {exc!s}") from exc

    async def generate_local(self, system_prompt: str, user_prompt: str) -> str:
        binary = self._settings.agent_binary
        argv = [binary, "--model", self._settings.claude_model, "-p", combine_prompts(system_prompt, user_prompt)]
        try:
            process = await asyncio.create_subprocess_exec(*argv, stdout=asyncio.subprocess.PIPE)
        except OSError as exc:
            raise BackendError(f"Failed to launch {binary}: {exc!s}") from exc

        timeout = self._settings.agent_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                stdout_bytes, _ = await process.communicate()
        except TimeoutError as exc:
            await _kill(process)
            raise BackendError(f"{binary} did not answer within {timeout:g}s") from exc
        except asyncio.CancelledError:
            await _kill(process)
            raise

        if process.returncode != 0:
            raise BackendError(f"{binary} exited with code {process.returncode}")
        return decode_agent_output(stdout_bytes or b"")


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
    await process.wait()
