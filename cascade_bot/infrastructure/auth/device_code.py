from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

import aiohttp

from ...domain import AuthError, Credential
from ..http_session import ClientSessionHolder
from ..mappers import credential_from_payload, error_message_from_body

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


@dataclass(frozen=True)
class DevicePrompt:
    verification_uri: str
    user_code: str
    message: str
    expires_in: int


PromptHandler = Callable[[DevicePrompt], Union[None, Awaitable[None]]]


def log_prompt(prompt: DevicePrompt) -> None:
    logger.warning("Sign-in required: %s", prompt.message)


class DeviceCodeTokenSource:
    """
    Interactive sign-in through the OAuth 2.0 device authorization grant.

    The user gets a short code and a URL through ``prompt``; the token
    endpoint is polled until they finish signing in, decline, or the code
    expires.
    """

    def __init__(
        self,
        *,
        tenant_id: str,
        client_id: str,
        scope: str,
        authority: str = "https://login.microsoftonline.com",
        prompt: PromptHandler | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        if not tenant_id or not client_id:
            raise ValueError("tenant_id and client_id are required for interactive sign-in")
        base = f"{authority.rstrip('/')}/{tenant_id}/oauth2/v2.0"
        self._device_code_url = f"{base}/devicecode"
        self._token_url = f"{base}/token"
        self._client_id = client_id
        self._scope = scope
        self._prompt = prompt or log_prompt
        self._sleep = sleep
        self._clock = clock
        self._http = ClientSessionHolder(timeout=timeout)

    def set_prompt(self, prompt: PromptHandler) -> None:
        self._prompt = prompt

    async def acquire(self) -> Credential:
        status, device = await self._post_form(
            self._device_code_url,
            {"client_id": self._client_id, "scope": self._scope},
        )
        device_code = device.get("device_code") if status == 200 else None
        if not device_code:
            detail = error_message_from_body(device) or f"HTTP {status}"
            raise AuthError(f"Device code request failed: {detail}")

        expires_in = int(device.get("expires_in", 900))
        interval = float(device.get("interval", 5))
        verification_uri = str(device.get("verification_uri") or device.get("verification_url") or "")
        user_code = str(device.get("user_code") or "")
        message = str(device.get("message") or f"Open {verification_uri} and enter the code {user_code}")
        await self._announce(DevicePrompt(verification_uri, user_code, message, expires_in))

        deadline = self._clock() + expires_in
        while self._clock() < deadline:
            await self._sleep(interval)
            status, payload = await self._post_form(
                self._token_url,
                {
                    "grant_type": DEVICE_CODE_GRANT,
                    "client_id": self._client_id,
                    "device_code": device_code,
                },
            )
            if status == 200:
                return credential_from_payload(payload, self._clock())
            error = payload.get("error")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval += 5
                continue
            detail = error_message_from_body(payload) or f"HTTP {status}"
            raise AuthError(f"Interactive sign-in failed: {detail}")
        raise AuthError("Device code expired before sign-in completed")

    async def _announce(self, prompt: DevicePrompt) -> None:
        try:
            outcome = self._prompt(prompt)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Failed to deliver sign-in prompt")
            log_prompt(prompt)

    async def _post_form(self, url: str, data: dict[str, str]) -> tuple[int, dict]:
        session = self._http.get()
        try:
            async with session.post(url, data=data) as resp:
                try:
                    payload = await resp.json(content_type=None)
                except ValueError:
                    payload = None
                return resp.status, payload if isinstance(payload, dict) else {}
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise AuthError(f"Sign-in request failed: {exc.__class__.__name__} {exc}".strip()) from exc

    async def close(self) -> None:
        await self._http.close()
