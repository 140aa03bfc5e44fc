"""Conversation strategy that delegates the task to an external oracle."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any
from urllib import error, request

from agentcast.conversation.base import ConversationStep
from agentcast.errors import UpstreamError

logger = logging.getLogger(__name__)

# External spellings mapped onto the internal agent vocabulary.
AGENT_ALIASES: dict[str, str] = {
    "User": "user",
    "Supervisor": "supervisor",
    "phone_agent": "phone",
    "venmo_agent": "venmo",
}


def normalize_agent(raw_agent: str) -> str:
    return AGENT_ALIASES.get(raw_agent, raw_agent.lower())


def classify_message(message: str) -> str:
    """Guess a rendering tag for an oracle utterance from its wording."""
    lowered = message.lower()
    if "transaction id" in lowered or "sent successfully" in lowered:
        return "success"
    if "let's go to" in lowered or "delegating" in lowered:
        return "delegation"
    if any(verb in lowered for verb in ("send", "retrieve", "identify")):
        return "action"
    if any(word in lowered for word in ("contact", "email", "amount")):
        return "processing"
    if "your" in lowered and "has been" in lowered:
        return "completion"
    return "processing"


def parse_oracle_reply(payload: Any) -> list[ConversationStep]:
    """Validate the `[{agent: utterance}, ...]` reply shape and normalise it."""
    if not isinstance(payload, list):
        raise UpstreamError("Oracle reply is not a list of agent messages")

    steps: list[ConversationStep] = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict) or len(item) != 1:
            raise UpstreamError(f"Oracle reply item {index} is not a single-key object")
        raw_agent, message = next(iter(item.items()))
        if not isinstance(message, str):
            raise UpstreamError(f"Oracle reply item {index} has a non-text message")
        agent = normalize_agent(str(raw_agent))
        message_type = "input" if agent == "user" else classify_message(message)
        steps.append(ConversationStep(agent=agent, message=message, message_type=message_type))
    return steps


class ExternalConversationGenerator:
    """Send the prompt to the oracle and replay its conversation."""

    name = "external"
    # Oracle flows are shorter than local ones and have no fixed length.
    expected_steps = 8
    progress_scale = 100.0

    def __init__(
        self,
        *,
        url: str,
        task_id: str,
        timeout_s: float = 30.0,
        max_retries: int = 0,
        backoff_s: float = 0.5,
    ) -> None:
        self.url = url
        self.task_id = task_id
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)

    async def generate(self, prompt: str) -> list[ConversationStep]:
        payload = await asyncio.to_thread(self._request_with_retry, prompt)
        return parse_oracle_reply(payload)

    def _request_with_retry(self, prompt: str) -> Any:
        last_error: UpstreamError | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._request(prompt)
            except UpstreamError as exc:
                last_error = exc
                logger.warning(
                    "Oracle request failed attempt=%d/%d url=%s reason=%s",
                    attempt + 1,
                    self.max_retries + 1,
                    self.url,
                    exc,
                )
                if attempt < self.max_retries and self.backoff_s > 0:
                    time.sleep(self.backoff_s)
        if last_error is None:
            raise UpstreamError("Oracle request failed with unknown error")
        raise last_error

    def _request(self, prompt: str) -> Any:
        body = json.dumps({"task_id": self.task_id, "user_q": prompt}).encode("utf-8")
        req = request.Request(
            url=self.url,
            data=body,
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raise UpstreamError(f"API call failed: {exc.code} {exc.reason}") from exc
        except (error.URLError, TimeoutError, OSError) as exc:
            raise UpstreamError(f"API call failed: {exc}") from exc

        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise UpstreamError("Failed to parse API response") from exc
