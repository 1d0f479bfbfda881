"""Process questions answered by a local Ollama server."""

import logging
from collections.abc import Iterable
from enum import Enum
from typing import Protocol

import httpx

from procview.config import DEFAULT_MODEL, DEFAULT_OLLAMA_URL
from procview.errors import InferenceError
from procview.models import ProcessRecord
from procview.store import ProcessStore

logger = logging.getLogger(__name__)

NO_RESPONSE_PLACEHOLDER = "No response from the model."
EMPTY_QUERY_WARNING = "Please enter a query"
UNAVAILABLE_WARNING = "Ollama is not running. Start Ollama locally to enable AI responses."
QUERY_FAILED_MESSAGE = "Failed to get a response"


def build_context(processes: Iterable[ProcessRecord]) -> str:
    """Summarize processes as one line each, under a header line."""
    lines = ["System processes:"]
    lines.extend(
        f"PID: {proc.pid}, Name: {proc.name}, Status: {proc.status}, "
        f"CPU KB: {proc.cpu_kb}, Memory KB: {proc.memory_kb}"
        for proc in processes
    )
    return "\n".join(lines)


def build_prompt(context: str, query: str) -> str:
    return f"{context}\n{query}"


class InferenceClient:
    """Minimal non-streaming client for Ollama's generate API."""

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 256,
        timeout: float = 60.0,
        probe_timeout: float = 2.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.probe_timeout = probe_timeout

    async def is_available(self) -> bool:
        """Check if Ollama answers on /api/tags."""
        try:
            async with httpx.AsyncClient(timeout=self.probe_timeout) as client:
                response = await client.get(f"{self.base_url}/api/tags")
                return response.status_code == 200
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.info("Ollama probe failed: %s", exc)
            return False

    async def generate(self, prompt: str) -> str:
        """
        Send one prompt and return the model's reply.

        Raises:
            InferenceError: On a non-2xx response, a transport failure or a bad URL.
        """
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/api/generate", json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise InferenceError(f"Ollama request failed: {exc}") from exc

        if not response.is_success:
            raise InferenceError(
                f"Error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise InferenceError(
                "Ollama returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        reply = data.get("response") if isinstance(data, dict) else None
        return reply or NO_RESPONSE_PLACEHOLDER


class Notifier(Protocol):
    """Shape of Textual's App.notify, the user-visible notification sink."""

    def __call__(self, message: str, *, severity: str = "information") -> None: ...


class SubmitOutcome(Enum):
    """Result of one QuerySubmitter.submit() call."""

    EMPTY = "empty"
    BUSY = "busy"
    ANSWERED = "answered"
    FAILED = "failed"


class QuerySubmitter:
    """
    Turns a free-text question into a prompt over the current processes.

    Only one request is outstanding at a time. Replies are appended to the
    store's chat history; failures are reported through notify and leave the
    history untouched.
    """

    def __init__(self, store: ProcessStore, client: InferenceClient, notify: Notifier) -> None:
        self._store = store
        self._client = client
        self._notify = notify
        self._in_flight = False
        self.available: bool | None = None  # Unknown until probed

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def check_availability(self) -> bool:
        """Probe the inference server and warn (without blocking submission) if it is down."""
        self.available = await self._client.is_available()
        if not self.available:
            self._notify(UNAVAILABLE_WARNING, severity="warning")
        return self.available

    async def submit(self, query: str) -> SubmitOutcome:
        """Ask one question about the current process list."""
        if not query.strip():
            self._notify(EMPTY_QUERY_WARNING, severity="warning")
            return SubmitOutcome.EMPTY
        if self._in_flight:
            return SubmitOutcome.BUSY

        self._in_flight = True
        try:
            prompt = build_prompt(build_context(self._store.processes), query)
            reply = await self._client.generate(prompt)
        except InferenceError as exc:
            logger.warning("Query failed: %s", exc)
            self._notify(QUERY_FAILED_MESSAGE, severity="error")
            return SubmitOutcome.FAILED
        finally:
            self._in_flight = False

        self._store.add_chat_entry(reply)
        return SubmitOutcome.ANSWERED
