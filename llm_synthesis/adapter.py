"""LLM adapters for narrative generation.

Provides a base interface and concrete adapters for OpenAI-compatible
APIs (Gemini is reached through its OpenAI-compatible endpoint) and a
deterministic mock for testing.
"""

import os
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from crux_audit.config import LLMSettings


class BaseLLMAdapter(ABC):
    """Abstract base for all LLM adapters."""

    @abstractmethod
    def generate(self, prompt: str, temperature: float) -> str:
        """Send a prompt to the LLM and return the raw response text.

        Args:
            prompt: The fully formatted prompt string.
            temperature: Sampling temperature for this call.

        Returns:
            Raw string response from the model (expected to be Markdown).
        """


class OpenAILLMAdapter(BaseLLMAdapter):
    """Adapter for OpenAI-compatible chat completion APIs.

    Non-streaming. Temperature is chosen per call so the narrator can run
    analytical and the synthesizer can run more fluent.
    """

    def __init__(
        self,
        model: str = "gemini-2.5-flash",
        max_tokens: int = 2048,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> None:
        """Initialise the OpenAI adapter.

        Args:
            model: Model identifier.
            max_tokens: Maximum tokens in the completion.
            api_key: API key. Falls back to OPENAI_API_KEY env var.
            base_url: Optional base URL for OpenAI-compatible endpoints.
            system_instruction: Optional system message sent with every prompt.
        """
        try:
            from openai import OpenAI  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ImportError(
                "openai package is required for OpenAILLMAdapter. "
                "Install it with: pip install openai"
            ) from exc

        resolved_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        client_kwargs: dict = {"api_key": resolved_key}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model
        self._max_tokens = max_tokens
        self._system_instruction = system_instruction

    def generate(self, prompt: str, temperature: float) -> str:
        """Call the chat completion API.

        Args:
            prompt: The fully formatted prompt string.
            temperature: Sampling temperature.

        Returns:
            Raw string content from the model response.
        """
        messages = []
        if self._system_instruction:
            messages.append({"role": "system", "content": self._system_instruction})
        messages.append({"role": "user", "content": prompt})

        response = self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            temperature=temperature,
            max_tokens=self._max_tokens,
            stream=False,
        )
        return response.choices[0].message.content or ""


_MOCK_RESPONSE = (
    "## Mock Report\n\n"
    "Mock narrative for testing purposes. The prompt data follows verbatim."
)


class MockLLMAdapter(BaseLLMAdapter):
    """Deterministic adapter for local testing and CI.

    Returns a fixed response, or the fixed response followed by the prompt
    when ``echo_prompt`` is set so that every domain named in the prompt
    also appears in the output. Every call is recorded on ``calls``.
    """

    def __init__(self, response: Optional[str] = None, echo_prompt: bool = True) -> None:
        self._response = response if response is not None else _MOCK_RESPONSE
        self._echo_prompt = echo_prompt
        self.calls: List[Tuple[str, float]] = []

    def generate(self, prompt: str, temperature: float) -> str:
        self.calls.append((prompt, temperature))
        if self._echo_prompt:
            return f"{self._response}\n\n{prompt}"
        return self._response


def build_adapter(settings: LLMSettings) -> Optional[BaseLLMAdapter]:
    """Instantiate the adapter selected by LLM_ADAPTER.

    LLM_ADAPTER=mock   -> MockLLMAdapter  (testing, no API key required)
    LLM_ADAPTER=openai -> OpenAILLMAdapter (default)

    Returns None when the OpenAI-compatible adapter has no API key; callers
    treat that as simulation mode.
    """
    if settings.adapter == "mock":
        return MockLLMAdapter()
    if not settings.api_key:
        return None
    return OpenAILLMAdapter(
        model=settings.model,
        max_tokens=settings.max_tokens,
        api_key=settings.api_key,
        base_url=settings.base_url,
        system_instruction="You are an expert web performance consultant.",
    )
