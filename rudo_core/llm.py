import logging
import os
from typing import Optional, Protocol

from dotenv import load_dotenv
from openai import OpenAI

from .config import RuntimeConfig
from .errors import GenerationFailure
from .safety import CircuitBreaker

load_dotenv()


class TextGenerator(Protocol):
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 300,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> str: ...


class OpenAIGenerator:
    """
    Blocking chat-completions client for any OpenAI-compatible endpoint.
    Callers run `generate` in a worker thread and bound it with their own
    timeout; the HTTP timeout here only stops a hung socket.
    """

    def __init__(self, config: RuntimeConfig, api_key: Optional[str] = None):
        self.config = config
        self._api_key = api_key
        self._client: Optional[OpenAI] = None
        self.breaker = CircuitBreaker("llm", threshold=3, window_seconds=90.0, cooldown_seconds=300.0)
        self.logger = logging.getLogger("rudo.llm")

    def _client_lazy(self) -> OpenAI:
        if self._client is None:
            api_key = self._api_key or os.getenv("RUDO_GENERATION_API_KEY") or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise GenerationFailure("RUDO_GENERATION_API_KEY or OPENAI_API_KEY is required for generation.")
            self._client = OpenAI(
                api_key=api_key,
                base_url=self.config.generation_base_url,
                timeout=self.config.generation_http_timeout_seconds,
                max_retries=2,
            )
        return self._client

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 300,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> str:
        if not self.breaker.allow():
            raise GenerationFailure(f"generation circuit open: {self.breaker.reason}")

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            completion = self._client_lazy().chat.completions.create(
                model=self.config.generation_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs,
            )
        except Exception as exc:
            self.breaker.record_failure(str(exc))
            self.logger.warning("Generation failed; breaker count %d", len(self.breaker.failures))
            raise GenerationFailure(str(exc)) from exc

        self.breaker.record_success()
        content = completion.choices[0].message.content
        return content.strip() if content else ""

    def breaker_status(self) -> tuple[bool, str]:
        return self.breaker.tripped, self.breaker.reason
