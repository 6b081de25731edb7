from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, TYPE_CHECKING
from concurrent.futures import ThreadPoolExecutor, wait
import json
import logging
import time

from docformat.cancel import CancelToken, check_cancelled
from docformat.errors import CancellationError
from docformat.llm.prompts import FORMAT_ANALYSIS_TOOL_NAME

if TYPE_CHECKING:
    import anthropic

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """Configuration for Claude API client."""
    api_key: str
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = 0.2  # Low temp for stable format specs
    max_retries: int = 3  # Retries are left to the SDK
    timeout: float = 120.0
    poll_interval: float = 0.1  # Seconds between cancel checks while waiting


@dataclass
class ModelResponse:
    content: str


class ModelService(Protocol):
    def invoke(
        self,
        prompt: str,
        system_prompt: str,
        *,
        cancel_token: Optional[CancelToken] = None,
        structured_schema: Optional[Dict[str, Any]] = None,
    ) -> ModelResponse: ...


class ClaudeModelService:
    """Model invocation over Anthropic's Messages API.

    Structured output is requested by forcing a single tool whose input
    schema is the requested schema; the tool input comes back serialized
    as JSON text so callers parse every response the same way.
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._client: Optional["anthropic.Anthropic"] = None

    @property
    def client(self) -> "anthropic.Anthropic":
        """Lazy initialization of Anthropic client."""
        if self._client is None:
            try:
                import anthropic
                self._client = anthropic.Anthropic(
                    api_key=self.config.api_key,
                    max_retries=self.config.max_retries,
                    timeout=self.config.timeout,
                )
            except ImportError:
                raise ImportError(
                    "anthropic library not installed. "
                    "Run: pip install anthropic"
                )
        return self._client

    def _request_kwargs(self, prompt: str, system_prompt: str,
                        structured_schema: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": prompt}],
        }
        if structured_schema is not None:
            kwargs["tools"] = [{
                "name": FORMAT_ANALYSIS_TOOL_NAME,
                "description": "Return the analysis result.",
                "input_schema": structured_schema,
            }]
            kwargs["tool_choice"] = {"type": "tool", "name": FORMAT_ANALYSIS_TOOL_NAME}
        return kwargs

    @staticmethod
    def _response_text(message: Any) -> str:
        text = ""
        for block in message.content:
            if getattr(block, "type", None) == "tool_use":
                return json.dumps(block.input, ensure_ascii=False)
            if hasattr(block, "text"):
                text += block.text
        return text.strip()

    def invoke(
        self,
        prompt: str,
        system_prompt: str,
        *,
        cancel_token: Optional[CancelToken] = None,
        structured_schema: Optional[Dict[str, Any]] = None,
    ) -> ModelResponse:
        check_cancelled(cancel_token)
        kwargs = self._request_kwargs(prompt, system_prompt, structured_schema)
        start_time = time.time()

        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self.client.messages.create, **kwargs)
            while True:
                done, _ = wait([future], timeout=self.config.poll_interval)
                if done:
                    break
                if cancel_token is not None and (cancel_token.cancelled or cancel_token.abort_event.is_set()):
                    # the request thread is abandoned; its result is discarded
                    future.cancel()
                    logger.info("Model request abandoned after cancellation")
                    raise CancellationError()
            message = future.result()
        finally:
            executor.shutdown(wait=False)

        logger.info(f"Model responded in {time.time() - start_time:.1f}s"
                    f" ({'structured' if structured_schema else 'text'})")
        return ModelResponse(content=self._response_text(message))
