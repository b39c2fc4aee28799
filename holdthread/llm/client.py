"""Language-model client contract and implementations.

The core only needs two things from a model: a lazy stream of typed text
fragments for the main chain, and a single complete answer for digressions.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence, Tuple

import openai
from pydantic import BaseModel

from holdthread.common.errors import UpstreamFailure
from holdthread.config import runtime_config
from holdthread.config.runtime_config import GenerationSettings
from holdthread.sessions.models import Message, Role

logger = logging.getLogger(__name__)


class FragmentCategory(str, Enum):
    reasoning = "reasoning"
    answer = "answer"


class ModelFragment(BaseModel):
    """One piece of streamed model output.

    ``category`` is the provider's own reasoning/answer tag, or None when the
    provider does not say. A fragment with ``finish_reason`` set is the terminal
    signal; its text may be empty.
    """

    category: Optional[FragmentCategory] = None
    text: str = ""
    finish_reason: Optional[str] = None


class ModelClient(Protocol):
    def stream_reasoning(self, messages: Sequence[Message]) -> AsyncIterator[ModelFragment]: ...

    async def complete(self, messages: Sequence[Message]) -> str: ...


def to_chat_messages(messages: Sequence[Message]) -> List[Dict[str, str]]:
    chat: List[Dict[str, str]] = []
    for message in messages:
        role = Role(message.role)
        chat.append({"role": role.value, "content": message.content})
    return chat


DEFAULT_STUB_FRAGMENTS: Tuple[ModelFragment, ...] = (
    ModelFragment(category=FragmentCategory.reasoning, text="Let me think about this question... "),
    ModelFragment(category=FragmentCategory.reasoning, text="Analyzing the context and formulating a response. "),
    ModelFragment(category=FragmentCategory.answer, text="Based on the conversation, "),
    ModelFragment(category=FragmentCategory.answer, text="here is my response to your question."),
    ModelFragment(finish_reason="stop"),
)
DEFAULT_STUB_ANSWER = "This is a quick digression answer based on the context provided."


class StubModelClient:
    """Deterministic offline client (dev default, and the scripted fake in tests).

    ``fail_after`` raises ``error`` once that many fragments have been yielded,
    to simulate a provider dropping mid-stream.
    """

    def __init__(
        self,
        fragments: Optional[Sequence[ModelFragment]] = None,
        answer: Optional[str] = None,
        fail_after: Optional[int] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.fragments = list(fragments) if fragments is not None else list(DEFAULT_STUB_FRAGMENTS)
        self.answer = DEFAULT_STUB_ANSWER if answer is None else answer
        self.fail_after = fail_after
        self.error = error
        self.delay = delay
        self.calls: List[List[Message]] = []
        self.open_streams = 0
        self.closed_streams = 0

    async def stream_reasoning(self, messages: Sequence[Message]) -> AsyncIterator[ModelFragment]:
        self.calls.append(list(messages))
        self.open_streams += 1
        try:
            for index, fragment in enumerate(self.fragments):
                if self.fail_after is not None and index >= self.fail_after:
                    raise self.error or UpstreamFailure("stub model stream failed")
                await asyncio.sleep(self.delay)
                yield fragment
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise self.error or UpstreamFailure("stub model stream failed")
        finally:
            self.open_streams -= 1
            self.closed_streams += 1

    async def complete(self, messages: Sequence[Message]) -> str:
        self.calls.append(list(messages))
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answer


class OpenAIModelClient:
    """Chat-completions client for OpenAI or Azure OpenAI.

    ``model`` is a model name for OpenAI and a deployment name for Azure.
    Providers that expose hidden reasoning text (``delta.reasoning_content``)
    get it tagged as reasoning; ordinary content arrives untyped and is left to
    the phase classifier.
    """

    def __init__(self, client: Any, model: str, generation: GenerationSettings) -> None:
        self._client = client
        self._model = model
        self._generation = generation

    @property
    def model(self) -> str:
        return self._model

    async def stream_reasoning(self, messages: Sequence[Message]) -> AsyncIterator[ModelFragment]:
        try:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=to_chat_messages(messages),
                temperature=self._generation.temperature,
                max_completion_tokens=self._generation.max_tokens,
                stream=True,
            )
        except openai.OpenAIError as exc:
            logger.exception("Model stream could not be opened (model=%s)", self._model)
            raise UpstreamFailure(f"model stream failed: {exc}") from exc

        try:
            async for chunk in stream:
                for choice in chunk.choices or []:
                    delta = choice.delta
                    reasoning_text = getattr(delta, "reasoning_content", None) if delta else None
                    if reasoning_text:
                        yield ModelFragment(category=FragmentCategory.reasoning, text=reasoning_text)
                    if delta is not None and delta.content:
                        yield ModelFragment(text=delta.content)
                    if choice.finish_reason:
                        yield ModelFragment(finish_reason=choice.finish_reason)
        except openai.OpenAIError as exc:
            logger.exception("Model stream failed mid-flight (model=%s)", self._model)
            raise UpstreamFailure(f"model stream failed: {exc}") from exc
        finally:
            await stream.close()

    async def complete(self, messages: Sequence[Message]) -> str:
        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=to_chat_messages(messages),
                temperature=self._generation.temperature,
                max_completion_tokens=self._generation.max_tokens,
            )
        except openai.OpenAIError as exc:
            logger.exception("Model completion failed (model=%s)", self._model)
            raise UpstreamFailure(f"model completion failed: {exc}") from exc
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""


def build_model_clients(provider: Optional[str] = None) -> Tuple[ModelClient, ModelClient]:
    """Return (reasoning_client, digression_client) for the configured provider."""
    provider = provider or runtime_config.get_llm_provider()
    if provider == "stub":
        return StubModelClient(), StubModelClient()

    reasoning_gen = runtime_config.get_reasoning_generation()
    digression_gen = runtime_config.get_digression_generation()
    if provider == "openai":
        settings = runtime_config.get_openai_settings().validate_required()
        client = openai.AsyncOpenAI(api_key=settings.api_key, base_url=settings.base_url)
        reasoning_model, digression_model = settings.reasoning_model, settings.digression_model
    else:
        azure = runtime_config.get_azure_openai_settings().validate_required()
        client = openai.AsyncAzureOpenAI(
            azure_endpoint=azure.endpoint,
            api_key=azure.api_key,
            api_version=azure.api_version,
        )
        reasoning_model, digression_model = azure.reasoning_deployment, azure.digression_deployment
    logger.info(
        "Model clients configured: provider=%s reasoning=%s digression=%s",
        provider,
        reasoning_model,
        digression_model,
    )
    return (
        OpenAIModelClient(client, reasoning_model, reasoning_gen),
        OpenAIModelClient(client, digression_model, digression_gen),
    )
