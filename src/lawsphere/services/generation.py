"""Text generation backends for LawSphere."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol, Sequence

from lawsphere.config import Settings
from lawsphere.errors import UpstreamUnavailable
from lawsphere.metrics.observability import PipelineMetrics, get_logger
from lawsphere.models import ConversationTurn

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for text generation."""

    model: str = "Qwen/Qwen2.5-1.8B-Instruct"
    max_new_tokens: int = 1024
    temperature: float = 0.3
    use_model: bool = False
    device: str | None = None
    api_key: str | None = None


class TextGenerator(Protocol):
    """Stateless completion over a conversation history."""

    # replies from placeholder backends must not reach the query cache
    cacheable: bool

    def generate(
        self,
        history: Sequence[ConversationTurn],
        trigger: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        """Return the model reply to ``history`` followed by the optional ``trigger`` message."""


def _latest_user_text(history: Sequence[ConversationTurn], trigger: str | None) -> str:
    if trigger:
        return trigger
    for turn in reversed(history):
        if turn.role == "user":
            return turn.text
    return ""


class OfflineTextGenerator:
    """Deterministic generator used for tests and offline environments."""

    cacheable = False

    def generate(
        self,
        history: Sequence[ConversationTurn],
        trigger: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        message = _latest_user_text(history, trigger)
        if not message:
            return "No message was provided."
        return (
            "No generation model is configured for this deployment, so no legal analysis can be given. "
            f"Received: {message}"
        )


class QwenTextGenerator:
    """Generator that optionally calls into Qwen models via Transformers."""

    def __init__(self, config: GenerationConfig | None = None, fallback: TextGenerator | None = None) -> None:
        self._config = config or GenerationConfig()
        self._fallback = fallback or OfflineTextGenerator()
        self._tokenizer = None
        self._model = None
        if not self._config.use_model:
            LOGGER.info("QwenTextGenerator running in offline mode.")
            return
        try:
            from transformers import AutoModelForCausalLM, AutoTokenizer

            self._tokenizer = AutoTokenizer.from_pretrained(self._config.model, trust_remote_code=True)
            self._model = AutoModelForCausalLM.from_pretrained(self._config.model, trust_remote_code=True)
            if self._tokenizer.pad_token is None and self._tokenizer.eos_token is not None:
                self._tokenizer.pad_token = self._tokenizer.eos_token
            if self._config.device:
                self._model.to(self._config.device)
            LOGGER.info("Loaded generation model %s", self._config.model)
        except Exception as exc:  # pragma: no cover - heavy optional dependency
            LOGGER.warning("Falling back to offline generator: %s", exc)
            self._tokenizer = None
            self._model = None

    @property
    def cacheable(self) -> bool:
        return self._model is not None

    def generate(
        self,
        history: Sequence[ConversationTurn],
        trigger: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        if self._tokenizer is None or self._model is None:
            return self._fallback.generate(history, trigger, system=system)
        import torch

        messages = self._build_messages(history, trigger, system)
        prompt = self._tokenizer.apply_chat_template(messages, tokenize=False, add_generation_prompt=True)
        tokenized = self._tokenizer(prompt, return_tensors="pt", padding=True)
        input_ids = tokenized.input_ids
        attention_mask = tokenized.attention_mask
        prompt_length = input_ids.shape[1]
        if self._config.device:
            input_ids = input_ids.to(self._config.device)
            attention_mask = attention_mask.to(self._config.device)
        with torch.no_grad():
            output = self._model.generate(
                input_ids,
                attention_mask=attention_mask,
                max_new_tokens=self._config.max_new_tokens,
                temperature=self._config.temperature,
            )
        generated = self._tokenizer.decode(output[0][prompt_length:], skip_special_tokens=True)
        return generated.strip()

    @staticmethod
    def _build_messages(
        history: Sequence[ConversationTurn],
        trigger: str | None,
        system: str | None,
    ) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        for turn in history:
            messages.append({"role": "assistant" if turn.role == "model" else "user", "content": turn.text})
        if trigger:
            messages.append({"role": "user", "content": trigger})
        return messages


class GeminiTextGenerator:
    """Hosted Gemini chat model through langchain-google-genai."""

    cacheable = True

    def __init__(self, config: GenerationConfig) -> None:
        try:
            from langchain_google_genai import ChatGoogleGenerativeAI
        except ImportError as exc:  # pragma: no cover - optional extra
            raise RuntimeError("langchain-google-genai is required for the gemini backend.") from exc
        self._config = config
        kwargs: dict[str, object] = {
            "model": config.model,
            "temperature": config.temperature,
            "max_output_tokens": config.max_new_tokens,
        }
        if config.api_key:
            kwargs["google_api_key"] = config.api_key
        self._llm = ChatGoogleGenerativeAI(**kwargs)

    def generate(
        self,
        history: Sequence[ConversationTurn],
        trigger: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

        messages: list[BaseMessage] = []
        if system:
            messages.append(SystemMessage(content=system))
        for turn in history:
            messages.append(AIMessage(content=turn.text) if turn.role == "model" else HumanMessage(content=turn.text))
        if trigger:
            messages.append(HumanMessage(content=trigger))
        result = self._llm.invoke(messages)
        content = result.content if hasattr(result, "content") else str(result)
        if isinstance(content, list):
            # multi-part replies carry text blocks
            content = "".join(part if isinstance(part, str) else str(part.get("text", "")) for part in content)
        return content


def build_text_generator(settings: Settings) -> TextGenerator:
    """Construct the configured generation backend."""

    if settings.generator_backend == "gemini":
        return GeminiTextGenerator(
            GenerationConfig(
                model=settings.gemini_model,
                max_new_tokens=settings.generator_max_new_tokens,
                temperature=settings.generator_temperature,
                use_model=True,
                api_key=settings.google_api_key,
            )
        )
    if settings.generator_backend == "qwen":
        return QwenTextGenerator(
            GenerationConfig(
                model=settings.generator_model,
                max_new_tokens=settings.generator_max_new_tokens,
                temperature=settings.generator_temperature,
                use_model=True,
                device=settings.generator_device,
            ),
            fallback=OfflineTextGenerator(),
        )
    return OfflineTextGenerator()


_logger = get_logger("generation")


def run_generation(
    generator: TextGenerator,
    task: str,
    history: Sequence[ConversationTurn],
    trigger: str | None = None,
    *,
    system: str | None = None,
) -> str:
    """Invoke ``generator`` once, timing the call and mapping failures to ``UpstreamUnavailable``."""

    start = time.perf_counter()
    try:
        text = generator.generate(history, trigger, system=system)
    except UpstreamUnavailable:
        raise
    except Exception as exc:
        _logger.error("generation.failed", task=task, error=str(exc))
        raise UpstreamUnavailable(f"Text generation failed for {task}: {exc}") from exc
    duration = time.perf_counter() - start
    PipelineMetrics.observe_generation(task, duration)
    _logger.info(
        "generation.complete",
        task=task,
        history_turns=len(history),
        reply_chars=len(text or ""),
        duration_seconds=duration,
    )
    return text or ""
