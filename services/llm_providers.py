# services/llm_providers.py
"""
LLM providers behind one chat interface, plus the ordered fallback dispatcher.

Groq, Hugging Face (router) and Gemini all expose OpenAI-compatible chat
completion endpoints, so each provider is the `openai` SDK pointed at a
different base URL. Upstream failures are turned into messages that tell the
operator how to fix them, because they are surfaced verbatim to the app.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx
import openai
from openai import OpenAI

from request_context import get_request_id

log = logging.getLogger("llm")

@dataclass(frozen=True)
class ChatMessage:
    role: str  # system|user|assistant
    content: str

    def as_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

@dataclass(frozen=True)
class GenerationOptions:
    max_tokens: int = 500
    temperature: float = 0.7

@dataclass
class Completion:
    content: str
    usage: Dict[str, int] = field(default_factory=dict)
    provider: str = ""
    model: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "usage": self.usage, "provider": self.provider, "model": self.model}

class ProviderError(Exception):
    """A single provider failed; message is meant for humans."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.message = message
        self.status_code = status_code

class ProviderNotConfiguredError(ProviderError):
    pass

class AllProvidersFailedError(Exception):
    def __init__(self, errors: List[ProviderError]) -> None:
        self.errors = errors
        if errors:
            message = errors[-1].message
        else:
            message = (
                "No AI provider is configured. Set GROQ_API_KEY, HUGGINGFACE_TOKEN or GEMINI_API_KEY "
                "in backend/.env and restart the server."
            )
        super().__init__(message)

class LLMProvider(Protocol):
    name: str

    def is_configured(self) -> bool: ...

    def chat(
        self,
        messages: Sequence[ChatMessage],
        model_hint: Optional[str] = None,
        options: Optional[GenerationOptions] = None,
    ) -> Completion: ...

# ----------------------------
# OpenAI-compatible providers
# ----------------------------

class OpenAICompatibleProvider:
    name = "openai-compatible"
    label = "OpenAI-compatible"
    base_url = ""
    key_env = ""
    key_help = ""
    rate_limit_help = "Please wait a moment and try again."

    def __init__(self, api_key: str, default_model: str, timeout_s: float = 120.0, client: Optional[OpenAI] = None) -> None:
        self.api_key = api_key
        self.default_model = default_model
        self.timeout_s = timeout_s
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def supports_model(self, model: str) -> bool:
        return True

    def resolve_model(self, model_hint: Optional[str]) -> str:
        if model_hint and self.supports_model(model_hint):
            return model_hint
        return self.default_model

    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout_s, max_retries=0)
        return self._client

    def chat(
        self,
        messages: Sequence[ChatMessage],
        model_hint: Optional[str] = None,
        options: Optional[GenerationOptions] = None,
    ) -> Completion:
        if not self.is_configured():
            raise ProviderNotConfiguredError(
                self.name,
                f"{self.label} API key is not configured. Please set {self.key_env} in your .env file",
            )
        opts = options or GenerationOptions()
        model = self.resolve_model(model_hint)
        try:
            chat = self.client().chat.completions.create(
                model=model,
                messages=[m.as_dict() for m in messages],
                max_tokens=opts.max_tokens,
                temperature=opts.temperature,
            )
        except openai.OpenAIError as e:
            raise self._translate(e) from e

        content = ""
        if chat.choices:
            content = chat.choices[0].message.content or ""
        usage = {
            "promptTokens": getattr(chat.usage, "prompt_tokens", 0) or 0,
            "completionTokens": getattr(chat.usage, "completion_tokens", 0) or 0,
            "totalTokens": getattr(chat.usage, "total_tokens", 0) or 0,
        }
        log.info("LLM call ok", extra={
            "request_id": get_request_id(),
            "provider": self.name,
            "model": model,
            "total_tokens": usage["totalTokens"],
        })
        return Completion(content=content, usage=usage, provider=self.name, model=model)

    def _translate(self, e: openai.OpenAIError) -> ProviderError:
        status = getattr(e, "status_code", None)
        if isinstance(e, openai.AuthenticationError):
            return ProviderError(self.name, f"❌ Invalid {self.label} API key.\n\n{self.key_help}", status)
        if isinstance(e, openai.RateLimitError):
            return ProviderError(self.name, f"❌ {self.label} API rate limit exceeded.\n\n{self.rate_limit_help}", status)
        if isinstance(e, openai.APITimeoutError):
            return ProviderError(self.name, f"{self.label} API timed out after {int(self.timeout_s)}s. Please try again.")
        if isinstance(e, openai.APIConnectionError):
            return ProviderError(self.name, f"Could not reach the {self.label} API. Check the server's network connection.")
        message = getattr(e, "message", None) or str(e) or f"Failed to generate response from {self.label} API"
        return ProviderError(self.name, message, status)

class GroqProvider(OpenAICompatibleProvider):
    name = "groq"
    label = "Groq"
    base_url = "https://api.groq.com/openai/v1"
    key_env = "GROQ_API_KEY"
    key_help = (
        "To fix this:\n"
        "1. Go to: https://console.groq.com/keys\n"
        "2. Create a new API key (free tier available)\n"
        "3. Copy the key and add it to backend/.env file as GROQ_API_KEY=your_key_here\n"
        "4. Restart the backend server"
    )
    rate_limit_help = "Free tier limits: 30 requests/minute\nPlease wait a moment and try again."

    def supports_model(self, model: str) -> bool:
        return "/" not in model and not model.startswith("gemini")

class HuggingFaceProvider(OpenAICompatibleProvider):
    name = "huggingface"
    label = "Hugging Face"
    base_url = "https://router.huggingface.co/v1"
    key_env = "HUGGINGFACE_TOKEN"
    key_help = (
        "To fix this:\n"
        "1. Go to: https://huggingface.co/settings/tokens\n"
        "2. Create a NEW token (or edit existing one)\n"
        "3. Make sure to select 'Read' permission (required for Inference API)\n"
        "4. Copy the new token and update it in backend/.env file\n"
        "5. Restart the backend server"
    )

    def supports_model(self, model: str) -> bool:
        return "/" in model

    def _translate(self, e: openai.OpenAIError) -> ProviderError:
        text = str(e)
        if isinstance(e, openai.PermissionDeniedError) or "sufficient permissions" in text or "Inference Providers" in text:
            return ProviderError(
                self.name,
                f"❌ Hugging Face token doesn't have Inference API permissions.\n\n{self.key_help}",
                getattr(e, "status_code", None),
            )
        return super()._translate(e)

class GeminiProvider(OpenAICompatibleProvider):
    name = "gemini"
    label = "Gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta/openai/"
    key_env = "GEMINI_API_KEY"
    key_help = (
        "To fix this:\n"
        "1. Go to: https://aistudio.google.com/app/apikey\n"
        "2. Create a new API key\n"
        "3. Copy the key and add it to backend/.env file as GEMINI_API_KEY=your_key_here\n"
        "4. Restart the backend server"
    )
    rate_limit_help = "Free tier limits: 15 requests/minute, 1,500 requests/day\nPlease wait a moment and try again."

    def supports_model(self, model: str) -> bool:
        return model.startswith("gemini")

    def _translate(self, e: openai.OpenAIError) -> ProviderError:
        # Gemini answers a bad key with 400 API_KEY_INVALID rather than 401
        if "API_KEY" in str(e):
            return ProviderError(self.name, f"❌ Invalid Gemini API key.\n\n{self.key_help}", getattr(e, "status_code", None))
        return super()._translate(e)

def build_provider(name: str, settings: Any) -> OpenAICompatibleProvider:
    if name == "groq":
        return GroqProvider(settings.GROQ_API_KEY, settings.GROQ_MODEL, timeout_s=settings.LLM_TIMEOUT_S)
    if name == "huggingface":
        return HuggingFaceProvider(settings.HUGGINGFACE_TOKEN, settings.HUGGINGFACE_MODEL, timeout_s=settings.LLM_TIMEOUT_S)
    if name == "gemini":
        return GeminiProvider(settings.GEMINI_API_KEY, settings.GEMINI_MODEL, timeout_s=settings.LLM_TIMEOUT_S)
    raise ValueError(f"Unknown LLM provider: {name}")

# ----------------------------
# Dispatcher
# ----------------------------

class ProviderDispatcher:
    """Try each provider in order; the first successful completion wins."""

    def __init__(self, providers: Sequence[LLMProvider]) -> None:
        self.providers = list(providers)

    @classmethod
    def from_settings(cls, settings: Any) -> "ProviderDispatcher":
        return cls([build_provider(name, settings) for name in settings.LLM_PROVIDER_ORDER])

    def generate(
        self,
        messages: Sequence[ChatMessage],
        model_hint: Optional[str] = None,
        options: Optional[GenerationOptions] = None,
    ) -> Completion:
        errors: List[ProviderError] = []
        rid = get_request_id()
        for provider in self.providers:
            if not provider.is_configured():
                log.info("Skipping unconfigured provider", extra={"request_id": rid, "provider": provider.name})
                continue
            try:
                return provider.chat(messages, model_hint=model_hint, options=options)
            except Exception as exc:
                e = exc if isinstance(exc, ProviderError) else ProviderError(provider.name, f"{provider.name} request failed: {exc}")
                log.warning(
                    "%s API not available, falling back: %s", provider.name, (e.message.splitlines() or [""])[0],
                    extra={"request_id": rid, "provider": provider.name, "status": e.status_code},
                )
                errors.append(e)

        log.error("All LLM providers failed", extra={
            "request_id": rid,
            "providers": [p.name for p in self.providers],
            "errors": len(errors),
        })
        raise AllProvidersFailedError(errors)

# ----------------------------
# Raw text generation (HF router)
# ----------------------------

class HuggingFaceTextGenerator:
    """Plain prompt -> text against the hf-inference router, for /api/ai/generate."""

    def __init__(self, token: str, default_model: str, timeout: float = 60.0, client: Optional[httpx.Client] = None) -> None:
        self.token = token
        self.default_model = default_model
        self._client = client or httpx.Client(timeout=timeout, headers={"User-Agent": "travelmind-backend/1.0"})

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        max_new_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Completion:
        if not self.token:
            raise ProviderNotConfiguredError("huggingface", "Hugging Face token is not configured")
        model = model or self.default_model
        url = f"https://router.huggingface.co/hf-inference/models/{model}"
        payload = {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": max_new_tokens or 500,
                "temperature": 0.7 if temperature is None else temperature,
                "return_full_text": False,
            },
        }
        try:
            r = self._client.post(url, json=payload, headers={"Authorization": f"Bearer {self.token}"})
        except httpx.HTTPError as e:
            raise ProviderError("huggingface", f"Could not reach the Hugging Face API: {e}") from e

        if r.status_code in (401, 403):
            raise ProviderError("huggingface", f"❌ Hugging Face token doesn't have Inference API permissions.\n\n{HuggingFaceProvider.key_help}", r.status_code)
        if r.status_code >= 400:
            raise ProviderError("huggingface", f"Hugging Face API error: {r.status_code} - {r.text[:300]}", r.status_code)

        data = r.json()
        if isinstance(data, dict) and data.get("generated_text") is not None:
            text = data["generated_text"]
        elif isinstance(data, list) and data and isinstance(data[0], dict) and data[0].get("generated_text") is not None:
            text = data[0]["generated_text"]
        else:
            log.error("Unexpected response format from Hugging Face", extra={"request_id": get_request_id(), "model": model})
            raise ProviderError("huggingface", "Unexpected response format from Hugging Face API")
        return Completion(content=text, provider="huggingface", model=model)
