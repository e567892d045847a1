"""LLM routing for the voice assistant.

The provider is picked from the model name: ``claude-*`` goes to the
Anthropic Messages API, ``gpt-*`` to the OpenAI Responses API and anything
else to Google GenAI. Callers only ever see an ``LLMResult``; a missing key
or a provider failure is reported in ``LLMResult.error``.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

from api_keys import PROVIDERS, api_keys_manager

logger = logging.getLogger(__name__)

DEFAULT_MODEL = os.getenv("VOICE_LLM_MODEL", "claude-sonnet-4-20250514")


@dataclass
class LLMRequest:
    model: str
    user_prompt: str
    system_prompt: Optional[str] = None
    json_mode: bool = True
    temperature: float = 0.0
    max_output_tokens: Optional[int] = None


@dataclass
class LLMResult:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_s: float = 0.0
    error: Optional[str] = None


# (text, input tokens, output tokens)
Completion = tuple[str, int, int]


def _usage(usage, input_attr: str, output_attr: str) -> tuple[int, int]:
    if usage is None:
        return 0, 0
    return getattr(usage, input_attr, 0) or 0, getattr(usage, output_attr, 0) or 0


def _anthropic_complete(request: LLMRequest, api_key: str) -> Completion:
    import anthropic

    client = anthropic.Anthropic(api_key=api_key)
    kwargs: dict = {
        "model": request.model,
        "max_tokens": request.max_output_tokens or 1024,
        "temperature": request.temperature,
        "messages": [{"role": "user", "content": request.user_prompt}],
    }
    if request.system_prompt:
        kwargs["system"] = request.system_prompt

    # No native JSON mode: the prompt itself asks for a JSON object
    response = client.messages.create(**kwargs)
    text = "".join(block.text for block in response.content if block.type == "text")
    return (text.strip(), *_usage(getattr(response, "usage", None), "input_tokens", "output_tokens"))


def _openai_complete(request: LLMRequest, api_key: str) -> Completion:
    from openai import OpenAI

    client = OpenAI(api_key=api_key)
    kwargs: dict = {
        "model": request.model,
        "input": [{"role": "user", "content": [{"type": "input_text", "text": request.user_prompt}]}],
        "temperature": request.temperature,
    }
    if request.system_prompt:
        kwargs["instructions"] = request.system_prompt
    if request.json_mode:
        kwargs["text"] = {"format": {"type": "json_object"}}
    if request.max_output_tokens:
        kwargs["max_output_tokens"] = request.max_output_tokens

    response = client.responses.create(**kwargs)
    return (response.output_text or "", *_usage(getattr(response, "usage", None), "input_tokens", "output_tokens"))


def _gemini_complete(request: LLMRequest, api_key: str) -> Completion:
    from google import genai
    from google.genai import types

    client = genai.Client(api_key=api_key)
    config = types.GenerateContentConfig(
        temperature=request.temperature,
        system_instruction=request.system_prompt or None,
        response_mime_type="application/json" if request.json_mode else None,
        max_output_tokens=request.max_output_tokens or None,
    )
    response = client.models.generate_content(
        model=request.model,
        contents=[types.Content(role="user", parts=[types.Part.from_text(text=request.user_prompt)])],
        config=config,
    )
    usage = getattr(response, "usage_metadata", None)
    return (response.text or "", *_usage(usage, "prompt_token_count", "candidates_token_count"))


COMPLETERS: dict[str, Callable[[LLMRequest, str], Completion]] = {
    "anthropic": _anthropic_complete,
    "openai": _openai_complete,
    "gemini": _gemini_complete,
}

MODEL_PREFIXES = [("claude-", "anthropic"), ("gpt-", "openai")]
FALLBACK_PROVIDER = "gemini"


def provider_for(model: str) -> str:
    for prefix, provider in MODEL_PREFIXES:
        if model.startswith(prefix):
            return provider
    return FALLBACK_PROVIDER


def llm_call(
    model: str,
    user_prompt: str,
    system_prompt: Optional[str] = None,
    json_mode: bool = True,
    temperature: float = 0.0,
    max_output_tokens: Optional[int] = None,
) -> LLMResult:
    """Route one completion to the provider that serves ``model``."""
    request = LLMRequest(model, user_prompt, system_prompt, json_mode, temperature, max_output_tokens)
    provider = provider_for(model)
    api_key = api_keys_manager.get_key(provider)
    if not api_key:
        return LLMResult(text="", error=f"{PROVIDERS[provider]['env_var']} not set")

    t0 = time.time()
    try:
        text, input_tokens, output_tokens = COMPLETERS[provider](request, api_key)
    except Exception as e:
        # SDK exception hierarchies differ per provider
        logger.error(f"{provider} API error ({model}): {e}")
        return LLMResult(text="", error=str(e), duration_s=round(time.time() - t0, 2))

    return LLMResult(
        text=text,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        duration_s=round(time.time() - t0, 2),
    )
