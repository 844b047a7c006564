"""Thin wrapper over the OpenAI chat completions API (any OpenAI-compatible endpoint)."""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from .config import Settings, settings as default_settings
from .errors import AIProviderError

logger = logging.getLogger(__name__)

JSON_SYSTEM_PROMPT = "Return strict JSON only. Do not add markdown or commentary."


@dataclass
class AIResponse:
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Attachment:
    """A base64 file sent alongside the prompt (resume PDF or image)."""
    data: str
    mime_type: str
    file_name: Optional[str] = None


def strip_data_url(data: str) -> str:
    """Drop a ``data:<mime>;base64,`` prefix if the browser left one on."""
    return data.split(",", 1)[1] if data.startswith("data:") and "," in data else data


def parse_json_text(text: str) -> Any:
    """json.loads after removing a markdown code fence, if the model added one."""
    text = (text or "").strip()
    if text.startswith("```"):
        text = re.sub(r"^```\w*\n?", "", text).replace("```", "").strip()
    return json.loads(text)


def _attachment_part(attachment: Attachment) -> dict:
    data = strip_data_url(attachment.data)
    data_url = f"data:{attachment.mime_type};base64,{data}"
    if attachment.mime_type.startswith("image/"):
        return {"type": "image_url", "image_url": {"url": data_url}}
    return {
        "type": "file",
        "file": {"filename": attachment.file_name or "resume", "file_data": data_url},
    }


class AIClient:
    """One call per ``generate``; every provider failure surfaces as AIProviderError."""

    def __init__(self, cfg: Settings = default_settings, client: Optional[OpenAI] = None):
        self.settings = cfg
        self._client = client

    @property
    def model(self) -> str:
        return self.settings.openai_model

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise AIProviderError("OPENAI_API_KEY not set. Add to .env or environment.")
            self._client = OpenAI(
                api_key=self.settings.openai_api_key,
                base_url=self.settings.openai_base_url or None,
                timeout=self.settings.ai_timeout_s,
            )
        return self._client

    def generate(
        self,
        prompt: str,
        *,
        json_output: bool = False,
        attachment: Optional[Attachment] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AIResponse:
        client = self._get_client()
        if attachment is not None:
            content: Any = [{"type": "text", "text": prompt}, _attachment_part(attachment)]
        else:
            content = prompt
        messages = []
        if json_output:
            messages.append({"role": "system", "content": JSON_SYSTEM_PROMPT})
        messages.append({"role": "user", "content": content})

        kwargs: dict = {
            "model": self.model,
            "messages": messages,
            "temperature": self.settings.openai_temperature if temperature is None else temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise AIProviderError(f"{type(e).__name__}: {e}") from e

        if not response.choices:
            raise AIProviderError("AI provider returned no choices")
        text = (response.choices[0].message.content or "").strip()
        usage = response.usage
        return AIResponse(
            text=text,
            model=getattr(response, "model", None) or self.model,
            input_tokens=(usage.prompt_tokens or 0) if usage else 0,
            output_tokens=(usage.completion_tokens or 0) if usage else 0,
            total_tokens=(usage.total_tokens or 0) if usage else 0,
        )


_default_client: Optional[AIClient] = None


def get_ai_client() -> AIClient:
    """FastAPI dependency; one shared client per process."""
    global _default_client
    if _default_client is None:
        _default_client = AIClient()
    return _default_client
