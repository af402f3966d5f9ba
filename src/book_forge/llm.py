"""Generation gateway.

A single-call abstraction over the text-generation backend:

    response = await gateway.generate(prompt, GenerationOptions(temperature=0.7))

Supports multiple backends:
- Ollama (local)
- Hugging Face Inference router (cloud, OpenAI-compatible)
- Any OpenAI-compatible chat completions endpoint

The gateway never retries. Failures raise GenerationError with no partial text;
callers retry through book_forge.retry.call_with_retry.
"""

import json
import re
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from .config import Settings
from .errors import GenerationError, GenerationTimeout, ParseError, RateLimited


@dataclass
class GenerationOptions:
    """Per-call generation options."""
    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2000
    system_prompt: Optional[str] = None


@dataclass
class GenerationResponse:
    """Text returned by the backend."""
    text: str
    model: str = ""


class GenerationGateway(Protocol):
    """Anything that can turn a prompt into text."""

    async def generate(self, prompt: str, options: Optional[GenerationOptions] = None) -> GenerationResponse:
        ...


class LLMClient:
    """Async LLM client supporting multiple providers.

    Usage:
        client = LLMClient(settings)
        response = await client.generate("Describe a lighthouse at dusk.")

        # Or specify provider
        client = LLMClient(settings, provider="huggingface")
    """

    HF_CHAT_URL = "https://router.huggingface.co/v1/chat/completions"

    def __init__(
        self,
        settings: Settings,
        provider: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize LLM client.

        Args:
            settings: Provider and timeout configuration
            provider: "ollama", "huggingface" or "openai" (default from settings)
            http_client: Optional preconfigured client (mainly for tests)
        """
        self.settings = settings
        self.provider = provider or settings.llm_provider
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout))

    @property
    def model(self) -> str:
        if self.provider == "huggingface":
            return self.settings.hf_model
        if self.provider == "openai":
            return self.settings.openai_model
        return self.settings.ollama_model

    async def generate(self, prompt: str, options: Optional[GenerationOptions] = None) -> GenerationResponse:
        """Generate text from prompt.

        Raises:
            GenerationTimeout: the request timed out
            RateLimited: the backend returned 429 or 503
            GenerationError: any other transport or response failure
        """
        options = options or GenerationOptions()
        model = options.model or self.model

        try:
            if self.provider == "ollama":
                text = await self._generate_ollama(prompt, model, options)
            elif self.provider == "huggingface":
                if not self.settings.hf_api_key:
                    raise GenerationError("HF API key not set (BOOKFORGE_HF_API_KEY)")
                text = await self._generate_chat(self.HF_CHAT_URL, self.settings.hf_api_key, prompt, model, options)
            elif self.provider == "openai":
                url = f"{self.settings.openai_base_url.rstrip('/')}/chat/completions"
                text = await self._generate_chat(url, self.settings.openai_api_key, prompt, model, options)
            else:
                raise GenerationError(f"Unknown LLM provider: {self.provider}")
        except httpx.TimeoutException as e:
            raise GenerationTimeout(f"{self.provider} request timed out: {e}") from e
        except httpx.RequestError as e:
            raise GenerationError(f"{self.provider} request failed: {e}") from e

        if not text:
            raise GenerationError(f"{self.provider} returned an empty response")
        return GenerationResponse(text=text, model=model)

    async def _generate_ollama(self, prompt: str, model: str, options: GenerationOptions) -> str:
        """Generate using Ollama."""
        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        if options.system_prompt:
            payload["system"] = options.system_prompt

        response = await self._client.post(f"{self.settings.ollama_base_url}/api/generate", json=payload)
        self._raise_for_status(response)
        return response.json().get("response", "").strip()

    async def _generate_chat(
        self,
        url: str,
        api_key: str,
        prompt: str,
        model: str,
        options: GenerationOptions,
    ) -> str:
        """Generate using an OpenAI-compatible chat endpoint."""
        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": prompt})

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        response = await self._client.post(
            url,
            headers=headers,
            json={
                "model": model,
                "messages": messages,
                "temperature": options.temperature,
                "max_tokens": options.max_tokens,
            },
        )
        self._raise_for_status(response)

        result = response.json()
        if isinstance(result, dict) and result.get("choices"):
            return (result["choices"][0].get("message", {}).get("content") or "").strip()
        # Legacy text-generation format
        if isinstance(result, list) and result:
            return result[0].get("generated_text", "").strip()
        if isinstance(result, dict) and "generated_text" in result:
            return result["generated_text"].strip()
        return ""

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code == 200:
            return
        if response.status_code in (429, 503):
            raise RateLimited(f"{self.provider} returned {response.status_code}")
        raise GenerationError(f"{self.provider} API error {response.status_code}: {response.text[:200]}")

    async def is_available(self) -> bool:
        """Check if the LLM backend is reachable."""
        if self.provider == "huggingface":
            return bool(self.settings.hf_api_key)
        if self.provider == "openai":
            return bool(self.settings.openai_api_key)
        try:
            response = await self._client.get(f"{self.settings.ollama_base_url}/api/tags", timeout=5.0)
            return response.status_code == 200
        except httpx.RequestError:
            return False

    async def aclose(self) -> None:
        await self._client.aclose()


def strip_markdown(text: str) -> str:
    """Remove common markdown decoration from a response."""
    text = re.sub(r"```[a-zA-Z]*\n?", "", text)
    text = re.sub(r"\*\*(.*?)\*\*", r"\1", text)
    text = re.sub(r"__(.*?)__", r"\1", text)
    text = re.sub(r"^#{1,6}\s*", "", text, flags=re.MULTILINE)
    return text.strip()


def extract_json(response: str) -> list | dict | None:
    """Extract JSON from LLM response.

    Handles markdown code blocks and stray text.

    Args:
        response: Raw LLM response

    Returns:
        Parsed JSON or None
    """
    if not response:
        return None

    # Try to extract from code block
    if "```" in response:
        match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", response)
        if match:
            response = match.group(1)

    # Try direct parse
    try:
        return json.loads(response)
    except json.JSONDecodeError:
        pass

    # Objects first: a dict response often contains arrays
    for pattern in (r"\{[\s\S]*\}", r"\[[\s\S]*\]"):
        match = re.search(pattern, response)
        if match:
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError:
                pass

    return None


def parse_json_object(response: str) -> dict:
    """Extract a JSON object or raise ParseError."""
    data = extract_json(response)
    if not isinstance(data, dict):
        raise ParseError("Expected a JSON object in response", raw=response[:500])
    return data
