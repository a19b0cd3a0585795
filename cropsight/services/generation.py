"""
Generation client

Thin adapter over the OpenAI-compatible chat completions API (Gemini models via
OpenRouter). Given a prompt, optional images and an optional JSON response shape,
returns the generated text plus any web citations the model was grounded on.

Every failure (transport, timeout, quota, content policy) is raised as a
GenerationError; an empty response raises the EmptyGenerationError subclass.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from openai import AsyncOpenAI, APIError

from cropsight.config import (
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    APP_REFERER,
    APP_TITLE,
    API_TIMEOUT,
    API_CONNECT_TIMEOUT,
    MAX_OUTPUT_TOKENS,
)
from cropsight.services.pipeline import ImagePayload

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The generation service could not produce a response"""


class EmptyGenerationError(GenerationError):
    """The call succeeded but the model returned no text"""


@dataclass(frozen=True)
class GenerationCitation:
    title: str
    uri: str


@dataclass(frozen=True)
class Generation:
    text: str
    citations: List[GenerationCitation] = field(default_factory=list)


def _read(obj: Any, name: str) -> Any:
    # SDK objects and plain dicts both show up in annotations
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_citations(message: Any) -> List[GenerationCitation]:
    """Collect url_citation annotations from a chat completion message"""
    citations = []
    for annotation in _read(message, "annotations") or []:
        if _read(annotation, "type") != "url_citation":
            continue
        url_citation = _read(annotation, "url_citation")
        if not url_citation:
            continue
        uri = _read(url_citation, "url")
        if not uri:
            continue
        citations.append(GenerationCitation(title=_read(url_citation, "title") or "", uri=uri))
    return citations


class GenerationClient:
    """
    Async generation client shared by all pipeline agents.

    The client owns its connection pool and per-call timeout; the pipeline
    treats it as stateless per call.
    """

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: str = OPENROUTER_BASE_URL,
        timeout: float = API_TIMEOUT,
        openai_client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.timeout = timeout
        self._api_key = api_key
        self._base_url = base_url
        self._client = openai_client

    @classmethod
    def from_settings(cls, model: str) -> "GenerationClient":
        return cls(model=model, api_key=OPENROUTER_API_KEY)

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise GenerationError("OpenRouter API key not configured")
            http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=API_CONNECT_TIMEOUT,
                    read=self.timeout,
                    write=self.timeout,
                    pool=self.timeout,
                )
            )
            self._client = AsyncOpenAI(
                base_url=self._base_url,
                api_key=self._api_key,
                http_client=http_client,
            )
            logger.info(f"OpenRouter client initialized with {self.timeout:.0f}s timeout")
        return self._client

    async def generate(
        self,
        prompt: str,
        images: Optional[Sequence[ImagePayload]] = None,
        response_shape: Optional[Dict[str, Any]] = None,
        *,
        temperature: Optional[float] = None,
        grounded: bool = False,
        system: Optional[str] = None,
        model: Optional[str] = None,
        history: Optional[Sequence[Tuple[str, str]]] = None,
    ) -> Generation:
        """
        Run one generation call.

        Args:
            prompt: user instruction text
            images: images sent alongside the prompt, in order
            response_shape: JSON schema the response text must follow
            temperature: sampling temperature (0 for near-deterministic output)
            grounded: enable web search and collect its citations
            system: optional system instruction
            model: override the client's default model for this call
            history: earlier (role, text) chat turns sent before the prompt;
                role is "user" or "model"

        Raises:
            EmptyGenerationError: the call returned no text
            GenerationError: the call failed
        """
        client = self._get_client()

        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for image in images or ():
            content.append({
                "type": "image_url",
                "image_url": {"url": image.to_data_url()},
            })

        messages: List[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        for role, text in history or ():
            messages.append({"role": "assistant" if role == "model" else "user", "content": text})
        messages.append({"role": "user", "content": content})

        kwargs: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "extra_headers": {
                "HTTP-Referer": APP_REFERER,
                "X-Title": APP_TITLE,
            },
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if response_shape is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": response_shape},
            }
        if grounded:
            kwargs["extra_body"] = {"plugins": [{"id": "web"}]}

        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(**kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Generation timeout after {self.timeout:.0f} seconds")
            raise GenerationError(f"timeout after {self.timeout:.0f}s") from e
        except APIError as e:
            logger.error(f"Generation API error: {e}")
            raise GenerationError(str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"Generation HTTP error: {e}")
            raise GenerationError(str(e)) from e

        if not response.choices:
            raise GenerationError("no choices in response")

        choice = response.choices[0]
        if getattr(choice, "finish_reason", None) == "content_filter":
            raise GenerationError("response blocked by content policy")

        message = choice.message
        text = (message.content or "").strip()
        if not text:
            raise EmptyGenerationError("empty response")

        citations = extract_citations(message) if grounded else []
        logger.debug(f"Generation ok: {len(text)} chars, {len(citations)} citations")
        return Generation(text=text, citations=citations)

    async def aclose(self):
        if self._client is not None:
            await self._client.close()
