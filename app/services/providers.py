import logging
from abc import ABC, abstractmethod

import requests
from google import genai
from google.genai import errors as genai_errors

from app.config import Settings

logger = logging.getLogger(__name__)

GEMINI_REST_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
GROK_CHAT_URL = "https://api.x.ai/v1/chat/completions"


class ProviderError(Exception):
    """Base class for anything that goes wrong while producing review text."""


class ProviderConfigError(ProviderError):
    pass


class ProviderHTTPError(ProviderError):
    def __init__(self, provider: str, status: int | None, detail: str):
        self.status = status
        super().__init__(f"{provider} API error ({status}): {detail or 'Unknown error'}")


class EmptyResponseError(ProviderError):
    def __init__(self, provider: str):
        super().__init__(f"{provider} API returned empty response.")


class TextProvider(ABC):
    """A generative-text backend that turns a prompt into raw text."""

    name: str

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Return the provider's text output for a single user prompt."""


class GeminiRestProvider(TextProvider):
    name = "Gemini"

    def __init__(self, api_key: str | None, model: str, timeout: float | None = None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise ProviderConfigError("Missing GEMINI_API_KEY")

        response = requests.post(
            GEMINI_REST_URL.format(model=self.model),
            params={"key": self.api_key},
            json={"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
            timeout=self.timeout,
        )
        if not response.ok:
            raise ProviderHTTPError(self.name, response.status_code, response.text)

        data = response.json()
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise EmptyResponseError(self.name)

        logger.info("Gemini REST call succeeded | model=%s", self.model)
        return text


class GrokChatProvider(TextProvider):
    name = "Grok"

    def __init__(
        self,
        api_key: str | None,
        model: str,
        temperature: float = 0.7,
        timeout: float | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise ProviderConfigError("Missing XAI_API_KEY")

        response = requests.post(
            GROK_CHAT_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "stream": False,
                "temperature": self.temperature,
                "messages": [{"role": "user", "content": prompt}],
            },
            timeout=self.timeout,
        )
        if not response.ok:
            raise ProviderHTTPError(self.name, response.status_code, response.text)

        data = response.json()
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise EmptyResponseError(self.name)

        logger.info("Grok chat call succeeded | model=%s", self.model)
        return str(text)


class GeminiSdkProvider(TextProvider):
    name = "Gemini"

    def __init__(self, api_key: str | None, model: str):
        self.api_key = api_key
        self.model = model
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise ProviderConfigError("Missing GEMINI_API_KEY")

        try:
            response = self._get_client().models.generate_content(
                model=self.model,
                contents=prompt,
            )
        except genai_errors.APIError as e:
            raise ProviderHTTPError(self.name, e.code, e.message) from e

        text = response.text
        if not text:
            raise EmptyResponseError(self.name)

        logger.info("Gemini SDK call succeeded | model=%s", self.model)
        return text


def build_provider(settings: Settings) -> TextProvider:
    """Instantiate the provider selected by ``LLM_PROVIDER``."""
    if settings.llm_provider == "grok":
        return GrokChatProvider(
            api_key=settings.xai_api_key,
            model=settings.grok_model,
            temperature=settings.grok_temperature,
            timeout=settings.provider_timeout,
        )
    if settings.llm_provider == "gemini-sdk":
        return GeminiSdkProvider(api_key=settings.gemini_api_key, model=settings.gemini_model)
    return GeminiRestProvider(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout=settings.provider_timeout,
    )
