# audiotour/services/generation.py
# Generative text through an OpenAI-compatible chat completions endpoint.

from typing import Dict, Optional

from audiotour.core.errors import ProviderError, ProviderUnavailable
from audiotour.services.http_client import ProviderClient


class GenerationClient(ProviderClient):
    provider_name = "openai"

    def __init__(self, settings, timeout: Optional[float] = None, transport=None):
        super().__init__(
            settings,
            timeout=timeout if timeout is not None else settings.GENERATION_TIMEOUT_SECONDS,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return self.settings.has_generation_credential

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.OPENAI_API_KEY.strip()}",
            "Content-Type": "application/json",
        }

    async def generate(self, prompt: str, system_prompt: str, timeout: Optional[float] = None) -> str:
        """Return the trimmed completion text.

        Raises ProviderUnavailable without a credential, ProviderTimeout when the
        budget runs out and ProviderError for non-success or empty responses.
        """
        if not self.configured:
            raise ProviderUnavailable(self.provider_name, "OPENAI_API_KEY is not configured")

        data = await self.post_json(
            f"{self.settings.OPENAI_BASE_URL.rstrip('/')}/chat/completions",
            json={
                "model": self.settings.OPENAI_MODEL,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                "temperature": self.settings.GENERATION_TEMPERATURE,
                "max_tokens": self.settings.GENERATION_MAX_TOKENS,
            },
            timeout=timeout,
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(self.provider_name, "response did not contain message content")
        if not isinstance(content, str) or not content.strip():
            raise ProviderError(self.provider_name, "response did not contain message content")
        return content.strip()
