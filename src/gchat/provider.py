"""Language-model provider client (OpenAI-compatible chat completions).

One request/response per call, with no streaming and no retries. The
sampling configuration for each feature lives in ``FEATURE_CONFIGS``, a
read-only table fixed at import time.

The client is owned by a ``ProviderFactory``: created lazily on first use,
exactly once per process, and closed by the server lifespan.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

import httpx
import structlog

from gchat.errors import ProviderFailure

if TYPE_CHECKING:
    from collections.abc import Mapping

    from gchat.config import ProviderSettings

log = structlog.get_logger()

TRANSLATION = "translation"
LANGUAGE_DETECTION = "language_detection"
SMART_REPLY = "smart_reply"
CULTURAL_CONTEXT = "cultural_context"
FORMALITY_ADJUSTMENT = "formality_adjustment"
DATA_EXTRACTION = "data_extraction"
# Rate-limit bucket only; each message in a batch is a DATA_EXTRACTION completion
BATCH_DATA_EXTRACTION = "batch_data_extraction"


@dataclass(frozen=True)
class FeatureConfig:
    temperature: float
    max_tokens: int
    json_mode: bool = False
    model: str | None = None  # None → the configured provider model


FEATURE_CONFIGS: Mapping[str, FeatureConfig] = MappingProxyType(
    {
        # Low temperature for consistent, deterministic output
        TRANSLATION: FeatureConfig(temperature=0.3, max_tokens=2000),
        LANGUAGE_DETECTION: FeatureConfig(temperature=0.1, max_tokens=10),
        # Higher for natural, varied conversation
        SMART_REPLY: FeatureConfig(temperature=0.7, max_tokens=500, json_mode=True),
        CULTURAL_CONTEXT: FeatureConfig(temperature=0.3, max_tokens=1000, json_mode=True),
        FORMALITY_ADJUSTMENT: FeatureConfig(temperature=0.3, max_tokens=1000),
        DATA_EXTRACTION: FeatureConfig(temperature=0.2, max_tokens=1000, json_mode=True),
    }
)


def build_http_client(settings: ProviderSettings) -> httpx.AsyncClient:
    """Create the provider's httpx client. Called once, lazily."""
    return httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={
            "Authorization": f"Bearer {settings.api_key}",
            "User-Agent": "gchat/1.0",
        },
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


class ProviderClient:
    """Chat completions client implementing ProviderProtocol."""

    def __init__(self, client: httpx.AsyncClient, default_model: str) -> None:
        self._client = client
        self._default_model = default_model

    async def complete(self, feature: str, messages: list[dict[str, str]]) -> str:
        """Run one completion with the feature's fixed configuration.

        Returns the first choice's message content. Raises ProviderFailure on
        network errors, non-2xx responses, and responses without content.
        """
        config = FEATURE_CONFIGS[feature]
        model = config.model or self._default_model
        body: dict = {
            "model": model,
            "messages": messages,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
        }
        if config.json_mode:
            body["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.post("/chat/completions", json=body)
        except httpx.HTTPError as exc:
            log.error("provider_network_error", feature=feature, model=model, error=str(exc))
            raise ProviderFailure(f"Provider request failed: {exc}") from exc

        if not response.is_success:
            log.error(
                "provider_http_error",
                feature=feature,
                model=model,
                status_code=response.status_code,
            )
            raise ProviderFailure(
                f"Provider returned HTTP {response.status_code}",
                details={"statusCode": response.status_code},
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            log.error("provider_malformed_envelope", feature=feature, model=model)
            raise ProviderFailure("Provider response has no completion content") from exc

        if not isinstance(content, str):
            raise ProviderFailure("Provider response has no completion content")

        log.info(
            "provider_complete",
            feature=feature,
            model=model,
            content_length=len(content),
        )
        return content


class ProviderFactory:
    """Lazily creates the process-wide ProviderClient exactly once."""

    def __init__(self, settings: ProviderSettings) -> None:
        self._settings = settings
        self._http_client: httpx.AsyncClient | None = None
        self._provider: ProviderClient | None = None

    def get(self) -> ProviderClient:
        # No await between the check and the assignment, so concurrent tasks
        # on the event loop cannot both initialise.
        if self._provider is None:
            if not self._settings.api_key:
                log.warning("provider_api_key_missing")
            self._http_client = build_http_client(self._settings)
            self._provider = ProviderClient(self._http_client, self._settings.model)
            log.info("provider_initialized", base_url=self._settings.base_url)
        return self._provider

    @property
    def is_initialized(self) -> bool:
        return self._provider is not None

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
