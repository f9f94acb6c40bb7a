"""
Factory for creating translation provider instances.

This module provides create_translation_provider(), which instantiates the
backend named by provider_type, and create_provider_from_settings(), which
does the same from a validated AppSettings.
"""

import os

from ...config import (
    AZURE_OPENAI_API_VERSION,
    OPENAI_API_ENDPOINT,
    OPENAI_MODEL,
    REQUEST_TIMEOUT,
)
from .base import TranslationProvider
from .providers.azure import AzureOpenAIProvider
from .providers.openai import OpenAIProvider


def create_translation_provider(provider_type: str = "openai", **kwargs) -> TranslationProvider:
    """
    Create a translation provider instance.

    Args:
        provider_type: Type of provider ("openai", "azure")
        **kwargs: Provider-specific parameters:
            - api_key: API key (both)
            - model: Model name (OpenAI)
            - api_endpoint: Chat-completions URL (OpenAI)
            - endpoint, deployment, api_version: Azure resource details
            - timeout, default_options, transport, logger: passed through

    Returns:
        Instantiated provider

    Raises:
        ValueError: If provider_type is unknown or required parameters are missing

    Examples:
        >>> provider = create_translation_provider("openai", api_key="sk-...", model="gpt-4o-mini")
        >>> provider = create_translation_provider(
        ...     "azure", api_key="...", endpoint="https://res.openai.azure.com", deployment="gpt4")
    """
    common = {key: kwargs[key] for key in ("default_options", "transport", "logger") if key in kwargs}
    common["timeout"] = kwargs.get("timeout") or REQUEST_TIMEOUT

    provider_type = provider_type.lower()
    if provider_type == "openai":
        api_key = kwargs.get("api_key") or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OpenAI provider requires an API key. Set OPENAI_API_KEY environment "
                             "variable or pass api_key parameter.")
        return OpenAIProvider(
            api_key=api_key,
            model=kwargs.get("model") or OPENAI_MODEL,
            api_endpoint=kwargs.get("api_endpoint") or OPENAI_API_ENDPOINT,
            **common
        )
    elif provider_type == "azure":
        api_key = kwargs.get("api_key") or os.getenv("AZURE_OPENAI_API_KEY")
        endpoint = kwargs.get("endpoint") or os.getenv("AZURE_OPENAI_ENDPOINT")
        deployment = kwargs.get("deployment") or os.getenv("AZURE_OPENAI_DEPLOYMENT")
        if not (api_key and endpoint and deployment):
            raise ValueError("Azure OpenAI provider requires an API key, endpoint and deployment. Set "
                             "AZURE_OPENAI_API_KEY, AZURE_OPENAI_ENDPOINT and AZURE_OPENAI_DEPLOYMENT.")
        return AzureOpenAIProvider(
            api_key=api_key,
            endpoint=endpoint,
            deployment=deployment,
            api_version=kwargs.get("api_version") or AZURE_OPENAI_API_VERSION,
            **common
        )
    else:
        raise ValueError(f"Unknown provider type: {provider_type}")


def create_provider_from_settings(settings, **kwargs) -> TranslationProvider:
    """Build the provider selected by an AppSettings instance."""
    if settings.llm_provider == "azure":
        return create_translation_provider(
            "azure",
            api_key=settings.azure_api_key,
            endpoint=settings.azure_endpoint,
            deployment=settings.azure_deployment,
            api_version=settings.azure_api_version,
            timeout=settings.timeout,
            **kwargs
        )
    return create_translation_provider(
        settings.llm_provider,
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        api_endpoint=settings.openai_endpoint,
        timeout=settings.timeout,
        **kwargs
    )
