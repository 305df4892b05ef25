"""
Factory for the OpenAI SDK client used for transcription and chat.

Azure OpenAI is used when an Azure endpoint is configured, otherwise the
public OpenAI API (or any compatible base URL).
"""

import logging
from typing import Optional, Union

from openai import AzureOpenAI, OpenAI

from .config import ConfigManager

logger = logging.getLogger(__name__)


def create_openai_client(
    api_key: Optional[str] = None,
    azure_endpoint: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: float = 600.0,
) -> Union[OpenAI, AzureOpenAI]:
    """
    Create an OpenAI or Azure OpenAI client from explicit values or configuration.

    Args:
        api_key: API key (falls back to AZURE_OPENAI_API_KEY / OPENAI_API_KEY)
        azure_endpoint: Azure OpenAI resource endpoint (falls back to AZURE_OPENAI_ENDPOINT)
        base_url: Custom OpenAI-compatible base URL (falls back to OPENAI_BASE_URL)
        timeout: Per-request timeout in seconds

    Returns:
        Configured SDK client
    """
    azure_endpoint = ConfigManager.get("AZURE_OPENAI_ENDPOINT", azure_endpoint)
    if azure_endpoint:
        logger.info(f"Using Azure OpenAI endpoint: {azure_endpoint}")
        return AzureOpenAI(
            azure_endpoint=azure_endpoint,
            api_key=ConfigManager.get("AZURE_OPENAI_API_KEY", api_key) or None,
            api_version=ConfigManager.get("AZURE_OPENAI_API_VERSION"),
            timeout=timeout,
        )

    base_url = ConfigManager.get("OPENAI_BASE_URL", base_url) or None
    if base_url:
        logger.info(f"Using OpenAI-compatible endpoint: {base_url}")
    return OpenAI(api_key=ConfigManager.get("OPENAI_API_KEY", api_key) or None, base_url=base_url, timeout=timeout)
