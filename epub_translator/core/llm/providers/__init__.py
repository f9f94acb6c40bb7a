"""
Translation provider implementations

Providers:
    - openai: OpenAI chat-completions API and compatible endpoints
    - azure: Azure OpenAI deployments
"""

from .azure import AzureOpenAIProvider
from .openai import OpenAIProvider

__all__ = ['AzureOpenAIProvider', 'OpenAIProvider']
