"""
Credentials attached to each request of the job client.

Headers are derived again for every HTTP call so that short-lived bearer
tokens are refreshed during a multi-minute polling loop.
"""

from typing import Callable, Dict, Protocol


class Credential(Protocol):
    """Something that can produce authentication headers for one request."""

    def headers(self) -> Dict[str, str]: ...


class ApiKeyCredential:
    """Static API key sent in the ``api-key`` header."""

    def __init__(self, api_key: str):
        if not api_key:
            raise ValueError("api_key must not be empty")
        self._api_key = api_key

    def headers(self) -> Dict[str, str]:
        return {"api-key": self._api_key}


class BearerTokenCredential:
    """
    Bearer token obtained from a provider on every request.

    The provider is any callable returning a token string, for example a
    wrapper around an identity library that caches and refreshes tokens.
    """

    def __init__(self, token_provider: Callable[[], str]):
        self._token_provider = token_provider

    def headers(self) -> Dict[str, str]:
        token = self._token_provider()
        if not token:
            raise ValueError("Token provider returned an empty token")
        return {"Authorization": f"Bearer {token}"}
