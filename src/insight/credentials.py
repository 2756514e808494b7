from __future__ import annotations

import logging

from pydantic import SecretStr

from insight.errors import ConfigurationError

logger = logging.getLogger(__name__)


class CredentialHolder:
    """Keeps the Gemini API key in memory for the lifetime of the process."""

    def __init__(self, secret: SecretStr | str | None = None) -> None:
        self._secret: SecretStr | None = None
        if secret:
            self.set(secret)

    def set(self, secret: SecretStr | str) -> None:
        value = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
        value = value.strip()
        if not value:
            raise ConfigurationError("API key must not be empty.")
        self._secret = SecretStr(value)
        logger.info("API key updated")

    def clear(self) -> None:
        self._secret = None
        logger.info("API key cleared")

    @property
    def is_set(self) -> bool:
        return self._secret is not None

    def require(self) -> str:
        if self._secret is None:
            raise ConfigurationError(
                "API key missing. Set GEMINI_API_KEY or enter a key before using the service."
            )
        return self._secret.get_secret_value()
