from __future__ import annotations

import base64
import json
import threading
from typing import Any, Optional

from .errors import ResolutionError

try:  # pragma: no cover
    import boto3  # type: ignore
except Exception:  # pragma: no cover
    boto3 = None


class SecretResolver:
    """Looks up AWS Secrets Manager values, caching each (name, key) pair."""

    def __init__(self):
        self._cache: dict[tuple[str, Optional[str]], Any] = {}
        self._lock = threading.Lock()

    def lookup(self, name: str, key: Optional[str] = None) -> Any:
        cache_key = (name, key)
        with self._lock:
            if cache_key in self._cache:
                return self._cache[cache_key]

        secret_str = self._fetch(name)
        value: Any = secret_str
        if key is not None:
            try:
                payload = json.loads(secret_str)
            except json.JSONDecodeError:
                raise ResolutionError(
                    f"secret '{name}' is not a JSON object, cannot extract key '{key}'",
                    category="secret",
                    identifier=name,
                ) from None
            if not isinstance(payload, dict) or key not in payload:
                raise ResolutionError(
                    f"secret key '{key}' not found in secret '{name}'",
                    category="secret",
                    identifier=name,
                )
            value = payload[key]

        with self._lock:
            self._cache[cache_key] = value
        return value

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    @staticmethod
    def _fetch(name: str) -> str:
        if boto3 is None:
            raise RuntimeError("boto3 is required to resolve secret parameters")
        client = boto3.client("secretsmanager")
        response = client.get_secret_value(SecretId=name)
        secret_str = response.get("SecretString")
        if secret_str is None:
            binary = response.get("SecretBinary")
            if binary is None:
                raise ResolutionError(
                    f"Secret {name} has no SecretString or SecretBinary",
                    category="secret",
                    identifier=name,
                )
            secret_str = base64.b64decode(binary).decode()
        return secret_str


default_resolver = SecretResolver()
