"""SSM Parameter Store access for gateway secrets.

Secrets live under ``/booking/{environment}/...`` as SecureString
parameters and are cached in-process after the first read.
"""

from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import ClientError

from booking_engine.utils.logging import get_logger

logger = get_logger(__name__)


class SSMServiceError(Exception):
    """Raised when a parameter cannot be read."""


def secret_path(environment: str, *parts: str) -> str:
    """Parameter name for an environment, e.g. ``/booking/dev/stripe/secret_key``."""
    return "/".join(("", "booking", environment, *parts))


class SSMService:
    """Cached reader for SecureString parameters."""

    _instance: ClassVar["SSMService | None"] = None
    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        self._client = boto3.client("ssm")

    @classmethod
    def get_instance(cls) -> "SSMService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Read and decrypt a parameter.

        Args:
            name: Full parameter path
            use_cache: Return the cached value when present

        Returns:
            The decrypted value

        Raises:
            SSMServiceError: If the parameter is missing or not readable
        """
        if use_cache and name in self._cache:
            return self._cache[name]

        try:
            response = self._client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMServiceError(f"SSM parameter not found: {name}") from e
            if error_code == "AccessDeniedException":
                raise SSMServiceError(
                    f"Access denied to SSM parameter: {name}. "
                    "Check IAM permissions for ssm:GetParameter."
                ) from e
            raise SSMServiceError(f"Failed to retrieve SSM parameter {name}: {e}") from e

        value = response["Parameter"]["Value"]
        self._cache[name] = value
        logger.info("Loaded SSM parameter %s", name)
        return value

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton and the cache (tests, rotated secrets)."""
        cls._cache.clear()
        cls._instance = None


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    return SSMService.get_instance()
