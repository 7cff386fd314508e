"""Shared plumbing for calls to the identity and facility collaborators."""

from typing import Any

import httpx

from app.core.exceptions import DependencyUnavailableException, ValidationRejectedException
from app.core.observability import Observability
from app.core.retry import RetryExhausted, RetryPolicy
from app.core.security import ServiceTokenProvider


class ServerErrorResponse(Exception):
    """Collaborator answered with a 5xx status."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"server error {status_code}")


def is_transient(exc: BaseException) -> bool:
    """Transport failures, timeouts and 5xx answers are worth another attempt."""
    return isinstance(exc, (httpx.TransportError, ServerErrorResponse))


class ServiceClient:
    """
    Authenticated, retrying GET client for a collaborator resource.

    Every attempt carries a fresh-or-cached signed service credential and
    its own timeout. Terminal answers (404 and other 4xx) are reported
    immediately as ``ValidationRejectedException``; transient failures are
    retried by the policy and end in ``DependencyUnavailableException``.
    """

    service_name = "collaborator"
    resource_name = "resource"

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient,
        token_provider: ServiceTokenProvider,
        retry_policy: RetryPolicy,
        observability: Observability,
        timeout: float = 5.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client
        self.token_provider = token_provider
        self.retry_policy = retry_policy
        self.obs = observability
        self.timeout = timeout

    async def fetch(self, path: str, target_id: Any) -> dict[str, Any]:
        """
        GET ``path`` and return the resource document.

        Args:
            path: Path below the service base URL
            target_id: Identifier being resolved, for error reporting

        Returns:
            Decoded resource, unwrapped from a ``data`` envelope if present

        Raises:
            ValidationRejectedException: If the collaborator rejects the identifier
            DependencyUnavailableException: If every attempt failed transiently
        """
        url = f"{self.base_url}{path}"

        async def attempt() -> httpx.Response:
            response = await self.http_client.get(
                url,
                headers=self.token_provider.auth_headers(),
                timeout=self.timeout,
            )
            if response.status_code >= 500:
                raise ServerErrorResponse(response.status_code)
            return response

        def on_retry(attempt_number: int, exc: BaseException) -> None:
            self.obs.logger.warning(
                "collaborator_call_retry",
                service=self.service_name,
                target_id=str(target_id),
                attempt=attempt_number,
                error=str(exc),
            )

        try:
            response = await self.retry_policy.run(attempt, is_transient, on_retry)
        except RetryExhausted as exc:
            self.obs.metrics.dependency_failures.labels(target=self.service_name).inc()
            self.obs.logger.error(
                "collaborator_unavailable",
                service=self.service_name,
                target_id=str(target_id),
                attempts=exc.attempts,
                error=str(exc.last_error),
            )
            raise DependencyUnavailableException(
                target_id=target_id,
                cause=str(exc.last_error),
                service=self.service_name,
            ) from exc

        if response.status_code == 404:
            raise ValidationRejectedException(
                f"{self.resource_name.capitalize()} {target_id} not found",
                target_id=target_id,
            )
        if response.is_error:
            raise ValidationRejectedException(
                f"{self.resource_name.capitalize()} validation failed: "
                f"{self.service_name} answered {response.status_code}",
                target_id=target_id,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise DependencyUnavailableException(
                target_id=target_id,
                cause=f"malformed response: {exc}",
                service=self.service_name,
            ) from exc

        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        if not isinstance(body, dict):
            raise DependencyUnavailableException(
                target_id=target_id,
                cause="malformed response: expected an object",
                service=self.service_name,
            )
        return body
