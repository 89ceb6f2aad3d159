"""
Open Policy Agent client for the Sessions service.
"""

import time
from typing import Generic, Optional, TypeVar

import httpx
from opentelemetry.trace import SpanKind
from pydantic import BaseModel, StrictBool

from shared.errors import PolicyDeniedError, PolicyUnreachableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.tracing import inject_trace_headers, trace_operation

ParametersT = TypeVar("ParametersT", bound=BaseModel)


class PolicyInput(BaseModel, Generic[ParametersT]):
    """Parameters required by OPA to make the policy decision."""

    # The access token associated with the request
    token: Optional[str] = None
    # Additional, operation specific, parameters
    parameters: ParametersT


class Decision(BaseModel):
    """The policy decision made by OPA."""

    allow: StrictBool


class PolicyClient:
    """Client for the policy decision endpoint.

    One instance is shared by all requests; it only holds the pooled HTTP
    client and the endpoint, never per-request state. Every call goes to the
    network: decisions are neither retried nor cached.
    """

    def __init__(self, endpoint: str, timeout: float = 5.0,
                 metrics: Optional[MetricsCollector] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.endpoint = endpoint
        self.metrics = metrics
        self.logger = get_logger("sessions.policy_client")
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.logger.info("Setting up OPA client", endpoint=endpoint, timeout=timeout)

    async def close(self):
        """Release pooled connections."""
        await self.client.aclose()

    async def query(self, policy_input: PolicyInput) -> Decision:
        """Send ``policy_input`` to OPA and return its decision.

        Transport failures, non-2xx answers and bodies that are not shaped
        like a :class:`Decision` propagate as the underlying exception.
        """
        with trace_operation("policy.decide", kind=SpanKind.CLIENT, **{"http.url": self.endpoint}):
            headers = inject_trace_headers()
            response = await self.client.post(
                self.endpoint,
                content=policy_input.model_dump_json(),
                headers={**headers, "Content-Type": "application/json"}
            )
            response.raise_for_status()
            return Decision.model_validate(response.json())

    async def decide(self, token: Optional[str], parameters: BaseModel) -> None:
        """Ask OPA whether the operation described by ``parameters`` may proceed.

        Returns on ``allow == true``. Raises :class:`PolicyDeniedError` on an
        explicit deny and :class:`PolicyUnreachableError` when no decision
        could be obtained, so callers can tell the two apart.
        """
        policy_input = PolicyInput[type(parameters)](token=token, parameters=parameters)
        start_time = time.perf_counter()

        try:
            decision = await self.query(policy_input)
        except (httpx.HTTPError, ValueError) as e:
            self._record("error", start_time)
            self.logger.error(
                "Policy decision unavailable",
                endpoint=self.endpoint,
                error_type=type(e).__name__,
                error=str(e)
            )
            raise PolicyUnreachableError(details={"error_type": type(e).__name__}) from e

        if not decision.allow:
            self._record("denied", start_time)
            self.logger.info(
                "Policy denied request",
                parameters=parameters.model_dump(mode="json"),
                has_token=token is not None
            )
            raise PolicyDeniedError()

        self._record("allowed", start_time)
        self.logger.debug(
            "Policy allowed request",
            parameters=parameters.model_dump(mode="json"),
            has_token=token is not None
        )

    def _record(self, outcome: str, start_time: float):
        if self.metrics is not None:
            self.metrics.record_policy_decision(outcome, time.perf_counter() - start_time)
