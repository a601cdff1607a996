"""
Payment-intent provider.

Creates Stripe PaymentIntents through the stripe SDK and returns the
client secret the frontend confirms the card payment with.
"""

import logging
from typing import Optional
import stripe
from parcel_backend.app.core.config import settings
from parcel_backend.app.core.exceptions import PaymentProviderError
from parcel_backend.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger(__name__)


class StripePaymentGateway:
    """
    Stripe PaymentIntents behind a circuit breaker.

    Amounts are in the currency's minor unit (cents for usd). The SDK
    client is built on first use, so an unconfigured deployment never
    opens a connection pool.
    """

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com",
        timeout: float = 10.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        client: Optional[stripe.StripeClient] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=3, reset_timeout=30)
        self._client = client
        self._http_client: Optional[stripe.HTTPXClient] = None

    @property
    def client(self) -> stripe.StripeClient:
        if self._client is None:
            self._http_client = stripe.HTTPXClient(timeout=self.timeout)
            self._client = stripe.StripeClient(
                self.secret_key,
                base_addresses={"api": self.api_base},
                http_client=self._http_client,
            )
        return self._client

    async def create_intent(self, amount: int, currency: str) -> str:
        """
        Create a payment intent and return its client secret.

        Raises:
            PaymentProviderError: on a provider error, open circuit or a malformed reply
        """
        if not self.secret_key:
            raise PaymentProviderError("Payment provider is not configured")

        try:
            intent = await self.circuit_breaker.call(
                self.client.payment_intents.create_async,
                params={
                    "amount": amount,
                    "currency": currency,
                    "payment_method_types": ["card"],
                },
            )
        except CircuitOpenError:
            raise PaymentProviderError("Payment provider temporarily unavailable")
        except stripe.StripeError as e:
            logger.error("Payment intent failed: %s %s", e.http_status, e.user_message or e)
            if e.http_status:
                raise PaymentProviderError(f"Payment provider rejected the request ({e.http_status})")
            raise PaymentProviderError()

        client_secret = getattr(intent, "client_secret", None)
        if not client_secret:
            raise PaymentProviderError("Payment provider returned no client secret")

        logger.info("Created payment intent %s for %d %s", getattr(intent, "id", None), amount, currency)
        return client_secret

    async def aclose(self):
        """Release the SDK's HTTP connection pool, if one was opened."""
        if self._http_client is not None:
            await self._http_client.close_async()


payment_gateway = StripePaymentGateway(
    secret_key=settings.stripe_secret_key,
    api_base=settings.stripe_api_base,
    timeout=settings.payment_timeout_seconds,
)


def get_payment_gateway() -> StripePaymentGateway:
    """FastAPI dependency returning the process-wide gateway."""
    return payment_gateway
