"""Upload quota bookkeeping against the users service."""

import logging
from typing import Any, Mapping

from common.constants import QUOTA_REFUND_TIMEOUT_MS
from gateway.exceptions import PaymentRequiredError, TransportError
from gateway.identity import User
from gateway.routing import USERS_NAMESPACE
from gateway.services.backend import BackendService

logger = logging.getLogger(__name__)

QUOTA_ATTRIBUTE = "models"
METADATA_ROUTE = "updateMetadata"


def has_quota(user: User) -> bool:
    """
    False only when the account reports a numeric quota below one.
    """
    value = user.attributes.get(QUOTA_ATTRIBUTE)
    if value is None:
        return True
    try:
        return float(value) >= 1
    except (TypeError, ValueError):
        return True


class QuotaService(BackendService):
    """
    Decrements and refunds the per-account model quota.

    The two calls are not transactional: a failed refund leaves the quota
    decremented and is only logged for out-of-band reconciliation.
    """

    def __init__(self, *args, audience: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.audience = audience

    def _increment(self, username: str, amount: int) -> Mapping[str, Any]:
        return {
            "username": username,
            "audience": self.audience,
            "metadata": {"$incr": {QUOTA_ATTRIBUTE: amount}},
        }

    async def decrement(self, username: str) -> int:
        """
        Take one unit of quota.

        Returns:
            Remaining quota as reported by the users service

        Raises:
            RpcError: users service failed; nothing to refund
        """
        reply = (await self.call(
            METADATA_ROUTE,
            self._increment(username, -1),
            namespace=USERS_NAMESPACE,
        )).unwrap()

        try:
            return int(reply["$incr"][QUOTA_ATTRIBUTE])
        except (KeyError, TypeError, ValueError):
            logger.error(f"Unexpected quota reply for {username}: {reply!r}")
            raise TransportError("invalid reply from users service") from None

    async def refund(self, username: str) -> bool:
        """
        Give one unit back. Best effort, never raises.

        Returns:
            Whether the refund was acknowledged
        """
        result = await self.call(
            METADATA_ROUTE,
            self._increment(username, 1),
            namespace=USERS_NAMESPACE,
            timeout_ms=QUOTA_REFUND_TIMEOUT_MS,
        )
        if result.ok:
            logger.info(f"Refunded upload quota for {username}")
            return True

        logger.error(
            f"quota reconciliation required: refund failed for username={username} "
            f"audience={self.audience} error={result.error!r} [request_id={self.request_id}]"
        )
        return False

    async def take(self, username: str) -> None:
        """
        Decrement and verify the quota did not go negative.

        Raises:
            PaymentRequiredError: quota exhausted (already refunded)
        """
        remaining = await self.decrement(username)
        if remaining < 0:
            await self.refund(username)
            raise PaymentRequiredError("no more models are available")
