"""
Device authentication: proves a request comes from a holder of the shared secret
"""
from typing import Callable, Optional, Union
import hashlib
import hmac
import logging
import time

from ..utils.exceptions import (
    MissingFieldException,
    SignatureMismatchException,
    TimestampOutOfWindowException
)

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


def compute_request_signature(secret: str, device_id: str, timestamp: Union[int, str]) -> str:
    """Lowercase hex HMAC-SHA256 of "<device_id>:<timestamp>" """
    message = f"{device_id}:{timestamp}"
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256
    ).hexdigest()


class AuthenticationVerifier:
    def __init__(
        self,
        secret: str,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        self._secret = secret
        self.tolerance_seconds = tolerance_seconds
        self._clock = clock

    def timestamp_in_window(self, timestamp: int) -> bool:
        try:
            return abs(self._clock() - timestamp) < self.tolerance_seconds
        except OverflowError:
            # integers beyond float range are never near now
            return False

    def verify(self, device_id: Optional[str], timestamp: Optional[int], signature: Optional[str]) -> None:
        """
        Check an authentication proof.

        Args:
            device_id: Identifier the device claims
            timestamp: Unix epoch seconds when the proof was made
            signature: Hex HMAC-SHA256 of "device_id:timestamp"

        Raises:
            MissingFieldException: A field is absent or empty
            TimestampOutOfWindowException: Timestamp is too far from now
            SignatureMismatchException: Signature does not match the secret
        """
        if not device_id or timestamp is None or not signature:
            raise MissingFieldException()

        if not self.timestamp_in_window(timestamp):
            raise TimestampOutOfWindowException()

        expected = compute_request_signature(self._secret, device_id, timestamp)
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            logger.warning(f"Invalid signature for device: {device_id}")
            raise SignatureMismatchException()
