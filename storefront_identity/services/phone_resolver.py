"""
Phone Token Resolution.

The host platform never hands out a phone number directly; it returns an
opaque token that a trusted server must exchange with the platform's
Open API.  ``TokenToPhoneResolver`` is the seam where that exchange plugs
in.

``PlaceholderPhoneResolver`` is the default until a server-side exchange
exists.  Its results are flagged ``is_placeholder=True`` and every use is
logged as a warning; production wiring must substitute a real resolver.
"""

from __future__ import annotations

from typing import Protocol

from storefront_identity.logger import StructuredLogger
from storefront_identity.models.auth_models import PhoneResolution


class TokenToPhoneResolver(Protocol):
    """Exchanges an opaque platform phone token for a phone number."""

    def resolve(self, token: str) -> PhoneResolution: ...


class PlaceholderPhoneResolver:
    """Returns a fixed, clearly flagged placeholder number.

    Parameters
    ----------
    placeholder_phone:
        Number reported in place of a decoded one.
    logger:
        Structured logger.
    """

    def __init__(self, placeholder_phone: str, logger: StructuredLogger) -> None:
        self._placeholder_phone: str = placeholder_phone
        self._logger: StructuredLogger = logger

    def resolve(self, token: str) -> PhoneResolution:
        self._logger.warning(
            "Phone token was not exchanged server-side; returning placeholder "
            "number. Configure a TokenToPhoneResolver before shipping.",
            extra={"event": "PHONE_PLACEHOLDER"},
        )
        return PhoneResolution(
            token=token,
            phone=self._placeholder_phone,
            is_placeholder=True,
        )
