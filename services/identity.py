# services/identity.py
import base64
import json
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ACCESS_EMAIL_HEADER = "cf-access-authenticated-user-email"
ACCESS_JWT_HEADER = "cf-access-jwt-assertion"
DEV_EMAIL_HEADER = "x-user-email"
DEV_NAME_HEADER = "x-user-name"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    name: Optional[str] = None


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def user_id_from_email(email: str) -> str:
    """
    Стабильный id из email: 32-битный hash*31 + код символа.
    Некриптографический, коллизии допустимы.
    """
    h = 0
    for ch in email:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return f"user_{_to_base36(abs(h))}"


def name_from_access_jwt(token: Optional[str]) -> Optional[str]:
    # Подпись не проверяется: токен уже проверил прокси
    if not token:
        return None
    try:
        payload = token.split(".")[1]
        payload += "=" * (-len(payload) % 4)
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (IndexError, ValueError):
        return None
    if not isinstance(claims, dict):
        return None
    for claim in ("name", "given_name"):
        value = claims.get(claim)
        if isinstance(value, str) and value:
            return value
    return None


class IdentityResolver:
    def __init__(self, dev_mode: bool = False):
        self.dev_mode = dev_mode

    def resolve(self, headers: Mapping[str, str]) -> Optional[Identity]:
        email = headers.get(ACCESS_EMAIL_HEADER)
        if email:
            return Identity(
                id=user_id_from_email(email),
                email=email,
                name=name_from_access_jwt(headers.get(ACCESS_JWT_HEADER)),
            )

        dev_email = headers.get(DEV_EMAIL_HEADER)
        if dev_email:
            if not self.dev_mode:
                logger.debug("Ignoring %s header outside dev mode", DEV_EMAIL_HEADER)
                return None
            return self.identity_for(dev_email, headers.get(DEV_NAME_HEADER))

        return None

    @staticmethod
    def identity_for(email: str, name: Optional[str] = None) -> Identity:
        return Identity(id=user_id_from_email(email), email=email, name=name or None)
