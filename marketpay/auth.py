from dataclasses import dataclass
from enum import Enum

from fastapi import Header, Request
from jose import JWTError, jwt

from marketpay.errors import UnauthorizedError
from marketpay.models import Order


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: Role = Role.USER


def is_owner(order: Order, caller: Caller) -> bool:
    return order.user_id == caller.user_id


def has_admin_role(caller: Caller) -> bool:
    return caller.role is Role.ADMIN


def decode_caller(token: str, secret: str, algorithm: str = "HS256") -> Caller:
    if not secret:
        raise UnauthorizedError("Token verification is not configured")
    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        raise UnauthorizedError("Invalid or missing token") from None

    subject = claims.get("sub")
    if not subject:
        raise UnauthorizedError("Invalid or missing token")
    try:
        role = Role(str(claims.get("role", Role.USER.value)).upper())
    except ValueError:
        raise UnauthorizedError("Invalid or missing token") from None
    return Caller(user_id=str(subject), role=role)


def get_current_caller(request: Request, authorization: str = Header(None)) -> Caller:
    if not authorization:
        raise UnauthorizedError("Invalid or missing token")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError("Invalid or missing token")

    settings = request.app.state.settings
    return decode_caller(parts[1], settings.jwt_secret, settings.jwt_algorithm)
