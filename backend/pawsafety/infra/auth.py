"""Request identity for the HTTP and Socket.IO surfaces.

Mobile clients present a bearer access token. In development the
``X-User-Id`` header stands in for it so local tools can act as any user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pawsafety.infra import jwt as jwt_helper
from pawsafety.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	display_name: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorised() -> HTTPException:
	return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


def verify_access_jwt(token: str) -> AuthenticatedUser:
	try:
		claims = jwt_helper.decode_access(token)
	except jwt_helper.InvalidTokenError:
		raise _unauthorised() from None
	name = claims.get("name")
	return AuthenticatedUser(id=str(claims["sub"]), display_name=str(name) if name else None)


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	if credentials is not None and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if x_user_id and settings.is_dev():
		return AuthenticatedUser(id=x_user_id.strip())
	raise _unauthorised()
