from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from .models import Role


@dataclass(frozen=True)
class Identity:
	caller_id: int
	role: Role


def get_identity(
	x_caller_id: Optional[int] = Header(default=None),
	x_caller_role: Optional[str] = Header(default=None),
) -> Identity:
	"""Identity forwarded by the upstream identity provider."""
	if x_caller_id is None or not x_caller_role:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
	try:
		role = Role(x_caller_role.strip().capitalize())
	except ValueError:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown role") from None
	return Identity(caller_id=x_caller_id, role=role)


def require_role(*allowed_roles: Role):
	def _inner(identity: Identity = Depends(get_identity)) -> Identity:
		if identity.role not in allowed_roles:
			raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
		return identity
	return _inner
