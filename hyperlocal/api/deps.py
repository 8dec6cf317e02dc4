from typing import Optional

from fastapi import Header, HTTPException, status

from hyperlocal.core.actor import Actor, Role
from hyperlocal.core.config import DEFAULT_TENANT


def get_tenant(x_tenant_domain: Optional[str] = Header(default=None)) -> str:
    """Tenant partition key for the request."""
    return x_tenant_domain or DEFAULT_TENANT


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Actor:
    """
    Identity set by the authentication gateway in front of this service.
    The system role is internal and cannot be claimed by a request.
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required.")
    try:
        role = Role(x_user_role)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown role.")
    if role == Role.SYSTEM:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Role not allowed.")
    return Actor(user_id=x_user_id, role=role)
