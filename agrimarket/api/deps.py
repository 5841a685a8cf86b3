from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from agrimarket.core.actor import Actor, ActorRole
from agrimarket.core.enum_utils import to_enum, normalize_to_uppercase, VALID_ACTOR_ROLES
from agrimarket.database import get_db
from agrimarket.services.order_workflow import OrderWorkflow
from agrimarket.services.payment_gateway import PaymentGateway, get_payment_gateway


logger = logging.getLogger(__name__)


async def get_current_actor(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_role: Annotated[Optional[str], Header()] = None,
) -> Actor:
    """
    Dependency to get the acting user.

    Authentication happens upstream (API gateway / auth service), which
    forwards the verified user id and role as X-User-Id and X-User-Role.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
    )

    if not x_user_id or not x_user_role:
        raise credentials_exception

    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        logger.warning(f"Invalid user id header: {x_user_id}")
        raise credentials_exception

    role = to_enum(normalize_to_uppercase(x_user_role, VALID_ACTOR_ROLES), ActorRole)
    if role is None:
        logger.warning(f"Invalid user role header: {x_user_role}")
        raise credentials_exception

    return Actor(user_id=user_id, role=role)


def require_role(role: ActorRole):
    """
    Dependency factory to require a specific role.

    Usage:
        @router.post("/", dependencies=[Depends(require_role(ActorRole.FARMER))])
    """
    async def role_dependency(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if actor.role != role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. {role.value.capitalize()}s only."
            )
        return actor

    return role_dependency


# Type aliases for cleaner endpoint signatures
DB = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Gateway = Annotated[PaymentGateway, Depends(get_payment_gateway)]


def get_order_workflow(db: DB, gateway: Gateway) -> OrderWorkflow:
    return OrderWorkflow(db, gateway)


Workflow = Annotated[OrderWorkflow, Depends(get_order_workflow)]
