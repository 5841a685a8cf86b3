"""The acting user passed explicitly into every workflow call."""
import uuid
from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    """Marketplace user roles."""
    FARMER = "FARMER"
    BUYER = "BUYER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class Actor:
    user_id: uuid.UUID
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    def is_farmer_of(self, farmer_id: uuid.UUID) -> bool:
        return self.role == ActorRole.FARMER and self.user_id == farmer_id

    def is_buyer_of(self, buyer_id: uuid.UUID) -> bool:
        return self.role == ActorRole.BUYER and self.user_id == buyer_id
