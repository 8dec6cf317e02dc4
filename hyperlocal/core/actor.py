from dataclasses import dataclass
from enum import Enum

from hyperlocal.models.order import HistoryActor


class Role(str, Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    RIDER = "rider"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """Identity of the caller, as supplied by the authentication collaborator."""
    user_id: str
    role: Role

    @property
    def is_privileged(self) -> bool:
        return self.role in (Role.ADMIN, Role.SYSTEM)

    @property
    def history_actor(self) -> HistoryActor:
        return {
            Role.CUSTOMER: HistoryActor.CUSTOMER,
            Role.SELLER: HistoryActor.STORE,
            Role.RIDER: HistoryActor.RIDER,
        }.get(self.role, HistoryActor.SYSTEM)


SYSTEM_ACTOR = Actor(user_id="system", role=Role.SYSTEM)
