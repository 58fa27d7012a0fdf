from ssms.models.base import Base
from ssms.models.event import Event, EventStakeholder
from ssms.models.invite import Invite
from ssms.models.notification import Notification
from ssms.models.stakeholder import Stakeholder
from ssms.models.user import User

__all__ = [
    "Base",
    "User",
    "Stakeholder",
    "Invite",
    "Event",
    "EventStakeholder",
    "Notification",
]
