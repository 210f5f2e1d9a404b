from app.models.event import Event
from app.models.membership import Membership

__all__ = ["Event", "Membership"]
