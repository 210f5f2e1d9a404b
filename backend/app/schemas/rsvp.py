"""
Pydantic schemas for the RSVP endpoint.
"""

from typing import Literal
from pydantic import BaseModel


class RSVPRequest(BaseModel):
    action: Literal["join", "leave"]


class RSVPResponse(BaseModel):
    message: str
    attendees: list[str]


class RSVPError(BaseModel):
    reason: str
    message: str
