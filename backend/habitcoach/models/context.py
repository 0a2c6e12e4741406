"""
Caller context threaded explicitly into every service call
"""
from enum import Enum
from pydantic import BaseModel, Field


class CallerRole(str, Enum):
    """Role of the user issuing a request"""
    COACH = "coach"
    CLIENT = "client"
    SYSTEM = "system"


class CallerContext(BaseModel):
    """Who is calling, and in which role"""
    caller_id: str = Field(..., min_length=1, description="Authenticated user id")
    caller_role: CallerRole = Field(default=CallerRole.CLIENT, description="Role the caller acts in")

    @property
    def is_coach(self) -> bool:
        return self.caller_role == CallerRole.COACH
