from typing import Optional

from pydantic import BaseModel

VALID_STATUSES = ("pending", "confirmed", "completed", "cancelled")


class StatusUpdateRequest(BaseModel):
    # Plain str so an unknown status gets the 400 listing valid ones
    status: Optional[str] = None
    notes: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
