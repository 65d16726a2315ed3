from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    booking_id: int
    # Range is enforced by the service so the failure carries a reason code.
    rating: int
    comment: Optional[str] = Field(None, max_length=2000)
    consultant_service_id: Optional[int] = None


class ReviewUpdate(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = Field(None, max_length=2000)
    consultant_id: Optional[int] = Field(None, description="Admin only")
    consultant_service_id: Optional[int] = Field(None, description="Admin only")


class ReviewRead(BaseModel):
    id: int
    booking_id: int
    consultant_id: int
    client_id: int
    consultant_service_id: Optional[int] = None
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReviewListResponse(BaseModel):
    reviews: List[ReviewRead]
    total: int
    page: int
    per_page: int


class RatingSummary(BaseModel):
    rating_avg: float
    ratings_count: int
