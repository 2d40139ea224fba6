from pydantic import BaseModel, Field
from typing import List, Optional, Literal, Union, Annotated
from datetime import datetime, date


# --- CHARTS ---
class DailyTraffic(BaseModel):
    date: str  # "Jan 05"
    sent: int
    clicked: int


class ReviewGrowthPoint(BaseModel):
    date: str
    reviews: int


class SnapshotPoint(BaseModel):
    snapshot_date: date
    review_count: int
    average_rating: float

    class Config:
        from_attributes = True


class AnalyticsStats(BaseModel):
    total_sent: int
    total_clicked: int
    conversion_rate: float  # percent, one decimal


class AnalyticsResponse(BaseModel):
    traffic_data: List[DailyTraffic]
    review_growth_data: List[ReviewGrowthPoint]
    stats: AnalyticsStats
    snapshots: List[SnapshotPoint] = []


# --- EMAIL LOG (discriminated on email_type) ---
class _EmailLogBase(BaseModel):
    id: int
    customer_id: int
    status: Literal["sent", "clicked", "reviewed", "failed"]
    error_message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReviewLogEntry(_EmailLogBase):
    email_type: Literal["review"]


class RetentionLogEntry(_EmailLogBase):
    email_type: Literal["retention"]
    program_id: Optional[int] = None  # None once the program/step is deleted
    step_id: Optional[int] = None


EmailLogEntry = Annotated[Union[ReviewLogEntry, RetentionLogEntry], Field(discriminator="email_type")]


class EmailLogResponse(BaseModel):
    data: List[EmailLogEntry]
    total: int
    page: int
    limit: int
