import datetime as dt
from typing import Optional

from pydantic import BaseModel


class WorkingDayUpdate(BaseModel):
    is_working_day: bool


class WorkingDayResponse(BaseModel):
    date: dt.date
    is_working_day: bool  # effective state: False for Sundays whatever the row says
    is_sunday: bool
    explicit: bool  # a row exists for this date
    updated_by: Optional[str] = None
    updated_at: Optional[dt.datetime] = None
