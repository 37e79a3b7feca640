# saleflow/schemas/scheduler/scheduler_schemas.py

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class SchedulerSummary(BaseModel):
    # wire names are what the storefront cron and admin UI read
    model_config = ConfigDict(populate_by_name=True)

    started: int
    ended: int
    sales_to_start: List[str] = Field(..., alias="salesToStart")
    sales_to_end: List[str] = Field(..., alias="salesToEnd")
    skipped: List[str] = []
