"""Request and response models for the admin API."""

from typing import Optional

from pydantic import BaseModel, Field


class ScanRequest(BaseModel):
    path: Optional[str] = None
    batch_size: Optional[int] = Field(default=None, ge=1)
    path_batch_size: Optional[int] = Field(default=None, ge=1)
    optimized_mode: Optional[bool] = None


class ScanStarted(BaseModel):
    status: str = "started"
    message: str
    path: str
