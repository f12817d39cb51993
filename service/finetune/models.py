"""
ReportSmith fine-tune lifecycle data models.
Pydantic models for samples, remote job status and component outcomes.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

# Settings keys used by the lifecycle core.
ACTIVE_MODEL_KEY = "active_finetuned_model"
CURRENT_JOB_KEY = "current_finetune_job_id"
IN_PROGRESS_KEY = "finetune_in_progress"


class Sample(BaseModel):
    """
    A highly-rated final report captured for fine-tuning.
    Immutable once stored; ``created_at`` is assigned by the store.
    """
    text: str
    ratings: Dict[str, Any]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    model_config = {"frozen": True}


class JobStatus(BaseModel):
    """Remote tuning job status as reported by the inference provider."""
    status: str
    resulting_model_id: Optional[str] = None


class CollectOutcome(BaseModel):
    stored: bool
    message: str
    sample_count: Optional[int] = None
    triggered: bool = False


class LaunchOutcome(BaseModel):
    started: bool
    message: str
    job_id: Optional[str] = None
    dataset_id: Optional[str] = None
    sample_count: int = 0
    trigger: Optional[str] = None


class PollOutcome(BaseModel):
    message: str
    status: Optional[str] = None
    job_id: Optional[str] = None
    promoted_model: Optional[str] = None
