from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TOTAL_STEPS = 15


def _stringify(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class WireModel(BaseModel):
    """Accepts camelCase aliases from the mobile client and ignores unknown keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VehicleInfo(WireModel):
    ro_number: Optional[str] = Field(default=None, alias="roNumber")
    year: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    vin: Optional[str] = None

    @field_validator("ro_number", "year", "make", "model", "vin", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _stringify(value)

    def has_description(self) -> bool:
        return bool(self.year or self.make or self.model)

    def description(self) -> str:
        # Blank segments are kept so the line layout stays stable.
        return f"{self.year or ''} {self.make or ''} {self.model or ''}"


class Step(WireModel):
    id: Union[int, str] = ""
    title: str = ""
    completed: bool = False
    notes: Optional[str] = None
    images: Optional[List[Any]] = None

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: Any) -> Any:
        return "" if value is None else _stringify(value)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            return str(value)
        return value

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, value: Any) -> Any:
        return _stringify(value)

    @field_validator("images", mode="before")
    @classmethod
    def _images_as_list(cls, value: Any) -> Any:
        return value if isinstance(value, list) else None

    @property
    def photo_count(self) -> int:
        return len(self.images or [])


class DiagnosticSession(WireModel):
    vehicle_info: VehicleInfo = Field(default_factory=VehicleInfo, alias="vehicleInfo")
    completed_steps: int = Field(default=0, alias="completedSteps")
    total_steps: int = Field(default=DEFAULT_TOTAL_STEPS, alias="totalSteps")
    steps: List[Step] = Field(default_factory=list)

    @field_validator("vehicle_info", mode="before")
    @classmethod
    def _vehicle_default(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, VehicleInfo)) else {}

    @field_validator("completed_steps", mode="before")
    @classmethod
    def _completed_default(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("total_steps", mode="before")
    @classmethod
    def _total_default(cls, value: Any) -> Any:
        return DEFAULT_TOTAL_STEPS if value is None else value

    @field_validator("steps", mode="before")
    @classmethod
    def _steps_as_list(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, Step))]


class SubmitReportRequest(WireModel):
    email: Optional[str] = None
    report_data: DiagnosticSession = Field(default_factory=DiagnosticSession, alias="reportData")

    @field_validator("report_data", mode="before")
    @classmethod
    def _report_default(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, DiagnosticSession)) else {}


class JobRecord(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    data: Dict[str, Any]


class JobCreated(BaseModel):
    success: bool = True
    job_id: str = Field(serialization_alias="jobId")
    message: str = "Job saved successfully"


class ImageUploaded(BaseModel):
    success: bool = True
    image_url: str = Field(serialization_alias="imageUrl")
    filename: str
    step_id: Optional[str] = Field(default=None, serialization_alias="stepId")
