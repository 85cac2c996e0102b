"""
Pydantic request/response models.

Rationale:
- Define simple, explicit input/output contracts for the API.
- Python attributes are snake_case; the wire format is camelCase.
- AnalysisRequest accepts missing fields so the analyzer can report them as
  a 400 with a readable message instead of a generic 422.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Level = Literal["low", "medium", "high"]
BusinessModel = Literal["Internal", "SaaS", "Open API", "Monetized"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalysisRequest(CamelModel):
    input: Optional[str] = None
    type: Optional[str] = None
    options: Optional[Dict[str, Any]] = None


class Persona(CamelModel):
    purpose: str = ""
    audience: str = ""
    data_sensitivity: Level = "medium"
    authentication_friction: Level = "medium"
    business_model: BusinessModel = "SaaS"
    example_use_case: str = ""


class AnalysisResult(CamelModel):
    id: str
    input: str
    input_type: str
    raw_model_output: str
    persona: Persona
    confidence_score: float
    model_used: str
    processing_time_ms: int
    created_at: datetime


class AnalyzeResponse(BaseModel):
    data: AnalysisResult
    message: str
    cached: bool = False


class ServiceStatus(BaseModel):
    message: str
    timestamp: str
    treblle_configured: bool
    ollama_status: Literal["available", "unavailable"]
    available_models: List[str] = Field(default_factory=list)
    environment: str
