"""Pydantic response models for API."""

from pydantic import BaseModel


class BeatResponse(BaseModel):
    frame: int
    time: float
    strength: float


class TempoResponse(BaseModel):
    bpm: float
    confidence: float
    method: str


class AnalysisResponse(BaseModel):
    beats: list[BeatResponse]
    tempo: TempoResponse | None = None
    novelty: list[float] = []
    frame_rate: float
    duration: float = 0.0
    method: str = "superflux"


# WebSocket message types

class PhaseMessage(BaseModel):
    type: str = "phase"
    time: float
    phase: float
    bpm: float
    confidence: float


class ErrorMessage(BaseModel):
    type: str = "error"
    message: str
