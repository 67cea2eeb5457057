"""
Pydantic schemas for FastAPI service.
"""

from pydantic import BaseModel, Field


class RentalRecord(BaseModel):
    """Input payload for /predict endpoint."""

    season: float = Field(..., ge=1, le=4, description="Season code (1-4)")
    mnth: float = Field(..., ge=1, le=12)
    hr: float = Field(..., ge=0, le=23)
    holiday: float = Field(..., ge=0, le=1)
    weekday: float = Field(..., ge=0, le=6)
    workingday: float = Field(..., ge=0, le=1)
    weathersit: float = Field(..., ge=1, le=4, description="Weather condition code (1-4)")
    temp: float = Field(..., description="Temperature")
    hum: float = Field(..., ge=0, description="Humidity")
    windspeed: float = Field(..., ge=0, description="Wind speed")


class PredictionResponse(BaseModel):
    rental_type: str = Field(..., description="Long-Term or Short-term")
    label: bool
    probability: float = Field(..., description="Probability of a Long-Term rental")
    score: float = Field(..., description="Raw model score")
    model_name: str = Field(..., description="Name of the selected model in the artifact")
