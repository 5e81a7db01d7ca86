from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional
from datetime import datetime, date
from enum import Enum


class ProductAttributes(BaseModel):
    """Baseline product attributes from the product database. Absent values are None."""
    name: Optional[str] = None
    brand: Optional[str] = None
    quantity: Optional[str] = None
    ingredients_text: Optional[str] = None
    nutrition_score: Optional[int] = None
    eco_score: Optional[int] = None
    processing_rating: Optional[str] = None
    image_url: Optional[str] = None
    calories: Optional[int] = None


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"


class ProductLookupResult(BaseModel):
    status: LookupStatus
    barcode: str
    attributes: Optional[ProductAttributes] = None
    reason: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status == LookupStatus.FOUND


class EnrichmentStates(BaseModel):
    summary: str
    explanations: str
    risk_score: str


class ProductResponse(BaseModel):
    """Stored product record with the state of each enrichment field"""
    id: int
    barcode: str
    name: Optional[str] = None
    brand: Optional[str] = None
    quantity: Optional[str] = None
    ingredients_text: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    nutrition_score: Optional[int] = None
    eco_score: Optional[int] = None
    processing_rating: Optional[str] = None
    image_url: Optional[str] = None
    calories: Optional[int] = None
    time_scanned: datetime
    ai_summary: Optional[str] = None
    ingredient_explanations: Optional[List[str]] = None
    risk_score: Optional[int] = None
    enrichment: EnrichmentStates


class LegacyProductRecord(BaseModel):
    """Sentinel-valued record layout used by older mobile clients"""
    id: int
    name: str
    brand: str
    quantity: str
    ingredients: str
    nutritionScore: int
    ecoScore: int
    foodProcessingRating: str
    imageURL: str
    calories: int
    timeScanned: str
    aiSummary: str
    aiGeneratedInfo: List[str]
    cancerScore: int


class FindBarcodeResponse(BaseModel):
    found: bool
    barcode: str
    product: Optional[ProductAttributes] = None
    ingredients: List[str] = Field(default_factory=list)


class DailyStat(BaseModel):
    day: date
    total: int = 0
    count: int = 0


class StatsResponse(BaseModel):
    metrics: Dict[str, List[DailyStat]]
    timezone: str
    generated_at: datetime


class MessageResponse(BaseModel):
    message: str
    details: Optional[Dict[str, Any]] = None
