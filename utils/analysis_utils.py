from datetime import datetime
from typing import Dict, List, Optional

import pytz

from interfaces.enrichmentModels import EnrichmentField, FieldState
from interfaces.productModels import EnrichmentStates, LegacyProductRecord, ProductAttributes, ProductResponse
from utils.ingredient_utils import NOT_AVAILABLE, normalize_ingredients

# legacy clients store "unknown" as -1 for scores and use 0 for a failed risk score
UNKNOWN_SCORE = -1
FAILED_SCORE = 0


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo, stored timestamps are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def attributes_from_product(product) -> ProductAttributes:
    return ProductAttributes(
        name=product.name,
        brand=product.brand,
        quantity=product.quantity,
        ingredients_text=product.ingredients_text,
        nutrition_score=product.nutrition_score,
        eco_score=product.eco_score,
        processing_rating=product.processing_rating,
        image_url=product.image_url,
        calories=product.calories,
    )


def format_product_response(product, states: Dict[EnrichmentField, FieldState]) -> ProductResponse:
    """
    Format a stored product and its enrichment states for the API.
    Values of fields that did not succeed are reported as None.
    """
    def value_if_succeeded(field: EnrichmentField, value):
        return value if states[field] == FieldState.SUCCEEDED else None

    return ProductResponse(
        id=product.id,
        barcode=product.barcode,
        ingredients=normalize_ingredients(product.ingredients_text),
        time_scanned=as_utc(product.time_scanned),
        ai_summary=value_if_succeeded(EnrichmentField.SUMMARY, product.ai_summary),
        ingredient_explanations=value_if_succeeded(EnrichmentField.EXPLANATIONS, product.ingredient_explanations),
        risk_score=value_if_succeeded(EnrichmentField.RISK_SCORE, product.risk_score),
        enrichment=EnrichmentStates(
            summary=states[EnrichmentField.SUMMARY].value,
            explanations=states[EnrichmentField.EXPLANATIONS].value,
            risk_score=states[EnrichmentField.RISK_SCORE].value,
        ),
        **attributes_from_product(product).model_dump(),
    )


def to_legacy_record(product, states: Dict[EnrichmentField, FieldState]) -> LegacyProductRecord:
    """Translate explicit optionals into the sentinel values of the legacy app record."""
    risk_state = states[EnrichmentField.RISK_SCORE]
    if risk_state == FieldState.SUCCEEDED and product.risk_score is not None:
        cancer_score = product.risk_score
    elif risk_state == FieldState.FAILED:
        cancer_score = FAILED_SCORE
    else:
        cancer_score = UNKNOWN_SCORE

    explanations: List[str] = []
    if states[EnrichmentField.EXPLANATIONS] == FieldState.SUCCEEDED and product.ingredient_explanations:
        explanations = list(product.ingredient_explanations)

    summary = ""
    if states[EnrichmentField.SUMMARY] == FieldState.SUCCEEDED and product.ai_summary:
        summary = product.ai_summary

    return LegacyProductRecord(
        id=product.id,
        name=product.name or NOT_AVAILABLE,
        brand=product.brand or NOT_AVAILABLE,
        quantity=product.quantity or NOT_AVAILABLE,
        ingredients=product.ingredients_text or NOT_AVAILABLE,
        nutritionScore=product.nutrition_score if product.nutrition_score is not None else UNKNOWN_SCORE,
        ecoScore=product.eco_score if product.eco_score is not None else UNKNOWN_SCORE,
        foodProcessingRating=product.processing_rating or NOT_AVAILABLE,
        imageURL=product.image_url or NOT_AVAILABLE,
        calories=product.calories if product.calories is not None else 0,
        timeScanned=as_utc(product.time_scanned).isoformat(),
        aiSummary=summary,
        aiGeneratedInfo=explanations,
        cancerScore=cancer_score,
    )
