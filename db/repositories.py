from datetime import datetime
from typing import Any, List, Optional

import pytz
from sqlalchemy.orm import Session

from logger_manager import log_debug
from interfaces.enrichmentModels import EnrichmentField, FieldState
from interfaces.productModels import ProductAttributes
from . import models

# enrichment field -> (value column, status column)
ENRICHMENT_COLUMNS = {
    EnrichmentField.SUMMARY: ("ai_summary", "summary_status"),
    EnrichmentField.EXPLANATIONS: ("ingredient_explanations", "explanations_status"),
    EnrichmentField.RISK_SCORE: ("risk_score", "risk_score_status"),
}


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def add_product(self, barcode: str, attributes: ProductAttributes, time_scanned: Optional[datetime] = None):
        db_product = models.Product(
            barcode=barcode,
            name=attributes.name,
            brand=attributes.brand,
            quantity=attributes.quantity,
            ingredients_text=attributes.ingredients_text,
            nutrition_score=attributes.nutrition_score,
            eco_score=attributes.eco_score,
            processing_rating=attributes.processing_rating,
            image_url=attributes.image_url,
            calories=attributes.calories,
            time_scanned=time_scanned or datetime.now(tz=pytz.utc),
        )
        self.db.add(db_product)
        self.db.commit()
        self.db.refresh(db_product)
        return db_product

    def get_product(self, product_id: int) -> Optional[models.Product]:
        return self.db.query(models.Product).filter(models.Product.id == product_id).first()

    def list_products(self, ascending: bool = False, limit: Optional[int] = None) -> List[models.Product]:
        order = models.Product.time_scanned.asc() if ascending else models.Product.time_scanned.desc()
        tiebreak = models.Product.id.asc() if ascending else models.Product.id.desc()
        query = self.db.query(models.Product).order_by(order, tiebreak)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def delete_product(self, product_id: int) -> bool:
        db_product = self.get_product(product_id)
        if not db_product:
            return False
        self.db.delete(db_product)
        self.db.commit()
        return True

    def delete_all(self) -> int:
        deleted = self.db.query(models.Product).delete()
        self.db.commit()
        return deleted

    def update_enrichment(self, product_id: int, field: EnrichmentField, state: FieldState, value: Any) -> bool:
        """Store a terminal enrichment state. Returns False when the record no longer exists."""
        db_product = self.get_product(product_id)
        if not db_product:
            log_debug(f"Product {product_id} is gone, dropping {field.value} result")
            return False
        value_column, status_column = ENRICHMENT_COLUMNS[field]
        setattr(db_product, value_column, value)
        setattr(db_product, status_column, state.value)
        self.db.commit()
        return True


class ChatRepository:
    def __init__(self, db: Session):
        self.db = db

    def add_message(self, content: str, sender: str, timestamp: datetime) -> models.ChatMessage:
        db_message = models.ChatMessage(content=content, sender=sender, timestamp=timestamp)
        self.db.add(db_message)
        self.db.commit()
        self.db.refresh(db_message)
        return db_message

    def list_messages(self) -> List[models.ChatMessage]:
        return self.db.query(models.ChatMessage).order_by(models.ChatMessage.timestamp.asc()).all()

    def last_message(self) -> Optional[models.ChatMessage]:
        return self.db.query(models.ChatMessage).order_by(models.ChatMessage.timestamp.desc()).first()

    def delete_all(self) -> int:
        deleted = self.db.query(models.ChatMessage).delete()
        self.db.commit()
        return deleted
