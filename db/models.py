import uuid
from datetime import datetime

import pytz
from sqlalchemy import Column, Integer, String, Text, JSON, DateTime

from .database import Base


def _utcnow():
    return datetime.now(tz=pytz.utc)


class Product(Base):
    __tablename__ = "products"

    # no uniqueness on barcode, every scan is a new history row
    id = Column(Integer, primary_key=True, index=True)
    barcode = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    brand = Column(String(255), nullable=True)
    quantity = Column(String(255), nullable=True)
    ingredients_text = Column(Text, nullable=True)
    nutrition_score = Column(Integer, nullable=True)
    eco_score = Column(Integer, nullable=True)
    processing_rating = Column(String(255), nullable=True)
    image_url = Column(Text, nullable=True)
    calories = Column(Integer, nullable=True)
    time_scanned = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    # enrichment values, None until fetched
    ai_summary = Column(Text, nullable=True)
    ingredient_explanations = Column(JSON, nullable=True)
    risk_score = Column(Integer, nullable=True)

    # terminal enrichment states: not_requested / succeeded / failed
    summary_status = Column(String(32), nullable=False, default="not_requested")
    explanations_status = Column(String(32), nullable=False, default="not_requested")
    risk_score_status = Column(String(32), nullable=False, default="not_requested")


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    content = Column(Text, nullable=False)
    sender = Column(String(16), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
