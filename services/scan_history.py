from typing import List, Optional
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from db.models import Product
from db.repositories import ProductRepository
from interfaces.productModels import ProductAttributes
from logger_manager import log_info, log_error

def record_scan(db: Session, barcode: str, attributes: ProductAttributes) -> Product:
    log_info(f"Recording scan for barcode {barcode}")
    try:
        product = ProductRepository(db).add_product(barcode, attributes)
        log_info(f"Scan recorded successfully with id {product.id}")
        return product
    except SQLAlchemyError as e:
        db.rollback()
        log_error(f"Error recording scan: {str(e)}",e)
        raise HTTPException(status_code=500, detail="Internal Server Error")

def get_scan_history(db: Session, ascending: bool = False, limit: Optional[int] = None) -> List[Product]:
    log_info("Getting scan history")
    try:
        scan_history = ProductRepository(db).list_products(ascending=ascending, limit=limit)
        log_info(f"Scan history retrieved successfully ({len(scan_history)} records)")
        return scan_history
    except SQLAlchemyError as e:
        log_error(f"Error getting scan history: {str(e)}",e)
        raise HTTPException(status_code=500, detail="Internal Server Error")

def get_product(db: Session, product_id: int) -> Optional[Product]:
    try:
        return ProductRepository(db).get_product(product_id)
    except SQLAlchemyError as e:
        log_error(f"Error getting product {product_id}: {str(e)}",e)
        raise HTTPException(status_code=500, detail="Internal Server Error")

def delete_scan(db: Session, product_id: int) -> bool:
    log_info(f"Deleting scan {product_id}")
    try:
        return ProductRepository(db).delete_product(product_id)
    except SQLAlchemyError as e:
        db.rollback()
        log_error(f"Error deleting scan {product_id}: {str(e)}",e)
        raise HTTPException(status_code=500, detail="Internal Server Error")

def clear_scan_history(db: Session) -> int:
    log_info("Clearing scan history")
    try:
        deleted = ProductRepository(db).delete_all()
        log_info(f"Deleted {deleted} scans")
        return deleted
    except SQLAlchemyError as e:
        db.rollback()
        log_error(f"Error clearing scan history: {str(e)}",e)
        raise HTTPException(status_code=500, detail="Internal Server Error")
