import asyncio
import math
from typing import Any, Dict, Optional

import requests
from cachetools import TTLCache

from env import PRODUCT_API_URL, PRODUCT_LOOKUP_TIMEOUT, PRODUCT_CACHE_TTL, PRODUCT_CACHE_SIZE, USER_AGENT
from interfaces.productModels import LookupStatus, ProductAttributes, ProductLookupResult
from logger_manager import log_debug, log_info, log_warning
from utils.exceptions import NotFoundError, ParseError, TransportError

# only successful lookups are cached
product_cache = TTLCache(maxsize=PRODUCT_CACHE_SIZE, ttl=PRODUCT_CACHE_TTL)


def fetch_product_data_from_api(barcode: str, timeout: float = PRODUCT_LOOKUP_TIMEOUT) -> Dict[str, Any]:
    """
    Fetch the raw Open Food Facts payload for a barcode.

    Raises NotFoundError for a 404, TransportError for timeouts, connection
    errors and any other non-200 status, and ParseError when the body is not
    a JSON object.
    """
    url = f"{PRODUCT_API_URL.rstrip('/')}/{barcode}.json"
    try:
        response = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
    except requests.Timeout as e:
        raise TransportError(f"Product lookup timed out after {timeout}s") from e
    except requests.RequestException as e:
        raise TransportError(f"Product lookup failed: {e}") from e

    if response.status_code == 404:
        raise NotFoundError(f"No product for barcode {barcode}")
    if response.status_code != 200:
        raise TransportError(f"Product lookup returned status {response.status_code}")

    try:
        data = response.json()
    except ValueError as e:
        raise ParseError(f"Malformed JSON for barcode {barcode}") from e
    if not isinstance(data, dict):
        raise ParseError(f"Unexpected JSON shape for barcode {barcode}")
    return data


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _integer(value: Any) -> Optional[int]:
    """Truncate a numeric field to int. Booleans, NaN and infinities are treated as absent."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
    if not isinstance(value, (float, str)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def extract_product_info(product_data: dict) -> Optional[ProductAttributes]:
    """
    Extracts product attributes from an Open Food Facts API response.
    Returns None when the payload does not describe a found product.
    """
    found = product_data.get('status') == 1
    product = product_data.get('product')

    if not found or not isinstance(product, dict):
        return None

    nova_groups = product.get('nova_groups_tags')
    processing_rating = None
    if isinstance(nova_groups, list) and nova_groups:
        processing_rating = _text(nova_groups[0])

    nutriments = product.get('nutriments')
    calories = None
    if isinstance(nutriments, dict):
        calories = _integer(nutriments.get('energy-kcal'))

    return ProductAttributes(
        name=_text(product.get('product_name')),
        brand=_text(product.get('brands')),
        quantity=_text(product.get('quantity')),
        ingredients_text=_text(product.get('ingredients_text')),
        nutrition_score=_integer(product.get('nutriscore_score')),
        eco_score=_integer(product.get('ecoscore_score')),
        processing_rating=processing_rating,
        image_url=_text(product.get('image_url')),
        calories=calories,
    )


async def lookup_product(barcode: str, timeout: float = PRODUCT_LOOKUP_TIMEOUT) -> ProductLookupResult:
    """Resolve a barcode to product attributes. Never raises for lookup failures."""
    barcode = (barcode or "").strip()
    if not barcode:
        return ProductLookupResult(status=LookupStatus.NOT_FOUND, barcode=barcode, reason="empty barcode")

    cached = product_cache.get(barcode)
    if cached is not None:
        log_debug(f"Using cached product data for barcode: {barcode}")
        return ProductLookupResult(status=LookupStatus.FOUND, barcode=barcode, attributes=cached.model_copy())

    log_info(f"Looking up product for barcode: {barcode}")
    try:
        data = await asyncio.to_thread(fetch_product_data_from_api, barcode, timeout)
    except NotFoundError as e:
        log_info(str(e))
        return ProductLookupResult(status=LookupStatus.NOT_FOUND, barcode=barcode, reason=str(e))
    except TransportError as e:
        log_warning(f"Product lookup for {barcode} failed: {e}")
        return ProductLookupResult(status=LookupStatus.TRANSPORT_ERROR, barcode=barcode, reason=str(e))

    attributes = extract_product_info(data)
    if attributes is None:
        log_info(f"Product not found for barcode: {barcode}")
        return ProductLookupResult(status=LookupStatus.NOT_FOUND, barcode=barcode, reason="product not found")

    product_cache[barcode] = attributes
    return ProductLookupResult(status=LookupStatus.FOUND, barcode=barcode, attributes=attributes)
