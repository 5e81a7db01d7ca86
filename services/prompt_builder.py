import json
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from env import CHAT_HISTORY_LIMIT, CHAT_PROMPT_MAX_CHARS
from interfaces.enrichmentModels import Prompt
from interfaces.productModels import ProductAttributes
from utils.analysis_utils import as_utc
from utils.exceptions import PromptTooLargeError

SUMMARY_SYSTEM_PROMPT = (
    "You are a food scientist and nutritionist working in a food scanning app. "
    "Assess the overall healthiness of the scanned product described by the user. "
    "Consider its nutrition score, eco score, processing level, calories and ingredients. "
    "Answer in one short paragraph of plain text without headers, lists or markdown formatting."
)

CHAT_APP_CONTEXT = """You are an AI assistant in a health and nutrition app. The app allows users to scan food products and track their diet. Here's the context:
1. User's food history: {history}
2. App features: product scanning, nutritional information, diet logging, calorie tracking, cancer risk scoring.
3. Your role: Provide diet advice, answer nutrition questions, and engage in general conversation.
Guidelines:
- Analyze the user's food history when relevant to their questions.
- Offer personalized diet improvements based on their scanned products.
- Engage in general conversation, but always be ready to link back to nutrition topics.
- Keep responses concise but informative.
- If asked about specific products not in the history, provide general information and suggest scanning the product for accurate details."""


def _serialize(payload: Any) -> str:
    # fixed key order and separators keep prompts byte-identical across runs
    return json.dumps(payload, ensure_ascii=False, separators=(", ", ": "))


def build_summary_prompt(attributes: ProductAttributes) -> Prompt:
    product = {
        "name": attributes.name,
        "brand": attributes.brand,
        "quantity": attributes.quantity,
        "ingredients": attributes.ingredients_text,
        "nutritionScore": attributes.nutrition_score,
        "ecoScore": attributes.eco_score,
        "foodProcessingRating": attributes.processing_rating,
        "calories": attributes.calories,
    }
    return Prompt(system=SUMMARY_SYSTEM_PROMPT, user=_serialize(product))


def build_explanation_prompt(ingredients: Sequence[str], delimiter: str = "###", labeled: bool = False) -> Prompt:
    """
    Ask for one five-sentence explanation per ingredient, in ingredient order,
    separated by the delimiter. The parser relies on the model not emitting
    headers, names or markdown, so those are forbidden explicitly.
    """
    ingredient_list = ", ".join(ingredients)
    if labeled:
        prompt = (
            f"For each of the following {len(ingredients)} ingredients, generate a five-sentence summary of what "
            f"the ingredient does and whether it is associated with cancer risk. "
            f"Each ingredient name should precede its summary and be separated from it by a colon (:). "
            f"Use the delimiter \"{delimiter}\" to separate each ingredient summary and keep the ingredients in the given order. "
            f"Do not repeat the name of the ingredient within the summary. "
            f"Do not write any headers and do not use markdown formatting (bold, italics, etc.).\n\n"
            f"Here is an example of the format:\n"
            f"Ingredient1: This is a summary of Ingredient1. It is used in...\n"
            f"{delimiter}\n"
            f"Ingredient2: This is a summary of Ingredient2. It helps with...\n\n"
            f"Ingredients: {ingredient_list}"
        )
    else:
        prompt = (
            f"For each of the following {len(ingredients)} ingredients, generate a five-sentence summary of what "
            f"the ingredient does and whether it is associated with cancer risk. "
            f"Write exactly one summary per ingredient, in the given order, and separate the summaries with the "
            f"delimiter \"{delimiter}\". "
            f"Do not write any headers, do not write the name of the ingredient before or within its summary, "
            f"and do not use markdown formatting (bold, italics, etc.).\n\n"
            f"Ingredients: {ingredient_list}"
        )
    return Prompt(user=prompt)


def build_risk_score_prompt(ingredients: Sequence[str], score_range: Tuple[int, int]) -> Prompt:
    low, high = score_range
    prompt = (
        f"Based on the following ingredients, please provide a single cancer score "
        f"({low}-{high}, with {high} being highly cancerous and {low} being not cancerous): "
        f"{', '.join(ingredients)}. "
        f"Make sure to output only a single integer which is the cancer score. "
        f"Do not output any reasoning or anything else."
    )
    return Prompt(user=prompt)


def serialize_scan_history(products: Iterable[Any]) -> List[Dict[str, Any]]:
    """Subset of product fields shared with the chat model."""
    history = []
    for product in products:
        time_scanned = as_utc(product.time_scanned)
        history.append({
            "name": product.name,
            "brand": product.brand,
            "quantity": product.quantity,
            "ingredients": product.ingredients_text,
            "nutritionScore": product.nutrition_score,
            "ecoScore": product.eco_score,
            "foodProcessingRating": product.processing_rating,
            "timeScanned": time_scanned.isoformat() if time_scanned else None,
        })
    return history


def build_chat_prompt(
    message: str,
    products: Sequence[Any],
    history_limit: int = CHAT_HISTORY_LIMIT,
    max_chars: Optional[int] = CHAT_PROMPT_MAX_CHARS,
) -> Prompt:
    """
    Build the chat prompt. `products` is the scan history, newest first; only
    the `history_limit` most recent products are included.
    """
    recent = list(products)[:history_limit] if history_limit is not None else list(products)
    system = CHAT_APP_CONTEXT.format(history=_serialize(serialize_scan_history(recent)))
    prompt = Prompt(system=system, user=message)
    size = len(system) + len(message)
    if max_chars is not None and size > max_chars:
        raise PromptTooLargeError(f"Chat prompt has {size} characters, limit is {max_chars}")
    return prompt
