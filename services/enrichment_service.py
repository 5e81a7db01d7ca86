import asyncio
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from langsmith import traceable
from sqlalchemy.exc import SQLAlchemyError

from db.database import SessionLocal
from db.repositories import ENRICHMENT_COLUMNS, ProductRepository
from env import EXPLANATION_DELIMITER, EXPLANATION_FORMAT, LLM_TIMEOUT, RISK_SCORE_MAX, RISK_SCORE_MIN
from interfaces.enrichmentModels import EnrichmentEvent, EnrichmentField, FieldState
from interfaces.productModels import ProductAttributes
from logger_manager import log_debug, log_error, log_info, log_warning
from services.llm_client import CompletionClient
from services.prompt_builder import build_explanation_prompt, build_risk_score_prompt, build_summary_prompt
from services.response_parser import parse_ingredient_explanations, parse_risk_score, parse_summary
from utils.analysis_utils import attributes_from_product
from utils.exceptions import NotFoundError, PromptTooLargeError, ProtocolViolation, TransportError
from utils.ingredient_utils import normalize_ingredients

EnrichmentListener = Callable[[EnrichmentEvent], None]


@traceable(name="fetch_summary")
async def fetch_summary(client: CompletionClient, attributes: ProductAttributes) -> str:
    prompt = build_summary_prompt(attributes)
    text = await client.complete(prompt.user, system_prompt=prompt.system)
    result = parse_summary(text)
    if not result.ok:
        raise ProtocolViolation("Summary reply was empty")
    return result.summary


@traceable(name="fetch_ingredient_explanations")
async def fetch_ingredient_explanations(
    client: CompletionClient,
    ingredients: Sequence[str],
    delimiter: str = "###",
    labeled: bool = False,
) -> List[str]:
    if not ingredients:
        return []
    prompt = build_explanation_prompt(ingredients, delimiter=delimiter, labeled=labeled)
    text = await client.complete(prompt.user, system_prompt=prompt.system)
    result = parse_ingredient_explanations(text, len(ingredients), delimiter=delimiter, labeled=labeled)
    if not result.ok:
        raise ProtocolViolation(
            f"Expected {result.expected_count} explanations, got {result.actual_count} ({result.status.value})"
        )
    return result.explanations


@traceable(name="fetch_risk_score")
async def fetch_risk_score(client: CompletionClient, ingredients: Sequence[str], score_range: Tuple[int, int]) -> int:
    prompt = build_risk_score_prompt(ingredients, score_range)
    text = await client.complete(prompt.user, system_prompt=prompt.system)
    result = parse_risk_score(text, score_range)
    if not result.ok:
        raise ProtocolViolation(f"Risk score reply {result.raw!r} is not an integer in {score_range}")
    return result.score


class EnrichmentOrchestrator:
    """
    Runs the three enrichment fields of a product record independently.

    Each (record, field) pair moves not_requested -> pending -> succeeded | failed.
    At most one task runs per pair: a request while pending returns the task
    already in flight. Failed fields are not retried until requested again.
    Results are written by record id and silently dropped when the record was
    deleted in the meantime.

    `request` schedules work on the running event loop, so it must be called
    from async code.
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        session_factory=SessionLocal,
        score_range: Tuple[int, int] = (RISK_SCORE_MIN, RISK_SCORE_MAX),
        delimiter: str = EXPLANATION_DELIMITER,
        explanation_format: str = EXPLANATION_FORMAT,
        timeout: float = LLM_TIMEOUT,
    ):
        self.client = completion_client
        self.session_factory = session_factory
        self.score_range = score_range
        self.delimiter = delimiter
        self.labeled = explanation_format == "labeled"
        self.timeout = timeout
        self._tasks: Dict[Tuple[int, EnrichmentField], asyncio.Task] = {}
        self._listeners: List[EnrichmentListener] = []

    def add_listener(self, listener: EnrichmentListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: EnrichmentListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: EnrichmentEvent):
        log_info(f"Product {event.record_id} {event.field.value} -> {event.state.value}")
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                log_error(f"Enrichment listener failed for product {event.record_id}: {e}", e)

    def is_pending(self, record_id: int, field: EnrichmentField) -> bool:
        task = self._tasks.get((record_id, field))
        return task is not None and not task.done()

    def get_states(self, record_id: int, product=None) -> Dict[EnrichmentField, FieldState]:
        """Persisted terminal states with in-flight fields reported as pending."""
        if product is None:
            with self.session_factory() as db:
                product = ProductRepository(db).get_product(record_id)
                if product is None:
                    raise NotFoundError(f"Product {record_id} not found")
                return self._states_of(record_id, product)
        return self._states_of(record_id, product)

    def _states_of(self, record_id: int, product) -> Dict[EnrichmentField, FieldState]:
        states = {}
        for field, (_, status_column) in ENRICHMENT_COLUMNS.items():
            if self.is_pending(record_id, field):
                states[field] = FieldState.PENDING
            else:
                states[field] = FieldState(getattr(product, status_column) or FieldState.NOT_REQUESTED.value)
        return states

    def request(self, record_id: int, field: EnrichmentField, regenerate: bool = False) -> Optional[asyncio.Task]:
        """
        Request one enrichment field.

        Returns the task in flight for the field, or None when there is nothing
        to do (already succeeded, or no ingredients to score). Raises
        NotFoundError for an unknown record.
        """
        key = (record_id, field)
        task = self._tasks.get(key)
        if task is not None and not task.done():
            log_debug(f"Product {record_id} {field.value} already pending")
            return task

        with self.session_factory() as db:
            product = ProductRepository(db).get_product(record_id)
            if product is None:
                raise NotFoundError(f"Product {record_id} not found")
            state = FieldState(getattr(product, ENRICHMENT_COLUMNS[field][1]) or FieldState.NOT_REQUESTED.value)
            attributes = attributes_from_product(product)

        if state == FieldState.SUCCEEDED and not regenerate:
            return None

        ingredients = normalize_ingredients(attributes.ingredients_text)
        if field == EnrichmentField.RISK_SCORE and not ingredients:
            log_info(f"Product {record_id} has no ingredients, nothing to score")
            return None

        task = asyncio.get_running_loop().create_task(self._run(record_id, field, attributes, ingredients))
        self._tasks[key] = task
        self._notify(EnrichmentEvent(record_id=record_id, field=field, state=FieldState.PENDING))
        return task

    def request_all(self, record_id: int, regenerate: bool = False) -> Dict[EnrichmentField, Optional[asyncio.Task]]:
        return {field: self.request(record_id, field, regenerate=regenerate) for field in EnrichmentField}

    async def _fetch(self, field: EnrichmentField, attributes: ProductAttributes, ingredients: List[str]):
        if field == EnrichmentField.SUMMARY:
            return await fetch_summary(self.client, attributes)
        if field == EnrichmentField.EXPLANATIONS:
            return await fetch_ingredient_explanations(self.client, ingredients, self.delimiter, self.labeled)
        return await fetch_risk_score(self.client, ingredients, self.score_range)

    async def _run(self, record_id: int, field: EnrichmentField, attributes: ProductAttributes,
                   ingredients: List[str]) -> FieldState:
        key = (record_id, field)
        error = None
        value = None
        try:
            value = await asyncio.wait_for(self._fetch(field, attributes, ingredients), timeout=self.timeout)
            state = FieldState.SUCCEEDED
        except asyncio.TimeoutError:
            state, error = FieldState.FAILED, f"timed out after {self.timeout}s"
        except (TransportError, ProtocolViolation, PromptTooLargeError) as e:
            state, error = FieldState.FAILED, str(e)
        except asyncio.CancelledError:
            log_info(f"Product {record_id} {field.value} enrichment cancelled")
            self._forget(key)
            raise
        except Exception as e:
            log_error(f"Unexpected error enriching product {record_id} {field.value}: {e}", e)
            state, error = FieldState.FAILED, str(e)

        if state == FieldState.FAILED:
            log_warning(f"Product {record_id} {field.value} enrichment failed: {error}")

        stored = False
        try:
            with self.session_factory() as db:
                try:
                    stored = ProductRepository(db).update_enrichment(record_id, field, state, value)
                except SQLAlchemyError as e:
                    db.rollback()
                    log_error(f"Error storing {field.value} for product {record_id}: {str(e)}", e)
        finally:
            self._forget(key)

        if stored:
            self._notify(EnrichmentEvent(record_id=record_id, field=field, state=state, error=error))
        return state

    def _forget(self, key: Tuple[int, EnrichmentField]):
        if self._tasks.get(key) is asyncio.current_task():
            self._tasks.pop(key, None)

    def discard(self, record_id: int) -> int:
        """Cancel in-flight enrichment of a deleted record."""
        keys = [key for key in self._tasks if key[0] == record_id]
        for key in keys:
            task = self._tasks.pop(key)
            if not task.done():
                task.cancel()
        return len(keys)

    def discard_all(self) -> int:
        keys = list(self._tasks)
        for key in keys:
            task = self._tasks.pop(key)
            if not task.done():
                task.cancel()
        return len(keys)
