import asyncio
import unittest
from unittest.mock import patch
from sqlalchemy.exc import SQLAlchemyError
from db.repositories import ProductRepository
from interfaces.enrichmentModels import EnrichmentField, FieldState
from interfaces.productModels import ProductAttributes
from services.enrichment_service import (
    EnrichmentOrchestrator,
    fetch_ingredient_explanations,
    fetch_risk_score,
    fetch_summary,
)
from utils.exceptions import NotFoundError, ProtocolViolation, TransportError
from support import FakeCompletionClient, make_session_factory

SUMMARY_MARKER = "healthiness"
EXPLANATION_MARKER = "five-sentence"
RISK_MARKER = "cancer score"

def scripted_client(summary="A sugary drink with little nutritional value.",
                    explanations="Sugar sweetens. ### Salt seasons. ### Water dilutes.",
                    risk="37"):
    return FakeCompletionClient({
        EXPLANATION_MARKER: explanations,
        RISK_MARKER: risk,
        SUMMARY_MARKER: summary,
    })

class TestFetchFunctions(unittest.IsolatedAsyncioTestCase):

    async def test_fetch_summary(self):
        client = scripted_client()
        result = await fetch_summary(client, ProductAttributes(name="Cola"))
        self.assertEqual(result, "A sugary drink with little nutritional value.")

    async def test_fetch_summary_empty_reply(self):
        client = scripted_client(summary="  ")
        with self.assertRaises(ProtocolViolation):
            await fetch_summary(client, ProductAttributes(name="Cola"))

    async def test_fetch_explanations_without_ingredients_makes_no_call(self):
        client = scripted_client()
        result = await fetch_ingredient_explanations(client, [])
        self.assertEqual(result, [])
        self.assertEqual(client.calls, [])

    async def test_fetch_explanations_count_mismatch(self):
        client = scripted_client(explanations="Sugar sweetens. ### Salt seasons.")
        with self.assertRaises(ProtocolViolation):
            await fetch_ingredient_explanations(client, ["Sugar", "Salt", "Water"])

    async def test_fetch_risk_score_out_of_range(self):
        client = scripted_client(risk="150")
        with self.assertRaises(ProtocolViolation):
            await fetch_risk_score(client, ["Sugar"], (1, 100))

class TestEnrichmentOrchestrator(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.session_factory = make_session_factory()
        self.events = []

    def make_orchestrator(self, client, timeout=5):
        orchestrator = EnrichmentOrchestrator(client, session_factory=self.session_factory, timeout=timeout)
        orchestrator.add_listener(self.events.append)
        return orchestrator

    def add_product(self, ingredients_text="Sugar, Salt, Water"):
        with self.session_factory() as db:
            product = ProductRepository(db).add_product(
                "0123456789012", ProductAttributes(name="Test Cola", ingredients_text=ingredients_text)
            )
            return product.id

    def load_product(self, product_id):
        with self.session_factory() as db:
            product = ProductRepository(db).get_product(product_id)
            db.expunge_all()
            return product

    async def test_all_fields_succeed(self):
        orchestrator = self.make_orchestrator(scripted_client())
        product_id = self.add_product()

        tasks = orchestrator.request_all(product_id)
        states = orchestrator.get_states(product_id)
        self.assertTrue(all(state == FieldState.PENDING for state in states.values()))
        await asyncio.gather(*tasks.values())

        product = self.load_product(product_id)
        self.assertEqual(product.ai_summary, "A sugary drink with little nutritional value.")
        self.assertEqual(product.ingredient_explanations, ["Sugar sweetens.", "Salt seasons.", "Water dilutes."])
        self.assertEqual(product.risk_score, 37)
        states = orchestrator.get_states(product_id)
        self.assertTrue(all(state == FieldState.SUCCEEDED for state in states.values()))
        terminal = [event for event in self.events if event.state == FieldState.SUCCEEDED]
        self.assertEqual(len(terminal), 3)

    async def test_fields_fail_independently(self):
        client = scripted_client()
        client.replies[SUMMARY_MARKER] = TransportError("service unavailable")
        orchestrator = self.make_orchestrator(client)
        product_id = self.add_product()

        await asyncio.gather(*orchestrator.request_all(product_id).values())

        states = orchestrator.get_states(product_id)
        self.assertEqual(states[EnrichmentField.SUMMARY], FieldState.FAILED)
        self.assertEqual(states[EnrichmentField.EXPLANATIONS], FieldState.SUCCEEDED)
        self.assertEqual(states[EnrichmentField.RISK_SCORE], FieldState.SUCCEEDED)
        failed = [event for event in self.events if event.state == FieldState.FAILED]
        self.assertEqual(len(failed), 1)
        self.assertIn("service unavailable", failed[0].error)

    async def test_count_mismatch_fails_without_storing(self):
        orchestrator = self.make_orchestrator(scripted_client(explanations="Sugar sweetens. ### Salt seasons."))
        product_id = self.add_product()

        await orchestrator.request(product_id, EnrichmentField.EXPLANATIONS)

        product = self.load_product(product_id)
        self.assertEqual(product.explanations_status, FieldState.FAILED.value)
        self.assertIsNone(product.ingredient_explanations)

    async def test_pending_request_is_single_flight(self):
        client = scripted_client()
        client.gate = asyncio.Event()
        orchestrator = self.make_orchestrator(client)
        product_id = self.add_product()

        first = orchestrator.request(product_id, EnrichmentField.RISK_SCORE)
        second = orchestrator.request(product_id, EnrichmentField.RISK_SCORE)
        self.assertIs(first, second)
        self.assertTrue(orchestrator.is_pending(product_id, EnrichmentField.RISK_SCORE))

        client.gate.set()
        await first
        self.assertEqual(len(client.calls), 1)
        self.assertFalse(orchestrator.is_pending(product_id, EnrichmentField.RISK_SCORE))

    async def test_timeout_fails_and_retries_only_on_request(self):
        client = scripted_client()
        client.gate = asyncio.Event()
        orchestrator = self.make_orchestrator(client, timeout=0.05)
        product_id = self.add_product()

        state = await orchestrator.request(product_id, EnrichmentField.SUMMARY)
        self.assertEqual(state, FieldState.FAILED)
        await asyncio.sleep(0.1)
        self.assertEqual(len(client.calls), 1)
        self.assertEqual(orchestrator.get_states(product_id)[EnrichmentField.SUMMARY], FieldState.FAILED)

        client.gate = None
        task = orchestrator.request(product_id, EnrichmentField.SUMMARY)
        self.assertEqual(orchestrator.get_states(product_id)[EnrichmentField.SUMMARY], FieldState.PENDING)
        self.assertEqual(await task, FieldState.SUCCEEDED)
        self.assertEqual(len(client.calls), 2)

    async def test_succeeded_field_is_not_requested_again(self):
        client = scripted_client()
        orchestrator = self.make_orchestrator(client)
        product_id = self.add_product()
        await orchestrator.request(product_id, EnrichmentField.RISK_SCORE)

        self.assertIsNone(orchestrator.request(product_id, EnrichmentField.RISK_SCORE))

        client.replies[RISK_MARKER] = "55"
        await orchestrator.request(product_id, EnrichmentField.RISK_SCORE, regenerate=True)
        self.assertEqual(self.load_product(product_id).risk_score, 55)

    async def test_result_for_deleted_record_is_dropped(self):
        client = scripted_client()
        client.gate = asyncio.Event()
        orchestrator = self.make_orchestrator(client)
        product_id = self.add_product()
        task = orchestrator.request(product_id, EnrichmentField.SUMMARY)

        with self.session_factory() as db:
            ProductRepository(db).delete_product(product_id)
        client.gate.set()
        await task

        self.assertIsNone(self.load_product(product_id))
        self.assertFalse([event for event in self.events if event.state == FieldState.SUCCEEDED])
        with self.assertRaises(NotFoundError):
            orchestrator.get_states(product_id)

    async def test_discard_cancels_in_flight_work(self):
        client = scripted_client()
        client.gate = asyncio.Event()
        orchestrator = self.make_orchestrator(client)
        product_id = self.add_product()
        tasks = orchestrator.request_all(product_id)

        self.assertEqual(orchestrator.discard(product_id), 3)
        results = await asyncio.gather(*tasks.values(), return_exceptions=True)

        self.assertTrue(all(isinstance(result, asyncio.CancelledError) for result in results))
        self.assertFalse(orchestrator.is_pending(product_id, EnrichmentField.SUMMARY))

    async def test_empty_ingredients(self):
        client = scripted_client()
        orchestrator = self.make_orchestrator(client)
        product_id = self.add_product(ingredients_text="N/A")

        tasks = orchestrator.request_all(product_id)
        self.assertIsNone(tasks[EnrichmentField.RISK_SCORE])
        await asyncio.gather(*[task for task in tasks.values() if task is not None])

        product = self.load_product(product_id)
        self.assertEqual(product.ingredient_explanations, [])
        self.assertEqual(product.explanations_status, FieldState.SUCCEEDED.value)
        self.assertEqual(product.risk_score_status, FieldState.NOT_REQUESTED.value)
        self.assertEqual(len(client.calls), 1)

    @patch('services.enrichment_service.log_error')
    @patch('services.enrichment_service.ProductRepository.update_enrichment')
    async def test_storage_error_is_logged(self, mock_update, mock_log_error):
        mock_update.side_effect = SQLAlchemyError("database is locked")
        orchestrator = self.make_orchestrator(scripted_client())
        product_id = self.add_product()

        await orchestrator.request(product_id, EnrichmentField.SUMMARY)

        mock_log_error.assert_called_once()
        self.assertIn("database is locked", mock_log_error.call_args[0][0])
        self.assertFalse(orchestrator.is_pending(product_id, EnrichmentField.SUMMARY))
        self.assertEqual([event.state for event in self.events], [FieldState.PENDING])
        self.assertEqual(orchestrator.get_states(product_id)[EnrichmentField.SUMMARY], FieldState.NOT_REQUESTED)

    async def test_unknown_record(self):
        orchestrator = self.make_orchestrator(scripted_client())
        with self.assertRaises(NotFoundError):
            orchestrator.request(999, EnrichmentField.SUMMARY)

if __name__ == '__main__':
    unittest.main()
