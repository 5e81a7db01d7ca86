import unittest
from unittest.mock import patch, MagicMock, AsyncMock
import requests
from services.llm_client import (
    ChatCompletionClient,
    LangChainCompletionClient,
    extract_message_content,
    get_completion_client,
)
from utils.exceptions import ParseError, TransportError

def completion_payload(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}

class TestExtractMessageContent(unittest.TestCase):

    def test_extracts_content(self):
        self.assertEqual(extract_message_content(completion_payload("42")), "42")

    def test_missing_choices(self):
        for payload in ({}, {"choices": []}, {"choices": [{}]}, None):
            with self.assertRaises(ParseError):
                extract_message_content(payload)

    def test_content_must_be_text(self):
        with self.assertRaises(ParseError):
            extract_message_content(completion_payload(None))

class TestChatCompletionClient(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.client = ChatCompletionClient(api_key="test-key", model_name="gpt-4",
                                           api_url="https://llm.example/v1/chat/completions",
                                           temperature=0.3, timeout=30)

    @patch('services.llm_client.requests.post')
    async def test_complete_sends_system_and_user_messages(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200, json=MagicMock(return_value=completion_payload("Hi")))

        result = await self.client.complete("Hello", system_prompt="Be brief")

        self.assertEqual(result, "Hi")
        kwargs = mock_post.call_args[1]
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer test-key")
        self.assertEqual(kwargs["timeout"], 30)
        self.assertEqual(kwargs["json"]["model"], "gpt-4")
        self.assertEqual(kwargs["json"]["temperature"], 0.3)
        self.assertEqual(kwargs["json"]["messages"], [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Hello"},
        ])

    @patch('services.llm_client.requests.post')
    async def test_complete_without_system_prompt(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200, json=MagicMock(return_value=completion_payload("Hi")))

        await self.client.complete("Hello")

        self.assertEqual(mock_post.call_args[1]["json"]["messages"], [{"role": "user", "content": "Hello"}])

    @patch('services.llm_client.requests.post')
    async def test_non_200_is_transport_error(self, mock_post):
        mock_post.return_value = MagicMock(status_code=429, text="rate limited")

        with self.assertRaises(TransportError):
            await self.client.complete("Hello")

    @patch('services.llm_client.requests.post')
    async def test_timeout_is_transport_error(self, mock_post):
        mock_post.side_effect = requests.Timeout("slow")

        with self.assertRaises(TransportError):
            await self.client.complete("Hello")

    @patch('services.llm_client.requests.post')
    async def test_bad_json_is_parse_error(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200, json=MagicMock(side_effect=ValueError("bad")))

        with self.assertRaises(ParseError):
            await self.client.complete("Hello")

class TestLangChainCompletionClient(unittest.IsolatedAsyncioTestCase):

    async def test_complete_invokes_chat_model(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(return_value=MagicMock(content="Summary text"))
        client = LangChainCompletionClient(llm=llm)

        result = await client.complete("Hello", system_prompt="Be brief")

        self.assertEqual(result, "Summary text")
        messages = llm.ainvoke.call_args[0][0]
        self.assertEqual(messages[0].content, "Be brief")
        self.assertEqual(messages[1].content, "Hello")

    async def test_list_content_is_joined(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(return_value=MagicMock(content=[{"type": "text", "text": "a"}, "b"]))
        client = LangChainCompletionClient(llm=llm)

        self.assertEqual(await client.complete("Hello"), "ab")

    async def test_model_error_is_transport_error(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=RuntimeError("quota exceeded"))
        client = LangChainCompletionClient(llm=llm)

        with self.assertRaises(TransportError):
            await client.complete("Hello")

class TestGetCompletionClient(unittest.TestCase):

    def test_openai_provider(self):
        client = get_completion_client("openai", "test-key")
        self.assertIsInstance(client, ChatCompletionClient)
        self.assertEqual(client.api_key, "test-key")

    @patch('services.llm_client.ChatGoogleGenerativeAI')
    def test_gemini_provider(self, mock_chat_model):
        client = get_completion_client("gemini", "test-key")
        self.assertIsInstance(client, LangChainCompletionClient)
        self.assertEqual(mock_chat_model.call_args[1]["google_api_key"], "test-key")

    def test_unknown_provider(self):
        with self.assertRaises(ValueError):
            get_completion_client("other", "test-key")

if __name__ == '__main__':
    unittest.main()
