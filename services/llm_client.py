import asyncio
from typing import Any, Dict, List, Optional

import requests
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from env import LLM_API_KEY, LLM_API_URL, LLM_MODEL_NAME, LLM_PROVIDER, LLM_TEMPERATURE, LLM_TIMEOUT
from logger_manager import log_debug, log_error, log_info
from utils.exceptions import ParseError, TransportError


def extract_message_content(payload: Any) -> str:
    """Return choices[0].message.content from a chat-completion response body."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ParseError("Completion response has no choices[0].message.content") from e
    if not isinstance(content, str):
        raise ParseError("Completion content is not a string")
    return content


class CompletionClient:
    """Text completion capability: a prompt goes in, the model's text comes out."""

    model_name: str = ""

    async def complete(self, user_prompt: str, system_prompt: Optional[str] = None) -> str:
        raise NotImplementedError


class ChatCompletionClient(CompletionClient):
    """Client for OpenAI compatible /chat/completions endpoints."""

    def __init__(
        self,
        api_key: str,
        model_name: str = LLM_MODEL_NAME,
        api_url: str = LLM_API_URL,
        temperature: float = LLM_TEMPERATURE,
        timeout: float = LLM_TIMEOUT,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.api_url = api_url
        self.temperature = temperature
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _build_payload(self, user_prompt: str, system_prompt: Optional[str]) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return {"model": self.model_name, "messages": messages, "temperature": self.temperature}

    def _post(self, payload: Dict[str, Any]) -> str:
        try:
            response = requests.post(self.api_url, headers=self._headers(), json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransportError(f"Completion request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise TransportError(f"Completion request failed: {e}") from e

        if response.status_code != 200:
            log_error(f"Unexpected completion status code {response.status_code}: {response.text[:500]}")
            raise TransportError(f"Completion request returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError("Completion response is not valid JSON") from e
        return extract_message_content(data)

    async def complete(self, user_prompt: str, system_prompt: Optional[str] = None) -> str:
        payload = self._build_payload(user_prompt, system_prompt)
        log_debug(f"Sending completion request to {self.api_url} with model {self.model_name}")
        return await asyncio.to_thread(self._post, payload)


class LangChainCompletionClient(CompletionClient):
    """Completion capability backed by a LangChain chat model (Gemini by default)."""

    def __init__(self, llm=None, api_key: Optional[str] = None, model_name: str = LLM_MODEL_NAME,
                 temperature: float = LLM_TEMPERATURE, timeout: float = LLM_TIMEOUT):
        self.model_name = model_name
        self.llm = llm or ChatGoogleGenerativeAI(
            google_api_key=api_key,
            model=model_name,
            temperature=temperature,
            timeout=timeout,
        )

    @staticmethod
    def _content_text(content: Any) -> str:
        if isinstance(content, str):
            return content
        # some chat models return a list of content parts
        if isinstance(content, list):
            parts = []
            for part in content:
                if isinstance(part, str):
                    parts.append(part)
                elif isinstance(part, dict) and isinstance(part.get("text"), str):
                    parts.append(part["text"])
            return "".join(parts)
        raise ParseError("Chat model returned content that is not text")

    async def complete(self, user_prompt: str, system_prompt: Optional[str] = None) -> str:
        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=user_prompt))
        try:
            llm_response = await self.llm.ainvoke(messages)
        except Exception as e:
            raise TransportError(f"Chat model call failed: {e}") from e
        return self._content_text(llm_response.content)


def get_completion_client(provider: str = LLM_PROVIDER, api_key: Optional[str] = LLM_API_KEY) -> CompletionClient:
    """Build the completion client configured for this deployment."""
    log_info(f"Using {provider} completion client with model {LLM_MODEL_NAME}")
    if provider == "gemini":
        return LangChainCompletionClient(api_key=api_key)
    if provider == "openai":
        return ChatCompletionClient(api_key=api_key)
    raise ValueError(f"Unknown LLM_PROVIDER {provider!r}, expected 'openai' or 'gemini'")
