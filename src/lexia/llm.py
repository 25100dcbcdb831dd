"""Concrete implementations for LLM providers."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from .errors import UpstreamError
from .models import SYSTEM_ROLE, USER_ROLE, ChatMessage, Credential

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Eres LexIA, asistente jurídico especializado en Derecho español y europeo. "
    "Responde con lenguaje claro y, cuando proceda, menciona la norma o "
    "jurisprudencia aplicable."
)
TEMPERATURE = 0.4
MAX_TOKENS = 8000


def build_messages(history: Sequence[ChatMessage], prompt: str) -> List[Dict[str, str]]:
    """Builds the ordered request: system instruction, history, new user turn."""
    return [
        {"role": SYSTEM_ROLE, "content": SYSTEM_PROMPT},
        *({"role": msg.role, "content": msg.content} for msg in history),
        {"role": USER_ROLE, "content": prompt},
    ]


class LLM(ABC):
    """Abstract Base Class for all LLM providers."""

    @abstractmethod
    def generate_response(
        self, messages: List[Dict[str, str]], credential: Credential, **kwargs: Any
    ) -> Any:
        """Issues one call to the provider and returns its native response.

        Parameters
        ----------
        messages : List[Dict[str, str]]
            Ordered ``{"role", "content"}`` dictionaries, starting with the
            system instruction and ending with the new user turn.
        credential : Credential
            The user's API key for this provider.
        **kwargs : Any
            Provider-specific parameters passed directly to the SDK.

        Returns
        -------
        Any
            The provider's native response object.

        Raises
        ------
        UpstreamError
            If the provider answers with a non-success status or cannot be
            reached.
        """
        pass

    @abstractmethod
    def extract_content(self, response: Any) -> str:
        """Extracts the reply text of the first candidate.

        Raises
        ------
        UpstreamError
            With ``malformed=True`` if the reply is not where it should be.
        """
        pass

    def complete(
        self, history: Sequence[ChatMessage], prompt: str, credential: Credential
    ) -> str:
        """Sends ``prompt`` after ``history`` and returns the reply text."""
        messages = build_messages(history, prompt)
        logger.debug(
            "Calling %s with %d messages", type(self).__name__, len(messages)
        )
        response = self.generate_response(messages, credential)
        return self.extract_content(response)


class OpenAI(LLM):
    """Chat-completion provider backed by the ``openai`` SDK."""

    def __init__(self, default_model: str = "gpt-4o"):
        self.model = default_model

    def generate_response(self, messages, credential, **kwargs):
        import openai

        client = openai.OpenAI(api_key=credential.api_key, max_retries=0)
        try:
            return client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
                **kwargs,
            )
        except openai.APIStatusError as e:
            raise UpstreamError(
                f"Error de OpenAI: {e.status_code}", status=e.status_code
            ) from e
        except openai.APIConnectionError as e:
            raise UpstreamError(f"Could not reach OpenAI: {e}") from e

    def extract_content(self, response: Any) -> str:
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise UpstreamError("OpenAI reply has no choices", malformed=True) from e
        if content is None:
            raise UpstreamError("OpenAI reply has no content", malformed=True)
        return content


class Gemini(LLM):
    """Generate-content provider backed by the ``google-genai`` SDK.

    The request is a single prompt made of the system instruction and the new
    user turn; earlier history is not sent.
    """

    def __init__(self, default_model: str = "gemini-2.0-flash"):
        self.model = default_model

    def generate_response(self, messages, credential, **kwargs):
        import httpx
        from google import genai
        from google.genai import errors, types

        prompt = f"{SYSTEM_PROMPT}\n\n{messages[-1]['content']}"
        client = genai.Client(api_key=credential.api_key)
        try:
            return client.models.generate_content(
                model=self.model,
                contents=[types.Content(role=USER_ROLE, parts=[types.Part(text=prompt)])],
                config=types.GenerateContentConfig(
                    temperature=TEMPERATURE, max_output_tokens=MAX_TOKENS, **kwargs
                ),
            )
        except errors.APIError as e:
            raise UpstreamError(f"Error de Gemini: {e.code}", status=e.code) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Could not reach Gemini: {e}") from e

    def extract_content(self, response: Any) -> str:
        try:
            text = response.candidates[0].content.parts[0].text
        except (AttributeError, IndexError, TypeError) as e:
            raise UpstreamError("Gemini reply has no candidates", malformed=True) from e
        if text is None:
            raise UpstreamError("Gemini reply has no text", malformed=True)
        return text


class Echo(LLM):
    """Offline provider that answers with the user's own prompt."""

    def __init__(self, default_model: str = "echo-v1", delay: float = 0.0):
        self.model = default_model
        self.delay = delay

    def generate_response(self, messages, credential, **kwargs):
        if self.delay:
            import time

            time.sleep(self.delay)
        user_prompt = messages[-1]["content"] if messages else "No message provided"
        content = f"**Echo LLM - static response for testing**\n\n_Your prompt:_\n\n{user_prompt}"

        return {
            "content": content,
            "raw_response": "Echo LLM - static response for testing",
        }

    def extract_content(self, response: Any) -> str:
        if isinstance(response, dict) and "content" in response:
            return response["content"]
        raise UpstreamError("Echo reply has no content", malformed=True)
