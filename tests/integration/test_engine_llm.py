"""Integration tests for Engine + LLM provider interaction."""

from types import SimpleNamespace
from unittest.mock import patch

import httpx
import pytest
from lexia import Lexia
from lexia.auth import SingleUser
from lexia.engine import MISSING_API_KEY, UPSTREAM_FAILED, ChatSession
from lexia.llm import SYSTEM_PROMPT, Echo, Gemini, OpenAI
from lexia.models import ASSISTANT_ROLE, USER_ROLE, Credential, SendStatus
from lexia.store import InMemory


def _openai_reply(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


def _gemini_reply(text):
    return SimpleNamespace(
        candidates=[
            SimpleNamespace(content=SimpleNamespace(parts=[SimpleNamespace(text=text)]))
        ]
    )


@pytest.fixture
def app(settings):
    return Lexia(
        providers={"openai": OpenAI(), "gemini": Gemini()},
        store=InMemory(),
        auth=SingleUser(),
        settings=settings,
    )


class TestEngineLLMIntegration:
    def test_basic_conversation_flow_with_echo(self, test_app):
        credential = Credential(api_key="sk-test")

        session = test_app.engine.send_message(
            ChatSession(), "Hola", "lexia", credential
        )

        assert [m.role for m in session.messages] == [USER_ROLE, ASSISTANT_ROLE]
        assert "Hola" in session.messages[1].content

    def test_openai_turn(self, app):
        credential = Credential(api_key="sk-real-looking", provider="openai")
        with patch("openai.OpenAI") as factory:
            create = factory.return_value.chat.completions.create
            create.return_value = _openai_reply("Un contrato es un acuerdo.")

            session = app.engine.send_message(
                ChatSession(), "¿Qué es un contrato?", "user1", credential
            )

        factory.assert_called_once_with(api_key="sk-real-looking", max_retries=0)
        sent = create.call_args.kwargs["messages"]
        assert sent == [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "¿Qué es un contrato?"},
        ]
        assert session.messages[-1].content == "Un contrato es un acuerdo."
        assert len(app.store.list_messages("user1")) == 2

    def test_openai_second_turn_sends_history(self, app):
        credential = Credential(api_key="sk-1", provider="openai")
        with patch("openai.OpenAI") as factory:
            create = factory.return_value.chat.completions.create
            create.side_effect = [_openai_reply("Primera"), _openai_reply("Segunda")]

            session = app.engine.send_message(ChatSession(), "Uno", "user1", credential)
            app.engine.send_message(session, "Dos", "user1", credential)

        sent = create.call_args.kwargs["messages"]
        assert [m["content"] for m in sent[1:]] == ["Uno", "Primera", "Dos"]

    def test_openai_invalid_key(self, app):
        import openai

        credential = Credential(api_key="sk-bad", provider="openai")
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        with patch("openai.OpenAI") as factory:
            factory.return_value.chat.completions.create.side_effect = (
                openai.AuthenticationError(
                    "Incorrect API key provided",
                    response=httpx.Response(401, request=request),
                    body=None,
                )
            )

            session = app.engine.send_message(ChatSession(), "Hola", "user1", credential)

        assert session.status is SendStatus.FAILED
        assert session.notification.description == UPSTREAM_FAILED
        assert [m.role for m in app.store.list_messages("user1")] == [USER_ROLE]

    def test_gemini_turn(self, app):
        credential = Credential(api_key="AIza-1", provider="gemini")
        with patch("google.genai.Client") as factory:
            generate = factory.return_value.models.generate_content
            generate.return_value = _gemini_reply("Respuesta de Gemini")

            session = app.engine.send_message(ChatSession(), "Hola", "user1", credential)

        (content,) = generate.call_args.kwargs["contents"]
        assert content.parts[0].text == f"{SYSTEM_PROMPT}\n\nHola"
        assert session.messages[-1].content == "Respuesta de Gemini"

    def test_no_credential_makes_no_request(self, app):
        with patch("openai.OpenAI") as factory:
            session = app.engine.send_message(ChatSession(), "Hola", "user1", None)

        factory.assert_not_called()
        assert session.notification.description == MISSING_API_KEY
        assert app.store.list_messages("user1") == []

    def test_hooks_called_with_real_components(self, settings):
        from lexia.engine import Synchronous

        calls = []

        class Recording(Synchronous):
            def _before_llm_call(self, history):
                calls.append("before")

            def _after_llm_call(self, reply):
                calls.append("after")

        app = Lexia(
            providers={"openai": Echo()},
            store=InMemory(),
            auth=SingleUser(),
            engine=Recording(),
            settings=settings,
        )

        app.engine.send_message(ChatSession(), "Hola", "user1", Credential(api_key="k"))

        assert calls == ["before", "after"]
