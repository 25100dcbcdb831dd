"""Unit tests for Lexia initialization and configuration."""

from types import SimpleNamespace
from unittest.mock import MagicMock, Mock, patch

import pytest
from dash import html
from lexia import Lexia
from lexia.auth import SingleUser, Supabase as SupabaseAuth
from lexia.config import Settings
from lexia.engine import Engine, Synchronous
from lexia.errors import ConfigError
from lexia.layout import Bootstrap
from lexia.llm import Echo, Gemini, OpenAI
from lexia.store import SQLite, InMemory, Supabase as SupabaseStore


class TestLexiaInit:
    """Test Lexia initialization and component configuration."""

    def test_default_initialization(self, settings):
        app = Lexia(settings=settings)

        assert isinstance(app.layout_builder, Bootstrap)
        assert isinstance(app.providers["openai"], OpenAI)
        assert isinstance(app.providers["gemini"], Gemini)
        assert isinstance(app.store, InMemory)
        assert isinstance(app.auth, SingleUser)
        assert isinstance(app.engine, Synchronous)
        assert app.engine.app is app
        assert app.title == "LexIA"

    def test_provider_models_come_from_settings(self):
        settings = Settings(
            openai_model="gpt-4o-mini", gemini_model="gemini-1.5-pro", _env_file=None
        )

        app = Lexia(settings=settings)

        assert app.providers["openai"].model == "gpt-4o-mini"
        assert app.providers["gemini"].model == "gemini-1.5-pro"

    def test_custom_components(self, settings, mock_auth):
        providers = {"openai": Echo()}
        store = InMemory()

        app = Lexia(providers=providers, store=store, auth=mock_auth, settings=settings)

        assert app.providers is providers
        assert app.store is store
        assert app.auth is mock_auth

    def test_reload_history_setting_reaches_engine(self):
        settings = Settings(reload_history=False, _env_file=None)

        app = Lexia(settings=settings)

        assert app.engine.reload_history is False

    def test_unbound_engine_is_bound(self, settings):
        engine = Synchronous()

        app = Lexia(engine=engine, settings=settings)

        assert engine.app is app

    def test_bound_engine_is_kept(self, settings):
        other_app = Mock()
        engine = Synchronous(other_app)

        Lexia(engine=engine, settings=settings)

        assert engine.app is other_app

    def test_custom_engine_sees_all_components(self, settings, mock_provider, mock_auth):
        class CustomEngine(Engine):
            def send_message(self, session, content, user_id, credential):
                return session

        engine = CustomEngine()
        store = InMemory()
        app = Lexia(
            providers={"openai": mock_provider},
            store=store,
            auth=mock_auth,
            engine=engine,
            settings=settings,
        )

        assert engine.app.providers["openai"] is mock_provider
        assert engine.app.store is store
        assert engine.app.auth is mock_auth
        assert engine.app is app

    def test_callbacks_registered_after_initialization(self, settings):
        with patch("lexia.callbacks.register_callbacks") as mock_register:
            app = Lexia(settings=settings)

            mock_register.assert_called_once_with(app)

    def test_render_callback_registered(self, test_app):
        assert "messages_container.children" in test_app.callback_map
        assert "conversations_list.children" in test_app.callback_map


class TestBackendSelection:
    def test_sqlite_backend(self, tmp_path):
        db_path = str(tmp_path / "lexia.db")
        settings = Settings(store_backend="sqlite", sqlite_path=db_path, _env_file=None)

        app = Lexia(settings=settings)

        assert isinstance(app.store, SQLite)
        assert app.store.db_path == db_path

    def test_supabase_without_url_is_a_config_error(self):
        settings = Settings(
            store_backend="supabase",
            supabase_url=None,
            supabase_key=None,
            _env_file=None,
        )

        with pytest.raises(ConfigError):
            Lexia(settings=settings)

    @pytest.fixture
    def supabase_settings(self):
        return Settings(
            store_backend="supabase",
            auth_backend="supabase",
            supabase_url="https://example.supabase.co",
            supabase_key="service-key",
            supabase_table="lexia_messages",
            _env_file=None,
        )

    def test_store_and_auth_get_separate_clients(self, supabase_settings):
        store_client, auth_client = MagicMock(), MagicMock()

        with patch(
            "supabase.create_client", side_effect=[store_client, auth_client]
        ) as factory:
            app = Lexia(settings=supabase_settings)

        assert factory.call_count == 2
        for call in factory.call_args_list:
            assert call.args == ("https://example.supabase.co", "service-key")
        assert isinstance(app.store, SupabaseStore)
        assert isinstance(app.auth, SupabaseAuth)
        assert app.store.client is store_client
        assert app.auth.client is auth_client
        assert app.store.table == "lexia_messages"

    def test_sign_ins_never_touch_the_store_client(self, supabase_settings):
        store_client, auth_client = MagicMock(), MagicMock()
        auth_client.auth.sign_in_with_password.side_effect = [
            SimpleNamespace(
                user=SimpleNamespace(id=user_id, email=f"{user_id}@example.com"),
                session=SimpleNamespace(access_token=f"token-{user_id}"),
            )
            for user_id in ("a", "b")
        ]
        auth_client.auth.get_user.side_effect = lambda token: SimpleNamespace(
            user=SimpleNamespace(id=token.split("-")[1])
        )
        query = store_client.table.return_value.select.return_value.eq.return_value
        query.order.return_value.execute.return_value = SimpleNamespace(data=[])

        with patch("supabase.create_client", side_effect=[store_client, auth_client]):
            app = Lexia(settings=supabase_settings)

        session_a = app.auth.sign_in("a@example.com", "secret")
        app.auth.sign_in("b@example.com", "secret")
        user_id = app.auth.get_current_user_id(session=session_a)
        app.store.list_messages(user_id)

        assert user_id == "a"
        store_client.auth.sign_in_with_password.assert_not_called()
        store_client.table.return_value.select.return_value.eq.assert_called_once_with(
            "user_id", "a"
        )


class TestLayoutHandling:
    def test_layout_missing_ids_raises(self, settings):
        mock_layout = Mock()
        mock_layout.build_layout.return_value = html.Div(id="test-layout")
        mock_layout.get_external_stylesheets.return_value = []
        mock_layout.get_external_scripts.return_value = []

        with pytest.raises(ValueError, match="missing required component IDs"):
            Lexia(layout=mock_layout, settings=settings)

    def test_layout_stylesheets_added(self, settings):
        app = Lexia(settings=settings)

        for sheet in Bootstrap().get_external_stylesheets():
            assert sheet in app.config.external_stylesheets

    def test_existing_stylesheets_preserved(self, settings):
        existing_stylesheet = "https://existing.com/style.css"

        app = Lexia(external_stylesheets=[existing_stylesheet], settings=settings)

        assert existing_stylesheet in app.config.external_stylesheets
        assert len(app.config.external_stylesheets) == 3

    def test_custom_title(self, settings):
        app = Lexia(title="Mi despacho", settings=settings)

        assert app.title == "Mi despacho"
