"""
The main entrypoint for the LexIA package.

This module contains the ``Lexia`` Dash application, which wires together the
pluggable parts of the legal assistant: layout, LLM providers, message store,
auth and the conversation engine.
"""

import logging
from typing import Dict, Optional

from dash import Dash

from . import auth, config, engine, layout, llm, store
from .config import Settings
from .errors import ConfigError
from .models import GEMINI_PROVIDER, OPENAI_PROVIDER

logger = logging.getLogger(__name__)

__all__ = ["Lexia"]


class Lexia(Dash):
    """
    The LexIA legal-assistant chat application.

    This class acts as the central composition root, using the injected
    components to manage the application's behavior. Defaults are derived from
    ``Settings``, so the app runs out of the box with an in-memory store and a
    single local user.
    """

    def __init__(
        self,
        layout: Optional["layout.Layout"] = None,
        providers: Optional[Dict[str, llm.LLM]] = None,
        store: Optional["store.Store"] = None,
        auth: Optional["auth.Auth"] = None,
        engine: Optional["engine.Engine"] = None,
        settings: Optional[Settings] = None,
        **kwargs,
    ) -> None:
        """
        Initialize the application with configurable components.

        Parameters
        ----------
        layout : layout.Layout, optional
            Layout builder for constructing the Dash component tree.
            Defaults to layout.Bootstrap().
        providers : Dict[str, llm.LLM], optional
            LLM providers keyed by credential provider tag. Defaults to
            ``{"openai": llm.OpenAI(), "gemini": llm.Gemini()}``.
        store : store.Store, optional
            Message store. Defaults to the backend named by
            ``settings.store_backend``.
        auth : auth.Auth, optional
            Authentication manager. Defaults to the backend named by
            ``settings.auth_backend``.
        engine : engine.Engine, optional
            Conversation engine. Defaults to engine.Synchronous(). An engine
            created without an app is bound to this one.
        settings : Settings, optional
            Configuration. Defaults to ``config.settings``.
        **kwargs
            Additional arguments passed to the Dash constructor.

        Raises
        ------
        ValueError
            If the layout is missing required component IDs needed for the
            callbacks.
        ConfigError
            If a Supabase backend is selected without URL and key.

        Examples
        --------
        >>> app = Lexia()

        >>> app = Lexia(
        ...     providers={"openai": llm.OpenAI(default_model="gpt-4o-mini")},
        ...     store=store.SQLite("lexia.db"),
        ... )
        """
        self.settings = settings if settings is not None else config.settings
        self.layout_builder = layout if layout is not None else globals()["layout"].Bootstrap()

        if "external_stylesheets" not in kwargs:
            kwargs["external_stylesheets"] = []
        kwargs["external_stylesheets"].extend(
            self.layout_builder.get_external_stylesheets()
        )

        if "external_scripts" not in kwargs:
            kwargs["external_scripts"] = []
        kwargs["external_scripts"].extend(self.layout_builder.get_external_scripts())

        kwargs.setdefault("title", "LexIA")
        super().__init__(**kwargs)

        self.providers = providers if providers is not None else self._default_providers()
        self.store = store if store is not None else self._default_store()
        self.auth = auth if auth is not None else self._default_auth()

        engine_module = globals()["engine"]
        self.engine = (
            engine
            if engine is not None
            else engine_module.Synchronous(reload_history=self.settings.reload_history)
        )
        if self.engine.app is None:
            self.engine.app = self

        self.layout = self.layout_builder.build_layout()
        layout_module = globals()["layout"]
        layout_module.validate_layout(self.layout)
        self._register_callbacks()

    def _default_providers(self) -> Dict[str, llm.LLM]:
        return {
            OPENAI_PROVIDER: llm.OpenAI(default_model=self.settings.openai_model),
            GEMINI_PROVIDER: llm.Gemini(default_model=self.settings.gemini_model),
        }

    def _supabase_client(self):
        """Creates a new Supabase client from the settings.

        The store and auth each get their own client: signing in on a client
        changes the identity its database queries run with.
        """
        if not self.settings.supabase_url or not self.settings.supabase_key:
            raise ConfigError(
                "LEXIA_SUPABASE_URL and LEXIA_SUPABASE_KEY are required "
                "for the supabase backend"
            )
        from supabase import create_client

        return create_client(self.settings.supabase_url, self.settings.supabase_key)

    def _default_store(self) -> "store.Store":
        backend = self.settings.store_backend
        logger.info("Using %s message store", backend)
        if backend == "sqlite":
            return store.SQLite(self.settings.sqlite_path)
        if backend == "supabase":
            return store.Supabase(
                table=self.settings.supabase_table, client=self._supabase_client()
            )
        return store.InMemory()

    def _default_auth(self) -> "auth.Auth":
        if self.settings.auth_backend == "supabase":
            return auth.Supabase(client=self._supabase_client())
        return auth.SingleUser()

    def _register_callbacks(self) -> None:
        """Registers all the callbacks that orchestrate the components."""
        from .callbacks import register_callbacks

        register_callbacks(self)
