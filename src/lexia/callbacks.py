"""Callbacks wiring the Dash layout to auth, credentials and the engine.

Each callback is a thin shell around a plain function of this module, which
takes and returns browser payloads and ``Notification`` objects.
"""

import logging

from dash import ALL, Input, Output, State, callback_context, no_update

from . import credentials
from .engine import ChatSession
from .errors import AuthenticationError
from .layout import PROVIDER_LABELS
from .models import ChatMessage, Conversation, Notification

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_ID = "default"

PASSWORD_MISMATCH = "Las contraseñas no coinciden"
MISSING_FIELDS = "Introduce tu email y contraseña"

TOAST_OUTPUTS = [
    Output("notification_toast", "is_open", allow_duplicate=True),
    Output("notification_toast", "header", allow_duplicate=True),
    Output("notification_toast", "children", allow_duplicate=True),
    Output("notification_toast", "icon", allow_duplicate=True),
]


def toast(notification):
    """Maps a notification onto the toast outputs."""
    if notification is None:
        return [no_update] * len(TOAST_OUTPUTS)
    icon = "danger" if notification.variant == "destructive" else "success"
    return [True, notification.title, notification.description, icon]


def dump_messages(messages):
    return [msg.model_dump(mode="json") for msg in messages]


def load_messages(data):
    return [ChatMessage.model_validate(item) for item in data or []]


def credential_store(data) -> credentials.CredentialStore:
    """Wraps the browser's localStorage payload in a credential store."""
    return credentials.CredentialStore(credentials.InMemory(data))


def _triggered_value():
    if not callback_context.triggered:
        return None
    return callback_context.triggered[0]["value"]


# --- Callback bodies ---


def sign_in_user(auth, email, password):
    """Signs a user in.

    Returns
    -------
    tuple
        ``(session, None)`` on success, ``(None, notification)`` otherwise.
    """
    title = "Error de inicio de sesión"
    if not email or not password:
        return None, Notification(title=title, description=MISSING_FIELDS)
    try:
        session = auth.sign_in(email.strip(), password)
    except AuthenticationError as e:
        return None, Notification(title=title, description=str(e))
    logger.info("User %s signed in", session.get("user_id"))
    return session, None


def sign_up_user(auth, email, password, confirm) -> Notification:
    """Registers an account and returns the notification to show.

    A mismatched confirmation is rejected before the auth provider is called.
    """
    title = "Error de registro"
    if not email or not password:
        return Notification(title=title, description=MISSING_FIELDS)
    if password != confirm:
        return Notification(description=PASSWORD_MISMATCH)
    try:
        auth.sign_up(email.strip(), password)
    except AuthenticationError as e:
        return Notification(title=title, description=str(e))
    return Notification(
        title="Registro exitoso",
        description="Revisa tu email para confirmar tu cuenta",
        variant="default",
    )


def save_credential_payload(data, api_key, provider):
    """Stores a key in the localStorage payload.

    Returns the new payload and a confirmation, or ``(None, None)`` for a
    blank key.
    """
    if not api_key or not api_key.strip():
        return None, None
    store = credential_store(data)
    store.set(api_key.strip(), provider)
    notification = Notification(
        title="API Key configurada",
        description=f"Usando {PROVIDER_LABELS[provider]}",
        variant="default",
    )
    return store.storage.data, notification


def clear_credential_payload(data):
    store = credential_store(data)
    store.clear()
    return store.storage.data


def credential_status(data):
    """Returns ``(form_style, status_hidden, status_text)`` for the key card."""
    credential = credential_store(data).get()
    if credential is None:
        return {}, True, ""
    label = PROVIDER_LABELS[credential.provider]
    return {"display": "none"}, False, f"API Key de {label} configurada"


def send_user_message(app, user_input, session_data, credential_data, messages):
    """Runs one turn for the signed-in user with the browser's credential.

    Returns the new messages payload and the notification, if any.
    """
    user_id = app.auth.get_current_user_id(session=session_data)
    credential = credential_store(credential_data).get()
    session = ChatSession(load_messages(messages))
    app.engine.send_message(session, user_input.strip(), user_id, credential)
    return dump_messages(session.messages), session.notification


def reload_user_messages(app, session_data):
    """Returns the stored history of the signed-in user and the notification."""
    user_id = app.auth.get_current_user_id(session=session_data)
    session = app.engine.reload(ChatSession(), user_id)
    return dump_messages(session.messages), session.notification


def upsert_conversation(messages, conversations):
    """Puts the summary of ``messages`` first in the sidebar list.

    Returns None when the messages hold no user turn.
    """
    summary = Conversation.from_messages(
        load_messages(messages), DEFAULT_CONVERSATION_ID
    )
    if summary is None:
        return None
    others = [c for c in conversations or [] if c["id"] != summary.id]
    return [summary.model_dump(mode="json"), *others]


def remove_conversation(conversations, convo_id):
    # Sidebar only; nothing is deleted from the store.
    return [c for c in conversations or [] if c["id"] != convo_id]


# --- Registration ---


def register_callbacks(app):
    _register_auth_callbacks(app)
    _register_credential_callbacks(app)
    _register_chat_callbacks(app)
    _register_conversation_callbacks(app)
    _register_clientside_callbacks(app)


def _register_auth_callbacks(app):
    @app.callback(
        [Output("auth_screen", "hidden"), Output("chat_screen", "hidden")],
        Input("session_store", "data"),
    )
    def route_screens(session):
        signed_in = bool(session)
        return signed_in, not signed_in

    @app.callback(
        [Output("session_store", "data", allow_duplicate=True), *TOAST_OUTPUTS],
        Input("login_button", "n_clicks"),
        [State("login_email", "value"), State("login_password", "value")],
        prevent_initial_call=True,
    )
    def sign_in(n_clicks, email, password):
        if not n_clicks:
            return [no_update, *toast(None)]
        session, notification = sign_in_user(app.auth, email, password)
        if session is None:
            return [no_update, *toast(notification)]
        return [session, *toast(None)]

    @app.callback(
        TOAST_OUTPUTS,
        Input("register_button", "n_clicks"),
        [
            State("register_email", "value"),
            State("register_password", "value"),
            State("register_confirm", "value"),
        ],
        prevent_initial_call=True,
    )
    def sign_up(n_clicks, email, password, confirm):
        if not n_clicks:
            return toast(None)
        return toast(sign_up_user(app.auth, email, password, confirm))

    @app.callback(
        [
            Output("session_store", "data", allow_duplicate=True),
            Output("messages_store", "data", allow_duplicate=True),
            Output("conversations_store", "data", allow_duplicate=True),
        ],
        Input("logout_button", "n_clicks"),
        State("session_store", "data"),
        prevent_initial_call=True,
    )
    def sign_out(n_clicks, session):
        if not n_clicks:
            return no_update, no_update, no_update
        app.auth.sign_out(session)
        return None, [], []


def _register_credential_callbacks(app):
    @app.callback(
        [
            Output("api_key_form", "style"),
            Output("api_key_status", "hidden"),
            Output("api_key_status_text", "children"),
        ],
        Input("credential_store", "data"),
    )
    def show_credential_state(data):
        return credential_status(data)

    @app.callback(
        [Output("credential_store", "data", allow_duplicate=True), *TOAST_OUTPUTS],
        Input("save_key_button", "n_clicks"),
        [
            State("api_key_input", "value"),
            State("api_provider_select", "value"),
            State("credential_store", "data"),
        ],
        prevent_initial_call=True,
    )
    def save_credential(n_clicks, api_key, provider, data):
        if not n_clicks:
            return [no_update, *toast(None)]
        payload, notification = save_credential_payload(data, api_key, provider)
        if payload is None:
            return [no_update, *toast(None)]
        return [payload, *toast(notification)]

    @app.callback(
        [
            Output("credential_store", "data", allow_duplicate=True),
            Output("api_key_input", "value"),
        ],
        Input("clear_key_button", "n_clicks"),
        State("credential_store", "data"),
        prevent_initial_call=True,
    )
    def clear_credential(n_clicks, data):
        if not n_clicks:
            return no_update, no_update
        return clear_credential_payload(data), ""

    @app.callback(
        Output("api_key_input", "type"),
        Input("api_key_visibility", "n_clicks"),
        State("api_key_input", "type"),
        prevent_initial_call=True,
    )
    def toggle_key_visibility(n_clicks, input_type):
        return "text" if input_type == "password" else "password"


def _register_chat_callbacks(app):
    @app.callback(
        [
            Output("messages_store", "data", allow_duplicate=True),
            Output("input_textarea", "value"),
            *TOAST_OUTPUTS,
        ],
        Input("submit_button", "n_clicks"),
        [
            State("input_textarea", "value"),
            State("session_store", "data"),
            State("credential_store", "data"),
            State("messages_store", "data"),
        ],
        running=[
            (Output("submit_button", "disabled"), True, False),
            (Output("status_indicator", "hidden"), False, True),
        ],
        prevent_initial_call=True,
    )
    def send_message(n_clicks, user_input, session_data, credential_data, messages):
        if not n_clicks or not user_input or not user_input.strip():
            return [no_update, no_update, *toast(None)]
        payload, notification = send_user_message(
            app, user_input, session_data, credential_data, messages
        )
        return [payload, "", *toast(notification)]

    @app.callback(
        [Output("messages_store", "data", allow_duplicate=True), *TOAST_OUTPUTS],
        Input("session_store", "data"),
        prevent_initial_call="initial_duplicate",
    )
    def load_history(session_data):
        if not session_data:
            return [[], *toast(None)]
        payload, notification = reload_user_messages(app, session_data)
        return [payload, *toast(notification)]

    @app.callback(
        Output("messages_container", "children"),
        Input("messages_store", "data"),
    )
    def render_messages(messages):
        return app.layout_builder.build_messages(load_messages(messages))


def _register_conversation_callbacks(app):
    @app.callback(
        Output("sidebar", "is_open"),
        Input("sidebar_toggle", "n_clicks"),
        State("sidebar", "is_open"),
        prevent_initial_call=True,
    )
    def toggle_sidebar(toggle_clicks, is_open):
        if not toggle_clicks:
            return no_update
        return not is_open

    @app.callback(
        Output("conversations_store", "data", allow_duplicate=True),
        Input("messages_store", "data"),
        State("conversations_store", "data"),
        prevent_initial_call=True,
    )
    def summarize_conversation(messages, conversations):
        updated = upsert_conversation(messages, conversations)
        return no_update if updated is None else updated

    @app.callback(
        Output("conversations_list", "children"),
        Input("conversations_store", "data"),
    )
    def render_conversations(conversations):
        items = [Conversation.model_validate(c) for c in conversations or []]
        return app.layout_builder.build_conversations(items, DEFAULT_CONVERSATION_ID)

    @app.callback(
        [
            Output("messages_store", "data", allow_duplicate=True),
            Output("sidebar", "is_open", allow_duplicate=True),
        ],
        Input("new_conversation_button", "n_clicks"),
        prevent_initial_call=True,
    )
    def new_conversation(n_clicks):
        # Only the view is cleared; stored history is untouched.
        if not n_clicks:
            return no_update, no_update
        return [], False

    @app.callback(
        [
            Output("messages_store", "data", allow_duplicate=True),
            Output("sidebar", "is_open", allow_duplicate=True),
            *TOAST_OUTPUTS,
        ],
        Input({"type": "convo-item", "id": ALL}, "n_clicks"),
        State("session_store", "data"),
        prevent_initial_call=True,
    )
    def select_conversation(n_clicks, session_data):
        if not _triggered_value():
            return [no_update, no_update, *toast(None)]
        logger.debug("Loading conversation %s", callback_context.triggered_id["id"])
        payload, notification = reload_user_messages(app, session_data)
        return [payload, False, *toast(notification)]

    @app.callback(
        Output("conversations_store", "data", allow_duplicate=True),
        Input({"type": "convo-delete", "id": ALL}, "n_clicks"),
        State("conversations_store", "data"),
        prevent_initial_call=True,
    )
    def delete_conversation(n_clicks, conversations):
        if not _triggered_value():
            return no_update
        convo_id = callback_context.triggered_id["id"]
        logger.debug("Removing conversation %s from the sidebar", convo_id)
        return remove_conversation(conversations, convo_id)


def _register_clientside_callbacks(app):
    app.clientside_callback(
        """
        function(hidden) {
            // Enter sends, Shift+Enter inserts a newline
            setTimeout(function() {
                const textarea = document.getElementById('input_textarea');
                const submitButton = document.getElementById('submit_button');

                if (textarea && submitButton && !window.enterListenerSetup) {
                    window.enterListenerSetup = true;

                    textarea.addEventListener('keydown', function(e) {
                        if (e.key === 'Enter' && !e.shiftKey) {
                            e.preventDefault();
                            if (textarea.value.trim() && !submitButton.disabled) {
                                submitButton.click();
                            }
                        }
                    });
                }
            }, 100);

            return window.dash_clientside.no_update;
        }
        """,
        Output("submit_button", "n_clicks", allow_duplicate=True),
        Input("chat_screen", "hidden"),
        prevent_initial_call=True,
    )

    # Auto-scroll to bottom
    app.clientside_callback(
        """
        function(messages_content) {
            if (messages_content && messages_content.length > 0) {
                setTimeout(function() {
                    const messagesContainer = document.getElementById('messages_container');
                    if (messagesContainer && messagesContainer.parentElement) {
                        const scroller = messagesContainer.parentElement;
                        scroller.scrollTop = scroller.scrollHeight;
                    }
                }, 100);
            }
            return window.dash_clientside.no_update;
        }
        """,
        Output("messages_container", "data-scroll-trigger", allow_duplicate=True),
        Input("messages_container", "children"),
        prevent_initial_call=True,
    )
