"""Layout builders for the Dash UI."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Set

import dash_bootstrap_components as dbc
from dash import dcc, html
from dash.development.base_component import Component as DashComponent

from .models import (
    GEMINI_PROVIDER,
    OPENAI_PROVIDER,
    USER_ROLE,
    ChatMessage,
    Conversation,
)

# Component IDs the callbacks are wired to.
REQUIRED_IDS = frozenset(
    {
        "session_store",
        "credential_store",
        "messages_store",
        "conversations_store",
        "auth_screen",
        "login_email",
        "login_password",
        "login_button",
        "register_email",
        "register_password",
        "register_confirm",
        "register_button",
        "chat_screen",
        "sidebar",
        "sidebar_toggle",
        "conversations_list",
        "new_conversation_button",
        "logout_button",
        "api_key_form",
        "api_key_input",
        "api_key_visibility",
        "api_provider_select",
        "save_key_button",
        "api_key_status",
        "api_key_status_text",
        "clear_key_button",
        "messages_container",
        "input_textarea",
        "submit_button",
        "status_indicator",
        "notification_toast",
    }
)

PROVIDER_LABELS = {OPENAI_PROVIDER: "OpenAI", GEMINI_PROVIDER: "Google Gemini"}

WEEKDAYS = ["lun", "mar", "mié", "jue", "vie", "sáb", "dom"]
MONTHS = [
    "ene", "feb", "mar", "abr", "may", "jun",
    "jul", "ago", "sept", "oct", "nov", "dic",
]

EXAMPLE_QUERIES = [
    "¿Cuáles son los plazos para interponer un recurso contencioso-administrativo?",
    "Explica el régimen jurídico de las cláusulas abusivas según el TSJUE",
    "¿Qué requisitos debe cumplir un contrato de trabajo temporal?",
]


def format_time(value: datetime) -> str:
    return value.astimezone().strftime("%H:%M")


def format_relative_date(value: datetime, now: Optional[datetime] = None) -> str:
    """Formats a timestamp for the conversation list.

    Within a day the time is shown, within a week the weekday, and the day and
    month otherwise.
    """
    now = now or datetime.now(timezone.utc)
    hours = (now - value).total_seconds() / 3600
    local = value.astimezone()
    if hours < 24:
        return local.strftime("%H:%M")
    if hours < 168:
        return WEEKDAYS[local.weekday()]
    return f"{local.day} {MONTHS[local.month - 1]}"


def collect_ids(component: DashComponent) -> Set[str]:
    """Returns every string ``id`` found in a component tree."""
    ids = set()
    nodes = [component, *component._traverse()]
    for node in nodes:
        node_id = getattr(node, "id", None)
        if isinstance(node_id, str):
            ids.add(node_id)
    return ids


def validate_layout(component: DashComponent) -> None:
    """Raises ValueError if the tree lacks an ID the callbacks depend on."""
    missing = REQUIRED_IDS - collect_ids(component)
    if missing:
        raise ValueError(
            f"Layout is missing required component IDs: {', '.join(sorted(missing))}"
        )


class Layout(ABC):
    """Interface for building the Dash component layout."""

    @abstractmethod
    def build_layout(self) -> DashComponent:
        """Constructs and returns the entire Dash component tree for the UI."""
        pass

    @abstractmethod
    def build_messages(self, messages: Sequence[ChatMessage]) -> List[DashComponent]:
        """Converts a list of messages into renderable Dash components."""
        pass

    @abstractmethod
    def build_conversations(
        self, conversations: Sequence[Conversation], selected_id: Optional[str] = None
    ) -> List[DashComponent]:
        """Renders the sidebar conversation list."""
        pass

    def get_external_stylesheets(self) -> List:
        return []

    def get_external_scripts(self) -> List:
        return []


class Bootstrap(Layout):
    """The default layout, built with dash-bootstrap-components."""

    def get_external_stylesheets(self) -> List:
        return [dbc.themes.BOOTSTRAP, dbc.icons.BOOTSTRAP]

    def build_layout(self) -> DashComponent:
        """Constructs the main layout Div."""
        return html.Div(
            children=[
                dcc.Store(id="session_store", storage_type="session"),
                dcc.Store(id="credential_store", storage_type="local"),
                dcc.Store(id="messages_store", storage_type="memory", data=[]),
                dcc.Store(id="conversations_store", storage_type="memory", data=[]),
                self.build_auth_screen(),
                self.build_chat_screen(),
                self.build_toast(),
            ],
        )

    # --- Auth screen ---

    def build_auth_screen(self) -> DashComponent:
        login_form = html.Div(
            className="pt-3",
            children=[
                dbc.Label("Email", html_for="login_email"),
                dbc.Input(id="login_email", type="email", placeholder="tu@email.com"),
                dbc.Label("Contraseña", html_for="login_password", className="mt-3"),
                dbc.Input(id="login_password", type="password", placeholder="••••••••"),
                dbc.Button(
                    "Iniciar Sesión",
                    id="login_button",
                    color="primary",
                    className="w-100 mt-3",
                    n_clicks=0,
                ),
            ],
        )
        register_form = html.Div(
            className="pt-3",
            children=[
                dbc.Label("Email", html_for="register_email"),
                dbc.Input(id="register_email", type="email", placeholder="tu@email.com"),
                dbc.Label("Contraseña", html_for="register_password", className="mt-3"),
                dbc.Input(
                    id="register_password", type="password", placeholder="••••••••"
                ),
                dbc.Label(
                    "Confirmar Contraseña", html_for="register_confirm", className="mt-3"
                ),
                dbc.Input(
                    id="register_confirm", type="password", placeholder="••••••••"
                ),
                dbc.Button(
                    "Crear Cuenta",
                    id="register_button",
                    color="primary",
                    className="w-100 mt-3",
                    n_clicks=0,
                ),
            ],
        )
        return html.Div(
            id="auth_screen",
            className="min-vh-100 align-items-center justify-content-center bg-light p-4",
            style={"display": "flex"},
            children=html.Div(
                style={"width": "100%", "maxWidth": "28rem"},
                children=[
                    html.Div(
                        className="text-center mb-4",
                        children=[
                            html.I(className="bi bi-bank fs-1 text-primary"),
                            html.H1("LexIA", className="fw-bold"),
                            html.P(
                                "Asistente Jurídico Inteligente",
                                className="text-muted mb-1",
                            ),
                            html.Small(
                                "Especializado en Derecho Español y Europeo",
                                className="text-muted",
                            ),
                        ],
                    ),
                    dbc.Card(
                        className="shadow border-0",
                        children=[
                            dbc.CardHeader(
                                [
                                    html.I(className="bi bi-shield-lock me-2"),
                                    "Acceso Seguro",
                                ],
                                className="text-center bg-white",
                            ),
                            dbc.CardBody(
                                dbc.Tabs(
                                    [
                                        dbc.Tab(
                                            login_form,
                                            label="Iniciar Sesión",
                                            tab_id="login",
                                        ),
                                        dbc.Tab(
                                            register_form,
                                            label="Registrarse",
                                            tab_id="register",
                                        ),
                                    ],
                                    active_tab="login",
                                )
                            ),
                        ],
                    ),
                ],
            ),
        )

    # --- Chat screen ---

    def build_chat_screen(self) -> DashComponent:
        return html.Div(
            id="chat_screen",
            hidden=True,
            className="flex-column vh-100",
            style={"display": "flex"},
            children=[
                self.build_header(),
                self.build_sidebar(),
                html.Div(className="p-3", children=self.build_api_key_card()),
                html.Main(
                    className="flex-grow-1 px-3",
                    style={"overflowY": "auto"},
                    children=[
                        html.Div(id="messages_container", children=self.build_messages([])),
                        self.build_status_indicator(),
                    ],
                ),
                self.build_input_area(),
            ],
        )

    def build_header(self) -> DashComponent:
        """Builds the header component."""
        return html.Header(
            className="p-3 border-bottom bg-white",
            children=[
                dbc.Row(
                    align="center",
                    children=[
                        dbc.Col(
                            dbc.Button(
                                html.I(className="bi bi-list"),
                                id="sidebar_toggle",
                                color="secondary",
                                outline=True,
                                size="sm",
                                n_clicks=0,
                            ),
                            width="auto",
                        ),
                        dbc.Col(
                            [
                                html.H5(
                                    [html.I(className="bi bi-bank me-2 text-primary"), "LexIA"],
                                    className="m-0",
                                ),
                                html.Small(
                                    "Asistente Jurídico Especializado",
                                    className="text-muted",
                                ),
                            ]
                        ),
                        dbc.Col(
                            dbc.Button(
                                [html.I(className="bi bi-box-arrow-right me-2"), "Cerrar Sesión"],
                                id="logout_button",
                                color="secondary",
                                outline=True,
                                size="sm",
                                n_clicks=0,
                            ),
                            width="auto",
                        ),
                    ],
                )
            ],
        )

    def build_sidebar(self) -> DashComponent:
        """Builds the sidebar component."""
        return dbc.Offcanvas(
            id="sidebar",
            is_open=False,
            title="Consultas",
            children=[
                dbc.Button(
                    [html.I(className="bi bi-chat-square-text me-2"), "Nueva Consulta"],
                    id="new_conversation_button",
                    color="primary",
                    outline=True,
                    className="w-100 mb-3",
                    n_clicks=0,
                ),
                html.Div(id="conversations_list", children=self.build_conversations([])),
                html.Small(
                    "💡 Las consultas se guardan automáticamente",
                    className="text-muted d-block mt-3",
                ),
            ],
        )

    def build_api_key_card(self) -> List[DashComponent]:
        form = dbc.Card(
            id="api_key_form",
            className="border-warning",
            children=[
                dbc.CardHeader(
                    [html.I(className="bi bi-key me-2 text-warning"), "Configuración de API Key"]
                ),
                dbc.CardBody(
                    [
                        html.Small(
                            "Tu API Key se almacena localmente en este navegador. "
                            "Es necesaria para conectar con el proveedor de IA.",
                            className="text-muted d-block mb-3",
                        ),
                        dbc.Label("Proveedor", html_for="api_provider_select"),
                        dbc.Select(
                            id="api_provider_select",
                            options=[
                                {"label": label, "value": value}
                                for value, label in PROVIDER_LABELS.items()
                            ],
                            value=OPENAI_PROVIDER,
                        ),
                        dbc.Label("API Key", html_for="api_key_input", className="mt-3"),
                        dbc.InputGroup(
                            [
                                dbc.Input(
                                    id="api_key_input", type="password", placeholder="sk-..."
                                ),
                                dbc.Button(
                                    html.I(className="bi bi-eye"),
                                    id="api_key_visibility",
                                    color="secondary",
                                    outline=True,
                                    n_clicks=0,
                                ),
                            ]
                        ),
                        dbc.Button(
                            "Guardar API Key",
                            id="save_key_button",
                            color="primary",
                            className="w-100 mt-3",
                            n_clicks=0,
                        ),
                    ]
                ),
            ],
        )
        status = html.Div(
            id="api_key_status",
            hidden=True,
            className="align-items-center justify-content-between border rounded p-3",
            style={"display": "flex"},
            children=[
                html.Span(
                    [
                        html.I(className="bi bi-check-circle-fill text-success me-2"),
                        html.Span(id="api_key_status_text"),
                    ]
                ),
                dbc.Button(
                    "Cambiar",
                    id="clear_key_button",
                    color="secondary",
                    outline=True,
                    size="sm",
                    n_clicks=0,
                ),
            ],
        )
        return [form, status]

    def build_status_indicator(self) -> DashComponent:
        return html.Div(
            id="status_indicator",
            hidden=True,
            className="gap-3 p-3",
            style={"display": "flex"},
            children=[
                self._avatar(is_user=False),
                html.Div(
                    [dbc.Spinner(size="sm", type="grow") for _ in range(3)],
                    className="bg-light rounded p-3 d-flex gap-1",
                ),
            ],
        )

    def build_input_area(self) -> DashComponent:
        """Builds the user input area."""
        return html.Footer(
            className="p-3 border-top bg-white",
            children=[
                dbc.InputGroup(
                    [
                        dbc.Textarea(
                            id="input_textarea",
                            placeholder="Escribe tu consulta jurídica aquí... "
                            "(Shift + Enter para nueva línea)",
                            style={"minHeight": "60px", "maxHeight": "120px", "resize": "none"},
                        ),
                        dbc.Button(
                            html.I(className="bi bi-send"),
                            id="submit_button",
                            color="primary",
                            n_clicks=0,
                        ),
                    ]
                ),
                html.Small(
                    "LexIA está especializado en Derecho Español y Europeo. "
                    "Sus respuestas son orientativas.",
                    className="text-muted d-block mt-2",
                ),
            ],
        )

    def build_toast(self) -> DashComponent:
        return dbc.Toast(
            id="notification_toast",
            header="",
            icon="danger",
            is_open=False,
            dismissable=True,
            duration=5000,
            style={"position": "fixed", "top": 16, "right": 16, "width": 360, "zIndex": 1080},
        )

    # --- Messages ---

    def build_welcome(self) -> DashComponent:
        return html.Div(
            className="text-center py-5",
            children=[
                html.I(className="bi bi-bank text-muted", style={"fontSize": "4rem"}),
                html.H4("¡Bienvenido a LexIA!", className="mt-3"),
                html.P(
                    "Soy tu asistente jurídico especializado en Derecho español y "
                    "europeo. Puedes consultarme sobre legislación, jurisprudencia, "
                    "procedimientos legales y más.",
                    className="text-muted mx-auto",
                    style={"maxWidth": "32rem"},
                ),
                html.P("Ejemplos de consultas:", className="fw-semibold small mt-4 mb-2"),
                html.Ul(
                    [html.Li(f"«{query}»") for query in EXAMPLE_QUERIES],
                    className="small text-muted text-start mx-auto",
                    style={"maxWidth": "36rem"},
                ),
            ],
        )

    def build_messages(self, messages):
        if not messages:
            return [self.build_welcome()]
        return [self.build_message(msg) for msg in messages]

    def build_message(self, message: ChatMessage) -> DashComponent:
        """Formats a single message."""
        is_user = message.role == USER_ROLE
        if is_user:
            body = html.Div(message.content, style={"whiteSpace": "pre-wrap"})
            bubble_class = "bg-primary text-white rounded p-3 d-inline-block"
        else:
            body = dcc.Markdown(message.content, className="mb-0")
            bubble_class = "bg-light rounded p-3 d-inline-block"
        return html.Div(
            className="d-flex gap-3 p-3 " + ("flex-row-reverse" if is_user else "flex-row"),
            children=[
                self._avatar(is_user),
                html.Div(
                    className="text-end" if is_user else "text-start",
                    style={"maxWidth": "80%"},
                    children=[
                        html.Div(body, className=bubble_class),
                        html.Div(
                            format_time(message.created_at),
                            className="small text-muted mt-1 px-1",
                        ),
                    ],
                ),
            ],
        )

    def _avatar(self, is_user: bool) -> DashComponent:
        return html.Div(
            html.I(className="bi bi-person" if is_user else "bi bi-bank"),
            className="rounded-circle d-flex align-items-center justify-content-center "
            + ("bg-primary text-white" if is_user else "bg-secondary-subtle"),
            style={"width": "2rem", "height": "2rem", "flexShrink": 0},
        )

    # --- Conversations ---

    def build_conversations(self, conversations, selected_id=None):
        if not conversations:
            return [
                html.Div(
                    [
                        html.I(className="bi bi-chat-square-text d-block fs-3 mb-2"),
                        "No hay conversaciones aún",
                    ],
                    className="text-center text-muted small p-4",
                )
            ]
        return [
            self.build_conversation(convo, convo.id == selected_id)
            for convo in conversations
        ]

    def build_conversation(self, conversation: Conversation, selected: bool) -> DashComponent:
        return html.Div(
            className="d-flex align-items-start rounded p-2 mb-1"
            + (" bg-body-secondary" if selected else ""),
            children=[
                html.Div(
                    id={"type": "convo-item", "id": conversation.id},
                    n_clicks=0,
                    className="flex-grow-1",
                    style={"cursor": "pointer", "minWidth": 0},
                    children=[
                        html.Div(conversation.title, className="fw-semibold small text-truncate"),
                        html.Div(
                            conversation.last_message,
                            className="small text-muted text-truncate",
                        ),
                        html.Div(
                            [
                                html.I(className="bi bi-clock me-1"),
                                format_relative_date(conversation.created_at),
                                " • ",
                                f"{conversation.message_count} mensajes",
                            ],
                            className="small text-muted mt-1",
                        ),
                    ],
                ),
                dbc.Button(
                    html.I(className="bi bi-trash"),
                    id={"type": "convo-delete", "id": conversation.id},
                    color="link",
                    size="sm",
                    className="text-muted",
                    n_clicks=0,
                ),
            ],
        )
