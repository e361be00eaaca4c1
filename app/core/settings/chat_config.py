"""Real-time messaging configuration."""

from pydantic import BaseModel


class ChatConfig(BaseModel, frozen=True):
    """Message, history and websocket settings."""

    max_text_length: int
    history_page_size: int
    history_max_page_size: int
    websocket_path: str
    typing_enabled: bool = True
