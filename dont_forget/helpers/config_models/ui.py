from pydantic import BaseModel


class UiModel(BaseModel):
    inject_button: bool = True
    """Default for the client setting, show the reminders button in the player list."""
    namespace: str = "dont-forget"
    """Flag namespace, shared by the reminders and the client settings."""
