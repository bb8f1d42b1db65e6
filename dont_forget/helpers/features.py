from collections.abc import Awaitable, Callable
from typing import TypeVar

from dont_forget.helpers.config import CONFIG
from dont_forget.helpers.logging import logger
from dont_forget.models.error import PersistenceError
from dont_forget.persistence.iflags import IFlagStore

SETTINGS_FLAG_KEY = "settings"
T = TypeVar("T", bool, int, float, str)


async def inject_button(
    user_id: str,
    flags: IFlagStore | None = None,
) -> bool:
    """
    Show the reminders button in the player list.

    Client setting, each user can override the default from the config.
    """
    return await _default(
        default=CONFIG.ui.inject_button,
        flags=flags,
        key="inject-button",
        type_res=bool,
        user_id=user_id,
    )


async def set_inject_button(
    user_id: str,
    value: bool,
    flags: IFlagStore | None = None,
    on_change: Callable[[], Awaitable[None]] | None = None,
) -> None:
    """
    Persist the user choice, then notify the UI so the player list is rendered again.
    """
    await _set(
        flags=flags,
        key="inject-button",
        on_change=on_change,
        user_id=user_id,
        value=value,
    )


async def _default(
    default: T,
    key: str,
    type_res: type[T],
    user_id: str,
    flags: IFlagStore | None = None,
) -> T:
    """
    Get a client setting with a default value.
    """
    store = flags or CONFIG.flags.instance
    settings = await store.get(user_id, CONFIG.ui.namespace, SETTINGS_FLAG_KEY) or {}
    res = settings.get(key, None)

    # Return stored value, if valid
    if isinstance(res, type_res):
        return res
    if res is not None:
        logger.warning("Setting %s for %s is not a %s: %s", key, user_id, type_res, res)

    # Return default
    logger.debug("Setting %s not found for %s, using default: %s", key, user_id, default)
    return default


async def _set(
    key: str,
    user_id: str,
    value: T,
    flags: IFlagStore | None = None,
    on_change: Callable[[], Awaitable[None]] | None = None,
) -> None:
    """
    Store a client setting and trigger the change callback.

    Raises `PersistenceError` if the setting cannot be saved, the callback is not triggered.
    """
    store = flags or CONFIG.flags.instance
    if not await store.merge(
        key=SETTINGS_FLAG_KEY,
        namespace=CONFIG.ui.namespace,
        user_id=user_id,
        value={key: value},
    ):
        logger.error("Failed to save setting %s for %s", key, user_id)
        raise PersistenceError(f"Failed to save setting {key} for {user_id}")
    logger.info("Setting %s for %s changed to %s", key, user_id, value)
    if on_change:
        await on_change()
