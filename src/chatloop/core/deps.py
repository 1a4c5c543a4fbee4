"""Session factory."""

import logging

from chatloop.configs.config import AppConfig, get_app_config

from .history import ChatRole
from .session import ChatSession, Observer

logger = logging.getLogger(__name__)


def open_session(
    config: AppConfig | None = None,
    *,
    observer: Observer | None = None,
) -> ChatSession:
    """Load the configured model and wrap it in a fresh ``ChatSession``.

    Setup failures (``ModelLoadError``, ``ContextInitError``) propagate.
    The configured system prompt, if any, becomes the first message.
    """
    from chatloop.engine.llama import LlamaCppEngine

    if config is None:
        config = get_app_config()

    engine = LlamaCppEngine.load(config.engine, config.sampling)
    try:
        session = ChatSession(engine, observer=observer)
        if config.chat.system_prompt:
            session.add_message(config.chat.system_prompt, ChatRole.SYSTEM)
    except BaseException:
        engine.close()
        raise

    logger.info(
        "Opened chat session (context capacity %d)", session.context_capacity
    )
    return session
