"""
Notifiers
=========

Default ``Notifier`` implementations.

- TelegramNotifier: sends Markdown text through python-telegram-bot
- LoggingNotifier: writes messages to the log, for dry runs
"""

import asyncio
from typing import Callable, List, Optional, Tuple

from telegram import Bot, LinkPreviewOptions
from telegram.constants import ParseMode
from telegram.error import TelegramError, BadRequest, Forbidden, TimedOut

from ..config.settings import TelegramSettings
from ..utils.logging import get_delivery_logger
from ..utils.exceptions import ConfigurationError, DeliveryError, ErrorCode
from ..utils.validators import TelegramValidator


class TelegramNotifier:
    """Delivers texts to Telegram chats; the subscriber ID is the chat ID.

    Each ``notify`` call runs its own event loop, so it can be called from
    any worker thread. Failures are not retried here.
    """

    def __init__(self, settings: TelegramSettings, bot_factory: Optional[Callable[[], Bot]] = None):
        """Initialize notifier.

        Args:
            settings: Token, timeouts and parse mode
            bot_factory: Builds the ``Bot`` used for one call (tests pass a mock)

        Raises:
            ConfigurationError: If no bot token is configured
        """
        if bot_factory is None and not settings.bot_token:
            raise ConfigurationError(
                "Telegram bot token is required for delivery",
                config_key="telegram.bot_token",
                error_code=ErrorCode.CONFIG_MISSING
            )

        self.settings = settings
        self._bot_factory = bot_factory or (lambda: Bot(token=settings.bot_token))
        self.logger = get_delivery_logger()

    def notify(self, subscriber_id: str, text: str) -> None:
        """Send ``text`` to a chat, split into parts Telegram accepts.

        Raises:
            DeliveryError: If Telegram rejects or fails any part
        """
        parts = TelegramValidator.split_message(text)
        asyncio.run(self._send_parts(subscriber_id, parts))
        self.logger.debug(f"Delivered {len(parts)} message part(s) to {subscriber_id}")

    async def _send_parts(self, subscriber_id: str, parts: List[str]) -> None:
        bot = self._bot_factory()
        async with bot:
            for part in parts:
                await self._send_message(bot, subscriber_id, part)

    async def _send_message(self, bot: Bot, chat_id: str, message: str) -> None:
        try:
            await bot.send_message(
                chat_id=chat_id,
                text=message,
                parse_mode=self.settings.parse_mode or ParseMode.MARKDOWN,
                link_preview_options=LinkPreviewOptions(is_disabled=True),
                connect_timeout=self.settings.connect_timeout,
                read_timeout=self.settings.read_timeout,
            )

        except TimedOut as e:
            raise DeliveryError(
                f"Timeout sending to {chat_id}: {e}",
                subscriber_id=chat_id,
                error_code=ErrorCode.DELIVERY_TIMEOUT
            ) from e

        except (BadRequest, Forbidden) as e:
            # Invalid chat or message format, or the bot was blocked
            raise DeliveryError(
                f"Telegram rejected message to {chat_id}: {e}",
                subscriber_id=chat_id,
                error_code=ErrorCode.DELIVERY_REJECTED,
                recoverable=False
            ) from e

        except TelegramError as e:
            raise DeliveryError(
                f"Telegram error sending to {chat_id}: {e}",
                subscriber_id=chat_id,
                error_code=ErrorCode.DELIVERY_FAILED
            ) from e


class LoggingNotifier:
    """Records messages and logs them instead of sending."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []
        self.logger = get_delivery_logger()

    def notify(self, subscriber_id: str, text: str) -> None:
        self.sent.append((subscriber_id, text))
        self.logger.info(f"[dry-run] to {subscriber_id}: {text}")
