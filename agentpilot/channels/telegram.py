"""Telegram channel implementation using python-telegram-bot."""

from __future__ import annotations

import asyncio
import re

from loguru import logger
from telegram import BotCommand, Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from agentpilot import __logo__
from agentpilot.bus.events import Attachment
from agentpilot.bus.queue import MessageBus
from agentpilot.channels.base import BaseChannel
from agentpilot.config.schema import TelegramConfig

MAX_MESSAGE_LENGTH = 4000


def _escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def markdown_to_telegram_html(text: str) -> str:
    """
    Convert markdown to Telegram-safe HTML.
    """
    if not text:
        return ""

    # Protect code blocks and inline code from the other rewrites
    code_blocks: list[str] = []

    def save_code_block(m: re.Match) -> str:
        code_blocks.append(m.group(1))
        return f"\x00CB{len(code_blocks) - 1}\x00"

    text = re.sub(r"```[\w]*\n?([\s\S]*?)```", save_code_block, text)

    inline_codes: list[str] = []

    def save_inline_code(m: re.Match) -> str:
        inline_codes.append(m.group(1))
        return f"\x00IC{len(inline_codes) - 1}\x00"

    text = re.sub(r"`([^`]+)`", save_inline_code, text)

    # Headers and blockquotes become plain lines
    text = re.sub(r"^#{1,6}\s+(.+)$", r"\1", text, flags=re.MULTILINE)
    text = re.sub(r"^>\s*(.*)$", r"\1", text, flags=re.MULTILINE)

    text = _escape_html(text)

    text = re.sub(r"\[([^\]]+)\]\(([^)]+)\)", r'<a href="\2">\1</a>', text)
    text = re.sub(r"\*\*(.+?)\*\*", r"<b>\1</b>", text)
    text = re.sub(r"__(.+?)__", r"<b>\1</b>", text)
    # Avoid matching inside words like some_var_name
    text = re.sub(r"(?<![a-zA-Z0-9])_([^_]+)_(?![a-zA-Z0-9])", r"<i>\1</i>", text)
    text = re.sub(r"~~(.+?)~~", r"<s>\1</s>", text)
    text = re.sub(r"^[-*]\s+", "• ", text, flags=re.MULTILINE)

    for i, code in enumerate(inline_codes):
        text = text.replace(f"\x00IC{i}\x00", f"<code>{_escape_html(code)}</code>")
    for i, code in enumerate(code_blocks):
        text = text.replace(f"\x00CB{i}\x00", f"<pre><code>{_escape_html(code)}</code></pre>")

    return text


def split_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split a long message into chunks, keeping code fences balanced per chunk."""
    if len(text) <= max_length:
        return [text]

    chunks = []
    current: list[str] = []
    current_length = 0
    in_code_block = False
    fence_lang = ""

    for line in text.split("\n"):
        is_fence = line.strip().startswith("```")
        if is_fence:
            in_code_block = not in_code_block
            fence_lang = line.strip()[3:] if in_code_block else ""

        line_len = len(line) + 1
        # Leave room for the closing fence added when a chunk ends inside a code block
        reserve = 4 if in_code_block and not is_fence else 0
        if current_length + line_len + reserve > max_length and current:
            if in_code_block and not is_fence:
                current.append("```")
                chunks.append("\n".join(current))
                current = [f"```{fence_lang}", line]
                current_length = len(current[0]) + 1 + line_len
            else:
                chunks.append("\n".join(current))
                current = [line]
                current_length = line_len
        else:
            current.append(line)
            current_length += line_len

    if current:
        chunks.append("\n".join(current))

    # Hard split for single lines that are still too long
    final_chunks = []
    for chunk in chunks:
        if len(chunk) > max_length:
            final_chunks.extend(chunk[i:i + max_length] for i in range(0, len(chunk), max_length))
        else:
            final_chunks.append(chunk)
    return final_chunks


class TelegramChannel(BaseChannel):
    """
    Telegram channel using long polling.

    Simple and reliable - no webhook/public IP needed. The sender id is the
    numeric Telegram user id, which is what permission rules refer to.
    """

    name = "telegram"

    BOT_COMMANDS = [
        BotCommand("start", "Start the bot"),
        BotCommand("help", "Show available commands"),
    ]

    def __init__(self, config: TelegramConfig, bus: MessageBus):
        super().__init__(config, bus)
        self.config: TelegramConfig = config
        self._app: Application | None = None
        self._typing_tasks: dict[str, asyncio.Task] = {}

    async def start(self) -> None:
        """Start the Telegram bot with long polling."""
        if not self.config.token:
            logger.error("Telegram bot token not configured")
            return

        self._running = True

        builder = Application.builder().token(self.config.token)
        if self.config.proxy:
            builder = builder.proxy(self.config.proxy).get_updates_proxy(self.config.proxy)
        self._app = builder.build()

        self._app.add_handler(CommandHandler("start", self._on_start))
        self._app.add_handler(CommandHandler("help", self._on_help))
        self._app.add_handler(
            MessageHandler(
                (filters.TEXT | filters.PHOTO | filters.VOICE | filters.AUDIO | filters.VIDEO | filters.Document.ALL)
                & ~filters.COMMAND,
                self._on_message,
            )
        )

        logger.info("Starting Telegram bot (polling mode)...")
        await self._app.initialize()
        await self._app.start()

        bot_info = await self._app.bot.get_me()
        logger.info(f"Telegram bot @{bot_info.username} connected")

        try:
            await self._app.bot.set_my_commands(self.BOT_COMMANDS)
        except Exception as e:
            logger.warning(f"Failed to register bot commands: {e}")

        await self._app.updater.start_polling(
            allowed_updates=["message"],
            drop_pending_updates=True,  # Ignore old messages on startup
        )

        while self._running:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        self._running = False

        for chat_id in list(self._typing_tasks):
            self._stop_typing(chat_id)

        if self._app:
            logger.info("Stopping Telegram bot...")
            await self._app.updater.stop()
            await self._app.stop()
            await self._app.shutdown()
            self._app = None

    async def send_message(self, chat_id: str, text: str) -> None:
        """Send text, split into Telegram-sized chunks, as HTML with a plain-text fallback."""
        if not self._app:
            logger.warning("Telegram bot not running")
            return

        self._stop_typing(chat_id)
        if not text or not text.strip():
            return

        target = int(chat_id)
        chunks = split_message(text)
        for i, chunk in enumerate(chunks):
            try:
                await self._app.bot.send_message(
                    chat_id=target,
                    text=markdown_to_telegram_html(chunk),
                    parse_mode="HTML",
                )
            except Exception as e:
                logger.warning(f"HTML parse failed for chunk {i + 1}/{len(chunks)}, falling back to plain text: {e}")
                await self._app.bot.send_message(chat_id=target, text=chunk)

    async def _on_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /start command."""
        if not update.message or not update.effective_user:
            return

        user = update.effective_user
        await update.message.reply_text(
            f"{__logo__} Hi {user.first_name}! I'm AgentPilot.\n\n"
            "Tell me what to do and I'll use my tools to do it.\n"
            "Type /help to see available commands."
        )

    async def _on_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /help command."""
        if not update.message:
            return

        help_text = (
            f"{__logo__} <b>AgentPilot commands</b>\n\n"
            "/start - Start the bot\n"
            "/help - Show this help message\n\n"
            "Some actions ask for confirmation first. Reply <b>yes</b> to proceed."
        )
        await update.message.reply_text(help_text, parse_mode="HTML")

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle incoming messages (text, photos, voice, documents)."""
        if not update.message or not update.effective_user:
            return

        message = update.message
        user = update.effective_user

        content_parts = []
        if message.text:
            content_parts.append(message.text)
        if message.caption:
            content_parts.append(message.caption)

        attachments = []
        attachment = self._describe_media(message)
        if attachment:
            attachments.append(attachment)
            content_parts.append(f"[{attachment.type}: {attachment.name}]")

        content = "\n".join(content_parts) if content_parts else "[empty message]"
        chat_id = str(message.chat_id)
        logger.debug(f"Telegram message from {user.id}: {content[:50]}...")

        self._start_typing(chat_id)
        await self._handle_message(
            sender_id=str(user.id),
            chat_id=chat_id,
            content=content,
            attachments=attachments,
            username=user.username,
        )

    @staticmethod
    def _describe_media(message) -> Attachment | None:
        if message.photo:
            photo = message.photo[-1]  # Largest photo
            return Attachment("image", photo.file_id, f"{photo.file_unique_id}.jpg", "image/jpeg", photo.file_size or 0)
        for kind, media in (
            ("audio", message.voice),
            ("audio", message.audio),
            ("video", message.video),
            ("file", message.document),
        ):
            if media:
                name = getattr(media, "file_name", None) or media.file_unique_id
                mime = getattr(media, "mime_type", None) or "application/octet-stream"
                return Attachment(kind, media.file_id, name, mime, media.file_size or 0)
        return None

    def _start_typing(self, chat_id: str) -> None:
        """Start sending 'typing...' indicator for a chat."""
        self._stop_typing(chat_id)
        self._typing_tasks[chat_id] = asyncio.create_task(self._typing_loop(chat_id))

    def _stop_typing(self, chat_id: str) -> None:
        task = self._typing_tasks.pop(chat_id, None)
        if task and not task.done():
            task.cancel()

    async def _typing_loop(self, chat_id: str) -> None:
        """Repeatedly send 'typing' action until cancelled."""
        try:
            while self._app:
                await self._app.bot.send_chat_action(chat_id=int(chat_id), action="typing")
                await asyncio.sleep(4)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Typing indicator stopped for {chat_id}: {e}")
