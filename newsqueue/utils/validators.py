"""
NewsQueue Input Validators
=========================

Input validation utilities for source links, subscriber IDs, file paths and
outgoing Telegram messages.
"""

import re
from urllib.parse import urlparse, urlunparse
from typing import List
from pathlib import Path

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and normalization utilities."""

    ALLOWED_SCHEMES = {'http', 'https'}

    SUSPICIOUS_PATTERNS = [
        r'^javascript:',
        r'^data:',
        r'^file:',
        r'^ftp:',
    ]

    @classmethod
    def validate_source_url(cls, url: str) -> str:
        """Validate and normalize a source or item link.

        Scheme and host are lowercased and the fragment dropped; the path and
        query are kept verbatim so the result stays a canonical link.

        Args:
            url: URL to validate

        Returns:
            Normalized URL

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url"
            )

        url = url.strip()
        url_lower = url.lower()

        if any(re.search(pattern, url_lower) for pattern in cls.SUSPICIOUS_PATTERNS):
            raise ValidationError(
                "URL contains suspicious patterns",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        parsed = urlparse(url)

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be one of {sorted(cls.ALLOWED_SCHEMES)}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        if not parsed.netloc:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        return urlunparse(parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            fragment=''
        ))

    @classmethod
    def source_name(cls, url: str) -> str:
        """Display name of a source: last path segment without ``.xml``."""
        path = urlparse(url).path.rstrip('/')
        name = path.rsplit('/', 1)[-1] if path else urlparse(url).netloc
        if name.endswith('.xml'):
            name = name[:-len('.xml')]
        return name


class SubscriberValidator:
    """Subscriber identifier validation."""

    MAX_ID_LENGTH = 64

    @classmethod
    def validate_subscriber_id(cls, subscriber_id: str) -> str:
        """Validate an opaque subscriber (chat) ID.

        Args:
            subscriber_id: Subscriber ID to validate

        Returns:
            Stripped subscriber ID

        Raises:
            ValidationError: If the ID is empty, too long or contains whitespace
        """
        if subscriber_id is None or not isinstance(subscriber_id, str) or not subscriber_id.strip():
            raise ValidationError(
                "Subscriber ID is required",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="subscriber_id"
            )

        subscriber_id = subscriber_id.strip()

        if len(subscriber_id) > cls.MAX_ID_LENGTH:
            raise ValidationError(
                f"Subscriber ID cannot exceed {cls.MAX_ID_LENGTH} characters",
                error_code=ErrorCode.VALIDATION_OUT_OF_RANGE,
                field_name="subscriber_id"
            )

        if re.search(r'\s', subscriber_id):
            raise ValidationError(
                "Subscriber ID cannot contain whitespace",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="subscriber_id"
            )

        return subscriber_id


class TelegramValidator:
    """Telegram-specific validation utilities."""

    MAX_MESSAGE_LENGTH = 4096

    @classmethod
    def split_message(cls, content: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
        """Split message content into parts Telegram accepts.

        Parts are cut at the last newline before the limit when there is one,
        otherwise at the limit itself.

        Raises:
            ValidationError: If content is empty
        """
        if not content or not content.strip():
            raise ValidationError(
                "Message content is required",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="message_content"
            )

        parts = []
        remaining = content
        while len(remaining) > limit:
            cut = remaining.rfind('\n', 0, limit)
            if cut <= 0:
                cut = limit
            parts.append(remaining[:cut])
            remaining = remaining[cut:].lstrip('\n')
        if remaining:
            parts.append(remaining)
        return parts

    @classmethod
    def sanitize_markdown(cls, text: str) -> str:
        """Escape characters that legacy Telegram Markdown treats as markup."""
        for char in ('\\', '_', '*', '`', '['):
            text = text.replace(char, f'\\{char}')
        return text


def validate_file_path(file_path: str, must_exist: bool = False) -> Path:
    """Validate file path.

    Args:
        file_path: File path to validate
        must_exist: Whether the file must already exist

    Returns:
        Validated Path object

    Raises:
        ValidationError: If path is invalid
    """
    if not file_path or not isinstance(file_path, str):
        raise ValidationError(
            "File path is required",
            error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
            field_name="file_path"
        )

    path = Path(file_path).expanduser()

    if must_exist and not path.is_file():
        raise ValidationError(
            f"File does not exist: {file_path}",
            error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
            field_name="file_path"
        )

    return path
