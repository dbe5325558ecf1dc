"""Configuration validators for GDSC."""

import logging
import re
from typing import Any

from .models import ITEM_CAP_PRESETS, SCOPE_CURRENT, SCOPE_GLOBAL, TimeRange

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


class ConfigValidator:
    """Base class for configuration validators."""

    def validate(self, value: Any) -> Any:
        """Validate and normalize a configuration value.

        Args:
            value: Raw configuration value

        Returns:
            Validated and normalized value

        Raises:
            ValidationError: If validation fails
        """
        raise NotImplementedError


class FolderIdValidator(ConfigValidator):
    """Validates a Drive folder ID (URL-safe characters only)."""

    PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

    def validate(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"Folder ID must be a string, got: {type(value)}")

        folder_id = value.strip()

        if not folder_id:
            raise ValidationError("Folder ID cannot be empty")

        if not self.PATTERN.match(folder_id):
            raise ValidationError(
                f"Folder ID may only contain letters, digits, '-' and '_', got: {folder_id}"
            )

        return folder_id


class TimeRangeValidator(ConfigValidator):
    """Validates a time range preset (days or 'all')."""

    def validate(self, value: Any) -> str:
        try:
            return TimeRange.parse(value).value
        except ValueError:
            choices = ', '.join(member.value for member in TimeRange)
            raise ValidationError(f"Invalid time range: {value}. Must be one of: {choices}")


class ItemCapValidator(ConfigValidator):
    """Validates the item cap: a positive integer or 'all'."""

    MAX_CAP = 100000

    def validate(self, value: Any):
        if isinstance(value, str) and value.strip().lower() == 'all':
            return 'all'

        try:
            cap = int(value)
        except (ValueError, TypeError):
            raise ValidationError(f"Item cap must be an integer or 'all', got: {value}")

        if cap < 1:
            raise ValidationError("Item cap must be at least 1")

        if cap > self.MAX_CAP:
            raise ValidationError(f"Item cap must be at most {self.MAX_CAP}")

        if cap not in ITEM_CAP_PRESETS:
            logger.debug(f"Item cap {cap} is not one of the presets {ITEM_CAP_PRESETS}")

        return cap


class ScopeValidator(ConfigValidator):
    """Validates the search scope."""

    VALID_SCOPES = {SCOPE_CURRENT, SCOPE_GLOBAL}

    def validate(self, value: Any) -> str:
        if not isinstance(value, str) or value.strip().lower() not in self.VALID_SCOPES:
            raise ValidationError(
                f"Invalid search scope: {value}. Must be one of: {', '.join(sorted(self.VALID_SCOPES))}"
            )
        return value.strip().lower()


class LogLevelValidator(ConfigValidator):
    """Validates log level."""

    VALID_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}

    def validate(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"Log level must be a string, got: {type(value)}")

        level = value.upper()

        if level not in self.VALID_LEVELS:
            raise ValidationError(
                f"Invalid log level: {value}. Must be one of: {', '.join(sorted(self.VALID_LEVELS))}"
            )

        return level


class BooleanValidator(ConfigValidator):
    """Validates boolean values."""

    TRUE_VALUES = {'true', '1', 'yes', 'on', 'enabled'}
    FALSE_VALUES = {'false', '0', 'no', 'off', 'disabled'}

    def validate(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value

        if isinstance(value, str):
            normalized = value.lower().strip()

            if normalized in self.TRUE_VALUES:
                return True

            if normalized in self.FALSE_VALUES:
                return False

            raise ValidationError(
                f"Invalid boolean value: {value}. Expected: true/false, yes/no, 1/0, on/off, enabled/disabled"
            )

        if isinstance(value, int):
            return bool(value)

        raise ValidationError(f"Cannot convert to boolean: {value}")


class IntegerValidator(ConfigValidator):
    """Validates integer values with optional min/max bounds."""

    def __init__(self, min_value: int = None, max_value: int = None):
        self.min_value = min_value
        self.max_value = max_value

    def validate(self, value: Any) -> int:
        try:
            int_value = int(value)
        except (ValueError, TypeError):
            raise ValidationError(f"Must be an integer, got: {value}")

        if self.min_value is not None and int_value < self.min_value:
            raise ValidationError(
                f"Must be at least {self.min_value}, got: {int_value}"
            )

        if self.max_value is not None and int_value > self.max_value:
            raise ValidationError(
                f"Must be at most {self.max_value}, got: {int_value}"
            )

        return int_value


class StringValidator(ConfigValidator):
    """Validates string values with optional constraints."""

    def __init__(self, min_length: int = 0, max_length: int = None, allow_empty: bool = True):
        self.min_length = min_length
        self.max_length = max_length
        self.allow_empty = allow_empty

    def validate(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"Must be a string, got: {type(value)}")

        if not self.allow_empty and not value.strip():
            raise ValidationError("Cannot be empty")

        if len(value) < self.min_length:
            raise ValidationError(
                f"Must be at least {self.min_length} characters, got: {len(value)}"
            )

        if self.max_length is not None and len(value) > self.max_length:
            raise ValidationError(
                f"Must be at most {self.max_length} characters, got: {len(value)}"
            )

        return value


# Registry of validators for known config keys
VALIDATORS = {
    'root_folder_id': FolderIdValidator(),
    'root_name': StringValidator(max_length=200, allow_empty=False),
    'time_range': TimeRangeValidator(),
    'item_cap': ItemCapValidator(),
    'search_scope': ScopeValidator(),
    'auto_widen': BooleanValidator(),
    'enrichment_batch_size': IntegerValidator(min_value=1, max_value=100),
    'log_level': LogLevelValidator(),
}


def validate_config_value(key: str, value: Any) -> Any:
    """Validate a configuration value using registered validators.

    Args:
        key: Configuration key
        value: Value to validate

    Returns:
        Validated and normalized value

    Raises:
        ValidationError: If validation fails
    """
    if key in VALIDATORS:
        return VALIDATORS[key].validate(value)

    # Unknown keys pass through unchanged
    return value
