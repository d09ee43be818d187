"""Named field transformers and validators used by cleaning rules."""
import re
from typing import Any, Awaitable, Callable, Dict, Optional, Union
from urllib.parse import urlparse

from ..utils.dates import parse_date

TransformFunction = Callable[..., Union[Any, Awaitable[Any]]]
ValidatorFunction = Callable[[Any], Union[bool, Awaitable[bool]]]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)]+$")
URL_PREFIX_PATTERN = re.compile(r"^https?://")
SPECIAL_CHARS_PATTERN = re.compile(r"[^a-zA-Z0-9\s]")
NON_NUMERIC_PATTERN = re.compile(r"[^0-9.\-]")


def _uppercase(value: Any, parameters: Optional[Dict[str, Any]] = None) -> Any:
    return value.upper() if isinstance(value, str) else value


def _lowercase(value: Any, parameters: Optional[Dict[str, Any]] = None) -> Any:
    return value.lower() if isinstance(value, str) else value


def _trim(value: Any, parameters: Optional[Dict[str, Any]] = None) -> Any:
    return value.strip() if isinstance(value, str) else value


def _remove_special_chars(value: Any, parameters: Optional[Dict[str, Any]] = None) -> Any:
    return SPECIAL_CHARS_PATTERN.sub("", value) if isinstance(value, str) else value


def _parse_number(value: Any, parameters: Optional[Dict[str, Any]] = None) -> Any:
    """Strip everything but digits, dots and minus signs and parse.

    Returns the original value when nothing numeric is left. Never raises.
    """
    if not isinstance(value, str):
        return value
    cleaned = NON_NUMERIC_PATTERN.sub("", value)
    # Keep the leading numeric prefix, e.g. "1.2.3" -> 1.2
    match = re.match(r"-?\d*\.?\d+|-?\d+", cleaned)
    if not match:
        return value
    number = float(match.group(0))
    return int(number) if number.is_integer() and "." not in match.group(0) else number


def is_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value))


def is_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def is_phone(value: Any) -> bool:
    return isinstance(value, str) and bool(PHONE_PATTERN.match(value))


def is_date(value: Any) -> bool:
    return parse_date(value) is not None


class FunctionRegistry:
    """Name to function lookup for transformers and validators.

    Registering an existing name replaces the previous entry. Functions may
    be plain callables or coroutine functions.
    """

    def __init__(self, with_builtins: bool = True):
        self._transformers: Dict[str, TransformFunction] = {}
        self._validators: Dict[str, ValidatorFunction] = {}
        if with_builtins:
            self._register_builtins()

    def _register_builtins(self) -> None:
        self.register_transformer("uppercase", _uppercase)
        self.register_transformer("lowercase", _lowercase)
        self.register_transformer("trim", _trim)
        self.register_transformer("removeSpecialChars", _remove_special_chars)
        self.register_transformer("parseNumber", _parse_number)

        self.register_validator("email", is_email)
        self.register_validator("url", is_url)
        self.register_validator("phone", is_phone)
        self.register_validator("date", is_date)

    def register_transformer(self, name: str, func: TransformFunction) -> None:
        self._transformers[name] = func

    def register_validator(self, name: str, func: ValidatorFunction) -> None:
        self._validators[name] = func

    def get_transformer(self, name: str) -> Optional[TransformFunction]:
        return self._transformers.get(name)

    def get_validator(self, name: str) -> Optional[ValidatorFunction]:
        return self._validators.get(name)

    @property
    def transformer_names(self) -> list:
        return sorted(self._transformers)

    @property
    def validator_names(self) -> list:
        return sorted(self._validators)
