"""Locale registry: installed locales, default locale and the caller's current locale."""

import abc
import logging
from contextvars import ContextVar
from typing import Dict, List, Optional

from pydantic import BaseModel

from lingopages.services.errors import PageValidationError

logger = logging.getLogger(__name__)

# Per-task current locale; unset means the default locale.
_current_locale: ContextVar[Optional[str]] = ContextVar("current_locale", default=None)


class LocaleModel(BaseModel):
    code: str
    display_name: str


class LocaleService(abc.ABC):
    @abc.abstractmethod
    async def get_locales(self) -> List[LocaleModel]: ...

    @abc.abstractmethod
    async def get_current_locale(self) -> str: ...

    @abc.abstractmethod
    async def set_current_locale(self, code: str) -> None: ...

    @abc.abstractmethod
    async def get_default_locale(self) -> str: ...

    @abc.abstractmethod
    async def is_localization_enabled(self) -> bool: ...


class SettingsLocaleService(LocaleService):
    """Locale registry configured from application settings."""

    def __init__(
        self,
        locales: List[str],
        default_locale: str,
        enabled: bool = True,
        display_names: Optional[Dict[str, str]] = None,
    ) -> None:
        if default_locale not in locales:
            raise ValueError(f"Default locale '{default_locale}' is not among installed locales {locales}.")
        self._locales = list(locales)
        self._default_locale = default_locale
        self._enabled = enabled
        self._display_names = display_names or {}

    async def get_locales(self) -> List[LocaleModel]:
        return [
            LocaleModel(code=code, display_name=self._display_names.get(code, code))
            for code in self._locales
        ]

    async def get_current_locale(self) -> str:
        return _current_locale.get() or self._default_locale

    async def set_current_locale(self, code: str) -> None:
        if code not in self._locales:
            raise PageValidationError(f"Locale '{code}' is not installed.")
        _current_locale.set(code)

    async def get_default_locale(self) -> str:
        return self._default_locale

    async def is_localization_enabled(self) -> bool:
        return self._enabled
