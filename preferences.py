from enum import Enum

from database import Storage

LANGUAGE_KEY = "language"


class Language(str, Enum):
    EN = "en"
    AR = "ar"

    @property
    def direction(self) -> str:
        return "rtl" if self is Language.AR else "ltr"


def get_language(storage: Storage) -> Language:
    try:
        return Language(storage.get_item(LANGUAGE_KEY))
    except ValueError:
        return Language.EN


def set_language(storage: Storage, language: Language) -> Language:
    language = Language(language)
    storage.set_item(LANGUAGE_KEY, language.value)
    return language


def toggle_language(storage: Storage) -> Language:
    current = get_language(storage)
    return set_language(storage, Language.AR if current is Language.EN else Language.EN)
