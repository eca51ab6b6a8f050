import json
import logging
import os
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

FALLBACK_LANGUAGE = "en"


def supported_languages(lang_dir: str, allowed: Iterable[str] = ()) -> List[str]:
    """
    List language codes that have a translation file in lang_dir.
    When allowed is non-empty only those codes are kept.
    """
    try:
        names = os.listdir(lang_dir)
    except OSError as exc:
        logger.warning("Cannot list translations in %s: %s", lang_dir, exc)
        return [FALLBACK_LANGUAGE]

    languages = sorted(
        name[: -len(".json")].lower() for name in names if name.endswith(".json")
    )
    allowed = {code.lower() for code in allowed}
    if allowed:
        languages = [code for code in languages if code in allowed]
    return languages or [FALLBACK_LANGUAGE]


def load_messages(lang_dir: str, lang: str) -> Dict[str, str]:
    path = os.path.join(lang_dir, f"{lang}.json")
    try:
        with open(path, encoding="utf-8") as handle:
            messages = json.load(handle)
    except (OSError, ValueError) as exc:
        if lang == FALLBACK_LANGUAGE:
            logger.error("Cannot load fallback translations %s: %s", path, exc)
            return {}
        logger.warning("Cannot load translations %s, using %s: %s", path, FALLBACK_LANGUAGE, exc)
        return load_messages(lang_dir, FALLBACK_LANGUAGE)
    return {str(key): str(value) for key, value in messages.items()}


def preferred_languages(accept: Iterable[Tuple[str, float]]) -> List[str]:
    """Language tags from a parsed Accept-Language header, highest quality first."""
    ranked = sorted(
        ((value, quality) for value, quality in accept if quality > 0 and value != "*"),
        key=lambda item: item[1],
        reverse=True,
    )
    return [value for value, _ in ranked]


def resolve_language(
    session_lang: Optional[str],
    accepted: Sequence[str],
    supported: Iterable[str],
    default: str = FALLBACK_LANGUAGE,
) -> str:
    """
    Pick the page language.
    Priority:
      1. language stored in the session
      2. primary subtag of the highest-quality Accept-Language tag
      3. default
    """
    supported = set(supported)
    if session_lang and session_lang in supported:
        return session_lang

    if accepted:
        lang = accepted[0][:2].lower()
        if lang in supported:
            return lang

    return default if default in supported else FALLBACK_LANGUAGE
