"""Static content catalog.

Read-only tables loaded from JSON files:
- photo.json, video.json: Telegram file ids (shared by every locale)
- audio_{it,es,en}.json: audio file ids per locale
- caption_{it,es,en}.json: caption pools per locale
- start.json: /start message per locale
- adv.json: advertisement (url + per-locale file_id/caption/cta)
- prices.json: Stars price per content kind

Selection is uniform-random through an injectable random.Random.
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .access import SUPPORTED_LOCALES


class ContentKind(str, Enum):
    PHOTO = "photo"
    AUDIO = "audio"
    VIDEO = "video"


class CatalogError(Exception):
    """Raised when the catalog files are missing or malformed."""

    pass


@dataclass(frozen=True)
class Advertisement:
    """One localized advertisement."""

    file_id: str
    caption: str
    cta: str
    url: str


@dataclass(frozen=True)
class ContentCatalog:
    photos: tuple[str, ...]
    videos: tuple[str, ...]
    audio: dict[str, tuple[str, ...]]
    captions: dict[str, tuple[str, ...]]
    start_messages: dict[str, str]
    advertisements: dict[str, Advertisement]
    prices: dict[str, int]
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def price_for(self, kind: ContentKind) -> int:
        return self.prices[kind.value]

    def _choose(self, pool: tuple[str, ...], what: str) -> str:
        if not pool:
            raise CatalogError(f"catalog has no {what}")
        return self.rng.choice(pool)

    def pick_asset(self, kind: ContentKind, locale: str) -> str:
        """Random file id for `kind`. Audio is locale-specific."""
        if kind is ContentKind.PHOTO:
            return self._choose(self.photos, "photos")
        if kind is ContentKind.VIDEO:
            return self._choose(self.videos, "videos")
        pool = self.audio.get(locale) or self.audio.get("en", ())
        return self._choose(pool, f"audio for {locale}")

    def pick_caption(self, locale: str) -> str:
        pool = self.captions.get(locale) or self.captions.get("en", ())
        return self._choose(pool, f"captions for {locale}")

    def start_message(self, locale: str) -> str:
        return self.start_messages.get(locale) or self.start_messages["en"]

    def advertisement(self, locale: str = "en") -> Advertisement:
        return self.advertisements.get(locale) or self.advertisements["en"]


def _read_json(directory: Path, name: str) -> Any:
    path = directory / name
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise CatalogError(f"missing catalog file: {name}") from None
    except json.JSONDecodeError as e:
        raise CatalogError(f"invalid JSON in {name}: {e.msg}") from e


def _string_list(directory: Path, name: str) -> tuple[str, ...]:
    data = _read_json(directory, name)
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise CatalogError(f"{name} must be a list of strings")
    return tuple(data)


def load_catalog(directory: Path, rng: random.Random | None = None) -> ContentCatalog:
    """Load every catalog table from `directory`.

    Raises:
        CatalogError: If a file is missing or has the wrong shape.
    """
    adv = _read_json(directory, "adv.json")
    try:
        advertisements = {
            locale: Advertisement(
                file_id=entry["file_id"],
                caption=entry["caption"],
                cta=entry["cta"],
                url=adv["url"],
            )
            for locale, entry in adv["languages"].items()
        }
    except (KeyError, TypeError) as e:
        raise CatalogError(f"adv.json is malformed: {e}") from e

    prices = _read_json(directory, "prices.json")
    try:
        prices = {kind.value: int(prices[kind.value]) for kind in ContentKind}
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogError(f"prices.json is malformed: {e}") from e

    start = _read_json(directory, "start.json")
    if not isinstance(start, dict) or "en" not in start:
        raise CatalogError("start.json must map locales to messages and include 'en'")
    if "en" not in advertisements:
        raise CatalogError("adv.json must include an 'en' advertisement")

    return ContentCatalog(
        photos=_string_list(directory, "photo.json"),
        videos=_string_list(directory, "video.json"),
        audio={locale: _string_list(directory, f"audio_{locale}.json") for locale in SUPPORTED_LOCALES},
        captions={
            locale: _string_list(directory, f"caption_{locale}.json") for locale in SUPPORTED_LOCALES
        },
        start_messages=dict(start),
        advertisements=advertisements,
        prices=prices,
        rng=rng or random.Random(),
    )
