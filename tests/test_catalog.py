"""Tests for the content catalog."""

import json
import random

import pytest

from starsbot.domain.catalog import CatalogError, ContentKind, load_catalog
from starsbot.settings import PACKAGE_DATA_DIR

from .helpers import make_catalog


class TestPackagedCatalog:
    """The catalog shipped with the package loads and is complete."""

    def test_loads(self):
        catalog = load_catalog(PACKAGE_DATA_DIR, rng=random.Random(1))
        assert catalog.photos
        assert catalog.videos
        for locale in ("it", "es", "en"):
            assert catalog.audio[locale]
            assert catalog.captions[locale]
            assert catalog.start_message(locale)

    def test_prices_positive(self):
        catalog = load_catalog(PACKAGE_DATA_DIR)
        for kind in ContentKind:
            assert catalog.price_for(kind) > 0

    def test_advertisement_has_url(self):
        adv = load_catalog(PACKAGE_DATA_DIR).advertisement("en")
        assert adv.url.startswith("https://")
        assert adv.file_id


class TestSelection:
    def test_audio_is_locale_specific(self):
        catalog = make_catalog()
        assert catalog.pick_asset(ContentKind.AUDIO, "it") == "audio-it"
        assert catalog.pick_asset(ContentKind.AUDIO, "es") == "audio-es"

    def test_photo_shared_across_locales(self):
        catalog = make_catalog()
        assert catalog.pick_asset(ContentKind.PHOTO, "it") == "photo-1"
        assert catalog.pick_asset(ContentKind.PHOTO, "en") == "photo-1"

    def test_caption_falls_back_to_english(self):
        assert make_catalog().pick_caption("de") == "Look at this"

    def test_selection_uses_injected_rng(self):
        first = load_catalog(PACKAGE_DATA_DIR, rng=random.Random(3))
        second = load_catalog(PACKAGE_DATA_DIR, rng=random.Random(3))
        picks_a = [first.pick_caption("en") for _ in range(5)]
        picks_b = [second.pick_caption("en") for _ in range(5)]
        assert picks_a == picks_b


class TestLoadErrors:
    def _write_catalog(self, directory):
        for name in ("photo", "video", "audio_it", "audio_es", "audio_en"):
            (directory / f"{name}.json").write_text(json.dumps([f"{name}-id"]))
        for locale in ("it", "es", "en"):
            (directory / f"caption_{locale}.json").write_text(json.dumps(["c"]))
        (directory / "start.json").write_text(json.dumps({"en": "Hi"}))
        (directory / "prices.json").write_text(json.dumps({"photo": 1, "audio": 2, "video": 3}))
        (directory / "adv.json").write_text(
            json.dumps({"url": "https://x", "languages": {"en": {"file_id": "f", "caption": "c", "cta": "go"}}})
        )

    def test_minimal_catalog_loads(self, tmp_path):
        self._write_catalog(tmp_path)
        catalog = load_catalog(tmp_path)
        assert catalog.prices == {"photo": 1, "audio": 2, "video": 3}

    def test_missing_file(self, tmp_path):
        self._write_catalog(tmp_path)
        (tmp_path / "video.json").unlink()
        with pytest.raises(CatalogError, match="video.json"):
            load_catalog(tmp_path)

    def test_invalid_json(self, tmp_path):
        self._write_catalog(tmp_path)
        (tmp_path / "photo.json").write_text("[not json")
        with pytest.raises(CatalogError, match="invalid JSON"):
            load_catalog(tmp_path)

    def test_missing_price(self, tmp_path):
        self._write_catalog(tmp_path)
        (tmp_path / "prices.json").write_text(json.dumps({"photo": 1}))
        with pytest.raises(CatalogError, match="prices.json"):
            load_catalog(tmp_path)

    def test_wrong_list_shape(self, tmp_path):
        self._write_catalog(tmp_path)
        (tmp_path / "caption_es.json").write_text(json.dumps({"a": 1}))
        with pytest.raises(CatalogError, match="list of strings"):
            load_catalog(tmp_path)

    def test_empty_pool_raises_on_pick(self, tmp_path):
        self._write_catalog(tmp_path)
        (tmp_path / "video.json").write_text("[]")
        catalog = load_catalog(tmp_path)
        with pytest.raises(CatalogError, match="no videos"):
            catalog.pick_asset(ContentKind.VIDEO, "en")
