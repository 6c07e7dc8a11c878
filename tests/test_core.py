"""
Pure-function tests: slug derivation, the tag list codec, pagination
normalization and message negotiation.  No database involved.
"""
from datetime import datetime

import pytest

from conduit.i18n import MESSAGES, MessageCatalog
from conduit.services import tag_codec
from conduit.services.feed import ArticleRow, Page
from conduit.services.slugs import slugify


# ---------------------------------------------------------------------------
# slugify
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("title,expected", [
    ("My First Post", "my-first-post"),
    ("  Hello,   World!  ", "hello-world"),
    ("C++ & Rust: 2024 edition", "c-rust-2024-edition"),
    ("Crème brûlée", "creme-brulee"),
    ("already-a-slug", "already-a-slug"),
    ("--dashes--everywhere--", "dashes-everywhere"),
])
def test_slugify(title, expected):
    assert slugify(title) == expected


def test_slugify_is_deterministic():
    assert slugify("Same Title") == slugify("Same Title")


def test_slugify_output_alphabet():
    slug = slugify("Ünïcödé / tabs\tand\nnewlines ~ 100%")
    assert slug
    assert set(slug) <= set("abcdefghijklmnopqrstuvwxyz0123456789-")
    assert not slug.startswith("-") and not slug.endswith("-")
    assert "--" not in slug


def test_slugify_of_symbols_is_empty():
    assert slugify("!!! ???") == ""


# ---------------------------------------------------------------------------
# tag_codec
# ---------------------------------------------------------------------------

def test_encode_preserves_order():
    assert tag_codec.decode(tag_codec.encode(["python", "asyncio", "db"])) == ["python", "asyncio", "db"]


def test_encode_none_is_empty_list():
    assert tag_codec.encode(None) == "[]"
    assert tag_codec.decode(tag_codec.encode(None)) == []


def test_encode_strips_drops_blanks_and_dedupes():
    encoded = tag_codec.encode([" python ", "", "   ", "python", "db"])
    assert tag_codec.decode(encoded) == ["python", "db"]


def test_encode_keeps_unicode_readable():
    assert tag_codec.encode(["tiếng việt"]) == '["tiếng việt"]'


@pytest.mark.parametrize("field", [None, "", "not-json", "{\"a\": 1}", "[1, 2]", "\"python\"", "[\"ok\", null]"])
def test_decode_is_fail_soft(field):
    assert tag_codec.decode(field) == []


def test_tag_token_matches_whole_tag_only():
    encoded = tag_codec.encode(["python"])
    assert tag_codec.tag_token("python") in encoded
    assert tag_codec.tag_token("py") not in encoded


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------

def test_page_defaults():
    assert Page.parse() == Page(limit=20, offset=0)


@pytest.mark.parametrize("limit,offset,expected", [
    ("5", "10", Page(5, 10)),
    (5, 10, Page(5, 10)),
    ("abc", "xyz", Page(20, 0)),
    ("-5", "-1", Page(20, 0)),
    ("1.5", "2.5", Page(20, 0)),
    (" 7 ", None, Page(7, 0)),
    ("0", "0", Page(0, 0)),
    ("5", "99999999999999999999", Page(5, 0)),
    ("5", 2**63, Page(5, 0)),
    ("5", str(2**63 - 1), Page(5, 2**63 - 1)),
])
def test_page_parse_normalizes(limit, offset, expected):
    assert Page.parse(limit, offset) == expected


def test_page_limit_is_capped():
    assert Page.parse("100000").limit == 100


# ---------------------------------------------------------------------------
# ArticleRow cache form
# ---------------------------------------------------------------------------

def test_article_row_cache_form_drops_volatile_fields():
    row = ArticleRow(
        id=1, slug="s", title="T", description="", body="B", tag_list="[]",
        favorites_count=3, created_at=datetime(2024, 1, 2, 3, 4, 5),
        updated_at=datetime(2024, 1, 2, 3, 4, 5), author_id=9,
        author_username="alice", author_bio=None, author_image=None, favorited=True,
    )
    cached = row.to_cache()
    assert "favorited" not in cached
    assert "favorites_count" not in cached
    restored = ArticleRow.from_cache(cached)
    assert restored.favorited is False
    assert restored.created_at == row.created_at
    assert restored.favorites_count == 0
    assert restored.title == "T"


# ---------------------------------------------------------------------------
# MessageCatalog
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog():
    return MessageCatalog(MESSAGES, fallback="en")


def test_every_locale_has_every_key():
    keys = set(MESSAGES["en"])
    for locale, table in MESSAGES.items():
        assert set(table) == keys, locale


@pytest.mark.parametrize("header,expected", [
    (None, "en"),
    ("", "en"),
    ("vi", "vi"),
    ("vi-VN,vi;q=0.9", "vi"),
    ("ja-JP", "jp"),
    ("fr-FR, jp;q=0.5, vi;q=0.8", "vi"),
    ("de, fr", "en"),
    ("vi;q=0", "en"),
])
def test_negotiate(catalog, header, expected):
    assert catalog.negotiate(header) == expected


def test_translate_formats_params(catalog):
    assert catalog.translate("follow.already_following", "en", username="alice") == (
        "You are already following alice"
    )


def test_translate_falls_back_to_key(catalog):
    assert catalog.translate("no.such.key", "vi") == "no.such.key"


def test_translate_falls_back_to_default_locale(catalog):
    assert catalog.translate("article.not_found", "xx") == "Article not found"
