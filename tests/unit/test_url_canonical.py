"""Tests for URL canonicalization and content ids"""

from __future__ import annotations

import hashlib

import pytest

from keepli.capture.url import (
    canonicalize,
    compute_url_hash,
    content_hash,
    derive_embed_url,
    derive_source,
    derive_title,
    fnv1a_32,
)


class TestCanonicalize:
    def test_strips_tracking_params_and_fragment(self):
        assert canonicalize("https://example.com/p/123?utm_source=x#frag") == "https://example.com/p/123"

    def test_keeps_other_params_in_order(self):
        url = "https://www.linkedin.com/feed/update/urn:li:activity:1?b=2&trk=abc&a=1&utm_medium=x#c"
        assert canonicalize(url) == "https://www.linkedin.com/feed/update/urn:li:activity:1?b=2&a=1"

    def test_tracking_match_is_case_insensitive(self):
        assert canonicalize("https://example.com/?UTM_Source=x&Li_fat_id=1&TRK=2") == "https://example.com/"

    def test_exact_name_patterns_do_not_match_prefixes(self):
        url = "https://example.com/a?trackingId=7&trkInfo=1&tracking=0"
        assert canonicalize(url) == "https://example.com/a?trackingId=7&trkInfo=1"

    def test_percent_encoded_tracking_key_is_removed(self):
        assert canonicalize("https://example.com/a?utm%5Fsource=x&q=1") == "https://example.com/a?q=1"

    def test_preserves_encoding_of_kept_params(self):
        assert canonicalize("https://example.com/a?q=a%20b+c&utm_id=1") == "https://example.com/a?q=a%20b+c"

    @pytest.mark.parametrize(
        "url",
        [
            "/relative/path?utm_source=x",
            "not a url",
            "",
            "http://[::1",
        ],
    )
    def test_non_absolute_or_malformed_input_is_unchanged(self, url):
        assert canonicalize(url) == url

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("HTTPS://Example.COM/p/1", "https://example.com/p/1"),
            ("https://example.com", "https://example.com/"),
            ("https://example.com?utm_source=x", "https://example.com/"),
            ("https://Example.com:443/p/1", "https://example.com/p/1"),
            ("http://example.com:8080/P/1", "http://example.com:8080/P/1"),
            ("https://User:Pw@Example.com/p", "https://User:Pw@example.com/p"),
        ],
    )
    def test_scheme_host_and_root_path_are_normalized(self, url, expected):
        assert canonicalize(url) == expected

    def test_host_case_and_root_path_share_a_content_id(self):
        assert compute_url_hash("HTTPS://Example.COM/p/1") == compute_url_hash("https://example.com/p/1")
        assert compute_url_hash("https://example.com") == compute_url_hash("https://example.com/")

    def test_is_idempotent(self):
        url = "https://example.com/p?x=1&utm_campaign=spring#top"
        once = canonicalize(url)
        assert canonicalize(once) == once

    def test_tracking_variants_share_a_content_id(self):
        a = compute_url_hash("https://example.com/p/123?utm_source=x#frag")
        b = compute_url_hash("https://example.com/p/123?li_fat_id=9")
        c = compute_url_hash("https://example.com/p/123")
        assert a == b == c

    def test_different_posts_have_different_ids(self):
        assert compute_url_hash("https://example.com/p/1") != compute_url_hash("https://example.com/p/2")


class TestContentHash:
    def test_sha1_hex(self):
        url = "https://example.com/p/123"
        assert content_hash(url) == hashlib.sha1(url.encode("utf-8")).hexdigest()
        assert len(content_hash(url)) == 40

    def test_deterministic(self):
        assert content_hash("https://example.com/x") == content_hash("https://example.com/x")

    def test_falls_back_to_fnv_without_sha1(self, monkeypatch):
        def _unavailable(*args, **kwargs):
            raise ValueError("unsupported hash type sha1")

        monkeypatch.setattr(hashlib, "sha1", _unavailable)

        url = "https://example.com/p/123"
        assert content_hash(url) == fnv1a_32(url)
        assert content_hash(url) == content_hash(url)

    def test_fnv_known_values(self):
        assert fnv1a_32("") == "811c9dc5"
        assert fnv1a_32("a") == "e40c292c"

    def test_fnv_is_lowercase_unpadded_hex(self):
        value = fnv1a_32("https://example.com/p/123")
        assert value == value.lower()
        assert 1 <= len(value) <= 8
        int(value, 16)


class TestDerivedFields:
    def test_linkedin_source(self):
        assert derive_source("https://www.linkedin.com/posts/abc") == "linkedin"
        assert derive_source("https://example.com/blog") == "web"

    def test_embed_url_for_feed_updates(self):
        url = "https://www.linkedin.com/feed/update/urn:li:activity:42"
        assert derive_embed_url(url) == "https://www.linkedin.com/embed/feed/update/urn:li:activity:42"

    def test_no_embed_url_elsewhere(self):
        assert derive_embed_url("https://www.linkedin.com/posts/abc") is None
        assert derive_embed_url("https://example.com/feed/update/1") is None

    def test_title_prefers_explicit_title(self):
        assert derive_title("  Hello  ", "body", "https://example.com") == "Hello"

    def test_title_falls_back_to_post_opening(self):
        body = "x" * 500
        assert derive_title(None, body, "https://example.com") == "x" * 320

    def test_title_falls_back_to_url(self):
        assert derive_title("   ", "", "https://example.com/p") == "https://example.com/p"
