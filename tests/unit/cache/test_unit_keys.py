# tests/unit/cache/test_unit_keys.py - v2
"""Tests for cache/keys.py - key codec, origin aliasing and truncation."""

from __future__ import annotations

import pytest

from alldocs.cache.keys import (
    KeyCodec,
    create_key,
    create_packument_key,
    create_partition_key,
    decode_key,
    decode_origin,
    decode_segment,
    encode_origin,
    encode_segment,
    key_prefix,
    packument_key_for_origin,
    truncate_segment,
)
from alldocs.core.errors import InvalidKeyFormat, KeyFormatError, UnknownKeyType


class TestSegments:
    def test_encode_is_lowercase_hex(self):
        assert encode_segment("lodash") == "6c6f64617368"

    @pytest.mark.parametrize("name", ["lodash", "@babel/core", "ünïcödé", "a:b~c"])
    def test_round_trip(self, name):
        assert decode_segment(encode_segment(name)) == name

    def test_empty(self):
        assert encode_segment("") == ""
        assert encode_segment(None) == ""
        assert decode_segment("") == ""

    def test_decode_rejects_non_hex(self):
        with pytest.raises(InvalidKeyFormat):
            decode_segment("zz")

    def test_truncate(self):
        assert truncate_segment("npmjs") == "npmjs"
        assert truncate_segment("packages") == "pac" + "es"


class TestOrigins:
    @pytest.mark.parametrize("url", [
        "https://registry.npmjs.com",
        "https://registry.npmjs.org",
        "https://replicate.npmjs.com",
        "https://registry.npmjs.org/",
        "registry.npmjs.org",
    ])
    def test_npm_aliases(self, url):
        assert encode_origin(url) == "npm"

    def test_truncated_host_and_path(self):
        assert encode_origin("https://packages.example.com/javascript") == "paces.exale.com~javpt"

    def test_encode_is_idempotent(self):
        key = encode_origin("https://packages.example.com/javascript")
        assert encode_origin(key) == key

    def test_http_and_port(self):
        assert encode_origin("http://localhost:4873") == "http~locst~4873"
        assert decode_origin("http~locst~4873") == "http://locst:4873"

    @pytest.mark.parametrize("url", [
        "http://verdaccio:4873",
        "http://localhost:4873/npm/private",
        "https://verdaccio",
        "https://packages.example.com:8443/javascript",
    ])
    def test_single_label_and_port_origins_are_idempotent(self, url):
        once = encode_origin(url)
        assert encode_origin(once) == once
        assert not decode_origin(once).startswith("<legacy:")

    def test_single_label_host_decodes(self):
        assert encode_origin("http://verdaccio:4873") == "http~verio~4873"
        assert decode_origin("http~verio~4873") == "http://verio:4873"

    def test_separators_in_path_are_replaced(self):
        origin = encode_origin("https://example.com/a:b/c~d")
        assert origin == "exale.com~a_b~c_d"
        assert encode_origin(origin) == origin

    def test_unsafe_host_characters_are_replaced(self):
        assert encode_origin("https://my_reg.example.com") == "my-eg.exale.com"

    def test_decode_npm(self):
        assert decode_origin("npm") == "https://registry.npmjs.com"

    def test_decode_is_lossy(self):
        assert decode_origin("paces.exale.com~javpt") == "https://paces.exale.com/javpt"

    def test_decode_legacy(self):
        assert decode_origin("weird_origin!") == "<legacy:weird_origin!>"

    def test_custom_aliases(self):
        codec = KeyCodec(
            aliases=frozenset({"npm.internal.example"}),
            canonical_url="https://npm.internal.example",
        )
        assert codec.encode_origin("https://npm.internal.example") == "npm"
        assert codec.encode_origin("https://registry.npmjs.org") == "regry.npmjs.org"
        assert codec.decode_origin("npm") == "https://npm.internal.example"


class TestKeys:
    def test_packument_key(self):
        assert create_packument_key("lodash") == "v1:packument:npm:6c6f64617368"

    def test_packument_key_is_deterministic(self):
        a = create_packument_key("lodash", "https://registry.npmjs.org")
        b = create_packument_key("lodash", "https://registry.npmjs.com")
        assert a == b

    def test_packument_key_for_encoded_origin(self):
        key = packument_key_for_origin("lodash", "paces.exale.com~javpt")
        assert key == "v1:packument:paces.exale.com~javpt:6c6f64617368"

    def test_partition_key(self):
        assert create_partition_key("a", "b") == "v1:partition:npm:61:62"

    def test_create_key_dispatch(self):
        assert create_key("packument", name="lodash") == create_packument_key("lodash")
        assert create_key("partition", start_key="a", end_key="b") == create_partition_key("a", "b")

    def test_create_key_unknown_type(self):
        with pytest.raises(UnknownKeyType):
            create_key("widget", name="x")

    def test_key_prefix(self):
        assert key_prefix("packument", "npm") == "v1:packument:npm:"
        assert create_packument_key("lodash").startswith(key_prefix("packument", "npm"))


class TestDecodeKey:
    def test_origin_with_colon_in_path_round_trips(self):
        key = create_packument_key("lodash", "https://example.com/a:b")
        assert key == "v1:packument:exale.com~a_b:6c6f64617368"
        decoded = decode_key(key)
        assert decoded.origin_key == "exale.com~a_b"
        assert decoded.name == "lodash"

    def test_packument(self):
        decoded = decode_key(create_packument_key("@types/node"))
        assert decoded.version == "v1"
        assert decoded.entity_type == "packument"
        assert decoded.origin_key == "npm"
        assert decoded.origin == "https://registry.npmjs.com"
        assert decoded.name == "@types/node"

    def test_partition(self):
        decoded = decode_key(create_partition_key("a", "b"))
        assert decoded.entity_type == "partition"
        assert (decoded.start_key, decoded.end_key) == ("a", "b")

    def test_partition_open_bounds(self):
        decoded = decode_key(create_partition_key("", "m"))
        assert decoded.start_key == ""
        assert decoded.end_key == "m"

    @pytest.mark.parametrize("key", [
        "v1:packument:npm",
        "x1:packument:npm:61",
        "v1:packument:npm:61:62",
        "v1:partition:npm:61",
        "v1:packument:npm:zz",
    ])
    def test_invalid(self, key):
        with pytest.raises(InvalidKeyFormat):
            decode_key(key)

    def test_unknown_type(self):
        with pytest.raises(UnknownKeyType):
            decode_key("v1:widget:npm:61")

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            decode_key("nope")
        assert issubclass(KeyFormatError, ValueError)
