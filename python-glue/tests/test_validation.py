"""Tests for identifier and payload validation"""

import pytest

from ordinals_data.bitcoin import (
    format_api_url,
    validate_block_info,
    validate_block_number,
    validate_inscription_id,
)
from ordinals_data.errors import InvalidRequestError, MalformedResponseError

from fixtures.upstream import INSCRIPTION_ID, block_payload


class TestBlockNumber:
    """Test block height validation"""

    def test_valid_height(self):
        assert validate_block_number(800000) == 800000
        assert validate_block_number(767430) == 767430

    def test_below_minimum(self):
        with pytest.raises(InvalidRequestError):
            validate_block_number(767429)

    def test_custom_minimum(self):
        assert validate_block_number(0, min_height=0) == 0

    def test_beyond_tip(self):
        assert validate_block_number(850010, tip=850000) == 850010
        with pytest.raises(InvalidRequestError):
            validate_block_number(850011, tip=850000)

    @pytest.mark.parametrize("value", ["800000", 800000.0, True, None])
    def test_non_integer(self, value):
        with pytest.raises(InvalidRequestError):
            validate_block_number(value)


class TestInscriptionId:
    """Test inscription ID validation"""

    def test_valid(self):
        assert validate_inscription_id(INSCRIPTION_ID) == INSCRIPTION_ID
        assert validate_inscription_id("A" * 64 + "i42")

    @pytest.mark.parametrize("value", [
        "",
        "abc",
        "g" * 64 + "i0",
        "a" * 63 + "i0",
        "a" * 64,
        "a" * 64 + "i",
        "a" * 64 + "i0x",
        None,
    ])
    def test_invalid(self, value):
        with pytest.raises(InvalidRequestError):
            validate_inscription_id(value)


class TestBlockInfo:
    """Test upstream block payload parsing"""

    def test_parses_payload(self):
        info = validate_block_info(block_payload(800000, nonce=42))
        assert info.height == 800000
        assert info.nonce == 42
        assert info.size == 1582030

    def test_unknown_fields_ignored(self):
        info = validate_block_info(block_payload(extra_field="x"))
        assert not hasattr(info, "extra_field")

    @pytest.mark.parametrize("overrides", [
        {"hash": "not-a-hash"},
        {"height": -1},
        {"timestamp": "yesterday"},
    ])
    def test_invalid_payload(self, overrides):
        with pytest.raises(MalformedResponseError):
            validate_block_info(block_payload(**overrides))

    def test_missing_field(self):
        payload = block_payload()
        del payload["merkle_root"]
        with pytest.raises(MalformedResponseError):
            validate_block_info(payload)


class TestFormatApiUrl:
    """Test endpoint templating"""

    def test_substitutes_placeholders(self):
        assert format_api_url("/r/blockinfo/{blockNumber}", {"blockNumber": "800000"}) == "/r/blockinfo/800000"

    def test_encodes_values(self):
        assert format_api_url("/content/{inscriptionId}", {"inscriptionId": "a/b c"}) == "/content/a%2Fb%20c"
