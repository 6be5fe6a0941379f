"""
Tests for range-gated numeric extraction.
"""

import pytest

from chainprobe.config.config import PlausibleRange
from chainprobe.extractor.numeric import extract_numeric

GAS = PlausibleRange(min=0, max=100)


class TestExtractNumeric:
    def test_first_in_range_unit_match_wins(self):
        hit = extract_numeric("spike 150 gwei, now 12 gwei", "gwei", GAS)
        assert hit.value == 12
        assert hit.raw == "12 gwei"

    def test_out_of_range_only_value_is_rejected(self):
        assert extract_numeric("150 gwei", "gwei", GAS) is None

    def test_out_of_range_unit_match_blocks_bare_fallback(self):
        assert extract_numeric("150 gwei at block 42", "gwei", GAS) is None

    def test_bare_fallback_when_no_unit_present(self):
        hit = extract_numeric("0.05", "gwei", GAS)
        assert hit.value == pytest.approx(0.05)

    def test_bare_fallback_only_considers_first_number(self):
        assert extract_numeric("Block 123456 then 12", "gwei", GAS) is None

    def test_range_bounds_are_exclusive(self):
        assert extract_numeric("0 gwei", "gwei", GAS) is None
        assert extract_numeric("100 gwei", "gwei", GAS) is None
        assert extract_numeric("99.99 gwei", "gwei", GAS).value == pytest.approx(99.99)

    def test_wei_amount_converted_before_range_check(self):
        hit = extract_numeric("26065600000 wei", "gwei", GAS)
        assert hit.value == pytest.approx(26.0656)

    @pytest.mark.parametrize("text", ["", None, "no numbers"])
    def test_empty_or_numberless(self, text):
        assert extract_numeric(text, "gwei", GAS) is None

    def test_accepts_any_range_like(self):
        class Everything:
            def contains(self, value):
                return True

        assert extract_numeric("150 gwei", "gwei", Everything()).value == 150
