"""Tests for preview masking of locked contact fields."""

import pytest

from lead_kernel.domain.masking import mask_email, mask_name, mask_phone


class TestMaskEmail:

    def test_keeps_first_letter_and_domain(self):
        assert mask_email("jane.doe@acme.com") == "j***@acme.com"

    def test_no_at_sign(self):
        assert mask_email("not-an-email") == "***"

    def test_empty_local_part(self):
        assert mask_email("@acme.com") == "***"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_passthrough(self, value):
        assert mask_email(value) == value


class TestMaskPhone:

    def test_last_two_digits(self):
        assert mask_phone("(555) 010-4477") == "***-**77"

    def test_too_few_digits(self):
        assert mask_phone("ext 5") == "***"

    def test_none(self):
        assert mask_phone(None) is None


class TestMaskName:

    def test_initials(self):
        assert mask_name("Jane Doe") == "J*** D***"

    def test_extra_whitespace(self):
        assert mask_name("  Li   Wei ") == "L*** W***"

    def test_none(self):
        assert mask_name(None) is None
