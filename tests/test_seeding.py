"""
Tests for seed derivation and the typed seed-key builder.

Expected integers were recorded from the browser implementation of the rater.
"""

import pytest
from hypothesis import given, settings, strategies as st

from rad_rater.seeding import SeedContext, SeedPurpose, derive_seed, stable_hash


class TestDeriveSeed:
    """Fixture values for the FNV-1a seed hash."""

    def test_recorded_sample_key(self):
        """The canonical sampling key maps to the recorded seed."""
        assert derive_seed("alice::rexgradient::sample") == 4091329984

    def test_other_dataset_differs(self):
        assert derive_seed("alice::chexpert::sample") == 3001646466

    def test_empty_string_is_offset_basis(self):
        assert derive_seed("") == 2166136261

    def test_single_character(self):
        assert derive_seed("a") == 3826002220

    def test_non_ascii_bmp(self):
        assert derive_seed("café") == 856211068

    def test_astral_character_hashes_both_surrogates(self):
        """Characters outside the BMP contribute two UTF-16 code units."""
        assert derive_seed("x😀") == 1908804170

    def test_alias(self):
        assert stable_hash is derive_seed

    @given(st.text())
    @settings(max_examples=200, deadline=1000)
    def test_pure_and_unsigned_32_bit(self, key):
        """For any string, the seed is repeatable and fits in 32 bits."""
        first = derive_seed(key)
        assert first == derive_seed(key)
        assert 0 <= first < 2 ** 32


class TestSeedContext:
    """Tests for SeedContext key rendering."""

    def test_sample_key_matches_legacy_format(self):
        context = SeedContext.sample("alice", "rexgradient")
        assert context.key() == "alice::rexgradient::sample"
        assert context.seed() == 4091329984
        assert str(context) == "alice::rexgradient::sample"

    def test_model_order_key(self):
        context = SeedContext.model_order("alice", "rexgradient", "case-1")
        assert context.key() == "alice::rexgradient::case-1::modelorder"
        assert context.purpose is SeedPurpose.MODEL_ORDER

    def test_sample_context_rejects_case_id(self):
        with pytest.raises(ValueError):
            SeedContext(SeedPurpose.SAMPLE, "alice", "rexgradient", "case-1")

    def test_model_order_context_requires_case_id(self):
        with pytest.raises(ValueError):
            SeedContext(SeedPurpose.MODEL_ORDER, "alice", "rexgradient")

    def test_separator_in_fields_cannot_collide(self):
        """A user id containing '::' does not render like an extra field."""
        crafted = SeedContext.sample("alice::rexgradient", "x")
        plain = SeedContext.model_order("alice", "rexgradient", "x")
        assert crafted.key() != plain.key()
        assert crafted.key() == "alice\\:\\:rexgradient::x::sample"

    def test_backslashes_are_escaped(self):
        assert SeedContext.sample("a\\", "b").key() == "a\\\\::b::sample"

    @given(st.text(), st.text(), st.text(), st.text())
    @settings(max_examples=200, deadline=1000)
    def test_distinct_contexts_render_distinct_keys(self, user_a, scope_a, user_b, scope_b):
        a = SeedContext.sample(user_a, scope_a)
        b = SeedContext.sample(user_b, scope_b)
        if (user_a, scope_a) != (user_b, scope_b):
            assert a.key() != b.key()
        else:
            assert a.key() == b.key()
