"""
Unit tests for keyword concept extraction.
"""

import pytest

from recall.study.concepts import MAX_CONCEPTS, extract_concepts, tokenize


class TestTokenize:
    def test_lowercases_and_strips_punctuation(self):
        assert tokenize("TCP/IP Handshake, three-way!") == [
            "tcp", "ip", "handshake", "three", "way"
        ]

    def test_keeps_digits_and_underscores(self):
        assert tokenize("IPv6 link_local") == ["ipv6", "link_local"]


class TestExtractConcepts:
    """Tests for extract_concepts()."""

    def test_drops_short_tokens_and_stop_words(self):
        assert extract_concepts("What is the OSI model?") == ["model"]

    def test_punctuation_splits_words(self):
        assert extract_concepts("TCP/IP handshake, three-way!") == ["handshake", "three"]

    def test_duplicates_removed_first_seen_order(self):
        assert extract_concepts("router routing Router ROUTING") == ["router", "routing"]

    def test_at_most_five_concepts(self):
        concepts = extract_concepts("alpha bravo charlie delta echoes foxtrot")

        assert len(concepts) == MAX_CONCEPTS
        assert concepts == ["alpha", "bravo", "charlie", "delta", "echoes"]

    def test_only_stop_words_yields_nothing(self):
        assert extract_concepts("this would have been there") == []

    def test_empty_text(self):
        assert extract_concepts("") == []

    def test_unicode_letters_kept(self):
        assert extract_concepts("Café résumé") == ["café", "résumé"]

    def test_hints_move_matches_first(self):
        concepts = extract_concepts("ethernet switching vlans routing", ["rout"])
        assert concepts == ["routing", "ethernet", "switching", "vlans"]

    def test_hint_containing_token_matches(self):
        concepts = extract_concepts("ethernet switching vlans", ["switchingfabric"])
        assert concepts[0] == "switching"

    def test_hints_keep_relative_order(self):
        concepts = extract_concepts("alpha vlans bravo vlan_id charlie", ["vlan"])
        assert concepts == ["vlans", "vlan_id", "alpha", "bravo", "charlie"]

    def test_hints_can_pull_sixth_token_into_result(self):
        concepts = extract_concepts("alpha bravo charlie delta echoes subnet", ["subnet"])
        assert concepts == ["subnet", "alpha", "bravo", "charlie", "delta"]

    @pytest.mark.parametrize(
        "text",
        ["Subnet masks divide networks", "OSPF areas reduce LSA flooding", ""],
    )
    def test_deterministic(self, text):
        assert extract_concepts(text) == extract_concepts(text)
