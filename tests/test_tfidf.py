"""
Unit Tests for the TF-IDF vectorizer

Term extraction rules, term-frequency vectors, vocabulary filtering and
corpus-weighted TF-IDF.
"""

import math

import pytest
from hypothesis import given, strategies as st

from device_spec_analyzer.application.tfidf import TfIdfVectorizer, is_technical_term


@pytest.fixture
def vectorizer():
    return TfIdfVectorizer()


# ---------------------------------------------------------------------------
# TERM EXTRACTION
# ---------------------------------------------------------------------------


class TestExtractTerms:

    def test_drops_stop_words_numbers_and_short_terms(self, vectorizer):
        terms = vectorizer.extract_terms("The ASTM protocol uses 12 fields x")
        assert terms == ["ASTM", "Protocol", "uses", "fields"]

    def test_canonicalizes_technical_terms(self, vectorizer):
        assert vectorizer.extract_terms("astm Hl7 TCP") == ["ASTM", "HL7", "TCP"]

    def test_empty_text(self, vectorizer):
        assert vectorizer.extract_terms("") == []
        assert vectorizer.extract_terms("   ") == []
        assert vectorizer.extract_terms(None) == []

    def test_is_technical_term_is_case_insensitive(self):
        assert is_technical_term("record")
        assert is_technical_term("POCT1A")
        assert not is_technical_term("glucose")


# ---------------------------------------------------------------------------
# VECTORS
# ---------------------------------------------------------------------------


class TestCreateVector:

    def test_term_frequency_weights(self, vectorizer):
        vector = vectorizer.create_vector("astm astm record")
        assert vector == {"ASTM": pytest.approx(2 / 3), "Record": pytest.approx(1 / 3)}

    def test_vocabulary_restricts_keys_and_fills_zeros(self, vectorizer):
        vector = vectorizer.create_vector("astm record glucose", vocabulary=["ASTM", "HL7"])
        assert vector == {"ASTM": pytest.approx(1 / 3), "HL7": 0.0}

    def test_empty_text_gives_empty_vector(self, vectorizer):
        assert vectorizer.create_vector("") == {}


class TestExtractVocabulary:

    def test_keeps_technical_terms_and_mid_frequency_terms(self, vectorizer):
        vocabulary = vectorizer.extract_vocabulary(["astm glucose meter", "astm message meter"])
        # meter appears in every document (ratio 1.0) and is not technical
        assert vocabulary == ["ASTM", "Message", "glucose"]

    def test_short_non_technical_terms_are_dropped(self, vectorizer):
        vocabulary = vectorizer.extract_vocabulary(["ab glucose", "cd"])
        assert "ab" not in vocabulary
        assert "glucose" in vocabulary

    @given(st.lists(st.sampled_from(["astm record", "glucose meter", "hl7 segment", "lot number", "sample"]),
                    min_size=1, max_size=6))
    def test_vocabulary_is_independent_of_document_order(self, documents):
        vectorizer = TfIdfVectorizer()
        assert vectorizer.extract_vocabulary(documents) == vectorizer.extract_vocabulary(list(reversed(documents)))


class TestCalculateTfIdf:

    def test_terms_present_in_every_document_get_no_weight(self, vectorizer):
        weights = vectorizer.calculate_tfidf("glucose meter", ["glucose strip"])
        assert "glucose" not in weights
        assert weights["meter"] == pytest.approx(0.5 * math.log(2))

    def test_text_counts_as_part_of_the_corpus(self, vectorizer):
        weights = vectorizer.calculate_tfidf("glucose", [])
        assert weights == {}
