"""
Unit Tests for InMemoryDocumentRepository
"""

from datetime import timedelta

import pytest

from device_spec_analyzer.adapters.secondary.in_memory_repository_adapter import (
    DocumentNotFoundError,
    RepositoryError,
)
from device_spec_analyzer.domain.models import (
    Document,
    DocumentContent,
    DocumentSection,
    DocumentStatus,
    SectionType,
    SimilarityResult,
    utcnow,
)


def add(repository, name, **kwargs):
    return repository.add(Document(file_name=name, file_hash=kwargs.pop("file_hash", name), **kwargs))


# ---------------------------------------------------------------------------
# ADD / UPDATE / DELETE
# ---------------------------------------------------------------------------


class TestMutations:

    def test_add_assigns_ids_and_stamps_children(self, repository):
        document = repository.add(Document(
            file_name="a.pdf",
            content=DocumentContent(extracted_text="text"),
            sections=[DocumentSection(SectionType.EXAMPLES, "example")],
        ))

        assert document.id == 1
        assert document.content.document_id == 1
        assert document.sections[0].document_id == 1
        assert add(repository, "b.pdf").id == 2

    def test_duplicate_file_name_is_rejected(self, repository):
        add(repository, "a.pdf")
        with pytest.raises(RepositoryError):
            add(repository, "a.pdf", file_hash="other")

    def test_returned_documents_are_copies(self, repository):
        document = add(repository, "a.pdf")
        document.status = DocumentStatus.FAILED

        assert repository.get_by_id(document.id).status == DocumentStatus.UPLOADED

    def test_update(self, repository):
        document = add(repository, "a.pdf")
        before = document.updated_at
        document.status = DocumentStatus.PROCESSED

        updated = repository.update(document)

        assert repository.get_by_id(document.id).status == DocumentStatus.PROCESSED
        assert updated.updated_at >= before

    def test_update_unknown_document(self, repository):
        with pytest.raises(DocumentNotFoundError):
            repository.update(Document(file_name="a.pdf", id=99))

    def test_delete_removes_similarity_results(self, repository):
        first, second = add(repository, "a.pdf"), add(repository, "b.pdf")
        repository.save_similarity_results([SimilarityResult(first.id, second.id, 0.5)])

        assert repository.delete(second.id) is True
        assert repository.get_similarity_results(first.id) == []
        assert repository.delete(second.id) is False


# ---------------------------------------------------------------------------
# QUERIES
# ---------------------------------------------------------------------------


class TestQueries:

    def test_lookups(self, repository):
        add(repository, "a.pdf", file_hash="h1", protocol="ASTM", manufacturer="Roche")
        add(repository, "b.pdf", file_hash="h2", protocol="HL7")

        assert repository.get_by_file_name("a.pdf").file_hash == "h1"
        assert repository.get_by_hash("h2").file_name == "b.pdf"
        assert repository.exists_by_file_name("b.pdf")
        assert not repository.exists_by_hash("h3")
        assert [d.file_name for d in repository.get_by_protocol("ASTM")] == ["a.pdf"]
        assert [d.file_name for d in repository.get_by_manufacturer("Roche")] == ["a.pdf"]
        assert repository.get_by_id(42) is None

    def test_newest_first(self, repository):
        now = utcnow()
        add(repository, "old.pdf", uploaded_at=now - timedelta(days=1))
        add(repository, "new.pdf", uploaded_at=now)

        assert [d.file_name for d in repository.get_all()] == ["new.pdf", "old.pdf"]
        assert [d.file_name for d in repository.get_recent(1)] == ["new.pdf"]

    def test_search(self, repository):
        add(repository, "poct.pdf", device_name="i-STAT")
        add(repository, "lis.pdf", content=DocumentContent(extracted_text="x", keywords="Header Record, H"))

        assert [d.file_name for d in repository.search("STAT")] == ["poct.pdf"]
        assert [d.file_name for d in repository.search("header record")] == ["lis.pdf"]
        assert len(repository.search("  ")) == 2

    def test_count_by_status(self, repository):
        add(repository, "a.pdf", status=DocumentStatus.PROCESSED)
        add(repository, "b.pdf", status=DocumentStatus.PROCESSED)
        add(repository, "c.pdf", status=DocumentStatus.FAILED)

        counts = repository.count_by_status()

        assert counts[DocumentStatus.PROCESSED] == 2
        assert counts[DocumentStatus.FAILED] == 1
        assert counts[DocumentStatus.UPLOADED] == 0


# ---------------------------------------------------------------------------
# SIMILARITY RESULTS
# ---------------------------------------------------------------------------


class TestSimilarityResults:

    def test_results_sorted_and_replaced_per_pair(self, repository):
        a, b, c = add(repository, "a.pdf"), add(repository, "b.pdf"), add(repository, "c.pdf")
        repository.save_similarity_results([SimilarityResult(a.id, b.id, 0.2), SimilarityResult(a.id, c.id, 0.7)])
        first_id = repository.get_similarity_results(a.id)[1].id

        repository.save_similarity_results([SimilarityResult(a.id, b.id, 0.9)])
        results = repository.get_similarity_results(a.id)

        assert [(r.target_document_id, r.overall_similarity_score) for r in results] == [(b.id, 0.9), (c.id, 0.7)]
        assert results[0].id == first_id

    def test_unsaved_documents_are_rejected(self, repository):
        with pytest.raises(RepositoryError):
            repository.save_similarity_results([SimilarityResult(None, 1)])

    def test_replace_drops_pairs_missing_from_new_results(self, repository):
        a, b, c = add(repository, "a.pdf"), add(repository, "b.pdf"), add(repository, "c.pdf")
        repository.save_similarity_results([SimilarityResult(a.id, b.id, 0.2), SimilarityResult(a.id, c.id, 0.7)])
        repository.save_similarity_results([SimilarityResult(b.id, c.id, 0.5)])
        kept_id = repository.get_similarity_results(a.id)[0].id

        repository.replace_similarity_results(a.id, [SimilarityResult(a.id, c.id, 0.6)])

        results = repository.get_similarity_results(a.id)
        assert [(r.target_document_id, r.overall_similarity_score) for r in results] == [(c.id, 0.6)]
        assert results[0].id == kept_id
        assert len(repository.get_similarity_results(b.id)) == 1

    def test_replace_with_nothing_clears_the_source(self, repository):
        a, b = add(repository, "a.pdf"), add(repository, "b.pdf")
        repository.save_similarity_results([SimilarityResult(a.id, b.id, 0.4)])

        repository.replace_similarity_results(a.id, [])

        assert repository.get_similarity_results(a.id) == []

    def test_replace_rejects_results_of_another_source(self, repository):
        a, b = add(repository, "a.pdf"), add(repository, "b.pdf")
        repository.save_similarity_results([SimilarityResult(a.id, b.id, 0.4)])

        with pytest.raises(RepositoryError):
            repository.replace_similarity_results(a.id, [SimilarityResult(b.id, a.id, 0.4)])

        assert len(repository.get_similarity_results(a.id)) == 1
