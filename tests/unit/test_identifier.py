import pytest

from wiki_llm.errors import MalformedPathError
from wiki_llm.ingest.identifier import IdentifierParser, collection_for, expand_two_digit_year


def test_parse_strips_pages_dir_and_extension() -> None:
    parser = IdentifierParser("/data/pages")

    assert parser.parse("/data/pages/reports/mri/2024/g287-jane-doe.txt") == "reports:mri:2024:g287-jane-doe"
    assert parser.parse("reports//mri/start.txt") == "reports:mri:start"


def test_parse_rejects_paths_without_segments() -> None:
    parser = IdentifierParser("/data/pages/")

    with pytest.raises(MalformedPathError):
        parser.parse("/data/pages/.txt")


def test_year_and_registration_convention() -> None:
    parser = IdentifierParser(default_institution="county")

    metadata = parser.extract_metadata("reports:mri:2024:g287-jane-doe")

    assert metadata == {
        "document_id": "reports:mri:2024:g287-jane-doe",
        "type": "report",
        "modality": "mri",
        "year": "2024",
        "institution": "county",
        "registration": "g287",
        "name": "jane doe",
    }


def test_institution_and_date_convention() -> None:
    metadata = IdentifierParser().extract_metadata("reports:mri:medima:250620-ion-popescu")

    assert metadata["institution"] == "medima"
    assert metadata["date"] == "2020-06-25"
    assert metadata["name"] == "ion popescu"
    assert "year" not in metadata


def test_templates_carry_no_institution_or_date() -> None:
    metadata = IdentifierParser().extract_metadata("reports:mri:templates:cerebral-ct")

    assert metadata["type"] == "template"
    assert metadata["modality"] == "mri"
    assert metadata["name"] == "cerebral ct"
    assert "institution" not in metadata
    assert "date" not in metadata


@pytest.mark.parametrize(
    ("stamp", "expected"),
    [("010170", "2070-01-01"), ("010171", "1971-01-01"), ("010100", "2000-01-01")],
)
def test_two_digit_year_boundary(stamp: str, expected: str) -> None:
    metadata = IdentifierParser().extract_metadata(f"reports:ct:clinic:{stamp}-name")

    assert metadata["date"] == expected


def test_expand_two_digit_year() -> None:
    assert expand_two_digit_year("70") == "2070"
    assert expand_two_digit_year("71") == "1971"


@pytest.mark.parametrize("document_id", ["start", "a:b", "a:b:c", "a:b:c:d:e", "x:y:42:no-digits-here"])
def test_extract_metadata_never_raises(document_id: str) -> None:
    metadata = IdentifierParser().extract_metadata(document_id)

    assert metadata["document_id"] == document_id
    assert metadata["type"] == "report"


def test_collection_for_uses_first_segment() -> None:
    assert collection_for("reports:mri:2024:g287-jane-doe") == "reports"
    assert collection_for("playground:draft") == "documents"
    assert collection_for("") == "documents"
