"""Tests for text extraction and the document store."""
import json

import pytest
from pypdf import PdfWriter

from docchat.documents import DocumentStore
from docchat.errors import DocumentParseError, UnsupportedFileTypeError
from docchat.rag.extract import extract_text, is_supported


def test_txt_read_verbatim(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("line one\nline two\n", encoding="utf-8")

    assert extract_text(path) == "line one\nline two\n"


def test_csv_rows_joined_and_blank_rows_skipped(tmp_path):
    path = tmp_path / "table.csv"
    path.write_text('name,city\nAda,"London, UK"\n\n,\nAlan,Wilmslow\n', encoding="utf-8")

    assert extract_text(path) == "name, city\nAda, London, UK\nAlan, Wilmslow"


def test_json_pretty_printed(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"a": [1, 2]}), encoding="utf-8")

    assert extract_text(path) == '{\n  "a": [\n    1,\n    2\n  ]\n}'


def test_pdf_pages_extracted(tmp_path):
    path = tmp_path / "blank.pdf"
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    with open(path, "wb") as f:
        writer.write(f)

    assert extract_text(path).strip() == ""


def test_extension_matching_is_case_insensitive(tmp_path):
    path = tmp_path / "NOTES.TXT"
    path.write_text("hello", encoding="utf-8")

    assert is_supported(path)
    assert extract_text(path) == "hello"


def test_unsupported_type_rejected(tmp_path):
    path = tmp_path / "image.png"
    path.write_bytes(b"\x89PNG")

    assert not is_supported(path)
    with pytest.raises(UnsupportedFileTypeError):
        extract_text(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        extract_text(tmp_path / "gone.txt")


def test_document_store_saves_under_base_name(tmp_path):
    store = DocumentStore(tmp_path / "shared")

    dest = store.save("../../etc/report.txt", b"hello")

    assert dest == tmp_path / "shared" / "report.txt"
    assert dest.read_bytes() == b"hello"


@pytest.mark.parametrize("name", ["", "..", "/"])
def test_document_store_rejects_unusable_names(tmp_path, name):
    store = DocumentStore(tmp_path / "shared")

    with pytest.raises(ValueError):
        store.save(name, b"data")


def test_document_store_lists_files_sorted(tmp_path):
    store = DocumentStore(tmp_path / "shared")
    store.save("b.pdf", b"12345")
    store.save("a.txt", b"12")
    (tmp_path / "shared" / "subdir").mkdir()

    docs = [d.to_dict() for d in store.list_documents()]

    assert [(d["name"], d["type"], d["size"]) for d in docs] == [
        ("a.txt", "txt", 2),
        ("b.pdf", "pdf", 5),
    ]
    assert "T" in docs[0]["uploadDate"]


@pytest.mark.parametrize(
    "name, content",
    [
        ("bad.txt", b"\xff\xfe\xfa"),
        ("bad.csv", b"a,b\n\xff\xfe\n"),
        ("bad.json", b"{not json"),
        ("bad.pdf", b"not a pdf"),
    ],
)
def test_malformed_documents_raise_parse_error(tmp_path, name, content):
    path = tmp_path / name
    path.write_bytes(content)

    with pytest.raises(DocumentParseError):
        extract_text(path)
