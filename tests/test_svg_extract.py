import pytest

from svg_service import extract_svg_code, split_data_uri


@pytest.mark.parametrize("raw, expected", [
    ('<svg viewBox="0 0 24 24"><path d="M0 0"/></svg>', '<svg viewBox="0 0 24 24"><path d="M0 0"/></svg>'),
    ("Here you go:\n<svg><rect/></svg>\nEnjoy!", "<svg><rect/></svg>"),
    ('Sure! ```svg\n<svg width="10" height="10"></svg>```', '<svg width="10" height="10"></svg>'),
])
def test_extracts_embedded_svg(raw, expected):
    assert extract_svg_code(raw) == expected


def test_first_block_wins():
    raw = "<svg>A</svg> and <svg>B</svg>"
    assert extract_svg_code(raw) == "<svg>A</svg>"


def test_nested_svg_is_cut_at_first_closing_tag():
    raw = "<svg><svg>inner</svg>outer</svg>"
    assert extract_svg_code(raw) == "<svg><svg>inner</svg>"


def test_tag_name_is_case_sensitive():
    raw = "<SVG>upper</SVG>"
    # no lowercase match, so the '<' fallback applies
    assert extract_svg_code(raw) == raw


def test_fallback_returns_trimmed_markup():
    assert extract_svg_code("  \n<g><path d='M1 1'/></g>\n ") == "<g><path d='M1 1'/></g>"


def test_unclosed_svg_falls_back_to_trimmed_text():
    assert extract_svg_code(" <svg viewBox='0 0 24 24'>") == "<svg viewBox='0 0 24 24'>"


@pytest.mark.parametrize("raw", ["", "   ", "I cannot draw that.", "Sure: <svg> no end"])
def test_no_svg_yields_empty(raw):
    assert extract_svg_code(raw) == ""


def test_split_data_uri_detects_jpeg():
    mime, data = split_data_uri("data:image/jpeg;base64,aGVsbG8=")
    assert mime == "image/jpeg"
    assert data == b"hello"


def test_split_data_uri_defaults_to_png():
    mime, _ = split_data_uri("data:image/webp;base64,aGVsbG8=")
    assert mime == "image/png"


def test_split_data_uri_rejects_garbage():
    with pytest.raises(ValueError):
        split_data_uri("not a data uri")
