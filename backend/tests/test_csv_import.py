"""CSV helper tests."""

import pytest

from packtrack.utils.csv_import import (
    coerce_positive_int,
    decode_upload,
    detect_header_row,
    generate_template_csv,
    normalize_header,
    parse_csv_rows,
)


@pytest.mark.unit
class TestCsvHelpers:

    def test_decode_strips_bom(self):
        assert decode_upload("\ufeffCASE NO".encode("utf-8")) == "CASE NO"

    def test_parse_drops_blank_rows_and_trims(self):
        rows = parse_csv_rows(' a , b \n\n,,\n"c, d",e\n')
        assert rows == [["a", "b"], ["c, d", "e"]]

    @pytest.mark.parametrize("raw,expected", [
        ("CASE NO", "caseno"),
        ("Case No.", "caseno"),
        ("part-no", "partno"),
        (" QTY ", "qty"),
    ])
    def test_normalize_header(self, raw, expected):
        assert normalize_header(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("5", 5),
        ("5.0", 5),
        ("1,200", 1200),
        ("2.5", None),
        ("0", None),
        ("-3", None),
        ("", None),
        ("abc", None),
    ])
    def test_coerce_positive_int(self, raw, expected):
        assert coerce_positive_int(raw) == expected

    def test_detect_header_row(self):
        rows = [["Packing list"], ["Case", "Part", "Qty"], ["C1", "A001", "1"]]
        assert detect_header_row(rows) == 1
        assert detect_header_row([["C1", "A001", "1"]]) is None

    def test_template(self):
        text = generate_template_csv(["CASE NO", "PART NO", "QTY"], [["C1", "A001", "1"]])
        assert text.splitlines() == ["CASE NO,PART NO,QTY", "C1,A001,1"]
