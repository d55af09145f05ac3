from __future__ import annotations

import io
import unittest

from app.services.csv_reader import CSVFormatError, detect_delimiter, read_csv_stream


def _stream(text: str, encoding: str = "utf-8") -> io.BytesIO:
    return io.BytesIO(text.encode(encoding))


class TestDetectDelimiter(unittest.TestCase):
    def test_picks_the_delimiter_with_most_fields(self) -> None:
        self.assertEqual(detect_delimiter("a,b,c"), ",")
        self.assertEqual(detect_delimiter("a\tb\tc"), "\t")
        self.assertEqual(detect_delimiter("a;b;c"), ";")

    def test_single_column_defaults_to_comma(self) -> None:
        self.assertEqual(detect_delimiter("revenue"), ",")


class TestReadCSVStream(unittest.TestCase):
    def test_reads_headers_and_trimmed_rows(self) -> None:
        parsed = read_csv_stream(_stream("Week Start, Location ,Revenue\n2024-01-01, Downtown ,1000\n"))

        self.assertEqual(parsed.headers, ("Week Start", "Location", "Revenue"))
        self.assertEqual(parsed.rows, [{"Week Start": "2024-01-01", "Location": "Downtown", "Revenue": "1000"}])

    def test_semicolon_file_with_bom(self) -> None:
        parsed = read_csv_stream(_stream("\ufeffDate;Store;Revenue\n2024-01-01;A;\"1,000\"\n"))

        self.assertEqual(parsed.delimiter, ";")
        self.assertEqual(parsed.headers[0], "Date")
        self.assertEqual(parsed.rows[0]["Revenue"], "1,000")

    def test_blank_lines_and_empty_rows_are_dropped(self) -> None:
        parsed = read_csv_stream(_stream("a,b\n\n1,2\n , \n3\n"))

        self.assertEqual(parsed.rows, [{"a": "1", "b": "2"}, {"a": "3", "b": ""}])

    def test_empty_file_has_no_headers(self) -> None:
        self.assertEqual(read_csv_stream(_stream("")).headers, ())

    def test_duplicate_headers_are_rejected(self) -> None:
        with self.assertRaises(CSVFormatError):
            read_csv_stream(_stream("a,a\n1,2\n"))

    def test_size_limit(self) -> None:
        with self.assertRaises(CSVFormatError):
            read_csv_stream(_stream("a,b\n1,2\n"), max_bytes=4)

    def test_non_utf8_is_rejected(self) -> None:
        with self.assertRaises(CSVFormatError):
            read_csv_stream(io.BytesIO(b"a,b\n\xff\xfe,1\n"))


if __name__ == "__main__":
    unittest.main()
