"""
Tests for annostudio/upload_utils.py: file preview, duplicate detection, header comparison.
"""

import io
import unittest

import pandas as pd

from annostudio import upload_utils
from annostudio.exceptions import UploadError
from annostudio.models import CSVImport


class TestFileFormat(unittest.TestCase):

    def test_supported_extensions(self):
        self.assertEqual(upload_utils.file_format("data.CSV"), "csv")
        self.assertEqual(upload_utils.file_format("book.xlsx"), "xlsx")
        self.assertEqual(upload_utils.file_format("old.xls"), "xls")

    def test_unsupported_extension_rejected(self):
        with self.assertRaises(UploadError):
            upload_utils.file_format("notes.txt")
        with self.assertRaises(UploadError):
            upload_utils.file_format("no_extension")


class TestDuplicateColumns(unittest.TestCase):

    def test_each_duplicate_reported_once(self):
        cols = ["id", "name", "id", "email", "name", "id"]
        self.assertEqual(upload_utils.find_duplicate_columns(cols), ["id", "name"])

    def test_blank_headers_are_not_duplicates(self):
        cols = ["a", "", " ", "b"]
        self.assertEqual(upload_utils.find_duplicate_columns(cols), [])
        self.assertEqual(upload_utils.find_unnamed_columns(cols), [1, 2])

    def test_display_columns_are_unique(self):
        self.assertEqual(
            upload_utils.display_columns(["a", "a", "", "a"]),
            ["a", "a (2)", "Unnamed: 2", "a (3)"],
        )


class TestBuildPreview(unittest.TestCase):

    def test_duplicate_headers_produce_warning_and_block_upload(self):
        content = b"id,name,id\n1,Alice,10\n2,Bob,20\n"
        preview = upload_utils.build_preview("people.csv", content)
        self.assertEqual(preview.columns, ["id", "name", "id"])
        self.assertEqual(preview.duplicate_columns, ["id"])
        self.assertFalse(preview.can_upload)
        self.assertTrue(any("Duplicate column names found: id" in w for w in preview.warnings))

    def test_preview_rows_and_counts(self):
        lines = ["text,label"] + [f"row {i},pos" for i in range(8)]
        content = ("\n".join(lines) + "\n").encode("utf-8")
        preview = upload_utils.build_preview("reviews.csv", content)
        self.assertEqual(preview.file_format, "csv")
        self.assertEqual(preview.total_rows, 8)
        self.assertEqual(len(preview.sample_rows), 5)
        self.assertEqual(preview.sample_rows[0], {"text": "row 0", "label": "pos"})
        self.assertTrue(preview.can_upload)
        self.assertEqual(preview.warnings, [])

    def test_semicolon_delimiter_is_sniffed(self):
        content = b"a;b;c\n1;2;3\n"
        preview = upload_utils.build_preview("semi.csv", content)
        self.assertEqual(preview.columns, ["a", "b", "c"])
        self.assertEqual(preview.sample_rows[0]["b"], "2")

    def test_single_column_file(self):
        content = b"comment\nfirst\nsecond\n"
        preview = upload_utils.build_preview("single.csv", content)
        self.assertEqual(preview.columns, ["comment"])
        self.assertEqual(preview.total_rows, 2)

    def test_one_word_header_is_a_single_column(self):
        for header in ("text", "comment", "full name"):
            content = f"{header}\nhello\nworld\n".encode("utf-8")
            self.assertEqual(upload_utils.read_raw_header("one.csv", content), [header])
            preview = upload_utils.build_preview("one.csv", content)
            self.assertEqual(preview.columns, [header])
            self.assertEqual(preview.sample_rows[1], {header: "world"})

    def test_latin1_file(self):
        content = "cafés,prix\nthé,2\n".encode("latin-1")
        self.assertEqual(upload_utils.read_raw_header("fr.csv", content), ["cafés", "prix"])
        single = "cafés\nx\n".encode("latin-1")
        self.assertEqual(upload_utils.read_raw_header("fr.csv", single), ["cafés"])

    def test_sniff_delimiter(self):
        self.assertEqual(upload_utils.sniff_delimiter("a\tb\n1\t2\n"), "\t")
        self.assertEqual(upload_utils.sniff_delimiter("a|b\n1|2\n"), "|")
        self.assertEqual(upload_utils.sniff_delimiter("full name\nAda Lovelace\n"), ",")

    def test_empty_column_reported(self):
        content = b"a,b\n1,\n2,\n"
        preview = upload_utils.build_preview("empty.csv", content)
        self.assertEqual(preview.empty_columns, ["b"])

    def test_header_is_trimmed(self):
        content = b" a , b \n1,2\n"
        self.assertEqual(upload_utils.read_raw_header("trim.csv", content), ["a", "b"])

    def test_empty_file_rejected(self):
        with self.assertRaises(UploadError):
            upload_utils.build_preview("empty.csv", b"")

    def test_excel_first_sheet(self):
        buf = io.BytesIO()
        pd.DataFrame({"url": ["http://x/1.png"], "caption": ["cat"]}).to_excel(buf, index=False, engine="openpyxl")
        preview = upload_utils.build_preview("images.xlsx", buf.getvalue())
        self.assertEqual(preview.file_format, "xlsx")
        self.assertEqual(preview.columns, ["url", "caption"])
        self.assertEqual(preview.total_rows, 1)
        self.assertEqual(preview.sample_rows[0]["caption"], "cat")


class TestCompareHeaders(unittest.TestCase):

    def test_missing_and_extra(self):
        errors = upload_utils.compare_headers(["id", "text", "label"], ["id", "text", "score"])
        kinds = [(e.error_type, e.column_name) for e in errors]
        self.assertEqual(kinds, [("MISSING_COLUMN", "label"), ("EXTRA_COLUMN", "score")])

    def test_order_mismatch(self):
        errors = upload_utils.compare_headers(["a", "b", "c"], ["a", "c", "b"])
        self.assertEqual([e.error_type for e in errors], ["COLUMN_ORDER_MISMATCH"] * 2)
        self.assertEqual(errors[0].column_name, "c")
        self.assertEqual(errors[0].expected_column_name, "b")

    def test_identical_headers(self):
        self.assertEqual(upload_utils.compare_headers(["a", "b"], ["a", "b"]), [])

    def test_no_expected_header_accepts_anything(self):
        self.assertEqual(upload_utils.compare_headers([], ["x", "y"]), [])

    def test_first_import_is_always_valid(self):
        result = upload_utils.local_header_check("ds1", ["a"], ["b"], existing_import_count=0)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.errors, [])

    def test_later_import_is_checked(self):
        result = upload_utils.local_header_check("ds1", ["a"], ["b"], existing_import_count=2)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.existing_import_count, 2)

    def test_expected_header_falls_back_to_first_import(self):
        imports = [CSVImport(_id="i1", columns=["id", "text"]), CSVImport(_id="i2", columns=["other"])]
        self.assertEqual(upload_utils.expected_header([], imports), ["id", "text"])
        self.assertEqual(upload_utils.expected_header(["a", "b"], imports), ["a", "b"])
        self.assertEqual(upload_utils.expected_header([], []), [])

    def test_local_check_against_first_import(self):
        imports = [CSVImport(_id="i1", columns=["id", "text"])]
        expected = upload_utils.expected_header([], imports)
        result = upload_utils.local_header_check("ds1", expected, ["id", "body"], len(imports))
        self.assertFalse(result.is_valid)
        self.assertEqual(
            [(e.error_type, e.column_name) for e in result.errors],
            [("MISSING_COLUMN", "text"), ("EXTRA_COLUMN", "body")],
        )


class TestFormatFileSize(unittest.TestCase):

    def test_sizes(self):
        self.assertEqual(upload_utils.format_file_size(0), "0 Bytes")
        self.assertEqual(upload_utils.format_file_size(500), "500 Bytes")
        self.assertEqual(upload_utils.format_file_size(1024), "1 KB")
        self.assertEqual(upload_utils.format_file_size(1536), "1.5 KB")
        self.assertEqual(upload_utils.format_file_size(5 * 1024 * 1024), "5 MB")
        self.assertEqual(upload_utils.format_file_size(3 * 1024 ** 3), "3 GB")


if __name__ == "__main__":
    unittest.main()
