"""Tests for nomenclator/export/table_writer.py"""

import csv
import threading

import pytest

from nomenclator.common.csv_utils import read_csv, read_header
from nomenclator.common.errors import WriteError
from nomenclator.export.table_writer import TableWriter, format_value
from nomenclator.normalization.tables import TABLES, get_table


def lab_row(lab_id, name, **extra):
    return {"laboratory_id": lab_id, "name": name, **extra}


class TestFormatValue:
    def test_values(self):
        assert format_value(None) == ""
        assert format_value(True) == "true"
        assert format_value(False) == "false"
        assert format_value(42) == "42"
        assert format_value("x") == "x"


class TestTableWriter:
    def test_every_table_gets_header(self, tmp_path):
        with TableWriter(tmp_path / "out") as writer:
            pass
        for spec in TABLES:
            path = writer.paths[spec.name]
            assert path.exists()
            assert read_header(path) == list(spec.columns)

    def test_rows_follow_column_order(self, tmp_path):
        with TableWriter(tmp_path) as writer:
            writer.append("laboratories", {"name": "Acme Labs", "city": "Madrid", "laboratory_id": 1})
        lines = (tmp_path / "laboratories.csv").read_text(encoding="utf-8").splitlines()
        assert lines[1] == "1,Acme Labs,,,,Madrid,"

    def test_special_characters_round_trip(self, tmp_path):
        name = 'Acme, "Labs"\nsegunda línea'
        with TableWriter(tmp_path) as writer:
            writer.append("laboratories", lab_row(1, name))
        rows = list(read_csv(tmp_path / "laboratories.csv"))
        assert rows[0]["name"] == name

    def test_booleans_and_missing_values(self, tmp_path):
        with TableWriter(tmp_path) as writer:
            writer.append("products", {"product_id": "1", "name": "A", "marketed": True, "generic": False})
        row = next(read_csv(tmp_path / "products.csv"))
        assert row["marketed"] == "true"
        assert row["generic"] == "false"
        assert row["orphan"] == ""

    def test_custom_delimiter(self, tmp_path):
        with TableWriter(tmp_path, delimiter=";") as writer:
            writer.append("laboratories", lab_row(1, "Acme; Labs"))
        rows = list(read_csv(tmp_path / "laboratories.csv", delimiter=";"))
        assert rows[0]["name"] == "Acme; Labs"

    def test_unknown_column_writes_nothing(self, tmp_path):
        with TableWriter(tmp_path) as writer:
            with pytest.raises(WriteError, match="unknown columns"):
                writer.write_rows([
                    ("laboratories", lab_row(1, "Acme Labs")),
                    ("laboratories", lab_row(2, "Other", colour="red")),
                ])
            assert writer.row_counts()["laboratories"] == 0
            assert not writer.failed
            writer.append("laboratories", lab_row(3, "Still usable"))
        assert [row["name"] for row in read_csv(tmp_path / "laboratories.csv")] == ["Still usable"]

    def test_unknown_table(self, tmp_path):
        with TableWriter(tmp_path) as writer:
            with pytest.raises(WriteError, match="unknown table"):
                writer.append("pharmacies", {"id": 1})

    def test_row_counts(self, tmp_path):
        with TableWriter(tmp_path) as writer:
            writer.write_rows([
                ("laboratories", lab_row(1, "A")),
                ("laboratories", lab_row(2, "B")),
                ("products", {"product_id": "1", "name": "P"}),
            ])
            counts = writer.row_counts()
        assert counts["laboratories"] == 2
        assert counts["products"] == 1
        assert counts["presentations"] == 0

    def test_close_is_idempotent(self, tmp_path):
        writer = TableWriter(tmp_path)
        writer.close()
        writer.close()
        with pytest.raises(WriteError, match="closed"):
            writer.append("laboratories", lab_row(1, "A"))

    def test_io_failure_poisons_writer(self, tmp_path):
        writer = TableWriter(tmp_path, tables=[get_table("laboratories")])
        sink = writer._sinks["laboratories"]

        class BrokenWriter:
            def writerow(self, row):
                raise OSError("disk full")

        sink.writer = BrokenWriter()
        with pytest.raises(WriteError, match="disk full"):
            writer.append("laboratories", lab_row(1, "A"))
        assert writer.failed
        with pytest.raises(WriteError, match="unusable"):
            writer.append("laboratories", lab_row(2, "B"))
        writer.close()

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(WriteError):
            TableWriter(blocker / "out")

    def test_concurrent_appends_do_not_interleave(self, tmp_path):
        long_name = "x" * 5000
        with TableWriter(tmp_path, tables=[get_table("laboratories")]) as writer:
            def worker(offset):
                for i in range(50):
                    writer.write_rows([("laboratories", lab_row(offset * 1000 + i, f"{long_name}-{offset}-{i}"))])

            threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        with open(tmp_path / "laboratories.csv", newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 400
        assert len({row["laboratory_id"] for row in rows}) == 400
        for row in rows:
            _, offset, i = row["name"].rsplit("-", 2)
            assert row["laboratory_id"] == str(int(offset) * 1000 + int(i))
