"""Tests for the report model, Excel/CSV/PDF exports and the CLI."""
import os
import sys
import csv
import json
import tempfile
import unittest
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from core.models import JornadaReport
from export_manager import ExportManager
from export_pdf import day_intervals, generate_pdf_report
from jornada.domain.models.settings import CompanySettings
from jornada_cli import main
from generate_mock_data import STANDARD_DAY_ROWS, make_driver, standard_day, utc, write_driver_file

import pytz


def _report(**kwargs):
    driver = make_driver(events=standard_day())
    return JornadaReport.from_driver(driver, CompanySettings.default(), filename="driver.json",
                                     now=utc(2024, 3, 2), **kwargs).to_dict()


class TestJornadaReport(unittest.TestCase):

    def test_from_driver(self):
        report = _report()
        self.assertEqual(report["driver"]["cpf"], "111.444.777-35")
        self.assertEqual(report["current_state"], "OFF_SHIFT")
        self.assertEqual(report["allowed_events"], ["SHIFT_START"])
        self.assertEqual(report["metadata"]["event_count"], 4)
        self.assertEqual(len(report["daily_summaries"]), 1)
        summary = report["daily_summaries"][0]
        self.assertEqual(summary["total_worked"], "08:30")
        self.assertEqual(summary["total_meal"], "00:30")

    def test_single_day_without_events(self):
        report = _report(day=date(2024, 3, 5))
        self.assertEqual(report["daily_summaries"][0]["total_worked"], "00:00")

    def test_json_serialisable(self):
        json.dumps(_report())


class TestExportManager(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.report = _report()

    def test_excel_sheets(self):
        path = os.path.join(self.tmpdir, "report.xlsx")
        ExportManager.export_to_excel(self.report, path)
        sheets = pd.read_excel(path, sheet_name=None)
        self.assertEqual(list(sheets), ["Resumo", "Jornadas", "Eventos", "Anomalias"])
        self.assertEqual(len(sheets["Eventos"]), 4)
        self.assertIn("Jornada excede limite diário: 08:30 > 08:00", list(sheets["Anomalias"]["Anomalia"]))

    def test_csv_rows(self):
        path = os.path.join(self.tmpdir, "events.csv")
        count = ExportManager.export_to_csv(self.report, path)
        self.assertEqual(count, 4)
        with open(path, newline="", encoding="utf-8-sig") as f:
            rows = list(csv.reader(f, delimiter=";"))
        self.assertEqual(len(rows), 5)
        self.assertEqual(rows[1][0], "SHIFT_START")
        self.assertEqual(rows[1][1], "Início da Jornada")

    def test_csv_without_events(self):
        report = _report()
        report["events"] = []
        path = os.path.join(self.tmpdir, "empty.csv")
        self.assertEqual(ExportManager.export_to_csv(report, path), 0)
        self.assertFalse(os.path.exists(path))


class TestPdfExport(unittest.TestCase):

    def test_generates_pdf(self):
        path = os.path.join(tempfile.mkdtemp(), "report.pdf")
        generate_pdf_report(_report(), path)
        with open(path, "rb") as f:
            self.assertEqual(f.read(4), b"%PDF")

    def test_empty_report_no_crash(self):
        path = os.path.join(tempfile.mkdtemp(), "empty.pdf")
        generate_pdf_report({}, path)
        self.assertTrue(os.path.exists(path))

    def test_day_intervals(self):
        blocks = day_intervals(_report()["events"], "2024-03-01", pytz.utc)
        self.assertEqual(blocks, [("SHIFT_START", 480, 1020), ("MEAL_START", 720, 750)])


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = write_driver_file(self.tmpdir, events=STANDARD_DAY_ROWS)

    def test_start_event_is_saved(self):
        at = (datetime.now(timezone.utc) - timedelta(minutes=5)).isoformat()
        main([self.path, "--start", "SHIFT_START", "--at", at, "--lat", "-23.55", "--lon", "-46.63", "-q"])

        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual(len(data["events"]), 5)
        self.assertEqual(data["events"][-1]["type"], "SHIFT_START")
        self.assertEqual(data["events"][-1]["location_start"]["latitude"], -23.55)

    def test_rejected_event_exits_with_error(self):
        with patch("sys.stderr"):
            with self.assertRaises(SystemExit) as exc:
                main([self.path, "--start", "MEAL_START", "-q"])
        self.assertEqual(exc.exception.code, 1)

    def test_missing_file(self):
        with patch("sys.stderr"):
            with self.assertRaises(SystemExit) as exc:
                main([os.path.join(self.tmpdir, "nope.json")])
        self.assertEqual(exc.exception.code, 1)

    def test_all_outputs(self):
        out_dir = os.path.join(self.tmpdir, "out")
        main([self.path, "--all", out_dir, "-q"])
        extensions = sorted(os.path.splitext(f)[1] for f in os.listdir(out_dir))
        self.assertEqual(extensions, [".csv", ".json", ".pdf", ".xlsx"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
