import os
import csv
import glob
import sys
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

from jornada.domain.clock import format_duration, utc_now
from jornada.domain.services.workday_calculator import WorkdayCalculator
from jornada.infrastructure.repositories.json_driver_repository import JsonDriverRepository

logger = logging.getLogger(__name__)


class FleetAnalytics:
    def __init__(self, folder_path, repository=None):
        self.folder_path = folder_path
        self.results = []
        self.repository = repository or JsonDriverRepository()

    def process_file(self, file_path):
        filename = os.path.basename(file_path)
        try:
            driver, settings = self.repository.get(file_path)
        except (OSError, ValueError) as e:
            # DomainError is a ValueError: one broken file must not stop the batch
            logger.warning(f"Skipping {filename}: {e}")
            return {"filename": filename, "status": "ERROR", "error": str(e)}

        now = utc_now()
        calculator = WorkdayCalculator(settings)
        summaries = calculator.calculate_range(driver.id, date.min, date.max, driver.events, now=now)

        total_worked = sum((s.total_worked for s in summaries), timedelta(0))
        last_day = summaries[-1].date.strftime("%d/%m/%Y") if summaries else "N/A"

        return {
            "filename": filename,
            "status": "OK",
            "driver_name": driver.name,
            "cpf": driver.cpf.formatted,
            "days": len(summaries),
            "total_worked_hours": round(total_worked.total_seconds() / 3600, 2),
            "total_worked": format_duration(total_worked),
            "last_activity": last_day,
            "anomalies": sum(len(s.anomalies) for s in summaries),
            "current_state": driver.determine_current_state().value,
        }

    def run(self):
        files = sorted(glob.glob(os.path.join(self.folder_path, "*.json")))
        print(f"Analyzing {len(files)} files in {self.folder_path}...")

        with ThreadPoolExecutor() as executor:
            self.results = list(executor.map(self.process_file, files))

        return self.results

    def print_report(self):
        print(f"{'FILENAME':<25} | {'DRIVER':<20} | {'DAYS':<4} | {'WORK(H)':<8} | {'ANOM':<4} | {'STATE':<15}")
        print("-" * 90)
        for r in self.results:
            if r["status"] == "OK":
                print(f"{r['filename'][:25]:<25} | {r['driver_name'][:20]:<20} | {r['days']:<4} | {r['total_worked_hours']:<8} | {r['anomalies']:<4} | {r['current_state'][:15]:<15}")
            else:
                print(f"{r['filename'][:25]:<25} | {'ERROR':<20} | {'-':<4} | {'-':<8} | {'-':<4} | {r.get('error', '')}")

    def save_csv(self, filename="fleet_report.csv"):
        with open(filename, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(["Filename", "Driver", "CPF", "Days", "Worked (h)", "Last Activity", "Anomalies", "State", "Status"])
            for r in self.results:
                if r["status"] == "OK":
                    writer.writerow([r["filename"], r["driver_name"], r["cpf"], r["days"], r["total_worked_hours"], r["last_activity"], r["anomalies"], r["current_state"], "OK"])
                else:
                    writer.writerow([r["filename"], "ERROR", "", "", "", "", "", "", r.get("error", "")])
        print(f"Report saved to {filename}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')
    folder = sys.argv[1] if len(sys.argv) > 1 else "."
    analyzer = FleetAnalytics(folder)
    analyzer.run()
    analyzer.print_report()
    analyzer.save_csv()
