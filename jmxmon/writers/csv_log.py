"""Append-only semicolon separated logs for spreadsheets."""

import logging
import re
from pathlib import Path
from typing import Dict, List

from ..utils.metrics import ERR_VALUE, PassReport, SampleResult, format_one_decimal
from .base import STD_TIME_FORMAT, BaseWriter, single_line


def detail_csv_path(csv_file: str, address: str) -> str:
    """
    Per-target file name: the address is inserted before the extension.

    "gc.csv" and "srv1:7091" give "gc-srv1.7091.csv"; without an extension
    ".csv" is appended.
    """
    insert = "-" + re.sub(r'[:/\\]+', '.', address).strip(".")
    dot = csv_file.rfind(".")
    if 0 < dot < len(csv_file) - 1:
        return csv_file[:dot] + insert + csv_file[dot:]
    return csv_file + insert + ".csv"


def gc_column_prefix(gc_name: str) -> str:
    """Collector name without a trailing " Collector", followed by '-'."""
    name = gc_name or ""
    cut = name.rfind(" Collector")
    if cut > 1:
        name = name[:cut]
    name = name.strip()
    return f"{name}-" if name else ""


class CsvLogWriter(BaseWriter):
    """
    One row per pass for all targets.

    Columns: GC sum per target, CPU per target, then every attribute value
    per target. The header is written when the file is created. Failed
    targets contribute placeholders so the columns stay aligned.

    The number of attribute columns of a target is fixed by the first row
    it appears in; later rows are padded with placeholders or cut to fit.
    """

    def __init__(self, logger: logging.Logger, path: str = None):
        super().__init__(logger)
        self.path = path
        self._widths: Dict[str, int] = {}

    @property
    def enabled(self) -> bool:
        return bool(self.path and self.path.strip())

    @property
    def destination(self) -> str:
        return f"CSV file '{self.path}'"

    def _write(self, report: PassReport) -> None:
        exists = Path(self.path).exists()
        with open(self.path, "a", encoding="utf-8") as f:
            if not exists:
                self._widths.clear()
                f.write(self._header(report) + "\n")
            f.write(self._row(report) + "\n")

    def _header(self, report: PassReport) -> str:
        columns = ["Date/Time;"]
        columns += [f" GC-{o.target.server_name};" for o in report.outcomes]
        columns += [f" CPU-{o.target.server_name};" for o in report.outcomes]
        for outcome in report.outcomes:
            titles = self._attribute_titles(outcome, report)
            columns += [f" {title}-{outcome.target.server_name};" for title in titles]
        return "".join(columns)

    def _row(self, report: PassReport) -> str:
        cells = [f"{report.timestamp.strftime(STD_TIME_FORMAT)};"]
        for outcome in report.outcomes:
            if isinstance(outcome, SampleResult):
                cells.append(f" {format_one_decimal(outcome.gc_group.time_percent_sum)};")
            else:
                cells.append(f" {ERR_VALUE};")
        for outcome in report.outcomes:
            if isinstance(outcome, SampleResult):
                cells.append(f" {outcome.gc_group.cpu_percent};")
            else:
                cells.append(f" {ERR_VALUE};")
        for outcome in report.outcomes:
            width = self._width(outcome, report)
            values = []
            if isinstance(outcome, SampleResult):
                values = [single_line(o.value) for o in outcome.attributes][:width]
            values += [ERR_VALUE] * (width - len(values))
            cells += [f" {value};" for value in values]
        return "".join(cells)

    def _width(self, outcome, report: PassReport) -> int:
        """Attribute column count of a target, fixed on first sight."""
        address = outcome.target.address
        if address not in self._widths:
            self._widths[address] = len(self._attribute_titles(outcome, report))
        return self._widths[address]

    @staticmethod
    def _attribute_titles(outcome, report: PassReport) -> List[str]:
        if isinstance(outcome, SampleResult):
            return [o.title for o in outcome.attributes]
        return [spec.title for spec in report.attribute_specs]


class GcDetailCsvWriter(BaseWriter):
    """One file per target with count and time percent of every collector."""

    def __init__(self, logger: logging.Logger, path: str = None, all_gc_values: bool = False):
        super().__init__(logger)
        self.path = path
        self.all_gc_values = all_gc_values

    @property
    def enabled(self) -> bool:
        return self.all_gc_values and bool(self.path and self.path.strip())

    @property
    def destination(self) -> str:
        return f"GC detail files next to '{self.path}'"

    def _write(self, report: PassReport) -> None:
        for result in report.successes():
            if not result.gc_group.metrics:
                continue
            path = detail_csv_path(self.path, result.target.address)
            self._safely(lambda _: self._append(path, result), report)

    def _append(self, path: str, result: SampleResult) -> None:
        group = result.gc_group
        exists = Path(path).exists()
        with open(path, "a", encoding="utf-8") as f:
            if not exists:
                header = "Date/Time; "
                for metric in group.metrics:
                    prefix = gc_column_prefix(metric.name)
                    header += f"{prefix}CountPerPeriod; {prefix}TimePercent; "
                f.write(header + "TimePercentSum;\n")

            row = f"{group.timestamp.strftime(STD_TIME_FORMAT)}; "
            for metric in group.metrics:
                row += f"{metric.count_per_period}; {format_one_decimal(metric.time_percent)}; "
            f.write(row + f"{format_one_decimal(group.time_percent_sum)}; \n")
