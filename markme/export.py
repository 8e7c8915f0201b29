import os
import re
import csv
import logging
from datetime import date

import pandas as pd
from openpyxl import load_workbook
from openpyxl.styles import PatternFill, Alignment, Font, Border, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError, InvalidFileException
from openpyxl.worksheet.page import PageMargins

from markme.constants import (
    CSV_LEADING_HEADERS,
    CSV_TRAILING_HEADERS,
    PRESENT_MARK,
    ABSENT_MARK,
)
from markme.logic import cell_mark, format_date_header
from markme.storage import export_path

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


def log_notice(level, title, message):
    getattr(logger, level, logger.info)("%s: %s", title, message)


def export_filename(course_name, today=None, extension="csv"):
    today = today or date.today()
    name = re.sub(r"\s+", "_", (course_name or "").strip())
    name = _UNSAFE_FILENAME_CHARS.sub("", name) or "course"
    return f"attendance_{name}_{today.isoformat()}.{extension}"


def build_csv_rows(filtered_students, dates, matrix):
    headers = (
        CSV_LEADING_HEADERS
        + [format_date_header(d) for d in dates]
        + CSV_TRAILING_HEADERS
    )

    rows = [headers]
    for stat in filtered_students:
        student = stat.student
        student_row = matrix.get(student.id, {})
        rows.append(
            [student.roll_number, student.full_name, student.branch, student.section]
            + [cell_mark(student_row.get(d)) for d in dates]
            + [stat.present_count, stat.total_classes, f"{stat.attendance_percentage}%"]
        )
    return rows


def _frame(rows):
    return pd.DataFrame(rows[1:], columns=rows[0])


def render_csv(rows):
    text = _frame(rows).to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return text.rstrip("\n")


def export_csv(filtered_students, dates, matrix, course_name, folder,
               notify=log_notice, today=None):
    if not filtered_students:
        notify("warning", "No Data", "No attendance data available to export")
        return None

    content = render_csv(build_csv_rows(filtered_students, dates, matrix))
    try:
        file_path = export_path(folder, export_filename(course_name, today, "csv"))
        with open(file_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        logger.exception("CSV export failed")
        notify("error", "Export Failed", f"Could not write the CSV file:\n{e}")
        return None

    logger.info("Exported %d students to %s", len(filtered_students), file_path)
    notify("info", "Export Successful", f"Attendance data exported for {len(filtered_students)} students")
    return file_path


def export_excel(filtered_students, dates, matrix, course_name, folder,
                 notify=log_notice, today=None):
    if not filtered_students:
        notify("warning", "No Data", "No attendance data available to export")
        return None

    rows = build_csv_rows(filtered_students, dates, matrix)
    file_path = None
    try:
        file_path = export_path(folder, export_filename(course_name, today, "xlsx"))
        _frame(rows).to_excel(file_path, index=False, engine="openpyxl")
        _style_workbook(file_path, len(rows[0]), len(dates))
    except (OSError, ValueError, IllegalCharacterError, InvalidFileException) as e:
        logger.exception("Excel export failed")
        _remove_partial(file_path)
        notify("error", "Export Failed", f"Could not write the Excel file:\n{e}")
        return None

    logger.info("Exported %d students to %s", len(filtered_students), file_path)
    notify("info", "Export Successful", f"Attendance data exported for {len(filtered_students)} students")
    return file_path


def _remove_partial(file_path):
    if not file_path or not os.path.exists(file_path):
        return
    try:
        os.remove(file_path)
    except OSError:
        logger.warning("Could not remove partial export %s", file_path)


def _style_workbook(file_path, column_count, date_count):
    wb = load_workbook(file_path)
    ws = wb.active

    header_fill_gray = PatternFill("solid", start_color="D3D3D3")
    header_fill_blue = PatternFill("solid", start_color="87CEEB")
    present_fill = PatternFill("solid", start_color="BDD7EE")
    absent_fill = PatternFill("solid", start_color="F4B6B6")

    header_font = Font(bold=True, size=12)
    data_font = Font(size=11)

    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)

    first_date_col = len(CSV_LEADING_HEADERS) + 1
    last_date_col = first_date_col + date_count - 1

    for col_idx in range(1, column_count + 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")
        cell.border = border
        if first_date_col <= col_idx <= last_date_col:
            cell.fill = header_fill_blue
        else:
            cell.fill = header_fill_gray

    for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=1, max_col=column_count):
        for cell in row:
            cell.font = data_font
            cell.alignment = Alignment(horizontal="center", vertical="center")
            cell.border = border
            if cell.value == PRESENT_MARK:
                cell.fill = present_fill
            elif cell.value == ABSENT_MARK:
                cell.fill = absent_fill

    ws.column_dimensions["A"].width = 18
    ws.column_dimensions["B"].width = 28
    ws.column_dimensions["C"].width = 10
    ws.column_dimensions["D"].width = 10
    for col_idx in range(first_date_col, last_date_col + 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = 7
    for col_idx in range(last_date_col + 1, column_count + 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = 14

    ws.freeze_panes = ws.cell(row=2, column=first_date_col)

    ws.page_margins = PageMargins(
        left=0.3, right=0.3,
        top=0.4, bottom=0.4,
        header=0.3, footer=0.3
    )

    ws.page_setup.orientation = ws.ORIENTATION_LANDSCAPE
    ws.page_setup.paperSize = ws.PAPERSIZE_A4
    ws.page_setup.fitToWidth = 1
    ws.page_setup.fitToHeight = 0

    wb.save(file_path)
