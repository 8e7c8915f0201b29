import logging
import threading
from datetime import datetime

import tkinter as tk
from tkinter import simpledialog, messagebox, ttk

from PIL import Image, ImageTk

from markme.client import ApiError
from markme.constants import (
    APP_NAME,
    APP_VERSION,
    ALL,
    NO_RECORD_MARK,
    WINDOW_WIDTH,
    WINDOW_HEIGHT,
    HTTP_UNAUTHORIZED,
    TITLE_FONT,
    STATS_FONT,
)
from markme.logic import cell_mark, format_date_header, format_date_long
from markme.payload import PayloadError, unwrap, parse_courses
from markme.report import AttendanceReport, fetch_current_faculty_id, ERROR, EMPTY, LOADING
from markme.storage import save_settings

logger = logging.getLogger(__name__)

LOGO_FILE = "markme_logo.png"
FIXED_COLUMNS = ("roll", "name")
TRAILING_COLUMNS = ("present", "total", "percentage")


class AttendanceReportApp:
    def __init__(self, master, client, settings):
        self.master = master
        self.client = client
        self.settings = settings
        master.title(f"{APP_NAME} v{APP_VERSION}")
        master.geometry(f"{WINDOW_WIDTH}x{WINDOW_HEIGHT}")
        master.configure(bg="white")
        master.option_add('*Font', 'Arial 10')

        try:
            logo = Image.open(LOGO_FILE).resize((64, 64))
            self.logo_image = ImageTk.PhotoImage(logo)
            tk.Label(master, image=self.logo_image, bg="white").place(relx=0.98, rely=0.01, anchor="ne")
        except FileNotFoundError:
            pass

        self.courses = []
        self.report = None
        self.current_faculty_id = None
        self.courses_error_status = None
        self.row_students = {}
        self.column_dates = {}

        self.course_var = tk.StringVar()
        self.from_var = tk.StringVar()
        self.to_var = tk.StringVar()
        self.batch_var = tk.StringVar(value=ALL)
        self.branch_var = tk.StringVar(value=ALL)
        self.section_var = tk.StringVar(value=ALL)
        self.marked_by_me_var = tk.BooleanVar(value=False)

        self.title_label = tk.Label(master, text="Course Attendance", font=TITLE_FONT,
                                    fg="#2c3e50", bg="white", pady=6)
        self.title_label.pack()
        self.subtitle_label = tk.Label(master, text="", font=("Arial", 11, "italic"),
                                       fg="#7f8c8d", bg="white")
        self.subtitle_label.pack()

        self._build_course_bar()
        self._build_filter_bar()

        status_frame = tk.Frame(master, bg="white")
        status_frame.pack(fill="x", padx=10)
        self.status_label = tk.Label(status_frame, text="", fg="#2c3e50", bg="white")
        self.status_label.pack(side="left")
        self.retry_button = tk.Button(status_frame, text="Retry", command=self.retry,
                                      bg="#e74c3c", fg="white", relief="raised", bd=1)

        self._build_matrix_tree()
        self._build_stats_bar()

        self.master.after(100, self.start)

    # ==================================================
    # Layout
    # ==================================================

    def _build_course_bar(self):
        frame = tk.Frame(self.master, bg="white")
        frame.pack(pady=4)

        tk.Label(frame, text="Course:", bg="white").grid(row=0, column=0, padx=3)
        self.course_dropdown = ttk.Combobox(frame, textvariable=self.course_var,
                                            state="readonly", width=40)
        self.course_dropdown.grid(row=0, column=1, padx=3)
        self.course_dropdown.bind("<<ComboboxSelected>>", self.on_course_selected)

        tk.Label(frame, text="From (YYYY-MM-DD):", bg="white").grid(row=0, column=2, padx=3)
        tk.Entry(frame, textvariable=self.from_var, width=12, bg="#ecf0f1").grid(row=0, column=3, padx=3)
        tk.Label(frame, text="To:", bg="white").grid(row=0, column=4, padx=3)
        tk.Entry(frame, textvariable=self.to_var, width=12, bg="#ecf0f1").grid(row=0, column=5, padx=3)

        tk.Button(frame, text="Load", command=self.load_attendance, bg="#3498db", fg="white",
                  relief="raised", bd=1).grid(row=0, column=6, padx=3)

    def _build_filter_bar(self):
        frame = tk.Frame(self.master, bg="white")
        frame.pack(pady=4)

        self.filter_dropdowns = {}
        for col, (label, key, var) in enumerate([
            ("Batch:", "batch", self.batch_var),
            ("Branch:", "branch", self.branch_var),
            ("Section:", "section", self.section_var),
        ]):
            tk.Label(frame, text=label, bg="white").grid(row=0, column=col * 2, padx=3)
            dropdown = ttk.Combobox(frame, textvariable=var, values=[ALL], state="readonly", width=10)
            dropdown.grid(row=0, column=col * 2 + 1, padx=3)
            dropdown.bind("<<ComboboxSelected>>", self.on_filter_changed)
            self.filter_dropdowns[key] = dropdown

        tk.Checkbutton(frame, text="Only marked by me", variable=self.marked_by_me_var,
                       command=self.on_filter_changed, bg="white").grid(row=0, column=6, padx=6)

        tk.Button(frame, text="Export CSV", command=self.export_csv, bg="#27ae60", fg="white",
                  relief="raised", bd=1).grid(row=0, column=7, padx=3)
        tk.Button(frame, text="Export Excel", command=self.export_excel, bg="#27ae60", fg="white",
                  relief="raised", bd=1).grid(row=0, column=8, padx=3)

    def _build_matrix_tree(self):
        frame = tk.Frame(self.master, bg="white")
        frame.pack(fill="both", expand=True, padx=10, pady=5)

        self.tree = ttk.Treeview(frame, show="headings", selectmode="browse")
        y_scroll = ttk.Scrollbar(frame, orient="vertical", command=self.tree.yview)
        x_scroll = ttk.Scrollbar(frame, orient="horizontal", command=self.tree.xview)
        self.tree.configure(yscrollcommand=y_scroll.set, xscrollcommand=x_scroll.set)

        self.tree.grid(row=0, column=0, sticky="nsew")
        y_scroll.grid(row=0, column=1, sticky="ns")
        x_scroll.grid(row=1, column=0, sticky="ew")
        frame.rowconfigure(0, weight=1)
        frame.columnconfigure(0, weight=1)

        self.tree.tag_configure("group", background="#f0f0f0")
        self.tree.bind("<Double-1>", self.on_cell_double_click)

    def _build_stats_bar(self):
        frame = tk.Frame(self.master, bg="white")
        frame.pack(fill="x", pady=6)

        self.stats_labels = {}
        for col, (key, title) in enumerate([
            ("sessions", "Total Sessions"),
            ("students", "Total Students"),
            ("present", "Total Present"),
            ("percentage", "Overall %"),
        ]):
            cell = tk.Frame(frame, bg="white")
            cell.grid(row=0, column=col, padx=30)
            frame.columnconfigure(col, weight=1)
            tk.Label(cell, text=title, fg="#7f8c8d", bg="white").pack()
            value = tk.Label(cell, text="-", font=STATS_FONT, bg="white")
            value.pack()
            self.stats_labels[key] = value

    # ==================================================
    # Startup
    # ==================================================

    def start(self):
        self.login()
        threading.Thread(target=self.load_courses_thread, daemon=True).start()

    def login(self):
        email = simpledialog.askstring("Login", "Email:", initialvalue=self.settings.get("email", ""),
                                       parent=self.master)
        if not email:
            return
        password = simpledialog.askstring("Login", "Password:", show="*", parent=self.master)
        if password is None:
            return
        try:
            self.client.login(email, password)
        except ApiError as e:
            messagebox.showerror("Login Failed", str(e))
            return

        self.settings["email"] = email
        save_settings(self.settings)

    def load_courses_thread(self):
        try:
            courses = parse_courses(unwrap(self.client.get_courses()))
        except (ApiError, PayloadError) as e:
            logger.error("Failed to fetch courses: %s", e)
            self.courses_error_status = getattr(e, "status", None)
            self.master.after(0, self.show_error, f"Failed to fetch your courses: {e}")
            return

        self.courses_error_status = None
        if self.current_faculty_id is None:
            self.current_faculty_id = fetch_current_faculty_id(self.client)
        self.master.after(0, self.on_courses_loaded, courses)

    def on_courses_loaded(self, courses):
        self.courses = courses
        if not courses:
            self.status_label.config(text="No courses assigned to you yet.")
            return
        self.course_dropdown["values"] = [self._course_label(c) for c in courses]
        self.status_label.config(text="Select a course to view its attendance.")

    @staticmethod
    def _course_label(course):
        code = course.course_code or f"COURSE-{course.id}"
        return f"{code} - {course.course_name}"

    # ==================================================
    # Fetching
    # ==================================================

    def on_course_selected(self, event=None):
        index = self.course_dropdown.current()
        if index < 0:
            return
        course = self.courses[index]
        self.report = AttendanceReport(self.client, course.id, current_faculty_id=self.current_faculty_id)
        self.report.course = course
        self.batch_var.set(ALL)
        self.branch_var.set(ALL)
        self.section_var.set(ALL)
        self.marked_by_me_var.set(False)

        self.title_label.config(text=course.course_name or "Course Attendance")
        credits = f" ({course.credits} credits)" if course.credits is not None else ""
        self.subtitle_label.config(text=f"{course.description}{credits}")

        threading.Thread(target=self.report.fetch_course, daemon=True).start()
        self.load_attendance()

    def _date_range(self):
        values = []
        for var in (self.from_var, self.to_var):
            text = var.get().strip()
            if text:
                datetime.strptime(text, "%Y-%m-%d")
            values.append(text or None)
        return values

    def load_attendance(self):
        if self.report is None:
            messagebox.showwarning("No Course", "Please select a course first.")
            return
        try:
            from_date, to_date = self._date_range()
        except ValueError:
            messagebox.showwarning("Invalid Date", "Dates must be in YYYY-MM-DD format.")
            return

        report = self.report
        request_id = report.begin_request()
        self.show_loading()
        threading.Thread(
            target=self.attendance_thread,
            args=(report, request_id, from_date, to_date),
            daemon=True,
        ).start()

    def attendance_thread(self, report, request_id, from_date, to_date):
        applied = report.fetch_attendance(from_date, to_date, request_id=request_id)
        self.master.after(0, self.on_attendance_loaded, report, applied)

    def retry(self):
        # a 401 means the session is gone, so ask for credentials again first
        if self.report is None:
            if self.courses_error_status == HTTP_UNAUTHORIZED:
                self.login()
            threading.Thread(target=self.load_courses_thread, daemon=True).start()
            return
        if self.report.needs_login:
            self.login()
        self.load_attendance()

    def on_attendance_loaded(self, report, applied):
        if report is not self.report:
            return
        if report.status == ERROR:
            self.show_error(report.error)
            return
        if report.status == LOADING or not applied:
            return
        self.retry_button.pack_forget()
        self.render()

    # ==================================================
    # Rendering
    # ==================================================

    def show_loading(self):
        self.retry_button.pack_forget()
        self.status_label.config(text="Loading attendance...", fg="#2c3e50")

    def show_error(self, message):
        self.clear_tree()
        self.status_label.config(text=message or "An error occurred", fg="#c0392b")
        self.retry_button.pack(side="left", padx=8)
        messagebox.showerror("Error", message or "An error occurred")

    def clear_tree(self):
        self.tree.delete(*self.tree.get_children())
        self.row_students = {}
        self.column_dates = {}

    def on_filter_changed(self, event=None):
        if self.report is None:
            return
        self.report.set_filters(
            batch=self.batch_var.get(),
            branch=self.branch_var.get(),
            section=self.section_var.get(),
        )
        self.report.set_only_marked_by_me(self.marked_by_me_var.get())
        if self.report.status in (ERROR, LOADING):
            return
        self.render()

    def render(self):
        report = self.report
        view = report.view
        self.clear_tree()

        options = view.filter_options
        self.filter_dropdowns["batch"]["values"] = [ALL] + options.batches
        self.filter_dropdowns["branch"]["values"] = [ALL] + options.branches
        self.filter_dropdowns["section"]["values"] = [ALL] + options.sections

        date_columns = [f"d{i}" for i in range(len(view.dates))]
        columns = FIXED_COLUMNS + tuple(date_columns) + TRAILING_COLUMNS
        self.tree["columns"] = columns
        self.tree.heading("roll", text="Roll Number")
        self.tree.column("roll", width=130, anchor="w", stretch=False)
        self.tree.heading("name", text="Student Name")
        self.tree.column("name", width=200, anchor="w", stretch=False)
        for column, date in zip(date_columns, view.dates):
            self.tree.heading(column, text=format_date_header(date))
            self.tree.column(column, width=60, anchor="center", stretch=False)
            self.column_dates[column] = date
        for column, title in zip(TRAILING_COLUMNS, ("Present", "Total", "%")):
            self.tree.heading(column, text=title)
            self.tree.column(column, width=80, anchor="center", stretch=False)

        for branch, stats in view.groups.items():
            self.tree.insert("", tk.END, values=(f"{branch}", f"{len(stats)} students"), tags=("group",))
            for stat in stats:
                student = stat.student
                row = view.matrix.get(student.id, {})
                values = (
                    [student.roll_number, f"{student.full_name} ({student.branch} - {student.section})"]
                    + [cell_mark(row.get(d), empty=NO_RECORD_MARK) for d in view.dates]
                    + [stat.present_count, stat.total_classes, f"{stat.attendance_percentage}%"]
                )
                iid = self.tree.insert("", tk.END, values=values)
                self.row_students[iid] = student.id

        stats = view.stats
        self.stats_labels["sessions"].config(text=str(stats.total_sessions))
        self.stats_labels["students"].config(text=str(stats.total_students))
        self.stats_labels["present"].config(text=str(stats.total_present))
        self.stats_labels["percentage"].config(text=f"{stats.overall_percentage:.1f}%")

        if report.status == EMPTY:
            self.status_label.config(text="No attendance has been recorded for this course yet.", fg="#7f8c8d")
        elif not view.filtered_students:
            self.status_label.config(text="No students match the selected filters.", fg="#7f8c8d")
        else:
            self.status_label.config(
                text=f"{len(view.filtered_students)} students, {len(view.dates)} sessions",
                fg="#2c3e50",
            )

    # ==================================================
    # Details and export
    # ==================================================

    def on_cell_double_click(self, event):
        iid = self.tree.identify_row(event.y)
        column_ref = self.tree.identify_column(event.x)
        if not iid or iid not in self.row_students or not column_ref:
            return
        columns = self.tree["columns"]
        index = int(column_ref.lstrip("#")) - 1
        if index < 0 or index >= len(columns):
            return
        date = self.column_dates.get(columns[index])
        if date is None:
            return

        detail = self.report.detail(self.row_students[iid], date)
        if detail is not None:
            self.show_detail(detail)

    def show_detail(self, detail):
        window = tk.Toplevel(self.master)
        window.title("Attendance Details")
        window.configure(bg="white")
        window.resizable(False, False)

        student = detail.student
        lines = [
            ("Student", student.full_name),
            ("", f"Roll: {student.roll_number} | {student.branch} - {student.section}"),
            ("Date", format_date_long(detail.date)),
            ("Status", "Present" if detail.is_present else "Absent"),
        ]
        faculty = detail.faculty
        if faculty is not None and faculty.first_name:
            lines.append(("Marked By", faculty.full_name))
            if faculty.department:
                extra = f" | {faculty.email}" if faculty.email else ""
                lines.append(("", f"{faculty.department}{extra}"))
        session = detail.session
        parts = []
        if session.room:
            parts.append(f"Room: {session.room}")
        if session.classes:
            parts.append("Classes: " + ", ".join(str(c) for c in session.classes))
        if parts:
            lines.append(("Session Details", " | ".join(parts)))
        if session.session_date:
            lines.append(("", f"Session Date: {format_date_long(session.session_date)}"))

        for row, (label, value) in enumerate(lines):
            tk.Label(window, text=label, font=("Arial", 10, "bold"), bg="white",
                     anchor="w").grid(row=row, column=0, sticky="w", padx=8, pady=2)
            tk.Label(window, text=value, bg="white", anchor="w").grid(row=row, column=1, sticky="w",
                                                                      padx=8, pady=2)

        tk.Button(window, text="Close", command=window.destroy).grid(row=len(lines), column=0,
                                                                     columnspan=2, pady=8)

    def notify(self, level, title, message):
        if level == "error":
            messagebox.showerror(title, message)
        elif level == "warning":
            messagebox.showwarning(title, message)
        else:
            messagebox.showinfo(title, message)

    def export_csv(self):
        if self.report is None:
            self.notify("warning", "No Data", "No attendance data available to export")
            return
        self.report.export_csv(self.settings["exports_folder"], notify=self.notify)

    def export_excel(self):
        if self.report is None:
            self.notify("warning", "No Data", "No attendance data available to export")
            return
        self.report.export_excel(self.settings["exports_folder"], notify=self.notify)


def run_app(client, settings):
    root = tk.Tk()
    AttendanceReportApp(root, client, settings)
    root.mainloop()
