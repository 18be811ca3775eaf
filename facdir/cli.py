"""CLI entry point for facdir."""

from __future__ import annotations

import argparse
import re
from pathlib import Path
from typing import Any, Callable

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from facdir.config import ConfigError, load_config
from facdir.data.models import Faculty
from facdir.directory import Directory
from facdir.errors import Conflict, DirectoryError
from facdir.net.http_client import HttpClient
from facdir.scrapers.faculty_scraper import FacultyScraper
from facdir.utils.logging_setup import setup_logging_from_config

console = Console()

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# CLI flag -> faculty column, for add and update.
FACULTY_OPTIONS = {
    "name": "name",
    "email": "email",
    "designation": "designation",
    "qualification": "qualification",
    "phone": "phone",
    "profile_link": "profile_link",
    "department": "department_id",
    "office": "office_id",
}


def record_id(text: str) -> int | str:
    """Parse a record id: serial integer or UUID."""
    text = text.strip()
    if not text:
        raise argparse.ArgumentTypeError("empty id")
    return int(text) if text.isascii() and text.isdigit() else text


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="facdir",
        description="Browse and maintain the faculty directory",
    )
    parser.add_argument("--config", type=Path, help="Path to config YAML file")
    parser.add_argument("--workers", type=int, help="Threads for side-by-side reads")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("check", help="Check the store connection").set_defaults(handler=cmd_check)
    subparsers.add_parser("stats", help="Show directory statistics").set_defaults(handler=cmd_stats)

    dept_parser = subparsers.add_parser("departments", help="List departments")
    dept_parser.add_argument("--id", type=record_id, help="Show one department with its faculty and courses")
    dept_parser.set_defaults(handler=cmd_departments)

    # --- faculty commands ---
    faculty_parser = subparsers.add_parser("faculty", help="Faculty members")
    faculty_sub = faculty_parser.add_subparsers(dest="faculty_command")

    list_parser = faculty_sub.add_parser("list", help="List or search faculty")
    list_parser.add_argument("--department", type=record_id, help="Only this department")
    list_parser.add_argument("--search", type=str, help="Match name, email or designation")
    list_parser.set_defaults(handler=cmd_faculty_list)

    show_parser = faculty_sub.add_parser("show", help="Show one faculty member")
    show_parser.add_argument("faculty_id", type=record_id)
    show_parser.set_defaults(handler=cmd_faculty_show)

    add_parser = faculty_sub.add_parser("add", help="Add a faculty member")
    _add_faculty_options(add_parser)
    add_parser.set_defaults(handler=cmd_faculty_add)

    update_parser = faculty_sub.add_parser("update", help="Change fields of a faculty member")
    update_parser.add_argument("faculty_id", type=record_id)
    _add_faculty_options(update_parser)
    update_parser.set_defaults(handler=cmd_faculty_update)

    delete_parser = faculty_sub.add_parser("delete", help="Delete a faculty member")
    delete_parser.add_argument("faculty_id", type=record_id)
    delete_parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    delete_parser.set_defaults(handler=cmd_faculty_delete)

    assign_parser = faculty_sub.add_parser("assign-course", help="Assign a course to a faculty member")
    assign_parser.add_argument("faculty_id", type=record_id)
    assign_parser.add_argument("course_id", type=record_id)
    assign_parser.add_argument("--semester", required=True)
    assign_parser.add_argument("--year", required=True, help="Academic year, e.g. 2024-25")
    assign_parser.set_defaults(handler=cmd_faculty_assign)

    # --- other listings ---
    courses_parser = subparsers.add_parser("courses", help="List courses")
    courses_parser.add_argument("--department", type=record_id, help="Only this department")
    courses_parser.set_defaults(handler=cmd_courses)

    pubs_parser = subparsers.add_parser("publications", help="List publications")
    pubs_parser.add_argument("--faculty", type=record_id, help="Only this faculty member")
    pubs_parser.set_defaults(handler=cmd_publications)

    subparsers.add_parser("offices", help="List offices").set_defaults(handler=cmd_offices)

    scrape_parser = subparsers.add_parser("scrape", help="Scrape a faculty listing page")
    scrape_parser.add_argument("url")
    scrape_parser.set_defaults(handler=cmd_scrape)

    subparsers.add_parser("scrape-log", help="Show past scrape runs").set_defaults(handler=cmd_scrape_log)

    return parser


def _add_faculty_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name")
    parser.add_argument("--email")
    parser.add_argument("--designation")
    parser.add_argument("--qualification")
    parser.add_argument("--phone")
    parser.add_argument("--profile-link", dest="profile_link")
    parser.add_argument("--department", type=record_id, help="Department id")
    parser.add_argument("--office", type=record_id, help="Office id")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    handler: Callable[..., int] | None = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 1

    cli_overrides = {}
    if args.workers:
        cli_overrides["workers"] = args.workers
    config = load_config(config_path=args.config, cli_overrides=cli_overrides)
    setup_logging_from_config(config)

    try:
        directory = Directory.from_config(config)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    try:
        with directory:
            return handler(directory, args, config)
    except DirectoryError as e:
        console.print(f"[red]Store error ({e.kind}):[/red] {e.message}")
        return 1


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def cmd_check(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    """Count every table; any store failure fails the check."""
    counts = directory.statistics.counts()
    table = _table("Store connection OK", ["Table", "Rows"])
    for label, count in counts.items():
        table.add_row(label, str(count))
    console.print(table)
    return 0


def cmd_stats(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    counts, per_department = directory.fetch_concurrently(
        directory.statistics.counts,
        directory.statistics.department_statistics,
    )
    totals = _table("Directory", ["Faculty", "Departments", "Courses", "Publications"])
    totals.add_row(*(str(counts[k]) for k in ("faculty", "departments", "courses", "publications")))
    console.print(totals)

    table = _table("Faculty per department", ["Department", "Faculty"])
    for stat in per_department:
        table.add_row(stat.department, str(stat.faculty_count))
    console.print(table)
    return 0


def cmd_departments(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    if args.id is None:
        table = _table("Departments", ["ID", "Name", "Head"])
        for dept in directory.departments.get_all():
            table.add_row(str(dept.department_id), dept.department_name or "", _text(dept.hod_id))
        console.print(table)
        return 0

    department, faculty, courses = directory.fetch_concurrently(
        lambda: directory.departments.get_by_id(args.id),
        lambda: directory.faculty.get_by_department(args.id),
        lambda: directory.courses.get_by_department(args.id),
    )
    if department is None:
        console.print(f"Department {args.id} not found")
        return 1

    console.print(f"[bold]{department.department_name}[/bold] (id {department.department_id})")
    _print_faculty(f"Faculty ({len(faculty)})", faculty)
    _print_courses(f"Courses ({len(courses)})", courses)
    return 0


def cmd_faculty_list(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    if args.search is not None:
        faculty = directory.faculty.search(args.search)
    elif args.department is not None:
        faculty = directory.faculty.get_by_department(args.department, with_relations=True)
    else:
        faculty = directory.faculty.get_all(with_relations=True)
    _print_faculty(f"Faculty ({len(faculty)})", faculty)
    return 0


def cmd_faculty_show(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    member = directory.faculty.get_with_all_details(args.faculty_id)
    if member is None:
        console.print(f"Faculty {args.faculty_id} not found")
        return 1

    details = Table(show_header=False, box=None, padding=(0, 2))
    details.add_column("Field", style="bold cyan")
    details.add_column("Value")
    office = member.office
    for label, value in (
        ("Name", member.name),
        ("Designation", member.designation),
        ("Qualification", member.qualification),
        ("Email", member.email),
        ("Phone", member.phone),
        ("Profile", member.profile_link),
        ("Department", member.department.department_name if member.department else None),
        ("Office", " ".join(filter(None, [office.room_number, office.block, office.location])) if office else None),
    ):
        details.add_row(label, _text(value))
    console.print(details)

    courses = _table("Courses", ["Code", "Course", "Semester", "Year"])
    for assignment in member.faculty_course or []:
        course = assignment.courses
        courses.add_row(
            course.course_code if course else "",
            course.course_name if course else "",
            _text(assignment.semester),
            _text(assignment.academic_year),
        )
    console.print(courses)

    pubs = sorted(
        member.publications or [],
        key=lambda p: p.publication_year or 0,
        reverse=True,
    )
    _print_publications("Publications", pubs)
    return 0


def cmd_faculty_add(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    record = _faculty_fields(args)
    problems = validate_new_faculty(record)
    if problems:
        for problem in problems:
            console.print(f"[red]{problem}[/red]")
        return 1

    try:
        created = directory.faculty.create(record)
    except Conflict:
        console.print(f"[red]A faculty member with email {record['email']} already exists[/red]")
        return 1
    console.print(f"Added faculty {created.faculty_id}: {created.name}")
    return 0


def cmd_faculty_update(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    changes = _faculty_fields(args)
    if not changes:
        console.print("[red]Nothing to update: pass at least one field[/red]")
        return 1
    if "email" in changes and not EMAIL_RE.match(changes["email"]):
        console.print("[red]Please enter a valid email address[/red]")
        return 1

    updated = directory.faculty.update(args.faculty_id, changes)
    console.print(f"Updated faculty {updated.faculty_id}: {', '.join(sorted(changes))}")
    return 0


def cmd_faculty_delete(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    if not args.yes and not Confirm.ask(f"Delete faculty {args.faculty_id}?", default=False):
        console.print("Cancelled")
        return 1
    if not directory.faculty.delete(args.faculty_id):
        console.print(f"Faculty {args.faculty_id} not found")
        return 1
    console.print(f"Deleted faculty {args.faculty_id}")
    return 0


def cmd_faculty_assign(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    assignment = directory.faculty.assign_course(
        args.faculty_id, args.course_id, args.semester, args.year
    )
    console.print(
        f"Assigned course {assignment.course_id} to faculty {assignment.faculty_id} "
        f"for {assignment.semester} {assignment.academic_year}"
    )
    return 0


def cmd_courses(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    if args.department is not None:
        courses = directory.courses.get_by_department(args.department)
    else:
        courses = directory.courses.get_all(with_relations=True)
    _print_courses(f"Courses ({len(courses)})", courses)
    return 0


def cmd_publications(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    if args.faculty is not None:
        pubs = directory.publications.get_by_faculty(args.faculty)
    else:
        pubs = directory.publications.get_all(with_faculty=True)
    _print_publications(f"Publications ({len(pubs)})", pubs)
    return 0


def cmd_offices(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    table = _table("Offices", ["ID", "Room", "Block", "Location"])
    for office in directory.offices.get_all():
        table.add_row(
            str(office.office_id),
            _text(office.room_number),
            _text(office.block),
            _text(office.location),
        )
    console.print(table)
    return 0


def cmd_scrape(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    with HttpClient.from_config(config) as client:
        result = FacultyScraper(client, directory, config).scrape(args.url)
    if result.success:
        console.print(f"Scraped {result.count} faculty records from {args.url}")
        return 0
    console.print(f"[red]Scrape failed:[/red] {result.error}")
    return 1


def cmd_scrape_log(directory: Directory, args: argparse.Namespace, config: dict) -> int:
    table = _table("Scrape runs", ["When", "Status", "Records", "Error"])
    for entry in directory.scrape_logs.get_all():
        table.add_row(
            _text(entry.timestamp),
            entry.status,
            _text(entry.records_updated),
            _text(entry.error_message),
        )
    console.print(table)
    return 0


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def validate_new_faculty(record: dict[str, Any]) -> list[str]:
    """Problems that block adding *record*; empty when it can be saved."""
    problems = []
    if not record.get("name") or not record.get("email") or record.get("department_id") is None:
        problems.append("Please fill in all required fields (Name, Email, Department)")
    if record.get("email") and not EMAIL_RE.match(record["email"]):
        problems.append("Please enter a valid email address")
    return problems


def _faculty_fields(args: argparse.Namespace) -> dict[str, Any]:
    return {
        column: getattr(args, option)
        for option, column in FACULTY_OPTIONS.items()
        if getattr(args, option, None) is not None
    }


def _table(title: str, columns: list[str]) -> Table:
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    return table


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _print_faculty(title: str, faculty: list[Faculty]) -> None:
    table = _table(title, ["ID", "Name", "Designation", "Email", "Department"])
    for member in faculty:
        table.add_row(
            str(member.faculty_id),
            _text(member.name),
            _text(member.designation),
            _text(member.email),
            member.department.department_name or "" if member.department else "",
        )
    console.print(table)


def _print_courses(title: str, courses: list) -> None:
    table = _table(title, ["Code", "Course", "Credits", "Department"])
    for course in courses:
        table.add_row(
            _text(course.course_code),
            _text(course.course_name),
            _text(course.credits),
            course.department.department_name or "" if course.department else "",
        )
    console.print(table)


def _print_publications(title: str, pubs: list) -> None:
    table = _table(title, ["Year", "Title", "Journal", "Author"])
    for pub in pubs:
        author = getattr(pub, "faculty", None)
        table.add_row(
            _text(pub.publication_year),
            _text(pub.title),
            _text(pub.journal),
            author.name or "" if author else "",
        )
    console.print(table)
