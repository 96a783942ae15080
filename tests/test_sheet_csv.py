"""Tests for parsing the spreadsheet's CSV exports."""

from __future__ import annotations

import pytest

from placement_models import Student
from sheet_csv import (
    find_duplicate_students,
    normalize_header,
    parse_students,
    parse_verifications,
    parse_verified_students,
    resolve_columns,
    sanitize_csv_text,
)


def test_parse_students_drops_blank_and_incomplete_rows():
    text = "Name,Registration_Number,Company\nA,REG1,Acme\n,,\nB,REG2,"

    students = parse_students(text)

    assert len(students) == 1
    assert students[0].name == "A"
    assert students[0].reg_no == "REG1"
    assert students[0].company == "Acme"


def test_parse_students_keeps_unplaced_rows_when_company_not_required():
    text = "Name,Registration_Number,Company\nA,REG1,Acme\nB,REG2,"

    students = parse_students(text, require_company=False)

    assert [s.reg_no for s in students] == ["REG1", "REG2"]


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Registration_Number", "registration number"),
        ("  Registration   Number ", "registration number"),
        ("REG NO", "reg no"),
        ("Email_Id", "email id"),
    ],
)
def test_normalize_header(header, expected):
    assert normalize_header(header) == expected


def test_headers_are_matched_by_alias_not_position():
    text = (
        " Phone , email_id,COURSE,Company,reg no,Student   Name\n"
        "9876543210,a@x.com,CSE,Acme,r-1,Asha\n"
    )

    students = parse_students(text)

    assert students == [
        Student(
            reg_no="r-1",
            name="Asha",
            email="a@x.com",
            department="CSE",
            company="Acme",
            phone="9876543210",
        )
    ]


def test_resolve_columns_prefers_first_alias():
    positions = resolve_columns(["Name", "Student Name"], {"name": ("student name", "name")})
    assert positions == {"name": 1}


def test_sanitize_replaces_curly_quotes_and_stray_characters():
    raw = "\ufeffName,Registration_Number,Company\n\u201cAsha\u201d,R1,Ac\ufffdme\n"

    cleaned = sanitize_csv_text(raw)

    assert cleaned == 'Name,Registration_Number,Company\n"Asha",R1,Acme\n'


def test_parse_students_drops_records_with_too_few_fields():
    raw = "Name,Registration_Number,Company\nbroken line\nAsha,R1,Acme\nRavi,R2\n"

    students = parse_students(raw)

    assert [s.reg_no for s in students] == ["R1"]


def test_parse_verifications_keeps_multiline_quoted_comments():
    raw = (
        "Student Name,Registration Number,Company,Status,Comments,Is Verified\n"
        'Asha,R1,Acme,Joined,"Great\nwork",true\n'
        "Ravi,R2,Acme,Joined,ok,true\n"
    )

    verifications = parse_verifications(raw)

    assert [(v.registration_number, v.comments) for v in verifications] == [
        ("R1", "Great\nwork"),
        ("R2", "ok"),
    ]


def test_parse_students_handles_curly_quoted_values_with_commas():
    raw = "Name,Registration_Number,Company\nAsha,R1,\u201cAcme, Inc\u201d\n"

    students = parse_students(raw)

    assert len(students) == 1
    assert students[0].company == "Acme, Inc"


def test_parse_students_on_empty_input():
    assert parse_students("") == []
    assert parse_students("Name,Registration_Number,Company\n") == []


def test_parse_verified_students_requires_flag_and_company():
    raw = (
        "Student Name,Registration Number,Email,Department,Company,Phone,Verification Date,Is Verified \n"
        "Asha,R1,a@x.com,CSE,Acme,111,2024-05-01,TRUE\n"
        "Ravi,R2,r@x.com,CSE,Acme,222,2024-05-01,false\n"
        "Meena,R3,m@x.com,ECE,,333,2024-05-01,true\n"
    )

    verified = parse_verified_students(raw)

    assert [v.reg_no for v in verified] == ["R1"]
    assert verified[0].verification_date == "2024-05-01"


def test_parse_verifications_coerces_flags_and_rating():
    raw = (
        "Student Name,Registration Number,Company,Recruiter Name,Status,Still With Us,Rating,Comments,Is Verified\n"
        "Asha,R1,Acme,Priya,Joined,TRUE,4,Great,true\n"
        "Ravi,R2,Acme,Priya,Not Joined,false,,,\n"
        ",R3,Acme,Priya,Joined,true,5,,true\n"
    )

    verifications = parse_verifications(raw)

    assert len(verifications) == 2
    first, second = verifications
    assert first.still_with_us is True
    assert first.rating == 4
    assert first.comments == "Great"
    assert first.is_verified is True
    assert second.rating is None
    assert second.comments is None
    assert second.is_verified is False


def test_find_duplicate_students_reports_without_collapsing():
    students = [
        Student(reg_no="R1", name="Asha", company="Acme"),
        Student(reg_no="r1 ", name="Asha K", company="ACME"),
        Student(reg_no="R1", name="Asha", company="Globex"),
    ]

    assert find_duplicate_students(students) == [("r1", "acme")]
