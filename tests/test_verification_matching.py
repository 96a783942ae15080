from placement_models import Student, VerifiedStudent
from verification_matching import is_same_student, match_verified_record


def student(**overrides):
    fields = dict(
        reg_no="R1",
        name="Asha",
        email="asha@x.com",
        department="CSE",
        company="Acme",
        phone="9876543210",
    )
    fields.update(overrides)
    return Student(**fields)


def test_student_matches_itself():
    s = student()
    assert is_same_student(s, s)


def test_different_company_never_matches():
    assert not is_same_student(student(), student(company="Globex"))


def test_missing_company_never_matches():
    assert not is_same_student(student(company=""), student(company=""))


def test_any_single_identity_field_is_enough():
    base = student()
    blank = dict(reg_no="", name="", email="", phone="")

    assert is_same_student(base, student(**{**blank, "reg_no": "r1"}))
    assert is_same_student(base, student(**{**blank, "email": "ASHA@X.COM"}))
    assert is_same_student(base, student(**{**blank, "phone": " 9876543210 "}))
    assert is_same_student(base, student(**{**blank, "name": "asha"}))


def test_blank_fields_do_not_match_each_other():
    left = student(reg_no="R1", email="", phone="", name="")
    right = student(reg_no="R2", email="", phone="", name="")

    assert not is_same_student(left, right)


def test_shared_name_in_same_company_matches():
    assert is_same_student(student(reg_no="R1"), student(reg_no="R9", email="", phone=""))


def test_match_returns_first_record_in_order():
    records = [
        VerifiedStudent(reg_no="R7", name="Other", company="Acme", verification_date="d0"),
        VerifiedStudent(reg_no="R1", name="Asha", company="Acme", verification_date="d1"),
        VerifiedStudent(reg_no="R1", name="Asha", company="Acme", verification_date="d2"),
    ]

    match = match_verified_record(student(), records)

    assert match is records[1]


def test_no_match_returns_none():
    records = [VerifiedStudent(reg_no="R1", name="Asha", company="Globex")]

    assert match_verified_record(student(), records) is None
