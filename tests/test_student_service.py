"""Tests for StudentService."""

from app.constants.chat import StudentStatus
from app.schemas.chat import StudentSnapshot
from app.services.student_service import StudentService


def _snapshot(session_id, persistent_id, username, last_active):
    return StudentSnapshot(
        id=f"c-{username}",
        persistent_id=persistent_id,
        session_id=session_id,
        username=username,
        status=StudentStatus.ONLINE,
        last_active=last_active,
    )


def test_session_students_are_ordered(db, setup_session):
    sid = setup_session.session_id
    svc = StudentService(db)
    svc.save_student(_snapshot(sid, f"{sid}_c_3", "c", "2026-01-01T10:00:02.000000Z"))
    svc.save_student(_snapshot(sid, f"{sid}_b_2", "b", "2026-01-01T10:00:01.000000Z"))
    svc.save_student(_snapshot(sid, f"{sid}_a_1", "a", "2026-01-01T10:00:02.000000Z"))

    students = svc.get_session_students(sid)
    assert [s.persistent_id for s in students] == [
        f"{sid}_b_2",
        f"{sid}_a_1",
        f"{sid}_c_3",
    ]


def test_find_student_by_username_folds_non_ascii(db, setup_session):
    sid = setup_session.session_id
    svc = StudentService(db)
    svc.save_student(_snapshot(sid, f"{sid}_élodie_1", "Élodie", None))

    assert svc.find_student_by_username(sid, "élodie").persistent_id == f"{sid}_élodie_1"
    assert svc.find_student_by_username(sid, " ÉLODIE ").persistent_id == f"{sid}_élodie_1"
    assert svc.find_student_by_username(sid, "Elodie") is None
    assert svc.find_student_by_username("99999", "Élodie") is None


def test_remove_student(db, setup_student):
    svc = StudentService(db)
    assert svc.remove_student(socket_id=setup_student.socket_id) is True
    assert svc.get_student(setup_student.persistent_id) is None
    assert svc.remove_student() is False
