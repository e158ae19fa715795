"""Student CRUD keyed by persistent id."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session as DBSession

from app.core.session_key import normalize_username
from app.models.student import Student
from app.schemas.chat import StudentSnapshot


class StudentService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_student(self, persistent_id: str) -> Optional[Student]:
        return (
            self.db.query(Student)
            .filter(Student.persistent_id == persistent_id)
            .first()
        )

    def save_student(self, data: StudentSnapshot) -> Student:
        """Insert or update by persistent id; the owning session never changes."""
        student = self.get_student(data.persistent_id)
        if student is None:
            student = Student(
                persistent_id=data.persistent_id,
                session_id=data.session_id,
            )
            self.db.add(student)
        student.username = data.username
        student.status = data.status.value
        student.last_active = data.last_active
        student.socket_id = data.id
        self.db.commit()
        self.db.refresh(student)
        return student

    def get_session_students(self, session_id: str) -> List[Student]:
        return (
            self.db.query(Student)
            .filter(Student.session_id == session_id)
            .order_by(Student.last_active.asc(), Student.persistent_id.asc())
            .all()
        )

    def find_student_by_username(
        self, session_id: str, username: str
    ) -> Optional[Student]:
        """
        Case-insensitive username match within a session.

        Compared in Python: SQLite's lower() only folds ASCII letters.
        """
        wanted = normalize_username(username)
        for student in self.get_session_students(session_id):
            if normalize_username(student.username) == wanted:
                return student
        return None

    def remove_student(
        self,
        persistent_id: Optional[str] = None,
        socket_id: Optional[str] = None,
    ) -> bool:
        query = self.db.query(Student)
        if persistent_id:
            query = query.filter(Student.persistent_id == persistent_id)
        elif socket_id:
            query = query.filter(Student.socket_id == socket_id)
        else:
            return False
        deleted = query.delete()
        self.db.commit()
        return deleted > 0
