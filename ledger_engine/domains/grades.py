"""
grades.py - Grade book ledger

Students and the grades entered for them.

Rules:
- student ids are unique integers chosen by the caller
- grades are floats in 0..100; each one is also kept as a GradeEntry
- a student's average is the plain mean of their grades (0.0 with none)
- the class average is the mean of per-student averages, so a student with
  no grades pulls the class average down

The grade book is in-memory unless a snapshot path is given.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import os

import numpy as np

from ..aggregates import (
    GRADE_LETTERS,
    class_average, grade_distribution, highest_grade, letter_grade, lowest_grade, mean_grade,
)
from ..core import (
    MAX_GRADE, MIN_GRADE,
    MutationResult,
    ValidationError, InvalidRange, MalformedInput,
)
from ..ledger import LedgerEngine, synchronized
from ..parsing import parse_grade, parse_int, parse_name
from ..snapshot import SnapshotRecord
from ..store import RecordStore


SAMPLE_NAMES = ("Alex Johnson", "Maria Garcia", "David Smith", "Lisa Wong", "Kevin Brown")
SAMPLE_ID_BASE = 2000

# (floor, spread) of each sample grade: floor + U[0, 1) * spread
SAMPLE_GRADE_BANDS = ((75.0, 25.0), (80.0, 20.0), (85.0, 15.0))

REPORT_RULE = "=" * 82


# ============================================================================
# DATA MODEL
# ============================================================================

@dataclass
class Student:
    student_id: int
    name: str
    grades: List[float] = field(default_factory=list)

    @property
    def average(self) -> float:
        return mean_grade(self.grades)

    @property
    def highest(self) -> float:
        return highest_grade(self.grades)

    @property
    def lowest(self) -> float:
        return lowest_grade(self.grades)

    @property
    def letter(self) -> str:
        return letter_grade(self.average)

    @property
    def grade_count(self) -> int:
        return len(self.grades)

    def grades_text(self) -> str:
        return ", ".join(f"{grade:.2f}" for grade in self.grades)


@dataclass(frozen=True, slots=True)
class GradeEntry:
    """One grade as entered, in entry order across the whole book."""
    entry_id: int
    student_id: int
    grade: float


# ============================================================================
# LEDGER
# ============================================================================

class Gradebook(LedgerEngine):
    """
    Grade book ledger.

    Mutations: add_student, add_grade, remove_student, clear, add_sample_student
    Aggregates: class_average, statistics, report

    Example:
        book = Gradebook()
        book.add_student("Ada", 1)
        book.add_grade(1, 80)
        book.add_grade(1, 90)
        book.get_student(1).average   # 85.0
        book.get_student(1).letter    # "B"
    """

    schema = "grades"

    def __init__(
        self,
        name: str = "grades",
        snapshot_path: Optional[os.PathLike] = None,
        verbose: bool = True,
        autoload: bool = True,
    ):
        super().__init__(name, snapshot_path=snapshot_path, verbose=verbose)
        self.students = RecordStore("student", key=lambda student: student.student_id)
        self.entries = RecordStore("grade entry", key=lambda entry: entry.entry_id)
        self.next_entry_id = 1

        self.register_mutation("add_student", self._add_student)
        self.register_mutation("add_grade", self._add_grade)
        self.register_mutation("remove_student", self._remove_student)
        self.register_mutation("clear", self._clear)
        self.register_aggregate("class_average", self.class_average)
        self.register_aggregate("statistics", self.statistics)
        self.register_aggregate("report", self.report)
        self._open(autoload)

    # ========================================================================
    # QUERIES
    # ========================================================================

    @synchronized
    def list_resources(self) -> Tuple[Student, ...]:
        return self.students.list_all()

    @synchronized
    def search(self, name: Optional[str] = None, letter: Optional[str] = None) -> Tuple[Student, ...]:
        """Students whose name contains the text (case-insensitive) and/or with a given letter."""
        wanted = letter.strip().upper() if letter is not None else None
        if wanted is not None and wanted not in GRADE_LETTERS:
            raise MalformedInput(f"letter must be one of {', '.join(GRADE_LETTERS)}, got {letter!r}")
        text = name.strip().lower() if name is not None else None
        return self.students.find(
            lambda student: (text is None or text in student.name.lower())
            and (wanted is None or student.letter == wanted)
        )

    @synchronized
    def get_student(self, student_id: Any) -> Student:
        return self.students.get(parse_int(student_id, "student_id"))

    @synchronized
    def list_entries(self, student_id: Any = None) -> Tuple[GradeEntry, ...]:
        if student_id is None:
            return self.entries.list_all()
        return self.entries.find(student_id=parse_int(student_id, "student_id"))

    # ========================================================================
    # AGGREGATES
    # ========================================================================

    @synchronized
    def class_average(self) -> float:
        return class_average([student.average for student in self.students])

    @synchronized
    def statistics(self) -> Dict[str, Any]:
        """
        Class-wide summary.

        Returns:
            Dict with student_count, total_grades, class_average,
            highest_average, top_student (name, or None for an empty class),
            lowest_average and distribution (students per letter)
        """
        students = self.students.list_all()
        averages = [student.average for student in students]
        top_student = None
        if students:
            top_student = students[int(np.argmax(averages))].name
        return {
            "student_count": len(students),
            "total_grades": sum(student.grade_count for student in students),
            "class_average": class_average(averages),
            "highest_average": max(averages) if averages else 0.0,
            "top_student": top_student,
            "lowest_average": min(averages) if averages else 0.0,
            "distribution": grade_distribution(averages),
        }

    @synchronized
    def report(self, generated_at: Optional[datetime] = None) -> str:
        """Plain-text report: a summary table followed by every student's grades."""
        generated_at = generated_at or datetime.now()
        lines = [
            "STUDENT GRADE REPORT",
            f"Generated on: {generated_at:%Y-%m-%d %H:%M:%S}",
            "",
            "STUDENTS LIST:",
            REPORT_RULE,
            f"{'ID':<8} {'Name':<20} {'Average':<10} {'Highest':<10} {'Lowest':<10} {'#Grades':<8} {'Grade':<6}",
            REPORT_RULE,
        ]
        for student in self.students:
            lines.append(
                f"{student.student_id:<8d} {student.name:<20} {student.average:<10.2f} "
                f"{student.highest:<10.2f} {student.lowest:<10.2f} "
                f"{student.grade_count:<8d} {student.letter:<6}"
            )
        lines += ["", "DETAILED VIEW:", REPORT_RULE]
        for student in self.students:
            lines += [
                "",
                f"{student.name} (ID: {student.student_id})",
                f"Average: {student.average:.2f} | Grade: {student.letter}",
                f"Grades: {student.grades_text()}",
            ]
        return "\n".join(lines) + "\n"

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def add_student(self, name: str, student_id: Any) -> MutationResult:
        return self._mutate("add_student", self._add_student, name=name, student_id=student_id)

    def add_grade(self, student_id: Any, grade: Any) -> MutationResult:
        return self._mutate("add_grade", self._add_grade, student_id=student_id, grade=grade)

    def remove_student(self, student_id: Any) -> MutationResult:
        return self._mutate("remove_student", self._remove_student, student_id=student_id)

    def clear(self) -> MutationResult:
        return self._mutate("clear", self._clear)

    def add_sample_student(self, rng: Optional[np.random.Generator] = None) -> MutationResult:
        """
        Add a demo student with three random grades.

        The name cycles through SAMPLE_NAMES and the id is 2000 + the current
        student count, so it is rejected with DuplicateId if that id is taken.
        """
        rng = rng if rng is not None else np.random.default_rng()
        draws = rng.random(len(SAMPLE_GRADE_BANDS))
        grades = [floor + float(u) * spread for (floor, spread), u in zip(SAMPLE_GRADE_BANDS, draws)]
        return self._mutate("add_sample_student", self._add_sample_student, grades)

    def _add_student(self, name: str, student_id: Any) -> Student:
        name = parse_name(name, "student name")
        student_id = parse_int(student_id, "student_id")
        student = Student(student_id, name)
        self.students.add(student)
        return student

    def _add_grade(self, student_id: Any, grade: Any) -> GradeEntry:
        student = self.students.get(parse_int(student_id, "student_id"))
        value = parse_grade(grade)
        if not MIN_GRADE <= value <= MAX_GRADE:
            raise InvalidRange(f"grade must be between {MIN_GRADE:g} and {MAX_GRADE:g}, got {value:g}")

        # All checks passed - apply.
        entry = GradeEntry(self.next_entry_id, student.student_id, value)
        self.entries.add(entry)
        self.next_entry_id += 1
        student.grades.append(value)
        return entry

    def _remove_student(self, student_id: Any) -> Student:
        student = self.students.remove(parse_int(student_id, "student_id"))
        for entry in self.entries.find(student_id=student.student_id):
            self.entries.remove(entry.entry_id)
        return student

    def _clear(self) -> int:
        removed = len(self.students)
        self._reset_state()
        return removed

    def _add_sample_student(self, grades: List[float]) -> Student:
        count = len(self.students)
        student = self._add_student(SAMPLE_NAMES[count % len(SAMPLE_NAMES)], SAMPLE_ID_BASE + count)
        for grade in grades:
            self._add_grade(student.student_id, grade)
        return student

    # ========================================================================
    # SNAPSHOT HOOKS
    # ========================================================================

    def _reset_state(self) -> None:
        self.students.clear()
        self.entries.clear()
        self.next_entry_id = 1

    def _snapshot_records(self) -> Iterable[SnapshotRecord]:
        for student in self.students:
            yield {"type": "student", "student_id": student.student_id, "name": student.name}
        for entry in self.entries:
            yield {
                "type": "grade",
                "entry_id": entry.entry_id,
                "student_id": entry.student_id,
                "grade": entry.grade,
            }

    def _restore_records(self, records: List[SnapshotRecord]) -> int:
        skipped = 0
        # Students first, so grade lines may appear in any order.
        for record in records:
            if record["type"] != "student":
                continue
            try:
                self._add_student(record["name"], record["student_id"])
            except (KeyError, ValidationError):
                skipped += 1
        for record in records:
            kind = record["type"]
            if kind == "student":
                continue
            if kind != "grade":
                skipped += 1
                continue
            try:
                entry = GradeEntry(
                    int(record["entry_id"]),
                    parse_int(record["student_id"], "student_id"),
                    parse_grade(record["grade"]),
                )
                student = self.students.get(entry.student_id)
                if not MIN_GRADE <= entry.grade <= MAX_GRADE:
                    raise InvalidRange(f"grade {entry.grade} out of range")
                self.entries.add(entry)
            except (KeyError, TypeError, ValueError, ValidationError):
                skipped += 1
                continue
            student.grades.append(entry.grade)
            self.next_entry_id = max(self.next_entry_id, entry.entry_id + 1)
        return skipped
