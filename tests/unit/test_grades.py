"""
test_grades.py - Unit tests for the grade book ledger
"""

import pytest
from datetime import datetime

import numpy as np

from ledger_engine import ErrorKind, Gradebook, GradeEntry, NotFound, MalformedInput
from ledger_engine.domains.grades import SAMPLE_NAMES


class TestStudents:

    def test_add_student(self, gradebook):
        student = gradebook.add_student(" Ada Lovelace ", "7").unwrap()
        assert student.student_id == 7
        assert student.name == "Ada Lovelace"
        assert student.grades == []
        assert student.average == 0.0
        assert student.letter == "F"

    def test_duplicate_id(self, gradebook):
        gradebook.add_student("Ada", 1).unwrap()
        result = gradebook.add_student("Another Ada", 1)
        assert result.error_kind is ErrorKind.DUPLICATE_ID
        assert gradebook.get_student(1).name == "Ada"

    @pytest.mark.parametrize("name, student_id", [("", 1), ("Ada", "one"), ("Ada", None)])
    def test_malformed(self, gradebook, name, student_id):
        assert gradebook.add_student(name, student_id).error_kind is ErrorKind.MALFORMED_INPUT
        assert len(gradebook.list_resources()) == 0

    def test_remove_student_drops_entries(self, graded_book):
        removed = graded_book.remove_student(1).unwrap()
        assert removed.name == "Ada"
        assert [s.student_id for s in graded_book.list_resources()] == [2]
        assert [e.student_id for e in graded_book.list_entries()] == [2]

    def test_remove_unknown(self, gradebook):
        assert gradebook.remove_student(99).error_kind is ErrorKind.NOT_FOUND

    def test_clear(self, graded_book):
        assert graded_book.clear().unwrap() == 2
        assert graded_book.list_resources() == ()
        assert graded_book.list_entries() == ()

    def test_get_unknown_raises(self, gradebook):
        with pytest.raises(NotFound):
            gradebook.get_student(5)


class TestGrades:

    def test_add_grade_records_entry(self, gradebook):
        gradebook.add_student("Ada", 1).unwrap()
        entry = gradebook.add_grade(1, "88.5").unwrap()
        assert entry == GradeEntry(1, 1, 88.5)
        assert gradebook.get_student(1).grades == [88.5]

    @pytest.mark.parametrize("grade", [0, 100, "0", "100.0"])
    def test_bounds_inclusive(self, gradebook, grade):
        gradebook.add_student("Ada", 1).unwrap()
        assert gradebook.add_grade(1, grade).ok

    @pytest.mark.parametrize("grade", [-0.01, 100.01, "150"])
    def test_out_of_range(self, gradebook, grade):
        gradebook.add_student("Ada", 1).unwrap()
        result = gradebook.add_grade(1, grade)
        assert result.error_kind is ErrorKind.INVALID_RANGE
        assert gradebook.get_student(1).grades == []

    def test_not_a_number(self, gradebook):
        gradebook.add_student("Ada", 1).unwrap()
        assert gradebook.add_grade(1, "A+").error_kind is ErrorKind.MALFORMED_INPUT

    def test_unknown_student(self, gradebook):
        assert gradebook.add_grade(3, 90).error_kind is ErrorKind.NOT_FOUND

    def test_student_stats(self, graded_book):
        ada = graded_book.get_student(1)
        assert ada.average == pytest.approx(85.0)
        assert ada.highest == 90.0
        assert ada.lowest == 80.0
        assert ada.grade_count == 2
        assert ada.letter == "B"


class TestAggregates:

    def test_class_average(self, graded_book):
        assert graded_book.class_average() == pytest.approx(72.5)

    def test_student_without_grades_counts_as_zero(self, graded_book):
        graded_book.add_student("Cy", 3).unwrap()
        assert graded_book.class_average() == pytest.approx((85.0 + 60.0 + 0.0) / 3)

    def test_statistics(self, graded_book):
        stats = graded_book.aggregate("statistics")
        assert stats["student_count"] == 2
        assert stats["total_grades"] == 3
        assert stats["class_average"] == pytest.approx(72.5)
        assert stats["highest_average"] == pytest.approx(85.0)
        assert stats["top_student"] == "Ada"
        assert stats["lowest_average"] == pytest.approx(60.0)
        assert stats["distribution"] == {"A": 0, "B": 1, "C": 0, "D": 1, "F": 0}

    def test_statistics_empty(self, gradebook):
        stats = gradebook.statistics()
        assert stats["student_count"] == 0
        assert stats["top_student"] is None
        assert stats["class_average"] == 0.0

    def test_report(self, graded_book):
        report = graded_book.report(generated_at=datetime(2025, 3, 1, 9, 0))
        assert "Generated on: 2025-03-01 09:00:00" in report
        assert "Ada (ID: 1)" in report
        assert "Average: 85.00 | Grade: B" in report
        assert "Grades: 80.00, 90.00" in report
        row = next(line for line in report.splitlines() if line.startswith("2 "))
        assert row.split() == ["2", "Ben", "60.00", "60.00", "60.00", "1", "D"]

    def test_search(self, graded_book):
        assert [s.name for s in graded_book.search(name="ad")] == ["Ada"]
        assert [s.name for s in graded_book.search(letter="d")] == ["Ben"]

    def test_search_bad_letter(self, graded_book):
        with pytest.raises(MalformedInput):
            graded_book.search(letter="E")


class TestSampleStudents:

    def test_sample_student(self, gradebook):
        student = gradebook.add_sample_student(np.random.default_rng(0)).unwrap()
        assert student.student_id == 2000
        assert student.name == SAMPLE_NAMES[0]
        assert len(student.grades) == 3
        low, mid, high = student.grades
        assert 75.0 <= low < 100.0
        assert 80.0 <= mid < 100.0
        assert 85.0 <= high < 100.0

    def test_names_cycle(self, gradebook):
        rng = np.random.default_rng(1)
        students = [gradebook.add_sample_student(rng).unwrap() for _ in range(6)]
        assert [s.student_id for s in students] == list(range(2000, 2006))
        assert students[5].name == SAMPLE_NAMES[0]

    def test_id_follows_student_count(self, gradebook):
        gradebook.add_student("Squatter", 2000).unwrap()
        result = gradebook.add_sample_student(np.random.default_rng(2))
        assert result.record.student_id == 2001
        assert result.record.name == SAMPLE_NAMES[1]

    def test_taken_id_rejected(self, gradebook):
        gradebook.add_student("Squatter", 2001).unwrap()
        result = gradebook.add_sample_student(np.random.default_rng(2))
        assert result.error_kind is ErrorKind.DUPLICATE_ID
        assert len(gradebook.list_resources()) == 1
        assert gradebook.list_entries() == ()


class TestPersistence:

    def test_in_memory_by_default(self, gradebook):
        assert gradebook.snapshot is None

    def test_round_trip(self, tmp_path):
        path = tmp_path / "grades.jsonl"
        book = Gradebook(snapshot_path=path, verbose=False)
        book.add_student("Ada", 1).unwrap()
        book.add_student("Ben", 2).unwrap()
        book.add_grade(1, 80).unwrap()
        book.add_grade(2, 60).unwrap()
        book.add_grade(1, 90).unwrap()
        book.remove_student(2).unwrap()

        reloaded = Gradebook(snapshot_path=path, verbose=False)
        assert [s.name for s in reloaded.list_resources()] == ["Ada"]
        assert reloaded.get_student(1).grades == [80.0, 90.0]
        assert reloaded.add_grade(1, 70).record.entry_id == 4
