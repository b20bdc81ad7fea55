import pytest

from evalify.errors import NotFoundError
from evalify.models import QuizReport
from evalify.services import ReportService


def test_empty_quiz_report_is_all_zero(quiz):
    report = ReportService.build_report(quiz.id)

    assert report.total_students == 0
    assert report.avg_score == 0
    assert report.max_score == 0
    assert report.min_score == 0
    assert report.total_score == 0
    assert report.mark_distribution == {'excellent': 0, 'good': 0, 'average': 0, 'poor': 0}
    assert [s['attempted'] for s in report.question_stats] == [0, 0, 0]


def test_report_aggregates_scores(quiz, questions, make_user, make_result):
    mcq, true_false, descriptive = questions
    # total marks 8: 8 -> excellent, 5 -> good, 2 -> poor
    make_result(make_user('STUDENT'), {}, scores={mcq.id: 2.0, true_false.id: 1.0, descriptive.id: 5.0})
    make_result(make_user('STUDENT'), {}, scores={mcq.id: 2.0, true_false.id: 1.0, descriptive.id: 2.0})
    make_result(make_user('STUDENT'), {}, scores={mcq.id: 2.0, true_false.id: 0.0, descriptive.id: 0.0})
    for result in quiz.results:
        result.score = sum(entry['score'] for entry in result.responses.values())

    report = ReportService.build_report(quiz.id)

    assert report.total_students == 3
    assert report.total_score == 15.0
    assert report.avg_score == 5.0
    assert report.max_score == 8.0
    assert report.min_score == 2.0
    assert report.mark_distribution == {'excellent': 1, 'good': 1, 'average': 0, 'poor': 1}

    stats = {s['question_id']: s for s in report.question_stats}
    assert stats[mcq.id]['correct'] == 3
    assert stats[true_false.id]['correct'] == 2
    assert stats[true_false.id]['incorrect'] == 1
    assert stats[descriptive.id]['avg_marks'] == round(7 / 3, 2)
    assert stats[descriptive.id]['max_marks'] == 5.0


def test_unsubmitted_attempts_are_excluded(quiz, questions, student, make_result):
    make_result(student, {}, status='NOT_SUBMITTED', scores={questions[0].id: 2.0})

    report = ReportService.build_report(quiz.id)

    assert report.total_students == 0


def test_rebuild_updates_existing_report(quiz, student, make_result):
    ReportService.build_report(quiz.id)
    make_result(student, {})
    ReportService.build_report(quiz.id)

    assert QuizReport.query.filter_by(quiz_id=quiz.id).count() == 1
    assert quiz.report.total_students == 1


def test_unknown_quiz(app):
    with pytest.raises(NotFoundError):
        ReportService.build_report(9999)
