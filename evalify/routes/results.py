"""
Results Routes
Quiz results, manual scoring, evaluation jobs and reports
"""
from io import BytesIO
import logging

from flask import Blueprint, current_app, jsonify, send_file

from evalify.extensions import db
from evalify.errors import PermissionDenied
from evalify.models import Course, QuizResult, QuizReport
from evalify.services import (
    ClassReportClient,
    ReportService,
    ScoreEditService,
    ScoringService,
    build_class_report_payload,
    describe_status,
    evaluation_monitor,
)
from evalify.services.evaluation_client import DEFAULT_TYPES_TO_EVALUATE
from evalify.services.report_client import XLSX_MIMETYPE
from evalify.utils import (
    require_role,
    get_current_user,
    get_json_body,
    get_managed_quiz,
    get_or_404,
    now_utc,
)

results_bp = Blueprint('results', __name__)
logger = logging.getLogger(__name__)


def _managed_result(result_id):
    result = get_or_404(QuizResult, result_id, 'Result not found')
    get_managed_quiz(result.quiz_id)
    return result


@results_bp.route('/quizzes/<int:quiz_id>')
@require_role('STAFF', 'MANAGER')
def quiz_results(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    results = (
        QuizResult.query.filter_by(quiz_id=quiz.id)
        .order_by(QuizResult.score.desc())
        .all()
    )
    report = QuizReport.query.filter_by(quiz_id=quiz.id).first()
    evaluation_monitor.resume(quiz)
    return jsonify({
        'quiz': quiz.to_dict(),
        'results': [r.to_dict() for r in results],
        'submitted': len([r for r in results if r.is_submitted]),
        'report': report.to_dict() if report else None,
        'is_polling': evaluation_monitor.is_polling(quiz.id),
    })


@results_bp.route('/<int:result_id>')
@require_role('STAFF', 'MANAGER')
def get_result(result_id):
    result = _managed_result(result_id)
    return jsonify({
        'result': result.to_dict(include_responses=True),
        'questions': [q.to_dict() for q in result.quiz.get_questions()],
    })


@results_bp.route('/<int:result_id>/score', methods=['PUT'])
@require_role('STAFF', 'MANAGER')
def update_score(result_id):
    """Manually score one question of a result"""
    _managed_result(result_id)
    data = get_json_body()
    question_id = data.get('question_id', data.get('questionId'))

    result, entry = ScoreEditService.update_score(
        result_id,
        question_id,
        data.get('score'),
        remarks=data.get('remarks'),
        breakdown=data.get('breakdown'),
    )
    return jsonify({'result': result.to_dict(), 'response': entry})


@results_bp.route('/<int:result_id>', methods=['DELETE'])
@require_role('STAFF', 'MANAGER')
def delete_result(result_id):
    """Delete a response so the student can attempt again"""
    result = _managed_result(result_id)
    quiz_id = result.quiz_id
    db.session.delete(result)
    db.session.commit()
    logger.info('Result %s of quiz %s deleted', result_id, quiz_id)
    ReportService.build_report(quiz_id)
    return jsonify({'message': 'Response deleted'})


# ==================== EVALUATION ====================

@results_bp.route('/quizzes/<int:quiz_id>/evaluate', methods=['POST'])
@require_role('STAFF', 'MANAGER')
def start_evaluation(quiz_id):
    """Queue an external evaluation job and start polling it"""
    quiz = get_managed_quiz(quiz_id)
    data = get_json_body()
    types_to_evaluate = data.get('types_to_evaluate') or dict(DEFAULT_TYPES_TO_EVALUATE)

    upstream = evaluation_monitor.client.evaluate(
        quiz.id,
        override_evaluated=bool(data.get('override_evaluated', False)),
        types_to_evaluate=types_to_evaluate,
    )

    quiz.evaluation_status = 'QUEUED'
    db.session.commit()
    evaluation_monitor.start(quiz.id)
    logger.info('Evaluation queued for quiz %s', quiz.id)

    return jsonify({
        'message': upstream.get('message', 'Evaluation queued') if isinstance(upstream, dict) else 'Evaluation queued',
        'evaluation_status': quiz.evaluation_status,
        'is_polling': True,
    }), 202


@results_bp.route('/quizzes/<int:quiz_id>/evaluation-status')
@require_role('STAFF', 'MANAGER')
def evaluation_status(quiz_id):
    """Poll the worker once and apply the result"""
    quiz = get_managed_quiz(quiz_id)
    payload = evaluation_monitor.client.get_status(quiz.id)
    progress = evaluation_monitor.handle_status(quiz.id, payload)
    db.session.refresh(quiz)
    evaluation_monitor.resume(quiz)

    return jsonify({
        'progress': progress,
        'status_text': describe_status(progress) if progress else None,
        'message': payload.get('message') if isinstance(payload, dict) and progress is None else None,
        'evaluation_status': quiz.evaluation_status,
        'is_polling': evaluation_monitor.is_polling(quiz.id),
    })


@results_bp.route('/quizzes/<int:quiz_id>/evaluation/stop', methods=['POST'])
@require_role('STAFF', 'MANAGER')
def stop_evaluation(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    upstream = evaluation_monitor.client.stop(quiz.id)
    evaluation_monitor.stop(quiz.id)

    quiz.evaluation_status = 'NOT_EVALUATED'
    db.session.commit()
    logger.info('Evaluation stopped for quiz %s', quiz.id)

    message = upstream.get('message') if isinstance(upstream, dict) else None
    return jsonify({
        'message': message or 'Evaluation stopped',
        'evaluation_status': quiz.evaluation_status,
        'is_polling': False,
    })


@results_bp.route('/quizzes/<int:quiz_id>/report/regenerate', methods=['POST'])
@require_role('STAFF', 'MANAGER')
def regenerate_report(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    upstream = evaluation_monitor.client.regenerate_report(quiz.id)
    message = upstream.get('message') if isinstance(upstream, dict) else None
    return jsonify({'message': message or 'Report regeneration started'})


@results_bp.route('/quizzes/<int:quiz_id>/evaluate-local', methods=['POST'])
@require_role('STAFF', 'MANAGER')
def evaluate_locally(quiz_id):
    """Score objective questions in-process, without the worker"""
    quiz = get_managed_quiz(quiz_id)
    data = get_json_body()
    types = data.get('types') or None

    count = ScoringService.evaluate_quiz(
        quiz,
        types=types,
        override_evaluated=bool(data.get('override_evaluated', False)),
    )
    return jsonify({'evaluated': count, 'report': quiz.report.to_dict() if quiz.report else None})


@results_bp.route('/quizzes/<int:quiz_id>/report')
@require_role('STAFF', 'MANAGER')
def quiz_report(quiz_id):
    quiz = get_managed_quiz(quiz_id)
    report = QuizReport.query.filter_by(quiz_id=quiz.id).first()
    if report is None:
        report = ReportService.build_report(quiz.id)
    return jsonify({'report': report.to_dict()})


@results_bp.route('/courses/<int:course_id>/class-report')
@require_role('STAFF', 'MANAGER')
def class_report(course_id):
    """Download the xlsx class report of a course"""
    user = get_current_user()
    course = get_or_404(Course, course_id, 'Course not found')
    if user.role == 'STAFF' and not course.has_instructor(user):
        raise PermissionDenied('You do not teach this course')
    if user.role == 'MANAGER' and not any(m.id == user.id for m in course.semester.managers):
        raise PermissionDenied('You do not manage this course')

    quizzes = sorted(course.quizzes, key=lambda q: q.start_time)
    payload = build_class_report_payload(course, quizzes)
    content = ClassReportClient.from_config(current_app.config).generate(payload)

    filename = f'{course.code}_class_report_{now_utc():%Y%m%d}.xlsx'
    return send_file(BytesIO(content), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)
