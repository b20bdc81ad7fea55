"""
Report Service
Aggregates quiz results into the stored QuizReport
"""
import logging

from evalify.extensions import db
from evalify.errors import NotFoundError
from evalify.models import Quiz, QuizResult, QuizReport
from evalify.utils.helpers import now_utc

logger = logging.getLogger(__name__)

# Lower bound (percent of total marks) for each band, checked in order
DISTRIBUTION_BANDS = (
    ('excellent', 80),
    ('good', 60),
    ('average', 40),
    ('poor', 0),
)


def _band_for(percentage):
    for band, lower in DISTRIBUTION_BANDS:
        if percentage >= lower:
            return band
    return 'poor'


class ReportService:
    """Service for building quiz reports"""

    @staticmethod
    def question_stats(questions, results):
        stats = []
        for question in questions:
            key = str(question.id)
            marks = []
            for result in results:
                entry = (result.responses or {}).get(key)
                score = entry.get('score') if isinstance(entry, dict) else None
                if isinstance(score, (int, float)):
                    marks.append(float(score))

            full_marks = float(question.marks or 0)
            correct = len([m for m in marks if full_marks and m >= full_marks])
            stats.append({
                'question_id': question.id,
                'type': question.type,
                'marks': full_marks,
                'attempted': len(marks),
                'correct': correct,
                'incorrect': len(marks) - correct,
                'avg_marks': round(sum(marks) / len(marks), 2) if marks else 0,
                'max_marks': max(marks) if marks else 0,
            })
        return stats

    @staticmethod
    def mark_distribution(scores, total_marks):
        distribution = {band: 0 for band, _ in DISTRIBUTION_BANDS}
        for score in scores:
            percentage = (score / total_marks * 100) if total_marks else 0
            distribution[_band_for(percentage)] += 1
        return distribution

    @staticmethod
    def build_report(quiz_id):
        """Create or refresh the report of a quiz"""
        quiz = db.session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError('Quiz not found')

        results = QuizResult.query.filter(
            QuizResult.quiz_id == quiz_id,
            QuizResult.submission_status != 'NOT_SUBMITTED',
        ).all()
        scores = [float(r.score or 0) for r in results]

        report = QuizReport.query.filter_by(quiz_id=quiz_id).first()
        if report is None:
            report = QuizReport(quiz_id=quiz_id)
            db.session.add(report)

        report.total_students = len(scores)
        report.total_score = round(sum(scores), 2)
        report.avg_score = round(sum(scores) / len(scores), 2) if scores else 0.0
        report.max_score = max(scores) if scores else 0.0
        report.min_score = min(scores) if scores else 0.0
        report.question_stats = ReportService.question_stats(quiz.get_questions(), results)
        report.mark_distribution = ReportService.mark_distribution(scores, quiz.total_marks())
        report.generated_at = now_utc()

        db.session.commit()
        logger.info('Report rebuilt for quiz %s (%d students)', quiz_id, len(scores))
        return report
