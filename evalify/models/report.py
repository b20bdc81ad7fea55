"""
QuizReport Model
Precomputed aggregates attached to a quiz after evaluation
"""
from evalify.extensions import db
from evalify.utils.helpers import now_utc, isoformat


class QuizReport(db.Model):
    """Quiz report model"""
    __tablename__ = 'quiz_reports'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id', ondelete='CASCADE'),
                        unique=True, nullable=False)
    avg_score = db.Column(db.Float, nullable=False, default=0.0)
    max_score = db.Column(db.Float, nullable=False, default=0.0)
    min_score = db.Column(db.Float, nullable=False, default=0.0)
    total_score = db.Column(db.Float, nullable=False, default=0.0)
    total_students = db.Column(db.Integer, nullable=False, default=0)
    question_stats = db.Column(db.JSON, nullable=False, default=list)
    mark_distribution = db.Column(db.JSON, nullable=False, default=dict)
    generated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    quiz = db.relationship('Quiz', backref=db.backref('report', uselist=False,
                                                      cascade='all, delete-orphan'))

    def __repr__(self):
        return f'<QuizReport quiz={self.quiz_id} avg={self.avg_score}>'

    def to_dict(self):
        return {
            'quiz_id': self.quiz_id,
            'avg_score': self.avg_score,
            'max_score': self.max_score,
            'min_score': self.min_score,
            'total_score': self.total_score,
            'total_students': self.total_students,
            'question_stats': self.question_stats or [],
            'mark_distribution': self.mark_distribution or {},
            'generated_at': isoformat(self.generated_at),
        }
