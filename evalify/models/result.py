"""
QuizResult Model
One attempt per student per quiz, holding responses and per-question scores
"""
from evalify.extensions import db
from evalify.utils.helpers import now_utc, isoformat


class QuizResult(db.Model):
    """Quiz result model"""
    __tablename__ = 'quiz_results'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'),
                           nullable=False, index=True)

    start_time = db.Column(db.DateTime, nullable=False, default=now_utc)
    end_time = db.Column(db.DateTime)
    submission_time = db.Column(db.DateTime)

    # {question_id: {"student_answer", "score", "remarks", "breakdown"}}
    responses = db.Column(db.JSON, nullable=False, default=dict)
    score = db.Column(db.Float, nullable=False, default=0.0)
    total_score = db.Column(db.Float, nullable=False, default=0.0)

    ip = db.Column(db.JSON, default=list)
    violations = db.Column(db.Text, default='')

    submission_status = db.Column(db.String(20), nullable=False, default='NOT_SUBMITTED', index=True)
    evaluation_status = db.Column(db.String(20), nullable=False, default='NOT_EVALUATED', index=True)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    quiz = db.relationship('Quiz', backref=db.backref('results', lazy=True,
                                                      cascade='all, delete-orphan'))
    student = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'student_id', name='unique_result_per_student'),
    )

    def __repr__(self):
        return f'<QuizResult quiz={self.quiz_id} student={self.student_id}: {self.score}/{self.total_score}>'

    @property
    def is_submitted(self):
        return self.submission_status != 'NOT_SUBMITTED'

    def violation_count(self):
        return len([line for line in (self.violations or '').split('\n') if line.strip()])

    def to_dict(self, include_responses=False):
        data = {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'student': {
                'id': self.student.id,
                'name': self.student.name,
                'email': self.student.email,
                'roll_no': self.student.roll_no,
            } if self.student else None,
            'start_time': isoformat(self.start_time),
            'end_time': isoformat(self.end_time),
            'submission_time': isoformat(self.submission_time),
            'score': self.score,
            'total_score': self.total_score,
            'submission_status': self.submission_status,
            'evaluation_status': self.evaluation_status,
            'is_submitted': self.is_submitted,
            'violations': self.violation_count(),
        }
        if include_responses:
            data['responses'] = self.responses or {}
        return data
