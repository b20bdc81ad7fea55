"""
Quiz Models
Quizzes, their ordered questions and per-quiz evaluation settings
"""
from datetime import timedelta

from evalify.extensions import db
from evalify.utils.helpers import now_utc, isoformat

QUIZ_EVALUATION_STATUSES = ('NOT_EVALUATED', 'QUEUED', 'EVALUATING', 'EVALUATED', 'FAILED')


course_quizzes = db.Table(
    'course_quizzes',
    db.Column('quiz_id', db.Integer, db.ForeignKey('quizzes.id', ondelete='CASCADE'), primary_key=True),
    db.Column('course_id', db.Integer, db.ForeignKey('courses.id', ondelete='CASCADE'), primary_key=True),
)


class Quiz(db.Model):
    """Quiz model"""
    __tablename__ = 'quizzes'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    instructions = db.Column(db.Text)

    # Time window; each student gets duration_minutes inside it
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False, index=True)
    duration_minutes = db.Column(db.Integer, nullable=False)

    password = db.Column(db.String(255))

    # Behaviour
    full_screen = db.Column(db.Boolean, nullable=False, default=False)
    shuffle_questions = db.Column(db.Boolean, nullable=False, default=False)
    shuffle_options = db.Column(db.Boolean, nullable=False, default=False)
    linear_quiz = db.Column(db.Boolean, nullable=False, default=False)
    calculator = db.Column(db.Boolean, nullable=False, default=False)
    auto_submit = db.Column(db.Boolean, nullable=False, default=False)
    publish_quiz = db.Column(db.Boolean, nullable=False, default=False, index=True)
    publish_result = db.Column(db.Boolean, nullable=False, default=False)

    evaluation_status = db.Column(db.String(20), nullable=False, default='NOT_EVALUATED')

    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), index=True)
    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    # Relationships
    courses = db.relationship('Course', secondary=course_quizzes, lazy='subquery',
                              backref=db.backref('quizzes', lazy=True))
    quiz_questions = db.relationship('QuizQuestion', backref='quiz', lazy=True,
                                     order_by='QuizQuestion.order_index',
                                     cascade='all, delete-orphan')
    settings = db.relationship('QuizEvaluationSettings', backref='quiz', uselist=False,
                               cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Quiz {self.name}>'

    @property
    def duration(self):
        return timedelta(minutes=self.duration_minutes or 0)

    def status(self, now=None):
        """UPCOMING, LIVE or COMPLETED relative to now"""
        now = now or now_utc()
        if now < self.start_time:
            return 'UPCOMING'
        if now > self.end_time:
            return 'COMPLETED'
        return 'LIVE'

    def get_questions(self):
        """Questions in quiz order"""
        return [qq.question for qq in self.quiz_questions]

    def total_marks(self):
        return sum(qq.question.marks or 0 for qq in self.quiz_questions)

    def can_manage(self, user):
        """Creator, instructor of a linked course, or manager of its semester"""
        if user.role == 'ADMIN' or self.created_by_id == user.id:
            return True
        for course in self.courses:
            if course.has_instructor(user):
                return True
            if user.role == 'MANAGER' and any(m.id == user.id for m in course.semester.managers):
                return True
        return False

    def get_settings(self):
        """Evaluation settings, created with defaults on first access"""
        if self.settings is None:
            self.settings = QuizEvaluationSettings()
        return self.settings

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'instructions': self.instructions,
            'start_time': isoformat(self.start_time),
            'end_time': isoformat(self.end_time),
            'duration_minutes': self.duration_minutes,
            'has_password': bool(self.password),
            'full_screen': self.full_screen,
            'shuffle_questions': self.shuffle_questions,
            'shuffle_options': self.shuffle_options,
            'linear_quiz': self.linear_quiz,
            'calculator': self.calculator,
            'auto_submit': self.auto_submit,
            'publish_quiz': self.publish_quiz,
            'publish_result': self.publish_result,
            'evaluation_status': self.evaluation_status,
            'course_ids': [c.id for c in self.courses],
            'question_count': len(self.quiz_questions),
            'total_marks': self.total_marks(),
            'created_by_id': self.created_by_id,
        }


class QuizQuestion(db.Model):
    """Ordered link between a quiz and a question"""
    __tablename__ = 'quiz_questions'

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('questions.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=now_utc)

    question = db.relationship('Question', backref=db.backref('quiz_links', lazy=True,
                                                              cascade='all, delete-orphan'))

    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'question_id', name='unique_quiz_question'),
    )

    def __repr__(self):
        return f'<QuizQuestion quiz={self.quiz_id} question={self.question_id} #{self.order_index}>'


class QuizEvaluationSettings(db.Model):
    """Scoring knobs applied by automatic and external evaluation"""
    __tablename__ = 'quiz_evaluation_settings'

    id = db.Column(db.Integer, db.ForeignKey('quizzes.id', ondelete='CASCADE'), primary_key=True)

    # MCQ
    mcq_global_partial_marking = db.Column(db.Boolean, nullable=False, default=False)
    mcq_global_negative_mark = db.Column(db.Float)
    mcq_global_negative_percent = db.Column(db.Float)

    # Coding
    coding_global_partial_marking = db.Column(db.Boolean, nullable=False, default=False)

    # LLM
    llm_evaluation_enabled = db.Column(db.Boolean, nullable=False, default=False)
    llm_provider = db.Column(db.Text)
    llm_model_name = db.Column(db.Text)
    fitb_llm_system_prompt = db.Column(db.Text)
    desc_llm_system_prompt = db.Column(db.Text)

    EDITABLE_FIELDS = (
        'mcq_global_partial_marking',
        'mcq_global_negative_mark',
        'mcq_global_negative_percent',
        'coding_global_partial_marking',
        'llm_evaluation_enabled',
        'llm_provider',
        'llm_model_name',
        'fitb_llm_system_prompt',
        'desc_llm_system_prompt',
    )

    def __init__(self, **kwargs):
        # Column defaults only apply at flush; scoring reads these before that
        kwargs.setdefault('mcq_global_partial_marking', False)
        kwargs.setdefault('coding_global_partial_marking', False)
        kwargs.setdefault('llm_evaluation_enabled', False)
        super().__init__(**kwargs)

    def to_dict(self):
        return {field: getattr(self, field) for field in self.EDITABLE_FIELDS}
