"""
Question Model
One table for every question type; type-specific content lives in JSON columns

question_data / solution layouts:
    MCQ, MMCQ       {"options": [{"id", "optionText", "orderIndex"}]}
                    {"correctOptions": [{"id", "isCorrect"}]}
    TRUE_FALSE      {}  /  {"trueFalseAnswer": bool}
    FILL_THE_BLANK  {"blankCount": n}  /  {"blanks": {"1": ["answer", ...]}}
    MATCHING        {"leftItems": [{"id", "text"}], "rightItems": [...]}
                    {"matches": {"<left id>": "<right id>"}}
    DESCRIPTIVE     {}  /  {"modelAnswer": str, "keywords": [...]}
    CODING          {"language", "starterCode"}  /  {"testCases": [...]}
    FILE_UPLOAD     {"allowedFileTypes", "maxFileSize", "maxFiles"}  /  {}
"""
from evalify.extensions import db
from evalify.utils.helpers import now_utc, isoformat

QUESTION_TYPES = (
    'MCQ',
    'MMCQ',
    'TRUE_FALSE',
    'DESCRIPTIVE',
    'FILL_THE_BLANK',
    'MATCHING',
    'FILE_UPLOAD',
    'CODING',
)
DIFFICULTY_LEVELS = ('EASY', 'MEDIUM', 'HARD')
COURSE_OUTCOMES = tuple(f'CO{i}' for i in range(1, 9))
BLOOM_LEVELS = ('REMEMBER', 'UNDERSTAND', 'APPLY', 'ANALYZE', 'EVALUATE', 'CREATE')


question_topics = db.Table(
    'question_topics',
    db.Column('question_id', db.Integer, db.ForeignKey('questions.id', ondelete='CASCADE'), primary_key=True),
    db.Column('topic_id', db.Integer, db.ForeignKey('topics.id', ondelete='CASCADE'), primary_key=True),
)


class Question(db.Model):
    """Question model"""
    __tablename__ = 'questions'

    id = db.Column(db.Integer, primary_key=True)
    bank_id = db.Column(db.Integer, db.ForeignKey('banks.id', ondelete='CASCADE'), index=True)
    type = db.Column(db.String(20), nullable=False, index=True)

    # Scoring
    marks = db.Column(db.Float, nullable=False, default=1.0)
    negative_marks = db.Column(db.Float, nullable=False, default=0.0)

    # Classification
    difficulty = db.Column(db.String(10), default='MEDIUM', index=True)
    course_outcome = db.Column(db.String(5))
    bloom_taxonomy_level = db.Column(db.String(20))

    # Content
    question = db.Column(db.Text, nullable=False)
    explanation = db.Column(db.Text)
    question_data = db.Column(db.JSON, nullable=False, default=dict)
    solution = db.Column(db.JSON, nullable=False, default=dict)

    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), index=True)
    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    topics = db.relationship('Topic', secondary=question_topics, lazy='subquery')

    def __repr__(self):
        return f'<Question {self.id}: {self.type} {self.question[:50]}>'

    def get_options(self):
        """Options ordered by orderIndex"""
        options = (self.question_data or {}).get('options') or []
        return sorted(options, key=lambda o: o.get('orderIndex', 0))

    def correct_option_ids(self):
        """Ids of the options marked correct in the solution"""
        entries = (self.solution or {}).get('correctOptions') or []
        return [str(e['id']) for e in entries if e.get('isCorrect')]

    def to_dict(self, include_solution=True):
        data = {
            'id': self.id,
            'bank_id': self.bank_id,
            'type': self.type,
            'marks': self.marks,
            'negative_marks': self.negative_marks,
            'difficulty': self.difficulty,
            'course_outcome': self.course_outcome,
            'bloom_taxonomy_level': self.bloom_taxonomy_level,
            'question': self.question,
            'question_data': self.question_data or {},
            'topics': [t.to_dict() for t in self.topics],
            'created_by_id': self.created_by_id,
            'updated_at': isoformat(self.updated_at),
        }
        if include_solution:
            data['solution'] = self.solution or {}
            data['explanation'] = self.explanation
        return data
