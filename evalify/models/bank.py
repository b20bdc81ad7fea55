"""
Bank Models
Question banks, their shared users and topic tags
"""
from evalify.extensions import db
from evalify.utils.helpers import now_utc, isoformat

ACCESS_LEVELS = ('READ', 'WRITE', 'OWNER')
ACCESS_RANK = {level: rank for rank, level in enumerate(ACCESS_LEVELS, 1)}


class Bank(db.Model):
    """Bank model"""
    __tablename__ = 'banks'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    course_code = db.Column(db.String(50), index=True)
    semester = db.Column(db.Integer, nullable=False, default=1)
    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), index=True)
    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    users = db.relationship('BankUser', backref='bank', lazy=True,
                            cascade='all, delete-orphan')
    topics = db.relationship('Topic', backref='bank', lazy=True, order_by='Topic.name',
                             cascade='all, delete-orphan')
    questions = db.relationship('Question', backref='bank', lazy=True,
                                cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Bank {self.name}>'

    def access_level_for(self, user):
        """Return READ/WRITE/OWNER for the user, or None without access"""
        for entry in self.users:
            if entry.user_id == user.id:
                return entry.access_level
        return None

    def to_dict(self, access_level=None):
        data = {
            'id': self.id,
            'name': self.name,
            'course_code': self.course_code,
            'semester': self.semester,
            'created_by_id': self.created_by_id,
            'question_count': len(self.questions),
            'topics': [t.to_dict() for t in self.topics],
            'created_at': isoformat(self.created_at),
        }
        if access_level:
            data['access_level'] = access_level
        return data


class BankUser(db.Model):
    """Junction between banks and the staff they are shared with"""
    __tablename__ = 'bank_users'

    id = db.Column(db.Integer, primary_key=True)
    bank_id = db.Column(db.Integer, db.ForeignKey('banks.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    access_level = db.Column(db.String(10), nullable=False, default='READ')
    created_at = db.Column(db.DateTime, default=now_utc)

    user = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('bank_id', 'user_id', name='unique_bank_user'),
    )

    def __repr__(self):
        return f'<BankUser bank={self.bank_id} user={self.user_id} {self.access_level}>'

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'name': self.user.name if self.user else None,
            'email': self.user.email if self.user else None,
            'access_level': self.access_level,
        }


class Topic(db.Model):
    """Topic tag scoped to a bank"""
    __tablename__ = 'topics'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    bank_id = db.Column(db.Integer, db.ForeignKey('banks.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=now_utc)

    __table_args__ = (
        db.UniqueConstraint('bank_id', 'name', name='unique_topic_per_bank'),
    )

    def __repr__(self):
        return f'<Topic {self.name}>'

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'bank_id': self.bank_id}
