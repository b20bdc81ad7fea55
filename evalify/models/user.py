"""
User Model
Admins, managers, staff and students share one table
"""
from werkzeug.security import generate_password_hash, check_password_hash

from evalify.extensions import db
from evalify.utils.helpers import now_utc, isoformat

ROLES = ('ADMIN', 'MANAGER', 'STAFF', 'STUDENT')


class User(db.Model):
    """User model"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    roll_no = db.Column(db.String(50), index=True)
    role = db.Column(db.String(20), nullable=False, default='STUDENT', index=True)
    password_hash = db.Column(db.String(255), nullable=False, default='')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=now_utc, nullable=False)
    last_login = db.Column(db.DateTime)

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'roll_no': self.roll_no,
            'role': self.role,
            'is_active': self.is_active,
            'created_at': isoformat(self.created_at),
        }
