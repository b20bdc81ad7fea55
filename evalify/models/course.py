"""
Course and Semester Models
Courses belong to a semester; students and instructors are enrolled per course
"""
from evalify.extensions import db
from evalify.utils.helpers import now_utc

COURSE_TYPES = ('CORE', 'ELECTIVE', 'LAB')


course_students = db.Table(
    'course_students',
    db.Column('course_id', db.Integer, db.ForeignKey('courses.id', ondelete='CASCADE'), primary_key=True),
    db.Column('student_id', db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
)

course_instructors = db.Table(
    'course_instructors',
    db.Column('course_id', db.Integer, db.ForeignKey('courses.id', ondelete='CASCADE'), primary_key=True),
    db.Column('instructor_id', db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
)

semester_managers = db.Table(
    'semester_managers',
    db.Column('semester_id', db.Integer, db.ForeignKey('semesters.id', ondelete='CASCADE'), primary_key=True),
    db.Column('manager_id', db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
)


class Semester(db.Model):
    """Semester model"""
    __tablename__ = 'semesters'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=now_utc)

    courses = db.relationship('Course', backref='semester', lazy=True,
                              cascade='all, delete-orphan')
    managers = db.relationship('User', secondary=semester_managers, lazy='subquery')

    __table_args__ = (
        db.UniqueConstraint('name', 'year', name='unique_semester_name_year'),
    )

    def __repr__(self):
        return f'<Semester {self.name} {self.year}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'year': self.year,
            'is_active': self.is_active,
            'manager_ids': [m.id for m in self.managers],
        }


class Course(db.Model):
    """Course model"""
    __tablename__ = 'courses'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, default='')
    type = db.Column(db.String(20), nullable=False, default='CORE')
    semester_id = db.Column(db.Integer, db.ForeignKey('semesters.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=now_utc)

    students = db.relationship('User', secondary=course_students, lazy='subquery')
    instructors = db.relationship('User', secondary=course_instructors, lazy='subquery')

    def __repr__(self):
        return f'<Course {self.code}>'

    def has_student(self, user):
        return any(s.id == user.id for s in self.students)

    def has_instructor(self, user):
        return any(i.id == user.id for i in self.instructors)

    def to_dict(self, include_members=False):
        data = {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'description': self.description,
            'type': self.type,
            'semester_id': self.semester_id,
            'is_active': self.is_active,
            'student_count': len(self.students),
            'instructor_count': len(self.instructors),
        }
        if include_members:
            data['students'] = [s.to_dict() for s in self.students]
            data['instructors'] = [i.to_dict() for i in self.instructors]
        return data
