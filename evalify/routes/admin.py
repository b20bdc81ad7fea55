"""
Admin Routes
Semesters, courses, enrolment and user accounts
"""
import logging

from flask import Blueprint, jsonify, request

from evalify.extensions import db
from evalify.errors import ConflictError, ValidationError
from evalify.models import User, Semester, Course
from evalify.models.course import COURSE_TYPES
from evalify.models.user import ROLES
from evalify.utils import require_role, get_json_body, get_or_404, clean_text

admin_bp = Blueprint('admin', __name__)
logger = logging.getLogger(__name__)


def _users_with_role(ids, role):
    """Load users by id, all of which must hold the role"""
    if not isinstance(ids, list):
        raise ValidationError('Expected a list of user ids')
    users = User.query.filter(User.id.in_(ids)).all() if ids else []
    if len(users) != len(set(ids)) or any(u.role != role for u in users):
        raise ValidationError(f'Every user must exist and have role {role}')
    return users


# ==================== SEMESTERS ====================

@admin_bp.route('/semesters')
@require_role('ADMIN')
def list_semesters():
    semesters = Semester.query.order_by(Semester.year.desc(), Semester.name).all()
    return jsonify({'semesters': [s.to_dict() for s in semesters]})


@admin_bp.route('/semesters', methods=['POST'])
@require_role('ADMIN')
def create_semester():
    data = get_json_body()
    name = clean_text(data.get('name'))
    try:
        year = int(data.get('year'))
    except (TypeError, ValueError):
        raise ValidationError('Year must be an integer')
    if not name:
        raise ValidationError('Semester name is required')
    if Semester.query.filter_by(name=name, year=year).first():
        raise ConflictError('Semester already exists')

    semester = Semester(name=name, year=year, is_active=bool(data.get('is_active', True)))
    db.session.add(semester)
    db.session.commit()
    logger.info('Semester %s created', semester.id)
    return jsonify({'semester': semester.to_dict()}), 201


@admin_bp.route('/semesters/<int:semester_id>', methods=['PUT'])
@require_role('ADMIN')
def update_semester(semester_id):
    semester = get_or_404(Semester, semester_id)
    data = get_json_body()

    if 'name' in data:
        name = clean_text(data['name'])
        if not name:
            raise ValidationError('Semester name is required')
        semester.name = name
    if 'year' in data:
        try:
            semester.year = int(data['year'])
        except (TypeError, ValueError):
            raise ValidationError('Year must be an integer')
    if 'is_active' in data:
        semester.is_active = bool(data['is_active'])

    db.session.commit()
    return jsonify({'semester': semester.to_dict()})


@admin_bp.route('/semesters/<int:semester_id>', methods=['DELETE'])
@require_role('ADMIN')
def delete_semester(semester_id):
    semester = get_or_404(Semester, semester_id)
    db.session.delete(semester)
    db.session.commit()
    logger.info('Semester %s deleted', semester_id)
    return jsonify({'message': 'Semester deleted'})


@admin_bp.route('/semesters/<int:semester_id>/managers', methods=['PUT'])
@require_role('ADMIN')
def set_semester_managers(semester_id):
    semester = get_or_404(Semester, semester_id)
    data = get_json_body()
    semester.managers = _users_with_role(data.get('manager_ids', []), 'MANAGER')
    db.session.commit()
    return jsonify({'semester': semester.to_dict()})


# ==================== COURSES ====================

@admin_bp.route('/courses')
@require_role('ADMIN')
def list_courses():
    query = Course.query
    semester_id = request.args.get('semester_id', type=int)
    if semester_id:
        query = query.filter_by(semester_id=semester_id)
    courses = query.order_by(Course.code).all()
    return jsonify({'courses': [c.to_dict() for c in courses]})


@admin_bp.route('/courses', methods=['POST'])
@require_role('ADMIN')
def create_course():
    data = get_json_body()
    name = clean_text(data.get('name'))
    code = clean_text(data.get('code'))
    course_type = data.get('type') or 'CORE'

    if not name or not code:
        raise ValidationError('Course name and code are required')
    if course_type not in COURSE_TYPES:
        raise ValidationError(f'Course type must be one of: {", ".join(COURSE_TYPES)}')
    get_or_404(Semester, data.get('semester_id'), 'Semester not found')
    if Course.query.filter_by(code=code).first():
        raise ConflictError('Course code already exists')

    course = Course(
        name=name,
        code=code,
        description=data.get('description') or '',
        type=course_type,
        semester_id=data['semester_id'],
        is_active=bool(data.get('is_active', True)),
    )
    db.session.add(course)
    db.session.commit()
    logger.info('Course %s (%s) created', course.id, course.code)
    return jsonify({'course': course.to_dict()}), 201


@admin_bp.route('/courses/<int:course_id>')
@require_role('ADMIN')
def get_course(course_id):
    course = get_or_404(Course, course_id)
    return jsonify({'course': course.to_dict(include_members=True)})


@admin_bp.route('/courses/<int:course_id>', methods=['PUT'])
@require_role('ADMIN')
def update_course(course_id):
    course = get_or_404(Course, course_id)
    data = get_json_body()

    if 'code' in data and data['code'] != course.code:
        if Course.query.filter_by(code=data['code']).first():
            raise ConflictError('Course code already exists')
        course.code = data['code']
    if 'type' in data:
        if data['type'] not in COURSE_TYPES:
            raise ValidationError(f'Course type must be one of: {", ".join(COURSE_TYPES)}')
        course.type = data['type']
    if 'semester_id' in data:
        course.semester_id = get_or_404(Semester, data['semester_id'], 'Semester not found').id
    for field in ('name', 'description'):
        if field in data:
            setattr(course, field, data[field])
    if 'is_active' in data:
        course.is_active = bool(data['is_active'])

    db.session.commit()
    return jsonify({'course': course.to_dict()})


@admin_bp.route('/courses/<int:course_id>', methods=['DELETE'])
@require_role('ADMIN')
def delete_course(course_id):
    course = get_or_404(Course, course_id)
    db.session.delete(course)
    db.session.commit()
    logger.info('Course %s deleted', course_id)
    return jsonify({'message': 'Course deleted'})


@admin_bp.route('/courses/<int:course_id>/students', methods=['POST'])
@require_role('ADMIN')
def enrol_students(course_id):
    course = get_or_404(Course, course_id)
    students = _users_with_role(get_json_body().get('student_ids', []), 'STUDENT')
    added = [s for s in students if not course.has_student(s)]
    course.students.extend(added)
    db.session.commit()
    logger.info('Enrolled %d students in course %s', len(added), course_id)
    return jsonify({'added': len(added), 'course': course.to_dict()})


@admin_bp.route('/courses/<int:course_id>/students/<int:student_id>', methods=['DELETE'])
@require_role('ADMIN')
def unenrol_student(course_id, student_id):
    course = get_or_404(Course, course_id)
    student = get_or_404(User, student_id, 'Student not found')
    if not course.has_student(student):
        raise ValidationError('Student is not enrolled in this course')
    course.students.remove(student)
    db.session.commit()
    return jsonify({'course': course.to_dict()})


@admin_bp.route('/courses/<int:course_id>/instructors', methods=['POST'])
@require_role('ADMIN')
def add_instructors(course_id):
    course = get_or_404(Course, course_id)
    staff = _users_with_role(get_json_body().get('instructor_ids', []), 'STAFF')
    added = [s for s in staff if not course.has_instructor(s)]
    course.instructors.extend(added)
    db.session.commit()
    return jsonify({'added': len(added), 'course': course.to_dict()})


@admin_bp.route('/courses/<int:course_id>/instructors/<int:instructor_id>', methods=['DELETE'])
@require_role('ADMIN')
def remove_instructor(course_id, instructor_id):
    course = get_or_404(Course, course_id)
    instructor = get_or_404(User, instructor_id, 'Instructor not found')
    if not course.has_instructor(instructor):
        raise ValidationError('User is not an instructor of this course')
    course.instructors.remove(instructor)
    db.session.commit()
    return jsonify({'course': course.to_dict()})


# ==================== USERS ====================

@admin_bp.route('/users')
@require_role('ADMIN')
def list_users():
    query = User.query
    role = request.args.get('role')
    if role:
        query = query.filter_by(role=role.upper())
    users = query.order_by(User.name).all()
    return jsonify({'users': [u.to_dict() for u in users]})


@admin_bp.route('/users', methods=['POST'])
@require_role('ADMIN')
def create_user():
    data = get_json_body()
    name = clean_text(data.get('name'))
    email = clean_text(data.get('email')).lower()
    role = (data.get('role') or 'STUDENT').upper()
    password = data.get('password') or ''

    if not name or not email:
        raise ValidationError('Name and email are required')
    if role not in ROLES:
        raise ValidationError(f'Role must be one of: {", ".join(ROLES)}')
    if len(password) < 8:
        raise ValidationError('Password must be at least 8 characters')
    if User.query.filter_by(email=email).first():
        raise ConflictError('Email already registered')

    user = User(name=name, email=email, role=role, roll_no=data.get('roll_no'))
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info('User %s created with role %s', user.id, role)
    return jsonify({'user': user.to_dict()}), 201


@admin_bp.route('/users/<int:user_id>/reset-password', methods=['POST'])
@require_role('ADMIN')
def reset_password(user_id):
    user = get_or_404(User, user_id)
    password = get_json_body().get('password') or ''
    if len(password) < 8:
        raise ValidationError('Password must be at least 8 characters')
    user.set_password(password)
    db.session.commit()
    logger.info('Password reset for user %s', user_id)
    return jsonify({'message': 'Password reset'})
