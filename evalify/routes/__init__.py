"""
Routes Package
Exports all route blueprints
"""
from evalify.routes.auth import auth_bp
from evalify.routes.admin import admin_bp
from evalify.routes.staff import staff_bp
from evalify.routes.quizzes import quizzes_bp
from evalify.routes.results import results_bp
from evalify.routes.student import student_bp

__all__ = ['auth_bp', 'admin_bp', 'staff_bp', 'quizzes_bp', 'results_bp', 'student_bp']
