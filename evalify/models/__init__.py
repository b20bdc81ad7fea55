"""
Models Package
Exports all database models
"""
from evalify.models.user import User
from evalify.models.course import Semester, Course, course_students, course_instructors, semester_managers
from evalify.models.bank import Bank, BankUser, Topic
from evalify.models.question import Question, question_topics
from evalify.models.quiz import Quiz, QuizQuestion, QuizEvaluationSettings, course_quizzes
from evalify.models.result import QuizResult
from evalify.models.report import QuizReport

__all__ = [
    'User',
    'Semester',
    'Course',
    'course_students',
    'course_instructors',
    'semester_managers',
    'Bank',
    'BankUser',
    'Topic',
    'Question',
    'question_topics',
    'Quiz',
    'QuizQuestion',
    'QuizEvaluationSettings',
    'course_quizzes',
    'QuizResult',
    'QuizReport',
]
