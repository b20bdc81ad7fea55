"""
Services Package
"""
from evalify.services.report_service import ReportService
from evalify.services.scoring_service import ScoringService
from evalify.services.score_edit_service import ScoreEdit, ScoreEditService
from evalify.services.evaluation_client import EvaluationClient, normalize_status, describe_status
from evalify.services.evaluation_monitor import EvaluationMonitor, evaluation_monitor
from evalify.services.report_client import ClassReportClient, build_class_report_payload
from evalify.services.mcq_import import McqImportService, parse_mcq_workbook, validate_mcq_row
from evalify.services.bank_service import BankService
from evalify.services.question_service import QuestionService
from evalify.services.submission_service import SubmissionService

__all__ = [
    'ReportService',
    'ScoringService',
    'ScoreEdit',
    'ScoreEditService',
    'EvaluationClient',
    'normalize_status',
    'describe_status',
    'EvaluationMonitor',
    'evaluation_monitor',
    'ClassReportClient',
    'build_class_report_payload',
    'McqImportService',
    'parse_mcq_workbook',
    'validate_mcq_row',
    'BankService',
    'QuestionService',
    'SubmissionService',
]
