"""
Utils Package
"""
from evalify.utils.helpers import (
    now_utc,
    to_local,
    parse_datetime,
    isoformat,
    parse_number,
    clean_text,
    strip_html_tags,
    get_current_user,
    require_role,
    get_json_body,
    get_or_404,
    get_managed_quiz
)

__all__ = [
    'now_utc',
    'to_local',
    'parse_datetime',
    'isoformat',
    'parse_number',
    'clean_text',
    'strip_html_tags',
    'get_current_user',
    'require_role',
    'get_json_body',
    'get_or_404',
    'get_managed_quiz'
]
