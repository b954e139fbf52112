"""Utility modules."""
from examprep.utils.json_utils import json_dump, json_load
from examprep.utils.pagination import ELLIPSIS, page_window, should_paginate
from examprep.utils.time_utils import epoch_ms
from examprep.utils.validation import locale_for_language, validate_question_count

__all__ = [
    "ELLIPSIS",
    "json_dump",
    "json_load",
    "page_window",
    "should_paginate",
    "epoch_ms",
    "locale_for_language",
    "validate_question_count",
]
