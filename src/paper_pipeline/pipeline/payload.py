"""
Submission payload - Builds the registry's JSON body for one artifact.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Any

from .models import Artifact, AttachmentSet
from .lookups import (
    find_grade_code,
    find_subject_code,
    find_parent_category_code,
    find_province_code,
    parent_category_for,
    parse_paper_year,
)

logger = logging.getLogger(__name__)

STAGE_CODE = "3"
STAGE_NAME = "初中"


@dataclass(frozen=True)
class SchoolInfo:
    """Publishing organization recorded on every paper."""
    name: str = "集团"
    number: str = "65"


def build_submission_payload(artifact: Artifact, attachments: AttachmentSet,
                             school: SchoolInfo = SchoolInfo()) -> Dict[str, Any]:
    """
    Assemble the registry payload for a transformed artifact.

    Missing lookups fall back to logged defaults; a subject without a code
    cannot happen here because the transformer only emits known subjects.
    """
    classification = artifact.classification
    location = artifact.location

    parent_category = classification.parent_category or parent_category_for(classification.category) or ""

    term = classification.term
    if term is None:
        logger.warning(f"No term for '{artifact.title}', using empty term")
        term = ""

    subject_code = find_subject_code(location.subject)

    return {
        'paperType': classification.category,
        'parentPaperType': find_parent_category_code(parent_category),
        'schName': school.name,
        'schNumber': school.number,
        'paperMonth': classification.month,
        'schoolYearBegin': classification.school_year_begin,
        'schoolYearEnd': classification.school_year_end,
        'paperTerm': term,
        'paperYear': parse_paper_year(location.year),
        'courseVersionCode': "",
        'address': [
            {
                'province': str(find_province_code(location.province)),
                'city': "0",
            }
        ],
        'title': artifact.title,
        'stage': STAGE_CODE,
        'stageName': STAGE_NAME,
        'subject': str(subject_code) if subject_code is not None else "",
        'subjectName': location.subject,
        'gradeName': location.grade,
        'grade': str(find_grade_code(location.grade)),
        'paperId': "",
        'attachments': attachments.to_payload(),
    }
