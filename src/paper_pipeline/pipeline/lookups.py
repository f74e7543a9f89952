"""
Lookup Tables - Static name -> code mappings used to normalize metadata.

All tables are read-only. Lookups never raise: a miss yields an explicit,
logged fallback value.
"""
import logging
import re
from types import MappingProxyType
from typing import Optional, List

logger = logging.getLogger(__name__)

UNKNOWN_YEAR = "未知"
DEFAULT_GRADE_CODE = 161
DEFAULT_PARENT_CATEGORY_CODE = "ppt1"
DEFAULT_PAPER_YEAR = 2024
DEFAULT_PROVINCE_CODE = 0

GRADE_CODES = MappingProxyType({
    "七年级": 161,
    "八年级": 162,
    "九年级": 163,
    "初一": 161,
    "初二": 162,
    "初三": 163,
    "7年级": 161,
    "8年级": 162,
    "9年级": 163,
})

SUBJECT_CODES = MappingProxyType({
    "语文": 55,
    "数学": 54,
    "英语": 53,
    "物理": 56,
    "化学": 57,
    "生物": 58,
    "历史": 61,
    "政治": 60,
    "地理": 59,
    "科学": 62,
})

# Keyword -> canonical subject name. Checked in insertion order.
SUBJECT_KEYWORDS = MappingProxyType({
    "语文": "语文",
    "数学": "数学",
    "英语": "英语",
    "物理": "物理",
    "化学": "化学",
    "生物": "生物",
    "历史": "历史",
    "地理": "地理",
    "科学": "科学",
    "政治": "政治",
    "道德与法治": "政治",
    "道法": "政治",
    "思品": "政治",
})

# Removed before subject matching
STAGE_NOISE_WORDS = ("初中", "高中", "小学", "中考", "高考")

PARENT_CATEGORY_CODES = MappingProxyType({
    "中考专题": "ppt1",
    "跨学段衔接": "ppt2",
    "阶段测试": "ppt3",
    "新东方自研": "ppt4",
    "竞赛": "ppt5",
})

# Paper type -> parent category
PAPER_TYPE_PARENTS = MappingProxyType({
    "中考真题": "中考专题",
    "中考模拟": "中考专题",
    "学业考试": "中考专题",
    "自主招生": "中考专题",
    "小初衔接": "跨学段衔接",
    "初高衔接": "跨学段衔接",
    "期中考试": "阶段测试",
    "期末考试": "阶段测试",
    "单元测试": "阶段测试",
    "开学考试": "阶段测试",
    "月考": "阶段测试",
    "周测": "阶段测试",
    "课堂闭环": "阶段测试",
    "阶段测试": "阶段测试",
    "教材": "新东方自研",
    "教辅": "新东方自研",
    "竞赛": "竞赛",
})

# GB/T 2260 administrative division codes
PROVINCE_CODES = MappingProxyType({
    "北京": 110000,
    "天津": 120000,
    "河北": 130000,
    "山西": 140000,
    "内蒙古": 150000,
    "辽宁": 210000,
    "吉林": 220000,
    "黑龙江": 230000,
    "上海": 310000,
    "江苏": 320000,
    "浙江": 330000,
    "安徽": 340000,
    "福建": 350000,
    "江西": 360000,
    "山东": 370000,
    "河南": 410000,
    "湖北": 420000,
    "湖南": 430000,
    "广东": 440000,
    "广西": 450000,
    "海南": 460000,
    "重庆": 500000,
    "四川": 510000,
    "贵州": 520000,
    "云南": 530000,
    "西藏": 540000,
    "陕西": 610000,
    "甘肃": 620000,
    "青海": 630000,
    "宁夏": 640000,
    "新疆": 650000,
    "台湾": 710000,
    "香港": 810000,
    "澳门": 820000,
})

_FILENAME_UNSAFE = re.compile(r'[/\\:*?"<>|]')
_YEAR_PATTERN = re.compile(r'\d{4}')


def find_grade_code(grade_name: str) -> int:
    """
    Resolve a grade name to its code.

    Exact names first, then substring inference (七/7/初一 ...).
    Falls back to the seventh-grade code.
    """
    name = (grade_name or "").strip()
    code = GRADE_CODES.get(name)
    if code is not None:
        return code

    if "七" in name or "7" in name or "初一" in name:
        return 161
    if "八" in name or "8" in name or "初二" in name:
        return 162
    if "九" in name or "9" in name or "初三" in name:
        return 163

    logger.warning(f"Cannot infer grade from '{grade_name}', using {DEFAULT_GRADE_CODE}")
    return DEFAULT_GRADE_CODE


def find_subject_code(subject: str) -> Optional[int]:
    """Code for a canonical subject name, or None."""
    return SUBJECT_CODES.get(subject)


def match_subject(text: str) -> Optional[str]:
    """
    Find the canonical subject mentioned in free text.

    Stage words are stripped first. Returns None if no keyword matches.
    """
    if not text:
        return None

    cleaned = text
    for word in STAGE_NOISE_WORDS:
        cleaned = cleaned.replace(word, "")

    for keyword, subject in SUBJECT_KEYWORDS.items():
        if keyword in cleaned:
            return subject
    return None


def known_subjects() -> List[str]:
    return list(SUBJECT_CODES.keys())


def find_parent_category_code(parent_category: str) -> str:
    code = PARENT_CATEGORY_CODES.get(parent_category)
    if code is None:
        logger.warning(f"Parent category '{parent_category}' not found, "
                       f"using {DEFAULT_PARENT_CATEGORY_CODE}")
        return DEFAULT_PARENT_CATEGORY_CODE
    return code


def parent_category_for(category: str) -> Optional[str]:
    return PAPER_TYPE_PARENTS.get(category)


def find_province_code(province: str) -> int:
    """Province name (with or without 省/市/自治区 suffix) -> code."""
    name = (province or "").strip()
    for key, code in PROVINCE_CODES.items():
        if name.startswith(key):
            return code

    logger.warning(f"Province '{province}' not found, using {DEFAULT_PROVINCE_CODE}")
    return DEFAULT_PROVINCE_CODE


def extract_year(title: str) -> str:
    """First 4-digit run within 2000..2100, else the unknown marker."""
    for match in _YEAR_PATTERN.finditer(title or ""):
        year = int(match.group())
        if 2000 <= year <= 2100:
            return match.group()
    return UNKNOWN_YEAR


def parse_paper_year(year: str) -> int:
    try:
        return int(year)
    except (TypeError, ValueError):
        logger.warning(f"Cannot parse year '{year}', using {DEFAULT_PAPER_YEAR}")
        return DEFAULT_PAPER_YEAR


def sanitize_filename(name: str) -> str:
    return _FILENAME_UNSAFE.sub('_', name)
