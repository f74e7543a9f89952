"""
Title classifier backed by an OpenAI-compatible chat completion endpoint.

Both operations degrade gracefully: metadata falls back to the conservative
default and subject identification returns None.
"""
import asyncio
import json
import logging
from typing import Optional, Dict, Any

import aiohttp

from .base import MetadataClassifier
from ..config.pipeline_config import ClassifierConfig
from ..pipeline.models import Classification
from ..pipeline.lookups import match_subject, known_subjects, PAPER_TYPE_PARENTS
from ..pipeline.retry import DelayStrategy, FixedDelay

METADATA_PROMPT = """你是一个专业的教务数据分析助手。请根据试卷名称 "{title}" 提取元数据。
只返回一个纯 JSON 对象，不要包含 markdown 标记。

字段:
1. paper_type_name (字符串): 从以下列表中选择一个: {paper_types}。
   非常规卷名（带特殊前缀、以"专题"开头、没有明显考试字眼的）一律归为 "教辅"。
2. parent_paper_type (字符串): 按类型归类:
   中考真题/中考模拟/学业考试/自主招生 -> "中考专题";
   小初衔接/初高衔接 -> "跨学段衔接";
   期中考试/期末考试/单元测试/开学考试/月考/周测/课堂闭环/阶段测试 -> "阶段测试";
   教材/教辅 -> "新东方自研"; 竞赛 -> "竞赛"。
3. school_year_begin (整数) 与 school_year_end (整数): 学年起止年份。
   2024年下学期(春季)属于 2023-2024 学年; 2024年上学期(秋季)属于 2024-2025 学年。
4. paper_year (整数): 下学期试卷和上学期期末考试取学年结束年份，上学期其他考试取学年开始年份。
5. paper_term (字符串): "1" 表示上学期(秋季)，"2" 表示下学期(春季)，无法判断返回 null。
6. paper_month (整数): 考试月份，无法判断返回 null。

示例:
{{"paper_type_name": "教辅", "parent_paper_type": "新东方自研", "school_year_begin": 2024,
 "school_year_end": 2025, "paper_year": 2025, "paper_term": "1", "paper_month": null}}"""

SUBJECT_PROMPT = """请从以下试卷标题中识别科目，只返回科目名称，不要包含其他内容。
可选的科目有: {subjects}、道德与法治
如果无法识别，请返回"未知"

试卷标题: {title}"""

SUBJECT_SYSTEM_MESSAGE = "你是一个专业的科目识别助手，能够从试卷标题中准确识别科目。"


class ClassifierError(Exception):
    """One failed classification attempt."""
    pass


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` / ```json fence if present."""
    cleaned = text.strip()
    if cleaned.startswith('```'):
        start = cleaned.find('{')
        end = cleaned.rfind('}') + 1
        if start >= 0 and end > start:
            return cleaned[start:end]
        cleaned = cleaned.strip('`')
        if cleaned.startswith('json'):
            cleaned = cleaned[4:]
    return cleaned.strip()


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected integer, got {value!r}")
    return int(value)


def parse_classification(text: str) -> Classification:
    """
    Decode the model's JSON answer.

    Raises:
        ClassifierError: not JSON or fields of the wrong type
    """
    try:
        data = json.loads(strip_code_fence(text))
    except ValueError as e:
        raise ClassifierError(f"Invalid JSON from model: {e}") from e

    if not isinstance(data, dict):
        raise ClassifierError("Model answer is not a JSON object")

    defaults = Classification.default()
    category = str(data.get('paper_type_name') or "")
    parent = str(data.get('parent_paper_type') or "") or PAPER_TYPE_PARENTS.get(category, "")
    term = data.get('paper_term', defaults.term)

    try:
        return Classification(
            category=category,
            parent_category=parent,
            school_year_begin=_optional_int(data.get('school_year_begin', defaults.school_year_begin)),
            school_year_end=_optional_int(data.get('school_year_end', defaults.school_year_end)),
            term=str(term) if term is not None else None,
            month=_optional_int(data.get('paper_month')),
            year=_optional_int(data.get('paper_year')),
        )
    except (TypeError, ValueError) as e:
        raise ClassifierError(f"Bad field in model answer: {e}") from e


class LLMClassifier(MetadataClassifier):
    """Chat-completions client with bounded fixed-interval retries."""

    def __init__(self, session: aiohttp.ClientSession, config: ClassifierConfig,
                 delay: Optional[DelayStrategy] = None):
        self.session = session
        self.config = config
        self.delay = delay or FixedDelay(config.retry_interval_seconds)
        self.logger = logging.getLogger(self.__class__.__name__)

    async def ask(self, prompt: str, system_message: Optional[str] = None) -> str:
        """Send one chat completion request and return the reply text."""
        messages = []
        if system_message:
            messages.append({'role': 'system', 'content': system_message})
        messages.append({'role': 'user', 'content': prompt})

        url = f"{self.config.api_base_url.rstrip('/')}/chat/completions"
        headers = {'Content-Type': 'application/json'}
        if self.config.api_key:
            headers['Authorization'] = f"Bearer {self.config.api_key}"

        body: Dict[str, Any] = {'model': self.config.model, 'messages': messages}
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        try:
            async with self.session.post(url, json=body, headers=headers, timeout=timeout) as response:
                if response.status != 200:
                    detail = await response.text(errors="replace")
                    raise ClassifierError(f"HTTP {response.status}: {detail[:200]}")
                result = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ClassifierError("Model request timed out") from e
        except aiohttp.ClientError as e:
            raise ClassifierError(f"Model request failed: {e}") from e
        except ValueError as e:
            raise ClassifierError(f"Undecodable model response: {e}") from e

        try:
            content = result['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as e:
            raise ClassifierError("Empty model response") from e

        if not content:
            raise ClassifierError("Empty model response")
        return content.strip()

    async def classify_metadata(self, title: str) -> Classification:
        prompt = METADATA_PROMPT.format(title=title, paper_types=", ".join(PAPER_TYPE_PARENTS))
        attempts = self.config.max_attempts

        for attempt in range(1, attempts + 1):
            try:
                answer = await self.ask(prompt)
                classification = parse_classification(answer)
                self.logger.debug(f"Classified '{title}': {classification}")
                return classification
            except ClassifierError as e:
                self.logger.warning(f"Classification attempt {attempt}/{attempts} for '{title}' failed: {e}")

            if attempt < attempts:
                await self.delay.wait(attempt)

        self.logger.warning(f"Classification exhausted for '{title}', using defaults")
        return Classification.default()

    async def identify_subject(self, title: str) -> Optional[str]:
        prompt = SUBJECT_PROMPT.format(title=title, subjects="、".join(known_subjects()))

        try:
            answer = await self.ask(prompt, system_message=SUBJECT_SYSTEM_MESSAGE)
        except ClassifierError as e:
            self.logger.warning(f"Subject identification failed for '{title}': {e}")
            return None

        subject = match_subject(answer.strip())
        if subject is None:
            self.logger.warning(f"Model returned unusable subject '{answer}' for '{title}'")
            return None

        self.logger.info(f"Model identified subject '{subject}' for '{title}'")
        return subject
