import json
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from rapidfuzz import fuzz, process

from repairhub.schemas.domain import CostEstimate, ParsedDiagnosis, TimeEstimate
from repairhub.utils.config import CFG, DIAG_CFG

_NUMBER = r"\b(\d[\d,]*(?:\.\d+)?)\b"

COMPLEXITY_RE = re.compile(r"complexity[\s*:_\-]*(low|medium|high)", re.IGNORECASE)
# 줄바꿈을 넘지 않는 범위에서 키워드 뒤 두 숫자
COST_RE = re.compile(r"cost.*?" + _NUMBER + r".*?" + _NUMBER, re.IGNORECASE)
TIME_RE = re.compile(r"time.*?" + _NUMBER + r".*?" + _NUMBER, re.IGNORECASE)
PARTS_RE = re.compile(r"suggested parts[^\w\n]*\n*([\s\S]*?)(?=\n[ \t]*\n|\Z)", re.IGNORECASE)
_BULLET_RE = re.compile(r"^(?:[-*•+]+|\d+[.)])\s*")


def _to_number(raw: str) -> float:
    return float(raw.replace(",", ""))


def _range(pattern: re.Pattern, text: str) -> Optional[Tuple[float, float]]:
    m = pattern.search(text)
    if not m:
        return None
    low, high = _to_number(m.group(1)), _to_number(m.group(2))
    if low > high:
        low, high = high, low
    return low, high


def _clean_part_line(line: str) -> str:
    line = _BULLET_RE.sub("", line.strip())
    return line.replace("**", "").strip()


def parse_parts(text: str) -> List[str]:
    m = PARTS_RE.search(text)
    if not m:
        return []
    parts = []
    for raw in m.group(1).split("\n"):
        line = _clean_part_line(raw)
        lowered = line.lower()
        if not line or "n/a" in lowered or "none" in lowered:
            continue
        parts.append(line)
    return parts


def parse_diagnostic_text(text: str) -> ParsedDiagnosis:
    """
    AI 응답 자유 텍스트를 최대한 구조화한다.
    - 찾지 못한 필드는 기본값 유지 (항상 완전한 결과를 반환)
    - INR 값은 파싱 여부와 무관하게 base * 고정 환율
    """
    text = text or ""
    result = ParsedDiagnosis(
        analysis=text[: DIAG_CFG.analysis_max_chars],
        formatted_analysis=text,
    )

    m = COMPLEXITY_RE.search(text)
    if m:
        result.estimated_complexity = m.group(1).lower()

    cost = _range(COST_RE, text)
    if cost:
        result.estimated_cost = CostEstimate.from_base(*cost)

    hours = _range(TIME_RE, text)
    if hours:
        result.estimated_time = TimeEstimate(min=hours[0], max=hours[1])

    parts = parse_parts(text)
    if parts:
        result.suggested_parts = parts

    return result


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    ```json 코드블록 또는 본문 중 첫 JSON 객체를 파싱한다.
    파싱 실패 시 ValueError.
    """
    json_match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if json_match:
        clean_json_str = json_match.group(1)
    else:
        json_match = re.search(r"{\s*.*?\s*}", text, re.DOTALL)
        clean_json_str = json_match.group(0) if json_match else text

    parsed = json.loads(clean_json_str)
    if not isinstance(parsed, dict):
        raise ValueError("JSON object expected")
    return parsed


def normalize_category(name: Optional[str], choices: Iterable[str]) -> Optional[str]:
    """
    자유 입력 카테고리를 닫힌 집합의 값으로 맞춘다. ("Appliance " → "appliances")
    매칭 실패 시 None.
    """
    if name is None:
        return None
    key = name.strip().lower()
    options = list(choices)
    if not key or not options:
        return None
    if key in options:
        return key
    best = process.extractOne(key, options, scorer=fuzz.ratio)
    if not best or best[1] < CFG.category_match_threshold:
        return None
    return best[0]
