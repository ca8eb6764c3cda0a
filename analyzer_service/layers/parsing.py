"""
模型输出解析
纯函数，无 I/O：从大模型响应信封中取出文本，去除代码围栏，提取首个 JSON 对象并校验
"""

import json
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from analyzer_service.exceptions import AnalysisParseError, InvalidInput
from analyzer_service.models.analysis import AnalysisResult

_FENCE_JSON = re.compile(r"```json\s*")
_FENCE = re.compile(r"```\s*")
# 贪婪匹配：从第一个 "{" 到最后一个 "}"
_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


def normalize_symbol(symbol: Optional[str]) -> str:
    """去除空白并转大写，空代码抛出 InvalidInput"""
    key = (symbol or "").strip().upper()
    if not key:
        raise InvalidInput("股票代码不能为空")
    return key


def extract_text(envelope: Dict[str, Any]) -> str:
    """拼接信封中所有 type == "text" 的内容块"""
    blocks = envelope.get("content") if isinstance(envelope, dict) else None
    if not isinstance(blocks, list):
        return ""
    parts = []
    for block in blocks:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text") or ""))
    return "\n".join(parts)


def strip_code_fences(text: str) -> str:
    text = _FENCE_JSON.sub("", text.strip())
    return _FENCE.sub("", text).strip()


def extract_json_block(text: str) -> str:
    match = _JSON_BLOCK.search(text)
    if match is None:
        raise AnalysisParseError("模型输出中未找到 JSON 对象")
    return match.group(0)


def parse_analysis_text(text: str) -> AnalysisResult:
    """
    解析模型输出文本为 AnalysisResult

    Raises:
        AnalysisParseError: 找不到 JSON、JSON 非法或字段不符合结构
    """
    block = extract_json_block(strip_code_fences(text))
    try:
        data = json.loads(block)
    except json.JSONDecodeError as exc:
        raise AnalysisParseError(f"JSON 解析失败: {exc}") from exc
    if not isinstance(data, dict):
        raise AnalysisParseError("JSON 顶层不是对象")
    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as exc:
        raise AnalysisParseError(f"分析结果字段校验失败: {exc.error_count()} 处错误") from exc


def parse_envelope(envelope: Dict[str, Any]) -> AnalysisResult:
    return parse_analysis_text(extract_text(envelope))
