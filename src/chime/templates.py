"""通知模板

渲染器有三种形态，在注册时就转换成显式的变体，渲染时按类型分派：

- CallableRenderer: 函数 payload -> dict
- TemplateStrings: 带 title/body 模板字符串的对象，其余字段原样复制
- BodyTemplate: 纯字符串，只作为 body 模板，title 留空交给调用方兜底

模板中的占位符形如 ``{{ user.name }}``，按点号路径在 payload 中查找，
找不到或值为 None 时替换为空字符串。渲染过程中的任何异常都不会向外抛出，
能渲染的字段保留，失败的字段留空。
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from chime.logger import logger

__all__ = [
    "CallableRenderer", "TemplateStrings", "BodyTemplate", "Renderer",
    "TemplateRegistry", "as_renderer", "render", "substitute", "resolve_path",
    "validate_template", "render_preview",
]

DEFAULT_KEY = "default"

_PLACEHOLDER = re.compile(r"{{\s*([^}\s]+)\s*}}")
_PREVIEW_TOKEN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_SEGMENT = re.compile(r"^([a-zA-Z0-9_$-]+)((?:\[\d+\])*)$")
_INDEX = re.compile(r"\[(\d+)\]")


@dataclass(frozen=True)
class CallableRenderer:
    func: Callable[[Any], Any]


@dataclass(frozen=True)
class TemplateStrings:
    title: Optional[str] = None
    body: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BodyTemplate:
    template: str


Renderer = Union[CallableRenderer, TemplateStrings, BodyTemplate]


def _default_renderer(payload: Any) -> Dict[str, Any]:
    title = _field(payload, "title")
    body = _field(payload, "message")
    if body is None:
        body = json.dumps(payload if payload is not None else {}, ensure_ascii=False, default=str)
    return {"title": title if title is not None else "Reminder", "body": body, "data": payload}


def as_renderer(value: Any) -> Renderer:
    """把注册时传入的函数/对象/字符串转换成渲染器变体"""
    if isinstance(value, (CallableRenderer, TemplateStrings, BodyTemplate)):
        return value
    if isinstance(value, str):
        return BodyTemplate(value)
    if isinstance(value, Mapping):
        title = value.get("title")
        body = value.get("body")
        extra = {k: v for k, v in value.items() if k not in ("title", "body", "data")}
        return TemplateStrings(
            title=title if isinstance(title, str) else None,
            body=body if isinstance(body, str) else None,
            extra=extra,
        )
    if callable(value):
        return CallableRenderer(value)
    raise TypeError(f"不支持的渲染器类型: {type(value).__name__}")


class TemplateRegistry:
    """模板键 -> 渲染器 的映射，始终存在 default"""

    def __init__(self, templates: Mapping[str, Any] | None = None) -> None:
        self._templates: Dict[str, Renderer] = {DEFAULT_KEY: CallableRenderer(_default_renderer)}
        if templates:
            self.configure(templates)

    def configure(self, templates: Mapping[str, Any] | None) -> None:
        """合并注册，同名的后注册覆盖先注册；无法识别的渲染器被忽略"""
        for key, value in (templates or {}).items():
            if value is None:
                logger.warning(f"忽略空渲染器: {key}")
                continue
            try:
                self._templates[str(key)] = as_renderer(value)
            except TypeError as e:
                logger.warning(f"忽略模板 {key}: {e}")
                continue
            logger.debug(f"注册通知模板: {key}")

    def get(self, key: Any) -> Optional[Renderer]:
        if not isinstance(key, str):
            return None
        return self._templates.get(key)

    def keys(self) -> list[str]:
        return list(self._templates)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._templates

    @property
    def default(self) -> Renderer:
        return self._templates[DEFAULT_KEY]

    def resolve(self, target: Any, payload: Any) -> Renderer:
        """解析顺序: payload.templateKey -> target -> default"""
        renderer = self.get(_field(payload, "templateKey"))
        if renderer is not None:
            return renderer
        renderer = self.get(target)
        if renderer is not None:
            return renderer
        return self.default


def _field(payload: Any, name: str) -> Any:
    if isinstance(payload, Mapping):
        return payload.get(name)
    return None


def resolve_path(payload: Any, path: str) -> Any:
    """按点号路径取值，数组可以用数字下标，例如 items.0.name"""
    current = payload
    for key in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, Sequence) and not isinstance(current, str) and key.isdigit():
            index = int(key)
            current = current[index] if index < len(current) else None
        else:
            return None
    return current


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def substitute(template: str, payload: Any) -> str:
    """替换所有 {{ path }} 占位符，找不到的值替换为空字符串"""
    def replace(match: re.Match) -> str:
        value = resolve_path(payload, match.group(1))
        return "" if value is None else _stringify(value)

    return _PLACEHOLDER.sub(replace, template)


def _render_field(template: Optional[str], payload: Any, name: str) -> Optional[str]:
    if template is None:
        return None
    try:
        return substitute(template, payload)
    except Exception as e:
        logger.debug(f"模板字段渲染失败: {name}, {e!r}")
        return None


def render(renderer: Renderer, payload: Any) -> Dict[str, Any]:
    """渲染出 {title?, body?, data?}，不抛出异常"""
    if isinstance(renderer, CallableRenderer):
        try:
            result = renderer.func(payload)
        except Exception as e:
            logger.debug(f"函数渲染器执行失败: {e!r}")
            return {}
        return dict(result) if isinstance(result, Mapping) else {}

    if isinstance(renderer, TemplateStrings):
        out: Dict[str, Any] = dict(renderer.extra)
        title = _render_field(renderer.title, payload, "title")
        body = _render_field(renderer.body, payload, "body")
        if title is not None:
            out["title"] = title
        if body is not None:
            out["body"] = body
        out["data"] = payload
        return out

    if isinstance(renderer, BodyTemplate):
        out = {"data": payload}
        body = _render_field(renderer.template, payload, "body")
        if body is not None:
            out["body"] = body
        return out

    return {"data": payload}


# ----------------- 模板编辑辅助 ----------------
def validate_template(template: Any) -> str | None:
    """校验模板字符串，返回错误信息，合法时返回 None"""
    if template is None or not isinstance(template, str):
        return "Template is required."
    if len(template.strip()) < 3:
        return "Template is too short."
    if re.search(r"<\s*script", template, re.IGNORECASE):
        return "Template must not contain script tags."
    if "{{{" in template or "}}}" in template:
        return "Malformed braces found in template."

    matches = list(_PREVIEW_TOKEN.finditer(template))
    cleaned = _PREVIEW_TOKEN.sub("", template)
    if "{" in cleaned or "}" in cleaned:
        return "Unmatched or stray '{' or '}' found in template."

    for match in matches:
        raw = match.group(1).strip()
        if not raw:
            return "Empty token found in template."
        key = raw.split("|")[0].strip()
        if not key:
            return "Invalid token syntax."
        for segment in key.split("."):
            if segment == "":
                return "Invalid token syntax."
            if not _SEGMENT.match(segment):
                return f"Invalid token segment: {segment}"
    return None


def _preview_lookup(path: str, context: Any) -> str | None:
    current = context
    for part in path.split("."):
        if current is None:
            return None
        segment = _SEGMENT.match(part)
        if segment is None:
            current = current.get(part) if isinstance(current, Mapping) else None
            continue
        name, indexes = segment.group(1), segment.group(2)
        current = current.get(name) if isinstance(current, Mapping) else None
        for index in _INDEX.findall(indexes):
            if not isinstance(current, (list, tuple)):
                return None
            i = int(index)
            current = current[i] if i < len(current) else None
    if current is None:
        return None
    return _stringify(current)


def render_preview(template: str, context: Any) -> str:
    """编辑器预览用的渲染：支持 {{ key | 默认值 }} 和 items[0]，
    无默认值且取不到的键原样显示为 {{key}}"""
    if not template:
        return ""

    def replace(match: re.Match) -> str:
        parts = [p.strip() for p in match.group(1).split("|")]
        key = parts[0]
        default = "|".join(parts[1:]) if len(parts) > 1 else None
        if not key:
            return default or ""
        value = _preview_lookup(key, context)
        if value is not None:
            return value
        if default is not None:
            return default
        return "{{" + key + "}}"

    return _PREVIEW_TOKEN.sub(replace, template)
