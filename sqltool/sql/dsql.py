"""
Dynamic SQL (DSQL) templates.

A DSQL script is ordinary SQL with named parameters and optional blocks:

    SELECT * FROM staff_info WHERE 1 = 1
    #[AND staff_name LIKE :staffName]
    #[AND position IN (:positions)]

`DSQLFactory.parse` resolves the optional blocks against the supplied
parameters (a block survives only when every parameter it references is
bound to a non-null value); `DSQLFactory.to_script` then turns the named
parameters into driver placeholders and an ordered parameter list.

Templates can be referenced by id when they are loaded from XML files:

    <dsqls>
      <dsql id="find_staff">
        <script><![CDATA[ SELECT * FROM staff_info WHERE staff_id = :staffId ]]></script>
      </dsql>
    </dsqls>
"""

from __future__ import annotations

import importlib.resources
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from sqltool.exceptions import ConfigurationError
from sqltool.utils.logging import get_logger

log = get_logger(__name__)

Params = Union[Mapping[str, Any], Sequence[Any], None]

_PARAM_NAME = re.compile(r"[A-Za-z_][\w.]*")
_EXPANDABLE = (list, tuple, set, frozenset)


@dataclass(frozen=True)
class Script:
    """Executable SQL text with its positional parameters."""

    sql: str
    params: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class NamedSQL:
    """A DSQL script with optional blocks resolved; parameters still named."""

    id: Optional[str]
    script: str
    params: Dict[str, Any]


@dataclass
class _Block:
    children: List[Union[str, "_Param", "_Block"]] = field(default_factory=list)


@dataclass(frozen=True)
class _Param:
    name: str


def normalize_params(params: Params) -> Dict[str, Any]:
    """
    Accept either a mapping or a flat sequence of alternating name/value pairs.

    ``("staffId", "01", "position", None)`` is read as
    ``{"staffId": "01", "position": None}``.
    """
    if params is None:
        return {}
    if isinstance(params, Mapping):
        return dict(params)
    if isinstance(params, (str, bytes)):
        raise TypeError("DSQL parameters must be a mapping or a sequence of name/value pairs")
    items = list(params)
    if len(items) % 2:
        raise ValueError(
            f"DSQL parameters given as a sequence must alternate name and value, got {len(items)} items"
        )
    return {str(items[i]): items[i + 1] for i in range(0, len(items), 2)}


def _tokens(script: str) -> Iterator[Tuple[str, str]]:
    """Split a script into ('text' | 'param' | 'open' | 'close', value) tokens."""
    i, n, depth, start = 0, len(script), 0, 0

    def flush(end: int) -> Iterator[Tuple[str, str]]:
        if end > start:
            yield "text", script[start:end]

    while i < n:
        ch = script[i]
        if ch in ("'", '"'):
            close = i + 1
            while close < n:
                if script[close] == ch:
                    if close + 1 < n and script[close + 1] == ch:
                        close += 2
                        continue
                    break
                close += 1
            i = close + 1
        elif script.startswith("--", i):
            eol = script.find("\n", i)
            i = n if eol < 0 else eol
        elif script.startswith("/*", i):
            end = script.find("*/", i + 2)
            i = n if end < 0 else end + 2
        elif script.startswith("::", i):
            i += 2
        elif ch == ":":
            match = _PARAM_NAME.match(script, i + 1)
            if match is None:
                i += 1
                continue
            yield from flush(i)
            yield "param", match.group(0)
            i = start = match.end()
        elif script.startswith("#[", i):
            yield from flush(i)
            depth += 1
            yield "open", "#["
            i = start = i + 2
        elif ch == "]" and depth:
            yield from flush(i)
            depth -= 1
            yield "close", "]"
            i = start = i + 1
        else:
            i += 1
    yield from flush(n)


def _tree(script: str) -> _Block:
    stack = [_Block()]
    for kind, value in _tokens(script):
        if kind == "text":
            stack[-1].children.append(value)
        elif kind == "param":
            stack[-1].children.append(_Param(value))
        elif kind == "open":
            block = _Block()
            stack[-1].children.append(block)
            stack.append(block)
        else:
            stack.pop()
    if len(stack) != 1:
        raise ConfigurationError(f"Unclosed '#[' block in DSQL: {script!r}")
    return stack[0]


def _lookup(params: Mapping[str, Any], name: str) -> Any:
    """Resolve ``a.b`` against nested mappings/objects."""
    if name in params:
        return params[name]
    head, _, rest = name.partition(".")
    value: Any = params.get(head)
    for part in rest.split(".") if rest else ():
        if value is None:
            return None
        value = value.get(part) if isinstance(value, Mapping) else getattr(value, part, None)
    return value


def _render(block: _Block, params: Mapping[str, Any], top: bool) -> str:
    if not top:
        for child in block.children:
            if isinstance(child, _Param) and _lookup(params, child.name) is None:
                return ""
    parts: List[str] = []
    for child in block.children:
        if isinstance(child, str):
            parts.append(child)
        elif isinstance(child, _Param):
            parts.append(f":{child.name}")
        else:
            parts.append(_render(child, params, top=False))
    return "".join(parts)


class DSQLFactory:
    """
    Registry of DSQL templates plus the parse / convert operations.

    `parse` accepts either a registered template id or literal DSQL text.
    """

    def __init__(self, templates: Optional[Mapping[str, str]] = None) -> None:
        self._templates: Dict[str, str] = dict(templates or {})

    @classmethod
    def from_packages(cls, base_packages: Optional[str], suffix: str = ".dsql.xml") -> "DSQLFactory":
        """
        Load every ``*<suffix>`` XML file under the given packages or directories.

        Parameters
        ----------
        base_packages : str, optional
            Comma-separated importable package names and/or filesystem
            directories. None yields an empty factory.
        suffix : str
            File name suffix of DSQL template files.
        """
        factory = cls()
        if not base_packages:
            return factory
        for entry in (p.strip() for p in base_packages.split(",")):
            if not entry:
                continue
            for name, text in _iter_template_files(entry, suffix):
                factory.load_xml(text, source=name)
        log.debug(
            "DSQL templates loaded",
            extra={"base_packages": base_packages, "templates": len(factory._templates)},
        )
        return factory

    def load_xml(self, text: str, source: str = "<string>") -> None:
        """Register the ``<dsql id="...">`` entries of one XML document."""
        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise ConfigurationError(f"Invalid DSQL file {source}: {exc}") from exc
        for element in root.iter():
            if _local_name(element.tag) != "dsql":
                continue
            dsql_id = element.get("id")
            if not dsql_id:
                raise ConfigurationError(f"A <dsql> element without id was found in {source}")
            script_element = next(
                (child for child in element if _local_name(child.tag) == "script"), None
            )
            script = (script_element.text if script_element is not None else element.text) or ""
            self.register(dsql_id, script.strip(), source=source)

    def register(self, dsql_id: str, script: str, source: str = "<code>") -> None:
        if dsql_id in self._templates:
            raise ConfigurationError(f"Duplicate DSQL id '{dsql_id}' in {source}")
        self._templates[dsql_id] = script

    def get_script(self, dsql_id: str) -> Optional[str]:
        return self._templates.get(dsql_id)

    def parse(self, dsql: str, params: Params = None) -> NamedSQL:
        """Resolve optional blocks of a template (by id) or of literal DSQL."""
        named = normalize_params(params)
        script = self._templates.get(dsql)
        dsql_id = dsql if script is not None else None
        source = script if script is not None else dsql
        return NamedSQL(id=dsql_id, script=_render(_tree(source), named, top=True).strip(), params=named)

    def to_script(self, named_sql: NamedSQL, placeholder: str = "?") -> Script:
        """Replace named parameters with `placeholder`, collecting values in order."""
        escape_percent = placeholder == "%s"
        parts: List[str] = []
        values: List[Any] = []
        for kind, value in _tokens(named_sql.script):
            if kind == "param":
                bound = _lookup(named_sql.params, value)
                if isinstance(bound, _EXPANDABLE):
                    items = list(bound) or [None]
                    parts.append(", ".join(placeholder for _ in items))
                    values.extend(items)
                else:
                    parts.append(placeholder)
                    values.append(bound)
            else:
                parts.append(value.replace("%", "%%") if escape_percent else value)
        return Script("".join(parts), values)


def _local_name(tag: Any) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _iter_template_files(entry: str, suffix: str) -> Iterator[Tuple[str, str]]:
    path = Path(entry)
    if path.is_dir():
        for file in sorted(path.rglob(f"*{suffix}")):
            yield str(file), file.read_text(encoding="utf-8")
        return
    try:
        root = importlib.resources.files(entry)
    except ModuleNotFoundError as exc:
        raise ConfigurationError(f"DSQL base package '{entry}' cannot be found") from exc
    pending = [root]
    while pending:
        node = pending.pop()
        for child in sorted(node.iterdir(), key=lambda c: c.name):
            if child.is_dir():
                pending.append(child)
            elif child.name.endswith(suffix):
                yield f"{entry}:{child.name}", child.read_text(encoding="utf-8")


__all__ = ["DSQLFactory", "NamedSQL", "Params", "Script", "normalize_params"]
