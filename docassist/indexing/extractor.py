"""
Source Chunk Extractor（tree-sitter）。

每个函数/方法声明产出一个 `CodeChunk`：
- name / doc 注释 / 参数（名 + 类型）/ 返回类型 / 1-based 行号区间
- 纯函数：同一份源码两次抽取结果逐字节一致

语法相关逻辑通过 `ChunkExtractor` 协议可插拔；目前只实现 Go。
"""

from __future__ import annotations

import re
from typing import Protocol

from tree_sitter import Node
from tree_sitter import Parser
from tree_sitter_language_pack import get_parser

from docassist.errors import ParseError
from docassist.storage.models import CodeChunk
from docassist.storage.models import Parameter

GO_LANGUAGE = "go"

_FUNCTION_NODE_TYPES = {"function_declaration", "method_declaration"}
_TOP_LEVEL_NODE_TYPES = {
    "package_clause",
    "import_declaration",
    "function_declaration",
    "method_declaration",
    "const_declaration",
    "var_declaration",
    "type_declaration",
    "comment",
}
_NAME_NODE_TYPES = {"identifier", "type_identifier", "package_identifier", "field_identifier"}
_DIRECTIVE = re.compile(r"^(line |extern |export |[a-z0-9]+:[a-z0-9])")


class ChunkExtractor(Protocol):
    language: str

    def accepts(self, path: str) -> bool: ...

    def extract(self, file_path: str) -> list[CodeChunk]: ...


def is_source_file(path: str) -> bool:
    return path.endswith(".go") and not path.endswith("_test.go")


class GoChunkExtractor:
    language = GO_LANGUAGE

    def __init__(self) -> None:
        self._parser: Parser = get_parser(GO_LANGUAGE)

    def accepts(self, path: str) -> bool:
        return is_source_file(path)

    def extract(self, file_path: str) -> list[CodeChunk]:
        try:
            with open(file_path, "rb") as handle:
                source = handle.read()
        except OSError as exc:
            raise ParseError(file_path, f"cannot read file: {exc}") from exc
        return self.extract_source(file_path=file_path, source=source)

    def extract_source(self, file_path: str, source: bytes) -> list[CodeChunk]:
        tree = self._parser.parse(source)
        root = tree.root_node
        _check_syntax(file_path=file_path, root=root)
        return [_node_to_chunk(file_path=file_path, node=node) for node in _collect_function_nodes(root)]


def _check_syntax(file_path: str, root: Node) -> None:
    if root.has_error:
        bad = _first_error_node(root)
        line = bad.start_point[0] + 1 if bad is not None else 1
        raise ParseError(file_path, f"syntax error at line {line}")
    if not any(child.type == "package_clause" for child in root.named_children):
        raise ParseError(file_path, "expected 'package' clause")
    for child in root.named_children:
        if child.type not in _TOP_LEVEL_NODE_TYPES:
            raise ParseError(file_path, f"non-declaration statement outside function body at line {child.start_point[0] + 1}")


def _first_error_node(root: Node) -> Node | None:
    stack: list[Node] = [root]
    while stack:
        node = stack.pop()
        if node.is_error or node.is_missing:
            return node
        stack.extend(reversed(node.children))
    return None


def _collect_function_nodes(root: Node) -> list[Node]:
    found: list[Node] = []
    stack: list[Node] = [root]
    while stack:
        node = stack.pop()
        if node.type in _FUNCTION_NODE_TYPES:
            found.append(node)
        stack.extend(reversed(node.children))
    return found


def _node_to_chunk(file_path: str, node: Node) -> CodeChunk:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        raise ParseError(file_path, f"function without a name at line {node.start_point[0] + 1}")
    return CodeChunk(
        name=_text(name_node),
        description=_doc_comment(node),
        language=GO_LANGUAGE,
        parameters=tuple(_parameters(node.child_by_field_name("parameters"))),
        returns=tuple(_returns(node.child_by_field_name("result"))),
        file_path=file_path,
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
    )


def _parameters(params: Node | None) -> list[Parameter]:
    if params is None:
        return []
    result: list[Parameter] = []
    for decl in params.named_children:
        if decl.type not in ("parameter_declaration", "variadic_parameter_declaration"):
            continue
        type_text = _declared_type(decl)
        names = decl.children_by_field_name("name")
        if not names:
            # 未命名参数：保留类型，名字为空
            result.append(Parameter(name="", type=type_text))
            continue
        for name in names:
            result.append(Parameter(name=_text(name), type=type_text))
    return result


def _returns(result: Node | None) -> list[str]:
    if result is None:
        return []
    if result.type != "parameter_list":
        return [render_type(result)]
    types: list[str] = []
    for decl in result.named_children:
        if decl.type not in ("parameter_declaration", "variadic_parameter_declaration"):
            continue
        type_text = _declared_type(decl)
        count = max(1, len(decl.children_by_field_name("name")))
        types.extend([type_text] * count)
    return types


def _declared_type(decl: Node) -> str:
    type_node = decl.child_by_field_name("type")
    if type_node is None:
        return ""
    rendered = render_type(type_node)
    if decl.type == "variadic_parameter_declaration":
        return "..." + rendered
    return rendered


def render_type(node: Node) -> str:
    """把类型节点渲染成规范字符串：`*T`、`[]T`、`[N]T`、`pkg.T`、`map[K]V` 等。"""
    kind = node.type
    if kind in _NAME_NODE_TYPES:
        return _text(node)
    if kind == "pointer_type":
        return "*" + render_type(node.named_children[0])
    if kind == "slice_type":
        return "[]" + render_type(_field(node, "element"))
    if kind == "array_type":
        return f"[{_normalized(_field(node, 'length'))}]{render_type(_field(node, 'element'))}"
    if kind == "qualified_type":
        return f"{_text(_field(node, 'package'))}.{_text(_field(node, 'name'))}"
    if kind == "map_type":
        return f"map[{render_type(_field(node, 'key'))}]{render_type(_field(node, 'value'))}"
    if kind == "parenthesized_type":
        return render_type(node.named_children[0])
    if kind == "generic_type":
        arguments = node.child_by_field_name("type_arguments")
        rendered_args = [render_type(arg) for arg in arguments.named_children] if arguments is not None else []
        return f"{render_type(_field(node, 'type'))}[{', '.join(rendered_args)}]"
    if kind == "type_elem" and len(node.named_children) == 1:
        return render_type(node.named_children[0])
    return _normalized(node)


def _doc_comment(node: Node) -> str:
    comments: list[Node] = []
    expected_row = node.start_point[0] - 1
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type == "comment" and sibling.end_point[0] == expected_row:
        if _is_trailing_comment(sibling):
            break
        comments.append(sibling)
        expected_row = sibling.start_point[0] - 1
        sibling = sibling.prev_named_sibling
    lines: list[str] = []
    for comment in reversed(comments):
        lines.extend(_comment_lines(_text(comment)))
    return _join_comment_lines(lines)


def _is_trailing_comment(comment: Node) -> bool:
    # 与上一段代码同一行的注释属于那段代码，不是 doc
    previous = comment.prev_named_sibling
    while previous is not None and previous.type == "comment":
        previous = previous.prev_named_sibling
    return previous is not None and previous.end_point[0] == comment.start_point[0]


def _comment_lines(raw: str) -> list[str]:
    if raw.startswith("//"):
        body = raw[2:]
        if _DIRECTIVE.match(body):
            return []
        if body.startswith(" "):
            body = body[1:]
        return [body]
    body = raw[2:-2] if raw.endswith("*/") else raw[2:]
    return body.split("\n")


def _join_comment_lines(lines: list[str]) -> str:
    cleaned: list[str] = []
    for line in lines:
        stripped = line.rstrip()
        if not stripped and cleaned and not cleaned[-1]:
            continue
        cleaned.append(stripped)
    return "\n".join(cleaned).strip()


def _field(node: Node, name: str) -> Node:
    child = node.child_by_field_name(name)
    if child is None:
        raise ValueError(f"{node.type} node has no {name!r} field")
    return child


def _text(node: Node) -> str:
    raw = node.text
    if raw is None:
        return ""
    return raw.decode("utf-8", errors="replace")


def _normalized(node: Node) -> str:
    return " ".join(_text(node).split())
