"""Split JavaScript/TypeScript source into top-level declaration chunks.

Two interchangeable strategies:

* grammar-aware: walk the tree-sitter syntax tree's top-level
  statements and slice the source by node rows;
* regex fallback: match signature patterns line by line and find the
  end of each block by bracket depth.

The shared :class:`ParserProbe` decides which one runs. A parser error
switches the whole process to the fallback.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import tree_sitter

from rootscout.chunking.parser import ParserProbe, get_parser_probe
from rootscout.chunking.schemas import CodeChunk
from rootscout.constants import ChunkType

# ---------------------------------------------------------------------------
# Grammar-aware chunking (tree-sitter)
# ---------------------------------------------------------------------------

_DECLARATION_TYPES: dict[str, ChunkType] = {
    "function_declaration": ChunkType.FUNCTION,
    "generator_function_declaration": ChunkType.FUNCTION,
    "class_declaration": ChunkType.CLASS,
    "abstract_class_declaration": ChunkType.CLASS,
    "interface_declaration": ChunkType.INTERFACE,
    "type_alias_declaration": ChunkType.TYPE,
    "enum_declaration": ChunkType.TYPE,
    "lexical_declaration": ChunkType.CONST,
    "variable_declaration": ChunkType.CONST,
}

# Initializers worth a chunk of their own; scalars are skipped.
_INTERESTING_VALUES = frozenset({
    "array",
    "object",
    "arrow_function",
    "function",
    "function_expression",
    "generator_function",
    "call_expression",
})

# Wrappers looked through when classifying an initializer.
_VALUE_WRAPPERS = frozenset({
    "as_expression",
    "satisfies_expression",
    "parenthesized_expression",
    "non_null_expression",
})


def _text(node: tree_sitter.Node | None) -> str | None:
    if node is None or node.text is None:
        return None
    return node.text.decode("utf-8", errors="replace")


def _unwrap_export(node: tree_sitter.Node) -> tree_sitter.Node | None:
    """Return the declaration inside ``export ...`` (or ``node`` itself)."""
    if node.type != "export_statement":
        return node if node.type in _DECLARATION_TYPES else None
    declaration = node.child_by_field_name("declaration")
    if declaration is not None:
        # Namespaces and overload signatures have no chunk type
        return declaration if declaration.type in _DECLARATION_TYPES else None
    for child in node.named_children:
        if child.type in _DECLARATION_TYPES:
            return child
    return None


def _initializer_kind(value: tree_sitter.Node) -> str:
    while value.type in _VALUE_WRAPPERS and value.named_children:
        value = value.named_children[0]
    return value.type


def _declared_name(declaration: tree_sitter.Node) -> str | None:
    """Name of a declaration, or None when it should not be chunked."""
    if declaration.type in ("lexical_declaration", "variable_declaration"):
        for child in declaration.named_children:
            if child.type != "variable_declarator":
                continue
            value = child.child_by_field_name("value")
            if value is None:
                return None
            if _initializer_kind(value) not in _INTERESTING_VALUES:
                return None
            return _text(child.child_by_field_name("name"))
        return None
    return _text(declaration.child_by_field_name("name"))


def _signature(first_line: str) -> str:
    return re.sub(r"\{.*$", "", first_line.strip()).strip()


def extract_chunks_with_parser(
    content: str, parser: tree_sitter.Parser
) -> list[CodeChunk]:
    """Chunk ``content`` from its syntax tree.

    Raises whatever the parser raises; callers decide on fallback.
    """
    tree = parser.parse(content.encode("utf-8"))
    lines = content.split("\n")
    chunks: list[CodeChunk] = []
    last_row = -1

    for node in tree.root_node.children:
        declaration = _unwrap_export(node)
        if declaration is None:
            continue
        name = _declared_name(declaration)
        if not name:
            continue
        start_row = node.start_point[0]
        end_row = node.end_point[0]
        # Two declarations sharing a line belong to the first chunk
        if start_row <= last_row:
            continue
        last_row = end_row

        body = "\n".join(lines[start_row : end_row + 1])
        chunks.append(
            CodeChunk(
                type=_DECLARATION_TYPES[declaration.type],
                name=name,
                start_line=start_row + 1,  # 1-indexed
                end_line=end_row + 1,
                content=body,
                signature=_signature(lines[start_row]),
            )
        )
    return chunks


# ---------------------------------------------------------------------------
# Regex fallback chunking
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _SignaturePattern:
    """A declaration signature and how to read it."""

    regex: re.Pattern[str]
    chunk_type: ChunkType
    name_group: int
    # Count brackets only after the first "=" on the opening line, so
    # annotations like ``Foo[]`` are not mistaken for the block.
    after_assignment: bool = False


# Tried in order; the first match claims the line.
_SIGNATURE_PATTERNS: tuple[_SignaturePattern, ...] = (
    _SignaturePattern(
        re.compile(r"^export\s+(async\s+)?function\s+(\w+)\s*\("),
        ChunkType.FUNCTION,
        2,
    ),
    _SignaturePattern(
        re.compile(r"^(async\s+)?function\s+(\w+)\s*\("),
        ChunkType.FUNCTION,
        2,
    ),
    _SignaturePattern(
        re.compile(
            r"^(?:export\s+)?const\s+(\w+)\s*=\s*(async\s+)?\([^)]*\)"
            r"\s*(:\s*[^=]+)?\s*=>"
        ),
        ChunkType.FUNCTION,
        1,
        after_assignment=True,
    ),
    _SignaturePattern(
        re.compile(
            r"^(?:export\s+)?const\s+(\w+)\s*(?::\s*[^=]+)?\s*=\s*[\[{]"
        ),
        ChunkType.CONST,
        1,
        after_assignment=True,
    ),
    _SignaturePattern(
        re.compile(r"^(?:export\s+)?class\s+(\w+)"),
        ChunkType.CLASS,
        1,
    ),
    _SignaturePattern(
        re.compile(r"^(?:export\s+)?interface\s+(\w+)"),
        ChunkType.INTERFACE,
        1,
    ),
    _SignaturePattern(
        re.compile(r"^(?:export\s+)?type\s+(\w+)\s*="),
        ChunkType.TYPE,
        1,
        after_assignment=True,
    ),
)


# A "/" after one of these (or at line start) opens a regex literal.
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};")


def _find_closing(line: str, start: int, quote: str) -> int | None:
    """Index of the unescaped ``quote`` closing a literal, or None."""
    i = start
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i
        i += 1
    return None


def _find_regex_end(line: str, start: int) -> int | None:
    """Index of the ``/`` closing a regex literal, or None."""
    in_class = False
    i = start
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            return i
        i += 1
    return None


def _opens_regex(code: list[str]) -> bool:
    before = "".join(code).rstrip()
    return (
        not before
        or before[-1] in _REGEX_PRECEDERS
        or re.search(r"\breturn$", before) is not None
    )


def _strip_literals(line: str, in_template: bool) -> tuple[str, bool]:
    """Blank out string, template, regex and comment text in ``line``.

    Each literal collapses to a placeholder so its brackets are never
    counted. Returns the code and whether a template literal is still
    open at the end of the line.
    """
    code: list[str] = []
    i = 0
    if in_template:
        close = _find_closing(line, 0, "`")
        if close is None:
            return "", True
        code.append("``")
        i = close + 1

    while i < len(line):
        ch = line[i]
        if ch in "'\"`":
            close = _find_closing(line, i + 1, ch)
            if close is not None:
                code.append(ch * 2)
                i = close + 1
                continue
            if ch == "`":
                code.append(ch)
                return "".join(code), True
            # Stray apostrophe, e.g. JSX text
            code.append(ch)
        elif line.startswith("//", i):
            break
        elif line.startswith("/*", i):
            end = line.find("*/", i + 2)
            if end == -1:
                break
            i = end + 2
            continue
        elif ch == "/" and _opens_regex(code):
            close = _find_regex_end(line, i + 1)
            if close is not None:
                code.append("0")
                i = close + 1
                continue
            code.append(ch)
        else:
            code.append(ch)
        i += 1

    return "".join(code), False


def _find_block_end(
    lines: list[str], start: int, after_assignment: bool
) -> int:
    """Index of the line closing the block that starts at ``start``.

    Tracks ``{}`` and ``[]`` depth until both return to zero, ignoring
    brackets inside string, template and regex literals and comments.
    Only a bracket outside parentheses opens the block, so default
    parameter values and argument annotations do not end it early. A
    statement that never opens a block ends at its first
    ``;``-terminated line.
    """
    braces = brackets = parens = 0
    opened = False
    in_template = False

    for i in range(start, len(lines)):
        line = lines[i]
        if i == start and after_assignment and "=" in line:
            line = line[line.index("=") + 1 :]
        line, in_template = _strip_literals(line, in_template)

        for ch in line:
            if ch == "(":
                parens += 1
            elif ch == ")":
                parens -= 1
            elif ch == "{":
                braces += 1
                if parens <= 0:
                    opened = True
            elif ch == "[":
                brackets += 1
                if parens <= 0 and after_assignment:
                    opened = True
            elif ch in "}]":
                if ch == "}":
                    braces -= 1
                else:
                    brackets -= 1
                if opened and braces <= 0 and brackets <= 0:
                    return i

        if not opened and line.rstrip().endswith(";"):
            return i

    return len(lines) - 1 if opened else start


def _is_skippable(stripped: str) -> bool:
    return not stripped or stripped.startswith(("//", "/*", "*"))


def extract_code_chunks(content: str) -> list[CodeChunk]:
    """Regex-based chunking; needs no grammar and never raises."""
    lines = content.split("\n")
    chunks: list[CodeChunk] = []
    consumed: set[int] = set()

    for i, raw in enumerate(lines):
        if i in consumed:
            continue
        stripped = raw.strip()
        if _is_skippable(stripped):
            continue

        for pattern in _SIGNATURE_PATTERNS:
            match = pattern.regex.match(stripped)
            if not match:
                continue
            end = _find_block_end(lines, i, pattern.after_assignment)
            chunks.append(
                CodeChunk(
                    type=pattern.chunk_type,
                    name=match.group(pattern.name_group) or "anonymous",
                    start_line=i + 1,  # 1-indexed
                    end_line=end + 1,
                    content="\n".join(lines[i : end + 1]),
                    signature=_signature(stripped),
                )
            )
            consumed.update(range(i, end + 1))
            break

    return chunks


# ---------------------------------------------------------------------------
# Strategy selection
# ---------------------------------------------------------------------------


def extract_chunks(
    content: str, probe: ParserProbe | None = None
) -> list[CodeChunk]:
    """Chunk with the grammar when available, else with regexes."""
    probe = probe or get_parser_probe()
    outcome = probe.resolve()
    if outcome.parser is not None:
        try:
            return extract_chunks_with_parser(content, outcome.parser)
        except Exception as exc:  # noqa: BLE001
            probe.disable(f"{type(exc).__name__}: {exc}")
    return extract_code_chunks(content)


async def extract_code_chunks_async(
    content: str, probe: ParserProbe | None = None
) -> list[CodeChunk]:
    """Like :func:`extract_chunks`, awaiting the first parser probe."""
    probe = probe or get_parser_probe()
    await probe.aresolve()
    return extract_chunks(content, probe)
