"""Shallow TypeScript syntax model used for static route discovery.

The tokenizer understands comments, string/template/regex literals and
punctuators well enough to find statement boundaries (with automatic
semicolon insertion), import declarations, variable declarations and member
call expressions. Nothing is evaluated.

Statements carry structured ``js_docs`` parsed from the ``/** */`` blocks in
their leading trivia. Call expressions only carry ``leading_text``: the raw
source between the previous token and the ``.`` of the call, which is where
JSDoc blocks of chained calls live.
"""
from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

IDENT_RE = re.compile(r"[A-Za-z_$\u00c0-\uffff][\w$\u00c0-\uffff]*")
NUMBER_RE = re.compile(
    r"(?:0[xXoObB][0-9a-fA-F_]+|\d[\d_]*(?:\.[\d_]*)?(?:[eE][+-]?\d+)?|\.\d[\d_]*(?:[eE][+-]?\d+)?)n?"
)
MARKER_RE = re.compile(r"(?:(?<=\s)|^)@([A-Za-z][\w-]*)", re.MULTILINE)

PUNCTUATORS = sorted(
    [
        ">>>=", "...", "===", "!==", "**=", "<<=", ">>=", ">>>", "&&=", "||=", "??=",
        "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--", "+=", "-=",
        "*=", "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
    ],
    key=len,
    reverse=True,
)

GENERIC_CLOSERS = (">", ">>", ">>>")

REGEX_AFTER_KEYWORDS = {
    "return", "typeof", "case", "do", "else", "in", "of", "new", "delete",
    "void", "throw", "instanceof", "yield", "await",
}

CONTINUE_AFTER_VALUES = {
    "=", "(", "[", "{", ",", ".", "?.", "=>", "+", "-", "*", "/", "%", "**",
    "&&", "||", "??", "!", "?", ":", "<", ">", "<=", ">=", "==", "===", "!=",
    "!==", "|", "&", "^", "~", "+=", "-=", "*=", "/=", "%=", "&&=", "||=",
    "??=", "<<", ">>", ">>>", "...",
}
CONTINUE_AFTER_KEYWORDS = {
    "new", "export", "default", "const", "let", "var", "import", "from",
    "extends", "typeof", "await", "in", "of", "instanceof", "as", "satisfies",
    "keyof", "declare",
}
CONTINUE_BEFORE_VALUES = {
    ".", "?.", ",", "=>", "?", ":", "=", "==", "===", "!=", "!==", "+", "-",
    "*", "/", "%", "**", "&&", "||", "??", "|", "&", "^", "<", ">", "<=",
    ">=", "(", "[", "+=", "-=", "*=", "/=", "<<", ">>", ">>>",
}
CONTINUE_BEFORE_KEYWORDS = {"instanceof", "in", "as", "satisfies", "extends"}

DECLARATION_KEYWORDS = {
    "function", "class", "interface", "type", "enum", "async", "abstract",
    "namespace", "module",
}


@dataclass
class Comment:
    text: str
    start: int
    end: int

    @property
    def is_doc(self) -> bool:
        return self.text.startswith("/**") and not self.text.startswith("/**/")


@dataclass
class Token:
    kind: str
    value: str
    start: int
    end: int
    newline_before: bool = False
    leading: List[Comment] = field(default_factory=list)


@dataclass
class JsDocTag:
    name: str
    text: str


@dataclass
class JsDoc:
    raw: str
    description: str
    tags: List[JsDocTag]


@dataclass
class Statement:
    kind: str
    start: int
    end: int
    exported: bool = False
    js_docs: List[JsDoc] = field(default_factory=list)


@dataclass
class ImportDeclaration:
    specifier: str
    default_name: str = ""
    namespace_name: str = ""
    named: List[Tuple[str, str]] = field(default_factory=list)
    type_only: bool = False

    def imported_name(self, local: str) -> Optional[str]:
        if local and local == self.default_name:
            return "default"
        for imported, alias in self.named:
            if alias == local:
                return imported
        return None


@dataclass
class VariableDeclaration:
    name: str
    statement: Statement
    init_start: int
    init_end: int
    initializer_text: str


@dataclass
class Argument:
    kind: str
    text: str
    value: str = ""


@dataclass
class CallExpression:
    name: str
    name_index: int
    dot_index: int
    close_index: int
    line: int
    receiver_root: str
    arguments: List[Argument]
    leading_text: str
    statement: Optional[Statement] = None


@dataclass
class SourceFile:
    path: Path
    text: str
    tokens: List[Token]
    statements: List[Statement]
    imports: List[ImportDeclaration]
    variables: List[VariableDeclaration]
    calls: List[CallExpression]
    default_export: str = ""

    def get_import_declaration(self, local_name: str) -> Optional[ImportDeclaration]:
        for decl in self.imports:
            if decl.imported_name(local_name) is not None:
                return decl
        return None

    def get_variable_declaration(self, name: str) -> Optional[VariableDeclaration]:
        for decl in self.variables:
            if decl.name == name:
                return decl
        return None

    def calls_between(self, start: int, end: int) -> List[CallExpression]:
        return [call for call in self.calls if start <= call.name_index < end]


def line_number_for_offset(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def _skip_string(text: str, idx: int) -> int:
    quote = text[idx]
    i = idx + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n":
            return i
        i += 1
    return len(text)


def _skip_braced(text: str, idx: int) -> int:
    depth = 1
    i = idx
    while i < len(text):
        ch = text[i]
        if ch in "'\"":
            i = _skip_string(text, i)
            continue
        if ch == "`":
            i = _skip_template(text, i)
            continue
        if text.startswith("//", i):
            end = text.find("\n", i)
            i = len(text) if end == -1 else end
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = len(text) if end == -1 else end + 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return len(text)


def _skip_template(text: str, idx: int) -> int:
    i = idx + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "`":
            return i + 1
        if text.startswith("${", i):
            i = _skip_braced(text, i + 2)
            continue
        i += 1
    return len(text)


def _skip_regex(text: str, idx: int) -> int:
    i = idx + 1
    in_class = False
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            return i
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            i += 1
            break
        i += 1
    while i < len(text) and (text[i].isalnum() or text[i] == "_"):
        i += 1
    return i


def _regex_allowed(tokens: List[Token]) -> bool:
    if not tokens:
        return True
    prev = tokens[-1]
    if prev.kind == "ident":
        return prev.value in REGEX_AFTER_KEYWORDS
    if prev.kind != "punct":
        return False
    return prev.value not in {")", "]", "++", "--"}


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pending: List[Comment] = []
    newline = False
    idx = 0
    length = len(text)
    while idx < length:
        ch = text[idx]
        if ch == "\n":
            newline = True
            idx += 1
            continue
        if ch.isspace():
            idx += 1
            continue
        if text.startswith("//", idx):
            end = text.find("\n", idx)
            end = length if end == -1 else end
            pending.append(Comment(text[idx:end], idx, end))
            idx = end
            continue
        if text.startswith("/*", idx):
            end = text.find("*/", idx + 2)
            end = length if end == -1 else end + 2
            if "\n" in text[idx:end]:
                newline = True
            pending.append(Comment(text[idx:end], idx, end))
            idx = end
            continue

        start = idx
        if ch in "'\"":
            kind = "string"
            idx = _skip_string(text, idx)
        elif ch == "`":
            kind = "template"
            idx = _skip_template(text, idx)
        elif ch == "/" and _regex_allowed(tokens):
            kind = "regex"
            idx = _skip_regex(text, idx)
        else:
            match = IDENT_RE.match(text, idx)
            number = None
            if not match and (ch.isdigit() or (ch == "." and idx + 1 < length and text[idx + 1].isdigit())):
                number = NUMBER_RE.match(text, idx)
            if match:
                kind = "ident"
                idx = match.end()
            elif number:
                kind = "number"
                idx = number.end()
            else:
                kind = "punct"
                for punct in PUNCTUATORS:
                    if text.startswith(punct, idx):
                        idx += len(punct)
                        break
                else:
                    idx += 1
        tokens.append(Token(kind, text[start:idx], start, idx, newline, pending))
        pending = []
        newline = False
    return tokens


def match_brackets(tokens: List[Token]) -> Dict[int, int]:
    """Map every bracket token index to its partner (both directions)."""
    pairs = {")": "(", "]": "[", "}": "{"}
    matches: Dict[int, int] = {}
    stack: List[int] = []
    for idx, tok in enumerate(tokens):
        if tok.kind != "punct":
            continue
        if tok.value in ("(", "[", "{"):
            stack.append(idx)
        elif tok.value in pairs:
            # Unbalanced input: pop until the matching opener, if any.
            while stack and tokens[stack[-1]].value != pairs[tok.value]:
                stack.pop()
            if stack:
                opener = stack.pop()
                matches[opener] = idx
                matches[idx] = opener
    return matches


def string_value(tok: Token) -> Optional[str]:
    if tok.kind == "string":
        body = tok.value[1:-1] if len(tok.value) >= 2 else ""
    elif tok.kind == "template" and "${" not in tok.value:
        body = tok.value[1:-1] if len(tok.value) >= 2 else ""
    else:
        return None
    return re.sub(r"\\(.)", r"\1", body)


def clean_doc_lines(raw: str) -> List[str]:
    lines = []
    for line in raw.splitlines():
        cleaned = line.strip()
        if cleaned.startswith("/**"):
            cleaned = cleaned[3:]
        elif cleaned.startswith("/*"):
            cleaned = cleaned[2:]
        if cleaned.endswith("*/"):
            cleaned = cleaned[:-2]
        cleaned = cleaned.lstrip("*").strip()
        lines.append(cleaned)
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return lines


def parse_jsdoc(raw: str) -> JsDoc:
    text = "\n".join(clean_doc_lines(raw))
    markers = list(MARKER_RE.finditer(text))
    head = text[: markers[0].start()] if markers else text
    description = "\n".join(line.strip() for line in head.splitlines() if line.strip())
    tags: List[JsDocTag] = []
    for pos, match in enumerate(markers):
        end = markers[pos + 1].start() if pos + 1 < len(markers) else len(text)
        body = " ".join(part.strip() for part in text[match.end() : end].splitlines() if part.strip())
        tags.append(JsDocTag(match.group(1), body))
    return JsDoc(raw=raw, description=description, tags=tags)


def _continues(prev: Token, nxt: Token) -> bool:
    if prev.kind == "punct" and prev.value in CONTINUE_AFTER_VALUES:
        return True
    if prev.kind == "ident" and prev.value in CONTINUE_AFTER_KEYWORDS:
        return True
    if nxt.kind == "punct" and nxt.value in CONTINUE_BEFORE_VALUES:
        return True
    if nxt.kind == "ident" and nxt.value in CONTINUE_BEFORE_KEYWORDS:
        return True
    return False


def split_statements(tokens: List[Token], matches: Dict[int, int]) -> List[Tuple[int, int]]:
    spans: List[Tuple[int, int]] = []
    start = 0
    idx = 0
    while idx < len(tokens):
        tok = tokens[idx]
        if idx > start and tok.newline_before and not _continues(tokens[idx - 1], tok):
            spans.append((start, idx))
            start = idx
        if tok.kind == "punct" and tok.value in ("(", "[", "{") and idx in matches:
            idx = matches[idx] + 1
            continue
        if tok.kind == "punct" and tok.value == ";":
            if idx > start:
                spans.append((start, idx + 1))
            start = idx + 1
        idx += 1
    if start < len(tokens):
        spans.append((start, len(tokens)))
    return spans


def _scan_depth0(
    tokens: List[Token],
    matches: Dict[int, int],
    start: int,
    end: int,
    values: Tuple[str, ...],
) -> int:
    idx = start
    while idx < end:
        tok = tokens[idx]
        if tok.kind == "punct" and tok.value in values:
            return idx
        if tok.kind == "punct" and tok.value in ("(", "[", "{") and idx in matches:
            idx = matches[idx] + 1
            continue
        idx += 1
    return end


def _statement_kind(tokens: List[Token], start: int, end: int) -> Tuple[str, bool, int]:
    idx = start
    exported = False

    def value(at: int) -> str:
        return tokens[at].value if at < end else ""

    if value(idx) == "export":
        exported = True
        idx += 1
        if value(idx) == "default":
            return "export-default", True, idx + 1
    if value(idx) == "declare":
        idx += 1
    head = value(idx)
    if head in ("const", "let", "var"):
        return "variable", exported, idx + 1
    if head == "import" and not exported and value(idx + 1) not in ("(", "."):
        return "import", False, idx + 1
    if head in DECLARATION_KEYWORDS:
        return "declaration", exported, idx
    if exported:
        return "other", True, idx
    return "expression", False, idx


def _parse_import(tokens: List[Token], start: int, end: int) -> Optional[ImportDeclaration]:
    idx = start
    decl = ImportDeclaration(specifier="")
    if idx < end and tokens[idx].value == "type" and idx + 1 < end and tokens[idx + 1].value != "from":
        decl.type_only = True
        idx += 1
    while idx < end:
        tok = tokens[idx]
        if tok.kind == "string":
            decl.specifier = string_value(tok) or ""
            break
        if tok.value == "from":
            idx += 1
            continue
        if tok.value == "*":
            if idx + 2 < end and tokens[idx + 1].value == "as":
                decl.namespace_name = tokens[idx + 2].value
                idx += 3
                continue
        elif tok.value == "{":
            idx += 1
            while idx < end and tokens[idx].value != "}":
                item = tokens[idx]
                if item.value == "type" and idx + 1 < end and tokens[idx + 1].value not in (",", "}", "as"):
                    idx += 1
                    item = tokens[idx]
                if item.kind in ("ident", "string"):
                    imported = (string_value(item) if item.kind == "string" else item.value) or ""
                    local = imported
                    if idx + 2 < end and tokens[idx + 1].value == "as":
                        local = tokens[idx + 2].value
                        idx += 2
                    decl.named.append((imported, local))
                idx += 1
                if idx < end and tokens[idx].value == ",":
                    idx += 1
        elif tok.kind == "ident" and not decl.default_name:
            decl.default_name = tok.value
        idx += 1
    if not decl.specifier:
        return None
    return decl


def _parse_variables(
    text: str,
    tokens: List[Token],
    matches: Dict[int, int],
    statement: Statement,
    start: int,
) -> List[VariableDeclaration]:
    declarations: List[VariableDeclaration] = []
    end = statement.end
    if end > start and tokens[end - 1].value == ";":
        end -= 1
    idx = start
    while idx < end:
        name_tok = tokens[idx]
        if name_tok.kind != "ident":
            idx = _scan_depth0(tokens, matches, idx, end, (",",)) + 1
            continue
        idx += 1
        if idx < end and tokens[idx].value == "!":
            idx += 1
        if idx < end and tokens[idx].value == ":":
            eq = _scan_depth0(tokens, matches, idx, end, ("=",))
        else:
            eq = _scan_depth0(tokens, matches, idx, end, ("=", ","))
        if eq >= end or tokens[eq].value != "=":
            idx = eq + 1
            continue
        init_end = _scan_depth0(tokens, matches, eq + 1, end, (",",))
        init_text = ""
        if init_end > eq + 1:
            init_text = text[tokens[eq + 1].start : tokens[init_end - 1].end]
        declarations.append(VariableDeclaration(name_tok.value, statement, eq + 1, init_end, init_text))
        idx = init_end + 1
    return declarations


def _receiver_root(tokens: List[Token], matches: Dict[int, int], idx: int) -> str:
    while idx >= 0:
        tok = tokens[idx]
        if tok.kind == "punct" and tok.value in (")", "]"):
            opener = matches.get(idx)
            if opener is None:
                return ""
            idx = opener - 1
            continue
        if tok.kind == "punct" and tok.value in GENERIC_CLOSERS:
            # `>>` and `>>>` are single tokens but close two or three lists.
            depth = 0
            while idx >= 0:
                value = tokens[idx].value if tokens[idx].kind == "punct" else ""
                if value in GENERIC_CLOSERS:
                    depth += len(value)
                elif value in ("<", "<<"):
                    depth -= len(value)
                    if depth <= 0:
                        break
                idx -= 1
            idx -= 1
            continue
        if tok.kind == "ident":
            if idx >= 1 and tokens[idx - 1].value in (".", "?."):
                idx -= 2
                continue
            return tok.value
        return ""
    return ""


def _split_arguments(
    text: str,
    tokens: List[Token],
    matches: Dict[int, int],
    start: int,
    end: int,
) -> List[Argument]:
    args: List[Argument] = []
    idx = start
    while idx < end:
        arg_end = _scan_depth0(tokens, matches, idx, end, (",",))
        if arg_end > idx:
            args.append(_classify_argument(text, tokens[idx:arg_end]))
        idx = arg_end + 1
    return args


def _classify_argument(text: str, parts: List[Token]) -> Argument:
    raw = text[parts[0].start : parts[-1].end]
    if len(parts) == 1:
        value = string_value(parts[0])
        if value is not None:
            return Argument("string", raw, value)
        if parts[0].kind == "ident":
            return Argument("identifier", raw, parts[0].value)
    if parts[0].value == "...":
        rest = text[parts[1].start : parts[-1].end] if len(parts) > 1 else ""
        return Argument("spread", raw, rest)
    return Argument("other", raw)


def collect_calls(
    text: str,
    tokens: List[Token],
    matches: Dict[int, int],
    statements: List[Statement],
) -> List[CallExpression]:
    calls: List[CallExpression] = []
    starts = [stmt.start for stmt in statements]
    for idx in range(1, len(tokens) - 1):
        tok = tokens[idx]
        if tok.kind != "ident":
            continue
        dot = tokens[idx - 1]
        if dot.kind != "punct" or dot.value not in (".", "?."):
            continue
        opener = tokens[idx + 1]
        if opener.value != "(" or (idx + 1) not in matches:
            continue
        close = matches[idx + 1]
        prev_end = tokens[idx - 2].end if idx >= 2 else 0
        statement = None
        pos = bisect.bisect_right(starts, idx) - 1
        if pos >= 0 and statements[pos].start <= idx < statements[pos].end:
            statement = statements[pos]
        calls.append(
            CallExpression(
                name=tok.value,
                name_index=idx,
                dot_index=idx - 1,
                close_index=close,
                line=line_number_for_offset(text, tok.start),
                receiver_root=_receiver_root(tokens, matches, idx - 2),
                arguments=_split_arguments(text, tokens, matches, idx + 2, close),
                leading_text=text[prev_end : dot.start],
                statement=statement,
            )
        )
    return calls


def parse_source(path: Path, text: str) -> SourceFile:
    tokens = tokenize(text)
    matches = match_brackets(tokens)
    statements: List[Statement] = []
    imports: List[ImportDeclaration] = []
    variables: List[VariableDeclaration] = []
    default_export = ""
    for start, end in split_statements(tokens, matches):
        kind, exported, body = _statement_kind(tokens, start, end)
        js_docs = [parse_jsdoc(comment.text) for comment in tokens[start].leading if comment.is_doc]
        statement = Statement(kind, start, end, exported, js_docs)
        statements.append(statement)
        if kind == "import":
            decl = _parse_import(tokens, body, end)
            if decl:
                imports.append(decl)
        elif kind == "variable":
            variables.extend(_parse_variables(text, tokens, matches, statement, body))
        elif kind == "export-default":
            if body < end and tokens[body].kind == "ident" and (body + 1 == end or tokens[body + 1].value == ";"):
                default_export = tokens[body].value
        elif kind == "other" and exported and tokens[body].value == "{":
            # export { docs as default }
            for idx in range(body, end - 2):
                if tokens[idx + 1].value == "as" and tokens[idx + 2].value == "default":
                    default_export = tokens[idx].value
    calls = collect_calls(text, tokens, matches, statements)
    return SourceFile(
        path=path,
        text=text,
        tokens=tokens,
        statements=statements,
        imports=imports,
        variables=variables,
        calls=calls,
        default_export=default_export,
    )
