"""Doc-comment metadata for route modules and handlers.

Two ways to read a doc-comment, picked by probing the node:

- statements expose ``js_docs`` (already parsed ``/** */`` blocks);
- member calls inside a builder chain have no statement of their own, so the
  raw text in front of the call is scanned and the *last* block wins.
"""
from __future__ import annotations

import re
from typing import List, Optional, Union

from .constants import BUILDER_FACTORY_RE, HANDLER_MARKERS, ROUTE_MARKERS
from .models import HandlerAnnotation, RouteAnnotation
from .syntax import CallExpression, JsDoc, SourceFile, Statement, VariableDeclaration, parse_jsdoc

DOC_BLOCK_RE = re.compile(r"/\*\*(?!/)[\s\S]*?\*/")


def split_tags(text: str) -> List[str]:
    return [part.strip() for part in text.split(",") if part.strip()]


def annotation_from_jsdoc(doc: JsDoc) -> HandlerAnnotation:
    """Free text before the first marker is the description, but only when
    the block carries at least one marker. A plain comment is no metadata."""
    annotation = HandlerAnnotation()
    if not any(tag.name in HANDLER_MARKERS for tag in doc.tags):
        return annotation
    explicit_description = False
    for tag in doc.tags:
        if tag.name not in HANDLER_MARKERS:
            continue
        if tag.name == "summary":
            annotation.summary = tag.text
        elif tag.name == "description":
            annotation.description = tag.text
            explicit_description = True
        else:
            annotation.tags = split_tags(tag.text)
    if not explicit_description and doc.description:
        annotation.description = doc.description
    return annotation


def route_annotation_from_jsdoc(doc: JsDoc) -> RouteAnnotation:
    annotation = RouteAnnotation()
    for tag in doc.tags:
        if tag.name not in ROUTE_MARKERS or not tag.text:
            continue
        setattr(annotation, tag.name, tag.text)
    return annotation


def last_doc_block(text: str) -> Optional[str]:
    blocks = DOC_BLOCK_RE.findall(text or "")
    return blocks[-1] if blocks else None


class DocSource:
    """Handler metadata attached to one syntax node."""

    def jsdoc(self) -> Optional[JsDoc]:
        raise NotImplementedError

    def handler_annotation(self) -> Optional[HandlerAnnotation]:
        doc = self.jsdoc()
        if doc is None:
            return None
        annotation = annotation_from_jsdoc(doc)
        return None if annotation.is_empty() else annotation


class StructuredDocSource(DocSource):
    def __init__(self, js_docs: List[JsDoc]) -> None:
        self.js_docs = list(js_docs)

    def jsdoc(self) -> Optional[JsDoc]:
        # The block closest to the declaration documents it.
        return self.js_docs[-1] if self.js_docs else None


class LeadingTextDocSource(DocSource):
    def __init__(self, leading_text: str) -> None:
        self.leading_text = leading_text or ""

    def jsdoc(self) -> Optional[JsDoc]:
        block = last_doc_block(self.leading_text)
        return parse_jsdoc(block) if block else None


def doc_source_for(node: object) -> DocSource:
    if hasattr(node, "js_docs"):
        return StructuredDocSource(getattr(node, "js_docs"))
    return LeadingTextDocSource(getattr(node, "leading_text", ""))


def call_site_node(source: SourceFile, call: CallExpression) -> Union[Statement, CallExpression]:
    """Return the node whose doc-comment documents ``call``.

    A call made directly on the plain identifier that opens an expression
    statement (``app.get(...)``, or the first link of ``app.get(...).post(...)``)
    owns the statement's comment slot. Later links of a chain are documented
    by the text right before them.
    """
    statement = call.statement
    if statement is None or statement.kind != "expression":
        return call
    tokens = source.tokens
    receiver = call.dot_index - 1
    if receiver != statement.start or tokens[receiver].kind != "ident":
        return call
    end = call.close_index + 1
    if end < statement.end and tokens[end].value == ";":
        end += 1
    if end != statement.end and last_doc_block(call.leading_text):
        return call
    return statement


def is_builder_declaration(decl: VariableDeclaration) -> bool:
    return bool(BUILDER_FACTORY_RE.search(decl.initializer_text))


def builder_declarations(source: SourceFile) -> List[VariableDeclaration]:
    return [decl for decl in source.variables if is_builder_declaration(decl)]


def extract_route_metadata(source: SourceFile) -> RouteAnnotation:
    for decl in builder_declarations(source):
        if decl.statement.js_docs:
            return route_annotation_from_jsdoc(decl.statement.js_docs[0])
    return RouteAnnotation()


def extract_jsdoc_from_handler(source: SourceFile, handler_name: str) -> Optional[HandlerAnnotation]:
    decl = source.get_variable_declaration(handler_name)
    if decl is None:
        return None
    return doc_source_for(decl.statement).handler_annotation()
