"""
In-memory full-text index per entity type, backed by tantivy

Query grammar: ``[field:]keyword [field:]keyword [, ...]``. Keywords
separated by whitespace must all match (AND), comma separated groups are
alternatives (OR). A keyword matches any indexed word it is a prefix of.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any, Literal

import tantivy

from ..errors import FeatureUnavailableError
from ..logging import get_logger

logger = get_logger(__name__)

ANY_FIELD = "__any"
ID_FIELD = "id"

IndexOp = Literal["create", "update", "delete"]

_WORD = re.compile(r"[^\W_]+")
_TERM = re.compile(r"^(.+):(.+)$")


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _words(keyword: str) -> list[str]:
    return _WORD.findall(keyword.lower())


class FTSIndex:
    """Index over the identifier, the configured fields and a synthetic all-fields field."""

    def __init__(self, type_name: str, fields: list[str], heap_size: int = 50_000_000):
        self.type_name = type_name
        self.fields = list(fields)

        builder = tantivy.SchemaBuilder()
        builder.add_text_field(ID_FIELD, stored=True, tokenizer_name="raw")
        builder.add_text_field(ANY_FIELD)
        for name in self.fields:
            builder.add_text_field(name)
        self.schema = builder.build()

        self.index = tantivy.Index(self.schema)
        self._writer = self.index.writer(heap_size=heap_size, num_threads=1)

    def document(self, oid: Any, values: Mapping[str, Any]) -> tantivy.Document:
        oid = _text(oid)
        doc = tantivy.Document()
        doc.add_text(ID_FIELD, oid)
        texts = [oid]
        for name in self.fields:
            text = _text(values.get(name))
            doc.add_text(name, text)
            texts.append(text)
        doc.add_text(ANY_FIELD, " ".join(texts))
        return doc

    def _commit(self) -> None:
        self._writer.commit()
        self.index.reload()

    def load(self, rows: Iterable[tuple[Any, Mapping[str, Any]]]) -> int:
        count = 0
        for oid, values in rows:
            self._writer.add_document(self.document(oid, values))
            count += 1
        self._commit()
        return count

    def upsert(self, oid: Any, values: Mapping[str, Any]) -> None:
        self._writer.delete_documents(ID_FIELD, _text(oid))
        self._writer.add_document(self.document(oid, values))
        self._commit()

    def remove(self, oid: Any) -> None:
        self._writer.delete_documents(ID_FIELD, _text(oid))
        self._commit()

    def _field_query(self, field: str, keywords: list[str]) -> tantivy.Query | None:
        clauses = [
            (tantivy.Occur.Must, tantivy.Query.regex_query(self.schema, field, f"{word}.*"))
            for keyword in keywords
            for word in _words(keyword)
        ]
        if not clauses:
            return None
        return tantivy.Query.boolean_query(clauses)

    def _matching(self, query: tantivy.Query) -> set[str]:
        searcher = self.index.searcher()
        if searcher.num_docs == 0:
            return set()
        result = searcher.search(query, limit=searcher.num_docs)
        return {searcher.doc(address).get_first(ID_FIELD) for _score, address in result.hits}

    def search(self, groups: list[dict[str, list[str]]]) -> list[str]:
        """Ids matching any group, where a group matches when all its fields match."""
        matched: dict[str, None] = {}
        for group in groups:
            ids: set[str] | None = None
            for field, keywords in group.items():
                query = self._field_query(field, keywords)
                found = self._matching(query) if query is not None else set()
                ids = found if ids is None else ids & found
                if not ids:
                    break
            for oid in sorted(ids or ()):
                matched.setdefault(oid, None)
        return list(matched)


class FTSManager:
    """Owns one ``FTSIndex`` per configured entity type."""

    def __init__(
        self,
        config: Mapping[str, list[str]] | None = None,
        enabled: bool = True,
        heap_size: int = 50_000_000,
    ):
        self.config = {name: list(fields) for name, fields in (config or {}).items()}
        self.enabled = enabled
        self.heap_size = heap_size
        self._indexes: dict[str, FTSIndex] = {}

    def configured(self, type_name: str) -> bool:
        return self.enabled and type_name in self.config

    def index(self, type_name: str) -> FTSIndex:
        if not self.enabled or not self.config:
            raise FeatureUnavailableError("Full-Text-Search (FTS) not available at all")
        if type_name not in self.config:
            raise FeatureUnavailableError(
                f'Full-Text-Search (FTS) not available for entity "{type_name}"'
            )
        index = self._indexes.get(type_name)
        if index is None:
            index = FTSIndex(type_name, self.config[type_name], self.heap_size)
            self._indexes[type_name] = index
        return index

    def rebuild(self, type_name: str, rows: Iterable[tuple[Any, Mapping[str, Any]]]) -> int:
        """Replace the index of ``type_name`` by a fresh one holding ``rows``."""
        index = FTSIndex(type_name, self.config[type_name], self.heap_size)
        count = index.load(rows)
        self._indexes[type_name] = index
        logger.info("FTS index built", entity_type=type_name, documents=count)
        return count

    def update(
        self, type_name: str, oid: Any, values: Mapping[str, Any] | None, op: IndexOp
    ) -> None:
        """Keep the index in step with a storage mutation; no-op for unindexed types."""
        if not self.configured(type_name):
            return
        index = self.index(type_name)
        if op == "delete":
            index.remove(oid)
        else:
            index.upsert(oid, values or {})
        logger.debug("FTS index updated", entity_type=type_name, id=str(oid), op=op)

    def parse(self, type_name: str, query: str) -> list[dict[str, list[str]]]:
        fields = self.index(type_name).fields
        groups = []
        for part in re.split(r"\s*,\s*", query.strip()):
            group: dict[str, list[str]] = {}
            for term in part.split():
                field, keyword = ANY_FIELD, term
                match = _TERM.match(term)
                if match is not None:
                    field, keyword = match.group(1), match.group(2)
                if field != ANY_FIELD and field not in fields:
                    raise FeatureUnavailableError(
                        f'Full-Text-Search (FTS) not available for field "{field}" '
                        f'of entity "{type_name}"'
                    )
                group.setdefault(field, []).append(keyword)
            if group:
                groups.append(group)
        return groups

    def search(self, type_name: str, query: str) -> list[str]:
        """Ids of the entities of ``type_name`` matching ``query``."""
        groups = self.parse(type_name, query)
        return self.index(type_name).search(groups)
