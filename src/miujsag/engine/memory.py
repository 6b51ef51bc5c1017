"""In-memory engine backed by Whoosh.

Keeps one RAM index per index name and understands the subset of the
Elasticsearch request body this package emits: `bool` (must/filter/must_not),
`match_all`, `multi_match` (fuzziness, prefix_length), `term`, `terms` and
`range`, plus `from`/`size`, single-key `sort`, `highlight` and `_source`
filtering. Responses use the `_search` response shape so the same formatter
serves both backends.

Mapping properties become Whoosh fields (`site.id` is stored as `site__id`,
multi-field `url.keyword` as `url__keyword`); the full body is stored as-is
and returned as `_source`.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from whoosh import query as wq
from whoosh import scoring
from whoosh.analysis import StandardAnalyzer
from whoosh.fields import BOOLEAN, DATETIME, ID, NUMERIC, STORED, TEXT, FieldType, Schema
from whoosh.filedb.filestore import RamStorage
from whoosh.highlight import HtmlFormatter
from whoosh.index import Index

from miujsag.engine.base import BaseEngine
from miujsag.exceptions import EngineError

logger = logging.getLogger(__name__)

_ID_FIELD = "doc_id"
_SOURCE_FIELD = "doc_source"

_INT_TYPES = {"integer", "long", "short", "byte"}
_FLOAT_TYPES = {"float", "double", "half_float", "scaled_float"}


def _parsing_error(reason: str) -> EngineError:
    return EngineError(
        f"Unsupported query: {reason}",
        status_code=400,
        error_type="parsing_exception",
        reason=reason,
    )


def _to_datetime(value: Any) -> datetime:
    # Whoosh stores naive datetimes; everything is kept in UTC
    dt = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _make_field(es_type: str) -> Optional[FieldType]:
    if es_type in ("text", "match_only_text"):
        # No stop list, matching the `standard` analyzer which indexes stop words too
        return TEXT(analyzer=StandardAnalyzer(stoplist=None))
    if es_type == "keyword":
        return ID(sortable=True)
    if es_type in _INT_TYPES:
        return NUMERIC(numtype=int, bits=64, signed=True, sortable=True)
    if es_type in _FLOAT_TYPES:
        return NUMERIC(numtype=float, sortable=True)
    if es_type == "date":
        return DATETIME(sortable=True)
    if es_type == "boolean":
        return BOOLEAN()
    return None


def _walk(properties: Dict[str, Any], prefix: str = "") -> Iterable[Tuple[str, str, str]]:
    """Yield (dotted path, source path, type) for every indexed mapping leaf."""
    for name, spec in properties.items():
        path = f"{prefix}{name}"
        if "properties" in spec:
            yield from _walk(spec["properties"], path + ".")
            continue
        if spec.get("index") is False:
            continue
        yield path, path, spec.get("type", "object")
        for sub, sub_spec in (spec.get("fields") or {}).items():
            yield f"{path}.{sub}", path, sub_spec.get("type", "keyword")


def _lookup(source: Dict[str, Any], path: str) -> Any:
    value: Any = source
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _single(body: Any, kind: str) -> Tuple[str, Any]:
    if not isinstance(body, dict) or len(body) != 1:
        raise _parsing_error(f"[{kind}] expects exactly one field")
    return next(iter(body.items()))


def _as_list(clause: Any) -> List[Any]:
    if clause is None:
        return []
    return clause if isinstance(clause, list) else [clause]


def _filter_source(source: Dict[str, Any], spec: Any) -> Optional[Dict[str, Any]]:
    if spec is None or spec is True:
        return source
    if spec is False:
        return None
    includes: List[str] = []
    excludes: List[str] = []
    if isinstance(spec, (list, str)):
        includes = _as_list(spec)
    elif isinstance(spec, dict):
        includes = _as_list(spec.get("includes") or spec.get("include"))
        excludes = _as_list(spec.get("excludes") or spec.get("exclude"))
    out = {k: v for k, v in source.items() if not includes or k in includes}
    for path in excludes:
        *parents, leaf = path.split(".")
        target: Any = out
        for part in parents:
            target = target.get(part) if isinstance(target, dict) else None
        if isinstance(target, dict):
            target.pop(leaf, None)
    return out


@dataclass
class _MemoryIndex:
    ix: Index
    # whoosh field name -> (source path, mapping type)
    fields: Dict[str, Tuple[str, str]] = field(default_factory=dict)

    @staticmethod
    def field_name(path: str) -> str:
        return path.replace(".", "__")

    def field_type(self, path: str) -> Optional[str]:
        entry = self.fields.get(self.field_name(path))
        return entry[1] if entry else None

    def convert(self, es_type: str, value: Any) -> Any:
        if es_type == "date":
            return _to_datetime(value)
        if es_type in _INT_TYPES:
            return int(value)
        if es_type in _FLOAT_TYPES:
            return float(value)
        if es_type == "boolean":
            return bool(value)
        if es_type == "keyword":
            return str(value)
        return str(value).lower()


class MemoryEngine(BaseEngine):
    """Whoosh `RamStorage` implementation of the engine contract. Nothing is persisted."""

    def __init__(self) -> None:
        self._indexes: Dict[str, _MemoryIndex] = {}

    @staticmethod
    def _missing(index: str) -> EngineError:
        return EngineError(
            f"no such index [{index}]",
            status_code=404,
            error_type="index_not_found_exception",
            reason=f"no such index [{index}]",
        )

    def _get(self, index: str) -> _MemoryIndex:
        mem = self._indexes.get(index)
        if mem is None:
            raise self._missing(index)
        return mem

    async def exists(self, index: str) -> bool:
        return index in self._indexes

    async def create_index(self, index: str, schema: Dict[str, Any]) -> None:
        if index in self._indexes:
            raise EngineError(
                f"index [{index}] already exists",
                status_code=400,
                error_type="resource_already_exists_exception",
                reason=f"index [{index}] already exists",
            )
        properties = (schema.get("mappings") or {}).get("properties") or {}
        whoosh_schema = Schema()
        whoosh_schema.add(_ID_FIELD, ID(stored=True, unique=True))
        whoosh_schema.add(_SOURCE_FIELD, STORED())
        fields: Dict[str, Tuple[str, str]] = {}
        for path, source_path, es_type in _walk(properties):
            field_obj = _make_field(es_type)
            if field_obj is None:
                continue
            name = _MemoryIndex.field_name(path)
            whoosh_schema.add(name, field_obj)
            fields[name] = (source_path, es_type)
        self._indexes[index] = _MemoryIndex(ix=RamStorage().create_index(whoosh_schema), fields=fields)
        logger.debug("Created in-memory index %s with %d fields", index, len(fields))

    async def delete_index(self, index: str, *, ignore_missing: bool = True) -> None:
        mem = self._indexes.pop(index, None)
        if mem is None:
            if ignore_missing:
                return
            raise self._missing(index)
        mem.ix.close()

    async def upsert(self, index: str, doc_id: str, body: Dict[str, Any]) -> None:
        mem = self._get(index)
        values: Dict[str, Any] = {}
        for name, (source_path, es_type) in mem.fields.items():
            raw = _lookup(body, source_path)
            if raw is None:
                continue
            try:
                values[name] = mem.convert(es_type, raw)
            except (TypeError, ValueError) as exc:
                raise EngineError(
                    f"failed to parse field [{source_path}]",
                    status_code=400,
                    error_type="mapper_parsing_exception",
                    reason=str(exc),
                ) from exc
        writer = mem.ix.writer()
        writer.update_document(**{_ID_FIELD: str(doc_id), _SOURCE_FIELD: dict(body)}, **values)
        writer.commit()

    # ----- Query translation -----

    def _compile(self, mem: _MemoryIndex, clause: Any) -> wq.Query:
        if not isinstance(clause, dict) or len(clause) != 1:
            raise _parsing_error(f"expected a single-key query object, got {clause!r}")
        kind, body = next(iter(clause.items()))
        if kind == "match_all":
            return wq.Every()
        if kind == "bool":
            required = [self._compile(mem, c) for c in _as_list(body.get("must")) + _as_list(body.get("filter"))]
            q: wq.Query = wq.And(required) if required else wq.Every()
            excluded = [self._compile(mem, c) for c in _as_list(body.get("must_not"))]
            if excluded:
                q = wq.AndNot(q, wq.Or(excluded))
            return q
        if kind == "multi_match":
            return self._multi_match(mem, body)
        if kind == "term":
            path, value = _single(body, kind)
            if isinstance(value, dict):
                value = value.get("value")
            return self._terms(mem, path, [value])
        if kind == "terms":
            path, values = _single(body, kind)
            return self._terms(mem, path, _as_list(values))
        if kind == "range":
            path, bounds = _single(body, kind)
            return self._range(mem, path, bounds)
        raise _parsing_error(f"unknown query [{kind}]")

    def _multi_match(self, mem: _MemoryIndex, body: Dict[str, Any]) -> wq.Query:
        text = str(body.get("query") or "")
        fuzziness = body.get("fuzziness", 0)
        if not isinstance(fuzziness, int):
            raise _parsing_error(f"fuzziness [{fuzziness}] is not supported")
        prefix_length = int(body.get("prefix_length", 0))
        schema = mem.ix.schema
        subqueries: List[wq.Query] = []
        for path in body.get("fields") or []:
            name = mem.field_name(path)
            if name not in mem.fields:
                continue
            for token in schema[name].process_text(text, mode="query"):
                if fuzziness:
                    subqueries.append(
                        wq.FuzzyTerm(name, token, maxdist=fuzziness, prefixlength=prefix_length)
                    )
                else:
                    subqueries.append(wq.Term(name, token))
        return wq.Or(subqueries) if subqueries else wq.NullQuery

    def _terms(self, mem: _MemoryIndex, path: str, values: List[Any]) -> wq.Query:
        es_type = mem.field_type(path)
        if es_type is None or not values:
            # Same as the engine: nothing can match an unknown field or an empty set
            return wq.NullQuery
        name = mem.field_name(path)
        try:
            return wq.Or([wq.Term(name, mem.convert(es_type, v)) for v in values])
        except (TypeError, ValueError) as exc:
            raise _parsing_error(f"bad value for [{path}]: {exc}") from exc

    def _range(self, mem: _MemoryIndex, path: str, bounds: Dict[str, Any]) -> wq.Query:
        es_type = mem.field_type(path)
        if es_type is None:
            return wq.NullQuery
        name = mem.field_name(path)
        try:
            start = bounds.get("gte", bounds.get("gt"))
            end = bounds.get("lte", bounds.get("lt"))
            start = mem.convert(es_type, start) if start is not None else None
            end = mem.convert(es_type, end) if end is not None else None
        except (TypeError, ValueError) as exc:
            raise _parsing_error(f"bad range for [{path}]: {exc}") from exc
        startexcl = "gt" in bounds and "gte" not in bounds
        endexcl = "lt" in bounds and "lte" not in bounds
        if es_type == "date":
            return wq.DateRange(name, start, end, startexcl=startexcl, endexcl=endexcl)
        if es_type in _INT_TYPES or es_type in _FLOAT_TYPES:
            return wq.NumericRange(name, start, end, startexcl=startexcl, endexcl=endexcl)
        raise _parsing_error(f"range is not supported on [{path}] of type [{es_type}]")

    def _sort(self, mem: _MemoryIndex, spec: Any) -> Tuple[Optional[str], bool]:
        entries = _as_list(spec)
        if not entries:
            return None, False
        first = entries[0]
        if isinstance(first, str):
            path, order = first, "asc"
        elif isinstance(first, dict) and len(first) == 1:
            (path, opts), = first.items()
            order = opts.get("order", "asc") if isinstance(opts, dict) else str(opts)
        else:
            raise _parsing_error(f"bad sort [{first!r}]")
        if path == "_score":
            return None, False
        if mem.field_type(path) is None:
            raise _parsing_error(f"no mapping found for [{path}] in order to sort on")
        return mem.field_name(path), order == "desc"

    async def query(self, index: str, dsl: Dict[str, Any]) -> Dict[str, Any]:
        mem = self._get(index)
        q = self._compile(mem, dsl.get("query") or {"match_all": {}})
        offset = int(dsl.get("from", 0))
        size = int(dsl.get("size", 10))
        sortedby, reverse = self._sort(mem, dsl.get("sort"))
        highlight = dsl.get("highlight") or {}
        fragments = int(highlight.get("number_of_fragments", 5))

        # terms=True records matched terms so fuzzy expansions get highlighted
        kwargs: Dict[str, Any] = {"limit": max(offset + size, 1), "terms": True}
        if sortedby:
            kwargs.update(sortedby=sortedby, reverse=reverse)

        with mem.ix.searcher(weighting=scoring.BM25F()) as searcher:
            results = searcher.search(q, **kwargs)
            results.formatter = HtmlFormatter(tagname="em")
            total = len(results)
            hits: List[Dict[str, Any]] = []
            for hit in results[offset : offset + size]:
                source = hit[_SOURCE_FIELD]
                out: Dict[str, Any] = {
                    "_index": index,
                    "_id": hit[_ID_FIELD],
                    "_score": None if sortedby else float(hit.score or 0.0),
                }
                filtered = _filter_source(copy.deepcopy(source), dsl.get("_source"))
                if filtered is not None:
                    out["_source"] = filtered
                highlighted: Dict[str, List[str]] = {}
                for path in (highlight.get("fields") or {}):
                    name = mem.field_name(path)
                    text = _lookup(source, path)
                    if name not in mem.fields or not isinstance(text, str) or not text:
                        continue
                    snippet = hit.highlights(name, text=text, top=fragments)
                    if snippet:
                        highlighted[path] = [snippet]
                if highlighted:
                    out["highlight"] = highlighted
                hits.append(out)

        return {
            "took": 0,
            "timed_out": False,
            "hits": {
                "total": {"value": total, "relation": "eq"},
                "hits": hits,
            },
        }
