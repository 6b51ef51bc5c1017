"""Turns an inbound article and its taxonomy records into the indexed body."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Union

from miujsag.models import (
    Article,
    Category,
    IndexableDocument,
    IndexedCategory,
    IndexedSite,
    Site,
)

_WHITESPACE_RUN = re.compile(r"\s{2,}")

ArticleLike = Union[Article, Mapping[str, Any]]
SiteLike = Union[Site, Mapping[str, Any]]
CategoryLike = Union[Category, Mapping[str, Any]]


def collapse_whitespace(text: Optional[str]) -> str:
    """Replace every run of two or more whitespace characters with one space."""
    if not text:
        return ""
    return _WHITESPACE_RUN.sub(" ", text)


def as_model(model: type, value: Any) -> Any:
    """Validate a plain mapping into `model`; instances pass through untouched."""
    return value if isinstance(value, model) else model.model_validate(value)


def normalize(document: ArticleLike, site: SiteLike, category: CategoryLike) -> IndexableDocument:
    """Build the canonical indexable shape. Pure; performs no I/O.

    Taxonomy records are copied field by field, so anything beyond
    site `{id, name, slug}` and category `{id, name}` never reaches the index.
    """
    article: Article = as_model(Article, document)
    site_rec: Site = as_model(Site, site)
    category_rec: Category = as_model(Category, category)
    return IndexableDocument(
        title=article.title,
        url=article.url,
        description=article.description,
        content=collapse_whitespace(article.content),
        published_at=article.published_at,
        estimated_read_time=article.estimated_read_time,
        image=article.image,
        site=IndexedSite(id=site_rec.id, name=site_rec.name, slug=site_rec.slug),
        category=IndexedCategory(id=category_rec.id, name=category_rec.name),
    )
