from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .models import CuratedCategory, CuratedGroup, CuratedPool
from .titles import display_title, normalize

logger = logging.getLogger(__name__)

NON_ARTICLE_NAMESPACES = (
    "Special:", "Wikipedia:", "Help:", "Template:", "File:", "Image:", "Media:",
    "Portal:", "Category:", "User:", "User talk:", "Wikipedia talk:", "Template talk:",
    "File talk:", "MediaWiki:", "MediaWiki talk:", "Talk:", "Draft:", "Draft talk:",
    "TimedText:", "TimedText talk:", "Module:", "Module talk:", "Gadget:",
    "Gadget talk:", "Gadget definition:", "Gadget definition talk:",
)
SKIPPED_PREFIXES = ("List of", "Timeline of", "Index of", "History of")


def is_real_article(title: str) -> bool:
    """False for namespaced pages, list/index pages, disambiguations and the main page."""
    text = display_title(title)
    if not text or text == "Main Page":
        return False
    if text.endswith(" (disambiguation)"):
        return False
    if text.startswith(SKIPPED_PREFIXES):
        return False
    return not text.startswith(NON_ARTICLE_NAMESPACES)


def article_title(article: Any) -> str:
    """Curated articles are either bare strings or ``{"title": ..., "url": ...}`` objects."""
    if isinstance(article, str):
        return article
    if isinstance(article, Mapping) and isinstance(article.get("title"), str):
        return article["title"]
    raise ValueError(f"Unsupported curated article entry: {article!r}")


def _parse_groups(raw: Any) -> Tuple[Dict[str, CuratedGroup], Dict[str, str]]:
    groups: Dict[str, CuratedGroup] = {}
    membership: Dict[str, str] = {}
    if not raw:
        return groups, membership
    if not isinstance(raw, Mapping):
        raise ValueError("'groups' must be a mapping of group name to settings")
    for name, info in raw.items():
        if not isinstance(info, Mapping):
            raise ValueError(f"Group {name!r} must be a mapping")
        cap = int(info.get("maxPerGame", info.get("max_per_game", 0)))
        if cap < 0:
            raise ValueError(f"Group {name!r} has negative maxPerGame")
        groups[str(name)] = CuratedGroup(name=str(name), max_per_game=cap)
        for category_name in info.get("categories", []) or []:
            membership[str(category_name)] = str(name)
    return groups, membership


def pool_from_payload(payload: Mapping[str, Any], *, filter_non_articles: bool = True) -> CuratedPool:
    groups, membership = _parse_groups(payload.get("groups"))
    categories: List[CuratedCategory] = []
    dropped = 0
    for entry in payload.get("categories", []) or []:
        name = str(entry.get("name", ""))
        titles: List[str] = []
        seen = set()
        for article in entry.get("articles", []) or []:
            title = article_title(article)
            key = normalize(title)
            if not key or key in seen:
                continue
            if filter_non_articles and not is_real_article(title):
                dropped += 1
                continue
            seen.add(key)
            titles.append(title)
        group: Optional[str] = entry.get("group") or membership.get(name)
        if group is not None and group not in groups:
            logger.warning("Category %r references unknown group %r; treating as uncapped", name, group)
        categories.append(CuratedCategory(name=name, articles=tuple(titles), group=group))
    if dropped:
        logger.debug("Filtered %d non-article titles from curated pool", dropped)
    return CuratedPool(categories=categories, groups=groups)


def load_pool(path: Path, *, filter_non_articles: bool = True) -> CuratedPool:
    if not path.exists():
        raise FileNotFoundError(f"Curated pool not found: {path}")
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError(f"Unsupported pool extension: {suffix}")
    if not isinstance(data, dict):
        raise ValueError("Top-level curated pool must be a mapping")
    pool = pool_from_payload(data, filter_non_articles=filter_non_articles)
    logger.info(
        "Loaded %d categories (%d articles, %d groups) from %s",
        len(pool.categories),
        pool.total_articles,
        len(pool.groups),
        path,
    )
    return pool
