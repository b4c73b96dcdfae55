"""
Category → department routing.

The category vocabulary (category_vocabulary.json, or the file named by
CATEGORY_VOCABULARY_PATH) lists canonical labels and the alias spellings that
mean the same issue type: the long descriptive wording shown to citizens,
localized names, older label variants. Labels are matched exactly after
whitespace and case folding. There is no substring matching.

A complaint belongs to at most one department:
  1. its explicit assigned department, if any;
  2. otherwise the first active department, in (routing_priority, name)
     order, whose owned categories intersect the complaint's categories;
  3. otherwise it is unrouted (None).
"""
import json
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.models.department import Department

logger = logging.getLogger(__name__)

_BUNDLED_VOCABULARY = Path(__file__).with_name("category_vocabulary.json")


def normalize_label(label: str) -> str:
    """Collapse internal whitespace and strip the ends."""
    return " ".join(str(label).split())


def _fold(label: str) -> str:
    return normalize_label(label).casefold()


@dataclass(frozen=True)
class CategoryVocabulary:
    version: int
    # folded alias (or folded canonical label) → canonical label
    aliases: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "CategoryVocabulary":
        aliases: dict[str, str] = {}
        for entry in data.get("categories", []):
            canonical = normalize_label(entry["label"])
            for spelling in [canonical, *entry.get("aliases", [])]:
                key = _fold(spelling)
                existing = aliases.get(key)
                if existing is not None and existing != canonical:
                    raise ValueError(
                        f"Category alias {spelling!r} maps to both {existing!r} and {canonical!r}"
                    )
                aliases[key] = canonical
        return cls(version=int(data.get("version", 1)), aliases=aliases)

    @property
    def labels(self) -> list[str]:
        """Canonical labels in file order."""
        return list(dict.fromkeys(self.aliases.values()))

    def is_known(self, label: str) -> bool:
        return _fold(label) in self.aliases

    def canonical(self, label: str) -> str:
        """Canonical label for *label*; unknown labels pass through normalized."""
        return self.aliases.get(_fold(label), normalize_label(label))

    def key(self, label: str) -> str:
        return _fold(self.canonical(label))

    def keys(self, labels: Iterable[str]) -> frozenset[str]:
        return frozenset(self.key(label) for label in labels if normalize_label(label))


def load_vocabulary(path: str | Path | None = None) -> CategoryVocabulary:
    source = Path(path) if path else _BUNDLED_VOCABULARY
    data = json.loads(source.read_text(encoding="utf-8"))
    vocabulary = CategoryVocabulary.from_dict(data)
    logger.info(
        "Loaded category vocabulary v%s from %s (%d spellings)",
        vocabulary.version, source, len(vocabulary.aliases),
    )
    return vocabulary


@lru_cache(maxsize=4)
def get_vocabulary(path: str = "") -> CategoryVocabulary:
    return load_vocabulary(path or None)


class CategoryRouter:
    """Pure routing over a snapshot of the department table."""

    def __init__(self, departments: Iterable[Department], vocabulary: CategoryVocabulary):
        self.vocabulary = vocabulary
        self._by_id: dict[uuid.UUID, Department] = {}
        ordered = sorted(departments, key=lambda d: (d.routing_priority, d.name))
        self._ordered: list[tuple[Department, frozenset[str]]] = []
        for dept in ordered:
            self._by_id[dept.id] = dept
            self._ordered.append((dept, vocabulary.keys(dept.categories or [])))

    @classmethod
    async def load(cls, session: AsyncSession, vocabulary: CategoryVocabulary) -> "CategoryRouter":
        result = await session.execute(select(Department))
        return cls(result.scalars().all(), vocabulary)

    @property
    def departments(self) -> list[Department]:
        """Departments in routing-priority order."""
        return [dept for dept, _ in self._ordered]

    def get(self, department_id: uuid.UUID | None) -> Department | None:
        if department_id is None:
            return None
        return self._by_id.get(department_id)

    def infer(self, categories: Iterable[str]) -> Department | None:
        """Category-only routing, ignoring any explicit assignment."""
        wanted = self.vocabulary.keys(categories)
        if not wanted:
            return None
        for dept, owned in self._ordered:
            if dept.is_active and owned & wanted:
                return dept
        return None

    def route(
        self,
        categories: Iterable[str],
        explicit_department_id: uuid.UUID | None = None,
    ) -> Department | None:
        if explicit_department_id is not None:
            return self.get(explicit_department_id)
        return self.infer(categories)

    def route_id(
        self,
        categories: Iterable[str],
        explicit_department_id: uuid.UUID | None = None,
    ) -> uuid.UUID | None:
        dept = self.route(categories, explicit_department_id)
        return dept.id if dept is not None else None
