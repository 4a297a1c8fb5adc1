"""
Document Index
===============
In-memory, ordered collection of searchable documents, one per image.

Each ``Document`` keeps only what the boolean search needs: an identifier
(the image file name), the source path and the image's *word set*.

Word set rules::

    "Mix the Salt, water & e-mail!"  ->  {"mix", "the", "salt", "water", "e-mail"}

    1. remove every character that is not a word character, whitespace or "-"
    2. lowercase
    3. split on whitespace
    4. keep tokens longer than 2 characters (deduplicated)

Persistence uses the JSON layout of ``ocr_results.json``::

    [
      {"fileName": "recipe.png", "filePath": "/abs/docs/_images/recipe.png",
       "words": ["bake", "dough", "salt"]}
    ]
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Union

from ocr_search.query.evaluator import search as search_documents

logger = logging.getLogger(__name__)

MIN_WORD_LENGTH = 3
_STRIP_RE = re.compile(r"[^\-\w\s]")


def build_word_set(text: str) -> FrozenSet[str]:
    """Tokenise recognised *text* into a lowercase word set."""
    cleaned = _STRIP_RE.sub("", text).lower()
    return frozenset(w for w in cleaned.split() if len(w) >= MIN_WORD_LENGTH)


@dataclass(frozen=True)
class Document:
    """
    One indexed image.

    Attributes:
        identifier  : image file name (e.g. ``recipe.png``)
        source_path : absolute path of the image
        words       : lowercase word set, see module docstring
    """
    identifier: str
    source_path: str
    words: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        # Word sets are lowercase by construction, whatever the caller passed.
        object.__setattr__(self, "words", frozenset(w.lower() for w in self.words))

    @classmethod
    def from_text(cls, source_path: Union[str, Path], text: str) -> Optional["Document"]:
        """Build a document from recognised text; ``None`` when there is no text."""
        if not text.strip():
            return None
        path = Path(source_path)
        return cls(identifier=path.name, source_path=str(path), words=build_word_set(text))

    @classmethod
    def from_recognition(cls, source_path: Union[str, Path], items: Iterable) -> Optional["Document"]:
        """Join the text of every ``RecognizedText`` item and build a document."""
        text = " ".join(item.text for item in items)
        return cls.from_text(source_path, text)

    def to_dict(self) -> Dict:
        return {
            "fileName": self.identifier,
            "filePath": self.source_path,
            "words": sorted(self.words),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Document":
        return cls(
            identifier=data["fileName"],
            source_path=data["filePath"],
            words=frozenset(data.get("words", [])),
        )


class DocumentIndex:
    """
    Ordered document collection handed to the query engine.

    Usage::

        index = DocumentIndex()
        index.add(Document.from_text("/x/_images/a.png", "Salt and dough"))
        hits = index.search("salt&dough")
        index.save("ocr_results.json")
    """

    def __init__(self, documents: Optional[Iterable[Document]] = None):
        self._documents: List[Document] = list(documents or [])

    def add(self, document: Document) -> None:
        self._documents.append(document)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, i: int) -> Document:
        return self._documents[i]

    def __repr__(self) -> str:
        return f"DocumentIndex(documents={len(self._documents)})"

    @property
    def vocabulary_size(self) -> int:
        return len(set().union(*(d.words for d in self._documents))) if self._documents else 0

    def search(self, query: str) -> List[Document]:
        """Documents matching the boolean *query*, in index order."""
        return search_documents(self._documents, query)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Union[str, Path]) -> Path:
        out = save_documents(self._documents, path)
        logger.info("Saved %d documents to %s", len(self._documents), out)
        return out

    @classmethod
    def load(cls, path: Union[str, Path]) -> "DocumentIndex":
        """
        Load an index written by ``save``.

        Raises FileNotFoundError if *path* does not exist and ValueError if
        the file is not a list of document records.
        """
        path = Path(path).expanduser()
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path} does not contain a list of documents")
        try:
            documents = [Document.from_dict(record) for record in data]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"{path} contains a malformed document record: {exc}") from exc
        logger.info("Loaded %d documents from %s", len(documents), path)
        return cls(documents)


def save_documents(documents: Iterable[Document], path: Union[str, Path]) -> Path:
    """Write *documents* as a JSON array (2-space indent)."""
    out = Path(path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as f:
        json.dump([d.to_dict() for d in documents], f, indent=2, ensure_ascii=False)
    return out
