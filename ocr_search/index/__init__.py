"""
Index subpackage -- per-image word sets and their JSON persistence.
"""

from ocr_search.index.document_index import (
    Document,
    DocumentIndex,
    build_word_set,
    save_documents,
)
