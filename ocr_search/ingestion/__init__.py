"""
Ingestion subpackage -- finding images and turning them into documents.

Pipeline flow:
    discover_images  -->  index_images (RecognitionClient)  -->  DocumentIndex
    (_images folders)     (one worker, sequential)               (word sets)
"""

from ocr_search.ingestion.discovery import discover_images, find_image_files, find_image_folders
from ocr_search.ingestion.indexer import IndexingReport, index_images
