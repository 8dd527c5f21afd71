"""Enumerations for resource and marker kinds.

Plain constants containers rather than Enums so values can be compared and
serialized as strings without conversion.
"""

from __future__ import annotations


class ResourceType:
    BOOK = "book"
    PODCAST = "podcast"
    ARTICLE = "article"
    COURSE = "course"

    ALL = (BOOK, PODCAST, ARTICLE, COURSE)
    # Positions are page numbers for these types, timestamps otherwise
    PAGED = (BOOK, ARTICLE)


class MarkerType:
    GENERAL = "general"
    CONCEPT = "concept"
    QUESTION = "question"
    SUMMARY = "summary"

    ALL = (GENERAL, CONCEPT, QUESTION, SUMMARY)


__all__ = ["ResourceType", "MarkerType"]
