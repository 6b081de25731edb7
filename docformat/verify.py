from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence
import hashlib


@dataclass
class ContentCheckpoint:
    paragraph_count: int
    total_char_count: int
    paragraph_hashes: List[str] = field(default_factory=list)


@dataclass
class ScopedContentCheckpoint(ContentCheckpoint):
    paragraph_indices: List[int] = field(default_factory=list)


@dataclass
class IntegrityResult:
    valid: bool
    error: Optional[str] = None


def paragraph_hash(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]


def normalize_scope_indices(indices: Iterable[int], paragraph_count: int) -> List[int]:
    out = set()
    for i in indices:
        if isinstance(i, bool) or not isinstance(i, int):
            continue
        if 0 <= i < paragraph_count:
            out.add(i)
    return sorted(out)


def create_content_checkpoint(texts: Sequence[str]) -> ContentCheckpoint:
    return ContentCheckpoint(
        paragraph_count=len(texts),
        total_char_count=sum(len(t) for t in texts),
        paragraph_hashes=[paragraph_hash(t) for t in texts],
    )


def create_scoped_content_checkpoint(texts: Sequence[str], indices: Iterable[int]) -> ScopedContentCheckpoint:
    scoped = normalize_scope_indices(indices, len(texts))
    return ScopedContentCheckpoint(
        paragraph_count=len(texts),
        total_char_count=sum(len(texts[i]) for i in scoped),
        paragraph_hashes=[paragraph_hash(texts[i]) for i in scoped],
        paragraph_indices=scoped,
    )


def _first_hash_difference(before: List[str], after: List[str]) -> Optional[int]:
    for pos, (b, a) in enumerate(zip(before, after)):
        if b != a:
            return pos
    if len(before) != len(after):
        return min(len(before), len(after))
    return None


def verify_content_integrity(before: ContentCheckpoint, after: ContentCheckpoint) -> IntegrityResult:
    if before.paragraph_count != after.paragraph_count:
        return IntegrityResult(False, f"paragraph count changed: {before.paragraph_count} -> {after.paragraph_count}")
    pos = _first_hash_difference(before.paragraph_hashes, after.paragraph_hashes)
    if pos is not None:
        return IntegrityResult(False, f"paragraph {pos + 1} content changed")
    return IntegrityResult(True)


def verify_scoped_content_integrity(before: ScopedContentCheckpoint, after: ScopedContentCheckpoint) -> IntegrityResult:
    if before.paragraph_count != after.paragraph_count:
        return IntegrityResult(False, f"paragraph count changed: {before.paragraph_count} -> {after.paragraph_count}")
    if list(before.paragraph_indices) != list(after.paragraph_indices):
        return IntegrityResult(False, "scoped paragraph indices changed")
    pos = _first_hash_difference(before.paragraph_hashes, after.paragraph_hashes)
    if pos is not None:
        # report the document position, not the position within the scope
        doc_index = before.paragraph_indices[pos] if pos < len(before.paragraph_indices) else pos
        return IntegrityResult(False, f"paragraph {doc_index + 1} content changed")
    return IntegrityResult(True)
