"""Near-duplicate passage detection.

Paragraphs are normalized and split into word shingles. Each paragraph gets
a MinHash signature; locality-sensitive hashing over signature bands proposes
candidate pairs, which are confirmed with the exact Jaccard similarity of
their shingle sets. Confirmed pairs are merged into clusters, and each
cluster that spans more than one file is reported with a suggested
authoritative passage: the one in the most recently changed document, then
the longest, then the first by path.
"""

from __future__ import annotations

import hashlib
import random
import re
from collections import defaultdict
from dataclasses import dataclass
from itertools import combinations

from ..config import AuditSettings
from ..history import HistoryProvider
from ..index import DocumentIndex
from ..logging import get_logger
from ..models import (
    DuplicateCluster,
    DuplicatePassage,
    Finding,
    FindingKind,
    Paragraph,
    ScanScope,
    Severity,
)

logger = get_logger(__name__)

MERSENNE_PRIME = (1 << 61) - 1
MAX_HASH = (1 << 32) - 1
EXCERPT_LENGTH = 120

_MARKDOWN_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_WORD = re.compile(r"\w+")


def normalize_words(text: str) -> list[str]:
    """Lowercase words of a passage with Markdown link targets and punctuation removed."""
    text = _MARKDOWN_LINK.sub(r"\1", text)
    return _WORD.findall(text.lower())


def shingles(words: list[str], size: int) -> set[str]:
    """Word shingles of ``size`` words; short passages form a single shingle."""
    if not words:
        return set()
    if len(words) <= size:
        return {" ".join(words)}
    return {" ".join(words[i : i + size]) for i in range(len(words) - size + 1)}


def jaccard(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class MinHasher:
    """MinHash signatures using universal hashing over a 61-bit prime field."""

    def __init__(self, num_perm: int = 64, seed: int = 1) -> None:
        rng = random.Random(seed)
        self.num_perm = num_perm
        self._a = [rng.randrange(1, MERSENNE_PRIME) for _ in range(num_perm)]
        self._b = [rng.randrange(0, MERSENNE_PRIME) for _ in range(num_perm)]

    @staticmethod
    def _base_hash(shingle: str) -> int:
        digest = hashlib.blake2b(shingle.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big") & MAX_HASH

    def signature(self, shingle_set: set[str]) -> tuple[int, ...]:
        if not shingle_set:
            return tuple([MAX_HASH] * self.num_perm)
        hashes = [self._base_hash(s) for s in shingle_set]
        return tuple(
            min(((a * h + b) % MERSENNE_PRIME) & MAX_HASH for h in hashes)
            for a, b in zip(self._a, self._b, strict=True)
        )


def estimate_similarity(sig1: tuple[int, ...], sig2: tuple[int, ...]) -> float:
    """Estimated Jaccard similarity from two MinHash signatures."""
    if not sig1 or len(sig1) != len(sig2):
        return 0.0
    return sum(1 for x, y in zip(sig1, sig2, strict=True) if x == y) / len(sig1)


def lsh_candidates(signatures: list[tuple[int, ...]], bands: int, rows: int) -> set[tuple[int, int]]:
    """Index pairs whose signatures agree on at least one full band."""
    buckets: dict[tuple[int, tuple[int, ...]], list[int]] = defaultdict(list)
    for i, signature in enumerate(signatures):
        for band in range(bands):
            buckets[(band, signature[band * rows : (band + 1) * rows])].append(i)

    pairs: set[tuple[int, int]] = set()
    for members in buckets.values():
        if len(members) > 1:
            pairs.update(combinations(members, 2))
    return pairs


class _DisjointSet:
    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, i: int) -> int:
        while self._parent[i] != i:
            self._parent[i] = self._parent[self._parent[i]]
            i = self._parent[i]
        return i

    def union(self, i: int, j: int) -> None:
        ri, rj = self.find(i), self.find(j)
        if ri != rj:
            self._parent[max(ri, rj)] = min(ri, rj)


@dataclass(frozen=True)
class _Passage:
    doc_path: str
    paragraph: Paragraph
    words: tuple[str, ...]
    shingles: frozenset[str]

    def to_passage(self) -> DuplicatePassage:
        text = self.paragraph.text
        excerpt = text if len(text) <= EXCERPT_LENGTH else text[: EXCERPT_LENGTH - 3] + "..."
        return DuplicatePassage(
            doc_path=self.doc_path,
            line=self.paragraph.line,
            word_count=len(self.words),
            excerpt=excerpt,
        )

    @property
    def digest(self) -> str:
        return hashlib.sha1(" ".join(self.words).encode("utf-8")).hexdigest()[:10]


def _collect_passages(index: DocumentIndex, settings: AuditSettings) -> list[_Passage]:
    passages: list[_Passage] = []
    for document in index:
        for paragraph in document.paragraphs:
            if paragraph.word_count < settings.min_paragraph_words:
                continue
            words = normalize_words(paragraph.text)
            if len(words) < settings.min_paragraph_words:
                continue
            passages.append(
                _Passage(
                    doc_path=document.path,
                    paragraph=paragraph,
                    words=tuple(words),
                    shingles=frozenset(shingles(words, settings.shingle_size)),
                )
            )
    return passages


def find_duplicates(
    index: DocumentIndex,
    settings: AuditSettings,
    history: HistoryProvider,
    scope: ScanScope,
) -> tuple[list[Finding], list[DuplicateCluster]]:
    """Find clusters of near-identical passages across documents.

    Args:
        index: Document index of the project
        settings: Shingle, MinHash and threshold settings
        history: Revision times used to pick the authoritative passage
        scope: Only clusters touching an in-scope document are reported

    Returns:
        Tuple of (one warning per non-authoritative passage, clusters)
    """
    passages = _collect_passages(index, settings)
    if len(passages) < 2:
        return [], []

    hasher = MinHasher(num_perm=settings.num_perm)
    signatures = [hasher.signature(set(p.shingles)) for p in passages]
    candidates = lsh_candidates(signatures, settings.lsh_bands, settings.rows_per_band)

    groups = _DisjointSet(len(passages))
    confirmed: list[tuple[int, int, float]] = []
    for i, j in sorted(candidates):
        similarity = jaccard(set(passages[i].shingles), set(passages[j].shingles))
        if similarity >= settings.similarity_threshold:
            groups.union(i, j)
            confirmed.append((i, j, similarity))

    logger.debug(
        f"Duplicate detection: {len(passages)} passages, {len(candidates)} candidate pairs, "
        f"{len(confirmed)} confirmed"
    )

    members: dict[int, list[int]] = defaultdict(list)
    for i in range(len(passages)):
        members[groups.find(i)].append(i)
    min_similarity: dict[int, float] = {}
    for i, _j, similarity in confirmed:
        root = groups.find(i)
        min_similarity[root] = min(similarity, min_similarity.get(root, 1.0))

    doc_times: dict[str, float] = {}

    def doc_time(path: str) -> float:
        if path not in doc_times:
            doc_times[path] = history.last_modified(path) or 0.0
        return doc_times[path]

    raw_clusters: list[tuple[_Passage, list[_Passage], float]] = []
    for root, indices in members.items():
        if len(indices) < 2:
            continue
        group = [passages[i] for i in indices]
        if len({p.doc_path for p in group}) < 2:
            continue
        if not any(scope.includes(p.doc_path) for p in group):
            continue
        authoritative = sorted(
            group,
            key=lambda p: (-doc_time(p.doc_path), -len(p.words), p.doc_path, p.paragraph.line),
        )[0]
        group.sort(key=lambda p: (p.doc_path, p.paragraph.line))
        raw_clusters.append((authoritative, group, min_similarity.get(root, 1.0)))

    raw_clusters.sort(key=lambda c: (c[0].doc_path, c[0].paragraph.line))

    findings: list[Finding] = []
    clusters: list[DuplicateCluster] = []
    for cluster_id, (authoritative, group, similarity) in enumerate(raw_clusters, start=1):
        auth = authoritative.to_passage()
        clusters.append(
            DuplicateCluster(
                cluster_id=cluster_id,
                passages=[p.to_passage() for p in group],
                authoritative=auth,
                similarity=similarity,
            )
        )
        for passage in group:
            if passage is authoritative:
                continue
            findings.append(
                Finding(
                    kind=FindingKind.DUPLICATE,
                    severity=Severity.WARNING,
                    doc_path=passage.doc_path,
                    line=passage.paragraph.line,
                    message=(
                        f"Near-duplicate of {auth.location} "
                        f"({similarity:.0%} similar); consolidate into the authoritative copy"
                    ),
                    subject=f"{auth.doc_path}#{passage.digest}",
                    details={
                        "cluster_id": cluster_id,
                        "authoritative": auth.location,
                        "similarity": round(similarity, 4),
                    },
                )
            )

    logger.info(f"Duplicate detection: {len(clusters)} clusters, {len(findings)} duplicate passages")
    return findings, clusters
