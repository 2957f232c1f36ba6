"""Scan scope selection: full or incremental.

An incremental scan covers documents changed since a reference point (a git
tag or a time window) plus documents affected by other changes: those
linking to a changed path and those referencing a changed source file.

Without an explicit choice the scope is decided automatically:

    not a git work tree            -> full
    no tag reachable from HEAD     -> full
    affected share <= max ratio    -> incremental since the latest tag
    otherwise                      -> full
"""

from __future__ import annotations

from pathlib import Path

from .config import AuditSettings
from .exceptions import ConfigurationError, GitError
from .history import changed_since_ref, changed_since_time, is_git_work_tree, latest_tag
from .index import DocumentIndex
from .logging import get_logger
from .models import ScanScope
from .validators.staleness import SourceResolver

logger = get_logger(__name__)

MODE_FULL = "full"
MODE_INCREMENTAL = "incremental"


def target_documents(index: DocumentIndex, target: Path | None) -> set[str]:
    """Indexed documents at or below ``target`` (all documents when None).

    Raises:
        ConfigurationError: If ``target`` lies outside the project root
    """
    if target is None:
        return set(index.paths)

    resolved = target.resolve()
    try:
        rel = resolved.relative_to(index.project_root).as_posix()
    except ValueError as e:
        raise ConfigurationError(
            f"{target} is outside the project root {index.project_root}"
        ) from e

    if rel == ".":
        return set(index.paths)
    if resolved.is_file():
        return {rel} if rel in index else set()
    prefix = rel.rstrip("/") + "/"
    return {p for p in index.paths if p.startswith(prefix)}


def affected_documents(
    index: DocumentIndex,
    changed: set[str],
    candidates: set[str],
    settings: AuditSettings,
) -> set[str]:
    """Documents among ``candidates`` affected by the changed paths."""
    affected = {p for p in candidates if p in changed}
    resolver = SourceResolver(index, settings)

    for path in sorted(candidates - affected):
        document = index.documents[path]

        for link in document.links:
            target = index.resolve_link(path, link)
            if target is None:
                continue
            if target in changed or index.document_for(target) in changed:
                affected.add(path)
                break
        else:
            if any(source in changed for source in resolver.sources(document)):
                affected.add(path)

    return affected


def choose_scope(
    index: DocumentIndex,
    settings: AuditSettings,
    target: Path | None = None,
    *,
    full: bool = False,
    since_tag: str | None = None,
    since: str | None = None,
) -> ScanScope:
    """Decide which documents an audit run examines.

    Args:
        index: Document index of the project
        settings: Audit settings (``incremental_max_ratio``)
        target: File or directory being audited (None for the whole project)
        full: Force a full scan
        since_tag: Incremental scan relative to this git tag or commit
        since: Incremental scan over this time window (``git log --since``)

    Returns:
        The chosen scope

    Raises:
        ConfigurationError: If the options conflict
        GitError: If an explicit incremental scan cannot be computed
    """
    targets = target_documents(index, target)
    root = index.project_root

    if since_tag and since:
        raise ConfigurationError("Use either a tag or a time window for incremental scans, not both")
    if full and (since_tag or since):
        raise ConfigurationError("A full scan cannot also be incremental")

    if full:
        return ScanScope(MODE_FULL, set(targets), set(targets), reason="full scan requested")

    if since_tag or since:
        if not is_git_work_tree(root):
            raise GitError(f"Incremental scans need a git work tree: {root}")
        if since_tag:
            changed = changed_since_ref(root, since_tag)
        else:
            changed = changed_since_time(root, since)  # type: ignore[arg-type]
        reference = since_tag or since
        documents = affected_documents(index, changed, targets, settings)
        logger.info(f"Incremental scan since {reference}: {len(documents)} documents affected")
        return ScanScope(
            MODE_INCREMENTAL,
            documents,
            set(targets),
            reference=reference,
            changed_paths=changed,
            reason=f"{len(changed)} paths changed since {reference}",
        )

    if not is_git_work_tree(root):
        return ScanScope(MODE_FULL, set(targets), set(targets), reason="not a git work tree")

    tag = latest_tag(root)
    if tag is None:
        return ScanScope(MODE_FULL, set(targets), set(targets), reason="no tag to compare against")

    changed = changed_since_ref(root, tag)
    documents = affected_documents(index, changed, targets, settings)
    ratio = len(documents) / len(targets) if targets else 0.0
    summary = f"{len(documents)} of {len(targets)} documents affected since {tag}"

    if ratio <= settings.incremental_max_ratio:
        logger.info(f"Automatic incremental scan: {summary}")
        return ScanScope(
            MODE_INCREMENTAL,
            documents,
            set(targets),
            reference=tag,
            changed_paths=changed,
            reason=summary,
        )

    logger.info(f"Automatic full scan: {summary}")
    return ScanScope(
        MODE_FULL,
        set(targets),
        set(targets),
        reference=tag,
        reason=f"{summary}, above the {settings.incremental_max_ratio:.0%} limit",
    )
