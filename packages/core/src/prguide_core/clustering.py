"""Group a pull request's changed files into review clusters.

Files are grouped by parent directory, each group is scored from its path
(type definitions before services, services before tests and docs), oversized
groups are split, and the result is sorted into review order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from prguide_core.models import CHANGE_TYPES, ClusterFile, FileCluster, PRFile

logger = logging.getLogger(__name__)

MAX_CLUSTER_SIZE = 50
LARGE_CHANGE_THRESHOLD = 100
DEFAULT_PRIORITY = 5
ROOT_GROUP = "root"

# Tested in order against the lower-cased directory path; first substring
# match wins, so the table order decides ties.
DIRECTORY_PRIORITIES: tuple[tuple[str, int], ...] = (
    ("types", 1),
    ("models", 1),
    ("entities", 1),
    ("schemas", 1),
    ("interfaces", 2),
    ("utils", 2),
    ("helpers", 2),
    ("lib", 2),
    ("core", 3),
    ("services", 4),
    ("controllers", 5),
    ("routes", 5),
    ("api", 5),
    ("handlers", 5),
    ("components", 6),
    ("views", 6),
    ("pages", 6),
    ("tests", 7),
    ("test", 7),
    ("__tests__", 7),
    ("spec", 7),
    ("docs", 8),
    ("config", 9),
)

CROSS_CUTTING_PATTERNS: tuple[tuple[str, tuple[re.Pattern, ...]], ...] = (
    (
        "Configuration changes",
        (
            re.compile(r"package\.json$"),
            re.compile(r"\.env"),
            re.compile(r"config\.(ts|js|json)$"),
            re.compile(r"tsconfig\.json$"),
            re.compile(r"pyproject\.toml$"),
            re.compile(r"setup\.cfg$"),
            re.compile(r"\.prguide\.yml$"),
        ),
    ),
    (
        "New dependencies",
        (
            re.compile(r"package\.json$"),
            re.compile(r"package-lock\.json$"),
            re.compile(r"yarn\.lock$"),
            re.compile(r"bun\.lockb?$"),
            re.compile(r"requirements[^/]*\.txt$"),
            re.compile(r"poetry\.lock$"),
            re.compile(r"Pipfile\.lock$"),
        ),
    ),
    ("Database migrations", (re.compile(r"migrations?/", re.IGNORECASE), re.compile(r"\.sql$"))),
    (
        "CI/CD changes",
        (
            re.compile(r"\.github/"),
            re.compile(r"\.gitlab-ci"),
            re.compile(r"Dockerfile"),
            re.compile(r"docker-compose"),
        ),
    ),
    ("Documentation", (re.compile(r"README"), re.compile(r"CHANGELOG"), re.compile(r"docs/"))),
)


@dataclass
class ClusterStats:
    total_files: int
    total_additions: int
    total_deletions: int
    change_types: dict[str, int] = field(default_factory=dict)


def cluster_files(
    files: list[PRFile],
    max_cluster_size: int = MAX_CLUSTER_SIZE,
    large_change_threshold: int = LARGE_CHANGE_THRESHOLD,
) -> list[FileCluster]:
    """Cluster changed files and return them in review order.

    After the priority sort both ``id`` and ``priority`` are rewritten to the
    1-based rank, so priority means "review order" from here on and ids are
    positional labels rather than stable keys.
    """
    logger.debug("Clustering %d files", len(files))

    groups = group_by_directory(files)
    clusters = [
        _create_cluster(directory, group, index, get_directory_priority(directory), large_change_threshold)
        for index, (directory, group) in enumerate(groups.items(), 1)
    ]

    subdivided: list[FileCluster] = []
    for cluster in clusters:
        if len(cluster.files) > max_cluster_size:
            subdivided.extend(subdivide_cluster(cluster, max_cluster_size))
        else:
            subdivided.append(cluster)

    # sorted() is stable: equal priorities keep directory discovery order.
    ordered = sorted(subdivided, key=lambda c: c.priority)
    for rank, cluster in enumerate(ordered, 1):
        cluster.id = f"cluster-{rank}"
        cluster.priority = rank

    logger.debug("Created %d clusters", len(ordered))
    return ordered


def group_by_directory(files: list[PRFile]) -> dict[str, list[PRFile]]:
    """Group files by parent directory, preserving first-seen order."""
    groups: dict[str, list[PRFile]] = {}
    for f in files:
        groups.setdefault(get_parent_directory(f.path), []).append(f)
    return groups


def get_parent_directory(path: str) -> str:
    parent = path.rpartition("/")[0]
    return parent or ROOT_GROUP


def get_directory_priority(directory: str) -> int:
    lowered = directory.lower()
    for pattern, priority in DIRECTORY_PRIORITIES:
        if pattern in lowered:
            return priority
    return DEFAULT_PRIORITY


def _create_cluster(
    directory: str,
    files: list[PRFile],
    index: int,
    priority: int,
    large_change_threshold: int = LARGE_CHANGE_THRESHOLD,
) -> FileCluster:
    cluster_files_ = [
        ClusterFile(
            path=f.path,
            change_type=f.change_type,
            additions=f.additions,
            deletions=f.deletions,
            review_notes=get_review_notes(f, large_change_threshold),
        )
        for f in files
    ]
    return FileCluster(
        id=f"cluster-{index}",
        name=generate_cluster_name(directory),
        description=get_cluster_description(cluster_files_),
        files=cluster_files_,
        priority=priority,
    )


def subdivide_cluster(cluster: FileCluster, max_cluster_size: int = MAX_CLUSTER_SIZE) -> list[FileCluster]:
    """Split an oversized cluster by a deeper path prefix.

    Files are regrouped by their first three path segments (two for shallow
    paths). A subgroup that is still too large is cut into consecutive
    chunks so that no resulting cluster exceeds ``max_cluster_size``.
    """
    sub_groups: dict[str, list[ClusterFile]] = {}
    for f in cluster.files:
        parts = f.path.split("/")
        prefix = "/".join(parts[:3]) if len(parts) > 2 else "/".join(parts[:2])
        sub_groups.setdefault(prefix, []).append(f)

    children: list[FileCluster] = []
    for prefix, group in sub_groups.items():
        name = generate_cluster_name(prefix)
        chunks = [group[i : i + max_cluster_size] for i in range(0, len(group), max_cluster_size)]
        for part, chunk in enumerate(chunks, 1):
            children.append(
                FileCluster(
                    id=f"{cluster.id}-{len(children) + 1}",
                    name=name if len(chunks) == 1 else f"{name} (part {part})",
                    description=get_cluster_description(chunk),
                    files=chunk,
                    priority=cluster.priority,
                    depends_on=[],
                )
            )

    logger.debug("Subdivided %s (%d files) into %d clusters", cluster.name, len(cluster.files), len(children))
    return children


def generate_cluster_name(directory: str) -> str:
    """Return a readable name for a directory path.

    >>> generate_cluster_name("src/services/user-auth")
    'User Auth'
    """
    if directory == ROOT_GROUP:
        return "Root Files"

    parts = [p for p in directory.split("/") if p and p not in ("src", "lib")]
    last = parts[-1] if parts else directory
    return " ".join(word[:1].upper() + word[1:].lower() for word in re.split(r"[-_]", last))


def get_cluster_description(files: list[PRFile] | list[ClusterFile]) -> str:
    count = len(files)
    additions = sum(f.additions for f in files)
    deletions = sum(f.deletions for f in files)
    change_types = list(dict.fromkeys(f.change_type for f in files))

    description = f"{count} file{'' if count == 1 else 's'} ({', '.join(change_types)})"
    if additions > 0 or deletions > 0:
        description += f" - +{additions}/-{deletions} lines"
    return description


def get_review_notes(f: PRFile | ClusterFile, large_change_threshold: int = LARGE_CHANGE_THRESHOLD) -> str | None:
    notes = []
    if "test" in f.path or "spec" in f.path:
        notes.append("[Has tests]")
    if f.change_type == "added":
        notes.append("[New file]")
    if f.additions + f.deletions > large_change_threshold:
        notes.append("[Large change]")
    return " ".join(notes) if notes else None


def detect_cross_cutting_concerns(files: list[PRFile] | list[ClusterFile]) -> list[str]:
    """Return the named concerns touched anywhere in the changeset."""
    concerns = []
    for concern, patterns in CROSS_CUTTING_PATTERNS:
        if any(p.search(f.path) for f in files for p in patterns):
            concerns.append(concern)
    return concerns


def get_cluster_stats(cluster: FileCluster) -> ClusterStats:
    change_types = {t: 0 for t in CHANGE_TYPES}
    for f in cluster.files:
        change_types[f.change_type] = change_types.get(f.change_type, 0) + 1
    return ClusterStats(
        total_files=len(cluster.files),
        total_additions=sum(f.additions for f in cluster.files),
        total_deletions=sum(f.deletions for f in cluster.files),
        change_types=change_types,
    )
