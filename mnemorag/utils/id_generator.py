"""
ID generation utilities for mnemorag.

Provides consistent ID formats for graph records:
- Entities: ent_xxx
- Relationships: rel_xxx
- Reports: rep_xxx
- Communities: com_xxx (content-derived, see generate_community_id)
- Build jobs: job_xxx
"""

import hashlib
from uuid import uuid4


def generate_entity_id() -> str:
    """
    Generate unique Entity ID.

    Returns:
        ID in format "ent_xxx" where xxx is 12 hex characters
    """
    return f"ent_{uuid4().hex[:12]}"


def generate_relationship_id() -> str:
    """
    Generate unique Relationship ID.

    Returns:
        ID in format "rel_xxx" where xxx is 12 hex characters
    """
    return f"rel_{uuid4().hex[:12]}"


def generate_report_id() -> str:
    """
    Generate unique CommunityReport ID.

    Returns:
        ID in format "rep_xxx" where xxx is 12 hex characters
    """
    return f"rep_{uuid4().hex[:12]}"


def generate_community_id(level: int, member_ids: list[str]) -> str:
    """
    Derive a Community ID from its level and membership.

    The same members at the same level always map to the same ID, so a
    community that survives a rebuild unchanged keeps its identity.

    Args:
        level: Hierarchy level
        member_ids: Entity IDs belonging to the community

    Returns:
        ID in format "com_<level>_xxx" where xxx is 16 hex characters
    """
    digest = hashlib.sha256(f"{level}:{','.join(sorted(member_ids))}".encode()).hexdigest()
    return f"com_{level}_{digest[:16]}"


def generate_job_id() -> str:
    """
    Generate unique background build Job ID.

    Returns:
        ID in format "job_xxx" where xxx is 12 hex characters
    """
    return f"job_{uuid4().hex[:12]}"
