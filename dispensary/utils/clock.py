from datetime import datetime, timezone

def utcnow() -> datetime:
    """Current instant in UTC. Routes take it as a dependency so tests can pin it."""
    return datetime.now(timezone.utc)
