from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Who is calling: passed explicitly into every import operation."""

    organization_id: int
    user_id: int | None = None
