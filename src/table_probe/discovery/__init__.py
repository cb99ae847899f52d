"""
Discovery module: schema-based inference of the tables behind an endpoint.

- Name variant expansion for payload fields
- Confidence scoring of catalog tables against the payload
- Foreign-key expansion of the candidate set

Usage:
    from table_probe.discovery import CandidateScorer, RelationshipExpander

    candidates = CandidateScorer().discover(["orderId", "customerName"], catalog)
    related = RelationshipExpander(catalog).expand(c.table for c in candidates)
"""

from table_probe.discovery.candidate_scorer import CandidateScorer
from table_probe.discovery.name_variants import expand_field_variants, to_snake_case
from table_probe.discovery.relationship_expander import RelationshipExpander

__all__ = [
    "CandidateScorer",
    "RelationshipExpander",
    "expand_field_variants",
    "to_snake_case",
]
