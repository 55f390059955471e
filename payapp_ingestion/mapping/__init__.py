"""Mapping of raw budget records and project forms onto kernel inputs."""

from payapp_ingestion.mapping.budget import (
    UNKNOWN_DESCRIPTION,
    is_normalized_record,
    map_budget_record,
    map_budget_records,
)
from payapp_ingestion.mapping.project import parse_project_form

__all__ = [
    "UNKNOWN_DESCRIPTION",
    "is_normalized_record",
    "map_budget_record",
    "map_budget_records",
    "parse_project_form",
]
