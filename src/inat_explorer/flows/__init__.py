"""
Prefect flows for batch reports.

Flows:
- species-report: species counts for a filter, minus an optional exclusion filter
- observations-report: observation summary for a filter

Usage (local):
    python -m inat_explorer.flows.retrieve taxon_id=47224 place_id=10

Usage (Prefect):
    prefect server start  # Optional, for dashboard
    prefect deployment run 'species-report/default'
"""
