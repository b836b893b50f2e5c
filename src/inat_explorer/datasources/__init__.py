"""External data source integrations.

Each subdirectory is one data source:

    datasources/{name}/
    ├── __init__.py       # Public API re-exports
    ├── client.py         # API URLs, constants, rate limiting
    └── {feature}.py      # Fetching, parsing, and summaries

Only ``inaturalist/`` exists today.
"""
