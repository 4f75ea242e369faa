"""
AEMPS Nomenclátor Table Builder

Modules:
    models          - Data models (ProductRecord, ReferenceEntry, RunSummary)
    common          - Shared utilities (config loader, logging, CSV utils, errors)
    acquisition     - Dump download and archive extraction
    extraction      - Prescription and dictionary document parsers
    normalization   - Table catalogue, key registries, Normalizer
    export          - CSV table writer and integrity check
    pipeline        - Scheduler, aggregator and pipeline runner
    cima            - CIMA REST API client
"""
