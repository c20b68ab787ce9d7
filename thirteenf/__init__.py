"""
ThirteenF Holdings Pipeline
===========================

Discovers institutional managers, parses their quarterly 13F-HR filings and
stores deduplicated, ticker- and sector-enriched holdings with
quarter-over-quarter changes.

Source code organization:
- caching/     - Cache protocol with in-memory and JSON-file stores
- core/        - Core domain types, exceptions, repository protocols
- enrichment/  - Sector lookups against the company-facts API
- ingestion/   - SEC EDGAR client, filer discovery, filing fetch
- parsers/     - XML tree, index page scanning, holdings normalization
- pipeline/    - Per-company and whole-universe orchestration
- processing/  - Deduplication, QoQ diff, quarter labels
- resolution/  - Ticker reference index and resolver cascade
- storage/     - DuckDB database and repositories
- utils/       - Shared utilities (config, logging, rate limiting, retry)
"""

__version__ = "0.1.0"
