"""
13F holdings pipeline orchestrator.

Sequences discovery, fetch, normalization, deduplication, ticker
resolution, sector enrichment, QoQ diff and persistence.

Companies are processed one at a time. Within a company, filings are
processed oldest first and each one is fully persisted before the next is
diffed against it.
"""

import time
from datetime import date, datetime
from typing import Any, Optional

from tqdm import tqdm

from ..caching.store import Cache, JsonFileCache
from ..core.exceptions import PipelineError
from ..core.models import (
    Address,
    Filer,
    Filing,
    Holding,
    LatestActivity,
    QuarterHoldings,
    QuarterlyReport,
)
from ..core.repository import FilerRepository, HoldingsRepository
from ..enrichment.sector_enrichment import SectorEnricher
from ..ingestion.discovery import FilerDiscovery
from ..ingestion.filing_fetcher import FilingFetcher
from ..ingestion.sec_api import SECApi
from ..parsers.holdings_parser import extract_filing_metadata, normalize_holdings
from ..processing.deduplication import deduplicate_holdings
from ..processing.diff_calculator import calculate_diff
from ..processing.quarters import build_quarterly_report, quarter_label
from ..resolution.cascade import TickerResolutionCascade, build_cascade
from ..resolution.ticker_index import TickerIndex
from ..storage.connection import Database
from ..utils.config import (
    AppConfig,
    DiscoveryConfig,
    PipelineConfig,
    get_absolute_path,
    get_config,
)
from ..utils.logger import get_logger, log_operation, set_correlation_id
from ..utils.rate_limiter import RateLimiter

logger = get_logger("thirteenf.pipeline.orchestrator")


class HoldingsPipeline:
    """
    Runs the 13F pipeline for single filers or a whole discovery campaign.

    Args:
        fetcher: Filing list and document fetcher.
        discovery: Resumable active-filer scanner.
        cascade: Ticker resolution cascade.
        enricher: Sector enricher.
        filers: Filer aggregate store.
        holdings: Per-quarter holdings store.
        config: Pipeline settings (cutoffs, mandatory targets).
        discovery_config: Discovery batch sizes and stop condition.
        show_progress: Show a progress bar over each company's filings.
    """

    def __init__(
        self,
        fetcher: FilingFetcher,
        discovery: FilerDiscovery,
        cascade: TickerResolutionCascade,
        enricher: SectorEnricher,
        filers: FilerRepository,
        holdings: HoldingsRepository,
        config: Optional[PipelineConfig] = None,
        discovery_config: Optional[DiscoveryConfig] = None,
        show_progress: bool = False,
    ):
        self.fetcher = fetcher
        self.discovery = discovery
        self.cascade = cascade
        self.enricher = enricher
        self.filers = filers
        self.holdings = holdings
        self.config = config or PipelineConfig()
        self.discovery_config = discovery_config or DiscoveryConfig()
        self.show_progress = show_progress

        self.value_scale_change_date = date.fromisoformat(self.config.value_scale_change_date)
        self._closers: list = []

    # -------------------------------------------------------------------------
    # All companies
    # -------------------------------------------------------------------------

    def process_all_companies(
        self,
        start_year: Optional[int] = None,
        end_year: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Process the mandatory targets, then discovered filers batch by batch.

        Discovery stops after ``max_empty_batches`` consecutive batches with
        no new filer, or when the registrant list is exhausted.

        Returns:
            ``{success, message, stats{total, succeeded, failed,
            mandatory_targets, discovered_filers}}``
        """
        start_year = start_year or self.config.start_year
        end_year = end_year or self.config.end_year
        started = time.perf_counter()

        stats = {
            "total": 0,
            "succeeded": 0,
            "failed": 0,
            "mandatory_targets": 0,
            "discovered_filers": 0,
        }

        try:
            self.discovery.reset()
            handled: set[str] = set()

            targets = self.config.target_companies
            logger.info(f"Processing {len(targets)} mandatory target companies")
            for target in targets:
                cik = target.cik.zfill(10)
                handled.add(cik)
                stats["mandatory_targets"] += 1
                self._run_company(cik, start_year, end_year, target.name, stats)

            empty_batches = 0
            max_empty = self.discovery_config.max_empty_batches
            while empty_batches < max_empty:
                batch = self.discovery.discover(self.discovery_config.discovery_batch_size)
                fresh = [c for c in batch if c.cik not in handled]

                if not fresh:
                    empty_batches += 1
                    logger.info(f"Empty discovery batch ({empty_batches}/{max_empty})")
                else:
                    empty_batches = 0
                    logger.info(f"Processing {len(fresh)} discovered filers")
                    for company in fresh:
                        handled.add(company.cik)
                        stats["discovered_filers"] += 1
                        self._run_company(company.cik, start_year, end_year, company.name, stats)

                if self.discovery.exhausted:
                    logger.info("Registrant list exhausted, stopping discovery")
                    break

        except Exception as e:
            logger.error(f"Pipeline run aborted: {e}", exc_info=True)
            return {
                "success": False,
                "message": f"Pipeline run aborted: {e}",
                "stats": stats,
            }

        elapsed = time.perf_counter() - started
        message = (
            f"Processed {stats['total']} companies "
            f"({stats['succeeded']} succeeded, {stats['failed']} failed) in {elapsed:.1f}s"
        )
        logger.info(message)
        return {"success": True, "message": message, "stats": stats}

    def _run_company(
        self,
        cik: str,
        start_year: int,
        end_year: int,
        name: Optional[str],
        stats: dict[str, int],
    ) -> None:
        stats["total"] += 1
        try:
            self.process_single_company(cik, start_year, end_year, name)
            stats["succeeded"] += 1
        except Exception as e:
            stats["failed"] += 1
            logger.error(f"Failed to process company {name or cik}: {e}")

    # -------------------------------------------------------------------------
    # One company
    # -------------------------------------------------------------------------

    def process_single_company(
        self,
        cik: str,
        start_year: Optional[int] = None,
        end_year: Optional[int] = None,
        known_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Process every not-yet-recorded 13F filing of one filer, oldest first.

        A failing filing is logged and skipped. Errors fetching the filing
        list propagate to the caller.

        Returns:
            ``{processed, skipped, failed, company}``
        """
        cik = cik.zfill(10)
        start_year = start_year or self.config.start_year
        end_year = end_year or self.config.end_year
        set_correlation_id(f"cik-{cik}")

        listing = self.fetcher.fetch_filings(cik, known_name, start_year, end_year)
        company = listing.filer_name or f"CIK:{cik}"

        result = {"processed": 0, "skipped": 0, "failed": 0, "company": company}
        if not listing.filings:
            logger.info(f"No 13F filings for {company} in {start_year}-{end_year}")
            return result

        filer = self.filers.get_filer(cik) or Filer(cik=cik, filer_name=company)
        if listing.filer_name:
            filer.filer_name = listing.filer_name

        filings = tqdm(
            listing.filings, desc=company[:40], unit="filing", disable=not self.show_progress
        )
        for filing in filings:
            if filer.has_accession(filing.accession_number):
                result["skipped"] += 1
                continue

            started = time.perf_counter()
            try:
                report = self.process_filing(filer, filing)
            except Exception as e:
                result["failed"] += 1
                log_operation(
                    logger,
                    "process_filing",
                    success=False,
                    duration_ms=(time.perf_counter() - started) * 1000,
                    cik=cik,
                    accession_number=filing.accession_number,
                    error=str(e),
                )
                continue

            if report is not None:
                result["processed"] += 1
                log_operation(
                    logger,
                    "process_filing",
                    success=True,
                    duration_ms=(time.perf_counter() - started) * 1000,
                    cik=cik,
                    accession_number=filing.accession_number,
                )
            else:
                result["skipped"] += 1

        logger.info(
            f"{company}: {result['processed']} processed, {result['skipped']} skipped, "
            f"{result['failed']} failed"
        )
        return result

    # -------------------------------------------------------------------------
    # One filing
    # -------------------------------------------------------------------------

    def process_filing(self, filer: Filer, filing: Filing) -> Optional[QuarterlyReport]:
        """
        Take one filing from fetch to persistence, updating ``filer`` in place.

        Returns the new quarterly report, or None when the filing's quarter
        is already recorded.
        """
        documents = self.fetcher.fetch_documents(filing)
        metadata = extract_filing_metadata(documents.primary)
        period = metadata.period_of_report or filing.period_of_report

        raw = normalize_holdings(
            documents.info_table, filing.filing_date, self.value_scale_change_date
        )
        holdings = deduplicate_holdings(raw)
        holdings = self.cascade.resolve_holdings(holdings)
        holdings = self.enricher.enrich(holdings)

        quarter = quarter_label(period)
        if filer.has_quarter(quarter):
            logger.info(
                f"Quarter {quarter} already recorded for {filer.cik}, "
                f"skipping {filing.accession_number}"
            )
            return None

        previous = self._previous_holdings(filer, period)
        diff = calculate_diff(holdings, previous)

        report = build_quarterly_report(
            quarter=quarter,
            period_of_report=period,
            filing_date=filing.filing_date,
            accession_number=filing.accession_number,
            holdings=diff.enriched_holdings,
            stats=diff.stats,
        )

        self.holdings.upsert_holdings(QuarterHoldings(
            cik=filer.cik,
            quarter=quarter,
            filer_name=filer.filer_name,
            accession_number=filing.accession_number,
            holdings=diff.enriched_holdings,
        ))

        filer.quarterly_reports.append(report)
        filer.quarterly_reports.sort(key=lambda r: (r.period_of_report, r.filing_date))
        self._update_filer(filer, metadata.filer_name, metadata.address)
        self.filers.save_filer(filer)

        logger.info(
            f"Persisted {quarter} for {filer.filer_name}: "
            f"{report.summary.total_holdings_count} holdings, "
            f"${report.summary.total_market_value:,.0f}"
        )
        return report

    def _previous_holdings(self, filer: Filer, period: date) -> Optional[list[Holding]]:
        """
        Holdings of the latest recorded quarter before ``period``.

        Raises:
            PipelineError: If that quarter is recorded on the filer but its
                holdings document is missing.
        """
        earlier = [r for r in filer.quarterly_reports if r.period_of_report < period]
        if not earlier:
            return None

        previous_report = max(earlier, key=lambda r: (r.period_of_report, r.filing_date))
        document = self.holdings.get_holdings(filer.cik, previous_report.quarter)
        if document is None:
            raise PipelineError(
                f"Holdings for {previous_report.quarter} are missing; cannot diff",
                context={"cik": filer.cik, "quarter": previous_report.quarter},
            )
        return document.holdings

    @staticmethod
    def _update_filer(
        filer: Filer, cover_name: Optional[str], address: Optional[Address]
    ) -> None:
        latest: QuarterlyReport = filer.quarterly_reports[-1]
        filer.latest_activity = LatestActivity(
            last_reported_quarter=latest.quarter,
            last_filing_date=latest.filing_date,
            current_holdings_count=latest.summary.total_holdings_count,
            current_market_value=latest.summary.total_market_value,
            last_updated=datetime.now(),
        )
        if address is not None:
            filer.address = address
        if cover_name and filer.filer_name.startswith("CIK:"):
            filer.filer_name = cover_name

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        for close in self._closers:
            close()
        self._closers.clear()

    def __enter__(self) -> "HoldingsPipeline":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def build_pipeline(
    app_config: Optional[AppConfig] = None,
    db: Optional[Database] = None,
    show_progress: bool = False,
) -> HoldingsPipeline:
    """
    Wire a pipeline from configuration.

    Caches are loaded from disk here and handed to the resolution and
    enrichment stages; each stage persists its cache after a run.
    """
    app_config = app_config or get_config()
    settings = app_config.settings
    env = app_config.env

    if db is None:
        db = Database(str(app_config.database_path))
    db.initialize_schema()

    sec_api = SECApi(config=settings.sec_api)

    ticker_cache: Cache = JsonFileCache(
        get_absolute_path(settings.storage.ticker_cache_path), name="tickers"
    )
    sector_cache: Cache = JsonFileCache(
        get_absolute_path(settings.storage.sector_cache_path), name="sectors"
    )
    ticker_cache.load_from_disk()
    sector_cache.load_from_disk()

    index = TickerIndex(
        fetch=sec_api.get_company_tickers,
        path=get_absolute_path(settings.storage.ticker_index_path),
        ttl_hours=settings.storage.ticker_index_ttl_hours,
    )

    pipeline = HoldingsPipeline(
        fetcher=FilingFetcher(sec_api, settings.pipeline),
        discovery=FilerDiscovery(
            sec_api,
            settings.discovery,
            activity_timeout=settings.sec_api.activity_timeout,
        ),
        cascade=build_cascade(index, ticker_cache, settings.resolution, env),
        enricher=SectorEnricher(
            api_key=env.financial_datasets_api_key,
            cache=sector_cache,
            config=settings.enrichment,
            rate_limiter=RateLimiter(
                rate=settings.enrichment.rate_limit_per_second, name="facts_api"
            ),
        ),
        filers=db.filers,
        holdings=db.holdings,
        config=settings.pipeline,
        discovery_config=settings.discovery,
        show_progress=show_progress,
    )
    pipeline._closers.extend([
        pipeline.cascade.close, pipeline.enricher.close, sec_api.close, db.close,
    ])
    return pipeline
