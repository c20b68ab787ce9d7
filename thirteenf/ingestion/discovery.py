"""
Incremental discovery of active 13F filers.

Walks SEC's registrant list in order and checks each registrant's recent
filings for 13F-HR activity. State (offset into the list, CIKs already
checked, the cached list itself) survives between calls, so repeated calls
continue where the last one stopped and never check a CIK twice.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Callable, Optional

from ..core.exceptions import ThirteenFError
from ..core.models import CompanyFiler
from ..core.types import THIRTEEN_F_FORMS
from ..utils.config import DiscoveryConfig, get_settings
from ..utils.logger import get_logger
from .sec_api import SECApi

logger = get_logger("thirteenf.ingestion.discovery")


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return day.replace(year=day.year - years, day=28)


class FilerDiscovery:
    """
    Resumable scanner over the SEC registrant universe.

    Attributes:
        offset: Index of the next registrant to check.
        seen_ciks: CIKs already checked in this campaign.
    """

    def __init__(
        self,
        sec_api: SECApi,
        config: Optional[DiscoveryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
        activity_timeout: Optional[float] = None,
    ):
        self.sec_api = sec_api
        self.config = config or get_settings().discovery
        self._sleep = sleep
        self._today = today
        self._timeout = activity_timeout

        self.offset = 0
        self.seen_ciks: set[str] = set()
        self._registrants: Optional[list[dict]] = None

    def reset(self) -> None:
        """Start a fresh discovery campaign."""
        self.offset = 0
        self.seen_ciks.clear()
        self._registrants = None

    @property
    def exhausted(self) -> bool:
        """True once every registrant in the loaded list has been checked."""
        return self._registrants is not None and self.offset >= len(self._registrants)

    def _load_registrants(self) -> list[dict]:
        if self._registrants is None:
            data = self.sec_api.get_company_tickers()
            self._registrants = [
                entry for entry in data.values()
                if isinstance(entry, dict) and entry.get("cik_str") is not None
            ]
            logger.info(f"Loaded {len(self._registrants)} SEC registrants")
        return self._registrants

    def discover(self, target_count: int) -> list[CompanyFiler]:
        """
        Find up to ``target_count`` new active 13F filers.

        Registrants are checked in batches; between batches the scanner
        sleeps to stay within SEC fair-access limits. Returns early once
        enough filers are found or the registrant list runs out.
        """
        try:
            registrants = self._load_registrants()
        except ThirteenFError as e:
            logger.error(f"Discovery could not load the registrant list: {e}")
            return []

        if self.offset >= len(registrants):
            logger.info(f"Reached end of SEC registrant list ({len(registrants)} checked)")
            return []

        discovered: list[CompanyFiler] = []
        batch_size = self.config.registrant_batch_size

        while len(discovered) < target_count and self.offset < len(registrants):
            batch = registrants[self.offset:self.offset + batch_size]
            logger.debug(
                f"Checking registrants {self.offset}-{self.offset + len(batch)} "
                f"(found {len(discovered)}/{target_count})"
            )

            candidates = []
            for entry in batch:
                cik = str(entry["cik_str"]).zfill(10)
                if cik in self.seen_ciks:
                    continue
                self.seen_ciks.add(cik)
                candidates.append(CompanyFiler(cik=cik, name=str(entry.get("title") or "")))

            with ThreadPoolExecutor(max_workers=self.config.max_concurrency) as executor:
                flags = list(executor.map(lambda c: self.check_activity(c.cik), candidates))

            for company, active in zip(candidates, flags):
                if active and len(discovered) < target_count:
                    discovered.append(company)

            self.offset += batch_size

            if len(discovered) >= target_count or self.offset >= len(registrants):
                break
            self._sleep(self.config.batch_sleep_seconds)

        logger.info(f"Discovery found {len(discovered)} active 13F filers (offset {self.offset})")
        return discovered

    def check_activity(self, cik: str) -> bool:
        """
        True if the registrant filed enough 13F-HR reports recently.

        Only the first ``max_recent_filings_checked`` recent filings are
        examined. Any fetch or format error counts as inactive.
        """
        try:
            submissions = self.sec_api.get_company_submissions(
                cik, retry=False, timeout=self._timeout
            )
        except ThirteenFError as e:
            logger.debug(f"Activity check failed for CIK {cik}: {e}")
            return False

        recent = (submissions.get("filings") or {}).get("recent") or {}
        forms = recent.get("form")
        dates = recent.get("filingDate") or []
        if not isinstance(forms, list):
            return False

        since = _years_before(self._today(), self.config.lookback_years)
        count = 0
        for i, form in enumerate(forms[: self.config.max_recent_filings_checked]):
            if form not in THIRTEEN_F_FORMS or i >= len(dates):
                continue
            try:
                filed = date.fromisoformat(dates[i])
            except (TypeError, ValueError):
                continue
            if filed >= since:
                count += 1

        return count >= self.config.min_filings

    def verify_filer_activity(self, cik: str) -> bool:
        """Public activity check for a single CIK."""
        return self.check_activity(cik.zfill(10))
