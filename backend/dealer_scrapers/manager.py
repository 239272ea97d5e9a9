"""
Orchestrator - runs every enabled technology group against its dealers.

Groups run one after another in configured priority order. Within a group,
dealers run up to a small concurrency ceiling with a pause between them.
Failures are contained at the narrowest scope that can hold them:

    dealer  - one site failed; recorded, the group continues
    group   - the group could not run (e.g. browser didn't start); the next group runs
    fatal   - the orchestration loop itself broke; a partial summary is still returned

Usage:
    orchestrator = Orchestrator()
    summary = await orchestrator.run()
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from .base import (
    Colors,
    DealershipScrapeResult,
    ErrorScope,
    GroupSummary,
    NormalizedVehicleRecord,
    RunError,
    RunSummary,
    TechnologyGroup,
    VehicleListingCandidate,
)
from .config import SiteProfileRegistry
from .crawlers import BrowserCrawler, Crawler, StaticCrawler
from .dealers import DealerConfig, GroupConfig, RunConfig, default_run_config
from .filters import FilterConfig, ResultFilter
from .settings import Settings, settings as default_settings
from .sinks import JsonArtifactWriter, PersistenceSink
from .strategies import ExtractionStrategy, ScrapeContext, build_strategies
from .utils.normalizers import normalize_candidate

logger = logging.getLogger(__name__)

CrawlerFactory = Callable[[TechnologyGroup], Crawler]


class OrchestratorState(Enum):
    IDLE = "idle"
    RUNNING_GROUP = "running-group"
    AGGREGATING = "aggregating"
    DONE = "done"
    FATALLY_ABORTED = "fatally-aborted"


def default_crawler_factory(settings: Settings) -> CrawlerFactory:
    """Browser for every group except those listed in settings.static_groups."""
    static_groups = set(settings.static_groups)

    def factory(group: TechnologyGroup) -> Crawler:
        if group.value in static_groups:
            return StaticCrawler(
                rate_limit=0,
                timeout=settings.navigation_timeout_seconds,
                max_retries=settings.request_retries,
            )
        return BrowserCrawler(headless=settings.headless, user_agent=settings.user_agent)

    return factory


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class Orchestrator:
    """
    Runs a full scrape and returns a RunSummary.

    run() never raises; every failure ends up in RunSummary.errors.
    """

    def __init__(
        self,
        registry: Optional[SiteProfileRegistry] = None,
        settings: Optional[Settings] = None,
        crawler_factory: Optional[CrawlerFactory] = None,
        sink: Optional[PersistenceSink] = None,
        strategies: Optional[Dict[TechnologyGroup, ExtractionStrategy]] = None,
        artifact_writer: Optional[JsonArtifactWriter] = None,
    ):
        self.settings = settings or default_settings
        self.registry = registry or SiteProfileRegistry()
        self.crawler_factory = crawler_factory or default_crawler_factory(self.settings)
        self.sink = sink
        self.strategies = strategies or build_strategies(self.settings)
        self.artifact_writer = artifact_writer or JsonArtifactWriter(self.settings.results_dir)
        self.result_filter = ResultFilter()

        self.state = OrchestratorState.IDLE
        self.current_group: Optional[TechnologyGroup] = None
        self.results: Dict[TechnologyGroup, List[DealershipScrapeResult]] = {}
        self.errors: List[RunError] = []

    # ------------------------------------------------------------
    # Run
    # ------------------------------------------------------------

    async def run(
        self,
        run_config: Optional[RunConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunSummary:
        """
        Execute every enabled group in priority order.

        Args:
            run_config: Dealers and filters (defaults to the built-in run config)
            cancel_event: When set, no further dealer or group is started

        Returns:
            RunSummary, possibly partial when cancelled or aborted
        """
        run_config = run_config or default_run_config()
        self.results = {}
        self.errors = []
        started_at = _now()
        aborted = False

        logger.info(Colors.bold("Starting scrape run"))

        try:
            run_filters = run_config.filters.to_filter_config()
            for index, group_config in enumerate(run_config.ordered_groups()):
                if index > 0 and self.settings.group_delay_seconds > 0:
                    await asyncio.sleep(self.settings.group_delay_seconds)
                if _cancelled(cancel_event):
                    logger.warning("Run cancelled, skipping remaining groups")
                    break
                await self._run_group_isolated(group_config, run_filters, cancel_event)

        except Exception as e:
            aborted = True
            self.state = OrchestratorState.FATALLY_ABORTED
            logger.exception(f"Run aborted: {e}")
            self.errors.append(RunError(ErrorScope.FATAL, str(e) or e.__class__.__name__, self.current_group))

        summary = await self._finish(started_at, _cancelled(cancel_event), aborted)
        self.current_group = None
        if not aborted:
            self.state = OrchestratorState.DONE
        return summary

    async def _run_group_isolated(
        self,
        group_config: GroupConfig,
        run_filters: FilterConfig,
        cancel_event: Optional[asyncio.Event],
    ):
        group = group_config.group
        self.state = OrchestratorState.RUNNING_GROUP
        self.current_group = group
        self.results[group] = []

        try:
            await self.run_group(group_config, run_filters, cancel_event)
        except Exception as e:
            logger.error(Colors.red(f"Group {group.value} failed: {e}"))
            self.errors.append(RunError(ErrorScope.GROUP, str(e) or e.__class__.__name__, group))

    async def run_group(
        self,
        group_config: GroupConfig,
        run_filters: FilterConfig,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        """
        Run one group's enabled dealers with a shared crawler.

        Results are appended to self.results[group] in completion order.

        Raises:
            CrawlerStartupError: If the group's crawler can't be started
        """
        group = group_config.group
        results = self.results.setdefault(group, [])
        dealers = [d for d in group_config.dealers if d.enabled]
        logger.info(Colors.cyan(f"[{group.value}] {len(dealers)} dealer(s)"))

        crawler = self.crawler_factory(group)
        await crawler.start()
        try:
            semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_dealers))

            async def run_one(index: int, dealer: DealerConfig):
                async with semaphore:
                    if index > 0 and self.settings.dealer_delay_seconds > 0:
                        await asyncio.sleep(self.settings.dealer_delay_seconds)
                    if _cancelled(cancel_event):
                        logger.debug(f"Cancelled before {dealer.name}")
                        return
                    results.append(await self.scrape_dealer(dealer, group, crawler, run_filters))

            outcomes = await asyncio.gather(
                *(run_one(i, d) for i, d in enumerate(dealers)),
                return_exceptions=True,
            )
            # Anything that escaped a dealer slot still only fails that dealer
            for dealer, outcome in zip(dealers, outcomes):
                if isinstance(outcome, Exception):
                    result = DealershipScrapeResult(
                        dealer_name=dealer.name,
                        source_url=dealer.base_url,
                        technology_group=group,
                        dealer_id=dealer.id,
                        completed_at=_now(),
                    )
                    self._dealer_failed(result, group, logger, str(outcome) or outcome.__class__.__name__)
                    results.append(result)
        finally:
            await crawler.close()

    # ------------------------------------------------------------
    # Dealer
    # ------------------------------------------------------------

    async def scrape_dealer(
        self,
        dealer: DealerConfig,
        group: TechnologyGroup,
        crawler: Crawler,
        run_filters: Optional[FilterConfig] = None,
    ) -> DealershipScrapeResult:
        """
        Scrape, normalize and filter one dealer. Never raises.

        Any failure, setup included, is recorded on the result and as a
        dealer-scoped run error; the result then carries zero records.
        """
        dealer_logger = logging.getLogger(f"scraper.{dealer.slug}")
        result = DealershipScrapeResult(
            dealer_name=dealer.name,
            source_url=dealer.base_url,
            technology_group=group,
            dealer_id=dealer.id,
        )

        try:
            profile = self.registry.resolve(dealer.base_url)
            if dealer.feature_flags is not None:
                profile = replace(profile, feature_flags=dealer.feature_flags.apply(profile.feature_flags))

            url = result.source_url = dealer.listing_url(profile)
            strategy = self.strategies[dealer.group or group]
            ctx = ScrapeContext(
                dealer_name=dealer.name,
                url=url,
                profile=profile,
                logger=dealer_logger,
                direct_listing=bool(dealer.listing_path or profile.listing_path),
                search_query=dealer.search_query,
            )

            dealer_logger.info(f"Scraping {dealer.name} ({url}) with {strategy.group.value} strategy")
            async with crawler.session() as session:
                candidates = await asyncio.wait_for(
                    strategy.scrape(ctx, session),
                    timeout=self.settings.dealer_timeout_seconds,
                )
            result.candidates_found = len(candidates)

            filters = (run_filters or FilterConfig()).merged(
                dealer.filters.to_filter_config() if dealer.filters else None
            )
            result.records = self.result_filter.apply(self.normalize(candidates), filters)
            dealer_logger.info(Colors.green(
                f"{dealer.name}: {len(result.records)} record(s) from {len(candidates)} candidate(s)"
            ))

        except asyncio.TimeoutError:
            self._dealer_failed(result, group, dealer_logger,
                                f"Timed out after {self.settings.dealer_timeout_seconds}s")
        except Exception as e:
            self._dealer_failed(result, group, dealer_logger, str(e) or e.__class__.__name__)

        finally:
            result.completed_at = _now()

        return result

    def _dealer_failed(
        self,
        result: DealershipScrapeResult,
        group: TechnologyGroup,
        dealer_logger: logging.Logger,
        message: str,
    ):
        dealer_logger.error(Colors.red(f"{result.dealer_name} failed: {message}"))
        result.records = []
        result.errors.append(message)
        self.errors.append(RunError(ErrorScope.DEALER, message, group, result.dealer_name))

    def normalize(self, candidates: List[VehicleListingCandidate]) -> List[NormalizedVehicleRecord]:
        """Normalize every titled candidate, keeping discovery order."""
        return [
            normalize_candidate(c, default_currency=self.settings.default_currency)
            for c in candidates
            if c.has_title
        ]

    async def scrape_url(self, url: str, name: Optional[str] = None) -> DealershipScrapeResult:
        """
        Scrape one arbitrary URL outside a run.

        The profile's group picks the strategy; for an unknown site the page
        is classified first and handed to the matching strategy.

        Raises:
            CrawlerStartupError: If the crawler can't be started
        """
        profile = self.registry.resolve(url)
        group = profile.technology_group
        # The URL was given explicitly, so it is the listing page
        dealer = DealerConfig(
            id=profile.domain or 'single-url',
            name=name or profile.name or url,
            base_url=url,
            listing_path=url,
            group=group,
        )

        crawler = self.crawler_factory(group)
        await crawler.start()
        try:
            result = await self.scrape_dealer(dealer, group, crawler)
        finally:
            await crawler.close()
        return result

    # ------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------

    async def _finish(self, started_at: datetime, cancelled: bool, aborted: bool) -> RunSummary:
        if not aborted:
            self.state = OrchestratorState.AGGREGATING

        summary = self.aggregate(started_at, cancelled, aborted)

        if self.sink is not None:
            try:
                await self.sink.save(summary, self.all_records())
            except Exception as e:
                logger.error(Colors.red(f"Persistence sink failed: {e}"))
                error = RunError(ErrorScope.FATAL, f"Persistence failed: {e}")
                self.errors.append(error)
                summary = replace(summary, errors=summary.errors + (error,))

        if self.settings.save_results:
            try:
                self.artifact_writer.write(summary, self.results)
            except Exception as e:
                logger.error(Colors.red(f"Could not write run artifact: {e}"))

        log_summary(summary)
        return summary

    def aggregate(self, started_at: datetime, cancelled: bool = False, aborted: bool = False) -> RunSummary:
        """Build per-group summaries (in run order) and the run summary."""
        group_summaries = {
            group: GroupSummary.from_results(group, results)
            for group, results in self.results.items()
        }
        all_results = [r for results in self.results.values() for r in results]
        successful = sum(1 for r in all_results if r.success)

        return RunSummary(
            started_at=started_at,
            completed_at=_now(),
            total_dealers=len(all_results),
            total_records=sum(len(r.records) for r in all_results),
            successful_dealers=successful,
            failed_dealers=len(all_results) - successful,
            group_summaries=group_summaries,
            errors=tuple(self.errors),
            cancelled=cancelled,
            aborted=aborted,
        )

    def all_records(self) -> List[NormalizedVehicleRecord]:
        return [rec for results in self.results.values() for r in results for rec in r.records]


def log_summary(summary: RunSummary):
    """Log a human-readable summary of a run."""
    logger.info(Colors.bold("=" * 60))
    logger.info(Colors.bold("RUN SUMMARY"))
    logger.info(f"Duration: {summary.duration_seconds:.1f}s")
    logger.info(
        f"Dealers: {summary.total_dealers} "
        f"({Colors.green(str(summary.successful_dealers) + ' ok')}, "
        f"{Colors.red(str(summary.failed_dealers) + ' failed')}) "
        f"- success rate {summary.success_rate}%"
    )
    logger.info(f"Records: {summary.total_records}")

    for group, group_summary in summary.group_summaries.items():
        logger.info(
            f"  {group.value:<20} {group_summary.dealers_succeeded}/{group_summary.dealers_attempted} dealers, "
            f"{group_summary.dealers_empty} empty, {group_summary.total_records} records"
        )

    if summary.errors:
        logger.warning(Colors.yellow(f"{len(summary.errors)} error(s):"))
        for error in summary.errors:
            where = ' / '.join(filter(None, [error.group.value if error.group else None, error.dealer]))
            logger.warning(Colors.yellow(f"  [{error.scope.value}] {where}: {error.message}"))

    if summary.cancelled:
        logger.warning(Colors.yellow("Run was cancelled before completion"))
    if summary.aborted:
        logger.error(Colors.red("Run aborted by an unexpected error"))
    logger.info(Colors.bold("=" * 60))
