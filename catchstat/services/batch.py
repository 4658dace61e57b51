"""
@file batch.py
@brief Per-POI batch aggregation with error isolation and cancellation

@details
Runs the weighted-mean aggregation once per (POI, catchment) job. Each job is
independent: it reads the immutable geometry store and its own catchment, so
the batch is either a plain loop or a fixed-size thread pool.

**Error isolation:**
Domain errors are caught per job and recorded as an Outcome. One bad
geometry never aborts the run, and "no overlap" / "geometry error" results
are never coerced to zero.

**Cancellation:**
A threading.Event is checked before each job starts. Jobs finished before the
flag was set keep their results; the rest are listed in ``skipped``.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.aggregation for the single-catchment computation
@see services.linkage for building jobs from POIs
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from catchstat.core.config import BATCH_WORKERS, SLIVER_TOLERANCE
from catchstat.core.exceptions import CRSMismatchError, GeometryError, NoOverlapError
from catchstat.models.records import AggregationResult, Catchment, Outcome
from catchstat.services.aggregation import AggregationService
from catchstat.services.geometry_store import GeometryStore

logger = logging.getLogger(__name__)

Job = Tuple[int, Optional[Catchment]]


@dataclass
class BatchReport:
    """
    Outcome collection of one batch run.

    Attributes:
        results (List[AggregationResult]): One record per completed job, in job order
        skipped (List[int]): POI ids whose jobs never started because of cancellation
        cancelled (bool): Whether the run was cancelled before finishing
    """

    results: List[AggregationResult] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    cancelled: bool = False

    def by_outcome(self) -> Dict[Outcome, List[AggregationResult]]:
        grouped = {outcome: [] for outcome in Outcome}
        for result in self.results:
            grouped[result.outcome].append(result)
        return grouped

    def computed_values(self) -> Dict[int, float]:
        """POI id -> value for computed results only (last catchment wins for multi-linked POIs)."""
        return {r.poi_id: r.value for r in self.results if r.ok}

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "poi_id": r.poi_id,
                    "catchment_id": r.catchment_id,
                    "outcome": r.outcome.value,
                    "weighted_statistic": r.value,
                    "error": r.error,
                }
                for r in self.results
            ],
            columns=["poi_id", "catchment_id", "outcome", "weighted_statistic", "error"],
        )

    def summary(self) -> dict:
        """
        Outcome counts plus descriptive statistics of computed values.

        Failed outcomes are counted separately and never enter the statistics.
        """
        counts = {outcome.value: len(items) for outcome, items in self.by_outcome().items()}
        values = pd.Series([r.value for r in self.results if r.ok], dtype=float)
        statistics = None
        if not values.empty:
            statistics = {
                k: None if pd.isna(v) else float(v)
                for k, v in values.describe().items()
            }
        return {
            "total": len(self.results),
            "outcomes": counts,
            "skipped": len(self.skipped),
            "cancelled": self.cancelled,
            "statistics": statistics,
        }


class BatchAggregator:
    """
    @brief Maps POI jobs onto the aggregation service

    @details
    ``max_workers == 1`` runs a synchronous loop; larger values use a
    ThreadPoolExecutor of that size. Shapely releases the GIL inside GEOS
    operations, so threads give real overlap on large overlays.
    """

    def __init__(self, store: GeometryStore, max_workers: int = BATCH_WORKERS,
                 sliver_tolerance: float = SLIVER_TOLERANCE):
        self.service = AggregationService(store, sliver_tolerance)
        self.max_workers = max(1, int(max_workers or 1))

    def aggregate_one(self, poi_id: int, catchment: Optional[Catchment]) -> AggregationResult:
        """
        @brief Aggregate one job, converting domain errors into outcomes

        @param poi_id POI identifier
        @param catchment Linked catchment, or None if the POI has none
        @return AggregationResult (never raises for domain errors)
        """
        if catchment is None:
            return AggregationResult(poi_id, Outcome.NO_CATCHMENT, error="no catchment linked")

        try:
            value = self.service.weighted_mean(catchment)
        except NoOverlapError as e:
            return AggregationResult(poi_id, Outcome.NO_OVERLAP, catchment_id=catchment.id, error=str(e))
        except GeometryError as e:
            logger.warning(f"POI {poi_id}: {e}")
            return AggregationResult(poi_id, Outcome.GEOMETRY_ERROR, catchment_id=catchment.id, error=str(e))
        except CRSMismatchError as e:
            logger.warning(f"POI {poi_id}: {e}")
            return AggregationResult(poi_id, Outcome.CRS_MISMATCH, catchment_id=catchment.id, error=str(e))
        return AggregationResult(poi_id, Outcome.COMPUTED, value=value, catchment_id=catchment.id)

    def run(self, jobs: Iterable[Job], cancel: Optional[threading.Event] = None) -> BatchReport:
        """
        @brief Aggregate every job, continuing past per-POI failures

        @param jobs (poi_id, catchment) pairs; catchment may be None
        @param cancel Optional event; when set, jobs not yet started are skipped
        @return BatchReport with results in job order
        """
        jobs = list(jobs)
        logger.info(f"Starting batch aggregation: {len(jobs)} jobs, {self.max_workers} worker(s)")

        def guarded(job: Job) -> Optional[AggregationResult]:
            if cancel is not None and cancel.is_set():
                return None
            return self.aggregate_one(*job)

        if self.max_workers == 1:
            outputs = []
            for job in jobs:
                output = guarded(job)
                if output is None:
                    break
                outputs.append(output)
            outputs.extend([None] * (len(jobs) - len(outputs)))
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outputs = list(pool.map(guarded, jobs))

        report = BatchReport()
        for (poi_id, _), output in zip(jobs, outputs):
            if output is None:
                report.skipped.append(poi_id)
            else:
                report.results.append(output)
        report.cancelled = bool(report.skipped)

        if report.cancelled:
            logger.warning(
                f"Batch cancelled: {len(report.results)} completed, {len(report.skipped)} skipped"
            )
        else:
            logger.info(f"Batch completed: {report.summary()['outcomes']}")
        return report
