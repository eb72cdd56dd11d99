"""Query statistics and logging for Flight SQL reads."""

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

logger = logging.getLogger("flightsql.datasource")


@dataclass
class QueryMetrics:
    """Per-query read statistics."""

    statement: str
    row_count: int = 0
    batch_count: int = 0
    wall_time_ms: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "statement": self.statement,
            "row_count": self.row_count,
            "batch_count": self.batch_count,
            "wall_time_ms": self.wall_time_ms,
            "error": self.error,
        }


@dataclass
class MetricsCollector:
    """Collect and log query metrics for one host request."""

    metrics: List[QueryMetrics] = field(default_factory=list)

    def record(self, metric: QueryMetrics) -> None:
        """
        Record query metrics.

        Args:
            metric: Query metrics to record
        """
        self.metrics.append(metric)

        if metric.error:
            logger.error(
                f"Query failed after {metric.row_count:,} rows "
                f"in {metric.batch_count} batches: {metric.error}"
            )
        else:
            logger.info(
                f"Query returned {metric.row_count:,} rows in "
                f"{metric.batch_count} batches, {metric.wall_time_ms:.1f}ms"
            )
        logger.debug(f"Statement: {metric.statement}")

    def summary(self) -> Dict[str, Any]:
        """
        Return aggregated metrics.

        Returns:
            Dictionary with summary statistics
        """
        successful = [m for m in self.metrics if not m.error]
        return {
            "queries": len(self.metrics),
            "failed_queries": len(self.metrics) - len(successful),
            "total_rows": sum(m.row_count for m in self.metrics),
            "total_batches": sum(m.batch_count for m in self.metrics),
            "total_time_ms": sum(m.wall_time_ms for m in self.metrics),
        }

    def log_summary(self) -> None:
        """Log summary statistics."""
        summary = self.summary()
        if summary["queries"] == 0:
            return
        logger.info(
            f"Request completed: {summary['queries']} queries, "
            f"{summary['total_rows']:,} rows, {summary['total_time_ms']:.1f}ms"
        )

        if summary["failed_queries"] > 0:
            logger.warning(f"{summary['failed_queries']} query(ies) failed")
