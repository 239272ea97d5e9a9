"""
Run output: the persistence collaborator interface and the run artifact.

The persistence sink receives the finished RunSummary plus the flat list
of normalized records; deduplication against stored listings and any
downstream validation happen on its side.

The run artifact is a JSON document written next to the engine:

    {
        "summary": {...RunSummary...},
        "groups": {
            "template-cms": [{...DealershipScrapeResult...}, ...],
            ...
        }
    }

Group keys are the technology-group values and must stay stable.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import timezone
from pathlib import Path
from typing import Dict, List, Union

from .base import DealershipScrapeResult, NormalizedVehicleRecord, RunSummary, TechnologyGroup

logger = logging.getLogger(__name__)


class PersistenceSink(ABC):
    """Receives the outcome of a completed run."""

    @abstractmethod
    async def save(self, summary: RunSummary, records: List[NormalizedVehicleRecord]):
        ...


class JsonArtifactWriter:
    """Writes one run-<timestamp>.json file per run."""

    def __init__(self, results_dir: Union[str, Path]):
        self.results_dir = Path(results_dir)

    def build(
        self,
        summary: RunSummary,
        results_by_group: Dict[TechnologyGroup, List[DealershipScrapeResult]],
    ) -> Dict:
        return {
            'summary': summary.to_dict(),
            'groups': {
                group.value: [r.to_dict() for r in results]
                for group, results in results_by_group.items()
            },
        }

    def write(
        self,
        summary: RunSummary,
        results_by_group: Dict[TechnologyGroup, List[DealershipScrapeResult]],
    ) -> Path:
        """
        Serialize the run and return the written path.

        Raises:
            OSError: If the results directory can't be created or written
        """
        self.results_dir.mkdir(parents=True, exist_ok=True)
        stamp = summary.started_at.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')
        path = self.results_dir / f"run-{stamp}.json"

        document = self.build(summary, results_by_group)
        path.write_text(json.dumps(document, indent=2, ensure_ascii=False, default=str), encoding='utf-8')

        logger.info(f"Run artifact written to {path}")
        return path
