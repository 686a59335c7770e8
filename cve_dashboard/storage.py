"""File persistence for mitigation plans and threat snapshots."""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class PlanStorage:
    """Saves mitigation plans as one JSON file per CVE id and day."""

    def __init__(self, plans_dir: str = "data/mitigation-plans"):
        """Initialize storage with the plans directory."""
        self.plans_dir = Path(plans_dir)

    def plan_path(self, cve_id: str, day: date) -> Path:
        return self.plans_dir / f"{cve_id}-{day.isoformat()}.json"

    def save(self, cve_id: str, plan: dict, day: Optional[date] = None) -> str:
        """
        Write a plan to disk, replacing any plan saved for the same id and day.

        Returns:
            The file name written
        """
        path = self.plan_path(cve_id, day or date.today())
        self.plans_dir.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(plan, f, indent=2)
        logger.info(f"Saved mitigation plan for {cve_id} to {path}")
        return path.name


def write_snapshot(data: dict, snapshot_path: str = "data/threats.json") -> Path:
    """Write a threat snapshot as pretty-printed JSON, creating parent dirs."""
    path = Path(snapshot_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    logger.debug(f"Wrote snapshot to {path}")
    return path
