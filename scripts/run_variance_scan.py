"""
Run the variance detector from the command line (cron entry point).

Usage:
    python scripts/run_variance_scan.py --org 7                 # every project with an active budget
    python scripts/run_variance_scan.py --org 7 --project 42    # one project
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from buildledger.config import Config
from buildledger.db.postgres import get_session
from buildledger.engine.errors import BudgetEngineError
from buildledger.engine.thresholds import VarianceThresholds
from buildledger.engine.variance import scan_org

logging.basicConfig(level=Config.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Create or refresh variance alerts")
    parser.add_argument("--org", type=int, required=True, help="Organization id")
    parser.add_argument("--project", type=int, help="Single project id (default: all with an active budget)")
    parser.add_argument("--approaching", type=int, default=Config.VARIANCE_APPROACHING_PERCENT,
                        help="Approaching threshold percent")
    parser.add_argument("--overrun", type=int, default=Config.VARIANCE_OVERRUN_PERCENT,
                        help="Overrun threshold percent")
    parser.add_argument("--margin-floor", type=int, default=Config.MARGIN_WARNING_PERCENT,
                        help="Gross margin percent below which a margin warning is raised (0 disables)")
    
    args = parser.parse_args()
    
    try:
        thresholds = VarianceThresholds(
            approaching_percent=args.approaching,
            overrun_percent=args.overrun,
            margin_warning_percent=args.margin_floor or None,
        )
    except BudgetEngineError as e:
        parser.error(str(e))
    
    with get_session() as db:
        results = scan_org(db, args.org, thresholds, project_id=args.project)
    
    for result in results:
        logger.info(
            f"Project {result.project_id} (budget {result.budget_id}): "
            f"{len(result.created)} new, {len(result.updated)} updated, {len(result.unchanged)} unchanged"
        )
    
    if not results:
        logger.info(f"No projects with an active budget for org {args.org}")


if __name__ == "__main__":
    main()
