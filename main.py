import time
import logging
import signal
import argparse
import uuid
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from core.app_context import AppContext
from core.config_loader import load_config, AppConfig
from database.database import get_engine
from database.init_db import init_db
from database.models import utcnow
from pipeline.control import PipelineController, BatchAlreadyRunning
from pipeline.runner import run_matching_batch

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
running = True


def signal_handler(sig, frame):
    global running
    logger.info("Shutdown signal received")
    running = False


def run_batch_once(ctx: AppContext, controller: PipelineController, user_id: Optional[uuid.UUID] = None, source: str = 'scheduler'):
    """Run one matching batch under the single-flight lock. Returns None if refused."""
    try:
        with controller.hold(source, {'user_id': str(user_id) if user_id else None}):
            return run_matching_batch(ctx, user_id=user_id)
    except BatchAlreadyRunning as e:
        logger.warning(f"Refusing to start a second matching batch: {e}")
        return None


def run_sweep_once(ctx: AppContext):
    logger.info("=== RECONCILIATION SWEEP ===")
    return ctx.reconciler.sweep_stale()


def matching_due(config: AppConfig, now: datetime, last_run_day) -> bool:
    local_now = now.astimezone(ZoneInfo(config.billing.timezone))
    return local_now.hour >= config.schedule.matching_hour and local_now.date() != last_run_day


def run_scheduler(ctx: AppContext, controller: PipelineController):
    """Daily matching batch at the configured hour plus the periodic stale sweep."""
    config = ctx.config
    tz = ZoneInfo(config.billing.timezone)
    sweep_interval = config.schedule.sweep_interval_seconds
    last_run_day = None
    last_sweep = 0.0

    logger.info(
        f"Scheduler started: matching daily at {config.schedule.matching_hour:02d}:00 "
        f"{config.billing.timezone}, sweep every {sweep_interval}s"
    )

    while running:
        now = utcnow()
        if matching_due(config, now, last_run_day):
            try:
                result = run_batch_once(ctx, controller)
                if result is not None:
                    last_run_day = now.astimezone(tz).date()
            except Exception as e:
                logger.error(f"Error in matching batch: {e}", exc_info=True)

        if time.time() - last_sweep >= sweep_interval:
            try:
                run_sweep_once(ctx)
            except Exception as e:
                logger.error(f"Error in reconciliation sweep: {e}", exc_info=True)
            last_sweep = time.time()

        # Sleep in chunks to allow responsive shutdown
        for _ in range(6):
            if not running:
                break
            time.sleep(5)


def main():
    parser = argparse.ArgumentParser(description="Job matching and wallet reconciliation driver")
    parser.add_argument('--config', type=str, default='config.yaml', help='Path to config.yaml')
    parser.add_argument('--once', action='store_true', help='Run one matching batch and exit')
    parser.add_argument('--user-id', type=uuid.UUID, default=None, help='Restrict --once to a single user')
    parser.add_argument('--sweep', action='store_true', help='Run one stale-transaction sweep and exit')
    args = parser.parse_args()

    if args.user_id and not args.once:
        parser.error("--user-id requires --once")

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config(args.config)

    # Initialize DB (with retry logic)
    init_db(get_engine(config.database.url))

    ctx = AppContext.build(config)
    controller = PipelineController()

    try:
        if args.once or args.sweep:
            if args.once:
                result = run_batch_once(ctx, controller, user_id=args.user_id, source='manual')
                if result is None or not result.success:
                    raise SystemExit(1)
            if args.sweep:
                run_sweep_once(ctx)
            return
        run_scheduler(ctx, controller)
    finally:
        ctx.close()


if __name__ == "__main__":
    main()
