"""Entry point and scheduler for Price Watch."""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from price_watch.batch import run_batch
from price_watch.config import Settings
from price_watch.engine import PriceCheckEngine
from price_watch.errors import PriceWatchError
from price_watch.fetchers.bestbuy import BestBuyClient
from price_watch.notifiers.email import SmtpMailer
from price_watch.pacing import Pacer
from price_watch.purchases import PurchaseService
from price_watch.storage import PurchaseStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


class App:
    """Components wired once per process from a single Settings."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.store = PurchaseStore(settings.db_path)
        self.source = BestBuyClient(settings)
        self.engine = PriceCheckEngine(
            self.store, self.source, Pacer.from_settings(settings), settings.window_days
        )
        self.mailer = SmtpMailer(settings)
        self.purchases = PurchaseService(self.store, self.source, self.engine, settings.window_days)

    def run_batch(self) -> None:
        run_batch(self.store, self.engine, self.mailer, self.settings)


def serve(app: App) -> None:
    """Run once immediately, then on a fixed interval until interrupted."""
    interval = app.settings.check_interval_minutes
    logger.info("Scheduler: every %d min", interval)

    app.run_batch()

    scheduler = BlockingScheduler()
    scheduler.add_job(
        app.run_batch,
        trigger=IntervalTrigger(minutes=interval),
        id="price_check",
        max_instances=1,          # Prevent overlapping runs
        misfire_grace_time=300,   # 5 min grace if a run is missed
    )
    scheduler.start()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="price-watch", description="Re-check watched purchases for price drops")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    ap.add_argument("--env-file", default=None, help="path to a .env file (default: project .env)")
    sub = ap.add_subparsers(dest="command")
    sub.add_parser("run", help="one scheduled batch run over all users (default)")
    sub.add_parser("serve", help="batch run now and then every CHECK_INTERVAL_MINUTES")
    sub.add_parser("init-db", help="create database tables")
    check = sub.add_parser("check", help="check one user's purchases now and print JSON")
    check.add_argument("user_id")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    env_file = Path(args.env_file) if args.env_file else Path(__file__).resolve().parents[1] / ".env"
    load_dotenv(env_file)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_env()
    except PriceWatchError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    logger.info("BESTBUY_API_KEY loaded: %s", settings.masked_api_key())
    app = App(settings)
    app.store.init_db()

    command = args.command or "run"
    if command == "init-db":
        logger.info("Database ready at %s", settings.db_path)
    elif command == "run":
        app.run_batch()
    elif command == "serve":
        serve(app)
    elif command == "check":
        try:
            payload = app.purchases.check_prices(args.user_id)
        except PriceWatchError as e:
            logger.error("Price check failed: %s", e)
            return 1
        print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
