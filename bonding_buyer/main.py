# main.py
from __future__ import annotations
import argparse
import json
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from bonding_buyer.controllers.sale_controller import MODES, SaleController
from bonding_buyer.exceptions import ConfigError
from bonding_buyer.schemas.purchase_schema import EXIT_CONFIG, EXIT_FAILED
from bonding_buyer.utils.config import load_config
from bonding_buyer.utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bonding-buyer",
        description="Buy from a bonding-curve sale: quote, approve, dry-run, submit, report.",
    )
    parser.add_argument("--mode", choices=MODES, default="remaining",
                        help="status | remaining (two tranches) | remaining-single | amount (PURCHASE_AMOUNT)")
    parser.add_argument("--config", default=None, help="YAML config file (default: $BUYER_CONFIG or ./config.yaml)")
    parser.add_argument("--json", action="store_true", help="print the run result as JSON on stdout")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        config = load_config(args.config)
        controller = SaleController.from_config(config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG
    except Exception as e:
        logger.exception(f"Startup failed: {e}")
        return EXIT_FAILED

    # signals: stop before the next submission, never mid-transaction
    def shutdown(*_):
        logger.info("🛑 Shutdown signal received, stopping after the current step...")
        controller.orchestrator.stop()

    previous = {sig: signal.signal(sig, shutdown) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        logger.info(f"🚀 bonding-buyer mode={args.mode}")
        result = controller.run(args.mode)
    except Exception as e:
        logger.exception(f"Run failed: {e}")
        return EXIT_FAILED
    finally:
        for sig, handler in previous.items():
            if handler is not None:
                signal.signal(sig, handler)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    if not result.ok:
        logger.error(f"❌ {args.mode} failed: {result.error}")
    else:
        logger.info(f"✅ {args.mode} completed.")
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
