"""
Stock Scout - Main application entry point.

Backend for a stock research and screening dashboard. Research and screening
run on external workflows; this service proxies to them, follows screening
jobs through the results tables and manages per-user watchlists.

Usage:
    python src/main.py                                # start the API server
    python src/main.py -research AAPL                 # research one symbol
    python src/main.py -screen 50 -email a@b.com      # screen and follow a batch
    add -url http://host:8000 to use a running server instead of in-process services
"""

import asyncio
import json
import sys
from typing import Optional

import uvicorn
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from stockscout.client import DashboardClient, DashboardClientError
from stockscout.config.logging import get_logger
from stockscout.config.settings import get_required_env_vars, get_settings
from stockscout.scheduler import shutdown_scheduler, start_scheduler
from stockscout.services.research import ResearchService, parse_stock_data
from stockscout.services.screening import ScreeningService, get_tracker_registry
from stockscout.utils.config import initialize_application, validate_environment
from stockscout.webapi.exceptions import StockScoutException
from stockscout.webapi.models.requests import ScreeningRequest


def _arg_value(flag: str) -> Optional[str]:
    if flag not in sys.argv:
        return None
    try:
        return sys.argv[sys.argv.index(flag) + 1]
    except IndexError:
        print(f"Error: {flag} requires a value")
        sys.exit(1)


def print_research(payload: dict) -> None:
    """Print a research envelope, summarised when it parses as stock data."""
    stock = parse_stock_data(payload)
    if stock is None:
        print(json.dumps(payload, indent=2, default=str))
        return

    print(f"{stock.symbol} - {stock.name or 'Unknown company'}")
    if stock.price is not None:
        print(f"  Price: {stock.price:.2f} ({stock.change_percent or 0:+.2f}%)")
    print(f"  Sector: {stock.sector or 'Unknown'}  Exchange: {stock.exchange or 'N/A'}")
    print(f"  P/E: {stock.pe_ratio}  Beta: {stock.beta}")
    for item in stock.news[:3]:
        print(f"  - {item.title}")


async def research_command(symbol: str, base_url: Optional[str]) -> None:
    """Research a symbol and print the result."""
    if base_url:
        payload = await DashboardClient(base_url).research(symbol)
    else:
        payload = await ResearchService().research(symbol.strip().upper())
    print_research(payload)


async def screen_command(batch_size: int, user_email: str, base_url: Optional[str]):
    """Submit a screening batch and print progress until it finishes."""
    logger = get_logger(__name__)
    request = ScreeningRequest(batch_size=batch_size, user_email=user_email)

    if base_url:
        client = DashboardClient(base_url, user_email=user_email)
        outcome = await client.submit_screening(request)
        print(f"Submitted ({outcome.status_code}): {outcome.body.get('message', '')}")
        while True:
            snapshot = await client.get_progress()
            print(f"  {snapshot['state']} - polls: {snapshot.get('pollCount', 0)}")
            if snapshot["state"] not in ("idle", "polling"):
                break
            await asyncio.sleep(get_settings().poll_interval_seconds)
        print(json.dumps(snapshot, indent=2, default=str))
        return

    start_scheduler()
    registry = get_tracker_registry()
    try:
        outcome = await ScreeningService(registry=registry).submit(request)
        print(f"Submitted ({outcome.status_code}): {outcome.body.get('message', '')}")

        tracker = registry.get(user_email)
        if tracker is None:
            logger.warning("Screening accepted without a trackable session")
            return

        while tracker.is_polling:
            await asyncio.sleep(get_settings().poll_interval_seconds)
            print(f"  {tracker.state.value} - polls: {tracker.poll_count}")

        snapshot = tracker.snapshot()
        if snapshot.error:
            print(f"Error: {snapshot.error}")
        for item in snapshot.results:
            print(f"  {item.rank:>4} {item.symbol:<6} {item.score:6.1f} {item.rating}")
    finally:
        registry.stop_all()
        shutdown_scheduler()


def main() -> None:
    """Main application entry point."""
    initialize_application()

    logger = get_logger(__name__)
    logger.info("Starting Stock Scout application")

    settings = get_settings()
    base_url = _arg_value("-url")

    if base_url is None and not validate_environment():
        print(
            "Please set the required environment variables before running the application."
        )
        print(f"Required variables: {', '.join(get_required_env_vars())}")
        sys.exit(1)

    if "-research" in sys.argv:
        symbol = _arg_value("-research")
        logger.info("Running research", symbol=symbol)
        try:
            asyncio.run(research_command(symbol, base_url))
        except (ValueError, StockScoutException, DashboardClientError) as e:
            print(f"Error: {e}")
            sys.exit(1)
    elif "-screen" in sys.argv:
        try:
            batch_size = int(_arg_value("-screen"))
        except ValueError:
            print("Error: -screen requires a number of stocks")
            sys.exit(1)
        user_email = _arg_value("-email")
        if not user_email:
            print("Error: -screen requires -email")
            sys.exit(1)
        try:
            asyncio.run(screen_command(batch_size, user_email, base_url))
        except (StockScoutException, DashboardClientError) as e:
            print(f"Error: {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            logger.info("Received interrupt signal")
            print("\nStopped following screening")
    else:
        logger.info(
            "Starting API server",
            host=settings.endpoint_host,
            port=settings.endpoint_port,
        )
        print("Starting Stock Scout API server...")

        try:
            uvicorn.run(
                "stockscout.webapi.app:app",
                host=settings.endpoint_host,
                port=settings.endpoint_port,
                reload=settings.api_reload,
                log_level=settings.api_log_level.lower(),
            )
        except KeyboardInterrupt:
            logger.info("Received interrupt signal")
            print("\nShutting down...")


if __name__ == "__main__":
    main()
