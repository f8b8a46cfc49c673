# stockdata/cli.py
import argparse
import asyncio
import logging
import sys
from dataclasses import asdict

import pandas as pd

from stockdata.config import Settings
from stockdata.errors import QuotaExceededError, TransportError
from stockdata.stock_service import StockService, create_service


def print_table(rows, columns=None, empty_msg="No data."):
    if not rows:
        print(empty_msg)
        return
    df = pd.DataFrame([asdict(r) for r in rows])
    if columns:
        df = df[[c for c in columns if c in df.columns]]
    print(df.to_string(index=False))


def print_cache_info(service: StockService):
    info = service.get_cache_info()
    print(f"Cache entries:   {info.cache_size}")
    print(f"Requests today:  {info.requests_made}/{info.daily_limit}  (window {info.window_date})")
    print(f"Remaining:       {info.remaining}")
    if info.remaining <= 5:
        print("⚠️  Rate limit warning")


STOCK_COLS = ["symbol", "current_price", "change", "change_percent", "volume"]


async def run(args) -> int:
    async with await create_service(Settings.from_env()) as service:
        if args.command == "gainers":
            print_table(await service.get_top_gainers(), STOCK_COLS)
        elif args.command == "losers":
            print_table(await service.get_top_losers(), STOCK_COLS)
        elif args.command == "active":
            print_table(await service.get_most_actively_traded(), STOCK_COLS)
        elif args.command == "all":
            print_table(await service.get_all_stocks(), STOCK_COLS)
        elif args.command == "search":
            print_table(
                await service.search_stocks(args.query),
                ["symbol", "name", "type", "region", "currency", "match_score"],
                empty_msg=f'No stocks found matching "{args.query}"',
            )
        elif args.command == "chart":
            print_table(await service.get_stock_chart_data(args.symbol), ["date", "price"])
        elif args.command == "info":
            company = await service.fetch_company_info(args.symbol)
            if company is None:
                print(f"No company data for {args.symbol.upper()}.")
            else:
                for k, v in asdict(company).items():
                    if k != "description":
                        print(f"{k:>24}: {v}")
        elif args.command == "cache-info":
            print_cache_info(service)
        elif args.command == "clear-cache":
            await service.clear_cache()
            print("✅ Cache cleared.")
        elif args.command == "set-key":
            await service.set_api_key(args.key)
            print("✅ API key saved." if args.key.strip() else "✅ API key override removed.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stockdata", description="Alpha Vantage browsing with a persistent request cache")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug logging")
    sub = parser.add_subparsers(dest="command", required=True)
    for name in ("gainers", "losers", "active", "all", "cache-info", "clear-cache"):
        sub.add_parser(name)
    sub.add_parser("search").add_argument("query")
    sub.add_parser("chart").add_argument("symbol")
    sub.add_parser("info").add_argument("symbol")
    sub.add_parser("set-key").add_argument("key", help='API key override ("" removes it)')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        return asyncio.run(run(args))
    except QuotaExceededError as e:
        print("❌ Daily request budget used up and nothing cached:", e)
    except TransportError as e:
        print("❌ Could not reach Alpha Vantage and nothing cached:", e)
    return 1


if __name__ == "__main__":
    sys.exit(main())
