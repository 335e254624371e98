from __future__ import annotations
import asyncio, sys
from dataclasses import asdict
import pandas as pd
from .errors import ValidationError
from .main import main as run_agent
from .service import build_service
from .storage import AlertLog, TrackedGameRepository, make_store
from .util import ensure_data_dir, money

MENU = (
    "\nDealSentinel - choose:\n"
    "  1 - Run agent\n"
    "  2 - Search games\n"
    "  3 - Track a game from the last search\n"
    "  4 - Show tracked games\n"
    "  5 - Remove a tracked game\n"
    "  6 - Check prices now\n"
    "  7 - Show recent alerts\n"
    "  0 - Exit\n> "
)

TRACKED_COLUMNS = ["id", "title", "current_price", "target_price", "last_checked", "last_error"]

def _with_service(fn):
    async def runner():
        service = build_service()
        try:
            return await fn(service)
        finally:
            await service.close()
    return asyncio.run(runner())

def show_results(results: list[dict]):
    if not results:
        print("No games found. Try a different search term."); return
    for n, r in enumerate(results, 1):
        print(f"  {n}. {r['title']} - {r['price']} ({r['shop']})")

def show_tracked(games):
    if not games:
        print("No games tracked yet. Search and add games first."); return
    df = pd.DataFrame([asdict(g) for g in games])[TRACKED_COLUMNS]
    print(df.to_string(index=False))

def search(last_results: list[dict]) -> list[dict]:
    query = input("Game title: ").strip()
    response = _with_service(lambda s: s.search(query))
    if "error" in response:
        print(response["error"]); return last_results
    show_results(response["results"])
    return response["results"]

def track(last_results: list[dict]):
    if not last_results:
        print("Search first."); return
    pick = input(f"Result number (1-{len(last_results)}): ").strip()
    if not pick.isdigit() or not 1 <= int(pick) <= len(last_results):
        print("??"); return
    target = input("Alert me when price drops below: ").strip()
    try:
        game = _with_service(lambda s: s.track(last_results[int(pick) - 1], target))
    except ValidationError as e:
        print(e); return
    print(f"Tracking {game.title}: current {money(game.current_price)} -> target {money(game.target_price)}")

def check_now():
    report = _with_service(lambda s: s.check_now())
    print(f"Checked {report.checked}, failed {report.failed}")
    for a in report.alerts:
        print(f"  {a.title} is now {money(a.new_price)} (was {money(a.old_price)})")

def main():
    ensure_data_dir()
    last_results: list[dict] = []
    while True:
        choice = input(MENU).strip()
        if choice == "1":
            print("Starting agent... press Ctrl+C to stop.")
            run_agent()
        elif choice == "2":
            last_results = search(last_results)
        elif choice == "3":
            track(last_results)
        elif choice == "4":
            show_tracked(list(TrackedGameRepository(make_store()).load().values()))
        elif choice == "5":
            game_id = input("Game id: ").strip()
            _with_service(lambda s: s.remove(game_id))
            print("Removed.")
        elif choice == "6":
            check_now()
        elif choice == "7":
            df = AlertLog().tail()
            print(df.to_string(index=False) if not df.empty else "(no alerts yet)")
        elif choice == "0":
            sys.exit(0)
        else:
            print("??")

if __name__ == "__main__":
    main()
