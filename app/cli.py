import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from formharvest.logger import set_level
from formharvest.pipeline import capture_html
from formharvest.store import SessionStore, StoreError
from formharvest.sync import CollectorClient, SyncInProgressError, SyncPipeline


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Capture identity form fields from saved pages and sync them to a collector."
    )
    parser.add_argument(
        "--store",
        default=None,
        help="Path to the local session store (default: STORE_PATH from env/.env).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    cap = sub.add_parser("capture", help="Read form fields from an HTML file and store them.")
    cap.add_argument("html_file", help="Saved HTML page.")
    cap.add_argument("--url", required=True, help="URL the page was captured from.")
    cap.add_argument("--parser", default=None, help="BeautifulSoup parser (default: HTML_PARSER).")

    lst = sub.add_parser("list", help="List stored sessions, newest first.")
    lst.add_argument("--unsynced", action="store_true", help="Only sessions still waiting to be synced.")

    syn = sub.add_parser("sync", help="Push unsynced sessions to the collector.")
    syn.add_argument("--title", default="", help="Page title sent with every record.")
    syn.add_argument("--endpoint", default=None, help="Override the collector form-data URL.")
    syn.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds.")

    clr = sub.add_parser("clear", help="Delete every stored session.")
    clr.add_argument("--yes", action="store_true", help="Confirm deletion.")

    fetch = sub.add_parser("fetch", help="Show all records held by the collector.")
    fetch.add_argument("--endpoint", default=None, help="Override the collector bulk-fetch URL.")

    return parser.parse_args(argv)


def _open_store(path: Optional[str]) -> SessionStore:
    return SessionStore(path) if path else SessionStore.from_settings()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        set_level("DEBUG")

    if args.command == "fetch":
        records = CollectorClient(fetch_all_url=args.endpoint).fetch_all()
        print(json.dumps([r.model_dump() for r in records], ensure_ascii=False, indent=2))
        return 0

    try:
        store = _open_store(args.store)
    except StoreError as exc:
        print(f"[error] {exc}")
        return 1

    with store:
        try:
            if args.command == "capture":
                path = Path(args.html_file).expanduser()
                if not path.is_file():
                    print(f"[error] input not found: {args.html_file}")
                    return 1
                html = path.read_text(encoding="utf-8", errors="replace")
                result = capture_html(html, args.url, store=store, parser=args.parser)
                print(result.message)
                if result.session is not None and result.session.duplicate:
                    print("Duplicate of already synced data")
                return 0 if result.success else 1

            if args.command == "list":
                sessions = store.list_sessions(only_unsynced=args.unsynced)
                print(json.dumps([s.to_wire() for s in sessions], ensure_ascii=False, indent=2))
                return 0

            if args.command == "sync":
                client = CollectorClient(form_data_url=args.endpoint, timeout=args.timeout)
                outcome = SyncPipeline(store, client).run(title=args.title)
                print(outcome.message)
                return 0 if outcome.ok else 1

            if args.command == "clear":
                if not args.yes:
                    print("[warn] refusing to clear without --yes")
                    return 1
                removed = store.clear_all()
                print(f"All stored data cleared ({removed} sessions)")
                return 0
        except (StoreError, SyncInProgressError) as exc:
            print(f"[error] {exc}")
            return 1

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
