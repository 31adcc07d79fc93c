#!/usr/bin/env python3
"""
Fake Steam store API server for local development and testing.

Implements the one endpoint steam-library-export uses:
- /api/appdetails?appids=<id>

Canned apps cover the interesting cases: full details, minimal details,
an app the store reports as unsuccessful, and one that returns broken JSON.

Run with: python scripts/fake_steam_store.py --port 9010
Then set in library-export.yaml:
    store:
      api_base: "http://127.0.0.1:9010/api"
"""

import argparse
import json
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

# Fake store database
# Maps app id to the "data" object of an appdetails response
FAKE_APPS = {
    620: {
        "name": "Portal 2",
        "steam_appid": 620,
        "header_image": "https://cdn.example.test/apps/620/header.jpg",
        "short_description": "The &quot;Perpetual Testing Initiative&quot; has been expanded.<br>Co-op included.",
        "developers": ["Valve"],
        "publishers": ["Valve"],
        "release_date": {"coming_soon": False, "date": "18 Apr, 2011"},
        "metacritic": {"score": 95, "url": "https://www.metacritic.com/game/portal-2"},
        "categories": [
            {"id": 2, "description": "Single-player"},
            {"id": 9, "description": "Co-op"},
        ],
        "genres": [{"id": "1", "description": "Action"}, {"id": "25", "description": "Adventure"}],
        "platforms": {"windows": True, "mac": True, "linux": True},
        "controller_support": "full",
        "required_age": 0,
    },
    1145360: {
        "name": "Hades",
        "steam_appid": 1145360,
        "header_image": "https://cdn.example.test/apps/1145360/header.jpg",
        "short_description": "Defy the god of the dead.",
        "developers": ["Supergiant Games"],
        "publishers": ["Supergiant Games"],
        "release_date": {"coming_soon": False, "date": "17 Sep, 2020"},
        "genres": [{"id": "1", "description": "Action"}, {"id": "23", "description": "Indie"}],
    },
    999999: {
        "name": "Upcoming Thing",
        "steam_appid": 999999,
        "release_date": {"coming_soon": True, "date": "Coming soon"},
    },
}

# App ids the store answers with {"success": false}
DELISTED_APPS = {404404}

# App ids that get a malformed body
BROKEN_APPS = {500500}


class FakeStoreHandler(BaseHTTPRequestHandler):
    """HTTP handler implementing the fake appdetails endpoint."""

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        """Override to add prefix."""
        print(f"[FakeStore] {args[0]}")

    def send_json(self, data: dict, status: int = 200) -> None:
        """Send a JSON response."""
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(data).encode())

    def send_raw(self, body: str, status: int = 200) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(body.encode())

    def do_GET(self) -> None:
        """Handle GET requests."""
        parsed = urlparse(self.path)
        query_params = parse_qs(parsed.query)

        if parsed.path == "/api/appdetails":
            self.handle_appdetails(query_params)
        else:
            self.send_json({"error": f"Unknown endpoint: {parsed.path}"}, status=404)

    def handle_appdetails(self, params: dict) -> None:
        """
        Handle appdetails requests.

        The real store answers ``null`` for malformed ids and wraps every
        answer in ``{"<id>": {"success": ..., "data": ...}}``.
        """
        app_ids = params.get("appids", [])
        if not app_ids:
            self.send_raw("null", status=400)
            return

        key = app_ids[0]
        try:
            app_id = int(key)
        except ValueError:
            self.send_raw("null")
            return

        if app_id in BROKEN_APPS:
            self.send_raw('{"' + key + '": {"success": tr')
            return

        if app_id in DELISTED_APPS or app_id not in FAKE_APPS:
            self.send_json({key: {"success": False}})
            return

        self.send_json({key: {"success": True, "data": FAKE_APPS[app_id]}})


def main() -> None:
    parser = argparse.ArgumentParser(description="Run fake Steam store API server")
    parser.add_argument(
        "--port",
        type=int,
        default=9010,
        help="Port to listen on (default: 9010)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    args = parser.parse_args()

    server = HTTPServer((args.host, args.port), FakeStoreHandler)
    print(f"Fake Steam store API running at http://{args.host}:{args.port}/api")
    print("Apps:")
    for app_id, data in FAKE_APPS.items():
        print(f"  {app_id}: {data['name']}")
    print(f"  Unsuccessful: {sorted(DELISTED_APPS)}, malformed JSON: {sorted(BROKEN_APPS)}")
    print()

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
        server.shutdown()


if __name__ == "__main__":
    main()
