#!/usr/bin/env python3
"""GestureFlow CLI - run the backend and drive it from the command line."""

import argparse
import json
import logging
import sys

import httpx

from .config import load_settings

API_BASE = "http://127.0.0.1:8765/api"


def _json_out(data):
    print(json.dumps(data))
    sys.exit(0)


def _client() -> httpx.Client:
    return httpx.Client(base_url=API_BASE, timeout=30)


def _api_request(method, endpoint, data=None, params=None):
    """Make a request to the GestureFlow backend."""
    if params:
        params = {k: v for k, v in params.items() if v is not None}

    try:
        with _client() as client:
            response = client.request(method, endpoint, json=data, params=params or None)
    except httpx.TransportError as e:
        _json_out({"status": "error", "error": f"Connection failed: {e}. Is the GestureFlow backend running?"})

    if response.is_error:
        try:
            detail = response.json().get("detail", "Unknown error")
            _json_out({"status": "error", "error": f"API error: {detail}"})
        except ValueError:
            _json_out({"status": "error", "error": f"API error ({response.status_code}): {response.text}"})
    return response.json()


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    import uvicorn

    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "gestureflow.backend.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        log_level=settings.log_level.lower(),
    )


def cmd_health(args):
    _json_out(_api_request("GET", "/health"))


# ── Diagram ──────────────────────────────────────────────────────────────────

def cmd_get_current(args):
    _json_out(_api_request("GET", "/diagram"))


def cmd_load(args):
    try:
        with open(args.file_path) as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        _json_out({"status": "error", "error": f"Cannot read {args.file_path}: {e}"})
    _json_out(_api_request("POST", "/diagram/load", data=document))


def cmd_clear(args):
    _json_out(_api_request("POST", "/diagram/clear"))


def cmd_validate(args):
    _json_out(_api_request("GET", "/diagram/validate"))


# ── Nodes ────────────────────────────────────────────────────────────────────

def cmd_add_node(args):
    _json_out(_api_request("POST", "/nodes", data={
        "x": args.x,
        "y": args.y,
        "label": args.label,
    }))


def cmd_move_node(args):
    _json_out(_api_request("PATCH", f"/nodes/{args.node_id}/position", data={"x": args.x, "y": args.y}))


def cmd_rename_node(args):
    _json_out(_api_request("PATCH", f"/nodes/{args.node_id}/label", data={"label": args.label}))


def cmd_delete_node(args):
    _json_out(_api_request("DELETE", f"/nodes/{args.node_id}"))


def cmd_select_node(args):
    _json_out(_api_request("POST", "/selection/node", data={"id": args.node_id}))


# ── Connections ──────────────────────────────────────────────────────────────

def cmd_connect(args):
    """Arm on the first node and complete on the second."""
    _api_request("POST", "/connections/start", data={"node_id": args.from_node})
    _json_out(_api_request("POST", "/connections/complete", data={"node_id": args.to_node}))


def cmd_delete_connection(args):
    _json_out(_api_request("DELETE", f"/connections/{args.connection_id}"))


def cmd_select_connection(args):
    _json_out(_api_request("POST", "/selection/connection", data={"id": args.connection_id}))


# ── Viewport ─────────────────────────────────────────────────────────────────

def cmd_viewport(args):
    _json_out(_api_request("GET", "/viewport"))


def cmd_pan(args):
    _json_out(_api_request("POST", "/viewport/pan", data={"dx": args.dx, "dy": args.dy}))


def cmd_zoom(args):
    _json_out(_api_request("POST", "/viewport/zoom", data={
        "screen_x": args.screen_x,
        "screen_y": args.screen_y,
        "delta_scale": args.delta,
    }))


# ── Gestures ─────────────────────────────────────────────────────────────────

def cmd_gestures(args):
    if args.action == "on":
        _json_out(_api_request("POST", "/gestures/enable"))
    elif args.action == "off":
        _json_out(_api_request("POST", "/gestures/disable"))
    _json_out(_api_request("GET", "/gestures"))


# ── Files ────────────────────────────────────────────────────────────────────

def cmd_list_files(args):
    _json_out(_api_request("GET", "/files", params={"refresh": "true" if args.refresh else None}))


def cmd_new(args):
    _json_out(_api_request("POST", "/files/new"))


def cmd_open(args):
    _json_out(_api_request("POST", "/files/open", data={"file_path": args.file_path}))


def cmd_save(args):
    _json_out(_api_request("POST", "/files/save"))


def cmd_export(args):
    _json_out(_api_request("POST", "/files/export", data={"file_path": args.file_path}))


def cmd_rename_file(args):
    _json_out(_api_request("PATCH", "/files/current", data={"name": args.name}))


def cmd_close(args):
    _json_out(_api_request("POST", "/files/close"))


def cmd_load_saved(args):
    _json_out(_api_request("POST", f"/files/{args.file_id}/load"))


def cmd_delete_saved(args):
    _json_out(_api_request("DELETE", f"/files/{args.file_id}"))


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gestureflow", description="GestureFlow diagram editor CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # Service
    p = sub.add_parser("serve")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)

    sub.add_parser("health")

    # Diagram
    sub.add_parser("get-current")

    p = sub.add_parser("load")
    p.add_argument("--file-path", required=True)

    sub.add_parser("clear")
    sub.add_parser("validate")

    # Nodes
    p = sub.add_parser("add-node")
    p.add_argument("--x", type=float, default=100)
    p.add_argument("--y", type=float, default=100)
    p.add_argument("--label", default="New Node")

    p = sub.add_parser("move-node")
    p.add_argument("--node-id", required=True)
    p.add_argument("--x", type=float, required=True)
    p.add_argument("--y", type=float, required=True)

    p = sub.add_parser("rename-node")
    p.add_argument("--node-id", required=True)
    p.add_argument("--label", required=True)

    p = sub.add_parser("delete-node")
    p.add_argument("--node-id", required=True)

    p = sub.add_parser("select-node")
    p.add_argument("--node-id", default=None)

    # Connections
    p = sub.add_parser("connect")
    p.add_argument("--from-node", required=True)
    p.add_argument("--to-node", required=True)

    p = sub.add_parser("delete-connection")
    p.add_argument("--connection-id", required=True)

    p = sub.add_parser("select-connection")
    p.add_argument("--connection-id", default=None)

    # Viewport
    sub.add_parser("viewport")

    p = sub.add_parser("pan")
    p.add_argument("--dx", type=float, required=True)
    p.add_argument("--dy", type=float, required=True)

    p = sub.add_parser("zoom")
    p.add_argument("--screen-x", type=float, required=True)
    p.add_argument("--screen-y", type=float, required=True)
    p.add_argument("--delta", type=float, required=True)

    # Gestures
    p = sub.add_parser("gestures")
    p.add_argument("action", nargs="?", choices=["on", "off", "status"], default="status")

    # Files
    p = sub.add_parser("list-files")
    p.add_argument("--refresh", action="store_true")

    sub.add_parser("new")

    p = sub.add_parser("open")
    p.add_argument("--file-path", required=True)

    sub.add_parser("save")

    p = sub.add_parser("export")
    p.add_argument("--file-path", required=True)

    p = sub.add_parser("rename-file")
    p.add_argument("--name", required=True)

    sub.add_parser("close")

    p = sub.add_parser("load-saved")
    p.add_argument("--file-id", required=True)

    p = sub.add_parser("delete-saved")
    p.add_argument("--file-id", required=True)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    cmd_map = {
        "serve": cmd_serve,
        "health": cmd_health,
        "get-current": cmd_get_current,
        "load": cmd_load,
        "clear": cmd_clear,
        "validate": cmd_validate,
        "add-node": cmd_add_node,
        "move-node": cmd_move_node,
        "rename-node": cmd_rename_node,
        "delete-node": cmd_delete_node,
        "select-node": cmd_select_node,
        "connect": cmd_connect,
        "delete-connection": cmd_delete_connection,
        "select-connection": cmd_select_connection,
        "viewport": cmd_viewport,
        "pan": cmd_pan,
        "zoom": cmd_zoom,
        "gestures": cmd_gestures,
        "list-files": cmd_list_files,
        "new": cmd_new,
        "open": cmd_open,
        "save": cmd_save,
        "export": cmd_export,
        "rename-file": cmd_rename_file,
        "close": cmd_close,
        "load-saved": cmd_load_saved,
        "delete-saved": cmd_delete_saved,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
