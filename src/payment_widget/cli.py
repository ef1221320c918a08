from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Sequence, TextIO

from .config import ConfigError, load_config
from .transport import LoopbackTransport
from .widget import PaymentWidget

logger = logging.getLogger(__name__)

ActionHandler = Callable[[PaymentWidget, LoopbackTransport, dict[str, Any]], Any]


def _row_updates(action: dict[str, Any]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    if "amount" in action:
        updates["amount"] = action["amount"]
    if "alias" in action:
        updates["alias_ref"] = action["alias"]
    return updates


_ACTIONS: dict[str, ActionHandler] = {
    "host": lambda widget, transport, action: transport.dispatch(action.get("message"), action.get("origin")),
    "toggle": lambda widget, _, action: widget.toggle_method(action["method"], action.get("enabled")),
    "add_row": lambda widget, _, action: widget.add_split_row(
        action["method"], action.get("amount"), action.get("alias", "")
    ),
    "update_row": lambda widget, _, action: widget.update_split_row(
        action["method"], int(action.get("index", 0)), **_row_updates(action)
    ),
    "remove_row": lambda widget, _, action: widget.remove_split_row(action["method"], int(action.get("index", 0))),
    "total": lambda widget, _, action: widget.set_total(action.get("value")),
    "payer": lambda widget, _, action: widget.set_payer(action.get("value", "")),
    "card": lambda widget, _, action: widget.set_card_details(**action.get("fields", {})),
    "cheque": lambda widget, _, action: widget.set_cheque_details(**action.get("fields", {})),
    "touch": lambda widget, _, action: widget.touch(action["field"]),
    "submit": lambda widget, _, action: widget.submit(),
    "cancel": lambda widget, _, action: widget.cancel(),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payment-widget-sim",
        description="Replay a host/user action script against a headless payment widget.",
    )
    parser.add_argument("script", type=Path, help="JSON file holding a list of actions")
    parser.add_argument("--location", default=None, help="Launch URL or query string carrying ?init=<json>")
    parser.add_argument("--env-file", default=None, help="Optional .env file with PAYMENT_WIDGET_* settings")
    parser.add_argument("--delay", type=float, default=None, help="Override the processing delay in seconds")
    parser.add_argument("--echo", action="store_true", help="Echo widget posts back like a broadcast channel")
    return parser


async def replay(
    actions: Sequence[dict[str, Any]],
    widget: PaymentWidget,
    transport: LoopbackTransport,
    *,
    location: str | None = None,
) -> list[dict[str, Any]]:
    outcomes: list[dict[str, Any]] = []
    widget.mount(location)
    for action in actions:
        op = str(action.get("op") or "")
        if op == "wait":
            await asyncio.sleep(float(action.get("seconds", 0)))
            continue
        handler = _ACTIONS.get(op)
        if handler is None:
            logger.warning("unknown_action", extra={"op": op})
            continue
        outcome = handler(widget, transport, action)
        if isinstance(outcome, dict):
            outcomes.append({"op": op, **outcome})
    if widget.is_submitting:
        await asyncio.sleep(widget.config.processing_delay_seconds + 0.05)
    return outcomes


def run(argv: Sequence[str] | None = None, stdout: TextIO | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    args = build_parser().parse_args(argv)
    out = stdout or sys.stdout

    try:
        config = load_config(args.env_file)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    if args.delay is not None:
        config = replace(config, processing_delay_seconds=max(args.delay, 0.0))

    try:
        actions = json.loads(args.script.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Cannot read action script: {exc}", file=sys.stderr)
        return 2
    if not isinstance(actions, list):
        print("Action script must be a JSON list", file=sys.stderr)
        return 2

    transport = LoopbackTransport(echo=args.echo)
    widget = PaymentWidget(transport, config=config)
    asyncio.run(replay(actions, widget, transport, location=args.location))

    for message in transport.delivered():
        out.write(json.dumps(message, sort_keys=True) + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
