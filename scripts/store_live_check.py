"""Manual live check against a Firestore project.

Run from the repository root with:
  PYTHONPATH=src SENEPARKING_PROJECT_ID=... python scripts/store_live_check.py

Optional environment variables:
  SENEPARKING_BASE_URL      (for example a local emulator)
  SENEPARKING_STORAGE_PATH  (local state file; in memory when unset)
  SENEPARKING_DEBUG         (set to 1 for debug logging)

The script only reads; it never writes to the store.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from seneparking import Client
from seneparking.models import ParkingLot, Reservation


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        print(f"Missing required environment variable: {name}", file=sys.stderr)
        raise SystemExit(2)
    return value


def _format_lot(lot: ParkingLot) -> str:
    ev = f"{lot.available_ev_spots} EV" if lot.has_ev_spots else "no EV"
    return (
        f"{lot.id} | {lot.name} | {lot.available_spots} spots, {ev} | "
        f"{lot.open_time} - {lot.close_time} | {lot.fare_per_day}/day"
    )


def _format_reservation(reservation: Reservation) -> str:
    return (
        f"{reservation.id} | {reservation.parking_lot_name} | {reservation.status} | "
        f"{reservation.start_time} -> {reservation.end_time}"
    )


async def main() -> int:
    project_id = _require_env("SENEPARKING_PROJECT_ID")
    base_url = os.getenv("SENEPARKING_BASE_URL")
    storage_path = os.getenv("SENEPARKING_STORAGE_PATH")
    logging.basicConfig(
        level=logging.DEBUG if os.getenv("SENEPARKING_DEBUG") else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    async with Client(
        project_id=project_id,
        base_url=base_url,
        storage_path=storage_path,
    ) as client:
        lots = await client.lots.list_lots()
        reservations = await client.reservations.list_reservations()
        queued = client.queue.list_queued()

    if lots.stale:
        print(f"Lots (cached, {lots.message}): {len(lots.lots)}")
    else:
        print(f"Lots: {len(lots.lots)}")
    for lot in lots.lots:
        print(f"- {_format_lot(lot)}")
    print(f"Reservations: {len(reservations.reservations)}")
    for reservation in reservations.reservations:
        print(f"- {_format_reservation(reservation)}")
    print(f"Queued offline writes: {len(queued)}")
    return 1 if lots.stale or reservations.stale else 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
