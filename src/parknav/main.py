# main.py
# Entry point: simulates a drive feeding positions and headings into the
# NavigationOrchestrator, which queues them on its own EventPump.
# In production, replace the replay sources with real GPS / compass backends.

import argparse
import logging
import time

from .geo_utils import calculate_bearing, interpolate
from .models import Coord, HeadingSample, InteractionKind, NavigationFrame, PositionSample, UserInteraction
from .nav_config import NavConfig
from .navigator import NavigationOrchestrator
from .router.route_provider import RouteProviderKind, create_route_provider
from .sensors.sources import ReplayHeadingSource, ReplayPositionSource

# ------------------------------------------------------------------
# Logging setup: configure once here, all modules inherit
# ------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("parknav")

# ------------------------------------------------------------------
# Simulation coordinates (Sıhhiye → Kurtuluş, Ankara)
# ------------------------------------------------------------------
ORIGIN      = Coord(39.92409, 32.845382)
DESTINATION = Coord(39.9398, 32.8620)


def _print_frame(frame: NavigationFrame) -> None:
    progress = frame.progress
    if progress is None:
        return
    nxt = progress.next_instruction or "Arrive"
    nxt_dist = progress.next_instruction_distance_m
    pose = frame.pose
    print(
        f"  leg {progress.leg_index}  remaining {progress.remaining_distance_m:7.0f} m "
        f"/ {progress.remaining_time_s:5.0f} s  | next: {nxt}"
        + (f" in {nxt_dist:.0f} m" if nxt_dist is not None else "")
        + f"  | cam {pose.mode.value} z{pose.zoom:.0f} p{pose.pitch:.0f} b{pose.bearing:.0f}"
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulated navigation drive.")
    parser.add_argument("--steps", type=int, default=40, help="number of simulated GPS fixes")
    parser.add_argument("--interval", type=float, default=1.2, help="simulated seconds between fixes")
    parser.add_argument("--power-saving", action="store_true")
    args = parser.parse_args()

    # 1. Wire collaborators explicitly (no global services)
    config = NavConfig(idle_timeout_s=1.0)
    positions = ReplayPositionSource()
    headings = ReplayHeadingSource()
    provider = create_route_provider(RouteProviderKind.MOCK, speed_mps=config.mock_speed_mps)

    nav = NavigationOrchestrator(positions, headings, provider, config=config)
    nav.throttler.power_saving = args.power_saving
    nav.subscribe_frames(_print_frame)
    nav.subscribe_ended(lambda: print("[Nav] Navigation ended."))

    # 2. First fix, then request a route from the current position
    positions.emit(PositionSample(ORIGIN, timestamp=0.0, speed=0.0))
    route = nav.navigate_to(DESTINATION)
    print(f"[Nav] Route ready: {len(route.legs)} legs, {route.distance_m:.0f} m.")

    print("\n--- GPS Loop Active ---")

    # 3. Drive along the route; one user pan halfway through
    prev = ORIGIN
    for i in range(1, args.steps + 1):
        t = i * args.interval
        here = interpolate(ORIGIN, DESTINATION, i / args.steps)
        positions.emit(PositionSample(here, timestamp=t, speed=config.mock_speed_mps))
        headings.emit(HeadingSample(calculate_bearing(prev, here), timestamp=t))
        prev = here

        if i == args.steps // 2:
            nav.on_user_interaction(UserInteraction(InteractionKind.PAN, timestamp=t, center=here))

        # Simulate GPS poll interval (remove in real use)
        time.sleep(0.05)

    nav.pump.join()
    if nav.arrived:
        print("  ✓  Destination reached.")
    nav.end_navigation()

    print("\n--- Session complete ---")
    print(f"    Throttled samples: {nav.throttler.rejected_counts}")


if __name__ == "__main__":
    main()
