#!/usr/bin/env python3
"""Generate a sample diagnostic seed log with realistic fleet fault patterns."""

import argparse
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path

# (code, message) per severity
CODES = {
    "ERROR": [
        ("P0300", "Random/multiple cylinder misfire detected"),
        ("P0420", "Catalyst system efficiency below threshold"),
        ("P0217", "Engine coolant over temperature condition"),
        ("P0562", "System voltage low"),
        ("U0100", "Lost communication with ECM/PCM"),
    ],
    "WARN": [
        ("P0171", "System too lean (bank 1)"),
        ("P0128", "Coolant thermostat below regulating temperature"),
        ("P0455", "Evaporative emission system leak detected (large)"),
        ("C0035", "Left front wheel speed sensor circuit"),
    ],
    "INFO": [
        ("P0000", "Routine diagnostic check passed"),
        ("B1000", "ECU self-test completed"),
        ("P1000", "OBD readiness monitors complete"),
    ],
}

# Relative frequency of each severity in background traffic
LEVEL_WEIGHTS = {"INFO": 0.7, "WARN": 0.2, "ERROR": 0.1}


def format_line(timestamp: datetime, vehicle_id: str, level: str, code: str, message: str) -> str:
    ts = timestamp.strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"[{ts}] [VEHICLE_ID:{vehicle_id}] [{level}] [CODE:{code}] {message}"


def generate_events(
    vehicle_count: int,
    days: int,
    events_per_day: int,
    faulty_vehicles: int,
    end_time: datetime,
) -> list[tuple]:
    """
    Generate background traffic plus error bursts near ``end_time``.

    Args:
        vehicle_count: Fleet size (VH-1001 onwards)
        days: Days of history
        events_per_day: Background events per vehicle per day
        faulty_vehicles: Vehicles given an error burst in the final day
        end_time: Timestamp of the newest event

    Returns:
        List of (timestamp, vehicle_id, level, code, message), sorted by timestamp
    """
    vehicles = [f"VH-{1001 + i}" for i in range(vehicle_count)]
    start_time = end_time - timedelta(days=days)
    span_sec = int((end_time - start_time).total_seconds())
    levels = list(LEVEL_WEIGHTS)
    weights = list(LEVEL_WEIGHTS.values())

    events = []
    for vehicle_id in vehicles:
        for _ in range(days * events_per_day):
            level = random.choices(levels, weights)[0]
            code, message = random.choice(CODES[level])
            timestamp = start_time + timedelta(seconds=random.randint(0, span_sec))
            events.append((timestamp, vehicle_id, level, code, message))

    # Error bursts inside the trailing 24h so the critical view has content
    for vehicle_id in random.sample(vehicles, min(faulty_vehicles, len(vehicles))):
        code, message = random.choice(CODES["ERROR"])
        for _ in range(random.randint(3, 6)):
            timestamp = end_time - timedelta(minutes=random.randint(0, 20 * 60))
            events.append((timestamp, vehicle_id, "ERROR", code, message))

    # Pin the newest event so the critical window is predictable
    events.append((end_time, vehicles[0], "INFO", *CODES["INFO"][0]))

    events.sort(key=lambda e: e[0])
    return events


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate a sample diagnostic seed log for local mode"
    )
    parser.add_argument("--vehicles", type=int, default=12, help="Fleet size (default: 12)")
    parser.add_argument("--days", type=int, default=7, help="Days of history (default: 7)")
    parser.add_argument(
        "--events_per_day",
        type=int,
        default=20,
        help="Background events per vehicle per day (default: 20)",
    )
    parser.add_argument(
        "--faulty_vehicles",
        type=int,
        default=3,
        help="Vehicles with a recent error burst (default: 3)",
    )
    parser.add_argument(
        "--malformed",
        type=int,
        default=2,
        help="Malformed lines mixed in to exercise the parser (default: 2)",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--output",
        type=str,
        default="../../data/seed.log",
        help="Output file (default: ../../data/seed.log)",
    )

    args = parser.parse_args()
    random.seed(args.seed)

    end_time = datetime.now(timezone.utc).replace(microsecond=0)
    events = generate_events(
        vehicle_count=args.vehicles,
        days=args.days,
        events_per_day=args.events_per_day,
        faulty_vehicles=args.faulty_vehicles,
        end_time=end_time,
    )

    lines = [
        "# Fleet diagnostic seed log",
        f"# Generated {end_time.isoformat()} ({len(events)} events)",
        "",
    ]
    lines.extend(format_line(*e) for e in events)
    for i in range(args.malformed):
        position = random.randint(3, len(lines))
        lines.insert(position, f"corrupted line {i} [VEHICLE_ID:??]")

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text("\n".join(lines) + "\n", encoding="utf-8")

    print(f"Generating sample data:")
    print(f"  Vehicles: {args.vehicles}")
    print(f"  Days: {args.days}")
    print(f"  Events: {len(events)} (+{args.malformed} malformed lines)")
    print(f"  Output: {output} ({output.stat().st_size / 1024:.1f} KB)")
    print("\nSample data generation complete!")


if __name__ == "__main__":
    main()
