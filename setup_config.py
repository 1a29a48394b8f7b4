#!/usr/bin/env python3
"""Interactive setup helper for Campus Calendar configuration."""

import sys
from pathlib import Path


def main(env_file: Path = Path(".env")):
    print("\n" + "=" * 70)
    print("📅 Campus Calendar - Configuration Setup")
    print("=" * 70 + "\n")

    if env_file.exists():
        response = input("⚠️  .env file already exists. Overwrite? (y/N): ")
        if response.lower() != 'y':
            print("Setup cancelled.")
            return

    # Backend
    print("─" * 70)
    print("Backend Configuration")
    print("─" * 70)

    backend = input("\nBackend (memory/rest) [memory]: ").strip().lower() or "memory"
    backend_url = ""
    backend_api_key = ""
    seed_file = ""
    if backend == "rest":
        backend_url = input("Project URL (e.g., https://xyz.supabase.co): ").strip()
        backend_api_key = input("Public (anon) API key: ").strip()
    else:
        seed_file = input("Seed file (YAML, press Enter to skip): ").strip()

    # Dashboard
    print("\n" + "─" * 70)
    print("Dashboard Configuration")
    print("─" * 70)

    timezone = input("\nCalendar timezone [UTC]: ").strip() or "UTC"
    share_base_url = (
        input("Base URL for share links [http://localhost:5173]: ").strip()
        or "http://localhost:5173"
    )

    # Generate .env file
    env_content = f"""# Backend Configuration
CAMPUS_BACKEND={backend}
CAMPUS_BACKEND_URL={backend_url}
CAMPUS_BACKEND_API_KEY={backend_api_key}
CAMPUS_REQUEST_TIMEOUT=15
CAMPUS_SEED_FILE={seed_file}

# Dashboard Configuration
CAMPUS_TIMEZONE={timezone}
CAMPUS_DEFAULT_VIEW=month
CAMPUS_AGGREGATE_MARKER=main

# Share Links
CAMPUS_SHARE_BASE_URL={share_base_url}
CAMPUS_SHARE_TTL_DAYS=30

# Logging Configuration
LOG_LEVEL=INFO
LOG_FILE=campus_calendar.log
"""

    with open(env_file, "w") as f:
        f.write(env_content)

    print("\n" + "=" * 70)
    print(f"✅ Configuration saved to {env_file}")
    print("=" * 70)

    print("\n📋 Next steps:")
    if backend == "rest":
        print("1. Make sure the profiles, calendars, event_types and events tables exist")
        print("2. Run: campus-calendar --email you@example.edu --password ... --list-calendars")
    else:
        print("1. Run: campus-calendar --email you@example.edu --list-calendars --events")
    print()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nSetup cancelled.")
        sys.exit(0)
