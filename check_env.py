#!/usr/bin/env python3
"""Check the .env file and Supabase settings used by the rating API, creating a template if missing."""

from pathlib import Path
import os
import sys

REQUIRED = ("SHIPRATE_SUPABASE_URL", "SHIPRATE_SUPABASE_KEY")

TEMPLATE = """# Supabase Configuration (required: zones, locations, DIM factors and rate cards live there)
# Get these from: https://supabase.com/dashboard → Your Project → Settings → API
SHIPRATE_SUPABASE_URL=https://your-project-id.supabase.co
SHIPRATE_SUPABASE_KEY=your-service-role-key-here

# API Configuration
SHIPRATE_API_PREFIX=/api
# SHIPRATE_FRONTEND_ALLOWED_ORIGINS - JSON array, e.g. ["http://localhost:5173"]

# Zone import
SHIPRATE_DATA_ROOT=./data
# SHIPRATE_IMPORT_BATCH_SIZE=8
# SHIPRATE_IMPORT_BATCH_PAUSE_SECONDS=0.5
# SHIPRATE_PERSIST_IMPORT_REPORTS=true

# Rating
# SHIPRATE_DEFAULT_CURRENCY=CAD
"""


def _mask(value: str) -> str:
    if len(value) > 30:
        return value[:20] + "..." + value[-6:]
    return value


def _print_env_file(env_file: Path) -> None:
    print(f"✅ Found .env file at: {env_file}")
    print("-" * 60)
    for line in env_file.read_text(encoding="utf-8").splitlines():
        name, sep, value = line.partition("=")
        if sep and name.strip() == "SHIPRATE_SUPABASE_KEY":
            print(f"{name}={_mask(value.strip())}")
        else:
            print(line)
    print("-" * 60)
    print()


def main() -> int:
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Shipment Rating API - environment check")
    print("=" * 60)
    print()

    if not env_file.exists():
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"❌ .env file NOT found, created a template at: {env_file}")
        print("⚠️  Edit it and add your Supabase credentials, then run this script again.")
        return 1

    _print_env_file(env_file)

    for name in REQUIRED:
        value = os.getenv(name)
        if value:
            print(f"✅ {name} (from environment): {_mask(value)}")
        else:
            print(f"ℹ️  {name} not set in environment (may still come from .env)")
    print()

    sys.path.insert(0, str(project_root / "src"))
    try:
        from shiprate.config import settings
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print("Make sure you're running this from the project root directory")
        return 1

    configured = bool(settings.supabase_url and settings.supabase_key)
    print(f"Data root: {settings.data_root}")
    print(f"Import batches: {settings.import_batch_size} zones, {settings.import_batch_pause_seconds}s pause")
    print()
    print("=" * 60)
    if configured:
        print("✅ SUCCESS: Supabase is configured!")
    else:
        print("❌ ERROR: Supabase is NOT configured")
        print("Variables must use the SHIPRATE_ prefix; restart the server after editing .env")
    print("=" * 60)
    return 0 if configured else 1


if __name__ == "__main__":
    sys.exit(main())
