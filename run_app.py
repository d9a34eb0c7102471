#!/usr/bin/env python3
"""
Storefront Backend Runner
=========================

Usage:
    python run_app.py                    # Development mode with auto-reload
    python run_app.py --mode prod        # Production mode
    python run_app.py --port 8001        # Custom port
    python run_app.py --host 127.0.0.1   # Custom host
"""

import argparse
import os
import sys


def check_environment():
    """Check if environment is properly set up"""
    print("\n🔍 Checking environment...")

    if os.path.exists(".env"):
        print("✅ .env file found")
    else:
        print("⚠️  .env file not found, using environment variables only")

    missing = [
        name for name in ("DATABASE_URL", "SECRET_KEY", "RAZORPAY_KEY_ID", "RAZORPAY_KEY_SECRET")
        if not os.getenv(name)
    ]
    if missing and not os.path.exists(".env"):
        print(f"❌ Missing required settings: {', '.join(missing)}")
        return False

    return True


def run_main_app(host="0.0.0.0", port=8000, reload=True, workers=1):
    """Run the main FastAPI application"""
    print(f"\n🚀 Starting Storefront API on {host}:{port}")
    print(f"📖 API Docs: http://{host}:{port}/api/docs")
    print("\n" + "=" * 50)

    import uvicorn
    uvicorn.run(
        "storefront.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=None if reload else workers,
        log_level="info"
    )


def main():
    parser = argparse.ArgumentParser(
        description="Storefront Backend Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--mode",
        choices=["dev", "prod"],
        default="dev",
        help="Server mode (default: dev)"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Worker processes in prod mode (default: 4)"
    )

    args = parser.parse_args()

    if not check_environment():
        return 1

    run_main_app(args.host, args.port, reload=args.mode == "dev", workers=args.workers)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n👋 Server stopped by user")
        sys.exit(0)
