#!/usr/bin/env python3
"""
Somiti Ledger Entry Point

Starts the FastAPI server with the configured host and port.
"""

import sys

from somiti.api import run_server
from somiti.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Somiti Ledger...")
    print(f"Database: {config.database_url}")
    print(f"Calendar timezone: {config.timezone}")
    print(f"SMS gateway: {'enabled' if config.sms_enabled else 'disabled (messages are logged)'}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug="--reload" in sys.argv)
    except KeyboardInterrupt:
        print("\nShutting down Somiti Ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
