#!/usr/bin/env python3
"""
Banking Panel Entry Point

Starts the FastAPI server for the banking panel API.
"""

import sys

from banking_panel.api import run_server
from banking_panel.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🏦 Starting Banking Panel...")
    print(f"🗄️  Backend mode: {config.backend_mode}")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server()
    except KeyboardInterrupt:
        print("\n👋 Shutting down Banking Panel...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
