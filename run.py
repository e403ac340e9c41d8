#!/usr/bin/env python3
"""
Installment Engine Entry Point

Starts the FastAPI server with the configured storage backend and logging.
"""

import sys

from installment_engine.api import run_server
from installment_engine.config import get_config
from installment_engine.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(
        level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file
    )

    print("Starting Installment Engine...")
    print(f"Storage: {config.storage_backend} ({config.database_path})")
    print(f"Currency: {config.currency_code}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(host=config.api_host, port=config.api_port, debug=False)
    except KeyboardInterrupt:
        print("\nShutting down Installment Engine...")
    except Exception as e:
        logger.exception("Server failed to start")
        print(f"Error starting server: {e}")
        sys.exit(1)
