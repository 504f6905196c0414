#!/usr/bin/env python3
"""Run script for BalanceFlow."""

import logging

import uvicorn

from balanceflow.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "balanceflow.api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
