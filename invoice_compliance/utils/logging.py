"""Structured logging for the invoice compliance service"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class StructuredLogger:
    """
    JSON-line logger shared by every component of the engine.

    ``log_step`` records progress at INFO as ``STEP: {...}``, ``log_error``
    records caught failures at ERROR as ``ERROR: {...}``. Both go to the
    console, to ``compliance_service.log`` and (errors only) to
    ``compliance_service_error.log`` under LOG_DIR.
    """

    def __init__(self, component: str = "compliance_engine"):
        self.component = component
        self.logger = logging.getLogger(component)
        self.logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

        if not self.logger.handlers:
            self._attach_handlers(Path(settings.LOG_DIR))

    def _attach_handlers(self, log_dir: Path) -> None:
        formatter = logging.Formatter(LOG_FORMAT)
        log_dir.mkdir(parents=True, exist_ok=True)

        handlers = [
            (logging.StreamHandler(), None),
            (logging.FileHandler(log_dir / "compliance_service.log", encoding="utf-8"), logging.INFO),
            (logging.FileHandler(log_dir / "compliance_service_error.log", encoding="utf-8"), logging.ERROR),
        ]
        for handler, level in handlers:
            if level is not None:
                handler.setLevel(level)
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

        self.logger.propagate = False

    def _payload(self, key: str, name: str, data: Optional[Dict[str, Any]]) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            key: name,
            "component": self.component,
        }
        if data:
            payload.update(data)
        return json.dumps(payload, default=str)

    def log_step(self, step: str, data: Optional[Dict[str, Any]] = None):
        """Log a processing step"""
        self.logger.info(f"STEP: {self._payload('step', step, data)}")

    def log_error(self, error_type: str, data: Optional[Dict[str, Any]] = None):
        """Log a caught error"""
        self.logger.error(f"ERROR: {self._payload('error', error_type, data)}")


# Global logger instance
logger = StructuredLogger()
