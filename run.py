"""Run script for the invoice compliance service"""

import uvicorn

from invoice_compliance.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "invoice_compliance.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
