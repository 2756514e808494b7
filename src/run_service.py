import logging

import uvicorn
from dotenv import load_dotenv

from core import settings

load_dotenv()

logging.basicConfig(
    level=logging.DEBUG if settings.is_dev() else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

if __name__ == "__main__":
    # reload only in dev; the service keeps store and session state in memory
    uvicorn.run("service:app", host=settings.HOST, port=settings.PORT, reload=settings.is_dev())
