import sys
from fastapi import FastAPI
import uvicorn
from dotenv import load_dotenv
from eventboard.config import Settings
from eventboard.domain.exceptions import ConfigurationError
from eventboard.interfaces.http.app import create_app

load_dotenv()

try:
    settings = Settings()
except ConfigurationError as e:
    print(f"\nConfiguration Error:\n{e}", file=sys.stderr)
    sys.exit(1)
except ValueError as e:
    # pydantic ValidationError, e.g. a non-numeric PORT
    print(f"\nInvalid configuration value:\n{e}", file=sys.stderr)
    sys.exit(1)

app: FastAPI = create_app(settings)

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_config=None,
        access_log=False,
    )
