"""
server.py - HTTP tool server.

Exposes every analysis tool over HTTP:

    GET  /api/tools          list tools, descriptions and request fields
    POST /api/tools/{name}   run a tool with the JSON request body

Run: perfscope serve [--host HOST] [--port PORT]

Cross-origin browser access is off by default. Set PERFSCOPE_ALLOWED_ORIGINS
to a comma-separated list of origins (or "*") to allow a web front end.
"""
import logging
import os

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .analysis.batch import BatchError
from .api_handlers import get_handler, list_tools
from .loader import ProfileLoadError

logger = logging.getLogger(__name__)


def parse_origins(value: str) -> list[str]:
    """Comma-separated origins; blanks dropped, so "" means none."""
    return [origin.strip() for origin in value.split(",") if origin.strip()]


ALLOWED_ORIGINS = parse_origins(os.environ.get("PERFSCOPE_ALLOWED_ORIGINS", ""))

app = FastAPI(
    title="perfscope tool server",
    version=__version__,
    description="Browser performance profile analysis tools"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check
@app.get("/")
@app.get("/api")
def health():
    return {
        "status": "ok",
        "service": "perfscope",
        "version": __version__,
    }


@app.get("/api/tools")
def tools_endpoint():
    return {"tools": list_tools()}


@app.post("/api/tools/{name}")
async def tool_endpoint(name: str, request: Request):
    """
    Run one tool.

    Request: the tool's fields, e.g. { "path": "profile.json.gz" }
    Response: the tool result plus "success": true

    Status codes: 404 unknown tool, 400 invalid request, 422 profile could
    not be loaded, 500 anything else.
    """
    try:
        handler = get_handler(name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown tool '{name}'")

    try:
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Request body must be JSON")
        if not isinstance(data, dict):
            raise HTTPException(status_code=400, detail="Request body must be a JSON object")

        return handler(data)

    except HTTPException:
        raise
    except (ProfileLoadError, BatchError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("tool %s failed", name)
        raise HTTPException(status_code=500, detail=str(e))
