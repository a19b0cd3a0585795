# Serverless entry point (Vercel): exposes cropsight.main:app as `app`
import json
import logging
import sys

logger = logging.getLogger(__name__)

startup_error = None

try:
    from cropsight.main import app
except Exception as e:
    import traceback
    logger.exception("CropSight failed to start")
    startup_error = {
        "service": "CropSight Plant Analysis",
        "error": str(e),
        "type": type(e).__name__,
        "traceback": traceback.format_exc(),
        "python_version": sys.version,
    }

    # Report the import failure on every HTTP request instead of crashing the function
    async def app(scope, receive, send):
        if scope["type"] != "http":
            return
        body = json.dumps(startup_error, ensure_ascii=False).encode("utf-8")
        await send({
            "type": "http.response.start",
            "status": 503,
            "headers": [[b"content-type", b"application/json; charset=utf-8"]],
        })
        await send({"type": "http.response.body", "body": body})
