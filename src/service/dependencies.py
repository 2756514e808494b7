from fastapi import HTTPException, Request

from insight import InsightContext


def get_context(request: Request) -> InsightContext:
    context = getattr(request.app.state, "insight", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return context
