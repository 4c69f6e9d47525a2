from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def ok(data=None, meta=None, status: int = 200):
    return JSONResponse(
        status_code=status,
        content=jsonable_encoder(
            {
                "ok": True,
                "data": data,
                "meta": meta or {},
            }
        ),
    )


def error(message: str, code: str = "error", status: int = 400):
    return JSONResponse(
        status_code=status,
        content={
            "ok": False,
            "error": code,
            "message": message,
        },
    )
