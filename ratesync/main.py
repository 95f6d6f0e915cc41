import logging

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, WebSocket
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import db
from .realtime import RealtimeHub
from .schemas import ProductIn, ProductUpdateIn, RateUpdateIn
from .topics import Topic

log = logging.getLogger("uvicorn.error")

router = APIRouter()


def get_hub(request: Request) -> RealtimeHub:
    return request.app.state.hub


@router.websocket("/ws")
async def ws(ws: WebSocket):
    hub: RealtimeHub = ws.app.state.hub
    await hub.connect(ws)
    try:
        while True:
            # Push-only channel; client frames (text "ping", binary, ...) are read and ignored
            msg = await ws.receive()
            if msg["type"] == "websocket.disconnect":
                break
    except Exception as e:
        log.warning(f"[WS] session error: {e!r}")
    finally:
        hub.disconnect(ws)


@router.get("/api/health")
def api_health(hub: RealtimeHub = Depends(get_hub)):
    return {"ok": True, "sessions": hub.session_count}


# -----------------------------
# Rates
# -----------------------------
@router.get("/api/rates")
def api_rates():
    return db.list_rates()


@router.get("/api/rates/{rate_id}")
def api_rate(rate_id: int):
    rate = db.get_rate(rate_id)
    if not rate:
        raise HTTPException(status_code=404, detail="Rate not found")
    return rate


@router.post("/api/rates/update")
async def api_update_rate(body: RateUpdateIn, response: Response, hub: RealtimeHub = Depends(get_hub)):
    rate, created = db.update_rate_by_type(body.type, body.current, body.category)
    if created:
        response.status_code = 201
        log.info(f"[RATES] created {rate['type']} at {rate['current']}")
    else:
        log.info(f"[RATES] {rate['type']} -> {rate['current']}")

    await hub.publish(Topic.RATE_UPDATED, rate)
    return rate


# -----------------------------
# Collections
# -----------------------------
@router.get("/api/collections")
def api_collections():
    return db.list_collections()


@router.get("/api/collections/{collection_id}/products")
def api_collection_products(collection_id: int):
    if not db.get_collection(collection_id):
        raise HTTPException(status_code=404, detail="Collection not found")
    return db.list_products(collection_id=collection_id)


# -----------------------------
# Products
# -----------------------------
@router.get("/api/products")
def api_products():
    return db.list_products()


@router.get("/api/products/{product_id}")
def api_product(product_id: int):
    product = db.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("/api/products", status_code=201)
async def api_create_product(body: ProductIn, hub: RealtimeHub = Depends(get_hub)):
    if not db.get_collection(body.collection_id):
        raise HTTPException(status_code=400, detail="Collection does not exist")

    product = db.create_product(body.model_dump())
    await hub.publish(Topic.PRODUCT_CREATED, product)
    return product


@router.put("/api/products/{product_id}")
async def api_update_product(product_id: int, body: ProductUpdateIn, hub: RealtimeHub = Depends(get_hub)):
    # null only clears the description
    fields = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "description"}
    if fields.get("collection_id") is not None and not db.get_collection(fields["collection_id"]):
        raise HTTPException(status_code=400, detail="Collection does not exist")
    if not db.get_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")

    product = db.update_product(product_id, fields)
    await hub.publish(Topic.PRODUCT_UPDATED, product)
    return product


@router.delete("/api/products/{product_id}", status_code=204)
async def api_delete_product(product_id: int, hub: RealtimeHub = Depends(get_hub)):
    if not db.delete_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")

    await hub.publish(Topic.PRODUCT_DELETED, {"id": product_id})
    return Response(status_code=204)


def create_app(hub: RealtimeHub | None = None) -> FastAPI:
    app = FastAPI(title="ratesync")
    app.state.hub = hub or RealtimeHub()
    app.include_router(router)

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.on_event("startup")
    async def startup():
        log.info("[STARTUP] init_db()")
        db.init_db()

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.hub.close()
        log.info("[SHUTDOWN] websocket sessions closed")

    return app


app = create_app()
