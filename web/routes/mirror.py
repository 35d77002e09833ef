"""
로컬 미러 조회 라우트

동기화 패스가 채운 Fiken 미러 조회 (원격 호출 없음)
- GET /api/local/contacts[?q=]
- GET /api/local/sales
- GET /api/local/accounts
- GET /api/local/products[?q=]
"""

from fastapi import APIRouter, Depends, Query

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.storage.mirror_store import MirrorStore
from web.dependencies import get_db
from web.models.responses import MirrorListResponse

router = APIRouter(prefix="/api/local", tags=["Mirror"])


@router.get("/contacts", response_model=MirrorListResponse)
async def list_contacts(
    q: str | None = Query(default=None, description="이름/이메일 부분 일치"),
    limit: int = Query(default=100, ge=1, le=1000),
    db: SQLiteAdapter = Depends(get_db),
) -> MirrorListResponse:
    items = await MirrorStore(db).search_contacts(q, limit=limit)
    return MirrorListResponse(items=items, count=len(items))


@router.get("/sales", response_model=MirrorListResponse)
async def list_sales(
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: SQLiteAdapter = Depends(get_db),
) -> MirrorListResponse:
    items = await MirrorStore(db).list_sales(limit=limit, offset=offset)
    return MirrorListResponse(items=items, count=len(items))


@router.get("/accounts", response_model=MirrorListResponse)
async def list_accounts(db: SQLiteAdapter = Depends(get_db)) -> MirrorListResponse:
    items = await MirrorStore(db).list_accounts()
    return MirrorListResponse(items=items, count=len(items))


@router.get("/products", response_model=MirrorListResponse)
async def list_products(
    q: str | None = Query(default=None, description="이름/상품 번호 부분 일치"),
    limit: int = Query(default=100, ge=1, le=1000),
    db: SQLiteAdapter = Depends(get_db),
) -> MirrorListResponse:
    items = await MirrorStore(db).search_products(q, limit=limit)
    return MirrorListResponse(items=items, count=len(items))
