"""Client endpoints for the API."""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from components.client import schemas
from components.client.repository import ClientRepository
from components.core.init_db import get_db
from components.sale.schemas import Sale
from components.sale.service import SaleService
from components.user import utils
from components.user.models import User
from restapi.endpoints.auth import get_current_user, require_permission

router = APIRouter(
    prefix="/clients",
    tags=["clients"],
    responses={404: {"description": "Not found"}},
)


@router.get("/", response_model=List[schemas.Client])
async def read_clients(
    search: Optional[str] = Query(None, description="Part of the name, CIN or phone number"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get clients, optionally searched."""
    return await ClientRepository(db).get_all(skip=skip, limit=limit, search=search)


@router.post("/", response_model=schemas.Client)
async def create_client(
    client: schemas.ClientCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.EDIT_SALES))
):
    """Create a client; the CIN must be unique."""
    repo = ClientRepository(db)
    if await repo.get_by_cin(client.cin):
        raise HTTPException(status_code=400, detail="A client with this CIN already exists")
    values = client.model_dump()
    values["cin"] = client.cin.strip()
    values["created_by"] = current_user.id
    return await repo.create(values)


@router.get("/by-cin/{cin}", response_model=schemas.Client)
async def read_client_by_cin(
    cin: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a client by exact CIN."""
    client = await ClientRepository(db).get_by_cin(cin)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("/{client_id}", response_model=schemas.Client)
async def read_client(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    client = await ClientRepository(db).get_by_id(client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.put("/{client_id}", response_model=schemas.Client)
async def update_client(
    client_id: int,
    client: schemas.ClientUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.EDIT_SALES))
):
    repo = ClientRepository(db)
    values = client.model_dump(exclude_unset=True)
    if values.get("cin"):
        existing = await repo.get_by_cin(values["cin"])
        if existing and existing.id != client_id:
            raise HTTPException(status_code=400, detail="CIN is already used by another client")
    updated = await repo.update(client_id, values)
    if updated is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return updated


@router.delete("/{client_id}")
async def delete_client(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.EDIT_SALES))
):
    if not await ClientRepository(db).delete(client_id):
        raise HTTPException(status_code=404, detail="Client not found")
    return {"message": "Client deleted successfully"}


@router.get("/{client_id}/sales", response_model=List[schemas.ClientSale])
async def read_client_sales(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """A client's sales with their payment totals."""
    if await ClientRepository(db).get_by_id(client_id) is None:
        raise HTTPException(status_code=404, detail="Client not found")
    details = await SaleService.from_session(db).client_sales(client_id)
    return [
        schemas.ClientSale(
            sale=Sale.model_validate(detail.sale),
            display_status=detail.display_status.value,
            totals=vars(detail.totals),
        )
        for detail in details
    ]
