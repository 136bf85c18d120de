import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

import analytics
from auth import authorize
from database import get_db, populate, serialize_doc, serialize_value, to_object_id, utcnow
from errors import NotFoundError
from queries import build_search_filter, paginate, parse_date_range, parse_list_params
from schemas import CustomerStatus

logger = logging.getLogger(__name__)

CUSTOMER_SEARCH_FIELDS = ("name", "email")


def get_now() -> datetime:
    return utcnow()


class StatusUpdateRequest(BaseModel):
    status: CustomerStatus


# Every route below is admin-only.
router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(authorize(["admin"]))])


@router.get("/customers")
def list_customers(search: Optional[str] = None, sortBy: Optional[str] = None, page: Optional[str] = None,
                   limit: Optional[str] = None, db: Database = Depends(get_db)):
    params = parse_list_params(search, sortBy, page, limit)
    result = paginate(db["customer"], build_search_filter(params.search, CUSTOMER_SEARCH_FIELDS), params)
    return {
        "customers": [serialize_doc(c) for c in result.items],
        "totalPages": result.total_pages,
        "currentPage": result.current_page,
        "total": result.total,
    }


@router.get("/customers/{customer_id}")
def get_customer(customer_id: str, db: Database = Depends(get_db)):
    oid = to_object_id(customer_id)
    customer = db["customer"].find_one({"_id": oid}) if oid else None
    if not customer:
        raise NotFoundError("Customer not found")
    orders = list(db["order"].find({"customerId": customer["_id"]}).sort("orderDate", DESCENDING))
    populate(db, orders, "staffId", "staff")
    return {
        "customer": serialize_doc(customer),
        "orders": [serialize_doc(o) for o in orders],
    }


@router.get("/analytics/sales")
def sales_analytics(startDate: Optional[str] = None, endDate: Optional[str] = None,
                    db: Database = Depends(get_db)):
    start, end = parse_date_range(startDate, endDate)
    report = analytics.sales_report(db, start, end)
    top = []
    for row in report["topSellingProducts"]:
        row = dict(row)
        row["product"] = serialize_doc(row["product"])
        top.append(serialize_value(row))
    return {
        "salesByMonth": serialize_value(report["salesByMonth"]),
        "topSellingProducts": top,
    }


@router.get("/analytics/products")
def product_analytics(db: Database = Depends(get_db), now: datetime = Depends(get_now)):
    report = analytics.product_report(db, now)
    return {
        "lowStockProducts": [serialize_doc(p) for p in report["lowStockProducts"]],
        "noSalesProducts": [serialize_doc(p) for p in report["noSalesProducts"]],
        "productSales": serialize_value(report["productSales"]),
    }


@router.patch("/customers/{customer_id}/status")
def update_customer_status(customer_id: str, req: StatusUpdateRequest, db: Database = Depends(get_db)):
    # Last write wins; concurrent updates are not versioned.
    oid = to_object_id(customer_id)
    customer = None
    if oid:
        customer = db["customer"].find_one_and_update(
            {"_id": oid},
            {"$set": {"status": req.status, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
    if not customer:
        raise NotFoundError("Customer not found")
    logger.info("Customer %s status set to %s", customer_id, req.status)
    return serialize_doc(customer)
