"""
Read-only sales and product analytics built as MongoDB aggregation pipelines.

Nothing here reads the wall clock; callers pass ``now`` so reports are
reproducible for a given store state.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pymongo.database import Database

from database import populate
from schemas import COMPLETED

LOW_STOCK_THRESHOLD = 10
TOP_PRODUCTS_LIMIT = 10
NO_SALES_WINDOW = timedelta(days=30)

ORDER_DETAILS_LOOKUP = {
    "$lookup": {
        "from": "orderdetail",
        "localField": "_id",
        "foreignField": "orderId",
        "as": "items",
    }
}


def completed_orders_match(start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
    match: Dict[str, Any] = {"status": COMPLETED}
    bounds: Dict[str, Any] = {}
    if start is not None:
        bounds["$gte"] = start
    if end is not None:
        bounds["$lte"] = end
    if bounds:
        match["orderDate"] = bounds
    return match


def sales_by_month_pipeline(match: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"$match": match},
        {
            "$group": {
                "_id": {
                    "year": {"$year": "$orderDate"},
                    "month": {"$month": "$orderDate"},
                },
                "totalSales": {"$sum": "$totalAmount"},
                "orderCount": {"$sum": 1},
            }
        },
        {"$sort": {"_id.year": 1, "_id.month": 1}},
    ]


def top_selling_products_pipeline(match: Dict[str, Any], limit: int = TOP_PRODUCTS_LIMIT) -> List[Dict[str, Any]]:
    return [
        {"$match": match},
        ORDER_DETAILS_LOOKUP,
        {"$unwind": "$items"},
        {
            "$group": {
                "_id": "$items.productId",
                "totalQuantity": {"$sum": "$items.quantity"},
                "totalRevenue": {"$sum": {"$multiply": ["$items.quantity", "$items.unitPrice"]}},
            }
        },
        {"$sort": {"totalQuantity": -1, "_id": 1}},
        {"$limit": limit},
        {
            "$lookup": {
                "from": "product",
                "localField": "_id",
                "foreignField": "_id",
                "as": "product",
            }
        },
        {"$unwind": "$product"},
    ]


def product_sales_pipeline(since: datetime) -> List[Dict[str, Any]]:
    return [
        {"$match": {"orderDate": {"$gte": since}, "status": COMPLETED}},
        ORDER_DETAILS_LOOKUP,
        {"$unwind": "$items"},
        {"$group": {"_id": "$items.productId", "totalSales": {"$sum": "$items.quantity"}}},
    ]


def sales_by_month(db: Database, start: Optional[datetime] = None, end: Optional[datetime] = None):
    return list(db["order"].aggregate(sales_by_month_pipeline(completed_orders_match(start, end))))


def top_selling_products(db: Database, start: Optional[datetime] = None, end: Optional[datetime] = None,
                         limit: int = TOP_PRODUCTS_LIMIT):
    return list(db["order"].aggregate(top_selling_products_pipeline(completed_orders_match(start, end), limit)))


def low_stock_products(db: Database, threshold: int = LOW_STOCK_THRESHOLD):
    products = list(db["product"].find({"stockQuantity": {"$lt": threshold}}))
    return populate(db, products, "brandId", "brand")


def product_sales_since(db: Database, since: datetime):
    return list(db["order"].aggregate(product_sales_pipeline(since)))


def products_without_sales(db: Database, sold_product_ids: List[Any]):
    products = list(db["product"].find({"_id": {"$nin": sold_product_ids}}))
    return populate(db, products, "brandId", "brand")


def sales_report(db: Database, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "salesByMonth": sales_by_month(db, start, end),
        "topSellingProducts": top_selling_products(db, start, end),
    }


def product_report(db: Database, now: datetime) -> Dict[str, Any]:
    low_stock = low_stock_products(db)
    product_sales = product_sales_since(db, now - NO_SALES_WINDOW)
    sold_ids = [row["_id"] for row in product_sales]
    return {
        "lowStockProducts": low_stock,
        "noSalesProducts": products_without_sales(db, sold_ids),
        "productSales": product_sales,
    }
