"""
Utilities for Reports module

Provides CSV export functionality and formatting helpers
for report generation.
"""

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List

from fastapi import Response

from bookstore_pos.core.config import settings


def create_csv_response(
    data: List[Dict[str, Any]],
    filename: str,
    headers: Dict[str, str] = None
) -> Response:
    """
    Create a CSV response from a list of dictionaries.

    Args:
        data: List of dictionaries with report data
        filename: Name for the CSV file
        headers: Optional mapping of field names to CSV headers

    Returns:
        FastAPI Response with CSV content
    """
    delimiter = settings.CSV_DELIMITER
    if not data:
        # Return empty CSV with just headers
        csv_content = ""
        if headers:
            csv_content = delimiter.join(headers.values()) + "\n"
    else:
        output = io.StringIO()

        # Use headers mapping if provided, otherwise use keys from first row
        fieldnames = list(headers.keys()) if headers else list(data[0].keys())
        csv_headers = list(headers.values()) if headers else fieldnames

        writer = csv.DictWriter(output, fieldnames=fieldnames, delimiter=delimiter, extrasaction="ignore")
        writer.writerow(dict(zip(fieldnames, csv_headers)))

        for row in data:
            writer.writerow({key: format_csv_value(value) for key, value in row.items()})

        csv_content = output.getvalue()
        output.close()

    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Content-Type": "text/csv; charset=utf-8"
        }
    )


def format_csv_value(value: Any) -> str:
    """
    Format a value for CSV export.

    Args:
        value: Value to format

    Returns:
        String representation suitable for CSV
    """
    if value is None:
        return ""
    elif isinstance(value, Enum):
        return str(value.value)
    elif isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, (date, datetime)):
        return value.isoformat()
    elif isinstance(value, bool):
        return "Yes" if value else "No"
    else:
        return str(value)


def prepare_sales_list_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Prepare sales list data for CSV export"""
    csv_data = []
    for sale in report_data["items"]:
        csv_data.append({
            "id": sale.id,
            "created_at": sale.created_at,
            "customer_name": sale.customer_name,
            "tender_type": sale.tender_type,
            "total": sale.total,
            "line_count": sale.line_count,
            "cash_session_id": sale.cash_session_id
        })
    return csv_data


def prepare_sales_by_book_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Prepare sales by book data for CSV export"""
    csv_data = []
    for item in report_data["items"]:
        csv_data.append({
            "isbn": item["isbn"],
            "title": item["title"],
            "author": item["author"],
            "publisher": item.get("publisher", ""),
            "condition": item["condition"],
            "quantity_total": item["quantity_total"],
            "revenue_total": item["revenue_total"],
            "average_unit_price": item["average_unit_price"],
            "sales_count": item["sales_count"]
        })
    return csv_data


def prepare_cash_session_history_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Prepare cash session history data for CSV export"""
    csv_data = []
    for item in report_data["items"]:
        reconciliation = item.get("reconciliation") or {}
        csv_data.append({
            "id": item["id"],
            "status": item["status"],
            "opened_at": item["opened_at"],
            "closed_at": item["closed_at"],
            "opening_float": item["opening_float"],
            "total_registered": item["total_registered"],
            "total_conferred": item["total_conferred"],
            "expected_cash": reconciliation.get("expected_cash"),
            "cash_variance": reconciliation.get("cash_variance"),
            "total_variance": reconciliation.get("total_variance"),
            "movements_count": len(item["movements"])
        })
    return csv_data


# CSV Headers mapping for different reports
CSV_HEADERS = {
    "sales_list": {
        "id": "Sale ID",
        "created_at": "Date",
        "customer_name": "Customer",
        "tender_type": "Tender Type",
        "total": "Total",
        "line_count": "Lines",
        "cash_session_id": "Cash Session"
    },
    "sales_by_book": {
        "isbn": "ISBN",
        "title": "Title",
        "author": "Author",
        "publisher": "Publisher",
        "condition": "Condition",
        "quantity_total": "Quantity",
        "revenue_total": "Revenue",
        "average_unit_price": "Average Unit Price",
        "sales_count": "Sales Count"
    },
    "cash_session_history": {
        "id": "Session ID",
        "status": "Status",
        "opened_at": "Opened At",
        "closed_at": "Closed At",
        "opening_float": "Opening Float",
        "total_registered": "Total Registered",
        "total_conferred": "Total Conferred",
        "expected_cash": "Expected Cash",
        "cash_variance": "Cash Variance",
        "total_variance": "Total Variance",
        "movements_count": "Movements"
    }
}
