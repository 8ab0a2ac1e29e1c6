"""
Excel import/export for contracts and their assets.

Workbook layout: a "Contracts" sheet and an "Assets" sheet joined by the
contract ID column. Imports also accept the Korean sheet and header names
used by older exports.
"""
import io
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font

from ..models.models import Contract


CONTRACT_SHEET = "Contracts"
ASSET_SHEET = "Assets"
CONTRACT_SHEET_ALIASES = ("계약 목록",)
ASSET_SHEET_ALIASES = ("자산 목록",)

CONTRACT_HEADERS = [
    "ID",
    "Customer",
    "Project",
    "Start Date",
    "End Date",
    "Notes",
    "Asset Count",
    "Created",
    "Updated",
]

ASSET_HEADERS = [
    "Contract ID",
    "Customer",
    "Project",
    "Asset ID",
    "Category",
    "Item",
    "Product",
    "Qty",
    "Cycle",
    "Scope",
    "Company",
    "Remark",
    "Main Engineer",
    "Main Engineer Phone",
    "Main Engineer Email",
]

# 비고 is Notes on the contract sheet but Remark on the asset sheet
CONTRACT_HEADER_ALIASES = {
    "고객사명": "Customer",
    "프로젝트명": "Project",
    "시작일": "Start Date",
    "종료일": "End Date",
    "비고": "Notes",
    "자산수": "Asset Count",
    "생성일": "Created",
    "수정일": "Updated",
}

ASSET_HEADER_ALIASES = {
    "계약ID": "Contract ID",
    "고객사": "Customer",
    "프로젝트": "Project",
    "자산ID": "Asset ID",
    "카테고리": "Category",
    "품목": "Item",
    "모델": "Product",
    "수량": "Qty",
    "점검주기": "Cycle",
    "유지보수범위": "Scope",
    "업체명": "Company",
    "비고": "Remark",
    "주담당자": "Main Engineer",
    "주담당자연락처": "Main Engineer Phone",
    "주담당자이메일": "Main Engineer Email",
}


class WorkbookFormatError(ValueError):
    pass


def _iso(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    return value.isoformat()


def _write_sheet(ws, headers: List[str], rows: List[List[Any]]) -> None:
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append(row)
    for idx, header in enumerate(headers, start=1):
        width = max([len(str(header))] + [len(str(r[idx - 1] or "")) for r in rows]) + 2
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = min(width, 60)


def _to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_workbook(contracts: List[Contract]) -> bytes:
    contract_rows = []
    asset_rows = []
    for c in contracts:
        contract_rows.append(
            [
                c.id,
                c.customer_name,
                c.project_title,
                _iso(c.start_date),
                _iso(c.end_date),
                c.notes or "",
                len(c.assets),
                _iso(c.created_at),
                _iso(c.updated_at),
            ]
        )
        for a in c.assets:
            asset_rows.append(
                [
                    c.id,
                    c.customer_name,
                    c.project_title,
                    a.id,
                    a.category,
                    a.item,
                    a.product,
                    a.qty,
                    a.cycle or "",
                    a.scope or "",
                    a.company or "",
                    a.remark or "",
                    a.engineer_main_name or "",
                    a.engineer_main_phone or "",
                    a.engineer_main_email or "",
                ]
            )

    wb = Workbook()
    ws = wb.active
    ws.title = CONTRACT_SHEET
    _write_sheet(ws, CONTRACT_HEADERS, contract_rows)
    _write_sheet(wb.create_sheet(ASSET_SHEET), ASSET_HEADERS, asset_rows)
    return _to_bytes(wb)


def build_template() -> bytes:
    """Blank workbook with one sample contract and asset row."""
    wb = Workbook()
    ws = wb.active
    ws.title = CONTRACT_SHEET
    _write_sheet(
        ws,
        CONTRACT_HEADERS,
        [[1, "Example Corp", "2025 Security Maintenance", "2025-01-01", "2025-12-31", "", 1, "", ""]],
    )
    _write_sheet(
        wb.create_sheet(ASSET_SHEET),
        ASSET_HEADERS,
        [[1, "Example Corp", "2025 Security Maintenance", 101, "HW", "Firewall", "AXGATE 1300S", 2, "month",
          "HW support included", "Example Systems", "", "Jane Doe", "010-0000-0000", "jane@example.com"]],
    )
    return _to_bytes(wb)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _sheet_records(ws, aliases: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
    rows = list(ws.values)
    if not rows:
        return []
    aliases = aliases or {}
    headers = [str(h).strip() if h is not None else "" for h in rows[0]]
    headers = [aliases.get(h, h) for h in headers]
    records = []
    for row in rows[1:]:
        if row is None or all(v is None or str(v).strip() == "" for v in row):
            continue
        records.append({headers[i]: row[i] for i in range(min(len(headers), len(row)))})
    return records


def _pick_sheet(wb, names: Tuple[str, ...], index: int):
    for name in names:
        if name in wb.sheetnames:
            return wb[name]
    if len(wb.worksheets) > index:
        return wb.worksheets[index]
    return None


def parse_workbook(data: bytes) -> List[Dict[str, Any]]:
    """
    Parse an exported (or template) workbook into contract payloads shaped
    like ContractIn: header fields plus an "items" list of assets.
    """
    try:
        wb = load_workbook(io.BytesIO(data), data_only=True, read_only=True)
    except Exception as e:
        raise WorkbookFormatError(f"Could not read workbook: {e}") from e

    contract_ws = _pick_sheet(wb, (CONTRACT_SHEET,) + CONTRACT_SHEET_ALIASES, 0)
    if contract_ws is None:
        raise WorkbookFormatError("Workbook has no contract sheet")
    asset_ws = _pick_sheet(wb, (ASSET_SHEET,) + ASSET_SHEET_ALIASES, 1)

    asset_records = _sheet_records(asset_ws, ASSET_HEADER_ALIASES) if asset_ws is not None else []
    assets_by_contract: Dict[str, List[Dict[str, Any]]] = {}
    for r in asset_records:
        key = _cell_text(r.get("Contract ID"))
        assets_by_contract.setdefault(key, []).append(
            {
                "category": _cell_text(r.get("Category")) or "HW",
                "item": _cell_text(r.get("Item")),
                "product": _cell_text(r.get("Product")),
                "qty": _cell_text(r.get("Qty")) or 1,
                "cycle": _cell_text(r.get("Cycle")) or "month",
                "scope": _cell_text(r.get("Scope")) or None,
                "company": _cell_text(r.get("Company")) or None,
                "remark": _cell_text(r.get("Remark")) or None,
                "engineer": {
                    "main": {
                        "name": _cell_text(r.get("Main Engineer")) or None,
                        "phone": _cell_text(r.get("Main Engineer Phone")) or None,
                        "email": _cell_text(r.get("Main Engineer Email")) or None,
                    }
                },
                "details": [],
            }
        )

    contracts = []
    for index, r in enumerate(_sheet_records(contract_ws, CONTRACT_HEADER_ALIASES), start=1):
        key = _cell_text(r.get("ID")) or str(index)
        contracts.append(
            {
                "customer_name": _cell_text(r.get("Customer")),
                "project_title": _cell_text(r.get("Project")),
                "start_date": _cell_text(r.get("Start Date")) or None,
                "end_date": _cell_text(r.get("End Date")) or None,
                "notes": _cell_text(r.get("Notes")) or None,
                "items": assets_by_contract.get(key, []),
            }
        )
    wb.close()
    return contracts


def export_filename(today: Optional[date] = None) -> str:
    return f"IMS_contracts_assets_{(today or date.today()).isoformat()}.xlsx"
