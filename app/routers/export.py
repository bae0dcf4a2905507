from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.core.principal import Principal
from app.database import get_db
from app.deps.auth import require_auth
from app.services import timesheet_service
from app.services.excel_export import generate_workbook

router = APIRouter(prefix="/export", tags=["Export"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/excel")
def export_excel(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    principal: Principal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    entries = timesheet_service.list_visible_entries(db, principal, start_date, end_date, oldest_first=True)
    if not entries:
        raise NotFoundError("No entries found for the specified date range")

    content = generate_workbook(entries)
    filename = f"timesheets_{start_date or 'all'}_to_{end_date or 'all'}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
