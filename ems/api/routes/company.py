"""
Company Settings Routes
Manage per-organization attendance rules
"""
from fastapi import APIRouter, HTTPException, Depends, Request, status
from datetime import datetime

import structlog
from pymongo.errors import DuplicateKeyError

from ems.models.company import CompanySettings, CompanySettingsUpdate, RuleCheckRequest
from ems.models.log import LogCategory
from ems.models.user import User, UserRole
from ems.api.routes.auth import get_current_user, require_roles
from ems.services.activity import record_activity
from ems.models.attendance_rules import default_attendance_status
from ems.services.organization import active_settings_for, organization_of

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/settings")
async def get_company_settings(current_user: User = Depends(get_current_user)):
    """Get the active settings of the caller's organization"""
    company_settings = await active_settings_for(current_user)
    if not company_settings:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No company settings found for {organization_of(current_user)}"
        )
    return {"success": True, "data": company_settings}


@router.post("/settings")
async def create_or_update_company_settings(
    update: CompanySettingsUpdate,
    request: Request,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Create or update company settings (Admin only)
    """
    company_name = update.company_name or organization_of(current_user)
    existing = await CompanySettings.find_one(CompanySettings.company_name == company_name)
    created = existing is None

    if created:
        existing = CompanySettings(company_name=company_name, created_by=current_user.id)

    # Only the allow-listed sections of the update schema are applied
    if update.attendance_rules is not None:
        existing.attendance_rules = update.attendance_rules
    if update.leave_rules is not None:
        existing.leave_rules = update.leave_rules
    if update.notifications is not None:
        existing.notifications = update.notifications
    if update.timezone is not None:
        existing.timezone = update.timezone
    if update.is_active is not None:
        existing.is_active = update.is_active

    existing.updated_by = current_user.id
    existing.updated_at = datetime.utcnow()

    try:
        if created:
            await existing.insert()
        else:
            await existing.save()
    except DuplicateKeyError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Company settings for {company_name} already exist"
        )

    logger.info("company_settings_saved", company=company_name, created=created)
    await record_activity(
        current_user.id,
        "Company Settings Created" if created else "Company Settings Updated",
        LogCategory.ADMIN,
        f"Attendance rules saved for {company_name}",
        request=request,
    )

    return {
        "success": True,
        "message": "Company settings created successfully" if created else "Company settings updated successfully",
        "data": existing
    }


@router.post("/settings/test-rules")
async def check_attendance_rules(
    body: RuleCheckRequest,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Evaluate the attendance rules for a hypothetical clock-in/out (Admin only).

    Rules sent in the body take precedence over the stored settings; with
    neither available the built-in default rules are used.
    """
    rules = body.attendance_rules
    if rules is None:
        company_settings = await active_settings_for(current_user)
        if company_settings is not None:
            rules = company_settings.attendance_rules

    if rules is not None:
        result = rules.calculate_attendance_status(body.clock_in_time, body.clock_out_time)
        within_work_hours = rules.is_within_work_hours(body.clock_in_time.strftime("%H:%M"))
    else:
        result = default_attendance_status(body.clock_in_time)
        within_work_hours = None

    return {
        "success": True,
        "data": {
            **result.to_dict(),
            "within_work_hours": within_work_hours,
            "using_defaults": rules is None
        }
    }
