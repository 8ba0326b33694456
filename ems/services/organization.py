"""
Organization lookup for the attendance path
"""
from typing import Optional

from ems.config import settings
from ems.models.company import CompanySettings
from ems.models.user import User


def organization_of(user: User) -> str:
    return user.company or settings.DEFAULT_COMPANY_NAME


async def active_settings_for(user: User) -> Optional[CompanySettings]:
    """Active rule set of the user's organization, if one has been configured"""
    return await CompanySettings.find_one(
        CompanySettings.company_name == organization_of(user),
        CompanySettings.is_active == True,
    )


def timezone_for(company_settings: Optional[CompanySettings]) -> str:
    if company_settings is not None:
        return company_settings.timezone
    return settings.DEFAULT_TIMEZONE
