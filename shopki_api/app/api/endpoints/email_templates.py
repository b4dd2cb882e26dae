"""
Administration of editable email templates.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from shopki_api.app.core.security import require_admin
from shopki_api.app.schemas.email import EmailTemplateRead, EmailTemplateUpdate
from shopki_api.app.services.email_templates import EmailTemplateService


router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("", response_model=List[EmailTemplateRead])
async def list_templates() -> List[dict]:
    return await EmailTemplateService.list_templates()


@router.get("/{template_type}", response_model=EmailTemplateRead)
async def get_template(template_type: str) -> dict:
    try:
        return await EmailTemplateService.get_template(template_type)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.put("/{template_type}", response_model=EmailTemplateRead)
async def save_template(template_type: str, template: EmailTemplateUpdate) -> dict:
    """Store an override; ``{{variable}}`` placeholders are filled at send time."""
    try:
        return await EmailTemplateService.save_template(template_type, template.subject, template.html)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{template_type}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(template_type: str) -> None:
    """Revert to the built-in template."""
    try:
        await EmailTemplateService.delete_template(template_type)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None
